from datetime import datetime

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from motor.motor_asyncio import AsyncIOMotorDatabase
from mongomock_motor import AsyncMongoMockClient

from billing_api.db.mongo import create_indexes, get_db
from billing_api.main import app
from billing_api.models.property import SpendingCategory
from billing_api.repositories.property_repo import PropertyRepository
from billing_api.repositories.tenant_repo import TenantRepository

TEST_MONGODB_DB = "tenant_billing_test"


@pytest_asyncio.fixture
async def test_db() -> AsyncIOMotorDatabase:
    """In-memory MongoDB database with the production indexes."""
    client = AsyncMongoMockClient()
    db = client[TEST_MONGODB_DB]
    await create_indexes(db)
    return db


@pytest.fixture
def client():
    """FastAPI test client. The lifespan is not run, so no real MongoDB is contacted."""
    db = AsyncMongoMockClient()[TEST_MONGODB_DB]
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def actor_headers():
    return {"X-Actor-Id": "manager-1"}


@pytest_asyncio.fixture
async def sample_property(test_db):
    """Property created 2025-01-01 with three equal-weight categories."""
    repo = PropertyRepository(test_db)
    return await repo.create_property(
        name="Maple Court",
        address="12 Maple Court",
        created_at=datetime(2025, 1, 1),
        spending_categories=[
            SpendingCategory(title="Maintenance", weight_percent="33.34"),
            SpendingCategory(title="Utilities", weight_percent="33.33"),
            SpendingCategory(title="Reserve", weight_percent="33.33"),
        ]
    )


@pytest_asyncio.fixture
async def linked_tenant(test_db, sample_property):
    """Tenant at 500.00/month linked to the sample property on 2025-01-15."""
    repo = TenantRepository(test_db)
    tenant = await repo.create_tenant(name="Alice", monthly_rate_cents=50000)
    return await repo.link_property(tenant.id, sample_property.id, linked_at=datetime(2025, 1, 15))
