import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from billing_api.core.config import settings

logger = logging.getLogger(__name__)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URL)
    mongodb.db = mongodb.client[settings.DATABASE_NAME]

    await create_indexes(mongodb.db)
    logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("Disconnected from MongoDB")

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes.

    The two unique compound indexes are what make obligation generation and
    report upserts idempotent under concurrent callers.
    """
    # One obligation per (tenant, property, month)
    await db["payment_obligations"].create_index(
        [("tenant_id", ASCENDING), ("property_id", ASCENDING), ("payment_month", ASCENDING)],
        unique=True,
        name="unique_tenant_property_month"
    )
    await db["payment_obligations"].create_index([("property_id", ASCENDING), ("payment_month", ASCENDING)])
    await db["payment_obligations"].create_index([("status", ASCENDING), ("payment_month", ASCENDING)])

    # One report per (property, month)
    await db["monthly_reports"].create_index(
        [("property_id", ASCENDING), ("report_month", ASCENDING)],
        unique=True,
        name="unique_property_month_report"
    )
    await db["monthly_reports"].create_index([("report_month", DESCENDING)])

    # Tenant links
    await db["tenants"].create_index("property_links.property_id")

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
