from datetime import date, datetime, timezone
from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from billing_api.models.base import to_object_id
from billing_api.models.tenant import PropertyLink, Tenant
from billing_api.utils.calendar import DateLike


class TenantRepository:
    """Tenant database operations (rate and property links only)."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["tenants"]

    async def create_tenant(
        self,
        name: str,
        monthly_rate_cents: int = 0,
        email: Optional[str] = None
    ) -> Tenant:
        tenant = Tenant(name=name, email=email, monthly_rate_cents=monthly_rate_cents)
        await self.collection.insert_one(tenant.to_document())
        return tenant

    async def get_tenant(self, tenant_id) -> Optional[Tenant]:
        oid = to_object_id(tenant_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return Tenant(**doc) if doc else None

    async def link_property(
        self,
        tenant_id: ObjectId,
        property_id: ObjectId,
        linked_at: Optional[DateLike] = None
    ) -> Optional[Tenant]:
        """Link a tenant to a property. Re-linking keeps the first linked_at.

        linked_at is reduced to its calendar day (default: today).
        """
        link = PropertyLink(property_id=property_id, linked_at=linked_at or date.today())
        doc = await self.collection.find_one_and_update(
            {"_id": tenant_id, "property_links.property_id": {"$ne": property_id}},
            {
                "$push": {"property_links": link.model_dump()},
                "$set": {"updated_at": datetime.now(timezone.utc)}
            },
            return_document=ReturnDocument.AFTER
        )
        if doc:
            return Tenant(**doc)
        return await self.get_tenant(tenant_id)

    async def update_monthly_rate(self, tenant_id: ObjectId, monthly_rate_cents: int) -> Optional[Tenant]:
        """Change the rate used for future generation; existing obligations keep theirs."""
        doc = await self.collection.find_one_and_update(
            {"_id": tenant_id},
            {"$set": {"monthly_rate_cents": monthly_rate_cents, "updated_at": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER
        )
        return Tenant(**doc) if doc else None

    async def list_for_property(self, property_id: ObjectId) -> List[Tenant]:
        cursor = self.collection.find({"property_links.property_id": property_id}).sort("_id", 1)
        docs = await cursor.to_list(None)
        return [Tenant(**doc) for doc in docs]

    async def list_rated(self) -> List[Tenant]:
        """Tenants with a positive monthly rate and at least one property link."""
        cursor = self.collection.find({
            "monthly_rate_cents": {"$gt": 0},
            "property_links": {"$ne": []}
        }).sort("_id", 1)
        docs = await cursor.to_list(None)
        return [Tenant(**doc) for doc in docs]
