from datetime import datetime, timezone
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from billing_api.models.base import to_object_id
from billing_api.models.property import Property, SpendingCategory


class PropertyRepository:
    """Property database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["properties"]

    async def create_property(
        self,
        name: str,
        address: Optional[str] = None,
        created_at: Optional[datetime] = None,
        spending_categories: Optional[List[SpendingCategory]] = None
    ) -> Property:
        prop = Property(
            name=name,
            address=address,
            spending_categories=spending_categories or []
        )
        if created_at is not None:
            prop.created_at = created_at
            prop.updated_at = created_at
        await self.collection.insert_one(prop.to_document())
        return prop

    async def get_property(self, property_id) -> Optional[Property]:
        oid = to_object_id(property_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return Property(**doc) if doc else None

    async def set_spending_categories(
        self, property_id, categories: List[SpendingCategory]
    ) -> Optional[Property]:
        """Replace the property's spending category configuration."""
        oid = to_object_id(property_id)
        if oid is None:
            return None
        doc = await self.collection.find_one_and_update(
            {"_id": oid},
            {
                "$set": {
                    "spending_categories": [c.model_dump() for c in categories],
                    "updated_at": datetime.now(timezone.utc)
                }
            },
            return_document=ReturnDocument.AFTER
        )
        return Property(**doc) if doc else None
