from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase

from billing_api.core.exceptions import NoPropertyError, ValidationError
from billing_api.models.property import SpendingCategory
from billing_api.repositories.property_repo import PropertyRepository


def validate_categories(categories: List[SpendingCategory]) -> None:
    """
    Validate a spending category configuration.

    Rules:
    - titles must be non-empty
    - weights must be non-negative
    - category ids must be unique
    """
    seen = set()
    for category in categories:
        if not category.title or not category.title.strip():
            raise ValidationError("Spending category title is required", {"category_id": category.id})
        if category.weight_percent < 0:
            raise ValidationError(
                f"Spending category '{category.title}' has negative weight: {category.weight_percent}",
                {"category_id": category.id}
            )
        if category.id in seen:
            raise ValidationError(f"Duplicate spending category id: {category.id}", {"category_id": category.id})
        seen.add(category.id)


class SpendingConfigService:
    """Reads and replaces a property's spending categories."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.properties = PropertyRepository(db)

    async def get_spending_categories(self, property_id) -> List[SpendingCategory]:
        prop = await self.properties.get_property(property_id)
        if prop is None:
            raise NoPropertyError("Property not found", {"property_id": str(property_id)})
        return prop.spending_categories

    async def set_spending_categories(self, property_id, categories: List[SpendingCategory]) -> List[SpendingCategory]:
        validate_categories(categories)
        cleaned = [
            SpendingCategory(
                id=c.id,
                title=c.title.strip(),
                description=c.description.strip() if c.description else None,
                weight_percent=c.weight_percent
            )
            for c in categories
        ]
        prop = await self.properties.set_spending_categories(property_id, cleaned)
        if prop is None:
            raise NoPropertyError("Property not found", {"property_id": str(property_id)})
        return prop.spending_categories
