from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer

from billing_api.models.base import MongoModel, PyObjectId


class SpendingCategory(BaseModel):
    """Named spending category with a percentage weight, embedded in a property."""
    id: str = Field(default_factory=lambda: str(PyObjectId()))
    title: str
    description: Optional[str] = None
    weight_percent: Decimal = Decimal("0")

    # BSON has no Decimal: weights are stored as strings
    @field_serializer("weight_percent")
    def _serialize_weight(self, value: Decimal) -> str:
        return str(value)


class Property(MongoModel):
    name: str
    address: Optional[str] = None
    spending_categories: List[SpendingCategory] = []
