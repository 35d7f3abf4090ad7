from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from billing_api.models.property import SpendingCategory


class SpendingCategoryIn(BaseModel):
    id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    weight_percent: Decimal = Field(..., ge=0, le=100, decimal_places=2)

    def to_model(self) -> SpendingCategory:
        if self.id:
            return SpendingCategory(
                id=self.id,
                title=self.title,
                description=self.description,
                weight_percent=self.weight_percent
            )
        return SpendingCategory(title=self.title, description=self.description, weight_percent=self.weight_percent)


class SpendingCategoriesUpdate(BaseModel):
    categories: List[SpendingCategoryIn]


class SpendingCategoryOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    weight_percent: str

    @classmethod
    def from_model(cls, category: SpendingCategory) -> "SpendingCategoryOut":
        return cls(
            id=category.id,
            title=category.title,
            description=category.description,
            weight_percent=str(category.weight_percent)
        )
