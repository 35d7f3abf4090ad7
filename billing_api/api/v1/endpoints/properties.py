from typing import List

from fastapi import APIRouter, Depends

from billing_api.db.mongo import get_db
from billing_api.schemas.property import SpendingCategoriesUpdate, SpendingCategoryOut
from billing_api.services.spending_config_service import SpendingConfigService

router = APIRouter()


@router.get("/{property_id}/spending-categories", response_model=List[SpendingCategoryOut])
async def get_spending_categories(property_id: str, db = Depends(get_db)):
    categories = await SpendingConfigService(db).get_spending_categories(property_id)
    return [SpendingCategoryOut.from_model(c) for c in categories]


@router.put("/{property_id}/spending-categories", response_model=List[SpendingCategoryOut])
async def set_spending_categories(property_id: str, payload: SpendingCategoriesUpdate, db = Depends(get_db)):
    """Replace the spending categories used by future report generation"""
    categories = await SpendingConfigService(db).set_spending_categories(
        property_id, [c.to_model() for c in payload.categories]
    )
    return [SpendingCategoryOut.from_model(c) for c in categories]
