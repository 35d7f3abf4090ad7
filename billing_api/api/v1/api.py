from fastapi import APIRouter
from billing_api.api.v1.endpoints import obligations, monthly_reports, properties

api_router = APIRouter()

api_router.include_router(obligations.router, prefix="/obligations", tags=["obligations"])
api_router.include_router(monthly_reports.router, prefix="/monthly-reports", tags=["monthly-reports"])
api_router.include_router(properties.router, prefix="/properties", tags=["properties"])
