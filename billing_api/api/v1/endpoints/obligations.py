from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from billing_api.db.mongo import get_db
from billing_api.models.obligation import ObligationStatus
from billing_api.schemas.obligation import (
    BulkObligationUpdate,
    BulkUpdateResponse,
    EnsureMonthRequest,
    GenerateBackfillRequest,
    GenerateFutureRequest,
    GenerateMonthRequest,
    GenerationResponse,
    MarkOverdueResponse,
    MonthRollResponse,
    ObligationResponse,
    ObligationUpdate,
    PaymentDateUpdate,
    PaymentStatisticsResponse,
)
from billing_api.repositories.obligation_repo import ObligationRepository
from billing_api.services.obligation_generator import GenerationResult, MonthRollResult, ObligationGenerator
from billing_api.services.payment_status_service import PaymentStatusService
from billing_api.utils.calendar import MonthKey

router = APIRouter()


def _generation_response(result: GenerationResult) -> GenerationResponse:
    return GenerationResponse(
        created=result.created_count,
        skipped=result.skipped_count,
        months=[m.first_day() for m in result.months],
        obligations=[ObligationResponse.from_model(o) for o in result.created]
    )


def _roll_response(result: MonthRollResult) -> MonthRollResponse:
    return MonthRollResponse(
        month=result.month.first_day(),
        created=result.created,
        skipped=result.skipped,
        errors=result.errors
    )


@router.post("/generate-backfill", response_model=GenerationResponse)
async def generate_backfill(payload: GenerateBackfillRequest, db = Depends(get_db)):
    """Create missing obligations from the tenant's billing start through the current month"""
    result = await ObligationGenerator(db).generate_backfill(payload.tenant_id, payload.property_id)
    return _generation_response(result)


@router.post("/generate-future", response_model=GenerationResponse)
async def generate_future(payload: GenerateFutureRequest, db = Depends(get_db)):
    """Create obligations for the current month and the months after it"""
    result = await ObligationGenerator(db).generate_future_obligations(
        payload.tenant_id, payload.property_id, payload.months_ahead
    )
    return _generation_response(result)


@router.post("/ensure-month", response_model=MonthRollResponse)
async def ensure_month(payload: EnsureMonthRequest, db = Depends(get_db)):
    """Make sure every tenant of a property has an obligation for the month"""
    result = await ObligationGenerator(db).ensure_month_for_property(
        payload.property_id, MonthKey.from_date(payload.month)
    )
    return _roll_response(result)


@router.post("/generate-month", response_model=MonthRollResponse)
async def generate_month(payload: GenerateMonthRequest, db = Depends(get_db)):
    """Roll the month (default: current) for every rated tenant/property link"""
    month = MonthKey.from_date(payload.month) if payload.month else None
    result = await ObligationGenerator(db).generate_month_for_all(month)
    return _roll_response(result)


@router.post("/mark-overdue", response_model=MarkOverdueResponse)
async def mark_overdue(db = Depends(get_db)):
    count = await PaymentStatusService(db).mark_overdue()
    return MarkOverdueResponse(marked_overdue=count)


@router.get("/statistics", response_model=PaymentStatisticsResponse)
async def payment_statistics(
    property_id: Optional[List[str]] = Query(None),
    year: Optional[int] = Query(None, ge=1, le=9999),
    db = Depends(get_db)
):
    """Count and amount of obligations per status"""
    totals = await PaymentStatusService(db).payment_statistics(property_id, year)
    return PaymentStatisticsResponse.from_totals(totals)


@router.get("/tenant/{tenant_id}", response_model=List[ObligationResponse])
async def list_tenant_obligations(
    tenant_id: str,
    property_id: Optional[str] = None,
    year: Optional[int] = Query(None, ge=1, le=9999),
    status: Optional[ObligationStatus] = None,
    db = Depends(get_db)
):
    """List a tenant's obligations, newest month first"""
    obligations = await ObligationRepository(db).list_for_tenant(tenant_id, property_id, year, status)
    return [ObligationResponse.from_model(o) for o in obligations]


@router.get("/property/{property_id}", response_model=List[ObligationResponse])
async def list_property_obligations(
    property_id: str,
    year: Optional[int] = Query(None, ge=1, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    status: Optional[ObligationStatus] = None,
    db = Depends(get_db)
):
    """Property ledger across tenants, newest month first"""
    obligations = await PaymentStatusService(db).list_property_obligations(property_id, year, month, status)
    return [ObligationResponse.from_model(o) for o in obligations]


@router.patch("", response_model=BulkUpdateResponse)
async def bulk_update_obligations(payload: BulkObligationUpdate, db = Depends(get_db)):
    """Apply one status to many obligations"""
    result = await PaymentStatusService(db).bulk_update_status(
        payload.ids, payload.status, payload.payment_date
    )
    return BulkUpdateResponse(
        updated=[ObligationResponse.from_model(o) for o in result.updated],
        missing=result.missing
    )


@router.patch("/{obligation_id}", response_model=ObligationResponse)
async def update_obligation(obligation_id: str, payload: ObligationUpdate, db = Depends(get_db)):
    """Change an obligation's status and/or notes"""
    obligation = await PaymentStatusService(db).update_status(
        obligation_id,
        status=payload.status,
        payment_date=payload.payment_date,
        notes=payload.notes
    )
    return ObligationResponse.from_model(obligation)


@router.patch("/{obligation_id}/payment-date", response_model=ObligationResponse)
async def update_payment_date(obligation_id: str, payload: PaymentDateUpdate, db = Depends(get_db)):
    """Correct the settlement date of a paid obligation"""
    obligation = await PaymentStatusService(db).update_payment_date(obligation_id, payload.payment_date)
    return ObligationResponse.from_model(obligation)
