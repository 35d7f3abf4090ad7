from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status

from billing_api.core.actor import get_actor_id
from billing_api.db.mongo import get_db
from billing_api.schemas.report import (
    GenerateReportRequest,
    ReportPreviewResponse,
    ReportResponse,
    ReportUpdate,
    allocation_out,
)
from billing_api.services.report_service import ReportService
from billing_api.utils.calendar import MonthKey
from billing_api.utils.money import format_cents

router = APIRouter()


@router.post("", response_model=ReportResponse)
async def generate_monthly_report(
    payload: GenerateReportRequest,
    response: Response,
    actor_id: str = Depends(get_actor_id),
    db = Depends(get_db)
):
    """Generate or regenerate the report for a property and month"""
    service = ReportService(db)
    month = MonthKey(payload.year, payload.month)
    report = await service.generate_report(payload.property_id, month, author_id=actor_id, notes=payload.notes)
    if report.created_at == report.updated_at:
        response.status_code = status.HTTP_201_CREATED
    return ReportResponse.from_model(report)


@router.get("/preview", response_model=ReportPreviewResponse)
async def preview_monthly_report(
    property_id: str,
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=1, le=9999),
    db = Depends(get_db)
):
    """Report figures for a month without saving them"""
    summary = await ReportService(db).preview_report(property_id, MonthKey(year, month))
    return ReportPreviewResponse(
        property_id=summary.property_id,
        report_month=summary.month.first_day(),
        total_budget=format_cents(summary.total_budget_cents),
        total_tenants=summary.total_tenants,
        paid_tenants=summary.paid_tenants,
        pending_amount=format_cents(summary.pending_amount_cents),
        spending_breakdown=[allocation_out(a.to_spending_allocation()) for a in summary.allocations]
    )


@router.get("", response_model=List[ReportResponse])
async def list_all_reports(
    year: Optional[int] = Query(None, ge=1, le=9999),
    db = Depends(get_db)
):
    """All reports, newest month first"""
    reports = await ReportService(db).list_all_reports(year)
    return [ReportResponse.from_model(r) for r in reports]


@router.get("/property/{property_id}", response_model=List[ReportResponse])
async def list_property_reports(
    property_id: str,
    year: Optional[int] = Query(None, ge=1, le=9999),
    db = Depends(get_db)
):
    reports = await ReportService(db).list_property_reports(property_id, year)
    return [ReportResponse.from_model(r) for r in reports]


@router.get("/tenant/{tenant_id}", response_model=List[ReportResponse])
async def list_tenant_reports(
    tenant_id: str,
    year: Optional[int] = Query(None, ge=1, le=9999),
    db = Depends(get_db)
):
    """Reports for the properties a tenant is linked to"""
    reports = await ReportService(db).list_tenant_reports(tenant_id, year)
    return [ReportResponse.from_model(r) for r in reports]


@router.get("/property/{property_id}/{year}/{month}", response_model=ReportResponse)
async def get_monthly_report(
    property_id: str,
    year: int = Path(..., ge=1, le=9999),
    month: int = Path(..., ge=1, le=12),
    db = Depends(get_db)
):
    report = await ReportService(db).get_report(property_id, MonthKey(year, month))
    return ReportResponse.from_model(report)


@router.get("/{report_id}", response_model=ReportResponse)
async def get_report_by_id(report_id: str, db = Depends(get_db)):
    report = await ReportService(db).get_report_by_id(report_id)
    return ReportResponse.from_model(report)


@router.patch("/{report_id}", response_model=ReportResponse)
async def revise_monthly_report(report_id: str, payload: ReportUpdate, db = Depends(get_db)):
    """Edit notes and/or the spending breakdown without touching totals"""
    allocations = None
    if payload.spending_allocations is not None:
        allocations = [item.to_model() for item in payload.spending_allocations]
    report = await ReportService(db).revise_report(report_id, notes=payload.notes, spending_allocations=allocations)
    return ReportResponse.from_model(report)


@router.delete("/{report_id}")
async def delete_monthly_report(report_id: str, db = Depends(get_db)):
    await ReportService(db).delete_report(report_id)
    return {"success": True}
