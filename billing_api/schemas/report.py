from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from billing_api.models.report import MonthlyReport, SpendingAllocation
from billing_api.utils.calendar import MonthKey
from billing_api.utils.money import MoneyFormatError, format_cents, to_cents


class GenerateReportRequest(BaseModel):
    property_id: str
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1, le=9999)
    notes: Optional[str] = None


class SpendingAllocationIn(BaseModel):
    """Caller-supplied breakdown line; amount as a decimal string."""
    category_id: Optional[str] = None
    category_title: str = Field(..., min_length=1)
    description: Optional[str] = None
    allocated_amount: str

    @field_validator("allocated_amount", mode="before")
    @classmethod
    def _check_amount(cls, value):
        if isinstance(value, (int, Decimal)) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str):
            raise ValueError("allocated_amount must be a decimal string")
        try:
            cents = to_cents(value)
        except MoneyFormatError as exc:
            raise ValueError(str(exc))
        if cents < 0:
            raise ValueError("allocated_amount must be non-negative")
        return value

    def to_model(self) -> SpendingAllocation:
        return SpendingAllocation(
            category_id=self.category_id,
            category_title=self.category_title,
            description=self.description,
            allocated_amount_cents=to_cents(self.allocated_amount),
            percentage="0.00"
        )


class ReportUpdate(BaseModel):
    """Editorial revision: only supplied fields are overwritten."""
    notes: Optional[str] = None
    spending_allocations: Optional[List[SpendingAllocationIn]] = None


class SpendingAllocationOut(BaseModel):
    category_id: Optional[str] = None
    category_title: str
    description: Optional[str] = None
    allocated_amount: str
    percentage: str


def allocation_out(item: SpendingAllocation) -> SpendingAllocationOut:
    return SpendingAllocationOut(
        category_id=item.category_id,
        category_title=item.category_title,
        description=item.description,
        allocated_amount=format_cents(item.allocated_amount_cents),
        percentage=item.percentage
    )


class ReportResponse(BaseModel):
    id: str
    property_id: str
    report_month: date
    generated_by: Optional[str] = None
    total_budget: str
    total_tenants: int
    paid_tenants: int
    pending_amount: str
    spending_breakdown: List[SpendingAllocationOut]
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, report: MonthlyReport) -> "ReportResponse":
        return cls(
            id=str(report.id),
            property_id=str(report.property_id),
            report_month=MonthKey.from_date(report.report_month).first_day(),
            generated_by=report.generated_by,
            total_budget=format_cents(report.total_budget_cents),
            total_tenants=report.total_tenants,
            paid_tenants=report.paid_tenants,
            pending_amount=format_cents(report.pending_amount_cents),
            spending_breakdown=[allocation_out(item) for item in report.spending_breakdown],
            notes=report.notes,
            created_at=report.created_at,
            updated_at=report.updated_at
        )


class ReportPreviewResponse(BaseModel):
    property_id: str
    report_month: date
    total_budget: str
    total_tenants: int
    paid_tenants: int
    pending_amount: str
    spending_breakdown: List[SpendingAllocationOut]
