from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict

from billing_api.models.obligation import ObligationStatus, PaymentObligation
from billing_api.utils.calendar import MonthKey, from_storage_date
from billing_api.utils.money import format_cents


class GenerateBackfillRequest(BaseModel):
    """Backfill from link/creation date through the current month."""
    tenant_id: str
    property_id: str


class GenerateFutureRequest(BaseModel):
    """Forward-fill starting at the current month."""
    tenant_id: str
    property_id: str
    months_ahead: int = Field(..., ge=1)


class EnsureMonthRequest(BaseModel):
    property_id: str
    month: date


class GenerateMonthRequest(BaseModel):
    month: Optional[date] = None


class ObligationUpdate(BaseModel):
    """Status change and/or notes for one obligation."""
    status: Optional[ObligationStatus] = None
    payment_date: Optional[date] = None
    notes: Optional[str] = None


class BulkObligationUpdate(BaseModel):
    ids: List[str] = Field(..., min_length=1)
    status: ObligationStatus
    payment_date: Optional[date] = None


class PaymentDateUpdate(BaseModel):
    payment_date: date


class ObligationResponse(BaseModel):
    """Obligation as exchanged with callers: amounts as "500.00", months as ISO day-1 dates."""
    id: str
    tenant_id: str
    property_id: str
    payment_month: date
    amount: str
    status: ObligationStatus
    payment_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_model(cls, obligation: PaymentObligation) -> "ObligationResponse":
        return cls(
            id=str(obligation.id),
            tenant_id=str(obligation.tenant_id),
            property_id=str(obligation.property_id),
            payment_month=MonthKey.from_date(obligation.payment_month).first_day(),
            amount=format_cents(obligation.amount_cents),
            status=obligation.status,
            payment_date=from_storage_date(obligation.payment_date),
            notes=obligation.notes,
            created_at=obligation.created_at,
            updated_at=obligation.updated_at
        )


class GenerationResponse(BaseModel):
    created: int
    skipped: int
    months: List[date]
    obligations: List[ObligationResponse]


class MonthRollResponse(BaseModel):
    month: date
    created: int
    skipped: int
    errors: List[Dict[str, str]] = []


class BulkUpdateResponse(BaseModel):
    updated: List[ObligationResponse]
    missing: List[str] = []


class StatusTotals(BaseModel):
    count: int
    amount: str


class PaymentStatisticsResponse(BaseModel):
    pending: StatusTotals
    paid: StatusTotals
    overdue: StatusTotals
    total: StatusTotals

    @classmethod
    def from_totals(cls, totals: Dict[str, Dict[str, int]]) -> "PaymentStatisticsResponse":
        def row(values: Dict[str, int]) -> StatusTotals:
            return StatusTotals(count=values["count"], amount=format_cents(values["amount_cents"]))

        return cls(
            pending=row(totals[ObligationStatus.PENDING.value]),
            paid=row(totals[ObligationStatus.PAID.value]),
            overdue=row(totals[ObligationStatus.OVERDUE.value]),
            total=row({
                "count": sum(v["count"] for v in totals.values()),
                "amount_cents": sum(v["amount_cents"] for v in totals.values())
            })
        )


class MarkOverdueResponse(BaseModel):
    marked_overdue: int
