"""
PaymentObligation model - one tenant's rent charge for one property for one month.

Design principles:
- Exactly one obligation per (tenant, property, payment_month)
- payment_month is always day 1 of the month
- amount_cents is fixed at generation time and never rewritten
- Status: pending -> paid | overdue, overdue -> paid, paid -> pending (correction)
- All amounts in integer cents
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from billing_api.models.base import MongoModel, PyObjectId
from billing_api.utils.calendar import MonthKey


class ObligationStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentObligation(MongoModel):
    """
    Monthly rent charge.

    Invariants:
    - payment_date is set iff status == paid
    - amount_cents > 0 and immutable
    """
    tenant_id: PyObjectId
    property_id: PyObjectId
    payment_month: datetime

    amount_cents: int
    status: ObligationStatus = ObligationStatus.PENDING
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def month(self) -> MonthKey:
        return MonthKey.from_date(self.payment_month)

    def is_paid(self) -> bool:
        return self.status == ObligationStatus.PAID
