"""
MonthlyReport model - aggregated snapshot of one property's month.

Totals are ledger-derived facts written only by report generation;
notes and spending_breakdown may be revised afterwards.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from billing_api.models.base import MongoModel, PyObjectId
from billing_api.utils.calendar import MonthKey


class SpendingAllocation(BaseModel):
    category_id: Optional[str] = None
    category_title: str
    description: Optional[str] = None
    allocated_amount_cents: int
    percentage: str  # "33.34"


class MonthlyReport(MongoModel):
    property_id: PyObjectId
    report_month: datetime
    generated_by: Optional[str] = None

    total_budget_cents: int = 0
    total_tenants: int = 0
    paid_tenants: int = 0
    pending_amount_cents: int = 0
    spending_breakdown: List[SpendingAllocation] = []

    notes: Optional[str] = None

    @property
    def month(self) -> MonthKey:
        return MonthKey.from_date(self.report_month)

    def allocated_total_cents(self) -> int:
        return sum(item.allocated_amount_cents for item in self.spending_breakdown)
