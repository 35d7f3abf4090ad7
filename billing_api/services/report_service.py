"""
ReportService - monthly report aggregation and editorial revisions.

generate_report reads the ledger for one (property, month), summarizes it,
allocates the collected budget across the property's spending categories and
upserts the snapshot. Read, allocation and write for a key run under one lock
so two concurrent generations for the same month cannot interleave.

revise_report only overwrites notes and/or the breakdown; totals stay as the
ledger last produced them.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from billing_api.core.exceptions import NoPropertyError, NotFoundError, ReconciliationError
from billing_api.models.base import to_object_id
from billing_api.models.obligation import PaymentObligation
from billing_api.models.property import Property
from billing_api.models.report import MonthlyReport, SpendingAllocation
from billing_api.repositories.obligation_repo import ObligationRepository
from billing_api.repositories.property_repo import PropertyRepository
from billing_api.repositories.report_repo import ReportRepository
from billing_api.repositories.tenant_repo import TenantRepository
from billing_api.services.allocation import Allocation, allocate, realized_percent
from billing_api.utils.calendar import MonthKey
from billing_api.utils.money import format_cents

logger = logging.getLogger(__name__)


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


# Live only while some generation for the (property_id, month) holds or awaits it
_report_locks: Dict[Tuple[str, MonthKey], _LockEntry] = {}


@asynccontextmanager
async def report_lock(property_id, month: MonthKey):
    key = (str(property_id), month)
    entry = _report_locks.get(key)
    if entry is None:
        entry = _report_locks[key] = _LockEntry()
    entry.users += 1
    try:
        async with entry.lock:
            yield
    finally:
        entry.users -= 1
        if entry.users == 0:
            del _report_locks[key]


@dataclass
class ReportSummary:
    """Ledger-derived figures for one property and month."""
    property_id: str
    month: MonthKey
    total_tenants: int = 0
    paid_tenants: int = 0
    total_budget_cents: int = 0
    pending_amount_cents: int = 0
    allocations: List[Allocation] = field(default_factory=list)
    obligations: List[PaymentObligation] = field(default_factory=list)


def summarize(obligations: Sequence[PaymentObligation]) -> Tuple[int, int, int, int]:
    """(total_tenants, paid_tenants, total_budget_cents, pending_amount_cents)."""
    paid = [o for o in obligations if o.is_paid()]
    unpaid = [o for o in obligations if not o.is_paid()]
    return (
        len(obligations),
        len(paid),
        sum(o.amount_cents for o in paid),
        sum(o.amount_cents for o in unpaid),
    )


class ReportService:
    """Generates, reads and revises monthly reports."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.obligations = ObligationRepository(db)
        self.properties = PropertyRepository(db)
        self.reports = ReportRepository(db)
        self.tenants = TenantRepository(db)

    async def _get_property(self, property_id) -> Property:
        prop = await self.properties.get_property(property_id)
        if prop is None:
            raise NoPropertyError("Property not found", {"property_id": str(property_id)})
        return prop

    async def _summarize(self, prop: Property, month: MonthKey) -> ReportSummary:
        obligations = await self.obligations.list_for_property_month(prop.id, month)
        total_tenants, paid_tenants, budget, pending = summarize(obligations)
        allocations = allocate(budget, prop.spending_categories)
        return ReportSummary(
            property_id=str(prop.id),
            month=month,
            total_tenants=total_tenants,
            paid_tenants=paid_tenants,
            total_budget_cents=budget,
            pending_amount_cents=pending,
            allocations=allocations,
            obligations=obligations
        )

    async def preview_report(self, property_id, month: MonthKey) -> ReportSummary:
        """Compute the report figures without persisting anything."""
        prop = await self._get_property(property_id)
        return await self._summarize(prop, month)

    async def generate_report(
        self,
        property_id,
        month: MonthKey,
        author_id: Optional[str] = None,
        notes: Optional[str] = None
    ) -> MonthlyReport:
        """
        Generate or regenerate the report for (property, month).

        Raises NoPropertyError if the property does not exist. A month with no
        obligations produces an all-zero report. A ReconciliationError aborts
        the call before anything is written.
        """
        prop = await self._get_property(property_id)

        async with report_lock(prop.id, month):
            try:
                summary = await self._summarize(prop, month)
            except ReconciliationError:
                logger.error("Report for property %s / %s not saved: allocation failed", prop.id, month)
                raise

            derived = {
                "generated_by": author_id,
                "total_budget_cents": summary.total_budget_cents,
                "total_tenants": summary.total_tenants,
                "paid_tenants": summary.paid_tenants,
                "pending_amount_cents": summary.pending_amount_cents,
                "spending_breakdown": [
                    a.to_spending_allocation().model_dump() for a in summary.allocations
                ],
            }
            report = await self.reports.upsert(prop.id, month, derived, notes=notes)

        logger.info(
            "Report %s for property %s / %s: budget %s, %d/%d paid",
            report.id, prop.id, month, format_cents(report.total_budget_cents),
            report.paid_tenants, report.total_tenants
        )
        return report

    async def get_report(self, property_id, month: MonthKey) -> MonthlyReport:
        property_oid = to_object_id(property_id)
        report = None
        if property_oid is not None:
            report = await self.reports.get_by_key(property_oid, month)
        if report is None:
            raise NotFoundError(
                "Report not found",
                {"property_id": str(property_id), "month": str(month)}
            )
        return report

    async def get_report_by_id(self, report_id: str) -> MonthlyReport:
        report = await self.reports.get(report_id)
        if report is None:
            raise NotFoundError("Report not found", {"report_id": str(report_id)})
        return report

    async def list_property_reports(self, property_id, year: Optional[int] = None) -> List[MonthlyReport]:
        prop = await self._get_property(property_id)
        return await self.reports.list_reports(prop.id, year)

    async def list_tenant_reports(self, tenant_id, year: Optional[int] = None) -> List[MonthlyReport]:
        """Reports for every property the tenant is linked to, newest month first."""
        tenant = await self.tenants.get_tenant(tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found", {"tenant_id": str(tenant_id)})
        if not tenant.property_links:
            raise NotFoundError("No property assigned to this tenant", {"tenant_id": str(tenant.id)})
        property_ids = [link.property_id for link in tenant.property_links]
        return await self.reports.list_reports(year=year, property_ids=property_ids)

    async def list_all_reports(self, year: Optional[int] = None) -> List[MonthlyReport]:
        return await self.reports.list_reports(None, year)

    async def revise_report(
        self,
        report_id: str,
        notes: Optional[str] = None,
        spending_allocations: Optional[List[SpendingAllocation]] = None
    ) -> MonthlyReport:
        """
        Overwrite notes and/or the spending breakdown of a stored report.

        Totals are not re-derived and a supplied breakdown is not required to
        sum to total_budget; its percentages are recomputed against the stored
        budget for display.
        """
        report = await self.get_report_by_id(report_id)

        updates = {}
        if notes is not None:
            updates["notes"] = notes
        if spending_allocations is not None:
            updates["spending_breakdown"] = [
                SpendingAllocation(
                    category_id=item.category_id,
                    category_title=item.category_title,
                    description=item.description,
                    allocated_amount_cents=item.allocated_amount_cents,
                    percentage=str(realized_percent(item.allocated_amount_cents, report.total_budget_cents))
                ).model_dump()
                for item in spending_allocations
            ]
        if not updates:
            return report

        revised = await self.reports.update_fields(report.id, updates)
        if revised is None:
            raise NotFoundError("Report not found", {"report_id": str(report_id)})
        if spending_allocations is not None and revised.allocated_total_cents() != revised.total_budget_cents:
            logger.warning(
                "Report %s revised breakdown sums to %s against budget %s",
                revised.id, format_cents(revised.allocated_total_cents()),
                format_cents(revised.total_budget_cents)
            )
        return revised

    async def delete_report(self, report_id: str) -> bool:
        deleted = await self.reports.delete(report_id)
        if not deleted:
            raise NotFoundError("Report not found", {"report_id": str(report_id)})
        logger.info("Report %s deleted", report_id)
        return True
