"""
ObligationGenerator - materializes monthly rent obligations.

Generation is a set difference: for each month in the requested range that
has no obligation for the (tenant, property) pair, insert a pending one at
the tenant's current rate. Months that already have a row are left alone,
whatever their status. Inserts that lose a race against a concurrent run hit
the unique index and are counted as skipped.

Every call is safe to retry: a run that stopped halfway resumes from the
first missing month.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from billing_api.core.config import settings
from billing_api.core.exceptions import (
    BillingError,
    InvalidRangeError,
    InvalidRateError,
    NoPropertyError,
    NotFoundError,
    ValidationError,
)
from billing_api.models.base import to_object_id
from billing_api.models.obligation import PaymentObligation
from billing_api.models.property import Property
from billing_api.models.tenant import Tenant
from billing_api.repositories.obligation_repo import ObligationRepository
from billing_api.repositories.property_repo import PropertyRepository
from billing_api.repositories.tenant_repo import TenantRepository
from billing_api.utils.calendar import DateLike, MonthKey, current_month, from_storage_date, months_between

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    months: List[MonthKey] = field(default_factory=list)
    created: List[PaymentObligation] = field(default_factory=list)
    skipped: List[MonthKey] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


@dataclass
class MonthRollResult:
    month: MonthKey
    created: int = 0
    skipped: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)


def billing_start(tenant: Tenant, prop: Property) -> date:
    """Later of the tenant's link date to the property and the property's creation date."""
    link = tenant.link_for(prop.id)
    if link is None:
        raise ValidationError(
            "Tenant is not linked to property",
            {"tenant_id": str(tenant.id), "property_id": str(prop.id)}
        )
    return max(from_storage_date(link.linked_at), prop.created_at.date())


class ObligationGenerator:
    """Creates missing obligations for tenant/property pairs."""

    def __init__(self, db: AsyncIOMotorDatabase, max_months_ahead: Optional[int] = None):
        self.db = db
        self.obligations = ObligationRepository(db)
        self.tenants = TenantRepository(db)
        self.properties = PropertyRepository(db)
        self.max_months_ahead = max_months_ahead or settings.MAX_MONTHS_AHEAD

    async def ensure_obligations(
        self,
        tenant: Tenant,
        property_id,
        from_date: DateLike,
        through_month: MonthKey
    ) -> GenerationResult:
        """
        Ensure one obligation per month from from_date's month through through_month.

        Raises InvalidRateError if the tenant has no positive rate and
        InvalidRangeError if through_month precedes from_date's month.
        """
        if not tenant.has_rate():
            raise InvalidRateError(
                "Tenant has no positive monthly rate",
                {"tenant_id": str(tenant.id), "monthly_rate_cents": tenant.monthly_rate_cents}
            )

        start = MonthKey.from_date(from_date)
        if through_month < start:
            raise InvalidRangeError(
                f"End month {through_month} precedes start month {start}",
                {"tenant_id": str(tenant.id), "from": str(start), "through": str(through_month)}
            )

        property_oid = to_object_id(property_id)
        if property_oid is None:
            raise NoPropertyError("Property not found", {"property_id": str(property_id)})
        months = months_between(start, through_month)
        existing = await self.obligations.existing_months(tenant.id, property_oid, start, through_month)

        result = GenerationResult(months=list(months))
        for month in months:
            if month in existing:
                result.skipped.append(month)
                continue
            created = await self.obligations.insert_if_absent(
                tenant.id, property_oid, month, tenant.monthly_rate_cents
            )
            if created is None:
                result.skipped.append(month)
            else:
                result.created.append(created)

        logger.info(
            "Obligations for tenant %s / property %s, %s..%s: %d created, %d skipped",
            tenant.id, property_oid, start, through_month,
            result.created_count, result.skipped_count
        )
        return result

    async def _load_pair(self, tenant_id, property_id):
        tenant = await self.tenants.get_tenant(tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found", {"tenant_id": str(tenant_id)})
        prop = await self.properties.get_property(property_id)
        if prop is None:
            raise NoPropertyError("Property not found", {"property_id": str(property_id)})
        return tenant, prop

    async def generate_backfill(
        self, tenant_id, property_id, today: Optional[date] = None
    ) -> GenerationResult:
        """Backfill from the pair's billing start through the current month."""
        tenant, prop = await self._load_pair(tenant_id, property_id)
        start = billing_start(tenant, prop)
        return await self.ensure_obligations(tenant, prop.id, start, current_month(today))

    async def generate_future_obligations(
        self,
        tenant_id,
        property_id,
        months_ahead: int,
        today: Optional[date] = None
    ) -> GenerationResult:
        """Forward-fill months_ahead consecutive months starting at the current month."""
        if months_ahead < 1 or months_ahead > self.max_months_ahead:
            raise ValidationError(
                f"months_ahead must be between 1 and {self.max_months_ahead}",
                {"months_ahead": months_ahead}
            )
        tenant, prop = await self._load_pair(tenant_id, property_id)
        if tenant.link_for(prop.id) is None:
            raise ValidationError(
                "Tenant is not linked to property",
                {"tenant_id": str(tenant.id), "property_id": str(prop.id)}
            )
        start = current_month(today)
        return await self.ensure_obligations(
            tenant, prop.id, start.first_day(), start.shift(months_ahead - 1)
        )

    async def ensure_month_for_property(self, property_id, month: MonthKey) -> MonthRollResult:
        """Ensure the month's obligation for every rated tenant linked to the property."""
        prop = await self.properties.get_property(property_id)
        if prop is None:
            raise NoPropertyError("Property not found", {"property_id": str(property_id)})

        summary = MonthRollResult(month=month)
        for tenant in await self.tenants.list_for_property(prop.id):
            await self._roll_pair(tenant, prop, month, summary)
        return summary

    async def generate_month_for_all(self, month: Optional[MonthKey] = None) -> MonthRollResult:
        """
        Ensure the month's obligation for every rated tenant/property link.

        Per-pair failures are collected in the result rather than raised so
        one bad link does not stop the roll.
        """
        month = month or current_month()
        summary = MonthRollResult(month=month)
        property_cache: Dict[str, Optional[Property]] = {}

        for tenant in await self.tenants.list_rated():
            for link in tenant.property_links:
                key = str(link.property_id)
                if key not in property_cache:
                    property_cache[key] = await self.properties.get_property(link.property_id)
                prop = property_cache[key]
                if prop is None:
                    summary.errors.append({
                        "tenant_id": str(tenant.id),
                        "property_id": key,
                        "error": "Property not found"
                    })
                    continue
                await self._roll_pair(tenant, prop, month, summary)

        logger.info(
            "Month roll %s: %d created, %d skipped, %d errors",
            month, summary.created, summary.skipped, len(summary.errors)
        )
        return summary

    async def _roll_pair(self, tenant: Tenant, prop: Property, month: MonthKey, summary: MonthRollResult):
        if not tenant.has_rate():
            return
        # Pairs whose billing starts after the month are not due yet
        if month < MonthKey.from_date(billing_start(tenant, prop)):
            return
        try:
            result = await self.ensure_obligations(tenant, prop.id, month.first_day(), month)
        except BillingError as exc:
            summary.errors.append({
                "tenant_id": str(tenant.id),
                "property_id": str(prop.id),
                "error": exc.message
            })
            return
        summary.created += result.created_count
        summary.skipped += result.skipped_count
