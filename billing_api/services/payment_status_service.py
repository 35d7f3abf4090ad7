"""
PaymentStatusService - obligation lifecycle transitions.

Allowed transitions:
- pending -> paid      (payment_date set)
- pending -> overdue
- overdue -> paid      (payment_date set)
- paid    -> pending   (manual correction, payment_date cleared)

Any other requested transition leaves the status untouched and returns the
record as it is. Notes are written whenever supplied.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from billing_api.core.exceptions import ConflictError, NoPropertyError, NotFoundError, ValidationError
from billing_api.models.base import to_object_id
from billing_api.models.obligation import ObligationStatus, PaymentObligation
from billing_api.repositories.obligation_repo import ObligationRepository
from billing_api.repositories.property_repo import PropertyRepository
from billing_api.utils.calendar import current_month, to_storage_date
from billing_api.utils.money import format_cents

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    (ObligationStatus.PENDING, ObligationStatus.PAID),
    (ObligationStatus.PENDING, ObligationStatus.OVERDUE),
    (ObligationStatus.OVERDUE, ObligationStatus.PAID),
    (ObligationStatus.PAID, ObligationStatus.PENDING),
}

# Concurrent writers can move the status between our read and our
# conditional write; re-read and re-evaluate a bounded number of times.
_MAX_ATTEMPTS = 3


def is_allowed(current: ObligationStatus, target: ObligationStatus) -> bool:
    return (ObligationStatus(current), ObligationStatus(target)) in ALLOWED_TRANSITIONS


@dataclass
class BulkUpdateResult:
    updated: List[PaymentObligation] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)


class PaymentStatusService:
    """Transitions obligations through their payment lifecycle."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.obligations = ObligationRepository(db)
        self.properties = PropertyRepository(db)

    async def _get_or_raise(self, obligation_id: str) -> PaymentObligation:
        obligation = await self.obligations.get(obligation_id)
        if obligation is None:
            raise NotFoundError("Obligation not found", {"obligation_id": str(obligation_id)})
        return obligation

    async def update_status(
        self,
        obligation_id: str,
        status: Optional[ObligationStatus] = None,
        payment_date: Optional[date] = None,
        notes: Optional[str] = None
    ) -> PaymentObligation:
        """
        Apply a status transition and/or notes to an obligation.

        - Entering paid: payment_date = supplied date, or today
        - Leaving paid: payment_date cleared
        - Disallowed transition: status unchanged (notes still applied)
        Raises NotFoundError if the obligation does not exist.
        """
        target = ObligationStatus(status) if status is not None else None

        for _ in range(_MAX_ATTEMPTS):
            obligation = await self._get_or_raise(obligation_id)
            current = ObligationStatus(obligation.status)

            updates: Dict = {}
            if notes is not None:
                updates["notes"] = notes

            if target is not None and is_allowed(current, target):
                updates["status"] = target.value
                if target == ObligationStatus.PAID:
                    updates["payment_date"] = to_storage_date(payment_date or date.today())
                elif current == ObligationStatus.PAID:
                    updates["payment_date"] = None
            elif target is not None and target != current:
                logger.info(
                    "Ignoring transition %s -> %s for obligation %s",
                    current.value, target.value, obligation.id
                )

            if not updates:
                return obligation

            updated = await self.obligations.update_if_status(obligation.id, current, updates)
            if updated is not None:
                if "status" in updates:
                    logger.info(
                        "Obligation %s: %s -> %s (%s)",
                        obligation.id, current.value, target.value, format_cents(obligation.amount_cents)
                    )
                return updated

        raise ConflictError(
            "Obligation changed concurrently, retry the update",
            {"obligation_id": str(obligation_id)}
        )

    async def bulk_update_status(
        self,
        obligation_ids: List[str],
        status: ObligationStatus,
        payment_date: Optional[date] = None
    ) -> BulkUpdateResult:
        """Apply the same status to many obligations; unknown ids are reported, not raised."""
        result = BulkUpdateResult()
        for obligation_id in obligation_ids:
            try:
                updated = await self.update_status(obligation_id, status=status, payment_date=payment_date)
            except NotFoundError:
                result.missing.append(str(obligation_id))
                continue
            result.updated.append(updated)
        return result

    async def update_payment_date(self, obligation_id: str, payment_date: date) -> PaymentObligation:
        """Correct the settlement date of a paid obligation."""
        obligation = await self._get_or_raise(obligation_id)
        if ObligationStatus(obligation.status) != ObligationStatus.PAID:
            raise ValidationError(
                "Payment date can only be set on paid obligations",
                {"obligation_id": str(obligation.id), "status": ObligationStatus(obligation.status).value}
            )
        updated = await self.obligations.update_if_status(
            obligation.id,
            ObligationStatus.PAID,
            {"payment_date": to_storage_date(payment_date)}
        )
        if updated is None:
            raise ValidationError(
                "Obligation is no longer paid",
                {"obligation_id": str(obligation.id)}
            )
        return updated

    async def mark_overdue(self, today: Optional[date] = None) -> int:
        """Mark pending obligations from before the previous month as overdue."""
        cutoff = current_month(today).previous()
        count = await self.obligations.mark_overdue_before(cutoff)
        logger.info("Marked %d obligations overdue (before %s)", count, cutoff)
        return count

    async def list_property_obligations(
        self,
        property_id: str,
        year: Optional[int] = None,
        month: Optional[int] = None,
        status: Optional[ObligationStatus] = None
    ) -> List[PaymentObligation]:
        """Every tenant's obligations for one property, optionally narrowed to a year or month."""
        if month is not None and year is None:
            raise ValidationError("month filter requires a year", {"month": month})
        prop = await self.properties.get_property(property_id)
        if prop is None:
            raise NoPropertyError("Property not found", {"property_id": str(property_id)})
        return await self.obligations.list_for_property(prop.id, year, month, status)

    async def payment_statistics(
        self,
        property_ids: Optional[List[str]] = None,
        year: Optional[int] = None
    ) -> Dict[str, Dict[str, int]]:
        oids = None
        if property_ids is not None:
            oids = [oid for oid in (to_object_id(pid) for pid in property_ids) if oid is not None]
        return await self.obligations.status_totals(oids, year)
