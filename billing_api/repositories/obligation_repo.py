"""
ObligationRepository - the payment ledger.

Owns the payment_obligations collection. Uniqueness of
(tenant_id, property_id, payment_month) is enforced by the unique index
created in billing_api.db.mongo.create_indexes; inserts that hit it are
reported back as "already present", never as errors.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from billing_api.core.exceptions import ConflictError
from billing_api.models.base import to_object_id
from billing_api.models.obligation import ObligationStatus, PaymentObligation
from billing_api.utils.calendar import MonthKey, year_bounds

logger = logging.getLogger(__name__)


class ObligationRepository:
    """Repository for payment obligations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["payment_obligations"]

    async def insert_if_absent(
        self,
        tenant_id: ObjectId,
        property_id: ObjectId,
        month: MonthKey,
        amount_cents: int
    ) -> Optional[PaymentObligation]:
        """
        Insert a pending obligation for the month.

        Returns the new obligation, or None when one already exists for the key
        (including when a concurrent writer inserted it first).
        Raises ConflictError if the insert was rejected but no row for the key
        can be found, which means the uniqueness guarantee is not what we think.
        """
        obligation = PaymentObligation(
            tenant_id=tenant_id,
            property_id=property_id,
            payment_month=month.to_datetime(),
            amount_cents=amount_cents,
            status=ObligationStatus.PENDING
        )
        try:
            await self.collection.insert_one(obligation.to_document())
        except DuplicateKeyError:
            existing = await self.find_by_key(tenant_id, property_id, month)
            if existing is None:
                raise ConflictError(
                    "Obligation insert rejected but no existing row was found",
                    {"tenant_id": str(tenant_id), "property_id": str(property_id), "month": str(month)}
                )
            logger.debug("Obligation for %s/%s %s already present", tenant_id, property_id, month)
            return None
        return obligation

    async def find_by_key(
        self, tenant_id: ObjectId, property_id: ObjectId, month: MonthKey
    ) -> Optional[PaymentObligation]:
        doc = await self.collection.find_one({
            "tenant_id": tenant_id,
            "property_id": property_id,
            "payment_month": month.to_datetime()
        })
        return PaymentObligation(**doc) if doc else None

    async def existing_months(
        self,
        tenant_id: ObjectId,
        property_id: ObjectId,
        start: MonthKey,
        end: MonthKey
    ) -> Set[MonthKey]:
        """Months in [start, end] that already have an obligation for the pair."""
        cursor = self.collection.find(
            {
                "tenant_id": tenant_id,
                "property_id": property_id,
                "payment_month": {"$gte": start.to_datetime(), "$lte": end.to_datetime()}
            },
            {"payment_month": 1}
        )
        docs = await cursor.to_list(None)
        return {MonthKey.from_date(doc["payment_month"]) for doc in docs}

    async def get(self, obligation_id: str) -> Optional[PaymentObligation]:
        oid = to_object_id(obligation_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return PaymentObligation(**doc) if doc else None

    async def list_for_tenant(
        self,
        tenant_id: str,
        property_id: Optional[str] = None,
        year: Optional[int] = None,
        status: Optional[ObligationStatus] = None
    ) -> List[PaymentObligation]:
        """Tenant obligations, newest month first."""
        tenant_oid = to_object_id(tenant_id)
        if tenant_oid is None:
            return []

        query: Dict = {"tenant_id": tenant_oid}
        if property_id is not None:
            property_oid = to_object_id(property_id)
            if property_oid is None:
                return []
            query["property_id"] = property_oid
        if year is not None:
            start, end = year_bounds(year)
            query["payment_month"] = {"$gte": start, "$lt": end}
        if status is not None:
            query["status"] = ObligationStatus(status).value

        cursor = self.collection.find(query).sort([("payment_month", -1), ("property_id", 1)])
        docs = await cursor.to_list(None)
        return [PaymentObligation(**doc) for doc in docs]

    async def list_for_property(
        self,
        property_id: ObjectId,
        year: Optional[int] = None,
        month: Optional[int] = None,
        status: Optional[ObligationStatus] = None
    ) -> List[PaymentObligation]:
        """Property ledger, newest month first, then by tenant.

        month narrows a year filter to a single month and is ignored without one.
        """
        query: Dict = {"property_id": property_id}
        if year is not None and month is not None:
            query["payment_month"] = MonthKey(year, month).to_datetime()
        elif year is not None:
            start, end = year_bounds(year)
            query["payment_month"] = {"$gte": start, "$lt": end}
        if status is not None:
            query["status"] = ObligationStatus(status).value

        cursor = self.collection.find(query).sort([("payment_month", -1), ("tenant_id", 1)])
        docs = await cursor.to_list(None)
        return [PaymentObligation(**doc) for doc in docs]

    async def list_for_property_month(self, property_id: ObjectId, month: MonthKey) -> List[PaymentObligation]:
        cursor = self.collection.find({
            "property_id": property_id,
            "payment_month": month.to_datetime()
        }).sort("tenant_id", 1)
        docs = await cursor.to_list(None)
        return [PaymentObligation(**doc) for doc in docs]

    async def update_if_status(
        self,
        obligation_id: ObjectId,
        expected_status: ObligationStatus,
        updates: Dict
    ) -> Optional[PaymentObligation]:
        """
        Apply updates only if the obligation is still in expected_status.

        Returns the updated obligation, or None if it changed underneath us.
        """
        updates = dict(updates)
        updates["updated_at"] = datetime.now(timezone.utc)
        doc = await self.collection.find_one_and_update(
            {"_id": obligation_id, "status": expected_status.value},
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        )
        return PaymentObligation(**doc) if doc else None

    async def mark_overdue_before(self, month: MonthKey) -> int:
        """Move pending obligations with payment_month < month to overdue."""
        result = await self.collection.update_many(
            {
                "status": ObligationStatus.PENDING.value,
                "payment_month": {"$lt": month.to_datetime()}
            },
            {
                "$set": {
                    "status": ObligationStatus.OVERDUE.value,
                    "updated_at": datetime.now(timezone.utc)
                }
            }
        )
        return result.modified_count

    async def status_totals(
        self,
        property_ids: Optional[List[ObjectId]] = None,
        year: Optional[int] = None
    ) -> Dict[str, Dict[str, int]]:
        """
        Count and sum of amount_cents per status.

        Returns: { "pending": {"count": n, "amount_cents": c}, ... } with every
        status present.
        """
        match: Dict = {}
        if property_ids is not None:
            match["property_id"] = {"$in": property_ids}
        if year is not None:
            start, end = year_bounds(year)
            match["payment_month"] = {"$gte": start, "$lt": end}

        pipeline = [
            {"$match": match},
            {
                "$group": {
                    "_id": "$status",
                    "count": {"$sum": 1},
                    "amount_cents": {"$sum": "$amount_cents"}
                }
            }
        ]
        rows = await self.collection.aggregate(pipeline).to_list(None)

        totals = {s.value: {"count": 0, "amount_cents": 0} for s in ObligationStatus}
        for row in rows:
            totals[row["_id"]] = {"count": row["count"], "amount_cents": row["amount_cents"]}
        return totals
