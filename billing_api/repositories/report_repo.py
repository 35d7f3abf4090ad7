"""
ReportRepository - persisted monthly report snapshots.

Reports are keyed by (property_id, report_month) with a unique index;
writes go through a single upsert so regeneration overwrites in place.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from billing_api.models.base import to_object_id
from billing_api.models.report import MonthlyReport
from billing_api.utils.calendar import MonthKey, year_bounds


class ReportRepository:
    """Repository for monthly reports."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["monthly_reports"]

    async def upsert(
        self,
        property_id: ObjectId,
        month: MonthKey,
        derived: Dict,
        notes: Optional[str] = None
    ) -> MonthlyReport:
        """
        Create or overwrite the report for (property, month).

        - derived: totals, breakdown and generated_by; always overwritten
        - notes: written only when supplied, otherwise an existing report keeps its notes
        """
        now = datetime.now(timezone.utc)
        to_set = dict(derived)
        to_set["updated_at"] = now
        on_insert = {"created_at": now}
        if notes is not None:
            to_set["notes"] = notes
        else:
            on_insert["notes"] = None

        key = {"property_id": property_id, "report_month": month.to_datetime()}
        update = {"$set": to_set, "$setOnInsert": on_insert}

        try:
            doc = await self.collection.find_one_and_update(
                key, update, upsert=True, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            # Two upserts raced on insert; the loser retries as an update
            doc = await self.collection.find_one_and_update(
                key, update, upsert=True, return_document=ReturnDocument.AFTER
            )
        return MonthlyReport(**doc)

    async def get(self, report_id: str) -> Optional[MonthlyReport]:
        oid = to_object_id(report_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return MonthlyReport(**doc) if doc else None

    async def get_by_key(self, property_id: ObjectId, month: MonthKey) -> Optional[MonthlyReport]:
        doc = await self.collection.find_one({
            "property_id": property_id,
            "report_month": month.to_datetime()
        })
        return MonthlyReport(**doc) if doc else None

    async def list_reports(
        self,
        property_id: Optional[ObjectId] = None,
        year: Optional[int] = None,
        property_ids: Optional[List[ObjectId]] = None
    ) -> List[MonthlyReport]:
        """Reports newest month first, then by property."""
        query: Dict = {}
        if property_id is not None:
            query["property_id"] = property_id
        elif property_ids is not None:
            query["property_id"] = {"$in": property_ids}
        if year is not None:
            start, end = year_bounds(year)
            query["report_month"] = {"$gte": start, "$lt": end}

        cursor = self.collection.find(query).sort([("report_month", -1), ("property_id", 1)])
        docs = await cursor.to_list(None)
        return [MonthlyReport(**doc) for doc in docs]

    async def update_fields(self, report_id: ObjectId, updates: Dict) -> Optional[MonthlyReport]:
        updates = dict(updates)
        updates["updated_at"] = datetime.now(timezone.utc)
        doc = await self.collection.find_one_and_update(
            {"_id": report_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        )
        return MonthlyReport(**doc) if doc else None

    async def delete(self, report_id: str) -> bool:
        oid = to_object_id(report_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid})
        return result.deleted_count > 0
