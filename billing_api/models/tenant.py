from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from billing_api.models.base import MongoModel, PyObjectId
from billing_api.utils.calendar import to_storage_date


class PropertyLink(BaseModel):
    """Tenant/property pairing; linked_at is the calendar day billing for the pair starts."""
    property_id: PyObjectId
    linked_at: datetime = Field(default_factory=lambda: to_storage_date(date.today()))

    # Keep the day as the caller saw it: an aware 2025-01-31 22:00-05:00 is Jan 31,
    # not the Feb 1 it becomes once BSON stores it as UTC
    @field_validator("linked_at", mode="before")
    @classmethod
    def _calendar_day(cls, value):
        if isinstance(value, datetime):
            return to_storage_date(value.date())
        if isinstance(value, date):
            return to_storage_date(value)
        return value


class Tenant(MongoModel):
    name: str
    email: Optional[str] = None
    monthly_rate_cents: int = 0
    property_links: List[PropertyLink] = []

    def link_for(self, property_id) -> Optional[PropertyLink]:
        for link in self.property_links:
            if str(link.property_id) == str(property_id):
                return link
        return None

    def has_rate(self) -> bool:
        return self.monthly_rate_cents > 0
