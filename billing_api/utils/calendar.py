"""
Calendar month arithmetic.

All business dates are plain calendar dates. A month key is derived from
the stored year and month fields directly, never by converting through a
local-timezone midnight: that conversion is what turns "2025-10-01" into
"2025-09-30" on servers west of UTC.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterator, Optional, Tuple, Union

DateLike = Union[date, datetime]


@dataclass(frozen=True, order=True)
class MonthKey:
    """A calendar month: (year, month), day always 1."""

    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be in 1..12, got {self.month}")
        if not 1 <= self.year <= 9999:
            raise ValueError(f"year must be in 1..9999, got {self.year}")

    @classmethod
    def from_date(cls, value: DateLike) -> "MonthKey":
        # datetime is a date subclass; year/month are read as stored
        return cls(value.year, value.month)

    @classmethod
    def parse(cls, value: str) -> "MonthKey":
        """Parse "YYYY-MM" or "YYYY-MM-DD" (the day is ignored)."""
        parts = value.strip().split("-")
        if len(parts) not in (2, 3):
            raise ValueError(f"Invalid month: {value!r}")
        try:
            year, month = int(parts[0]), int(parts[1])
        except ValueError:
            raise ValueError(f"Invalid month: {value!r}") from None
        return cls(year, month)

    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def to_datetime(self) -> datetime:
        """Naive midnight of day 1, the storage form of a month key."""
        return datetime(self.year, self.month, 1)

    def shift(self, months: int) -> "MonthKey":
        index = self.year * 12 + (self.month - 1) + months
        return MonthKey(index // 12, index % 12 + 1)

    def next(self) -> "MonthKey":
        return self.shift(1)

    def previous(self) -> "MonthKey":
        return self.shift(-1)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-01"


class MonthRange:
    """Inclusive run of consecutive months. Iterable any number of times."""

    def __init__(self, start: MonthKey, end: MonthKey):
        self.start = start
        self.end = end

    def __iter__(self) -> Iterator[MonthKey]:
        current = self.start
        while current <= self.end:
            yield current
            current = current.next()

    def __len__(self) -> int:
        span = (self.end.year - self.start.year) * 12 + (self.end.month - self.start.month) + 1
        return max(span, 0)

    def __contains__(self, item: object) -> bool:
        return isinstance(item, MonthKey) and self.start <= item <= self.end

    def __repr__(self) -> str:
        return f"MonthRange({self.start}, {self.end})"


def months_between(start: MonthKey, end: MonthKey) -> MonthRange:
    """Months from start to end inclusive; empty when end precedes start."""
    return MonthRange(start, end)


def current_month(today: Optional[date] = None) -> MonthKey:
    return MonthKey.from_date(today or date.today())


def year_bounds(year: int) -> Tuple[datetime, datetime]:
    """Half-open [Jan 1 year, Jan 1 year+1) range for year filters."""
    end = datetime(year + 1, 1, 1) if year < 9999 else datetime.max
    return datetime(year, 1, 1), end


def to_storage_date(value: Optional[date]) -> Optional[datetime]:
    """BSON has no date type: store calendar dates as naive midnight."""
    if value is None:
        return None
    return datetime(value.year, value.month, value.day)


def from_storage_date(value: Optional[DateLike]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value
