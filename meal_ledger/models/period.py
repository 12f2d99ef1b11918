"""
Reporting Period Models

A ReportingPeriod is a calendar month. It is passed explicitly to every
metric that depends on "the current month" - nothing reads ambient state.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def parse_record_date(value: Any) -> Optional[date]:
    """
    Leniently turn a stored date value into a date.

    Accepts date/datetime objects, ISO dates ("2024-12-01") and ISO
    datetimes ("2024-12-01T08:30:00"). Anything else yields None so that
    callers can exclude the record instead of failing.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


class ReportingPeriod(BaseModel):
    """
    A calendar month (year, month).

    Matching is exact on year and month - not a rolling 30-day window.
    """
    model_config = ConfigDict(frozen=True)

    year: int = Field(
        ...,
        ge=1,
        le=9999,
        description="Calendar year"
    )
    month: int = Field(
        ...,
        ge=1,
        le=12,
        description="Calendar month (1-12)"
    )

    @classmethod
    def from_date(cls, day: date) -> "ReportingPeriod":
        return cls(year=day.year, month=day.month)

    @classmethod
    def current(cls, today: Optional[date] = None) -> "ReportingPeriod":
        """The month containing ``today`` (defaults to the system date)."""
        return cls.from_date(today or date.today())

    @classmethod
    def parse(cls, key: str) -> "ReportingPeriod":
        """
        Parse a "YYYY-MM" month key, as produced by a month picker.

        Raises:
            ValueError: If the key is not a valid month
        """
        try:
            year_text, month_text = key.strip().split("-")
            return cls(year=int(year_text), month=int(month_text))
        except (AttributeError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid month key: {key!r}") from e

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def label(self) -> str:
        """Human readable label, e.g. "October 2026"."""
        return f"{date(self.year, self.month, 1):%B} {self.year}"

    def contains(self, day: Optional[date]) -> bool:
        """Check whether a date falls in this month. None never matches."""
        if day is None:
            return False
        return day.year == self.year and day.month == self.month

    def previous(self) -> "ReportingPeriod":
        if self.month == 1:
            return ReportingPeriod(year=self.year - 1, month=12)
        return ReportingPeriod(year=self.year, month=self.month - 1)

    def next(self) -> "ReportingPeriod":
        if self.month == 12:
            return ReportingPeriod(year=self.year + 1, month=1)
        return ReportingPeriod(year=self.year, month=self.month + 1)

    def __str__(self) -> str:
        return self.key
