"""Narrow dated records down to one calendar month."""

from datetime import date
from typing import Callable, Iterable, Optional, TypeVar

from meal_ledger.models.period import ReportingPeriod

T = TypeVar("T")


def _record_date(record) -> Optional[date]:
    return record.record_date


def filter_by_month(
    records: Iterable[T],
    period: Optional[ReportingPeriod],
    date_of: Callable[[T], Optional[date]] = _record_date,
) -> list[T]:
    """
    Return the records whose date falls in ``period``.

    With no period the input comes back unchanged (as a new list).
    Records without a usable date never match a period.
    """
    if period is None:
        return list(records)
    return [record for record in records if period.contains(date_of(record))]
