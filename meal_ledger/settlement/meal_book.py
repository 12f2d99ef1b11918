"""
Meal Book

Meal entries keyed by (member_id, meal_date).

DESIGN DECISION: The composite key makes a second entry for the same
member and day impossible. When a sequence with duplicates is loaded
(e.g. from an older store), the last entry wins; the ones it shadows
are kept aside so they can still be removed from the store.
"""

from datetime import date
from typing import Iterable, Iterator, Optional

import structlog

from meal_ledger.models.period import ReportingPeriod
from meal_ledger.models.records import MealEntry


logger = structlog.get_logger(__name__)

MealKey = tuple[str, date]


class MealBook:
    """Read-only map of meal entries by (member, day)."""

    def __init__(self, entries: Iterable[MealEntry] = ()):
        self._entries: dict[MealKey, MealEntry] = {}
        self._shadowed: dict[MealKey, list[MealEntry]] = {}
        for entry in entries:
            if entry.meal_date is None:
                logger.warning(
                    "meal_entry_without_date",
                    entry_id=entry.id,
                    member_id=entry.member_id,
                )
                continue
            key = (entry.member_id, entry.meal_date)
            if key in self._entries:
                logger.warning(
                    "duplicate_meal_entry",
                    member_id=entry.member_id,
                    meal_date=entry.meal_date.isoformat(),
                    kept=entry.id,
                    shadowed=self._entries[key].id,
                )
                self._shadowed.setdefault(key, []).append(self._entries[key])
            self._entries[key] = entry

    def get(self, member_id: str, day: date) -> Optional[MealEntry]:
        return self._entries.get((member_id, day))

    def entries_for(self, member_id: str, day: date) -> list[MealEntry]:
        """
        Every stored entry for (member, day), the kept one last.

        More than one only when duplicates were loaded.
        """
        key = (member_id, day)
        kept = self._entries.get(key)
        return list(self._shadowed.get(key, [])) + ([kept] if kept else [])

    def count_for(self, member_id: str, day: date) -> int:
        """Meals recorded for that exact day, 0 if none."""
        entry = self.get(member_id, day)
        return entry.meal_count if entry else 0

    def monthly_total(self, member_id: str, period: ReportingPeriod) -> int:
        """Sum of one member's meal counts within ``period``."""
        return sum(
            entry.meal_count
            for (owner, day), entry in self._entries.items()
            if owner == member_id and period.contains(day)
        )

    def for_period(self, period: Optional[ReportingPeriod]) -> "MealBook":
        if period is None:
            return self
        return MealBook(
            entry
            for member_id, day in self._entries
            if period.contains(day)
            for entry in self.entries_for(member_id, day)
        )

    def member_ids(self) -> set[str]:
        return {member_id for member_id, _ in self._entries}

    def __iter__(self) -> Iterator[MealEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
