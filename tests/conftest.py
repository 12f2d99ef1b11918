"""Shared fixtures for House Meal Ledger tests."""

from datetime import date
from decimal import Decimal

import pytest

from meal_ledger.config import AppSettings
from meal_ledger.models import (
    Bill,
    MealEntry,
    Member,
    Payment,
    ReportingPeriod,
)


class FakeAuditStorage:
    """In-memory audit storage that records every event."""

    def __init__(self, fail: bool = False):
        self.events = []
        self.fail = fail

    async def append_event(self, event) -> bool:
        if self.fail:
            raise RuntimeError("audit sheet unavailable")
        self.events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100):
        return list(reversed(self.events))[:limit]


def make_member(member_id: str, name: str = "", join_date: date = date(2026, 10, 1)) -> Member:
    return Member(id=member_id, name=name or member_id.capitalize(), join_date=join_date)


def make_bill(amount: str, day: date = date(2026, 10, 5), title: str = "Market") -> Bill:
    return Bill(title=title, amount=Decimal(amount), bill_date=day)


def make_payment(member_id: str, amount: str, day: date = date(2026, 10, 3)) -> Payment:
    return Payment(member_id=member_id, amount=Decimal(amount), payment_date=day)


def make_meal(member_id: str, count: int, day: date = date(2026, 10, 10)) -> MealEntry:
    return MealEntry(member_id=member_id, meal_date=day, meal_count=count)


@pytest.fixture
def october() -> ReportingPeriod:
    return ReportingPeriod(year=2026, month=10)


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(
        max_records=999,
        max_amount=1000000.0,
        future_date_tolerance_days=7,
        currency_symbol="৳",
    )
