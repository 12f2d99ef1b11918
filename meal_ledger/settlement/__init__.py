"""Settlement engine package."""

from meal_ledger.settlement.engine import (
    HouseSnapshot,
    MemberLedger,
    SettlementEngine,
    house_meal_total,
    meal_rate,
    total_bill_amount,
)
from meal_ledger.settlement.meal_book import MealBook
from meal_ledger.settlement.time_filter import filter_by_month

__all__ = [
    "HouseSnapshot",
    "MealBook",
    "MemberLedger",
    "SettlementEngine",
    "filter_by_month",
    "house_meal_total",
    "meal_rate",
    "total_bill_amount",
]
