"""Input validation package."""

from meal_ledger.validation.validator import RecordValidator

__all__ = ["RecordValidator"]
