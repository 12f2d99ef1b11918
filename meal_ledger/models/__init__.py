"""
Data Models Package

This package contains all Pydantic models used in the House Meal Ledger.
All data flowing through the system must conform to these schemas.
"""

from meal_ledger.models.period import ReportingPeriod, parse_record_date
from meal_ledger.models.records import (
    ActionOutcome,
    Bill,
    BillCategory,
    LedgerRecord,
    MealEntry,
    Member,
    Payment,
    RecordType,
    SplitType,
    ValidationIssue,
    ValidationResult,
    parse_record,
)
from meal_ledger.models.report import (
    MemberStatus,
    SettlementRow,
    SettlementSummary,
)
from meal_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Period
    "ReportingPeriod",
    "parse_record_date",
    # Record models
    "ActionOutcome",
    "Bill",
    "BillCategory",
    "LedgerRecord",
    "MealEntry",
    "Member",
    "Payment",
    "RecordType",
    "SplitType",
    "ValidationIssue",
    "ValidationResult",
    "parse_record",
    # Report models
    "MemberStatus",
    "SettlementRow",
    "SettlementSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
