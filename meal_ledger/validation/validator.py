"""
Input Validation

DESIGN DECISION: The settlement engine trusts its input. Everything a
user types goes through this validator first:

- Required values (member name, bill title, paying member)
- Non-negative amounts and meal counts
- References to members that actually exist
- Suspicious values (huge amounts, far-future dates) as warnings
- The house-wide record limit

IMPORTANT: Validation NEVER silently fixes issues.
Errors block the submission; warnings are shown but don't block.
"""

from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from meal_ledger.config import AppSettings, get_settings
from meal_ledger.models.records import (
    RecordType,
    ValidationIssue,
    ValidationResult,
)


class RecordValidator:
    """
    Validates user submissions before they become records.

    Pure checks only - the caller supplies the current members and
    record count, so this class never touches storage.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    @property
    def max_records(self) -> int:
        return self._settings.max_records

    def _check_amount(
        self,
        amount: Any,
        issues: list[ValidationIssue],
    ) -> None:
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Amount ({amount!r}) is not a number",
                severity="error",
            ))
            return

        if not value.is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be a finite number",
                severity="error",
            ))
        elif value < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount cannot be negative",
                severity="error",
                suggested_fix="Enter the amount without a minus sign",
            ))
        elif value == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
            ))
        elif value > Decimal(str(self._settings.max_amount)):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({value:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

    def _check_date(
        self,
        field: str,
        value: Optional[date],
        issues: list[ValidationIssue],
        today: Optional[date] = None,
    ) -> None:
        if value is None:
            issues.append(ValidationIssue(
                field=field,
                issue_type="missing",
                message="Date is required",
                severity="error",
            ))
            return

        today = today or date.today()
        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if value > max_future_date:
            issues.append(ValidationIssue(
                field=field,
                issue_type="future_date",
                message=f"Date ({value}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

    def check_capacity(self, record_count: int) -> Optional[ValidationIssue]:
        """Return an error issue if the house is already at the record limit."""
        if record_count >= self._settings.max_records:
            return ValidationIssue(
                field="records",
                issue_type="limit_reached",
                message=f"Maximum limit of {self._settings.max_records} records reached",
                severity="error",
                suggested_fix="Delete old records before adding new ones",
            )
        return None

    def validate_member(
        self,
        name: str,
        phone: str = "",
        join_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> ValidationResult:
        issues = []

        if not (name or "").strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Member name is required",
                severity="error",
            ))

        phone = (phone or "").strip()
        if phone and not any(c.isdigit() for c in phone):
            issues.append(ValidationIssue(
                field="phone",
                issue_type="suspicious_value",
                message="Phone number has no digits",
                severity="warning",
            ))

        self._check_date("join_date", join_date, issues, today=today)

        return ValidationResult(record_type=RecordType.MEMBER, issues=issues)

    def validate_bill(
        self,
        title: str,
        amount: Any,
        bill_date: Optional[date],
        today: Optional[date] = None,
    ) -> ValidationResult:
        issues = []

        if not (title or "").strip():
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Bill title is required",
                severity="error",
            ))

        self._check_amount(amount, issues)
        self._check_date("date", bill_date, issues, today=today)

        return ValidationResult(record_type=RecordType.BILL, issues=issues)

    def validate_payment(
        self,
        member_id: str,
        amount: Any,
        payment_date: Optional[date],
        member_ids: Iterable[str],
        today: Optional[date] = None,
    ) -> ValidationResult:
        issues = []

        if not member_id:
            issues.append(ValidationIssue(
                field="member_id",
                issue_type="missing",
                message="Choose the member who paid",
                severity="error",
            ))
        elif member_id not in set(member_ids):
            issues.append(ValidationIssue(
                field="member_id",
                issue_type="unknown_member",
                message="The selected member no longer exists",
                severity="error",
            ))

        self._check_amount(amount, issues)
        self._check_date("date", payment_date, issues, today=today)

        return ValidationResult(record_type=RecordType.PAYMENT, issues=issues)

    def validate_meal_count(
        self,
        member_id: str,
        count: Any,
        member_ids: Iterable[str],
    ) -> ValidationResult:
        issues = []

        if member_id not in set(member_ids):
            issues.append(ValidationIssue(
                field="member_id",
                issue_type="unknown_member",
                message="The selected member no longer exists",
                severity="error",
            ))

        if isinstance(count, bool) or not isinstance(count, int):
            issues.append(ValidationIssue(
                field="meal_count",
                issue_type="invalid_value",
                message=f"Meal count ({count!r}) must be a whole number",
                severity="error",
            ))
        elif count < 0:
            issues.append(ValidationIssue(
                field="meal_count",
                issue_type="invalid_value",
                message="Meal count cannot be negative",
                severity="error",
            ))

        return ValidationResult(record_type=RecordType.MEAL_ENTRY, issues=issues)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a short summary of validation results for the UI.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
