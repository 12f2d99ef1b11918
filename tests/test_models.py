"""
Tests for House Meal Ledger

Test strategy:
1. Unit tests for individual components (models, engine, validators)
2. Integration tests for flows (with a temporary local store)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from meal_ledger.models import (
    ActionOutcome,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Bill,
    BillCategory,
    MealEntry,
    Member,
    Payment,
    RecordType,
    ReportingPeriod,
    SettlementRow,
    MemberStatus,
    SplitType,
    ValidationIssue,
    ValidationResult,
    parse_record,
    parse_record_date,
)


class TestRecordModels:
    """Tests for the stored record models."""

    def test_member_creation(self):
        """Test Member model creation."""
        member = Member(name="Rahim", phone="01711000000", join_date=date(2026, 10, 1))
        assert member.type == RecordType.MEMBER.value
        assert member.name == "Rahim"
        assert member.id

    def test_member_strips_whitespace(self):
        """Test that whitespace is stripped from names."""
        member = Member(name="  Rahim  ")
        assert member.name == "Rahim"

    def test_records_get_distinct_ids(self):
        """Test that generated ids are unique."""
        assert Member(name="A").id != Member(name="A").id

    def test_bill_defaults(self):
        """Test Bill defaults."""
        bill = Bill(title="Rice", amount=Decimal("500"), bill_date=date(2026, 10, 2))
        assert bill.bill_type == BillCategory.OTHER
        assert bill.split_type == SplitType.EQUAL
        assert bill.participants == "all"

    def test_bill_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            Bill(title="Test", amount=Decimal("-100"))

    def test_meal_entry_rejects_negative_count(self):
        """Test that negative meal counts are rejected."""
        with pytest.raises(ValidationError):
            MealEntry(member_id="m1", meal_date=date(2026, 10, 1), meal_count=-1)

    def test_records_are_immutable(self):
        """Test that records cannot be mutated in place."""
        member = Member(name="Rahim")
        with pytest.raises(ValidationError):
            member.name = "Karim"

    def test_bill_storage_dict_uses_date_key(self):
        """Test that bill dates are stored under 'date'."""
        bill = Bill(id="b1", title="Gas", amount=Decimal("900"), bill_date=date(2026, 10, 4))
        stored = bill.to_storage_dict()
        assert stored["date"] == "2026-10-04"
        assert stored["type"] == "bill"
        assert "bill_date" not in stored

    def test_record_date(self):
        """Test that record_date points at each kind's own date."""
        assert Member(join_date=date(2026, 1, 1)).record_date == date(2026, 1, 1)
        assert Payment(payment_date=date(2026, 2, 1)).record_date == date(2026, 2, 1)
        assert MealEntry(meal_date=date(2026, 3, 1)).record_date == date(2026, 3, 1)


class TestParseRecord:
    """Tests for lenient loading of stored dicts."""

    def test_parse_each_type(self):
        """Test that the type field picks the model."""
        assert isinstance(parse_record({"id": "1", "type": "member", "name": "A"}), Member)
        assert isinstance(parse_record({"id": "2", "type": "bill", "amount": 5}), Bill)
        assert isinstance(parse_record({"id": "3", "type": "payment", "member_id": "1"}), Payment)
        assert isinstance(parse_record({"id": "4", "type": "meal_entry", "member_id": "1"}), MealEntry)

    def test_missing_amount_is_zero(self):
        """Test that a missing or empty amount loads as zero."""
        assert parse_record({"id": "b", "type": "bill"}).amount == Decimal("0")
        assert parse_record({"id": "b", "type": "bill", "amount": ""}).amount == Decimal("0")

    def test_missing_meal_count_is_zero(self):
        """Test that a missing meal count loads as zero."""
        entry = parse_record({"id": "m", "type": "meal_entry", "member_id": "x", "meal_date": "2026-10-01"})
        assert entry.meal_count == 0

    def test_unparseable_date_loads_as_none(self):
        """Test that a bad date does not reject the record."""
        payment = parse_record({"id": "p", "type": "payment", "member_id": "x", "date": "soon"})
        assert payment.payment_date is None

    def test_datetime_string_is_accepted(self):
        """Test that ISO datetimes load as dates."""
        bill = parse_record({"id": "b", "type": "bill", "date": "2026-10-05T18:30:00.000Z"})
        assert bill.bill_date == date(2026, 10, 5)

    def test_numeric_ids_become_strings(self):
        """Test that numeric identifiers are normalized."""
        payment = parse_record({"id": 7, "type": "payment", "member_id": 12})
        assert payment.id == "7"
        assert payment.member_id == "12"

    def test_unknown_fields_are_ignored(self):
        """Test that extra stored keys are dropped."""
        member = parse_record({"id": "1", "type": "member", "name": "A", "__backendId": "x"})
        assert member.name == "A"

    def test_unknown_type_rejected(self):
        """Test that an unknown record type is rejected."""
        with pytest.raises(ValidationError):
            parse_record({"id": "1", "type": "invoice"})


class TestReportingPeriod:
    """Tests for the calendar-month period."""

    def test_contains(self, october):
        """Test exact month matching."""
        assert october.contains(date(2026, 10, 1))
        assert october.contains(date(2026, 10, 31))
        assert not october.contains(date(2026, 9, 30))
        assert not october.contains(date(2025, 10, 15))
        assert not october.contains(None)

    def test_parse_and_key(self):
        """Test parsing a month key."""
        period = ReportingPeriod.parse("2026-03")
        assert period == ReportingPeriod(year=2026, month=3)
        assert period.key == "2026-03"
        assert str(period) == "2026-03"

    def test_parse_rejects_garbage(self):
        """Test invalid month keys."""
        for key in ("2026", "2026-13", "march", ""):
            with pytest.raises(ValueError):
                ReportingPeriod.parse(key)

    def test_label(self, october):
        """Test the human readable label."""
        assert october.label == "October 2026"

    def test_previous_and_next_wrap_years(self):
        """Test navigation across year boundaries."""
        assert ReportingPeriod(year=2026, month=1).previous() == ReportingPeriod(year=2025, month=12)
        assert ReportingPeriod(year=2026, month=12).next() == ReportingPeriod(year=2027, month=1)

    def test_current_uses_given_day(self):
        """Test that current() accepts an explicit day."""
        assert ReportingPeriod.current(date(2026, 10, 19)).key == "2026-10"

    def test_parse_record_date(self):
        """Test lenient date parsing."""
        assert parse_record_date("2026-10-19") == date(2026, 10, 19)
        assert parse_record_date("") is None
        assert parse_record_date(None) is None
        assert parse_record_date(20261019) is None


class TestSettlementRow:
    """Tests for report row helpers."""

    def test_advance_and_status(self):
        """Test advance payment and status derivation."""
        row = SettlementRow(
            member_id="a",
            name="A",
            total_paid=Decimal("700"),
            total_bills=Decimal("500"),
            total_due=Decimal("0"),
            monthly_meals=25,
        )
        assert row.advance_payment == Decimal("200")
        assert row.status == MemberStatus.PAID

    def test_due_status(self):
        """Test that any positive due is DUE."""
        row = SettlementRow(
            member_id="a",
            name="A",
            total_paid=Decimal("0"),
            total_bills=Decimal("0.01"),
            total_due=Decimal("0.01"),
            monthly_meals=1,
        )
        assert row.status == MemberStatus.DUE


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.MEMBER_ADDED,
            description="Member added",
        )
        assert event.event_type == AuditEventType.MEMBER_ADDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.BILL_ADDED,
            description="Bill added",
            details={"title": "Rice", "amount": "1000"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "bill_added"
        assert log_dict["details"]["title"] == "Rice"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.PAYMENT_ADDED,
            description="Payment added",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "payment_added"  # event_type
        assert row[10] == "True"  # is_user_action

    def test_audit_event_builder_record_added(self):
        """Test AuditEventBuilder.record_added."""
        correlation_id = uuid4()

        event = AuditEventBuilder.record_added(
            record_type="bill",
            record_id="b1",
            label="Rice",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.BILL_ADDED
        assert event.entity_id == "b1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_meal_entry_removed(self):
        """Test that deleting a meal entry maps to MEAL_ENTRY_REMOVED."""
        event = AuditEventBuilder.record_deleted(
            record_type="meal_entry",
            record_id="m1",
            label="a on 2026-10-01",
        )
        assert event.event_type == AuditEventType.MEAL_ENTRY_REMOVED

    def test_audit_event_builder_save_failed(self):
        """Test AuditEventBuilder.save_failed."""
        event = AuditEventBuilder.save_failed("payment", "disk full")
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk full"


class TestValidationResult:
    """Tests for ValidationResult and ActionOutcome models."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            record_type=RecordType.BILL,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.is_valid is False
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            record_type=RecordType.BILL,
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert result.warnings == ["Date in future"]

    def test_issue_severity_is_restricted(self):
        """Test that unknown severities are rejected."""
        with pytest.raises(ValidationError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")

    def test_action_outcome_defaults(self):
        """Test ActionOutcome defaults."""
        outcome = ActionOutcome(ok=True, message="done")
        assert outcome.record_id is None
        assert outcome.issues == []


class TestBillCategories:
    """Tests for bill category enum."""

    def test_all_categories_exist(self):
        """Test that expected categories exist."""
        expected = [
            "market", "electricity", "gas", "internet",
            "rent", "garbage", "fridge", "other",
        ]
        for cat in expected:
            assert BillCategory(cat) is not None

    def test_category_values(self):
        """Test category string values."""
        assert BillCategory.ELECTRICITY.value == "electricity"
        assert BillCategory.MARKET.value == "market"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
