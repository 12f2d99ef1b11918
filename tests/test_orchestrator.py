"""
Integration tests for the HouseLedger flow.

Runs against a temporary local JSON store with a fake audit storage.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal

import pytest

from conftest import FakeAuditStorage, make_meal, make_member

from meal_ledger import orchestrator
from meal_ledger.audit import AuditLogger
from meal_ledger.config import AppSettings, Settings, StorageBackend
from meal_ledger.models import AuditEventType, BillCategory, MemberStatus, ReportingPeriod
from meal_ledger.orchestrator import HouseLedger, create_app_components, create_record_store
from meal_ledger.services.storage import (
    ConnectionError,
    GoogleSheetsRecordStore,
    LocalJSONRecordStore,
    StorageError,
    StoreResult,
)
from meal_ledger.validation import RecordValidator


DAY = date(2026, 10, 10)


class FailingStore(LocalJSONRecordStore):
    """Local store whose writes always fail."""

    async def create(self, record):
        return StoreResult.failed("disk full")


class UnreadableStore(LocalJSONRecordStore):
    """Local store that cannot be read at all."""

    async def load(self):
        raise StorageError("sheet unreachable")


@pytest.fixture
def audit_storage() -> FakeAuditStorage:
    return FakeAuditStorage()


@pytest.fixture
def make_ledger(tmp_path, app_settings, audit_storage):
    def factory(settings: AppSettings = app_settings, store=None) -> HouseLedger:
        ledger = HouseLedger(
            store=store or LocalJSONRecordStore(tmp_path / "ledger.json"),
            validator=RecordValidator(settings),
            audit_logger=AuditLogger(audit_storage),
        )
        asyncio.run(ledger.start())
        return ledger
    return factory


@pytest.fixture
def ledger(make_ledger) -> HouseLedger:
    return make_ledger()


def event_types(audit_storage):
    return [event.event_type for event in audit_storage.events]


def add_member(ledger: HouseLedger, name: str) -> str:
    outcome = asyncio.run(ledger.add_member(name=name, join_date=date(2026, 10, 1)))
    assert outcome.ok, outcome.message
    return outcome.record_id


class TestMembers:
    """Tests for adding, searching and deleting members."""

    def test_add_member(self, ledger, audit_storage):
        """Test that an added member shows up in the snapshot."""
        outcome = asyncio.run(ledger.add_member(name="Rahim", phone="017", join_date=DAY))
        assert outcome.ok
        assert ledger.snapshot.find_member(outcome.record_id).name == "Rahim"
        assert event_types(audit_storage) == [AuditEventType.MEMBER_ADDED]

    def test_invalid_member_rejected(self, ledger, audit_storage):
        """Test that validation errors block the save."""
        outcome = asyncio.run(ledger.add_member(name="", join_date=DAY))
        assert outcome.ok is False
        assert "name is required" in outcome.message
        assert ledger.records == []
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    def test_search_members(self, ledger):
        """Test search by name (case-insensitive) or phone."""
        asyncio.run(ledger.add_member(name="Rahim Uddin", phone="01711", join_date=DAY))
        asyncio.run(ledger.add_member(name="Karim", phone="01899", join_date=DAY))

        assert [m.name for m in ledger.search_members("rahim")] == ["Rahim Uddin"]
        assert [m.name for m in ledger.search_members("018")] == ["Karim"]
        assert len(ledger.search_members("")) == 2
        assert ledger.search_members("nobody") == []

    def test_delete_member_keeps_their_records(self, ledger):
        """Test that a deleted member's meals stay stored but stop counting."""
        a = add_member(ledger, "A")
        b = add_member(ledger, "B")
        asyncio.run(ledger.add_bill("Rice", Decimal("1000"), DAY))
        asyncio.run(ledger.set_meal_count(a, DAY, 25))
        asyncio.run(ledger.set_meal_count(b, DAY, 15))

        outcome = asyncio.run(ledger.delete_member(b))
        assert outcome.ok
        assert len(ledger.orphaned_records()) == 1

        engine = ledger.settlement(ReportingPeriod.from_date(DAY))
        assert engine.total_meals() == 25
        assert engine.member_ledger(ledger.snapshot.find_member(a)).total_bills() == Decimal("1000")

    def test_delete_unknown_member(self, ledger):
        """Test deleting an id that does not exist."""
        outcome = asyncio.run(ledger.delete_member("ghost"))
        assert outcome.ok is False
        assert "not found" in outcome.message


class TestBillsAndPayments:
    """Tests for bills and payments."""

    def test_add_and_delete_bill(self, ledger, audit_storage):
        """Test the bill lifecycle."""
        outcome = asyncio.run(ledger.add_bill(
            title="Electricity",
            amount=Decimal("1500"),
            bill_date=DAY,
            bill_type=BillCategory.ELECTRICITY,
        ))
        assert outcome.ok
        bill = ledger.snapshot.bills[0]
        assert bill.bill_type == BillCategory.ELECTRICITY
        assert bill.participants == "all"

        assert asyncio.run(ledger.delete_bill(bill.id)).ok
        assert ledger.snapshot.bills == ()
        assert event_types(audit_storage) == [
            AuditEventType.BILL_ADDED,
            AuditEventType.BILL_DELETED,
        ]

    def test_negative_bill_rejected(self, ledger):
        """Test that negative amounts never reach the store."""
        outcome = asyncio.run(ledger.add_bill("Rice", Decimal("-1"), DAY))
        assert outcome.ok is False
        assert ledger.records == []

    def test_payment_requires_existing_member(self, ledger):
        """Test that payments reference a current member."""
        outcome = asyncio.run(ledger.add_payment("ghost", Decimal("100"), DAY))
        assert outcome.ok is False
        assert outcome.issues[0].issue_type == "unknown_member"

    def test_add_and_delete_payment(self, ledger):
        """Test the payment lifecycle."""
        a = add_member(ledger, "A")
        outcome = asyncio.run(ledger.add_payment(a, Decimal("700"), DAY, payment_method="cash"))
        assert outcome.ok
        assert ledger.snapshot.payments[0].payment_method == "cash"
        assert asyncio.run(ledger.delete_payment(outcome.record_id)).ok
        assert ledger.snapshot.payments == ()

    def test_store_failure_is_reported(self, make_ledger, tmp_path, audit_storage):
        """Test that persistence failures come back as outcomes."""
        ledger = make_ledger(store=FailingStore(tmp_path / "broken.json"))
        outcome = asyncio.run(ledger.add_bill("Rice", Decimal("10"), DAY))
        assert outcome.ok is False
        assert event_types(audit_storage) == [AuditEventType.SAVE_FAILED]


class TestMealCounts:
    """Tests for the meal count upsert."""

    def test_create_update_remove(self, ledger, audit_storage):
        """Test that positive counts upsert and zero removes."""
        a = add_member(ledger, "A")

        assert asyncio.run(ledger.set_meal_count(a, DAY, 2)).ok
        assert ledger.snapshot.meals.count_for(a, DAY) == 2

        assert asyncio.run(ledger.set_meal_count(a, DAY, 3)).ok
        assert ledger.snapshot.meals.count_for(a, DAY) == 3
        assert len(ledger.snapshot.meals) == 1

        assert asyncio.run(ledger.set_meal_count(a, DAY, 0)).ok
        assert ledger.snapshot.meals.get(a, DAY) is None

        assert event_types(audit_storage)[1:] == [
            AuditEventType.MEAL_COUNT_SET,
            AuditEventType.MEAL_COUNT_SET,
            AuditEventType.MEAL_ENTRY_REMOVED,
        ]

    def test_zero_without_entry_is_noop(self, ledger):
        """Test that zero on an empty day writes nothing."""
        a = add_member(ledger, "A")
        outcome = asyncio.run(ledger.set_meal_count(a, DAY, 0))
        assert outcome.ok
        assert len(ledger.records) == 1

    def test_days_are_independent(self, ledger):
        """Test that each day keeps its own entry."""
        a = add_member(ledger, "A")
        asyncio.run(ledger.set_meal_count(a, date(2026, 10, 1), 2))
        asyncio.run(ledger.set_meal_count(a, date(2026, 10, 2), 3))
        assert ledger.settlement(ReportingPeriod(year=2026, month=10)).total_meals() == 5

    def test_negative_count_rejected(self, ledger):
        """Test that negative counts are refused."""
        a = add_member(ledger, "A")
        assert asyncio.run(ledger.set_meal_count(a, DAY, -1)).ok is False

    def test_unknown_member_rejected(self, ledger):
        """Test that meals need a current member."""
        assert asyncio.run(ledger.set_meal_count("ghost", DAY, 1)).ok is False


class TestDuplicateMealEntries:
    """Tests for older files holding two entries for one member and day."""

    @pytest.fixture
    def duplicated_ledger(self, tmp_path, make_ledger):
        records = [make_member("a"), make_meal("a", 3, day=DAY), make_meal("a", 2, day=DAY)]
        (tmp_path / "ledger.json").write_text(
            json.dumps([record.to_storage_dict() for record in records]),
            encoding="utf-8",
        )
        return make_ledger()

    def meal_entries(self, ledger):
        return [r for r in ledger.records if r.type == "meal_entry"]

    def test_zero_removes_every_entry(self, duplicated_ledger):
        """Test that clearing a day leaves no older entry behind."""
        assert duplicated_ledger.snapshot.meals.count_for("a", DAY) == 2

        assert asyncio.run(duplicated_ledger.set_meal_count("a", DAY, 0)).ok
        assert duplicated_ledger.snapshot.meals.count_for("a", DAY) == 0
        assert self.meal_entries(duplicated_ledger) == []

    def test_update_keeps_a_single_entry(self, duplicated_ledger):
        """Test that setting a count collapses the day to one entry."""
        assert asyncio.run(duplicated_ledger.set_meal_count("a", DAY, 5)).ok
        entries = self.meal_entries(duplicated_ledger)
        assert [entry.meal_count for entry in entries] == [5]

        assert asyncio.run(duplicated_ledger.set_meal_count("a", DAY, 0)).ok
        assert duplicated_ledger.snapshot.meals.count_for("a", DAY) == 0


class TestRecordLimit:
    """Tests for the house-wide record limit."""

    def test_limit_blocks_new_records(self, make_ledger, audit_storage):
        """Test that no record is added once the limit is reached."""
        ledger = make_ledger(AppSettings(max_records=2))
        a = add_member(ledger, "A")
        add_member(ledger, "B")

        outcome = asyncio.run(ledger.add_bill("Rice", Decimal("10"), DAY))
        assert outcome.ok is False
        assert "Maximum limit of 2 records" in outcome.message
        assert asyncio.run(ledger.set_meal_count(a, DAY, 1)).ok is False
        assert len(ledger.records) == 2
        assert AuditEventType.RECORD_LIMIT_REACHED in event_types(audit_storage)

    def test_limit_allows_updates_and_deletes(self, make_ledger):
        """Test that a full house can still change existing meals."""
        ledger = make_ledger(AppSettings(max_records=2))
        a = add_member(ledger, "A")
        asyncio.run(ledger.set_meal_count(a, DAY, 1))

        assert asyncio.run(ledger.set_meal_count(a, DAY, 4)).ok
        assert asyncio.run(ledger.set_meal_count(a, DAY, 0)).ok
        assert len(ledger.records) == 1


class TestSettlementViews:
    """Tests for settlement and report views."""

    def test_settlement_from_stored_records(self, ledger):
        """Test the full flow from inputs to member figures."""
        october = ReportingPeriod(year=2026, month=10)
        a = add_member(ledger, "A")
        b = add_member(ledger, "B")
        asyncio.run(ledger.add_bill("Market", Decimal("1000"), DAY))
        asyncio.run(ledger.add_payment(a, Decimal("700"), DAY))
        asyncio.run(ledger.set_meal_count(a, DAY, 25))
        asyncio.run(ledger.set_meal_count(b, DAY, 25))

        rows = {row.member_id: row for row in ledger.settlement(october).settlement_report()}
        assert rows[a].total_due == Decimal("0")
        assert rows[a].advance_payment == Decimal("200")
        assert rows[b].total_due == Decimal("500")
        assert rows[b].status == MemberStatus.DUE

    def test_month_filter(self, ledger):
        """Test that the month filter drops other months' bills."""
        october = ReportingPeriod(year=2026, month=10)
        add_member(ledger, "A")
        asyncio.run(ledger.add_bill("Old", Decimal("300"), date(2026, 9, 15)))
        asyncio.run(ledger.add_bill("New", Decimal("100"), DAY))

        assert ledger.settlement(october).total_expense() == Decimal("400")
        assert ledger.settlement(october, month_filter=october).total_expense() == Decimal("100")

    def test_report_text_is_audited(self, ledger, audit_storage):
        """Test that generating a report is logged."""
        add_member(ledger, "A")
        text = asyncio.run(ledger.report_text(
            ReportingPeriod(year=2026, month=10),
            currency_symbol="৳",
            generated_on=date(2026, 10, 19),
        ))
        assert "October 2026" in text
        assert event_types(audit_storage)[-1] == AuditEventType.REPORT_GENERATED

    def test_views_refresh_on_change(self, ledger):
        """Test that registered views receive every rebuilt snapshot."""
        snapshots = []
        ledger.on_change(snapshots.append)
        add_member(ledger, "A")
        add_member(ledger, "B")
        assert [len(s.members) for s in snapshots] == [1, 2]

    def test_restart_reloads_state(self, make_ledger):
        """Test that a new ledger on the same file sees the same records."""
        first = make_ledger()
        add_member(first, "A")
        second = make_ledger()
        assert [m.name for m in second.snapshot.members] == ["A"]


class TestAuditResilience:
    """Tests for audit failures."""

    def test_audit_failure_does_not_block(self, tmp_path, app_settings):
        """Test that a broken audit sink never fails the action."""
        ledger = HouseLedger(
            store=LocalJSONRecordStore(tmp_path / "ledger.json"),
            validator=RecordValidator(app_settings),
            audit_logger=AuditLogger(FakeAuditStorage(fail=True)),
        )
        asyncio.run(ledger.start())
        outcome = asyncio.run(ledger.add_member(name="A", join_date=DAY))
        assert outcome.ok

    def test_unreadable_store_is_audited(self, tmp_path, app_settings, audit_storage):
        """Test that a failed start is recorded as a system error and re-raised."""
        ledger = HouseLedger(
            store=UnreadableStore(tmp_path / "ledger.json"),
            validator=RecordValidator(app_settings),
            audit_logger=AuditLogger(audit_storage),
        )
        with pytest.raises(StorageError, match="sheet unreachable"):
            asyncio.run(ledger.start())

        assert event_types(audit_storage) == [AuditEventType.SYSTEM_ERROR]
        event = audit_storage.events[0]
        assert event.error_message == "sheet unreachable"
        assert event.details == {"backend": "local"}


class TestStoreSelection:
    """Tests for choosing the record store at start-up."""

    def test_local_backend(self, monkeypatch, tmp_path):
        """Test that the local backend is the default."""
        monkeypatch.setenv("STORAGE_BACKEND", "local")
        monkeypatch.setenv("STORAGE_LOCAL_PATH", str(tmp_path / "house.json"))
        store, audit_storage, error = create_record_store(Settings())
        assert isinstance(store, LocalJSONRecordStore)
        assert store.path == tmp_path / "house.json"
        assert audit_storage is None
        assert error is None

    def test_sheets_backend(self, monkeypatch, tmp_path):
        """Test that a reachable sheet is used."""
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(tmp_path / "creds.json"))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-id")
        monkeypatch.setattr(orchestrator.GoogleSheetsClient, "get_spreadsheet", lambda self: object())

        with pytest.warns(UserWarning):
            store, audit_storage, error = create_record_store(Settings())
        assert isinstance(store, GoogleSheetsRecordStore)
        assert audit_storage is not None
        assert error is None

    def test_unreachable_sheets_falls_back(self, monkeypatch, tmp_path):
        """Test the fallback to the local store."""
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        monkeypatch.setenv("STORAGE_LOCAL_PATH", str(tmp_path / "house.json"))
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(tmp_path / "creds.json"))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-id")

        def unreachable(self):
            raise ConnectionError("Spreadsheet not found: sheet-id")

        monkeypatch.setattr(orchestrator.GoogleSheetsClient, "get_spreadsheet", unreachable)

        with pytest.warns(UserWarning):
            ledger = asyncio.run(create_app_components(Settings()))
        assert ledger.store.backend_name == StorageBackend.LOCAL.value
        assert ledger.records == []
