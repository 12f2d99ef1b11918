"""
Main Orchestrator for House Meal Ledger

This module ties together the record store, validation, audit logging
and the settlement engine, and defines the user-facing flows:
1. Add / delete members, bills and payments
2. Set a member's meal count for a day (upsert)
3. Build settlement views and the text report for a month

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store without passing validation
- The engine only ever sees a frozen snapshot, never the store
- Every change is audited

The store is the single source of truth. The ledger never edits its
own copy of the records; it waits for the store's change notification
and rebuilds its snapshot wholesale from the full record list.
"""

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Optional
from uuid import UUID

import structlog

from meal_ledger.audit import AuditLogger, create_correlation_id
from meal_ledger.config import Settings, StorageBackend, get_settings
from meal_ledger.models.period import ReportingPeriod
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
    ValidationResult,
)
from meal_ledger.reports.formatter import REPORT_TITLE, format_settlement_report
from meal_ledger.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    LocalJSONRecordStore,
    RecordStoreInterface,
    StorageError,
)
from meal_ledger.settlement import HouseSnapshot, SettlementEngine
from meal_ledger.validation import RecordValidator


logger = structlog.get_logger(__name__)

ViewListener = Callable[[HouseSnapshot], None]


class HouseLedger:
    """
    Orchestrates every change to the house ledger.

    Flow for a mutation:
    1. Check the record limit
    2. Validate the submission
    3. Hand the record to the store
    4. Store notifies → snapshot rebuilt → views refreshed
    5. Audit the outcome

    Expected failures come back as ActionOutcome(ok=False), never raised.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or RecordValidator()
        self._audit_logger = audit_logger or AuditLogger()
        self._records: list[LedgerRecord] = []
        self._snapshot = HouseSnapshot()
        self._view_listeners: list[ViewListener] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def store(self) -> RecordStoreInterface:
        return self._store

    @property
    def records(self) -> list[LedgerRecord]:
        return list(self._records)

    @property
    def snapshot(self) -> HouseSnapshot:
        return self._snapshot

    async def start(self) -> None:
        """
        Load the initial records and follow the store from then on.

        Raises:
            StorageError: If the store cannot be read (logged as a system error)
        """
        try:
            records = await self._store.load()
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type="storage_load_failed",
                error_message=str(e),
                details={"backend": self._store.backend_name},
            )
            raise
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._on_records_changed)
        self._on_records_changed(records)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_change(self, listener: ViewListener) -> None:
        """Register a view to refresh after every rebuild."""
        self._view_listeners.append(listener)

    def _on_records_changed(self, records: list[LedgerRecord]) -> None:
        self._records = list(records)
        self._snapshot = HouseSnapshot.from_records(self._records)
        for listener in list(self._view_listeners):
            listener(self._snapshot)

    # -------------------------------------------------------------------------
    # Shared mutation steps
    # -------------------------------------------------------------------------

    async def _reject(
        self,
        result: ValidationResult,
        correlation_id: UUID,
    ) -> ActionOutcome:
        await self._audit_logger.log_validation_failed(
            record_type=result.record_type.value,
            issues=[
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
            ],
            correlation_id=correlation_id,
        )
        return ActionOutcome(
            ok=False,
            message=self._validator.get_user_friendly_summary(result),
            issues=result.issues,
        )

    async def _check_capacity(self, correlation_id: UUID) -> Optional[ActionOutcome]:
        issue = self._validator.check_capacity(len(self._records))
        if issue is None:
            return None
        await self._audit_logger.log_record_limit_reached(
            limit=self._validator.max_records,
            correlation_id=correlation_id,
        )
        return ActionOutcome(ok=False, message=issue.message, issues=[issue])

    async def _create(
        self,
        record: LedgerRecord,
        label: str,
        success_message: str,
        correlation_id: UUID,
        details: Optional[dict[str, Any]] = None,
    ) -> ActionOutcome:
        result = await self._store.create(record)
        if not result.is_ok:
            await self._audit_logger.log_save_failed(
                record_type=record.type,
                error_message=result.error_message or "unknown error",
                correlation_id=correlation_id,
            )
            return ActionOutcome(
                ok=False,
                message=f"Failed to add {record.type}. Please try again.",
            )

        await self._audit_logger.log_record_added(
            record_type=record.type,
            record_id=record.id,
            label=label,
            correlation_id=correlation_id,
            details=details,
        )
        return ActionOutcome(ok=True, message=success_message, record_id=record.id)

    async def _delete(
        self,
        record: Optional[LedgerRecord],
        record_type: RecordType,
        label: str,
        correlation_id: UUID,
    ) -> ActionOutcome:
        noun = record_type.value.replace("_", " ")
        if record is None:
            return ActionOutcome(ok=False, message=f"{noun.capitalize()} not found")

        result = await self._store.delete(record)
        if not result.is_ok:
            await self._audit_logger.log_save_failed(
                record_type=record_type.value,
                error_message=result.error_message or "unknown error",
                correlation_id=correlation_id,
            )
            return ActionOutcome(ok=False, message=f"Failed to delete {noun}")

        await self._audit_logger.log_record_deleted(
            record_type=record_type.value,
            record_id=record.id,
            label=label,
            correlation_id=correlation_id,
        )
        return ActionOutcome(
            ok=True,
            message=f"{noun.capitalize()} deleted successfully",
            record_id=record.id,
        )

    def _member_ids(self) -> list[str]:
        return [member.id for member in self._snapshot.members]

    # -------------------------------------------------------------------------
    # Members, bills, payments
    # -------------------------------------------------------------------------

    async def add_member(
        self,
        name: str,
        join_date: date,
        phone: str = "",
        correlation_id: Optional[UUID] = None,
    ) -> ActionOutcome:
        correlation_id = correlation_id or create_correlation_id()

        limit_hit = await self._check_capacity(correlation_id)
        if limit_hit:
            return limit_hit

        validation = self._validator.validate_member(name=name, phone=phone, join_date=join_date)
        if not validation.is_valid:
            return await self._reject(validation, correlation_id)

        member = Member(name=name, phone=phone, join_date=join_date)
        return await self._create(
            member,
            label=member.name,
            success_message=f'Member "{member.name}" added successfully!',
            correlation_id=correlation_id,
        )

    async def add_bill(
        self,
        title: str,
        amount: Decimal,
        bill_date: date,
        bill_type: BillCategory = BillCategory.OTHER,
        split_type: SplitType = SplitType.EQUAL,
        correlation_id: Optional[UUID] = None,
    ) -> ActionOutcome:
        correlation_id = correlation_id or create_correlation_id()

        limit_hit = await self._check_capacity(correlation_id)
        if limit_hit:
            return limit_hit

        validation = self._validator.validate_bill(title=title, amount=amount, bill_date=bill_date)
        if not validation.is_valid:
            return await self._reject(validation, correlation_id)

        bill = Bill(
            title=title,
            bill_type=bill_type,
            amount=amount,
            bill_date=bill_date,
            split_type=split_type,
            participants="all",
        )
        return await self._create(
            bill,
            label=bill.title,
            success_message=f'Bill "{bill.title}" added successfully!',
            correlation_id=correlation_id,
            details={"amount": str(bill.amount), "bill_type": bill.bill_type.value},
        )

    async def add_payment(
        self,
        member_id: str,
        amount: Decimal,
        payment_date: date,
        payment_method: str = "",
        note: str = "",
        correlation_id: Optional[UUID] = None,
    ) -> ActionOutcome:
        correlation_id = correlation_id or create_correlation_id()

        limit_hit = await self._check_capacity(correlation_id)
        if limit_hit:
            return limit_hit

        validation = self._validator.validate_payment(
            member_id=member_id,
            amount=amount,
            payment_date=payment_date,
            member_ids=self._member_ids(),
        )
        if not validation.is_valid:
            return await self._reject(validation, correlation_id)

        payment = Payment(
            member_id=member_id,
            amount=amount,
            payment_date=payment_date,
            payment_method=payment_method,
            note=note,
        )
        member = self._snapshot.find_member(member_id)
        return await self._create(
            payment,
            label=f"{member.name if member else member_id} - {payment.amount}",
            success_message="Payment added successfully!",
            correlation_id=correlation_id,
            details={"member_id": member_id, "amount": str(payment.amount)},
        )

    async def delete_member(
        self,
        member_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ActionOutcome:
        """
        Delete a member.

        Their payments and meal entries stay in the store; they simply
        stop counting towards anyone's totals (see orphaned_records()).
        """
        member = self._snapshot.find_member(member_id)
        return await self._delete(
            member,
            RecordType.MEMBER,
            label=member.name if member else member_id,
            correlation_id=correlation_id or create_correlation_id(),
        )

    async def delete_bill(
        self,
        bill_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ActionOutcome:
        bill = next((b for b in self._snapshot.bills if b.id == bill_id), None)
        return await self._delete(
            bill,
            RecordType.BILL,
            label=bill.title if bill else bill_id,
            correlation_id=correlation_id or create_correlation_id(),
        )

    async def delete_payment(
        self,
        payment_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ActionOutcome:
        payment = next((p for p in self._snapshot.payments if p.id == payment_id), None)
        return await self._delete(
            payment,
            RecordType.PAYMENT,
            label=f"{payment.amount}" if payment else payment_id,
            correlation_id=correlation_id or create_correlation_id(),
        )

    # -------------------------------------------------------------------------
    # Meals
    # -------------------------------------------------------------------------

    async def set_meal_count(
        self,
        member_id: str,
        day: date,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> ActionOutcome:
        """
        Upsert one member's meal count for one day.

        - count > 0, entry exists  → entry updated
        - count > 0, no entry      → entry created
        - count == 0, entry exists → entry removed
        - count == 0, no entry     → nothing to do

        Duplicate entries left over for the same day are removed either way.
        """
        correlation_id = correlation_id or create_correlation_id()

        validation = self._validator.validate_meal_count(
            member_id=member_id,
            count=count,
            member_ids=self._member_ids(),
        )
        if not validation.is_valid:
            return await self._reject(validation, correlation_id)

        stored = self._snapshot.meals.entries_for(member_id, day)
        existing = stored[-1] if stored else None
        label = f"{member_id} on {day.isoformat()}"

        if existing is None and count == 0:
            return ActionOutcome(ok=True, message="No meals recorded")

        # The kept entry is last; everything before it is a duplicate
        doomed = stored if count == 0 else stored[:-1]
        outcome = None
        for entry in doomed:
            outcome = await self._delete(
                entry,
                RecordType.MEAL_ENTRY,
                label=label,
                correlation_id=correlation_id,
            )
            if not outcome.ok:
                return outcome

        if count == 0:
            return outcome

        if existing is not None:
            if existing.meal_count == count:
                return ActionOutcome(ok=True, message="Meal count unchanged", record_id=existing.id)
            entry = existing.model_copy(update={"meal_count": count})
            result = await self._store.update(entry)
        else:
            limit_hit = await self._check_capacity(correlation_id)
            if limit_hit:
                return limit_hit
            entry = MealEntry(member_id=member_id, meal_date=day, meal_count=count)
            result = await self._store.create(entry)

        if not result.is_ok:
            await self._audit_logger.log_save_failed(
                record_type=RecordType.MEAL_ENTRY.value,
                error_message=result.error_message or "unknown error",
                correlation_id=correlation_id,
            )
            return ActionOutcome(ok=False, message="Failed to save meal count")

        await self._audit_logger.log_meal_count_set(
            entry_id=entry.id,
            member_id=member_id,
            meal_date=day.isoformat(),
            count=count,
            correlation_id=correlation_id,
        )
        return ActionOutcome(ok=True, message="Meal count saved", record_id=entry.id)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def search_members(self, query: str) -> list[Member]:
        """Members whose name (case-insensitive) or phone contains ``query``."""
        query = (query or "").strip()
        if not query:
            return list(self._snapshot.members)
        lowered = query.lower()
        return [
            member for member in self._snapshot.members
            if lowered in member.name.lower() or (member.phone and query in member.phone)
        ]

    def settlement(
        self,
        period: ReportingPeriod,
        month_filter: Optional[ReportingPeriod] = None,
    ) -> SettlementEngine:
        """
        Settlement engine for ``period``.

        ``month_filter`` narrows bills, payments and meals first
        (the dashboard's month filter); without it every bill and
        payment on record counts.
        """
        return SettlementEngine(self._snapshot.for_month(month_filter), period)

    def orphaned_records(self) -> list[LedgerRecord]:
        return self._snapshot.orphaned_records()

    async def report_text(
        self,
        period: ReportingPeriod,
        currency_symbol: str = "",
        title: str = REPORT_TITLE,
        generated_on: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """Formatted settlement report for ``period``."""
        summary = self.settlement(period).summary()
        text = format_settlement_report(
            summary,
            currency_symbol=currency_symbol,
            generated_on=generated_on,
            title=title,
        )
        await self._audit_logger.log_report_generated(
            period_key=period.key,
            member_count=summary.member_count,
            total_expense=str(summary.total_expense),
            correlation_id=correlation_id,
        )
        return text


def create_record_store(
    settings: Optional[Settings] = None,
) -> tuple[RecordStoreInterface, Optional[AuditStorageInterface], Optional[str]]:
    """
    Pick the record store configured for this run.

    Falls back to the local JSON store when Google Sheets is selected
    but cannot be reached.

    Returns:
        (record_store, audit_storage, fallback_error)
    """
    settings = settings or get_settings()
    storage_settings = settings.storage
    local_store = LocalJSONRecordStore(Path(storage_settings.local_path))

    if storage_settings.backend != StorageBackend.GOOGLE_SHEETS:
        return local_store, None, None

    try:
        sheets_client = GoogleSheetsClient(settings.google_sheets)
        sheets_client.get_spreadsheet()
    except Exception as e:
        logger.warning("google_sheets_unavailable", error=str(e))
        return local_store, None, str(e)

    return (
        GoogleSheetsRecordStore(sheets_client),
        GoogleSheetsAuditStorage(sheets_client),
        None,
    )


async def create_app_components(
    settings: Optional[Settings] = None,
) -> HouseLedger:
    """
    Factory function to create and start the house ledger.

    Returns:
        A started HouseLedger
    """
    settings = settings or get_settings()
    store, audit_storage, fallback_error = create_record_store(settings)
    audit_logger = AuditLogger(audit_storage)

    if fallback_error is not None:
        await audit_logger.log_storage_fallback(
            configured=StorageBackend.GOOGLE_SHEETS.value,
            fallback=store.backend_name,
            error_message=fallback_error,
        )

    ledger = HouseLedger(
        store=store,
        validator=RecordValidator(settings.app),
        audit_logger=audit_logger,
    )
    await ledger.start()
    return ledger
