"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as the shared (remote) backend
because:
1. Every housemate can open the sheet and see the raw records
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (a house stays under 999 records)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (everything is filtered in Python)

Each record is one row: id, type, the full record as JSON, and an
update timestamp. Keeping the payload as JSON means new record fields
never require a sheet migration.
"""

import json
from datetime import datetime
from typing import Any, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from meal_ledger.config import GoogleSheetsSettings, get_settings
from meal_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from meal_ledger.models.records import LedgerRecord
from meal_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
    StoreResult,
    parse_stored_records,
)


logger = structlog.get_logger(__name__)

# Column mappings for the Records sheet
RECORD_COLUMNS = [
    "id",
    "type",
    "payload_json",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

api_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @api_retry
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_records_sheet(self) -> gspread.Worksheet:
        """Get or create the Records worksheet."""
        return self._get_or_create_sheet(
            self._settings.records_sheet_name, RECORD_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Google Sheets implementation of the record store.

    After every successful mutation the sheet is re-read, so
    subscribers always see what is actually stored - including
    rows edited by someone else in the meantime.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        super().__init__()
        self._client = client or GoogleSheetsClient()

    @property
    def backend_name(self) -> str:
        return "google_sheets"

    def _record_to_row(self, record: LedgerRecord) -> list:
        """Convert a record to a spreadsheet row."""
        return [
            record.id,
            record.type,
            json.dumps(record.to_storage_dict(), ensure_ascii=False),
            datetime.utcnow().isoformat(),
        ]

    def _row_to_dict(self, row: list) -> dict[str, Any]:
        """Convert a spreadsheet row back into a stored dict."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        payload = safe_get(2)
        data = json.loads(payload) if payload else {}
        if not isinstance(data, dict):
            data = {}
        # Columns win over the payload so hand edits to id/type stick
        data["id"] = safe_get(0)
        data["type"] = safe_get(1)
        return data

    @api_retry
    def _fetch_rows(self) -> list[list[str]]:
        sheet = self._client.get_records_sheet()
        return sheet.get_all_values()[1:]  # Skip header

    def _find_row_index(self, rows: list[list[str]], record_id: str) -> Optional[int]:
        for idx, row in enumerate(rows, start=2):  # Row 1 is the header
            if row and row[0] == record_id:
                return idx
        return None

    @api_retry
    def _append_row(self, row: list) -> None:
        self._client.get_records_sheet().append_row(row, value_input_option="RAW")

    @api_retry
    def _replace_row(self, row_index: int, row: list) -> None:
        self._client.get_records_sheet().update(
            range_name=f"A{row_index}:D{row_index}",
            values=[row],
            value_input_option="RAW",
        )

    @api_retry
    def _delete_row(self, row_index: int) -> None:
        self._client.get_records_sheet().delete_rows(row_index)

    def _parse_rows(self, rows: list[list[str]]) -> list[LedgerRecord]:
        raw_records = []
        for row in rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                raw_records.append(self._row_to_dict(row))
            except ValueError as e:
                logger.warning("sheet_row_skipped", record_id=row[0], error=str(e))
        return parse_stored_records(raw_records, source="google_sheets")

    async def load(self) -> list[LedgerRecord]:
        """Load all records from the sheet."""
        try:
            rows = self._fetch_rows()
        except Exception as e:
            raise StorageError(f"Failed to load records: {e}")
        return self._parse_rows(rows)

    async def _refresh_and_notify(self) -> None:
        try:
            records = await self.load()
        except StorageError as e:
            # The write went through; subscribers catch up on the next change
            logger.error("sheet_refresh_failed", error=str(e))
            return
        self._notify(records)

    async def create(self, record: LedgerRecord) -> StoreResult:
        """Append a record as a new row."""
        try:
            rows = self._fetch_rows()
            if self._find_row_index(rows, record.id) is not None:
                raise DuplicateError(f"Record already exists: {record.id}")
            self._append_row(self._record_to_row(record))
        except StorageError as e:
            return StoreResult.failed(e)
        except Exception as e:
            logger.error("sheet_create_failed", record_id=record.id, error=str(e))
            return StoreResult.failed(f"Failed to save record: {e}")

        await self._refresh_and_notify()
        return StoreResult.ok()

    async def update(self, record: LedgerRecord) -> StoreResult:
        """Rewrite the row holding this record."""
        try:
            rows = self._fetch_rows()
            row_index = self._find_row_index(rows, record.id)
            if row_index is None:
                raise NotFoundError(f"Record not found: {record.id}")
            self._replace_row(row_index, self._record_to_row(record))
        except StorageError as e:
            return StoreResult.failed(e)
        except Exception as e:
            logger.error("sheet_update_failed", record_id=record.id, error=str(e))
            return StoreResult.failed(f"Failed to update record: {e}")

        await self._refresh_and_notify()
        return StoreResult.ok()

    async def delete(self, record: LedgerRecord) -> StoreResult:
        """Delete the row holding this record."""
        try:
            rows = self._fetch_rows()
            row_index = self._find_row_index(rows, record.id)
            if row_index is None:
                raise NotFoundError(f"Record not found: {record.id}")
            self._delete_row(row_index)
        except StorageError as e:
            return StoreResult.failed(e)
        except Exception as e:
            logger.error("sheet_delete_failed", record_id=record.id, error=str(e))
            return StoreResult.failed(f"Failed to delete record: {e}")

        await self._refresh_and_notify()
        return StoreResult.ok()


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=safe_get(0),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=safe_get(6) or None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_event_write_failed", event_id=str(event.event_id), error=str(e))
            return False

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except ValueError:
                    continue

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
