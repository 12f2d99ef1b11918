"""
Local JSON File Storage

The whole record list lives in one JSON file. Suitable for a single
household on a single machine, and for tests (point it at a temp path).

TRADEOFFS:
- Every mutation rewrites the file (fine at <= 999 records)
- No concurrent writers (one app instance per file)
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import structlog

from meal_ledger.models.records import LedgerRecord
from meal_ledger.services.storage.interface import (
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
    StoreResult,
    parse_stored_records,
)


logger = structlog.get_logger(__name__)


class LocalJSONRecordStore(RecordStoreInterface):
    """
    JSON-file implementation of the record store.

    A missing file loads as an empty ledger. An unreadable one is moved
    aside first, so it is never overwritten.
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self._path = Path(path)
        self._records: Optional[list[LedgerRecord]] = None
        self._read_only_reason: Optional[str] = None

    @property
    def backend_name(self) -> str:
        return "local"

    @property
    def path(self) -> Path:
        return self._path

    def _read_raw(self) -> list[dict]:
        if not self._path.exists():
            return []
        data = json.loads(self._path.read_text(encoding="utf-8") or "[]")
        if not isinstance(data, list):
            raise StorageError(f"Expected a list of records in {self._path}")
        return data

    def _write(self, records: list[LedgerRecord]) -> None:
        """Write atomically: temp file first, then replace."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_name(self._path.name + ".tmp")
            tmp_path.write_text(
                json.dumps(
                    [record.to_storage_dict() for record in records],
                    ensure_ascii=False,
                    indent=2,
                ),
                encoding="utf-8",
            )
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise StorageError(f"Failed to write {self._path}: {e}")

    async def _current(self) -> list[LedgerRecord]:
        if self._records is None:
            await self.load()
        return list(self._records or [])

    def _commit(self, records: list[LedgerRecord]) -> None:
        self._write(records)
        self._records = records
        self._notify(records)

    def _quarantine(self) -> None:
        """
        Move an unreadable ledger file aside so the next write cannot overwrite it.

        If it cannot be moved, the store goes read-only.
        """
        stamp = datetime.utcnow().strftime("%Y%m%dT%H%M%S%f")
        target = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
        try:
            os.replace(self._path, target)
        except OSError as e:
            self._read_only_reason = (
                f"Ledger file {self._path} is unreadable and could not be moved aside: {e}"
            )
            logger.error("local_store_quarantine_failed", path=str(self._path), error=str(e))
            return
        logger.error("local_store_file_quarantined", path=str(self._path), moved_to=str(target))

    def _check_writable(self) -> None:
        if self._read_only_reason:
            raise StorageError(self._read_only_reason)

    async def load(self) -> list[LedgerRecord]:
        """Load all records from the JSON file."""
        try:
            raw_records = self._read_raw()
        except (OSError, ValueError, StorageError) as e:
            logger.error("local_store_load_failed", path=str(self._path), error=str(e))
            raw_records = []
            if self._path.exists():
                self._quarantine()

        self._records = parse_stored_records(raw_records, source=str(self._path))
        return list(self._records)

    async def create(self, record: LedgerRecord) -> StoreResult:
        """Append a record and persist."""
        try:
            self._check_writable()
            records = await self._current()
            if any(existing.id == record.id for existing in records):
                raise DuplicateError(f"Record already exists: {record.id}")
            self._commit(records + [record])
            return StoreResult.ok()
        except StorageError as e:
            logger.error("local_store_create_failed", record_id=record.id, error=str(e))
            return StoreResult.failed(e)

    async def update(self, record: LedgerRecord) -> StoreResult:
        """Replace the record with the same id and persist."""
        try:
            self._check_writable()
            records = await self._current()
            for idx, existing in enumerate(records):
                if existing.id == record.id:
                    records[idx] = record
                    self._commit(records)
                    return StoreResult.ok()
            raise NotFoundError(f"Record not found: {record.id}")
        except StorageError as e:
            logger.error("local_store_update_failed", record_id=record.id, error=str(e))
            return StoreResult.failed(e)

    async def delete(self, record: LedgerRecord) -> StoreResult:
        """Remove the record with the same id and persist."""
        try:
            self._check_writable()
            records = await self._current()
            remaining = [existing for existing in records if existing.id != record.id]
            if len(remaining) == len(records):
                raise NotFoundError(f"Record not found: {record.id}")
            self._commit(remaining)
            return StoreResult.ok()
        except StorageError as e:
            logger.error("local_store_delete_failed", record_id=record.id, error=str(e))
            return StoreResult.failed(e)
