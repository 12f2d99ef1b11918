"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Choose a local JSON file or Google Sheets at start-up
2. Use a temporary file for testing
3. Keep the settlement engine unaware of persistence

The record store is intentionally simple: the ledger holds a small,
unordered collection of typed records (bounded at 999), and every
mutation re-delivers the full collection to subscribers.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Mapping, Optional, Union

import structlog
from pydantic import BaseModel, ValidationError

from meal_ledger.models.audit import AuditEvent
from meal_ledger.models.records import LedgerRecord, parse_record


logger = structlog.get_logger(__name__)

ChangeListener = Callable[[list[LedgerRecord]], None]


class StoreResult(BaseModel):
    """
    Outcome of a store mutation.

    Persistence failures are reported here, never raised to callers.
    """
    is_ok: bool
    error_message: Optional[str] = None

    @classmethod
    def ok(cls) -> "StoreResult":
        return cls(is_ok=True)

    @classmethod
    def failed(cls, error: Union[Exception, str]) -> "StoreResult":
        return cls(is_ok=False, error_message=str(error))


def parse_stored_records(
    raw_records: Iterable[Mapping[str, Any]],
    source: str,
) -> list[LedgerRecord]:
    """
    Turn stored dicts into typed records, skipping anything malformed.

    A single bad record must not take the whole ledger down.
    """
    records = []
    for raw in raw_records:
        try:
            records.append(parse_record(raw))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning(
                "stored_record_skipped",
                source=source,
                record_id=str(raw.get("id")) if isinstance(raw, Mapping) else None,
                error=str(e),
            )
    return records


class RecordStoreInterface(ABC):
    """
    Abstract interface for the ledger's record store.

    Any storage implementation (local file, Google Sheets, etc.)
    must implement these methods. Subscription is shared here.
    """

    def __init__(self):
        self._listeners: list[ChangeListener] = []

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Short name of the backend, for logs and the settings page."""
        pass

    @abstractmethod
    async def load(self) -> list[LedgerRecord]:
        """
        Load every record.

        Returns:
            All readable records; malformed ones are skipped
        """
        pass

    @abstractmethod
    async def create(self, record: LedgerRecord) -> StoreResult:
        """
        Add a new record.

        Args:
            record: The record to add (its id must be unused)

        Returns:
            StoreResult with is_ok False if the record could not be saved
        """
        pass

    @abstractmethod
    async def update(self, record: LedgerRecord) -> StoreResult:
        """
        Replace the stored record that has the same id.

        Returns:
            StoreResult with is_ok False if missing or not saved
        """
        pass

    @abstractmethod
    async def delete(self, record: LedgerRecord) -> StoreResult:
        """
        Delete the stored record that has the same id.

        Returns:
            StoreResult with is_ok False if missing or not deleted
        """
        pass

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a callback receiving the full record list after each change.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, records: list[LedgerRecord]) -> None:
        for listener in list(self._listeners):
            listener(list(records))


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Record not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a record whose id already exists."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
