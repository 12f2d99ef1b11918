"""
Storage Services Package

Provides the abstract record store interface and its two implementations:
a local JSON file and Google Sheets. Which one is used is decided once,
at start-up (see meal_ledger.orchestrator.create_record_store).
"""

from meal_ledger.services.storage.interface import (
    AuditStorageInterface,
    ChangeListener,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
    StoreResult,
    parse_stored_records,
)
from meal_ledger.services.storage.local_json import LocalJSONRecordStore
from meal_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ChangeListener",
    "RecordStoreInterface",
    "StoreResult",
    "parse_stored_records",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Local implementation
    "LocalJSONRecordStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
]
