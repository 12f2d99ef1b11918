"""Services package."""

from meal_ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    LocalJSONRecordStore,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
    StoreResult,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "LocalJSONRecordStore",
    "NotFoundError",
    "RecordStoreInterface",
    "StorageError",
    "StoreResult",
]
