"""Services package."""

from invoicing.services.storage import (
    AuditStorageInterface,
    ConflictError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsStore,
    InMemoryAuditStorage,
    InMemoryStore,
    NotFoundError,
    StorageError,
    StoreConnectionError,
    StoreInterface,
    StoreQuery,
    TransactionFailedError,
)

__all__ = [
    "AuditStorageInterface",
    "ConflictError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsStore",
    "InMemoryAuditStorage",
    "InMemoryStore",
    "NotFoundError",
    "StorageError",
    "StoreConnectionError",
    "StoreInterface",
    "StoreQuery",
    "TransactionFailedError",
]
