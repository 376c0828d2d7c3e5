"""
Storage Services Package

Provides the abstract store interface, the shared operation applier and the
concrete stores: in-memory (tests, local use) and Google Sheets.
"""

from invoicing.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    NotFoundError,
    StorageError,
    StoreConnectionError,
    StoreInterface,
    StoreQuery,
    TransactionFailedError,
)
from invoicing.services.storage.applier import apply_operations
from invoicing.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryStore,
    kind_of,
)
from invoicing.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "StoreInterface",
    "StoreQuery",
    "apply_operations",
    # Exceptions
    "ConflictError",
    "NotFoundError",
    "StorageError",
    "StoreConnectionError",
    "TransactionFailedError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryStore",
    "kind_of",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsStore",
]
