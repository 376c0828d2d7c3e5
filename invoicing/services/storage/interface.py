"""
Abstract Store Interface

DESIGN DECISION: The remote reactive data store is an external collaborator.
The core only needs four things from it:
1. submit a list of operations and have them committed all-or-nothing
2. look up an entity by id
3. run an equality-filtered query
4. subscribe to a query and be told about every new result set

Anything that offers these (a hosted reactive database, Google Sheets, an
in-memory dict for tests) can back the core.

Unlike a fire-and-forget transact call, `submit` returns only after the
store acknowledged the commit, and raises if it did not.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from invoicing.models.audit import AuditEvent
from invoicing.models.entities import (
    EntityKind,
    Invoice,
    StoredEntity,
)
from invoicing.models.operations import Operation, TransactionReceipt


class StoreQuery(BaseModel):
    """
    Equality-filtered selection over one entity kind.

    Example:
        StoreQuery(entity=EntityKind.BUSINESS,
                   where={"status": "pending_claim", "email": "a@b.in"})
    """
    model_config = ConfigDict(frozen=True)

    entity: EntityKind
    where: dict[str, Any] = Field(default_factory=dict)

    def matches(self, record: StoredEntity) -> bool:
        return all(getattr(record, field, None) == value for field, value in self.where.items())


class StoreInterface(ABC):
    """
    Abstract interface for the transactional entity store.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def submit(self, operations: Sequence[Operation]) -> TransactionReceipt:
        """
        Commit a transaction.

        Args:
            operations: Operations applied in order as one atomic unit

        Returns:
            Receipt acknowledging the commit

        Raises:
            ConflictError: A guarded operation's precondition no longer holds
            NotFoundError: An operation references a missing entity
            StorageError: The store could not commit; nothing was applied
        """
        pass

    @abstractmethod
    async def get(self, kind: EntityKind, entity_id: UUID) -> Optional[StoredEntity]:
        """Return one entity, or None if it does not exist."""
        pass

    @abstractmethod
    async def query(self, query: StoreQuery) -> list[StoredEntity]:
        """Return every entity matching the query."""
        pass

    @abstractmethod
    def subscribe(self, query: StoreQuery) -> AsyncIterator[list[StoredEntity]]:
        """
        Stream result sets for a query.

        Yields the current result set immediately, then a fresh one after
        every commit that may have changed it. The stream ends when the
        consumer stops iterating.
        """
        pass

    async def get_invoice(self, invoice_id: UUID) -> Invoice:
        """
        Load an invoice together with its line items.

        Raises:
            NotFoundError: If the invoice doesn't exist
        """
        invoice = await self.get(EntityKind.INVOICE, invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice not found: {invoice_id}")
        line_items = await self.query(
            StoreQuery(entity=EntityKind.LINE_ITEM, where={"invoice_id": invoice_id})
        )
        return invoice.model_copy(update={"line_items": line_items})


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
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one payment recording).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
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
    """Entity not found in storage."""
    pass


class ConflictError(StorageError):
    """A guarded operation found the entity in an unexpected state."""
    pass


class StoreConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class TransactionFailedError(StorageError):
    """
    A transaction could not be committed after retrying.

    Nothing was applied; the caller may retry the user action.
    """

    def __init__(self, message: str, operation_count: int):
        super().__init__(message)
        self.operation_count = operation_count
        self.retryable = True
