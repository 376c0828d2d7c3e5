"""
In-Memory Store

A complete StoreInterface kept in process memory. Used for tests, local
development and as the reference behaviour the remote stores must match:
- transactions are atomic (applied to a copy, swapped in on success)
- subscribers receive a fresh result set after every commit
"""

import asyncio
from collections.abc import AsyncIterator, Iterable, Sequence
from typing import Optional
from uuid import UUID

from invoicing.models.audit import AuditEvent
from invoicing.models.entities import ENTITY_MODELS, EntityKind, StoredEntity
from invoicing.models.operations import Operation, TransactionReceipt
from invoicing.services.storage.applier import apply_operations
from invoicing.services.storage.interface import (
    AuditStorageInterface,
    StoreInterface,
    StoreQuery,
)


_KIND_BY_MODEL = {model: kind for kind, model in ENTITY_MODELS.items()}


def kind_of(entity: StoredEntity) -> EntityKind:
    """Entity kind for a model instance."""
    return _KIND_BY_MODEL[type(entity)]


class InMemoryStore(StoreInterface):
    """
    Dict-backed store.

    `committed` keeps every committed transaction in order, which is what
    tests inspect to assert how many transactions a flow produced.
    """

    def __init__(self, entities: Iterable[StoredEntity] = ()):
        self._state: dict = {kind: {} for kind in EntityKind}
        self._lock = asyncio.Lock()
        self._subscribers: list[asyncio.Queue] = []
        self.committed: list[list[Operation]] = []
        self.seed(*entities)

    def seed(self, *entities: StoredEntity) -> None:
        """Insert records directly, outside any transaction."""
        for entity in entities:
            kind = kind_of(entity)
            records = dict(self._state[kind])
            records[entity.id] = entity
            self._state[kind] = records

    async def submit(self, operations: Sequence[Operation]) -> TransactionReceipt:
        operations = list(operations)
        async with self._lock:
            # Raises before the swap, leaving state untouched
            self._state = apply_operations(self._state, operations)
            self.committed.append(operations)
        self._notify()
        return TransactionReceipt(operation_count=len(operations))

    async def get(self, kind: EntityKind, entity_id: UUID) -> Optional[StoredEntity]:
        return self._state[kind].get(entity_id)

    async def query(self, query: StoreQuery) -> list[StoredEntity]:
        return [
            record for record in self._state[query.entity].values()
            if query.matches(record)
        ]

    async def subscribe(self, query: StoreQuery) -> AsyncIterator[list[StoredEntity]]:
        changes: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(changes)
        try:
            yield await self.query(query)
            while True:
                await changes.get()
                yield await self.query(query)
        finally:
            self._subscribers.remove(changes)

    def _notify(self) -> None:
        for changes in self._subscribers:
            changes.put_nowait(None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log held in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
