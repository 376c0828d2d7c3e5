"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets can back the store for a single small
business because:
1. The owner can see every record directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Sheets has no transactions. We apply the whole transaction in memory
  first (same applier as every other store), so a rejected transaction
  writes nothing; only the final write-back can fail part-way.
- No push notifications, so subscriptions poll.
- Limited query capabilities (we filter in Python)
"""

import asyncio
import json
from collections.abc import AsyncIterator, Mapping, Sequence
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from invoicing.config import get_settings
from invoicing.models.audit import AuditEvent, AuditEventType, AuditSeverity
from invoicing.models.entities import ENTITY_MODELS, EntityKind, StoredEntity
from invoicing.models.operations import Operation, TransactionReceipt
from invoicing.services.storage.applier import apply_operations
from invoicing.services.storage.interface import (
    AuditStorageInterface,
    StorageError,
    StoreConnectionError,
    StoreInterface,
    StoreQuery,
)


# Every entity worksheet has the same shape; the record itself is JSON
ENTITY_COLUMNS = ["id", "created_at", "payload_json"]

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

logger = structlog.get_logger(__name__)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
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
                raise StoreConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise StoreConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with a header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_entity_sheet(self, kind: EntityKind) -> gspread.Worksheet:
        return self.get_worksheet(
            f"{self._settings.entity_sheet_prefix}{kind.value}",
            ENTITY_COLUMNS,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsStore(StoreInterface):
    """
    Google Sheets implementation of the entity store.

    One worksheet per entity kind, one record per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()
        self._poll_interval = get_settings().store.poll_interval_seconds

    def _entity_to_row(self, entity: StoredEntity) -> list:
        return [
            str(entity.id),
            entity.created_at.isoformat(),
            entity.model_dump_json(),
        ]

    def _row_to_entity(self, kind: EntityKind, row: list) -> StoredEntity:
        return ENTITY_MODELS[kind].model_validate_json(row[2])

    def _load_rows(self, kind: EntityKind) -> tuple[dict[UUID, StoredEntity], int]:
        """Records of one kind plus the number of sheet rows they span."""
        sheet = self._client.get_entity_sheet(kind)
        values = sheet.get_all_values()
        records = {}
        for row in values[1:]:  # Skip header
            if len(row) < 3 or not row[0]:
                continue
            entity = self._row_to_entity(kind, row)
            records[entity.id] = entity
        return records, len(values)

    def _load_kind(self, kind: EntityKind) -> dict[UUID, StoredEntity]:
        return self._load_rows(kind)[0]

    def _write_kind(
        self,
        kind: EntityKind,
        records: Mapping[UUID, StoredEntity],
        previous_rows: int,
    ) -> None:
        """
        Overwrite a worksheet in place with a single range update.

        The sheet is never cleared first: if the update fails the old rows
        are still there. Rows left over from a longer previous version are
        blanked only after the new rows are written.
        """
        sheet = self._client.get_entity_sheet(kind)
        ordered = sorted(records.values(), key=lambda e: (e.created_at, str(e.id)))
        values = [ENTITY_COLUMNS] + [self._entity_to_row(e) for e in ordered]
        if len(values) > sheet.row_count:
            sheet.add_rows(len(values) - sheet.row_count)
        sheet.update(range_name="A1", values=values, value_input_option="RAW")
        if previous_rows > len(values):
            sheet.batch_clear([f"A{len(values) + 1}:C{previous_rows}"])

    async def submit(self, operations: Sequence[Operation]) -> TransactionReceipt:
        """
        Apply a transaction and write back the worksheets it changed.

        Not retried here; TransactionSubmitter owns retries. Worksheets are
        written in EntityKind order, so the TDS ledger is written after the
        invoice it settles and a retried settlement cannot append twice.
        """
        operations = list(operations)
        async with self._lock:
            try:
                loaded = {kind: self._load_rows(kind) for kind in EntityKind}
            except Exception as e:
                raise StorageError(f"Failed to read store: {e}")
            state = {kind: records for kind, (records, _) in loaded.items()}

            new_state = apply_operations(state, operations)

            changed = [kind for kind in EntityKind if new_state[kind] is not state[kind]]
            try:
                for kind in changed:
                    self._write_kind(kind, new_state[kind], loaded[kind][1])
            except Exception as e:
                raise StorageError(f"Failed to write {len(changed)} worksheets: {e}")

        logger.info(
            "sheets_transaction_committed",
            operation_count=len(operations),
            worksheets=[kind.value for kind in changed],
        )
        return TransactionReceipt(operation_count=len(operations))

    async def get(self, kind: EntityKind, entity_id: UUID) -> Optional[StoredEntity]:
        try:
            return self._load_kind(kind).get(entity_id)
        except Exception as e:
            raise StorageError(f"Failed to get {kind.value}: {e}")

    async def query(self, query: StoreQuery) -> list[StoredEntity]:
        try:
            records = self._load_kind(query.entity)
        except Exception as e:
            raise StorageError(f"Failed to query {query.entity.value}: {e}")
        return [record for record in records.values() if query.matches(record)]

    async def subscribe(self, query: StoreQuery) -> AsyncIterator[list[StoredEntity]]:
        """Poll the query, yielding whenever the result set changes."""
        last_seen = None
        while True:
            results = await self.query(query)
            fingerprint = [r.model_dump_json() for r in results]
            if fingerprint != last_seen:
                last_seen = fingerprint
                yield results
            await asyncio.sleep(self._poll_interval)


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
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        events = []
        for row in self._client.get_audit_sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError as e:
                logger.warning("audit_row_unreadable", error=str(e), event_id=row[0])
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_sheet_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._read_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
