"""
TDS Ledger Queries

DESIGN DECISION: The TDS ledger is a side channel. Settlement appends to it
and never reads it back; this executor is the only reader. It answers
questions like "how much tax did clients withhold from us in FY 2024-2025"
straight from stored entries, never estimating.

Query execution is DETERMINISTIC: same entries, same answer.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from invoicing.models.entities import ZERO, EntityKind, TDSEntry
from invoicing.services.storage import StoreInterface, StoreQuery


class LedgerQuery(BaseModel):
    """Filters over the TDS ledger. Unset filters match everything."""

    query_id: UUID = Field(default_factory=uuid4)

    owner_id: Optional[UUID] = None
    business_id: Optional[UUID] = None
    client_id: Optional[UUID] = None
    fiscal_year: Optional[str] = Field(default=None, pattern=r"^\d{4}-\d{4}$")
    has_certificate: Optional[bool] = None

    group_by: str = Field(
        default="fiscal_year",
        pattern="^(fiscal_year|client|section)$",
        description="Key of the breakdown in the result"
    )
    limit: Optional[int] = Field(default=None, ge=1)


class LedgerQueryResult(BaseModel):
    """Entries matching a LedgerQuery, with totals."""

    query_id: UUID
    success: bool
    error_message: Optional[str] = None

    data_found: bool = False
    result_count: int = 0
    total_amount: Decimal = ZERO
    entries: list[TDSEntry] = Field(default_factory=list)
    breakdown: dict[str, Decimal] = Field(default_factory=dict)

    query_description: str = ""


class LedgerQueryExecutor:
    """
    Executes ledger queries against the store.

    GUARANTEES:
    - Only returns real entries from storage
    - Totals always cover every matching entry, even when `limit`
      shortens the entry list
    - Clear "no data found" if nothing matches
    """

    def __init__(self, store: StoreInterface):
        self._store = store

    async def execute(self, query: LedgerQuery) -> LedgerQueryResult:
        try:
            return await self._execute(query)
        except Exception as e:
            return LedgerQueryResult(
                query_id=query.query_id,
                success=False,
                error_message=str(e),
                query_description=f"Query failed: {str(e)}",
            )

    async def _execute(self, query: LedgerQuery) -> LedgerQueryResult:
        where = {
            field: value
            for field, value in (
                ("owner_id", query.owner_id),
                ("business_id", query.business_id),
                ("client_id", query.client_id),
                ("fiscal_year", query.fiscal_year),
                ("has_certificate", query.has_certificate),
            )
            if value is not None
        }
        entries = await self._store.query(StoreQuery(entity=EntityKind.TDS_ENTRY, where=where))
        entries.sort(key=lambda e: (e.recorded_on, e.created_at))

        total = sum((entry.amount for entry in entries), ZERO)
        listed = entries[:query.limit] if query.limit else entries

        return LedgerQueryResult(
            query_id=query.query_id,
            success=True,
            data_found=bool(entries),
            result_count=len(entries),
            total_amount=total,
            entries=listed,
            breakdown=self._group(entries, query.group_by),
            query_description=self._describe(query, len(entries)),
        )

    def _group(self, entries: list[TDSEntry], group_by: str) -> dict[str, Decimal]:
        groups: dict[str, Decimal] = {}
        for entry in entries:
            if group_by == "client":
                key = str(entry.client_id) if entry.client_id else "unknown"
            elif group_by == "section":
                key = entry.section or "unspecified"
            else:
                key = entry.fiscal_year
            groups[key] = groups.get(key, ZERO) + entry.amount
        return groups

    def _describe(self, query: LedgerQuery, count: int) -> str:
        desc_parts = [f"{count} TDS entries"]
        if query.fiscal_year:
            desc_parts.append(f"for FY {query.fiscal_year}")
        if query.client_id:
            desc_parts.append(f"from client {query.client_id}")
        if query.has_certificate is not None:
            desc_parts.append("with certificate" if query.has_certificate else "awaiting certificate")
        return " ".join(desc_parts)
