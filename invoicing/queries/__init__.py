"""TDS ledger queries."""

from invoicing.queries.executor import (
    LedgerQuery,
    LedgerQueryExecutor,
    LedgerQueryResult,
)

__all__ = [
    "LedgerQuery",
    "LedgerQueryExecutor",
    "LedgerQueryResult",
]
