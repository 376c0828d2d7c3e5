"""Tests for TDS ledger queries."""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from invoicing.models.entities import TDSEntry
from invoicing.queries import LedgerQuery, LedgerQueryExecutor
from invoicing.services.storage import InMemoryStore


OWNER = uuid4()
CLIENT_A = uuid4()
CLIENT_B = uuid4()


def entries() -> list[TDSEntry]:
    return [
        TDSEntry(amount=Decimal("1000"), fiscal_year="2023-2024", section="194J",
                 recorded_on=date(2024, 2, 15), owner_id=OWNER, client_id=CLIENT_A),
        TDSEntry(amount=Decimal("500"), fiscal_year="2024-2025", section="194J",
                 recorded_on=date(2024, 5, 1), owner_id=OWNER, client_id=CLIENT_A, has_certificate=True),
        TDSEntry(amount=Decimal("200"), fiscal_year="2024-2025", section="194C",
                 recorded_on=date(2024, 6, 1), owner_id=OWNER, client_id=CLIENT_B),
        TDSEntry(amount=Decimal("999"), fiscal_year="2024-2025", section="194J",
                 recorded_on=date(2024, 6, 1), owner_id=uuid4()),
    ]


def run(query: LedgerQuery, store=None):
    executor = LedgerQueryExecutor(store or InMemoryStore(entries()))
    return asyncio.run(executor.execute(query))


class TestLedgerQueries:

    def test_totals_by_fiscal_year(self):
        result = run(LedgerQuery(owner_id=OWNER))
        assert result.success
        assert result.result_count == 3
        assert result.total_amount == Decimal("1700")
        assert result.breakdown == {"2023-2024": Decimal("1000"), "2024-2025": Decimal("700")}

    def test_filter_fiscal_year(self):
        result = run(LedgerQuery(owner_id=OWNER, fiscal_year="2024-2025"))
        assert result.total_amount == Decimal("700")
        assert "for FY 2024-2025" in result.query_description

    def test_group_by_client(self):
        result = run(LedgerQuery(owner_id=OWNER, group_by="client"))
        assert result.breakdown == {str(CLIENT_A): Decimal("1500"), str(CLIENT_B): Decimal("200")}

    def test_group_by_section(self):
        result = run(LedgerQuery(owner_id=OWNER, group_by="section"))
        assert result.breakdown == {"194J": Decimal("1500"), "194C": Decimal("200")}

    def test_awaiting_certificate(self):
        result = run(LedgerQuery(owner_id=OWNER, has_certificate=False))
        assert result.total_amount == Decimal("1200")
        assert "awaiting certificate" in result.query_description

    def test_entries_in_date_order(self):
        result = run(LedgerQuery(owner_id=OWNER))
        assert [e.recorded_on for e in result.entries] == sorted(e.recorded_on for e in result.entries)

    def test_limit_keeps_full_totals(self):
        """limit shortens the listing, not the totals."""
        result = run(LedgerQuery(owner_id=OWNER, limit=1))
        assert len(result.entries) == 1
        assert result.result_count == 3
        assert result.total_amount == Decimal("1700")

    def test_no_data(self):
        result = run(LedgerQuery(owner_id=uuid4()))
        assert result.success
        assert not result.data_found
        assert result.total_amount == Decimal("0")

    def test_invalid_fiscal_year_rejected(self):
        with pytest.raises(ValueError):
            LedgerQuery(fiscal_year="FY25")

    def test_store_failure_reported(self):
        """A failing store gives an unsuccessful result, not an exception."""
        class BrokenStore(InMemoryStore):
            async def query(self, query):
                raise RuntimeError("sheet unavailable")

        result = run(LedgerQuery(owner_id=OWNER), BrokenStore())
        assert not result.success
        assert "sheet unavailable" in result.error_message


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
