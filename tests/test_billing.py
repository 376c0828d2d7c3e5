"""Tests for invoice arithmetic, payment terms and number series."""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from invoicing.billing import (
    compute_invoice_totals,
    compute_tds,
    derive_due_date,
    next_invoice_number,
    series_prefix,
    tds_rate,
    term_days,
)
from invoicing.models.entities import Business, Client, Invoice, LineItem, PaymentTerms, TaxMode


def items() -> list[LineItem]:
    return [
        LineItem(description="Logo design", quantity=Decimal("2"), rate=Decimal("500")),
        LineItem(description="Website", quantity=Decimal("1"), rate=Decimal("9000")),
    ]


class TestInvoiceTotals:
    """Subtotal, GST and total."""

    def test_intrastate(self):
        """Intra-state supply charges CGST and SGST."""
        totals = compute_invoice_totals(items(), TaxMode.INTRASTATE)
        assert totals.subtotal == Decimal("10000")
        assert totals.cgst == Decimal("900.00")
        assert totals.sgst == Decimal("900.00")
        assert totals.igst is None
        assert totals.total == Decimal("11800")

    def test_interstate(self):
        """Inter-state supply charges IGST only."""
        totals = compute_invoice_totals(items(), TaxMode.INTERSTATE)
        assert totals.igst == Decimal("1800.00")
        assert totals.cgst is None
        assert totals.sgst is None
        assert totals.total == Decimal("11800")

    def test_gst_rounded_to_paise(self):
        """GST is rounded half-up to two decimals."""
        line = [LineItem(quantity=Decimal("1"), rate=Decimal("333.33"))]
        totals = compute_invoice_totals(line, TaxMode.INTRASTATE)
        assert totals.cgst == Decimal("30.00")
        assert totals.total == Decimal("393.33")

    def test_custom_rates(self):
        """Explicit rates override the configured ones."""
        totals = compute_invoice_totals(items(), TaxMode.INTERSTATE, igst_rate=Decimal("5"))
        assert totals.igst == Decimal("500.00")

    def test_no_items(self):
        totals = compute_invoice_totals([], TaxMode.INTRASTATE)
        assert totals.subtotal == Decimal("0")
        assert totals.total == Decimal("0")


class TestTDS:
    """Withholding amounts."""

    def test_section_rates(self):
        assert tds_rate("194J") == Decimal("10")
        assert tds_rate("194C") == Decimal("2")
        assert tds_rate("194H") == Decimal("5")

    def test_unknown_section_withholds_nothing(self):
        assert tds_rate("999Z") == Decimal("0")
        assert tds_rate(None) == Decimal("0")

    def test_rounded_to_whole_units(self):
        """TDS is rounded half-up to whole rupees."""
        assert compute_tds(Decimal("10005"), Decimal("10")) == Decimal("1001")
        assert compute_tds(Decimal("10004"), Decimal("10")) == Decimal("1000")


class TestPaymentTerms:
    """Due date derivation."""

    def test_net_30(self):
        """Net 30 from 10 January is 9 February."""
        assert derive_due_date(date(2024, 1, 10), "net_30") == date(2024, 2, 9)

    def test_client_terms_used_when_invoice_has_none(self):
        client = Client(display_name="Acme", payment_terms="net_15")
        assert derive_due_date(date(2024, 1, 10), None, client) == date(2024, 1, 25)

    def test_invoice_terms_win_over_client(self):
        client = Client(display_name="Acme", payment_terms="net_15")
        assert derive_due_date(date(2024, 1, 10), "net_45", client) == date(2024, 2, 24)

    def test_custom_terms_use_client_days(self):
        client = Client(display_name="Acme", payment_terms="custom", custom_term_days=20)
        assert derive_due_date(date(2024, 1, 10), None, client) == date(2024, 1, 30)

    def test_default_terms(self):
        """With nothing set, the configured default (net 30) applies."""
        assert derive_due_date(date(2024, 1, 10)) == date(2024, 2, 9)

    def test_due_on_receipt(self):
        assert derive_due_date(date(2024, 1, 10), PaymentTerms.DUE_ON_RECEIPT) == date(2024, 1, 10)

    def test_unknown_terms_are_zero_days(self):
        assert term_days("net_1000") == 0
        assert term_days(None) == 0
        assert term_days("custom") == 0


class TestNumbering:
    """Invoice number series."""

    def test_first_number(self):
        business = Business(name="Acme")
        assert next_invoice_number(business, [], date(2024, 6, 1)) == "INV/0001"

    def test_next_after_highest(self):
        business = Business(name="Acme")
        invoices = [
            Invoice(invoice_number="INV/0007", business_id=business.id),
            Invoice(invoice_number="INV/0003", business_id=business.id),
        ]
        assert next_invoice_number(business, invoices, date(2024, 6, 1)) == "INV/0008"

    def test_other_business_ignored(self):
        business = Business(name="Acme")
        invoices = [Invoice(invoice_number="INV/0042", business_id=uuid4())]
        assert next_invoice_number(business, invoices, date(2024, 6, 1)) == "INV/0001"

    def test_start_number(self):
        business = Business(name="Acme", invoice_start_number=100)
        assert next_invoice_number(business, [], date(2024, 6, 1)) == "INV/0100"

    def test_custom_prefix_and_padding(self):
        business = Business(name="Acme", invoice_prefix="ACME", invoice_separator="-", invoice_padding=2)
        assert next_invoice_number(business, [], date(2024, 6, 1)) == "ACME-01"

    def test_fiscal_year_part(self):
        business = Business(name="Acme", invoice_include_fy=True)
        assert series_prefix(business, date(2025, 6, 1)) == "INV/FY25/"

        short = Business(name="Acme", invoice_include_fy=True, invoice_fy_format="25")
        assert series_prefix(short, date(2025, 6, 1)) == "INV/25/"

    def test_non_numeric_suffix_ignored(self):
        business = Business(name="Acme")
        invoices = [Invoice(invoice_number="INV/0005-draft", business_id=business.id)]
        assert next_invoice_number(business, invoices, date(2024, 6, 1)) == "INV/0001"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
