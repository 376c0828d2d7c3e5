"""Tests for document snapshots and invoice templates."""

import pytest
from datetime import date
from decimal import Decimal

from invoicing.documents import (
    SCHEMA_VERSION,
    TEMPLATES,
    amount_in_words,
    document_filename,
    get_template,
    normalize_invoice,
    render_document,
)
from invoicing.documents.templates import format_money
from invoicing.models.entities import BankAccount, Business, Client, Invoice, InvoiceStatus, LineItem


def make_business(**overrides) -> Business:
    fields = dict(
        name="Acme Studio",
        address="12 MG Road",
        city="Bengaluru",
        state="Karnataka",
        pin="560001",
        gstin="29ABCDE1234F1Z5",
        brand_color="#1e40af",
    )
    fields.update(overrides)
    return Business(**fields)


def make_invoice(**overrides) -> Invoice:
    fields = dict(
        invoice_number="INV/0001",
        invoice_date=date(2024, 1, 10),
        due_date=date(2024, 2, 9),
        status=InvoiceStatus.UNPAID,
        subtotal=Decimal("10000"),
        cgst=Decimal("900"),
        sgst=Decimal("900"),
        total=Decimal("11800"),
        line_items=[
            LineItem(description="Logo design", sac_code="998391", quantity=Decimal("2"), rate=Decimal("500")),
            LineItem(description="Website", quantity=Decimal("1"), rate=Decimal("9000")),
        ],
    )
    fields.update(overrides)
    return Invoice(**fields)


class TestAmountInWords:
    def test_whole_rupees(self):
        assert amount_in_words(Decimal("1500")) == "Rupees One Thousand Five Hundred Only"

    def test_with_paise(self):
        assert amount_in_words(Decimal("1500.50")) == "Rupees One Thousand Five Hundred and Fifty Paise Only"


class TestNormalizeInvoice:
    """Building the document snapshot."""

    def test_schema_version(self):
        snapshot = normalize_invoice(make_invoice(), make_business())
        assert snapshot.schema_version == SCHEMA_VERSION == "v1"

    def test_total_recomputed_from_components(self):
        """A stale stored total is not trusted."""
        snapshot = normalize_invoice(make_invoice(total=Decimal("0")), make_business())
        assert snapshot.totals.total == Decimal("11800")
        assert snapshot.totals.balance_due == Decimal("11800")

    def test_absent_amounts_are_none(self):
        """Zero taxes and settlements are absent, not zero."""
        snapshot = normalize_invoice(make_invoice(), make_business())
        assert snapshot.totals.igst is None
        assert snapshot.totals.advance_paid is None
        assert snapshot.totals.tds_amount is None
        assert snapshot.totals.cgst == Decimal("900")

    def test_balance_after_settlement(self):
        """Balance subtracts advance received and TDS."""
        invoice = make_invoice(
            advance_amount=Decimal("4000"),
            is_advance_received=True,
            tds_amount=Decimal("1000"),
        )
        snapshot = normalize_invoice(invoice, make_business())
        assert snapshot.totals.advance_paid == Decimal("4000")
        assert snapshot.totals.tds_amount == Decimal("1000")
        assert snapshot.totals.balance_due == Decimal("6800")

    def test_advance_not_received_is_ignored(self):
        """An advance only counts once it has been received."""
        invoice = make_invoice(advance_amount=Decimal("4000"), is_advance_received=False)
        snapshot = normalize_invoice(invoice, make_business())
        assert snapshot.totals.advance_paid is None
        assert snapshot.totals.balance_due == Decimal("11800")

    def test_missing_business_and_client(self):
        """Placeholders keep the document printable."""
        snapshot = normalize_invoice(make_invoice())
        assert snapshot.business.name == "N/A"
        assert snapshot.business.brand_color == "#000000"
        assert snapshot.customer.name == "N/A"
        assert snapshot.bank_account is None

    def test_customer_fallbacks(self):
        """First name and mobile stand in for missing fields."""
        client = Client(first_name="Ravi", mobile="+91 98450 00000")
        snapshot = normalize_invoice(make_invoice(), make_business(), client)
        assert snapshot.customer.name == "Ravi"
        assert snapshot.customer.phone == "+91 98450 00000"

    def test_bank_account(self):
        bank = BankAccount(bank_name="HDFC", holder_name="Acme", account_number="0001", ifsc="HDFC0000001", upi_id="acme@hdfc")
        snapshot = normalize_invoice(make_invoice(), make_business(), bank_account=bank)
        assert snapshot.bank_account.ifsc == "HDFC0000001"
        assert snapshot.bank_account.upi_id == "acme@hdfc"

    def test_items(self):
        snapshot = normalize_invoice(make_invoice(), make_business())
        assert [item.amount for item in snapshot.items] == [Decimal("1000"), Decimal("9000")]
        assert snapshot.items[0].sac_code == "998391"

    def test_deterministic(self):
        """Same inputs, same snapshot."""
        invoice, business = make_invoice(), make_business()
        assert normalize_invoice(invoice, business) == normalize_invoice(invoice, business)

    def test_snapshot_is_frozen(self):
        snapshot = normalize_invoice(make_invoice(), make_business())
        with pytest.raises(Exception):
            snapshot.notes = "changed"


class TestTemplates:
    """Rendering the snapshot."""

    def test_all_templates_agree_on_figures(self):
        """Every layout reports the same total and balance."""
        invoice = make_invoice(advance_amount=Decimal("4000"), is_advance_received=True, tds_amount=Decimal("1000"))
        snapshot = normalize_invoice(invoice, make_business())
        documents = [render_document(template_id, snapshot) for template_id in TEMPLATES]

        assert {d.grand_total for d in documents} == {Decimal("11800")}
        assert {d.total_due for d in documents} == {Decimal("6800")}
        for document in documents:
            assert format_money(Decimal("6800")) in document.content
            assert format_money(Decimal("11800")) in document.content

    def test_filename(self):
        """Path separators in the number are made safe."""
        document = render_document("classic", normalize_invoice(make_invoice(), make_business()))
        assert document.filename == "Invoice_INV-0001.html"
        assert document_filename("A\\B/C", "pdf") == "Invoice_A-B-C.pdf"

    def test_unknown_template_falls_back(self):
        assert get_template("neon").template_id == "classic"

    def test_default_template(self):
        assert get_template(None).template_id == "classic"

    def test_classic_lists_each_gst_component(self):
        document = render_document("classic", normalize_invoice(make_invoice(), make_business()))
        assert "CGST" in document.content
        assert "SGST" in document.content
        assert "IGST" not in document.content

    def test_compact_collapses_gst(self):
        document = render_document("compact", normalize_invoice(make_invoice(), make_business()))
        assert ">GST<" in document.content
        assert "CGST" not in document.content
        assert format_money(Decimal("1800")) in document.content

    def test_creative_paid_headline(self):
        invoice = make_invoice(advance_amount=Decimal("11800"), is_advance_received=True)
        document = render_document("creative", normalize_invoice(invoice, make_business()))
        assert "Paid in full" in document.content

    def test_html_escaped(self):
        client = Client(display_name="<script>alert(1)</script>")
        document = render_document("classic", normalize_invoice(make_invoice(), make_business(), client))
        assert "<script>" not in document.content
        assert "&lt;script&gt;" in document.content

    def test_brand_color_applied(self):
        document = render_document("creative", normalize_invoice(make_invoice(), make_business()))
        assert "#1e40af" in document.content

    def test_to_bytes(self):
        document = render_document("compact", normalize_invoice(make_invoice(), make_business()))
        assert document.to_bytes().decode("utf-8") == document.content
        assert document.media_type == "text/html"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
