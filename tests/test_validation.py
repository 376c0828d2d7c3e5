"""Tests for two-stage invoice validation."""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from invoicing.models.entities import Invoice, LineItem
from invoicing.services.storage import InMemoryStore
from invoicing.validation import InvoiceValidationError, InvoiceValidator


def make_invoice(**overrides) -> Invoice:
    fields = dict(
        invoice_number="INV/0001",
        invoice_date=date(2024, 1, 10),
        due_date=date(2024, 2, 9),
        client_id=uuid4(),
        business_id=uuid4(),
        subtotal=Decimal("10000"),
        cgst=Decimal("900"),
        sgst=Decimal("900"),
        total=Decimal("11800"),
        line_items=[LineItem(description="Website", quantity=Decimal("1"), rate=Decimal("10000"))],
    )
    fields.update(overrides)
    return Invoice(**fields)


def validate(invoice, store=None):
    return asyncio.run(InvoiceValidator(store).validate_for_save(invoice))


class TestRequiredSelections:
    """Stage 1."""

    def test_valid_invoice(self):
        result = validate(make_invoice())
        assert result.is_valid
        assert result.issues == []

    def test_missing_client(self):
        result = validate(make_invoice(client_id=None))
        assert not result.is_valid
        assert not result.required_fields_valid
        assert [i.field for i in result.errors] == ["client_id"]

    def test_missing_everything(self):
        result = validate(make_invoice(client_id=None, business_id=None, invoice_number=None))
        assert {i.field for i in result.errors} == {"client_id", "business_id", "invoice_number"}

    def test_stage_two_skipped_when_stage_one_fails(self):
        """Arithmetic is not checked until the selections are made."""
        result = validate(make_invoice(client_id=None, total=Decimal("1")))
        assert not result.arithmetic_valid
        assert all(i.field != "total" for i in result.issues)


class TestArithmetic:
    """Stage 2."""

    def test_mixed_tax_modes(self):
        result = validate(make_invoice(igst=Decimal("1800"), total=Decimal("13600")))
        assert not result.is_valid
        assert "mixed_tax_modes" in [i.issue_type for i in result.errors]

    def test_total_mismatch(self):
        result = validate(make_invoice(total=Decimal("12000")))
        assert not result.is_valid
        assert result.errors[0].field == "total"

    def test_total_within_tolerance(self):
        result = validate(make_invoice(total=Decimal("11800.01")))
        assert result.is_valid

    def test_line_item_mismatch_is_warning(self):
        """A line amount that is not quantity x rate is flagged, not blocked."""
        item = LineItem(description="Website", quantity=Decimal("1"), rate=Decimal("10000"), amount=Decimal("9000"))
        result = validate(make_invoice(line_items=[item]))
        assert result.is_valid
        assert len(result.warnings) == 1

    def test_due_date_before_invoice_date(self):
        result = validate(make_invoice(due_date=date(2024, 1, 1)))
        assert result.is_valid
        assert any(i.field == "due_date" for i in result.issues)

    def test_duplicate_number_in_business(self):
        """Reusing a number inside the same business is flagged."""
        invoice = make_invoice()
        existing = Invoice(invoice_number=invoice.invoice_number, business_id=invoice.business_id)
        result = validate(invoice, InMemoryStore([existing]))
        assert result.is_valid
        assert any(i.issue_type == "duplicate" for i in result.issues)

    def test_same_invoice_is_not_duplicate(self):
        """Re-saving an invoice does not clash with itself."""
        invoice = make_invoice()
        result = validate(invoice, InMemoryStore([invoice]))
        assert result.issues == []

    def test_other_business_same_number(self):
        invoice = make_invoice()
        other = Invoice(invoice_number=invoice.invoice_number, business_id=uuid4())
        result = validate(invoice, InMemoryStore([other]))
        assert result.issues == []


class TestSummary:
    """User-facing summaries."""

    def test_ready(self):
        validator = InvoiceValidator()
        result = asyncio.run(validator.validate_for_save(make_invoice()))
        assert validator.get_user_friendly_summary(result) == "✅ Invoice is ready to save."

    def test_errors_and_fixes(self):
        validator = InvoiceValidator()
        result = asyncio.run(validator.validate_for_save(make_invoice(total=Decimal("1"))))
        summary = validator.get_user_friendly_summary(result)
        assert summary.startswith("❌")
        assert "Recalculate the invoice totals" in summary

    def test_warnings_only(self):
        validator = InvoiceValidator()
        result = asyncio.run(validator.validate_for_save(make_invoice(due_date=date(2024, 1, 1))))
        summary = validator.get_user_friendly_summary(result)
        assert "⚠️" in summary
        assert "You can still save" in summary

    def test_validation_error_message(self):
        validator = InvoiceValidator()
        result = asyncio.run(validator.validate_for_save(make_invoice(client_id=None)))
        error = InvoiceValidationError(result)
        assert "Please select a client" in str(error)
        assert error.result is result


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
