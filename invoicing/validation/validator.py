"""
Two-Stage Invoice Validation

DESIGN DECISION: Validation happens before any transaction is built, in two
stages:

STAGE 1 - REQUIRED SELECTIONS:
- Client, business profile and invoice number must be chosen
- Nothing else is worth checking without them

STAGE 2 - ARITHMETIC AND CONSISTENCY:
- Only one GST mode may carry tax
- Total must equal subtotal plus taxes
- Line item amounts should equal quantity x rate
- Due date should not precede the invoice date
- Invoice number should be unique within the business

Errors block saving; warnings are shown but do not block.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for the user to correct.
"""

from decimal import Decimal
from typing import Optional

from invoicing.models.entities import EntityKind, Invoice
from invoicing.models.validation import ValidationIssue, ValidationResult
from invoicing.services.storage import StoreInterface, StoreQuery


# Largest difference tolerated between a stored and a recomputed amount
AMOUNT_TOLERANCE = Decimal("0.01")


class InvoiceValidationError(Exception):
    """Raised when an invoice cannot be saved as entered."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(issue.message for issue in result.errors)
        super().__init__(f"Invoice is not valid: {messages}")


class InvoiceValidator:
    """
    Validates an invoice before it is saved.

    Stage 1: Required selections (can run without storage)
    Stage 2: Arithmetic checks, plus duplicate numbers if storage is given
    """

    def __init__(
        self,
        store: Optional[StoreInterface] = None,
    ):
        """
        Initialize validator.

        Args:
            store: Store used for duplicate-number checks.
                   If None, duplicate checking is skipped.
        """
        self._store = store

    def _validate_required(self, invoice: Invoice) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Required selections.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if invoice.client_id is None:
            issues.append(ValidationIssue(
                field="client_id",
                issue_type="missing",
                message="Please select a client",
                severity="error",
            ))

        if invoice.business_id is None:
            issues.append(ValidationIssue(
                field="business_id",
                issue_type="missing",
                message="Please select a business profile",
                severity="error",
            ))

        if not invoice.invoice_number:
            issues.append(ValidationIssue(
                field="invoice_number",
                issue_type="missing",
                message="Invoice number is required",
                severity="error",
                suggested_fix="Use the next number in the series",
            ))

        return not issues, issues

    def _validate_arithmetic(self, invoice: Invoice) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Arithmetic and consistency.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if invoice.has_mixed_tax_modes:
            issues.append(ValidationIssue(
                field="tax",
                issue_type="mixed_tax_modes",
                message="An invoice cannot charge both CGST/SGST and IGST",
                severity="error",
                suggested_fix="Choose intra-state or inter-state supply",
            ))

        expected_total = invoice.subtotal + invoice.tax_total
        if abs(invoice.total - expected_total) > AMOUNT_TOLERANCE:
            issues.append(ValidationIssue(
                field="total",
                issue_type="mismatch",
                message=(
                    f"Total {invoice.total} does not equal subtotal plus taxes "
                    f"({expected_total})"
                ),
                severity="error",
                suggested_fix="Recalculate the invoice totals",
            ))

        for index, item in enumerate(invoice.line_items, start=1):
            if item.amount is not None and abs(item.amount - item.expected_amount) > AMOUNT_TOLERANCE:
                issues.append(ValidationIssue(
                    field=f"line_items[{index}].amount",
                    issue_type="mismatch",
                    message=(
                        f"Line {index}: amount {item.amount} is not "
                        f"{item.quantity} x {item.rate}"
                    ),
                    severity="warning",
                ))

        if (
            invoice.invoice_date is not None
            and invoice.due_date is not None
            and invoice.due_date < invoice.invoice_date
        ):
            issues.append(ValidationIssue(
                field="due_date",
                issue_type="before_invoice_date",
                message="Due date is before the invoice date",
                severity="warning",
                suggested_fix="Check the payment terms",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    async def _check_duplicate_number(self, invoice: Invoice) -> list[ValidationIssue]:
        """Another invoice of the same business already uses this number."""
        if self._store is None:
            return []

        same_number = await self._store.query(StoreQuery(
            entity=EntityKind.INVOICE,
            where={
                "business_id": invoice.business_id,
                "invoice_number": invoice.invoice_number,
            },
        ))
        if any(other.id != invoice.id for other in same_number):
            return [ValidationIssue(
                field="invoice_number",
                issue_type="duplicate",
                message=f"Invoice number {invoice.invoice_number} is already in use",
                severity="warning",
                suggested_fix="Use the next number in the series",
            )]
        return []

    async def validate_for_save(self, invoice: Invoice) -> ValidationResult:
        """
        Run the full two-stage validation.

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        required_valid, required_issues = self._validate_required(invoice)
        all_issues.extend(required_issues)

        # Only run stage 2 if stage 1 passes
        arithmetic_valid = False
        if required_valid:
            arithmetic_valid, arithmetic_issues = self._validate_arithmetic(invoice)
            all_issues.extend(arithmetic_issues)
            all_issues.extend(await self._check_duplicate_number(invoice))

        return ValidationResult(
            invoice_id=invoice.id,
            required_fields_valid=required_valid,
            arithmetic_valid=arithmetic_valid,
            is_valid=required_valid and arithmetic_valid,
            issues=all_issues,
            warnings=[i.message for i in all_issues if i.severity == "warning"],
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show above the invoice form.
        """
        if result.is_valid and not result.warnings:
            return "✅ Invoice is ready to save."

        lines = []

        if result.errors:
            lines.append("❌ Please fix the following before saving:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        if result.is_valid:
            lines.append("")
            lines.append("You can still save, but please review carefully.")

        return "\n".join(lines)
