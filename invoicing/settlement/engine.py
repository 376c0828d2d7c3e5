"""
Settlement Engine

Turns one payment event against an invoice into the invoice's new
settlement state plus, when tax was withheld, one TDS ledger entry.

DESIGN DECISION: The engine is pure. It reads only its arguments and
returns operations; submitting them is the caller's job. This keeps the
arithmetic testable without a store and lets the caller decide how to
handle transport failures.

Amounts are cumulative on the invoice: every payment adds to
advance_amount (cash) and tds_amount (withheld tax). Nothing is ever
subtracted, and the TDS ledger is append-only.

Input is lenient on purpose: a payment form may hand us "", None or
"abc", and those count as zero rather than rejecting the payment.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from invoicing.billing.totals import compute_tds, tds_rate
from invoicing.config import get_settings
from invoicing.models.entities import ZERO, Invoice, InvoiceStatus, TDSEntry, utc_now
from invoicing.models.operations import (
    CreateTDSEntry,
    Operation,
    UpdateInvoiceSettlement,
)
from invoicing.settlement.fiscal import fiscal_year_label


# =============================================================================
# INPUT COERCION
# =============================================================================

def coerce_amount(value: Any) -> Decimal:
    """
    Best-effort conversion of user input to a Decimal amount.

    Anything non-numeric (including NaN and infinities) becomes zero.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, TypeError, ValueError):
            return ZERO
    if not amount.is_finite():
        return ZERO
    return amount


# =============================================================================
# STATUS DERIVATION
# =============================================================================

def is_fully_settled(
    settled: Decimal,
    total: Decimal,
    margin: Optional[Decimal] = None,
) -> bool:
    """
    Whether cash plus withheld tax covers the invoice.

    A shortfall up to `margin` (default SettlementSettings.rounding_margin)
    still counts as fully settled, to absorb rounding in TDS.
    """
    if margin is None:
        margin = get_settings().settlement.rounding_margin
    return settled >= total - margin


def derive_payment_status(
    current: InvoiceStatus,
    settled: Decimal,
    total: Decimal,
    margin: Optional[Decimal] = None,
) -> InvoiceStatus:
    """Paid, PartiallyPaid, or the current status if nothing is settled."""
    if is_fully_settled(settled, total, margin):
        return InvoiceStatus.PAID
    if settled > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return current


# =============================================================================
# PAYMENT APPLICATION
# =============================================================================

class SettlementResult(BaseModel):
    """Everything a payment event produces."""
    model_config = ConfigDict(frozen=True)

    invoice_update: UpdateInvoiceSettlement
    ledger_entry: Optional[CreateTDSEntry] = None

    # The invoice as it will look once the update is committed
    invoice: Invoice

    cash_amount: Decimal
    tax_withheld: Decimal
    settled: Decimal
    status: InvoiceStatus
    net_due: Decimal
    overpaid_amount: Decimal = ZERO

    @property
    def operations(self) -> list[Operation]:
        """The transaction to submit, invoice update first."""
        ops: list[Operation] = [self.invoice_update]
        if self.ledger_entry is not None:
            ops.append(self.ledger_entry)
        return ops

    @property
    def is_overpaid(self) -> bool:
        return self.overpaid_amount > 0


def apply_payment(
    invoice: Invoice,
    cash_amount: Any,
    tax_withheld: Any = None,
    tax_section: Optional[str] = None,
    *,
    paid_on: Optional[datetime] = None,
    owner_id: Optional[UUID] = None,
    margin: Optional[Decimal] = None,
) -> SettlementResult:
    """
    Apply one payment event to an invoice.

    Args:
        invoice: The invoice as last read from the store
        cash_amount: Cash received in this event (not cumulative)
        tax_withheld: Tax withheld in this event. When omitted and a
                      tax_section is given, it is computed from the
                      invoice subtotal at that section's rate.
        tax_section: TDS section, e.g. "194J". The ledger entry falls back
                     to SettlementSettings.default_tds_section.
        paid_on: When the payment was received; drives the fiscal year of
                 the ledger entry and paid_at. Defaults to now.
        owner_id: Owner of the ledger entry. Defaults to the invoice owner.
        margin: Rounding tolerance for the Paid status

    Returns:
        SettlementResult. Never raises on bad numeric input.
    """
    paid_on = paid_on or utc_now()

    cash = coerce_amount(cash_amount)
    if tax_withheld is None and tax_section is not None:
        withheld = compute_tds(invoice.subtotal, tds_rate(tax_section))
    else:
        withheld = coerce_amount(tax_withheld)

    new_cash_total = invoice.advance_amount + cash
    new_tds_total = invoice.tds_amount + withheld
    settled = new_cash_total + new_tds_total

    status = derive_payment_status(invoice.status, settled, invoice.total, margin)
    net_due = invoice.total - new_cash_total - new_tds_total

    update = UpdateInvoiceSettlement(
        invoice_id=invoice.id,
        advance_amount=new_cash_total,
        tds_amount=new_tds_total,
        tds_deducted=new_tds_total > 0,
        is_advance_received=True,
        status=status,
        paid_at=paid_on if status == InvoiceStatus.PAID else None,
    )

    ledger_entry = None
    if withheld > 0:
        section = tax_section or get_settings().settlement.default_tds_section
        ledger_entry = CreateTDSEntry(
            entry=TDSEntry(
                amount=withheld,
                fiscal_year=fiscal_year_label(paid_on.date()),
                section=section,
                recorded_on=paid_on.date(),
                has_certificate=False,
                notes=f"Auto-recorded from Invoice #{invoice.invoice_number}",
                owner_id=owner_id or invoice.owner_id,
                client_id=invoice.client_id,
                business_id=invoice.business_id,
                invoice_id=invoice.id,
            )
        )

    changes = {
        "advance_amount": update.advance_amount,
        "tds_amount": update.tds_amount,
        "tds_deducted": update.tds_deducted,
        "is_advance_received": update.is_advance_received,
        "status": update.status,
    }
    if update.paid_at is not None:
        changes["paid_at"] = update.paid_at

    return SettlementResult(
        invoice_update=update,
        ledger_entry=ledger_entry,
        invoice=invoice.model_copy(update=changes),
        cash_amount=cash,
        tax_withheld=withheld,
        settled=settled,
        status=status,
        net_due=net_due,
        overpaid_amount=max(-net_due, ZERO),
    )
