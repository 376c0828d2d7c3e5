"""
Invoice Arithmetic

Line items, GST and TDS amounts. All money is Decimal; GST is rounded to
paise, TDS to whole rupees (as it is quoted on certificates).
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict

from invoicing.config import get_settings
from invoicing.models.entities import ZERO, LineItem, TaxMode


PAISE = Decimal("0.01")
RUPEE = Decimal("1")

# Withholding rates by Income Tax Act section, percent of the subtotal
TDS_SECTIONS: dict[str, Decimal] = {
    "194J": Decimal("10"),   # Professional / technical services
    "194C": Decimal("2"),    # Contractors
    "194JB": Decimal("2"),   # Technical services (reduced rate)
    "194H": Decimal("5"),    # Commission / brokerage
    "other": ZERO,
}


class InvoiceTotals(BaseModel):
    """Computed amounts for one invoice. Exactly one tax mode is populated."""
    model_config = ConfigDict(frozen=True)

    subtotal: Decimal
    cgst: Optional[Decimal] = None
    sgst: Optional[Decimal] = None
    igst: Optional[Decimal] = None
    total: Decimal


def _money(value: Decimal) -> Decimal:
    return value.quantize(PAISE, rounding=ROUND_HALF_UP)


def compute_invoice_totals(
    line_items: Iterable[LineItem],
    tax_mode: TaxMode = TaxMode.INTRASTATE,
    cgst_rate: Optional[Decimal] = None,
    sgst_rate: Optional[Decimal] = None,
    igst_rate: Optional[Decimal] = None,
) -> InvoiceTotals:
    """
    Subtotal, GST and total for a set of line items.

    Intra-state supply is taxed CGST + SGST, inter-state supply IGST; the
    other mode's fields are left unset. Rates default to InvoiceSettings.
    """
    settings = get_settings().invoice
    subtotal = sum((item.quantity * item.rate for item in line_items), ZERO)

    if tax_mode == TaxMode.INTERSTATE:
        rate = settings.igst_rate if igst_rate is None else igst_rate
        igst = _money(subtotal * rate / 100)
        return InvoiceTotals(subtotal=subtotal, igst=igst, total=subtotal + igst)

    cgst = _money(subtotal * (settings.cgst_rate if cgst_rate is None else cgst_rate) / 100)
    sgst = _money(subtotal * (settings.sgst_rate if sgst_rate is None else sgst_rate) / 100)
    return InvoiceTotals(
        subtotal=subtotal,
        cgst=cgst,
        sgst=sgst,
        total=subtotal + cgst + sgst,
    )


def tds_rate(section: Optional[str]) -> Decimal:
    """Withholding rate for a section; unknown sections withhold nothing."""
    if section is None:
        return ZERO
    return TDS_SECTIONS.get(section, ZERO)


def compute_tds(subtotal: Decimal, rate: Decimal) -> Decimal:
    """
    TDS on the pre-tax subtotal, rounded half-up to whole units.

    Withholding is never charged on the GST component.
    """
    return (subtotal * rate / 100).quantize(RUPEE, rounding=ROUND_HALF_UP)
