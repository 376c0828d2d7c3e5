"""Invoice arithmetic: totals, TDS, payment terms and number series."""

from invoicing.billing.numbering import next_invoice_number, series_prefix
from invoicing.billing.terms import TERM_DAYS, derive_due_date, term_days
from invoicing.billing.totals import (
    TDS_SECTIONS,
    InvoiceTotals,
    compute_invoice_totals,
    compute_tds,
    tds_rate,
)

__all__ = [
    "TDS_SECTIONS",
    "TERM_DAYS",
    "InvoiceTotals",
    "compute_invoice_totals",
    "compute_tds",
    "derive_due_date",
    "next_invoice_number",
    "series_prefix",
    "tds_rate",
    "term_days",
]
