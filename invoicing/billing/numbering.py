"""
Invoice Number Series

Numbers look like `INV/0007` or, with the fiscal-year part enabled,
`INV/FY25/0007`. Each business has its own series; the next number is one
past the highest number already issued in that series, never below the
configured start.
"""

import re
from collections.abc import Iterable
from datetime import date

from invoicing.config import get_settings
from invoicing.models.entities import Business, Invoice


def series_prefix(business: Business, today: date) -> str:
    """Everything before the sequence digits, e.g. `INV/FY25/`."""
    defaults = get_settings().invoice
    prefix = business.invoice_prefix or defaults.number_prefix
    separator = business.invoice_separator or defaults.number_separator

    fy_part = ""
    if business.invoice_include_fy:
        year = str(today.year)[-2:]
        fy = year if business.invoice_fy_format == "25" else f"FY{year}"
        fy_part = f"{fy}{separator}"

    return f"{prefix}{separator}{fy_part}"


def _sequence_of(invoice_number: str, pattern: str) -> int:
    match = re.fullmatch(r"(\d+)", invoice_number[len(pattern):])
    return int(match.group(1)) if match else 0


def next_invoice_number(
    business: Business,
    invoices: Iterable[Invoice],
    today: date,
) -> str:
    """
    Next free number in the business's series.

    Invoices from other businesses or other series (e.g. a previous year's
    FY prefix) do not count.
    """
    defaults = get_settings().invoice
    start = business.invoice_start_number or defaults.number_start
    padding = business.invoice_padding or defaults.number_padding
    pattern = series_prefix(business, today)

    highest = 0
    for invoice in invoices:
        number = invoice.invoice_number or ""
        if invoice.business_id != business.id or not number.startswith(pattern):
            continue
        highest = max(highest, _sequence_of(number, pattern))

    return f"{pattern}{max(start, highest + 1):0{padding}d}"
