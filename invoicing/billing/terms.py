"""Payment terms and due dates."""

from datetime import date, timedelta
from typing import Optional, Union

from invoicing.config import get_settings
from invoicing.models.entities import Client, PaymentTerms


TERM_DAYS: dict[PaymentTerms, int] = {
    PaymentTerms.DUE_ON_RECEIPT: 0,
    PaymentTerms.NET_15: 15,
    PaymentTerms.NET_30: 30,
    PaymentTerms.NET_45: 45,
    PaymentTerms.NET_60: 60,
}


def term_days(
    payment_terms: Union[PaymentTerms, str, None],
    custom_days: Optional[int] = None,
) -> int:
    """
    Days between invoice date and due date.

    `custom` uses the client's own day count. Unknown or missing terms are
    treated as due on receipt.
    """
    try:
        terms = PaymentTerms(payment_terms)
    except ValueError:
        return 0

    if terms == PaymentTerms.CUSTOM:
        return custom_days if custom_days is not None else 0
    return TERM_DAYS[terms]


def derive_due_date(
    invoice_date: date,
    payment_terms: Union[PaymentTerms, str, None] = None,
    client: Optional[Client] = None,
) -> date:
    """
    Due date for an invoice.

    Terms resolve as: the invoice's own terms, else the client's, else the
    configured default. A client with a custom day count keeps it whenever
    the resolved terms are `custom`.
    """
    terms = (
        payment_terms
        or (client.payment_terms if client else None)
        or get_settings().invoice.default_payment_terms
    )
    custom_days = client.custom_term_days if client else None
    return invoice_date + timedelta(days=term_days(terms, custom_days))
