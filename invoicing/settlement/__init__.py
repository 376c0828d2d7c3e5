"""Settlement engine: payments, withheld tax and payment status."""

from invoicing.settlement.engine import (
    SettlementResult,
    apply_payment,
    coerce_amount,
    derive_payment_status,
    is_fully_settled,
)
from invoicing.settlement.fiscal import fiscal_year_label, fiscal_year_start

__all__ = [
    "SettlementResult",
    "apply_payment",
    "coerce_amount",
    "derive_payment_status",
    "fiscal_year_label",
    "fiscal_year_start",
    "is_fully_settled",
]
