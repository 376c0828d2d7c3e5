"""
Document Snapshot

A frozen, versioned projection of one invoice with its business and client,
built at the moment a document is produced. Templates only ever see the
snapshot, never the live records, so every template prints the same
figures.

DESIGN DECISION: Optional amounts are absent (None) rather than zero.
A template decides whether to print the CGST row by checking
`totals.cgst is not None`, with no arithmetic of its own.

normalize_invoice is pure: same inputs, same snapshot. It never reads the
clock, the settings or the template choice.
"""

from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from num2words import num2words
from pydantic import BaseModel, ConfigDict, Field

from invoicing.models.entities import ZERO, BankAccount, Business, Client, Invoice


SCHEMA_VERSION = "v1"
DEFAULT_BRAND_COLOR = "#000000"
MISSING_NAME = "N/A"


# =============================================================================
# SNAPSHOT SCHEMA (v1)
# =============================================================================

class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class SnapshotBusiness(_Frozen):
    name: str
    legal_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pin: Optional[str] = None
    country: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    gstin: Optional[str] = None
    pan: Optional[str] = None
    signature_url: Optional[str] = None
    brand_color: str = DEFAULT_BRAND_COLOR


class SnapshotCustomer(_Frozen):
    name: str
    address: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    gstin: Optional[str] = None


class SnapshotInvoice(_Frozen):
    number: str = ""
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    order_number: Optional[str] = None
    subject: Optional[str] = None


class SnapshotItem(_Frozen):
    description: str
    sac_code: Optional[str] = None
    quantity: Decimal
    rate: Decimal
    amount: Decimal


class SnapshotTotals(_Frozen):
    subtotal: Decimal
    cgst: Optional[Decimal] = None
    sgst: Optional[Decimal] = None
    igst: Optional[Decimal] = None
    total: Decimal
    advance_paid: Optional[Decimal] = None
    tds_amount: Optional[Decimal] = None
    balance_due: Decimal
    amount_in_words: Optional[str] = None

    @property
    def tax_total(self) -> Decimal:
        return (self.cgst or ZERO) + (self.sgst or ZERO) + (self.igst or ZERO)

    @property
    def is_paid(self) -> bool:
        return self.balance_due <= 0


class SnapshotBankAccount(_Frozen):
    bank_name: str
    holder_name: str
    account_number: str
    ifsc: str
    upi_id: Optional[str] = None
    cheque_name: Optional[str] = None


class DocumentSnapshot(_Frozen):
    """Everything a template may print."""
    schema_version: Literal["v1"] = Field(default=SCHEMA_VERSION)

    business: SnapshotBusiness
    customer: SnapshotCustomer
    invoice: SnapshotInvoice
    items: tuple[SnapshotItem, ...] = ()
    totals: SnapshotTotals
    bank_account: Optional[SnapshotBankAccount] = None
    notes: Optional[str] = None
    terms: Optional[str] = None


# =============================================================================
# NORMALIZATION
# =============================================================================

def amount_in_words(amount: Decimal) -> str:
    """
    Indian-English wording of a rupee amount.

    >>> amount_in_words(Decimal("1500"))
    'Rupees One Thousand Five Hundred Only'
    """
    rupees = int(amount)
    paise = int((amount - rupees) * 100)

    words = num2words(rupees, lang="en_IN").replace(",", "").title()
    if paise > 0:
        paise_words = num2words(paise, lang="en_IN").replace(",", "").title()
        return f"Rupees {words} and {paise_words} Paise Only"
    return f"Rupees {words} Only"


def _positive(value: Decimal) -> Optional[Decimal]:
    return value if value > 0 else None


def normalize_invoice(
    invoice: Invoice,
    business: Optional[Business] = None,
    client: Optional[Client] = None,
    bank_account: Optional[BankAccount] = None,
) -> DocumentSnapshot:
    """
    Build the document snapshot for an invoice.

    The total and balance are recomputed from the invoice's components;
    whatever total the invoice carries is not trusted. Advance counts only
    once it has actually been received.
    """
    subtotal = invoice.subtotal
    cgst = invoice.cgst_value
    sgst = invoice.sgst_value
    igst = invoice.igst_value
    total = subtotal + cgst + sgst + igst
    advance_paid = invoice.advance_amount if invoice.is_advance_received else ZERO
    tds_amount = invoice.tds_amount
    balance_due = total - advance_paid - tds_amount

    business_block = SnapshotBusiness(
        name=(business.name if business else None) or MISSING_NAME,
        legal_name=business.legal_name if business else None,
        address=business.address if business else None,
        city=business.city if business else None,
        state=business.state if business else None,
        pin=business.pin if business else None,
        country=business.country if business else None,
        email=business.email if business else None,
        phone=business.phone if business else None,
        gstin=business.gstin if business else None,
        pan=business.pan if business else None,
        signature_url=business.signature_url if business else None,
        brand_color=(business.brand_color if business else None) or DEFAULT_BRAND_COLOR,
    )

    if client is not None:
        customer_block = SnapshotCustomer(
            name=client.display_name or client.first_name or MISSING_NAME,
            address=client.address,
            email=client.email,
            phone=client.phone or client.mobile,
            gstin=client.gstin,
        )
    else:
        customer_block = SnapshotCustomer(name=MISSING_NAME)

    bank_block = None
    if bank_account is not None:
        bank_block = SnapshotBankAccount(
            bank_name=bank_account.bank_name,
            holder_name=bank_account.holder_name,
            account_number=bank_account.account_number,
            ifsc=bank_account.ifsc,
            upi_id=bank_account.upi_id,
            cheque_name=bank_account.cheque_name,
        )

    return DocumentSnapshot(
        business=business_block,
        customer=customer_block,
        invoice=SnapshotInvoice(
            number=invoice.invoice_number or "",
            invoice_date=invoice.invoice_date,
            due_date=invoice.due_date,
            order_number=invoice.order_number,
            subject=invoice.subject,
        ),
        items=tuple(
            SnapshotItem(
                description=item.description,
                sac_code=item.sac_code,
                quantity=item.quantity,
                rate=item.rate,
                amount=item.amount if item.amount is not None else item.expected_amount,
            )
            for item in invoice.line_items
        ),
        totals=SnapshotTotals(
            subtotal=subtotal,
            cgst=_positive(cgst),
            sgst=_positive(sgst),
            igst=_positive(igst),
            total=total,
            advance_paid=_positive(advance_paid),
            tds_amount=_positive(tds_amount),
            balance_due=balance_due,
            amount_in_words=amount_in_words(total),
        ),
        bank_account=bank_block,
        notes=invoice.notes,
        terms=invoice.terms_and_conditions,
    )
