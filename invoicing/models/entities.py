"""
Core Data Models for the Invoicing Core

These models define the strict schemas for every entity kept in the store.
They are designed to:
1. Enforce type safety at runtime
2. Carry money as Decimal, never float
3. Be serializable for storage and logging
4. Make ownership links explicit (owner_id / business_id / client_id)

DESIGN DECISION: Relationships between entities are weak references by id.
The store owns the graph; models never hold each other except for the
line items an invoice owns exclusively.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


ZERO = Decimal("0")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class EntityKind(str, Enum):
    """Every collection the store knows about."""
    BUSINESS = "business"
    CLIENT = "client"
    INVOICE = "invoice"
    LINE_ITEM = "line_item"
    SERVICE = "service"
    BANK_ACCOUNT = "bank_account"
    TAX = "tax"
    EXPENSE = "expense"
    TERMS_TEMPLATE = "terms_template"
    TDS_ENTRY = "tds_entry"
    ATTACHMENT = "attachment"


class InvoiceStatus(str, Enum):
    """
    Invoice status.

    OVERDUE is never stored by settlement; it is derived from the due date
    (see Invoice.effective_status).
    """
    DRAFT = "Draft"
    UNPAID = "Unpaid"
    SENT = "Sent"
    PARTIALLY_PAID = "PartiallyPaid"
    PAID = "Paid"
    OVERDUE = "Overdue"


class BusinessStatus(str, Enum):
    """
    Business profile lifecycle.

    PENDING_CLAIM -> ACTIVE happens at most once (see claiming).
    """
    PENDING_CLAIM = "pending_claim"
    ACTIVE = "active"
    DISABLED = "disabled"


class BusinessCreator(str, Enum):
    ADMIN = "admin"
    USER = "user"


class TaxMode(str, Enum):
    """CGST+SGST for intra-state supply, IGST for inter-state supply."""
    INTRASTATE = "intrastate"
    INTERSTATE = "interstate"


class PaymentTerms(str, Enum):
    DUE_ON_RECEIPT = "due_on_receipt"
    NET_15 = "net_15"
    NET_30 = "net_30"
    NET_45 = "net_45"
    NET_60 = "net_60"
    CUSTOM = "custom"


# =============================================================================
# IDENTITY
# =============================================================================

class Identity(BaseModel):
    """The signed-in user as supplied by the identity provider."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID
    email: str = Field(..., min_length=3, max_length=320)

    @property
    def normalized_email(self) -> str:
        return self.email.lower()


# =============================================================================
# BASE ENTITY
# =============================================================================

class StoredEntity(BaseModel):
    """Fields shared by every stored record."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=utc_now)


class OwnedEntity(StoredEntity):
    """
    A record controlled by an owner and optionally scoped to a business.

    Both references are moved together when a business is claimed.
    """
    owner_id: Optional[UUID] = None
    business_id: Optional[UUID] = None


# =============================================================================
# INVOICE GRAPH
# =============================================================================

class LineItem(StoredEntity):
    """
    One row on an invoice or estimate.

    amount is always quantity x rate; it is filled in when omitted.
    """
    invoice_id: Optional[UUID] = None
    description: str = Field(default="", max_length=500)
    sac_code: Optional[str] = Field(default=None, max_length=20)
    item_type: Optional[str] = Field(default=None, pattern="^(service|custom)$")
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    rate: Decimal = Field(default=ZERO, ge=0)
    amount: Optional[Decimal] = Field(default=None, ge=0)

    @model_validator(mode='after')
    def fill_amount(self) -> 'LineItem':
        if self.amount is None:
            self.amount = self.quantity * self.rate
        return self

    @property
    def expected_amount(self) -> Decimal:
        return self.quantity * self.rate


class Invoice(OwnedEntity):
    """
    An invoice as it lives in the store.

    advance_amount and tds_amount are cumulative: every settlement adds to
    them, nothing subtracts.
    """
    invoice_number: Optional[str] = Field(default=None, max_length=60)
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    payment_terms: Optional[str] = None
    order_number: Optional[str] = None
    subject: Optional[str] = None

    status: InvoiceStatus = InvoiceStatus.DRAFT

    # Amounts
    subtotal: Decimal = ZERO
    cgst: Optional[Decimal] = None
    sgst: Optional[Decimal] = None
    igst: Optional[Decimal] = None
    total: Decimal = ZERO

    # Settlement state
    advance_amount: Decimal = ZERO
    tds_amount: Decimal = ZERO
    is_advance_received: bool = False
    tds_deducted: bool = False
    paid_at: Optional[datetime] = None

    notes: Optional[str] = None
    terms_and_conditions: Optional[str] = None

    line_items: list[LineItem] = Field(default_factory=list)

    # Weak links
    client_id: Optional[UUID] = None
    bank_account_id: Optional[UUID] = None
    attachment_id: Optional[UUID] = None

    @property
    def cgst_value(self) -> Decimal:
        return self.cgst or ZERO

    @property
    def sgst_value(self) -> Decimal:
        return self.sgst or ZERO

    @property
    def igst_value(self) -> Decimal:
        return self.igst or ZERO

    @property
    def tax_total(self) -> Decimal:
        return self.cgst_value + self.sgst_value + self.igst_value

    @property
    def tax_mode(self) -> Optional[TaxMode]:
        """Which taxation mode is populated, None if no tax is charged."""
        if self.igst_value > 0:
            return TaxMode.INTERSTATE
        if self.cgst_value > 0 or self.sgst_value > 0:
            return TaxMode.INTRASTATE
        return None

    @property
    def has_mixed_tax_modes(self) -> bool:
        return self.igst_value > 0 and (self.cgst_value > 0 or self.sgst_value > 0)

    @property
    def net_due(self) -> Decimal:
        return self.total - self.advance_amount - self.tds_amount

    def effective_status(self, today: date) -> InvoiceStatus:
        """Stored status, or OVERDUE when unpaid past its due date."""
        if (
            self.status not in (InvoiceStatus.PAID, InvoiceStatus.DRAFT)
            and self.due_date is not None
            and self.due_date < today
        ):
            return InvoiceStatus.OVERDUE
        return self.status


class Attachment(StoredEntity):
    """A file attached to an invoice or expense; only the reference is kept."""
    url: str
    invoice_id: Optional[UUID] = None
    owner_id: Optional[UUID] = None


class Client(OwnedEntity):
    display_name: Optional[str] = Field(default=None, max_length=200)
    first_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = Field(default=None, max_length=500)
    gstin: Optional[str] = Field(default=None, max_length=15)
    payment_terms: Optional[str] = None
    custom_term_days: Optional[int] = Field(default=None, ge=0)


class Service(OwnedEntity):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    sac_code: Optional[str] = None
    rate: Decimal = Field(default=ZERO, ge=0)
    is_active: bool = True


class BankAccount(OwnedEntity):
    label: Optional[str] = None
    bank_name: str = ""
    holder_name: str = ""
    account_number: str = ""
    ifsc: str = ""
    upi_id: Optional[str] = None
    cheque_name: Optional[str] = None
    is_active: bool = True


class Tax(OwnedEntity):
    name: str = Field(..., min_length=1)
    tax_type: Optional[str] = None
    rate: Decimal = Field(default=ZERO, ge=0)
    is_default: bool = False


class Expense(OwnedEntity):
    description: str = ""
    amount: Decimal = Field(default=ZERO, ge=0)
    expense_date: Optional[date] = None
    category: Optional[str] = None
    vendor_name: Optional[str] = None
    attachment_id: Optional[UUID] = None


class TermsTemplate(OwnedEntity):
    title: str = ""
    content: str = ""
    is_default: bool = False


class Business(StoredEntity):
    """
    A business profile.

    A PENDING_CLAIM business is a placeholder an administrator created for a
    user who has not signed up yet; `email` is the address that may claim it.
    """
    name: str = Field(..., min_length=1, max_length=200)
    legal_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pin: Optional[str] = None
    country: Optional[str] = None
    gstin: Optional[str] = None
    pan: Optional[str] = None
    brand_color: Optional[str] = Field(default=None, pattern="^#[0-9a-fA-F]{6}$")
    signature_url: Optional[str] = None

    # Invoice number series
    invoice_prefix: Optional[str] = None
    invoice_separator: Optional[str] = None
    invoice_include_fy: bool = False
    invoice_fy_format: Optional[str] = Field(default=None, pattern="^(FY25|25)$")
    invoice_start_number: Optional[int] = Field(default=None, ge=1)
    invoice_padding: Optional[int] = Field(default=None, ge=1, le=10)
    invoice_template: Optional[str] = None

    status: BusinessStatus = BusinessStatus.ACTIVE
    created_by: BusinessCreator = BusinessCreator.USER
    owner_id: Optional[UUID] = None

    @model_validator(mode='after')
    def validate_claim_state(self) -> 'Business':
        if self.status == BusinessStatus.PENDING_CLAIM and not self.email:
            raise ValueError("A pending_claim business needs a claim email")
        return self

    @classmethod
    def create_for_user(cls, identity: Identity, name: str, **fields) -> 'Business':
        """A profile the user creates for themselves: owned and active at once."""
        return cls(
            name=name,
            owner_id=identity.id,
            status=BusinessStatus.ACTIVE,
            created_by=BusinessCreator.USER,
            **fields,
        )

    @classmethod
    def provision_for_claim(
        cls,
        admin: Identity,
        name: str,
        claim_email: str,
        **fields,
    ) -> 'Business':
        """A concierge profile held by an administrator until claimed."""
        return cls(
            name=name,
            email=claim_email,
            owner_id=admin.id,
            status=BusinessStatus.PENDING_CLAIM,
            created_by=BusinessCreator.ADMIN,
            **fields,
        )

    def is_claimable_by(self, identity: Identity) -> bool:
        return (
            self.status == BusinessStatus.PENDING_CLAIM
            and self.email is not None
            and self.email.lower() == identity.normalized_email
        )


class TDSEntry(StoredEntity):
    """
    Ledger record of tax withheld by a client.

    CRITICAL: Append-only. Entries are frozen once built and the store has
    no operation that updates them.
    """
    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(..., gt=0)
    fiscal_year: str = Field(..., pattern=r"^\d{4}-\d{4}$")
    section: Optional[str] = None
    recorded_on: date
    has_certificate: bool = False
    notes: Optional[str] = None

    owner_id: Optional[UUID] = None
    client_id: Optional[UUID] = None
    business_id: Optional[UUID] = None
    invoice_id: Optional[UUID] = None


ENTITY_MODELS: dict[EntityKind, type[StoredEntity]] = {
    EntityKind.BUSINESS: Business,
    EntityKind.CLIENT: Client,
    EntityKind.INVOICE: Invoice,
    EntityKind.LINE_ITEM: LineItem,
    EntityKind.SERVICE: Service,
    EntityKind.BANK_ACCOUNT: BankAccount,
    EntityKind.TAX: Tax,
    EntityKind.EXPENSE: Expense,
    EntityKind.TERMS_TEMPLATE: TermsTemplate,
    EntityKind.TDS_ENTRY: TDSEntry,
    EntityKind.ATTACHMENT: Attachment,
}
