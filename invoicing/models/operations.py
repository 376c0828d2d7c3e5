"""
Store Operations

Every change the core makes to the store is expressed as one of the
operations below and submitted as a list (one transaction).

DESIGN DECISION: Operations are a tagged union on `kind` with an explicit
field set per case, instead of an open-ended key/value payload. A typo in a
field name is a validation error, not a silently ignored attribute, and the
store can exhaustively dispatch on `kind`.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, ClassVar, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from invoicing.models.entities import (
    Business,
    BusinessStatus,
    EntityKind,
    Invoice,
    InvoiceStatus,
    LineItem,
    TDSEntry,
    utc_now,
)


class _Operation(BaseModel):
    model_config = ConfigDict(frozen=True)


# =============================================================================
# OWNER LINKS - one case per entity kind
# =============================================================================

class _OwnerLink(_Operation):
    """
    Point an entity's owner reference at a new identity.

    This is a set-assignment, so applying it twice is harmless.
    """
    entity_kind: ClassVar[EntityKind]

    entity_id: UUID
    owner_id: UUID


class LinkBusinessOwner(_OwnerLink):
    kind: Literal["link_business_owner"] = "link_business_owner"
    entity_kind: ClassVar[EntityKind] = EntityKind.BUSINESS


class LinkClientOwner(_OwnerLink):
    kind: Literal["link_client_owner"] = "link_client_owner"
    entity_kind: ClassVar[EntityKind] = EntityKind.CLIENT


class LinkInvoiceOwner(_OwnerLink):
    kind: Literal["link_invoice_owner"] = "link_invoice_owner"
    entity_kind: ClassVar[EntityKind] = EntityKind.INVOICE


class LinkServiceOwner(_OwnerLink):
    kind: Literal["link_service_owner"] = "link_service_owner"
    entity_kind: ClassVar[EntityKind] = EntityKind.SERVICE


class LinkBankAccountOwner(_OwnerLink):
    kind: Literal["link_bank_account_owner"] = "link_bank_account_owner"
    entity_kind: ClassVar[EntityKind] = EntityKind.BANK_ACCOUNT


class LinkTaxOwner(_OwnerLink):
    kind: Literal["link_tax_owner"] = "link_tax_owner"
    entity_kind: ClassVar[EntityKind] = EntityKind.TAX


class LinkExpenseOwner(_OwnerLink):
    kind: Literal["link_expense_owner"] = "link_expense_owner"
    entity_kind: ClassVar[EntityKind] = EntityKind.EXPENSE


class LinkTermsTemplateOwner(_OwnerLink):
    kind: Literal["link_terms_template_owner"] = "link_terms_template_owner"
    entity_kind: ClassVar[EntityKind] = EntityKind.TERMS_TEMPLATE


OWNER_LINKS: dict[EntityKind, type[_OwnerLink]] = {
    cls.entity_kind: cls
    for cls in (
        LinkBusinessOwner,
        LinkClientOwner,
        LinkInvoiceOwner,
        LinkServiceOwner,
        LinkBankAccountOwner,
        LinkTaxOwner,
        LinkExpenseOwner,
        LinkTermsTemplateOwner,
    )
}


def link_owner(kind: EntityKind, entity_id: UUID, owner_id: UUID) -> _OwnerLink:
    """Build the owner-link case for an entity kind."""
    try:
        link_cls = OWNER_LINKS[kind]
    except KeyError:
        raise ValueError(f"Entities of kind {kind.value!r} have no owner link")
    return link_cls(entity_id=entity_id, owner_id=owner_id)


# =============================================================================
# CLAIMING
# =============================================================================

class ClaimBusiness(_Operation):
    """
    Conditionally activate a business for its claimant.

    The store applies this only if the business still has `expected_status`;
    otherwise the whole transaction is rejected with a ConflictError. A
    second claim racing the first therefore fails deterministically instead
    of relying on the idempotence of the owner links.
    """
    kind: Literal["claim_business"] = "claim_business"

    business_id: UUID
    owner_id: UUID
    expected_status: BusinessStatus = BusinessStatus.PENDING_CLAIM
    new_status: BusinessStatus = BusinessStatus.ACTIVE


# =============================================================================
# SETTLEMENT
# =============================================================================

class UpdateInvoiceSettlement(_Operation):
    """New cumulative settlement state for one invoice."""
    kind: Literal["update_invoice_settlement"] = "update_invoice_settlement"

    invoice_id: UUID
    advance_amount: Decimal
    tds_amount: Decimal
    tds_deducted: bool
    is_advance_received: bool
    status: InvoiceStatus
    paid_at: Optional[datetime] = None


class CreateTDSEntry(_Operation):
    """Append one entry to the TDS ledger."""
    kind: Literal["create_tds_entry"] = "create_tds_entry"

    entry: TDSEntry


# =============================================================================
# INVOICE / BUSINESS PERSISTENCE
# =============================================================================

class SaveInvoice(_Operation):
    """
    Upsert an invoice's own fields.

    Line items travel as separate SaveLineItem operations; any line_items on
    the payload are not stored with the invoice.
    """
    kind: Literal["save_invoice"] = "save_invoice"

    invoice: Invoice


class SaveLineItem(_Operation):
    kind: Literal["save_line_item"] = "save_line_item"

    line_item: LineItem


class SaveBusiness(_Operation):
    kind: Literal["save_business"] = "save_business"

    business: Business


class DeleteInvoice(_Operation):
    kind: Literal["delete_invoice"] = "delete_invoice"

    invoice_id: UUID


class DeleteLineItem(_Operation):
    kind: Literal["delete_line_item"] = "delete_line_item"

    line_item_id: UUID


class DeleteAttachment(_Operation):
    kind: Literal["delete_attachment"] = "delete_attachment"

    attachment_id: UUID


Operation = Annotated[
    Union[
        LinkBusinessOwner,
        LinkClientOwner,
        LinkInvoiceOwner,
        LinkServiceOwner,
        LinkBankAccountOwner,
        LinkTaxOwner,
        LinkExpenseOwner,
        LinkTermsTemplateOwner,
        ClaimBusiness,
        UpdateInvoiceSettlement,
        CreateTDSEntry,
        SaveInvoice,
        SaveLineItem,
        SaveBusiness,
        DeleteInvoice,
        DeleteLineItem,
        DeleteAttachment,
    ],
    Field(discriminator="kind"),
]

# For (de)serializing transactions, e.g. in logs or a remote store
OPERATIONS_ADAPTER = TypeAdapter(list[Operation])


class TransactionReceipt(BaseModel):
    """Acknowledgement that a transaction was committed."""
    model_config = ConfigDict(frozen=True)

    transaction_id: UUID = Field(default_factory=uuid4)
    committed_at: datetime = Field(default_factory=utc_now)
    operation_count: int = Field(ge=0)
