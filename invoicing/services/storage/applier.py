"""
Operation Applier

Applies a transaction to a snapshot of store state and returns the new
state. Shared by every store implementation so that all of them agree on
what each operation means.

State is copy-on-write: the input mapping is never mutated, collections that
a transaction touches are copied, and entities are replaced rather than
edited. If any operation raises, the caller still holds the old state
untouched, which is what makes a transaction all-or-nothing.
"""

from collections.abc import Mapping, Sequence
from uuid import UUID

from invoicing.models.entities import (
    Business,
    EntityKind,
    Invoice,
    StoredEntity,
)
from invoicing.models.operations import (
    ClaimBusiness,
    CreateTDSEntry,
    DeleteAttachment,
    DeleteInvoice,
    DeleteLineItem,
    Operation,
    SaveBusiness,
    SaveInvoice,
    SaveLineItem,
    UpdateInvoiceSettlement,
    _OwnerLink,
)
from invoicing.services.storage.interface import ConflictError, NotFoundError


State = Mapping[EntityKind, Mapping[UUID, StoredEntity]]


class _Transaction:
    """Working copy of the state for one transaction."""

    def __init__(self, state: State):
        self._base = state
        self._copied: dict[EntityKind, dict[UUID, StoredEntity]] = {}

    def read(self, kind: EntityKind) -> Mapping[UUID, StoredEntity]:
        if kind in self._copied:
            return self._copied[kind]
        return self._base.get(kind, {})

    def write(self, kind: EntityKind) -> dict[UUID, StoredEntity]:
        if kind not in self._copied:
            self._copied[kind] = dict(self._base.get(kind, {}))
        return self._copied[kind]

    def require(self, kind: EntityKind, entity_id: UUID) -> StoredEntity:
        try:
            return self.read(kind)[entity_id]
        except KeyError:
            raise NotFoundError(f"{kind.value} not found: {entity_id}")

    def result(self) -> dict[EntityKind, Mapping[UUID, StoredEntity]]:
        merged = dict(self._base)
        merged.update(self._copied)
        return merged


def apply_operations(state: State, operations: Sequence[Operation]) -> dict:
    """
    Apply operations in order and return the resulting state.

    Raises:
        NotFoundError: An operation references a missing entity
        ConflictError: A guarded precondition failed or an append-only
                       record would be overwritten
    """
    tx = _Transaction(state)
    for operation in operations:
        _apply(tx, operation)
    return tx.result()


def _apply(tx: _Transaction, op: Operation) -> None:
    if isinstance(op, _OwnerLink):
        current = tx.require(op.entity_kind, op.entity_id)
        tx.write(op.entity_kind)[op.entity_id] = current.model_copy(
            update={"owner_id": op.owner_id}
        )

    elif isinstance(op, ClaimBusiness):
        business: Business = tx.require(EntityKind.BUSINESS, op.business_id)
        if business.status != op.expected_status:
            raise ConflictError(
                f"Business {op.business_id} is {business.status.value}, "
                f"expected {op.expected_status.value}"
            )
        tx.write(EntityKind.BUSINESS)[op.business_id] = business.model_copy(
            update={"status": op.new_status, "owner_id": op.owner_id}
        )

    elif isinstance(op, UpdateInvoiceSettlement):
        invoice: Invoice = tx.require(EntityKind.INVOICE, op.invoice_id)
        update = {
            "advance_amount": op.advance_amount,
            "tds_amount": op.tds_amount,
            "tds_deducted": op.tds_deducted,
            "is_advance_received": op.is_advance_received,
            "status": op.status,
        }
        if op.paid_at is not None:
            update["paid_at"] = op.paid_at
        tx.write(EntityKind.INVOICE)[op.invoice_id] = invoice.model_copy(update=update)

    elif isinstance(op, CreateTDSEntry):
        if op.entry.id in tx.read(EntityKind.TDS_ENTRY):
            raise ConflictError(f"TDS entry {op.entry.id} already exists")
        tx.write(EntityKind.TDS_ENTRY)[op.entry.id] = op.entry

    elif isinstance(op, SaveInvoice):
        tx.write(EntityKind.INVOICE)[op.invoice.id] = op.invoice.model_copy(
            update={"line_items": []}
        )

    elif isinstance(op, SaveLineItem):
        if op.line_item.invoice_id is None:
            raise ValueError("A stored line item must belong to an invoice")
        tx.write(EntityKind.LINE_ITEM)[op.line_item.id] = op.line_item

    elif isinstance(op, SaveBusiness):
        tx.write(EntityKind.BUSINESS)[op.business.id] = op.business

    elif isinstance(op, DeleteInvoice):
        _delete_invoice(tx, op.invoice_id)

    elif isinstance(op, DeleteLineItem):
        tx.write(EntityKind.LINE_ITEM).pop(op.line_item_id, None)

    elif isinstance(op, DeleteAttachment):
        tx.write(EntityKind.ATTACHMENT).pop(op.attachment_id, None)

    else:
        raise ValueError(f"Unsupported operation: {op!r}")


def _delete_invoice(tx: _Transaction, invoice_id: UUID) -> None:
    """Remove an invoice with everything it owns."""
    invoice = tx.read(EntityKind.INVOICE).get(invoice_id)
    if invoice is None:
        return

    line_items = tx.write(EntityKind.LINE_ITEM)
    for item_id in [i for i, item in line_items.items() if item.invoice_id == invoice_id]:
        del line_items[item_id]

    attachments = tx.write(EntityKind.ATTACHMENT)
    for attachment_id in [
        a for a, attachment in attachments.items()
        if attachment.invoice_id == invoice_id or a == invoice.attachment_id
    ]:
        del attachments[attachment_id]

    del tx.write(EntityKind.INVOICE)[invoice_id]
