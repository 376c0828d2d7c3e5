"""Invoice documents: snapshot building and template rendering."""

from invoicing.documents.snapshot import (
    SCHEMA_VERSION,
    DocumentSnapshot,
    SnapshotBankAccount,
    SnapshotBusiness,
    SnapshotCustomer,
    SnapshotInvoice,
    SnapshotItem,
    SnapshotTotals,
    amount_in_words,
    normalize_invoice,
)
from invoicing.documents.templates import (
    TEMPLATES,
    ClassicTemplate,
    CompactTemplate,
    CreativeTemplate,
    InvoiceTemplate,
    RenderedDocument,
    document_filename,
    get_template,
    render_document,
)

__all__ = [
    "SCHEMA_VERSION",
    "TEMPLATES",
    "ClassicTemplate",
    "CompactTemplate",
    "CreativeTemplate",
    "DocumentSnapshot",
    "InvoiceTemplate",
    "RenderedDocument",
    "SnapshotBankAccount",
    "SnapshotBusiness",
    "SnapshotCustomer",
    "SnapshotInvoice",
    "SnapshotItem",
    "SnapshotTotals",
    "amount_in_words",
    "document_filename",
    "get_template",
    "normalize_invoice",
    "render_document",
]
