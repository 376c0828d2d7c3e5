"""
Data Models Package

This package contains all Pydantic models used by the invoicing core.
All data flowing through the system must conform to these schemas.
"""

from invoicing.models.entities import (
    ENTITY_MODELS,
    Attachment,
    BankAccount,
    Business,
    BusinessCreator,
    BusinessStatus,
    Client,
    EntityKind,
    Expense,
    Identity,
    Invoice,
    InvoiceStatus,
    LineItem,
    PaymentTerms,
    Service,
    StoredEntity,
    Tax,
    TaxMode,
    TDSEntry,
    TermsTemplate,
)
from invoicing.models.operations import (
    OPERATIONS_ADAPTER,
    ClaimBusiness,
    CreateTDSEntry,
    DeleteAttachment,
    DeleteInvoice,
    DeleteLineItem,
    Operation,
    SaveBusiness,
    SaveInvoice,
    SaveLineItem,
    TransactionReceipt,
    UpdateInvoiceSettlement,
    link_owner,
)
from invoicing.models.validation import ValidationIssue, ValidationResult
from invoicing.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entities
    "ENTITY_MODELS",
    "Attachment",
    "BankAccount",
    "Business",
    "BusinessCreator",
    "BusinessStatus",
    "Client",
    "EntityKind",
    "Expense",
    "Identity",
    "Invoice",
    "InvoiceStatus",
    "LineItem",
    "PaymentTerms",
    "Service",
    "StoredEntity",
    "Tax",
    "TaxMode",
    "TDSEntry",
    "TermsTemplate",
    # Operations
    "OPERATIONS_ADAPTER",
    "ClaimBusiness",
    "CreateTDSEntry",
    "DeleteAttachment",
    "DeleteInvoice",
    "DeleteLineItem",
    "Operation",
    "SaveBusiness",
    "SaveInvoice",
    "SaveLineItem",
    "TransactionReceipt",
    "UpdateInvoiceSettlement",
    "link_owner",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
