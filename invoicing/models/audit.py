"""
Audit Models for the Invoicing Core

Every settlement, claim and document render is logged for audit purposes.
This provides:
1. Complete traceability of every money movement
2. Debugging information when a transaction is rejected
3. A record of who claimed which business profile, and when

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from invoicing.models.entities import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Settlement
    PAYMENT_RECORDED = "payment_recorded"
    TDS_ENTRY_APPENDED = "tds_entry_appended"
    OVERPAYMENT_DETECTED = "overpayment_detected"

    # Invoice persistence
    INVOICE_SAVED = "invoice_saved"
    INVOICE_DELETED = "invoice_deleted"
    VALIDATION_FAILED = "validation_failed"

    # Claiming
    CLAIM_STARTED = "claim_started"
    CLAIM_COMPLETED = "claim_completed"
    CLAIM_SKIPPED = "claim_skipped"
    CLAIM_FAILED = "claim_failed"

    # Documents
    DOCUMENT_RENDERED = "document_rendered"

    # Transport
    TRANSACTION_SUBMITTED = "transaction_submitted"
    TRANSACTION_FAILED = "transaction_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'invoice', 'business', 'document')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - all events caused by one user action share this
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.payment_recorded(invoice_id, ...)
        event = AuditEventBuilder.claim_completed(business_id, owner_id, 12, correlation_id)
    """

    @staticmethod
    def payment_recorded(
        invoice_id: UUID,
        invoice_number: Optional[str],
        cash_amount: Decimal,
        tds_amount: Decimal,
        new_status: str,
        net_due: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            entity_type="invoice",
            entity_id=invoice_id,
            correlation_id=correlation_id,
            description=f"Payment recorded on invoice {invoice_number or invoice_id}: {new_status}",
            details={
                "cash_amount": str(cash_amount),
                "tds_amount": str(tds_amount),
                "status": new_status,
                "net_due": str(net_due),
            },
            is_user_action=True,
        )

    @staticmethod
    def tds_entry_appended(
        entry_id: UUID,
        invoice_id: UUID,
        amount: Decimal,
        fiscal_year: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TDS_ENTRY_APPENDED,
            entity_type="tds_entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"TDS of {amount} recorded for FY {fiscal_year}",
            details={
                "invoice_id": str(invoice_id),
                "amount": str(amount),
                "fiscal_year": fiscal_year,
            },
        )

    @staticmethod
    def overpayment_detected(
        invoice_id: UUID,
        overpaid_amount: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OVERPAYMENT_DETECTED,
            severity=AuditSeverity.WARNING,
            entity_type="invoice",
            entity_id=invoice_id,
            correlation_id=correlation_id,
            description=f"Invoice settled beyond its total by {overpaid_amount}",
            details={"overpaid_amount": str(overpaid_amount)},
        )

    @staticmethod
    def invoice_saved(
        invoice_id: UUID,
        invoice_number: Optional[str],
        is_new: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVOICE_SAVED,
            entity_type="invoice",
            entity_id=invoice_id,
            correlation_id=correlation_id,
            description=f"Invoice {invoice_number} {'created' if is_new else 'updated'}",
            details={"is_new": is_new},
            is_user_action=True,
        )

    @staticmethod
    def invoice_deleted(
        invoice_id: UUID,
        line_item_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVOICE_DELETED,
            entity_type="invoice",
            entity_id=invoice_id,
            correlation_id=correlation_id,
            description="Invoice deleted with its line items and attachment",
            details={"line_item_count": line_item_count},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        invoice_id: UUID,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="invoice",
            entity_id=invoice_id,
            correlation_id=correlation_id,
            description=f"Invoice validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def claim_started(
        business_id: UUID,
        owner_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLAIM_STARTED,
            entity_type="business",
            entity_id=business_id,
            correlation_id=correlation_id,
            description="Claiming pending business profile",
            details={"owner_id": str(owner_id)},
        )

    @staticmethod
    def claim_completed(
        business_id: UUID,
        owner_id: UUID,
        relinked_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLAIM_COMPLETED,
            entity_type="business",
            entity_id=business_id,
            correlation_id=correlation_id,
            description=f"Business claimed; {relinked_count} dependent records relinked",
            details={
                "owner_id": str(owner_id),
                "relinked_count": relinked_count,
            },
        )

    @staticmethod
    def claim_skipped(
        reason: str,
        correlation_id: UUID,
        business_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLAIM_SKIPPED,
            severity=AuditSeverity.DEBUG,
            entity_type="business",
            entity_id=business_id,
            correlation_id=correlation_id,
            description=f"Claim skipped: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def claim_failed(
        business_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLAIM_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="business",
            entity_id=business_id,
            correlation_id=correlation_id,
            description="Claiming transaction was rejected",
            error_message=error_message,
        )

    @staticmethod
    def document_rendered(
        invoice_id: UUID,
        template_id: str,
        filename: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_RENDERED,
            entity_type="document",
            entity_id=invoice_id,
            correlation_id=correlation_id,
            description=f"Rendered {filename} with the {template_id} template",
            details={"template_id": template_id, "filename": filename},
            is_user_action=True,
        )

    @staticmethod
    def transaction_submitted(
        transaction_id: UUID,
        operation_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SUBMITTED,
            severity=AuditSeverity.DEBUG,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction with {operation_count} operations committed",
            details={"operation_count": operation_count},
        )

    @staticmethod
    def transaction_failed(
        operation_count: int,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Transaction with {operation_count} operations failed",
            error_message=error_message,
            details={"operation_count": operation_count},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
