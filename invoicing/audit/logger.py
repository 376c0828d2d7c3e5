"""
Audit Logger

DESIGN DECISION: Every money-moving or ownership-moving action is logged.
This provides:
1. Traceability of each settlement and claim
2. Debugging capability
3. A visible trail of failures the user would otherwise never see

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from invoicing.models.audit import AuditEvent, AuditEventBuilder
from invoicing.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("invoicing.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # -------------------------------------------------------------------------
    # Settlement
    # -------------------------------------------------------------------------

    async def log_payment_recorded(
        self,
        invoice_id: UUID,
        invoice_number: Optional[str],
        cash_amount: Decimal,
        tds_amount: Decimal,
        new_status: str,
        net_due: Decimal,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.payment_recorded(
            invoice_id=invoice_id,
            invoice_number=invoice_number,
            cash_amount=cash_amount,
            tds_amount=tds_amount,
            new_status=new_status,
            net_due=net_due,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_tds_entry_appended(
        self,
        entry_id: UUID,
        invoice_id: UUID,
        amount: Decimal,
        fiscal_year: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.tds_entry_appended(
            entry_id=entry_id,
            invoice_id=invoice_id,
            amount=amount,
            fiscal_year=fiscal_year,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_overpayment(
        self,
        invoice_id: UUID,
        overpaid_amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.overpayment_detected(
            invoice_id=invoice_id,
            overpaid_amount=overpaid_amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    # -------------------------------------------------------------------------
    # Invoice lifecycle
    # -------------------------------------------------------------------------

    async def log_invoice_saved(
        self,
        invoice_id: UUID,
        invoice_number: Optional[str],
        is_new: bool,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.invoice_saved(
            invoice_id=invoice_id,
            invoice_number=invoice_number,
            is_new=is_new,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_invoice_deleted(
        self,
        invoice_id: UUID,
        line_item_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.invoice_deleted(
            invoice_id=invoice_id,
            line_item_count=line_item_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        invoice_id: UUID,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        event = AuditEventBuilder.validation_failed(
            invoice_id=invoice_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    # -------------------------------------------------------------------------
    # Claiming
    # -------------------------------------------------------------------------

    async def log_claim_started(
        self,
        business_id: UUID,
        owner_id: UUID,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.claim_started(
            business_id=business_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_claim_completed(
        self,
        business_id: UUID,
        owner_id: UUID,
        relinked_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.claim_completed(
            business_id=business_id,
            owner_id=owner_id,
            relinked_count=relinked_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_claim_skipped(
        self,
        reason: str,
        correlation_id: UUID,
        business_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.claim_skipped(
            reason=reason,
            correlation_id=correlation_id,
            business_id=business_id,
        )
        await self.log(event)

    async def log_claim_failed(
        self,
        business_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.claim_failed(
            business_id=business_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    # -------------------------------------------------------------------------
    # Documents and transport
    # -------------------------------------------------------------------------

    async def log_document_rendered(
        self,
        invoice_id: UUID,
        template_id: str,
        filename: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.document_rendered(
            invoice_id=invoice_id,
            template_id=template_id,
            filename=filename,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_submitted(
        self,
        transaction_id: UUID,
        operation_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_submitted(
            transaction_id=transaction_id,
            operation_count=operation_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_failed(
        self,
        operation_count: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.transaction_failed(
            operation_count=operation_count,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., recording a payment).
    Pass it through all subsequent operations.
    """
    return uuid4()
