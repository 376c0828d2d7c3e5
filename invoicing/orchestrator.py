"""
Main Orchestrator for the Invoicing Core

This module ties together all the components and defines the
end-to-end flows for:
1. Recording a payment (load -> settle -> submit -> audit)
2. Saving and deleting invoices (validate -> submit -> audit)
3. Claiming a provisioned business on sign-in
4. Downloading an invoice document (load -> snapshot -> render)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is submitted before validation passes
- Every transaction is acknowledged or reported as failed
- Every step is audited

Session state (who is signed in, which business is active, which template
they prefer) lives in an AppState object with explicit start and stop,
not in module globals.
"""

import asyncio
import contextlib
from datetime import date, datetime
from typing import Any, NamedTuple, Optional
from uuid import UUID

import structlog

from invoicing.audit import AuditLogger, create_correlation_id
from invoicing.billing import compute_invoice_totals, derive_due_date, next_invoice_number
from invoicing.claiming import ClaimError, ClaimingCoordinator, ClaimOutcome
from invoicing.config import get_settings
from invoicing.documents import RenderedDocument, normalize_invoice, render_document
from invoicing.models.entities import (
    BankAccount,
    Business,
    BusinessStatus,
    Client,
    EntityKind,
    Identity,
    Invoice,
    LineItem,
    TaxMode,
)
from invoicing.models.operations import (
    DeleteInvoice,
    DeleteLineItem,
    Operation,
    SaveInvoice,
    SaveLineItem,
)
from invoicing.queries import LedgerQueryExecutor
from invoicing.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsStore,
    InMemoryAuditStorage,
    InMemoryStore,
    StoreInterface,
    StoreQuery,
)
from invoicing.services.transactions import TransactionSubmitter
from invoicing.settlement import SettlementResult, apply_payment
from invoicing.validation import InvoiceValidationError, InvoiceValidator


logger = structlog.get_logger(__name__)


class AppState:
    """
    The signed-in session.

    start() claims a pending business if one matches the identity and keeps
    a watcher running for profiles provisioned later; stop() cancels it.
    """

    def __init__(self, store: StoreInterface, coordinator: ClaimingCoordinator):
        self._store = store
        self._coordinator = coordinator
        self._watcher: Optional[asyncio.Task] = None

        self.identity: Optional[Identity] = None
        self.active_business_id: Optional[UUID] = None
        self.preferred_template: Optional[str] = None

    @property
    def is_started(self) -> bool:
        return self.identity is not None

    @property
    def watcher_running(self) -> bool:
        return self._watcher is not None and not self._watcher.done()

    def require_identity(self) -> Identity:
        if self.identity is None:
            raise RuntimeError("No identity is signed in")
        return self.identity

    async def start(self, identity: Identity) -> ClaimOutcome:
        """
        Begin a session for an identity.

        Returns the outcome of the initial claim check.
        """
        if self.identity is not None:
            await self.stop()

        self.identity = identity
        self._coordinator.reset()

        try:
            outcome = await self._coordinator.claim_if_needed(identity)
        except ClaimError as e:
            # The watcher retries on the next change
            logger.error("initial_claim_failed", business_id=str(e.business_id), error=str(e))
            outcome = ClaimOutcome(claimed=False, business_id=e.business_id, reason=str(e))

        if outcome.claimed:
            self.active_business_id = outcome.business_id
        else:
            self.active_business_id = await self._first_owned_business(identity)
            # Only an identity with no business of its own waits for a claim
            if self.active_business_id is None:
                self._watcher = asyncio.create_task(
                    self._watch(identity),
                    name=f"claim-watcher-{identity.id}",
                )

        logger.info(
            "session_started",
            identity_id=str(identity.id),
            active_business_id=str(self.active_business_id) if self.active_business_id else None,
            claimed=outcome.claimed,
        )
        return outcome

    async def stop(self) -> None:
        """End the session and cancel the claim watcher."""
        if self._watcher is not None:
            self._watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._watcher
            self._watcher = None

        self._coordinator.reset()
        self.identity = None
        self.active_business_id = None
        self.preferred_template = None

    async def _watch(self, identity: Identity) -> None:
        await self._coordinator.watch(identity)
        if self.identity == identity and self.active_business_id is None:
            self.active_business_id = await self._first_owned_business(identity)

    async def _first_owned_business(self, identity: Identity) -> Optional[UUID]:
        owned = await self._store.query(
            StoreQuery(entity=EntityKind.BUSINESS, where={"owner_id": identity.id})
        )
        active = [b for b in owned if b.status == BusinessStatus.ACTIVE]
        active.sort(key=lambda b: (b.created_at, str(b.id)))
        return active[0].id if active else None


class PaymentFlow:
    """
    Orchestrates recording a payment.

    Flow:
    1. Load the invoice fresh from the store
    2. Settle → new cumulative amounts, status and optional TDS entry
    3. Submit → one transaction, acknowledged or raised
    4. Audit
    """

    def __init__(
        self,
        submitter: TransactionSubmitter,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._submitter = submitter
        self._store = submitter.store
        self._audit_logger = audit_logger or AuditLogger()

    async def record_payment(
        self,
        invoice_id: UUID,
        cash_amount: Any,
        tax_withheld: Any = None,
        tax_section: Optional[str] = None,
        identity: Optional[Identity] = None,
        paid_on: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementResult:
        """
        Apply a payment to an invoice and commit it.

        Raises:
            NotFoundError: If the invoice doesn't exist
            TransactionFailedError: If the store did not acknowledge the
                transaction. Nothing was applied.
        """
        correlation_id = correlation_id or create_correlation_id()

        invoice = await self._store.get_invoice(invoice_id)
        result = apply_payment(
            invoice,
            cash_amount,
            tax_withheld,
            tax_section,
            paid_on=paid_on,
            owner_id=identity.id if identity else None,
        )

        await self._submitter.submit(result.operations, correlation_id)

        await self._audit_logger.log_payment_recorded(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            cash_amount=result.cash_amount,
            tds_amount=result.tax_withheld,
            new_status=result.status.value,
            net_due=result.net_due,
            correlation_id=correlation_id,
        )
        if result.ledger_entry is not None:
            entry = result.ledger_entry.entry
            await self._audit_logger.log_tds_entry_appended(
                entry_id=entry.id,
                invoice_id=invoice.id,
                amount=entry.amount,
                fiscal_year=entry.fiscal_year,
                correlation_id=correlation_id,
            )
        if result.is_overpaid:
            await self._audit_logger.log_overpayment(
                invoice_id=invoice.id,
                overpaid_amount=result.overpaid_amount,
                correlation_id=correlation_id,
            )

        return result


class InvoiceFlow:
    """
    Orchestrates creating, editing and deleting invoices.

    Validation runs before any operation is built; an invalid invoice never
    reaches the store.
    """

    def __init__(
        self,
        submitter: TransactionSubmitter,
        validator: Optional[InvoiceValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._submitter = submitter
        self._store = submitter.store
        self._validator = validator or InvoiceValidator(self._store)
        self._audit_logger = audit_logger or AuditLogger()

    async def draft_invoice(
        self,
        business: Business,
        client: Client,
        line_items: list[LineItem],
        invoice_date: date,
        tax_mode: TaxMode = TaxMode.INTRASTATE,
        payment_terms: Optional[str] = None,
    ) -> Invoice:
        """
        Prefill a new invoice: next number, totals and due date.

        Nothing is stored until save_invoice.
        """
        existing = await self._store.query(
            StoreQuery(entity=EntityKind.INVOICE, where={"business_id": business.id})
        )
        terms = payment_terms or client.payment_terms or get_settings().invoice.default_payment_terms
        totals = compute_invoice_totals(line_items, tax_mode)

        return Invoice(
            invoice_number=next_invoice_number(business, existing, invoice_date),
            invoice_date=invoice_date,
            due_date=derive_due_date(invoice_date, terms, client),
            payment_terms=terms,
            subtotal=totals.subtotal,
            cgst=totals.cgst,
            sgst=totals.sgst,
            igst=totals.igst,
            total=totals.total,
            line_items=line_items,
            client_id=client.id,
            business_id=business.id,
        )

    async def save_invoice(
        self,
        invoice: Invoice,
        identity: Identity,
        correlation_id: Optional[UUID] = None,
    ) -> Invoice:
        """
        Validate and store an invoice with its line items.

        New invoices are owned by the saving identity. On edit, line items
        no longer on the invoice are deleted in the same transaction.

        Raises:
            InvoiceValidationError: If validation found blocking issues
        """
        correlation_id = correlation_id or create_correlation_id()

        result = await self._validator.validate_for_save(invoice)
        if not result.is_valid:
            await self._audit_logger.log_validation_failed(
                invoice_id=invoice.id,
                issues=[issue.model_dump() for issue in result.issues],
                correlation_id=correlation_id,
            )
            raise InvoiceValidationError(result)

        existing = await self._store.get(EntityKind.INVOICE, invoice.id)
        is_new = existing is None
        if is_new and invoice.owner_id is None:
            invoice = invoice.model_copy(update={"owner_id": identity.id})

        line_items = [
            item.model_copy(update={"invoice_id": invoice.id})
            for item in invoice.line_items
        ]
        invoice = invoice.model_copy(update={"line_items": line_items})

        ops: list[Operation] = [SaveInvoice(invoice=invoice)]
        ops.extend(SaveLineItem(line_item=item) for item in line_items)

        if not is_new:
            kept = {item.id for item in line_items}
            stored_items = await self._store.query(
                StoreQuery(entity=EntityKind.LINE_ITEM, where={"invoice_id": invoice.id})
            )
            ops.extend(
                DeleteLineItem(line_item_id=item.id)
                for item in stored_items
                if item.id not in kept
            )

        await self._submitter.submit(ops, correlation_id)
        await self._audit_logger.log_invoice_saved(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            is_new=is_new,
            correlation_id=correlation_id,
        )
        return invoice

    async def delete_invoice(
        self,
        invoice_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Delete an invoice with its line items and attachment.

        Raises:
            NotFoundError: If the invoice doesn't exist
        """
        correlation_id = correlation_id or create_correlation_id()

        invoice = await self._store.get_invoice(invoice_id)
        await self._submitter.submit([DeleteInvoice(invoice_id=invoice_id)], correlation_id)
        await self._audit_logger.log_invoice_deleted(
            invoice_id=invoice_id,
            line_item_count=len(invoice.line_items),
            correlation_id=correlation_id,
        )


class DocumentFlow:
    """
    Orchestrates invoice downloads.

    Always renders from the latest committed state.
    """

    def __init__(
        self,
        store: StoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()

    async def download(
        self,
        invoice_id: UUID,
        template_id: Optional[str] = None,
        app_state: Optional[AppState] = None,
        correlation_id: Optional[UUID] = None,
    ) -> RenderedDocument:
        """
        Render an invoice.

        Template resolution: explicit choice, then the session's
        preference, then the business's, then the configured default.

        Raises:
            NotFoundError: If the invoice doesn't exist
        """
        correlation_id = correlation_id or create_correlation_id()

        invoice = await self._store.get_invoice(invoice_id)
        business: Optional[Business] = None
        client: Optional[Client] = None
        bank_account: Optional[BankAccount] = None
        if invoice.business_id:
            business = await self._store.get(EntityKind.BUSINESS, invoice.business_id)
        if invoice.client_id:
            client = await self._store.get(EntityKind.CLIENT, invoice.client_id)
        if invoice.bank_account_id:
            bank_account = await self._store.get(EntityKind.BANK_ACCOUNT, invoice.bank_account_id)

        template_id = (
            template_id
            or (app_state.preferred_template if app_state else None)
            or (business.invoice_template if business else None)
        )

        snapshot = normalize_invoice(invoice, business, client, bank_account)
        document = render_document(template_id, snapshot)

        await self._audit_logger.log_document_rendered(
            invoice_id=invoice.id,
            template_id=document.template_id,
            filename=document.filename,
            correlation_id=correlation_id,
        )
        return document


class AppComponents(NamedTuple):
    app_state: AppState
    payment_flow: PaymentFlow
    invoice_flow: InvoiceFlow
    document_flow: DocumentFlow
    ledger: LedgerQueryExecutor
    store: StoreInterface


def create_app_components(
    use_storage: bool = True,
    store: Optional[StoreInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use Google Sheets storage.
                    Set to False for an in-memory store.
        store: Explicit store, overriding use_storage
        audit_storage: Explicit audit storage, overriding use_storage

    Returns:
        AppComponents
    """
    if store is None:
        if use_storage:
            try:
                sheets_client = GoogleSheetsClient()
                store = GoogleSheetsStore(sheets_client)
                audit_storage = audit_storage or GoogleSheetsAuditStorage(sheets_client)
            except Exception as e:
                # Storage not configured - continue in memory
                logger.warning("storage_not_configured", error=str(e))
                store = InMemoryStore()
        else:
            store = InMemoryStore()

    if audit_storage is None:
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    submitter = TransactionSubmitter(store, audit_logger)
    coordinator = ClaimingCoordinator(submitter, audit_logger)

    return AppComponents(
        app_state=AppState(store, coordinator),
        payment_flow=PaymentFlow(submitter, audit_logger),
        invoice_flow=InvoiceFlow(submitter, audit_logger=audit_logger),
        document_flow=DocumentFlow(store, audit_logger),
        ledger=LedgerQueryExecutor(store),
        store=store,
    )
