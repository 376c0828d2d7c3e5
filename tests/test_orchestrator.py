"""
Integration tests for the end-to-end flows.

Every flow runs against the in-memory store; one asyncio.run per scenario.
"""

import asyncio
import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from invoicing.audit import AuditLogger
from invoicing.models.audit import AuditEventType
from invoicing.models.entities import (
    BankAccount,
    Business,
    BusinessStatus,
    Client,
    EntityKind,
    Identity,
    Invoice,
    InvoiceStatus,
    LineItem,
    TaxMode,
)
from invoicing.models.operations import SaveBusiness
from invoicing.orchestrator import PaymentFlow, create_app_components
from invoicing.services.storage import (
    InMemoryAuditStorage,
    InMemoryStore,
    NotFoundError,
    StoreConnectionError,
    StoreQuery,
    TransactionFailedError,
)
from invoicing.services.transactions import TransactionSubmitter
from invoicing.validation import InvoiceValidationError


ADMIN = Identity(id=uuid4(), email="admin@example.com")
USER = Identity(id=uuid4(), email="priya@example.com")
PAID_ON = datetime(2024, 5, 10, tzinfo=timezone.utc)


def seeded_records():
    """A business with one client, one bank account and one unpaid invoice."""
    business = Business.create_for_user(USER, "Acme Studio", brand_color="#1e40af")
    client = Client(display_name="Globex", owner_id=USER.id, business_id=business.id)
    bank = BankAccount(bank_name="HDFC", holder_name="Acme Studio", account_number="0001",
                       ifsc="HDFC0000001", owner_id=USER.id, business_id=business.id)
    invoice = Invoice(
        invoice_number="INV/0001",
        invoice_date=date(2024, 4, 15),
        due_date=date(2024, 5, 15),
        status=InvoiceStatus.UNPAID,
        subtotal=Decimal("10000"),
        cgst=Decimal("900"),
        sgst=Decimal("900"),
        total=Decimal("11800"),
        owner_id=USER.id,
        business_id=business.id,
        client_id=client.id,
        bank_account_id=bank.id,
    )
    item = LineItem(invoice_id=invoice.id, description="Website", rate=Decimal("10000"))
    return business, client, bank, invoice, item


def components_with(*records):
    audit = InMemoryAuditStorage()
    components = create_app_components(use_storage=False, audit_storage=audit)
    components.store.seed(*records)
    return components, audit


async def until(predicate):
    while not predicate():
        await asyncio.sleep(0)


class OfflineStore(InMemoryStore):
    async def submit(self, operations):
        raise StoreConnectionError("store unreachable")


class TestPaymentFlow:
    """Recording payments end to end."""

    def test_full_settlement(self):
        """One transaction updates the invoice and appends the TDS entry."""
        async def scenario():
            business, client, bank, invoice, item = seeded_records()
            components, audit = components_with(business, client, bank, invoice, item)

            result = await components.payment_flow.record_payment(
                invoice.id, "10800", "1000", "194J", identity=USER, paid_on=PAID_ON,
            )
            assert result.status == InvoiceStatus.PAID

            store = components.store
            assert len(store.committed) == 1
            assert [op.kind for op in store.committed[0]] == ["update_invoice_settlement", "create_tds_entry"]

            stored = await store.get(EntityKind.INVOICE, invoice.id)
            assert stored.status == InvoiceStatus.PAID
            assert stored.advance_amount == Decimal("10800")
            assert stored.tds_amount == Decimal("1000")
            assert stored.paid_at == PAID_ON

            entries = await store.query(StoreQuery(entity=EntityKind.TDS_ENTRY))
            assert len(entries) == 1
            assert entries[0].owner_id == USER.id
            assert entries[0].fiscal_year == "2024-2025"

            types = [e.event_type for e in audit.events]
            assert AuditEventType.PAYMENT_RECORDED in types
            assert AuditEventType.TDS_ENTRY_APPENDED in types
            assert AuditEventType.OVERPAYMENT_DETECTED not in types

        asyncio.run(scenario())

    def test_two_partial_payments(self):
        """The second payment builds on the committed first one."""
        async def scenario():
            business, client, bank, invoice, item = seeded_records()
            components, _ = components_with(business, client, bank, invoice, item)
            flow = components.payment_flow

            first = await flow.record_payment(invoice.id, "5000", paid_on=PAID_ON)
            assert first.status == InvoiceStatus.PARTIALLY_PAID

            second = await flow.record_payment(invoice.id, "5800", "1000", paid_on=PAID_ON)
            assert second.status == InvoiceStatus.PAID
            stored = await components.store.get(EntityKind.INVOICE, invoice.id)
            assert stored.advance_amount == Decimal("10800")

        asyncio.run(scenario())

    def test_overpayment_audited(self):
        async def scenario():
            business, client, bank, invoice, item = seeded_records()
            components, audit = components_with(business, client, bank, invoice, item)

            result = await components.payment_flow.record_payment(invoice.id, "12000", paid_on=PAID_ON)

            assert result.overpaid_amount == Decimal("200")
            assert AuditEventType.OVERPAYMENT_DETECTED in [e.event_type for e in audit.events]

        asyncio.run(scenario())

    def test_missing_invoice(self):
        async def scenario():
            components, _ = components_with()
            with pytest.raises(NotFoundError):
                await components.payment_flow.record_payment(uuid4(), "100")

        asyncio.run(scenario())

    def test_unacknowledged_transaction_raises(self):
        """A store that never acknowledges surfaces an error and keeps the invoice."""
        async def scenario():
            business, client, bank, invoice, item = seeded_records()
            store = OfflineStore([business, client, bank, invoice, item])
            audit_logger = AuditLogger(InMemoryAuditStorage())
            submitter = TransactionSubmitter(store, audit_logger, max_attempts=2, backoff_min=0, backoff_max=0)
            flow = PaymentFlow(submitter, audit_logger)

            with pytest.raises(TransactionFailedError):
                await flow.record_payment(invoice.id, "10800", "1000", paid_on=PAID_ON)

            stored = await store.get(EntityKind.INVOICE, invoice.id)
            assert stored.status == InvoiceStatus.UNPAID
            assert await store.query(StoreQuery(entity=EntityKind.TDS_ENTRY)) == []

        asyncio.run(scenario())


class TestInvoiceFlow:
    """Drafting, saving and deleting invoices."""

    def test_draft_invoice(self):
        """A draft gets the next number, totals and due date."""
        async def scenario():
            business, client, bank, invoice, item = seeded_records()
            components, _ = components_with(business, client, bank, invoice, item)

            draft = await components.invoice_flow.draft_invoice(
                business,
                client,
                [LineItem(description="Retainer", rate=Decimal("20000"))],
                invoice_date=date(2024, 1, 10),
                tax_mode=TaxMode.INTERSTATE,
            )

            assert draft.invoice_number == "INV/0002"
            assert draft.due_date == date(2024, 2, 9)
            assert draft.igst == Decimal("3600.00")
            assert draft.total == Decimal("23600.00")
            assert draft.cgst is None
            assert draft.status == InvoiceStatus.DRAFT

        asyncio.run(scenario())

    def test_save_new_invoice(self):
        """A new invoice is owned by the saving identity, with its line items."""
        async def scenario():
            business, client, *_ = seeded_records()
            components, audit = components_with(business, client)
            flow = components.invoice_flow

            draft = await flow.draft_invoice(
                business, client,
                [LineItem(description="Design", quantity=Decimal("2"), rate=Decimal("500"))],
                invoice_date=date(2024, 6, 1),
            )
            saved = await flow.save_invoice(draft, USER)

            assert saved.owner_id == USER.id
            loaded = await components.store.get_invoice(saved.id)
            assert loaded.invoice_number == "INV/0001"
            assert len(loaded.line_items) == 1
            assert loaded.line_items[0].invoice_id == saved.id

            saved_events = [e for e in audit.events if e.event_type == AuditEventType.INVOICE_SAVED]
            assert saved_events[0].details["is_new"] is True

        asyncio.run(scenario())

    def test_edit_removes_dropped_line_items(self):
        async def scenario():
            business, client, *_ = seeded_records()
            components, _ = components_with(business, client)
            flow = components.invoice_flow

            draft = await flow.draft_invoice(
                business, client,
                [LineItem(description="A", rate=Decimal("100")), LineItem(description="B", rate=Decimal("200"))],
                invoice_date=date(2024, 6, 1),
            )
            saved = await flow.save_invoice(draft, USER)
            edited = saved.model_copy(update={"line_items": saved.line_items[:1], "notes": "Revised"})
            await flow.save_invoice(edited, USER)

            loaded = await components.store.get_invoice(saved.id)
            assert [i.description for i in loaded.line_items] == ["A"]
            assert loaded.notes == "Revised"

        asyncio.run(scenario())

    def test_invalid_invoice_not_saved(self):
        async def scenario():
            components, audit = components_with()
            invoice = Invoice(invoice_number="INV/0001", total=Decimal("100"))

            with pytest.raises(InvoiceValidationError):
                await components.invoice_flow.save_invoice(invoice, USER)

            assert components.store.committed == []
            assert AuditEventType.VALIDATION_FAILED in [e.event_type for e in audit.events]

        asyncio.run(scenario())

    def test_delete_invoice(self):
        async def scenario():
            business, client, bank, invoice, item = seeded_records()
            components, audit = components_with(business, client, bank, invoice, item)

            await components.invoice_flow.delete_invoice(invoice.id)

            assert await components.store.get(EntityKind.INVOICE, invoice.id) is None
            assert await components.store.get(EntityKind.LINE_ITEM, item.id) is None
            deleted = [e for e in audit.events if e.event_type == AuditEventType.INVOICE_DELETED]
            assert deleted[0].details["line_item_count"] == 1

        asyncio.run(scenario())


class TestDocumentFlow:
    """Downloading invoices."""

    def test_download_uses_latest_state(self):
        """A payment recorded before download shows in the document."""
        async def scenario():
            business, client, bank, invoice, item = seeded_records()
            components, audit = components_with(business, client, bank, invoice, item)

            await components.payment_flow.record_payment(invoice.id, "4000", paid_on=PAID_ON)
            document = await components.document_flow.download(invoice.id)

            assert document.template_id == "classic"
            assert document.filename == "Invoice_INV-0001.html"
            assert document.grand_total == Decimal("11800")
            assert document.total_due == Decimal("7800")
            assert "Globex" in document.content
            assert "HDFC0000001" in document.content
            assert AuditEventType.DOCUMENT_RENDERED in [e.event_type for e in audit.events]

        asyncio.run(scenario())

    def test_template_resolution(self):
        """Explicit choice, then session preference, then business setting."""
        async def scenario():
            business, client, bank, invoice, item = seeded_records()
            business = business.model_copy(update={"invoice_template": "compact"})
            components, _ = components_with(business, client, bank, invoice, item)
            flow = components.document_flow

            assert (await flow.download(invoice.id)).template_id == "compact"

            components.app_state.preferred_template = "creative"
            assert (await flow.download(invoice.id, app_state=components.app_state)).template_id == "creative"
            assert (await flow.download(invoice.id, "classic", components.app_state)).template_id == "classic"

        asyncio.run(scenario())


class TestAppState:
    """Session start and stop."""

    def test_start_claims_pending_business(self):
        async def scenario():
            pending = Business.provision_for_claim(ADMIN, "Concierge Studio", USER.email)
            components, _ = components_with(pending)
            app_state = components.app_state

            outcome = await app_state.start(USER)

            assert outcome.claimed is True
            assert app_state.active_business_id == pending.id
            assert not app_state.watcher_running
            claimed = await components.store.get(EntityKind.BUSINESS, pending.id)
            assert claimed.status == BusinessStatus.ACTIVE

            await app_state.stop()
            assert app_state.identity is None

        asyncio.run(scenario())

    def test_start_with_own_business(self):
        """An identity that already owns a business does not wait for a claim."""
        async def scenario():
            business, *_ = seeded_records()
            components, _ = components_with(business)
            app_state = components.app_state

            outcome = await app_state.start(USER)

            assert outcome.claimed is False
            assert app_state.active_business_id == business.id
            assert not app_state.watcher_running
            assert components.store.subscriber_count == 0
            await app_state.stop()
            assert app_state.identity is None

        asyncio.run(scenario())

    def test_stop_cancels_watcher(self):
        async def scenario():
            components, _ = components_with()
            app_state = components.app_state
            store = components.store

            await app_state.start(USER)
            assert app_state.watcher_running
            await asyncio.wait_for(until(lambda: store.subscriber_count == 1), timeout=5)

            await app_state.stop()
            assert not app_state.watcher_running
            assert store.subscriber_count == 0

        asyncio.run(scenario())

    def test_watcher_claims_later_provisioned_business(self):
        async def scenario():
            components, _ = components_with()
            app_state = components.app_state
            store = components.store

            await app_state.start(USER)
            assert app_state.active_business_id is None
            await asyncio.wait_for(until(lambda: store.subscriber_count == 1), timeout=5)

            pending = Business.provision_for_claim(ADMIN, "Concierge Studio", USER.email)
            await store.submit([SaveBusiness(business=pending)])
            await asyncio.wait_for(until(lambda: not app_state.watcher_running), timeout=5)

            assert app_state.active_business_id == pending.id
            await app_state.stop()

        asyncio.run(scenario())

    def test_require_identity(self):
        components, _ = components_with()
        with pytest.raises(RuntimeError):
            components.app_state.require_identity()


class TestCreateAppComponents:

    def test_falls_back_to_memory_without_sheets_config(self, monkeypatch):
        """Missing Google Sheets configuration is not fatal."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        components = create_app_components(use_storage=True)
        assert isinstance(components.store, InMemoryStore)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
