"""
Invoice Templates

Three interchangeable layouts for a DocumentSnapshot: classic, compact and
creative. They differ in layout only. Every figure comes from the snapshot
as-is, so any two templates agree on subtotal, taxes, total and balance.

Templates render self-contained HTML; the document is downloaded as
`Invoice_<number>.html` and printed from the browser.
"""

import html
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import ClassVar, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from invoicing.config import get_settings
from invoicing.documents.snapshot import DocumentSnapshot


logger = structlog.get_logger(__name__)

DEFAULT_TEMPLATE = "classic"


class RenderedDocument(BaseModel):
    """A rendered invoice, ready to be served as a file."""
    model_config = ConfigDict(frozen=True)

    template_id: str
    filename: str
    content: str
    media_type: str = "text/html"
    grand_total: Decimal
    total_due: Decimal

    def to_bytes(self) -> bytes:
        return self.content.encode("utf-8")


def document_filename(invoice_number: str, extension: str = "html") -> str:
    """`Invoice_<number>.<ext>`, with path separators in the number made safe."""
    safe_number = invoice_number.replace("/", "-").replace("\\", "-")
    return f"Invoice_{safe_number}.{extension}"


def _e(value: Optional[object]) -> str:
    return html.escape(str(value)) if value is not None else ""


def format_money(amount: Decimal) -> str:
    return f"₹{amount:,.2f}"


def format_quantity(quantity: Decimal) -> str:
    return f"{quantity.normalize():f}"


# =============================================================================
# TEMPLATE INTERFACE
# =============================================================================

class InvoiceTemplate(ABC):
    """
    Base class for invoice layouts.

    Subclasses produce the page body; the document wrapper, filename and
    figures are shared so they cannot drift apart.
    """

    template_id: ClassVar[str]

    @abstractmethod
    def body(self, snapshot: DocumentSnapshot) -> str:
        """
        Render the page body.

        Args:
            snapshot: Frozen invoice data

        Returns:
            HTML fragment placed inside <body>
        """
        pass

    def render(self, snapshot: DocumentSnapshot, extension: str = "html") -> RenderedDocument:
        title = f"Invoice {snapshot.invoice.number}".strip()
        content = (
            "<!DOCTYPE html>\n"
            f'<html lang="en"><head><meta charset="utf-8"><title>{_e(title)}</title>'
            f"<style>{self.styles(snapshot)}</style></head>"
            f'<body class="template-{self.template_id}">{self.body(snapshot)}</body></html>'
        )
        return RenderedDocument(
            template_id=self.template_id,
            filename=document_filename(snapshot.invoice.number, extension),
            content=content,
            grand_total=snapshot.totals.total,
            total_due=snapshot.totals.balance_due,
        )

    def styles(self, snapshot: DocumentSnapshot) -> str:
        color = snapshot.business.brand_color
        return (
            "body{font-family:Helvetica,Arial,sans-serif;color:#0f172a;margin:32px}"
            "table{width:100%;border-collapse:collapse}"
            "td,th{padding:4px 6px;text-align:left}"
            ".num{text-align:right}"
            f".brand{{color:{color}}}"
            f".balance{{background:{color};color:#fff;font-weight:bold}}"
        )

    # -------------------------------------------------------------------------
    # Shared blocks
    # -------------------------------------------------------------------------

    def business_lines(self, snapshot: DocumentSnapshot) -> list[str]:
        b = snapshot.business
        place = ", ".join(p for p in (b.city, b.state, b.pin) if p)
        lines = [b.legal_name, b.address, place, b.country, b.email, b.phone]
        if b.gstin:
            lines.append(f"GSTIN: {b.gstin}")
        if b.pan:
            lines.append(f"PAN: {b.pan}")
        return [_e(line) for line in lines if line]

    def customer_lines(self, snapshot: DocumentSnapshot) -> list[str]:
        c = snapshot.customer
        lines = [c.address, c.email, c.phone]
        if c.gstin:
            lines.append(f"GSTIN: {c.gstin}")
        return [_e(line) for line in lines if line]

    def meta_rows(self, snapshot: DocumentSnapshot) -> list[tuple[str, str]]:
        inv = snapshot.invoice
        rows = [("Invoice #", inv.number)]
        if inv.invoice_date:
            rows.append(("Invoice Date", inv.invoice_date.isoformat()))
        if inv.due_date:
            rows.append(("Due Date", inv.due_date.isoformat()))
        if inv.order_number:
            rows.append(("Order #", inv.order_number))
        if inv.subject:
            rows.append(("Subject", inv.subject))
        return [(label, _e(value)) for label, value in rows]

    def items_table(self, snapshot: DocumentSnapshot, show_sac: bool = True) -> str:
        head = "<tr><th>#</th><th>Description</th>"
        if show_sac:
            head += "<th>SAC</th>"
        head += '<th class="num">Qty</th><th class="num">Rate</th><th class="num">Amount</th></tr>'

        rows = []
        for index, item in enumerate(snapshot.items, start=1):
            row = f"<tr><td>{index}</td><td>{_e(item.description)}</td>"
            if show_sac:
                row += f"<td>{_e(item.sac_code)}</td>"
            row += (
                f'<td class="num">{format_quantity(item.quantity)}</td>'
                f'<td class="num">{format_money(item.rate)}</td>'
                f'<td class="num">{format_money(item.amount)}</td></tr>'
            )
            rows.append(row)
        return f'<table class="items"><thead>{head}</thead><tbody>{"".join(rows)}</tbody></table>'

    def tax_rows(self, snapshot: DocumentSnapshot) -> list[tuple[str, Decimal]]:
        totals = snapshot.totals
        rows = []
        for label, value in (("CGST", totals.cgst), ("SGST", totals.sgst), ("IGST", totals.igst)):
            if value is not None:
                rows.append((label, value))
        return rows

    def bank_block(self, snapshot: DocumentSnapshot) -> str:
        bank = snapshot.bank_account
        if bank is None:
            return ""
        lines = [
            f"Bank: {_e(bank.bank_name)}",
            f"Account Name: {_e(bank.holder_name)}",
            f"Account No: {_e(bank.account_number)}",
            f"IFSC: {_e(bank.ifsc)}",
        ]
        if bank.upi_id:
            lines.append(f"UPI: {_e(bank.upi_id)}")
        if bank.cheque_name:
            lines.append(f"Cheques in favour of: {_e(bank.cheque_name)}")
        return '<div class="bank"><h4>Payment Details</h4>' + "<br>".join(lines) + "</div>"

    def notes_block(self, snapshot: DocumentSnapshot) -> str:
        parts = []
        if snapshot.notes:
            parts.append(f'<div class="notes"><h4>Notes</h4><p>{_e(snapshot.notes)}</p></div>')
        if snapshot.terms:
            parts.append(f'<div class="terms"><h4>Terms &amp; Conditions</h4><p>{_e(snapshot.terms)}</p></div>')
        return "".join(parts)

    def signature_block(self, snapshot: DocumentSnapshot) -> str:
        b = snapshot.business
        image = f'<img src="{_e(b.signature_url)}" alt="Signature" height="48"><br>' if b.signature_url else ""
        return f'<div class="signature">{image}For {_e(b.name)}<br>Authorised Signatory</div>'


def _row(label: str, value: str, css: str = "") -> str:
    cls = f' class="{css}"' if css else ""
    return f'<tr{cls}><td>{label}</td><td class="num">{value}</td></tr>'


# =============================================================================
# LAYOUTS
# =============================================================================

class ClassicTemplate(InvoiceTemplate):
    """Header band, two address columns, full breakdown of every tax."""

    template_id = "classic"

    def body(self, snapshot: DocumentSnapshot) -> str:
        totals = snapshot.totals
        meta = "".join(f"<tr><td>{label}</td><td>{value}</td></tr>" for label, value in self.meta_rows(snapshot))

        summary = [_row("Subtotal", format_money(totals.subtotal))]
        summary += [_row(label, format_money(value)) for label, value in self.tax_rows(snapshot)]
        if totals.tds_amount is not None:
            summary.append(_row("TDS Deducted", f"- {format_money(totals.tds_amount)}"))
        summary.append(_row("<strong>Grand Total</strong>", f"<strong>{format_money(totals.total)}</strong>"))
        if totals.advance_paid is not None:
            summary.append(_row("Advance Paid", f"- {format_money(totals.advance_paid)}"))
        summary.append(_row("Balance Due", format_money(totals.balance_due), css="balance"))

        words = ""
        if totals.amount_in_words:
            words = f'<p class="words"><em>Amount in words:</em> {_e(totals.amount_in_words)}</p>'

        return (
            f'<header><h1 class="brand">{_e(snapshot.business.name)}</h1>'
            f'<p>{"<br>".join(self.business_lines(snapshot))}</p>'
            '<h2>TAX INVOICE</h2></header>'
            '<section class="parties"><div class="bill-to"><h4>Bill To</h4>'
            f'<strong>{_e(snapshot.customer.name)}</strong><br>{"<br>".join(self.customer_lines(snapshot))}</div>'
            f'<table class="meta">{meta}</table></section>'
            f"{self.items_table(snapshot)}"
            f"{words}"
            f'<table class="totals">{"".join(summary)}</table>'
            f"{self.bank_block(snapshot)}{self.notes_block(snapshot)}{self.signature_block(snapshot)}"
        )


class CompactTemplate(InvoiceTemplate):
    """Single-column receipt style; GST collapsed into one line."""

    template_id = "compact"

    def styles(self, snapshot: DocumentSnapshot) -> str:
        return super().styles(snapshot) + "body{max-width:480px;font-size:12px}"

    def body(self, snapshot: DocumentSnapshot) -> str:
        totals = snapshot.totals
        meta = " | ".join(f"{label}: {value}" for label, value in self.meta_rows(snapshot))

        summary = [_row("Subtotal", format_money(totals.subtotal))]
        if self.tax_rows(snapshot):
            summary.append(_row("GST", format_money(totals.tax_total)))
        summary.append(_row("Total", format_money(totals.total)))
        if totals.advance_paid is not None:
            summary.append(_row("Advance Paid", f"- {format_money(totals.advance_paid)}"))
        if totals.tds_amount is not None:
            summary.append(_row("TDS", f"- {format_money(totals.tds_amount)}"))
        summary.append(_row("Balance Due", format_money(totals.balance_due), css="balance"))

        words = f"<p><small>{_e(totals.amount_in_words)}</small></p>" if totals.amount_in_words else ""

        return (
            f'<h2 class="brand">{_e(snapshot.business.name)}</h2>'
            f"<p><small>{meta}</small></p>"
            f"<p>To: <strong>{_e(snapshot.customer.name)}</strong></p>"
            f"{self.items_table(snapshot, show_sac=False)}"
            f'<table class="totals">{"".join(summary)}</table>'
            f"{words}{self.bank_block(snapshot)}{self.notes_block(snapshot)}"
        )


class CreativeTemplate(InvoiceTemplate):
    """Brand-coloured hero with the amount payable up front."""

    template_id = "creative"

    def styles(self, snapshot: DocumentSnapshot) -> str:
        color = snapshot.business.brand_color
        return super().styles(snapshot) + (
            f".hero{{border-left:8px solid {color};padding-left:16px}}"
            ".headline{font-size:32px;font-weight:bold}"
        )

    def body(self, snapshot: DocumentSnapshot) -> str:
        totals = snapshot.totals
        headline_label = "Paid in full" if totals.is_paid else "Amount Due"
        headline_value = totals.total if totals.is_paid else totals.balance_due

        breakdown = [_row("Subtotal", format_money(totals.subtotal))]
        breakdown += [_row(label, format_money(value)) for label, value in self.tax_rows(snapshot)]
        if totals.tds_amount is not None:
            breakdown.append(_row("TDS", f"- {format_money(totals.tds_amount)}"))
        if totals.advance_paid is not None:
            breakdown.append(_row("Invoice Total", format_money(totals.total)))
            breakdown.append(_row("Received", f"- {format_money(totals.advance_paid)}"))
        breakdown.append(_row("Balance Due", format_money(totals.balance_due), css="balance"))

        meta = "".join(f"<div><small>{label}</small><br>{value}</div>" for label, value in self.meta_rows(snapshot))
        words = f"<p><em>{_e(totals.amount_in_words)}</em></p>" if totals.amount_in_words else ""

        return (
            f'<section class="hero"><h1 class="brand">{_e(snapshot.business.name)}</h1>'
            f"<p>Billed to <strong>{_e(snapshot.customer.name)}</strong></p>"
            f'<p>{headline_label}</p><p class="headline">{format_money(headline_value)}</p>{words}</section>'
            f'<section class="meta">{meta}</section>'
            f"{self.items_table(snapshot)}"
            f'<table class="totals">{"".join(breakdown)}</table>'
            f'<footer>{"<br>".join(self.business_lines(snapshot))}'
            f"{self.bank_block(snapshot)}{self.notes_block(snapshot)}{self.signature_block(snapshot)}</footer>"
        )


TEMPLATES: dict[str, InvoiceTemplate] = {
    template.template_id: template
    for template in (ClassicTemplate(), CompactTemplate(), CreativeTemplate())
}


def get_template(template_id: Optional[str]) -> InvoiceTemplate:
    """Template for an id; unknown ids fall back to classic."""
    if template_id is None:
        template_id = get_settings().app.default_template
    template = TEMPLATES.get(template_id)
    if template is None:
        logger.warning("unknown_invoice_template", template_id=template_id, fallback=DEFAULT_TEMPLATE)
        template = TEMPLATES[DEFAULT_TEMPLATE]
    return template


def render_document(
    template_id: Optional[str],
    snapshot: DocumentSnapshot,
    extension: Optional[str] = None,
) -> RenderedDocument:
    """Render a snapshot with the chosen template."""
    template = get_template(template_id)
    return template.render(snapshot, extension or get_settings().app.document_extension)
