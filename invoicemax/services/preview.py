"""
HTML preview for invoices and receipts.

The preview is the surface the exporter rasterizes, so its markup sticks to
the subset MarkupRasterizer understands: h1/h2/h3/p blocks, one item table,
hr rules, an optional data-URL logo and (receipts) a watermark marker div.
Inline styles carry colors and alignment.
"""

from html import escape
from .totals import calculate_totals, line_total
from ..models.document import Document

PREVIEW_CLASS = "invoice-preview-container"
PREVIEW_ATTR = "data-document-preview"
WATERMARK_ATTR = "data-watermark"

# The on-screen preview is shrunk to fit the editor pane; export resets this.
SCREEN_SCALE = 0.75


def _money(currency: str, amount: float) -> str:
    return f"{escape(currency)} {amount:,.2f}"


def _lines(*values: str | None) -> str:
    return "".join(f"<p>{escape(v)}</p>" for v in values if v)


def _theme(document: Document) -> dict[str, str]:
    palette = document.presentation.palette
    dark = document.is_receipt and document.presentation.dark_mode
    return {
        "background": "#1f2937" if dark else "#ffffff",
        "text": "#f9fafb" if dark else "#111827",
        "muted": "#d1d5db" if dark else "#6b7280",
        "heading": palette["secondary"] if dark else palette["primary"],
        "table_header": palette["dark"] if dark else palette["light"],
        "table_header_text": "#ffffff" if dark else "#000000",
    }


def _watermark(document: Document) -> str:
    settings = document.presentation
    if not (document.is_receipt and settings.watermark_enabled and settings.watermark_density > 0):
        return ""
    text = document.business_name or "BUSINESS NAME"
    return (
        f'<div {WATERMARK_ATTR}="{escape(text)}" data-color="{settings.watermark_color}" '
        f'data-opacity="{settings.watermark_opacity:g}" data-density="{settings.watermark_density}"></div>'
    )


def _items_table(document: Document, theme: dict[str, str]) -> str:
    header = (
        f'<tr style="background-color: {theme["table_header"]}; color: {theme["table_header_text"]}">'
        "<th>Description</th><th>Qty</th><th>Price</th><th>Tax %</th><th>Disc %</th><th>Total</th></tr>"
    )
    rows = []
    for item in document.items:
        rows.append(
            "<tr>"
            f"<td>{escape(item.description) or '&nbsp;'}</td>"
            f"<td>{item.quantity:g}</td>"
            f"<td>{item.unit_price:,.2f}</td>"
            f"<td>{item.tax_rate:g}</td>"
            f"<td>{item.discount:g}</td>"
            f"<td>{line_total(item):,.2f}</td>"
            "</tr>"
        )
    return f"<table>{header}{''.join(rows)}</table>"


def render_preview_fragment(document: Document) -> str:
    """Render just the preview container element."""
    theme = _theme(document)
    heading = f'style="color: {theme["heading"]}"'
    right = 'style="text-align: right"'
    kind = document.kind.value
    title = "INVOICE" if kind == "invoice" else "RECEIPT"
    totals = calculate_totals(document.items, document.amount_paid if document.is_receipt else None)
    cur = document.currency

    logo = ""
    if document.business_logo.startswith("data:image/"):
        logo = f'<img src="{escape(document.business_logo)}" alt="logo">'

    details = [f"{title.title()} #: {document.invoice_number}", f"Date: {document.invoice_date}"]
    if document.is_receipt:
        if document.payment_date:
            details.append(f"Payment Date: {document.payment_date}")
        if document.payment_method:
            details.append(f"Payment Method: {document.payment_method}")
    elif document.due_date:
        details.append(f"Due Date: {document.due_date}")

    summary = [
        f"<p {right}>Subtotal: {_money(cur, totals.subtotal)}</p>",
        f"<p {right}>Discount: -{_money(cur, totals.total_discount)}</p>",
        f"<p {right}>Tax: {_money(cur, totals.total_tax)}</p>",
        f'<h3 style="color: {theme["heading"]}; text-align: right">Total: {_money(cur, totals.total)}</h3>',
    ]
    if document.is_receipt:
        summary.append(f"<p {right}>Amount Paid: {_money(cur, totals.amount_paid)}</p>")
        if totals.balance:
            label = "BALANCE DUE" if totals.balance > 0 else "CHANGE"
            color = "#dc2626" if totals.balance > 0 else "#059669"
            summary.append(
                f'<p style="color: {color}; text-align: right">{label}: {_money(cur, abs(totals.balance))}</p>'
            )

    footer = ""
    if document.notes:
        footer += f"<h3 {heading}>Notes:</h3><p>{escape(document.notes)}</p>"
    if document.terms:
        footer += f"<h3 {heading}>Terms &amp; Conditions:</h3><p>{escape(document.terms)}</p>"
    if document.is_receipt:
        footer += f'<p style="color: {theme["muted"]}; text-align: center">Thank you for your payment!</p>'

    return (
        f'<div class="{PREVIEW_CLASS}" {PREVIEW_ATTR}="{kind}" '
        f'style="transform: scale({SCREEN_SCALE}); background-color: {theme["background"]}; color: {theme["text"]}">'
        f"{_watermark(document)}"
        f"{logo}"
        f"<h1 {heading}>{escape(document.business_name) or 'Your Business'}</h1>"
        f"{_lines(document.business_address, document.business_phone, document.business_email, document.business_website)}"
        f"<h2 {heading}>{title}</h2>"
        f"{_lines(*details)}"
        "<hr>"
        f"<h3 {heading}>From:</h3>"
        f"{_lines(document.business_name, document.business_address)}"
        f"<h3 {heading}>To:</h3>"
        f"{_lines(document.client_name, document.client_address, document.client_phone, document.client_email)}"
        f"{_items_table(document, theme)}"
        f"{''.join(summary)}"
        "<hr>"
        f"{footer}"
        "</div>"
    )


def render_preview(document: Document) -> str:
    """Render a full HTML page containing the preview container."""
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{escape(document.kind.value)} {escape(document.invoice_number)}</title></head>"
        f"<body>{render_preview_fragment(document)}</body></html>"
    )
