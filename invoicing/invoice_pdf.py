from __future__ import annotations

from io import BytesIO
from typing import Any

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen.canvas import Canvas

from invoicing.documents import TEMPLATE_RECEIPT, InvoiceDocument
from invoicing.renderer_interface import DocumentRenderer


RECEIPT_WIDTH = 80 * mm
FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"


def _safe_str(x: Any) -> str:
    return (str(x) if x is not None else "").strip()


def _money(value: float) -> str:
    return f"{value:.2f} EUR"


def _wrap_text(text: str, font: str, size: int, max_width: float) -> list[str]:
    text = _safe_str(text)
    if not text:
        return [""]
    words = text.replace("\n", " ").split()
    lines: list[str] = []
    cur = ""
    for w in words:
        cand = (cur + " " + w).strip() if cur else w
        if stringWidth(cand, font, size) <= max_width:
            cur = cand
        else:
            if cur:
                lines.append(cur)
            cur = w
    if cur:
        lines.append(cur)
    return lines or [""]


class ReportlabInvoiceRenderer(DocumentRenderer):
    """A4 invoices and 80mm thermal receipts."""

    def render(self, document: InvoiceDocument, template_id: str | None) -> bytes:
        if template_id == TEMPLATE_RECEIPT:
            return self._render_receipt(document)
        return self._render_a4(document)

    def _render_a4(self, doc: InvoiceDocument) -> bytes:
        buf = BytesIO()
        c = Canvas(buf, pagesize=A4)
        width, height = A4
        left = 20 * mm
        right = width - 20 * mm
        y = height - 20 * mm

        c.setFont(FONT_BOLD, 14)
        c.drawString(left, y, _safe_str(doc.issuer.name))
        c.setFont(FONT, 9)
        for line in (
            f"VAT {doc.issuer.vat}",
            f"{doc.issuer.address}, {doc.issuer.postal_code} {doc.issuer.city}".strip(", "),
            doc.issuer.phone,
        ):
            if _safe_str(line):
                y -= 12
                c.drawString(left, y, _safe_str(line))

        c.setFont(FONT_BOLD, 12)
        c.drawRightString(right, height - 20 * mm, f"Invoice {doc.series}-{doc.invoice_number}")
        c.setFont(FONT, 9)
        c.drawRightString(right, height - 20 * mm - 12, f"Date: {doc.issue_date}")
        if doc.mark:
            c.drawRightString(right, height - 20 * mm - 24, f"MARK: {doc.mark}")

        y -= 28
        c.setFont(FONT_BOLD, 10)
        c.drawString(left, y, "Customer")
        c.setFont(FONT, 9)
        for line in (
            doc.customer.name,
            f"VAT {doc.customer.vat}",
            doc.customer.address,
            f"{doc.customer.postal_code} {doc.customer.city}".strip(),
        ):
            if _safe_str(line):
                y -= 12
                c.drawString(left, y, _safe_str(line))

        # Table
        y -= 26
        col_qty = left + 95 * mm
        col_price = left + 115 * mm
        col_vat = left + 140 * mm
        col_total = right
        c.setFont(FONT_BOLD, 9)
        c.drawString(left, y, "Description")
        c.drawRightString(col_qty, y, "Qty")
        c.drawRightString(col_price, y, "Price")
        c.drawRightString(col_vat, y, "VAT")
        c.drawRightString(col_total, y, "Net")
        y -= 4
        c.line(left, y, right, y)
        c.setFont(FONT, 9)
        for line in doc.lines:
            wrapped = _wrap_text(line.description, FONT, 9, 90 * mm)
            if y - 12 * len(wrapped) < 40 * mm:
                c.showPage()
                c.setFont(FONT, 9)
                y = height - 20 * mm
            y -= 12
            c.drawString(left, y, wrapped[0])
            c.drawRightString(col_qty, y, f"{line.qty:g}")
            c.drawRightString(col_price, y, f"{line.unit_price:.2f}")
            c.drawRightString(col_vat, y, line.vat_category)
            c.drawRightString(col_total, y, f"{line.net_amount:.2f}")
            for extra in wrapped[1:]:
                y -= 11
                c.drawString(left, y, extra)

        y -= 8
        c.line(left + 100 * mm, y, right, y)
        rows = [("Net", doc.totals.net), ("VAT", doc.totals.vat)]
        if doc.totals.surcharge:
            rows.append(("Accommodation levy", doc.totals.surcharge))
        rows.append(("Total", doc.totals.gross))
        for label, value in rows:
            y -= 14
            c.setFont(FONT_BOLD if label == "Total" else FONT, 10 if label == "Total" else 9)
            c.drawString(left + 100 * mm, y, label)
            c.drawRightString(right, y, _money(value))

        c.setFont(FONT, 8)
        foot = f"Payment: {doc.payment_method}"
        if doc.status not in ("draft", "sent"):
            foot += f" | Status: {doc.status}"
        for note in doc.notes:
            foot += f" | {note}"
        c.drawString(left, 15 * mm, foot)

        c.showPage()
        c.save()
        return buf.getvalue()

    def _render_receipt(self, doc: InvoiceDocument) -> bytes:
        line_h = 10
        body = 18 + sum(len(_wrap_text(line.description, FONT, 8, RECEIPT_WIDTH - 10 * mm)) + 1 for line in doc.lines)
        height = (body + 6) * line_h + 20 * mm
        buf = BytesIO()
        c = Canvas(buf, pagesize=(RECEIPT_WIDTH, height))
        left = 5 * mm
        right = RECEIPT_WIDTH - 5 * mm
        y = height - 8 * mm

        c.setFont(FONT_BOLD, 10)
        c.drawCentredString(RECEIPT_WIDTH / 2, y, _safe_str(doc.issuer.name)[:40])
        c.setFont(FONT, 8)
        for line in (f"VAT {doc.issuer.vat}", doc.issuer.address, f"{doc.series}-{doc.invoice_number}  {doc.issue_date}"):
            if _safe_str(line):
                y -= line_h
                c.drawCentredString(RECEIPT_WIDTH / 2, y, _safe_str(line)[:48])

        y -= line_h
        c.line(left, y, right, y)
        for line in doc.lines:
            for part in _wrap_text(line.description, FONT, 8, right - left):
                y -= line_h
                c.drawString(left, y, part)
            y -= line_h
            c.drawString(left, y, f"{line.qty:g} x {line.unit_price:.2f}")
            c.drawRightString(right, y, f"{line.net_amount + line.vat_amount:.2f}")

        y -= line_h / 2
        c.line(left, y, right, y)
        for label, value in (("Net", doc.totals.net), ("VAT", doc.totals.vat), ("Total", doc.totals.gross)):
            y -= line_h
            c.setFont(FONT_BOLD if label == "Total" else FONT, 8)
            c.drawString(left, y, label)
            c.drawRightString(right, y, _money(value))
        if doc.mark:
            y -= line_h * 1.5
            c.setFont(FONT, 7)
            c.drawCentredString(RECEIPT_WIDTH / 2, y, f"MARK {doc.mark}")

        c.showPage()
        c.save()
        return buf.getvalue()
