from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from invoicing.branches import Branch, BranchRegistry
from invoicing.errors import InvoiceValidationError
from invoicing.models import Customer, HistoryEntry, Invoice, IssuerInfo, PayloadLine, PayloadTotals
from invoicing.numbering import build_invoice_filename
from invoicing.payload import build_payload, surcharge_mode_for
from invoicing.renderer_interface import DocumentRenderer
from invoicing.validation import validate_invoice


TEMPLATE_INVOICE = "invoice"
TEMPLATE_RECEIPT = "receipt"


@dataclass(frozen=True)
class InvoiceDocument:
    """Everything a renderer needs, already computed and rounded."""

    branch_label: str
    series: str
    invoice_number: str
    issue_date: str
    issuer: IssuerInfo
    customer: Customer
    lines: list[PayloadLine]
    totals: PayloadTotals
    payment_method: str = "cash"
    mark: Optional[str] = None
    status: str = "draft"
    notes: list[str] = field(default_factory=list)


def normalize_invoice(invoice: Invoice, branch: Branch, *, sandbox: bool = True) -> InvoiceDocument:
    payload = build_payload(invoice, branch, surcharge_mode_for(invoice, branch), sandbox=sandbox)
    return InvoiceDocument(
        branch_label=branch.label,
        series=branch.series,
        invoice_number=invoice.invoice_number,
        issue_date=invoice.invoice_date,
        issuer=payload.header.issuer,
        customer=invoice.customer,
        lines=list(payload.lines),
        totals=payload.totals,
        payment_method=invoice.payment_method,
    )


def normalize_history_entry(entry: HistoryEntry, branch: Branch) -> InvoiceDocument:
    document = normalize_invoice(entry.to_invoice(), branch)
    notes = []
    if entry.cancel_mark:
        notes.append(f"Cancelled ({entry.cancel_mark})")
    # Totals come from the ledger so reprints match what was submitted.
    return InvoiceDocument(
        branch_label=document.branch_label,
        series=document.series,
        invoice_number=document.invoice_number,
        issue_date=document.issue_date,
        issuer=document.issuer,
        customer=document.customer,
        lines=document.lines,
        totals=entry.totals,
        payment_method=document.payment_method,
        mark=entry.mark,
        status=entry.status.value,
        notes=notes,
    )


class DocumentService:
    """PDF preview and print. Drafts pass the same validator as submissions."""

    def __init__(self, branches: BranchRegistry, renderer: DocumentRenderer) -> None:
        self._branches = branches
        self._renderer = renderer

    def render_draft(self, invoice: Invoice, template_id: str = TEMPLATE_INVOICE) -> tuple[str, bytes]:
        branch = self._branches.find(invoice.branch_id)
        errors = validate_invoice(invoice, branch)
        if errors:
            raise InvoiceValidationError(errors)
        document = normalize_invoice(invoice, branch)
        return self._filename(document, template_id), self._renderer.render(document, template_id)

    def render_history_entry(self, entry: HistoryEntry, template_id: str = TEMPLATE_INVOICE) -> tuple[str, bytes]:
        branch = self._branches.get(entry.branch_id)
        document = normalize_history_entry(entry, branch)
        return self._filename(document, template_id), self._renderer.render(document, template_id)

    @staticmethod
    def _filename(document: InvoiceDocument, template_id: str) -> str:
        prefix = "receipt" if template_id == TEMPLATE_RECEIPT else "invoice"
        return build_invoice_filename(document.series, document.invoice_number, prefix=prefix)
