from __future__ import annotations

from typing import Any

from invoicing.branches import Branch
from invoicing.models import Invoice


def _positive(value: Any) -> bool:
    try:
        return float(value) > 0
    except (TypeError, ValueError):
        return False


def _non_negative(value: Any) -> bool:
    try:
        return float(value) >= 0
    except (TypeError, ValueError):
        return False


def validate_invoice(invoice: Invoice, branch: Branch | None, *, require_items: bool = True) -> list[str]:
    """Collect every problem that blocks submission, preview or print.

    ``branch`` is the registry entry for ``invoice.branch_id`` (``None`` when
    the id is unknown). An empty list means the invoice is valid.
    """
    errors: list[str] = []
    if not (invoice.invoice_number or "").strip():
        errors.append("Invoice number is required.")
    if not (invoice.invoice_date or "").strip():
        errors.append("Invoice date is required.")
    if not invoice.branch_id or branch is None or branch.id != invoice.branch_id:
        errors.append("Unknown branch.")
    if not (invoice.customer.name or "").strip():
        errors.append("Customer name is required.")
    if not (invoice.customer.vat or "").strip():
        errors.append("Customer VAT id is required.")
    if require_items and not invoice.items:
        errors.append("At least one line item is required.")

    for idx, item in enumerate(invoice.items, start=1):
        if not (item.description or "").strip():
            errors.append(f"Line {idx}: description is required.")
        if not _positive(item.quantity):
            errors.append(f"Line {idx}: quantity must be greater than 0.")
        if not _non_negative(item.unit_price):
            errors.append(f"Line {idx}: unit price must not be negative.")
        if branch is not None and not branch.revenue_mapping.allows_vat_rate(item.vat_rate):
            errors.append(f"Line {idx}: VAT rate {item.vat_rate:g}% is not allowed for {branch.label}.")
    return errors
