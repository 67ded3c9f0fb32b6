from __future__ import annotations

from invoicing.models import Invoice, LineItem
from invoicing.validation import validate_invoice


def test_valid_invoice_has_no_errors(branches, restaurant_invoice) -> None:
    assert validate_invoice(restaurant_invoice, branches.get("central")) == []


def test_empty_invoice_collects_all_errors_in_order(branches) -> None:
    errors = validate_invoice(Invoice(branch_id="central"), branches.get("central"))
    assert errors == [
        "Invoice number is required.",
        "Invoice date is required.",
        "Customer name is required.",
        "Customer VAT id is required.",
        "At least one line item is required.",
    ]


def test_unknown_branch(restaurant_invoice) -> None:
    invoice = restaurant_invoice.model_copy(update={"branch_id": "harbour"})
    assert validate_invoice(invoice, None) == ["Unknown branch."]


def test_branch_mismatch_counts_as_unknown(branches, restaurant_invoice) -> None:
    assert "Unknown branch." in validate_invoice(restaurant_invoice, branches.get("villa1"))


def test_line_errors(branches, restaurant_invoice) -> None:
    invoice = restaurant_invoice.model_copy(
        update={
            "items": [
                LineItem(description="  ", quantity=0, unit_price=-1, vat_rate=13),
                LineItem(description="Olive oil", quantity=1, unit_price=5, vat_rate=6),
            ]
        }
    )
    assert validate_invoice(invoice, branches.get("central")) == [
        "Line 1: description is required.",
        "Line 1: quantity must be greater than 0.",
        "Line 1: unit price must not be negative.",
        "Line 2: VAT rate 6% is not allowed for Italian Corner - Meeting Point.",
    ]


def test_zero_price_is_allowed(branches, restaurant_invoice) -> None:
    invoice = restaurant_invoice.model_copy(
        update={"items": [LineItem(description="Bread", quantity=1, unit_price=0, vat_rate=13)]}
    )
    assert validate_invoice(invoice, branches.get("central")) == []


def test_surcharge_only_documents_may_have_no_items(branches, customer) -> None:
    invoice = Invoice(
        branch_id="villa1",
        invoice_date="2024-07-15",
        invoice_number="0002",
        customer=customer,
        surcharge=16,
    )
    assert validate_invoice(invoice, branches.get("villa1"), require_items=False) == []
    assert validate_invoice(invoice, branches.get("villa1")) == ["At least one line item is required."]
