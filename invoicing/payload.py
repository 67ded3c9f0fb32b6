from __future__ import annotations

from decimal import Decimal
from enum import Enum

from invoicing.branches import Branch
from invoicing.invoice_calculations import line_amounts
from invoicing.models import (
    Counterparty,
    Invoice,
    IssuerInfo,
    Payload,
    PayloadHeader,
    PayloadLine,
    PayloadMeta,
    PayloadTotals,
)
from invoicing.money import round2, to_decimal
from invoicing.surcharge import effective_surcharge


SURCHARGE_LINE_DESCRIPTION = "Climate-crisis resilience levy"


class SurchargeMode(str, Enum):
    AUTO_LINE = "autoLine"
    SEPARATE_INVOICE = "separateInvoice"
    SURCHARGE_ONLY = "surchargeOnly"


def surcharge_mode_for(invoice: Invoice, branch: Branch) -> SurchargeMode:
    if branch.accepts_surcharge and invoice.separate_surcharge:
        return SurchargeMode.SEPARATE_INVOICE
    return SurchargeMode.AUTO_LINE


def _header(invoice: Invoice, branch: Branch) -> PayloadHeader:
    customer = invoice.customer
    issuer = branch.issuer
    return PayloadHeader(
        series=branch.series,
        aa=invoice.invoice_number,
        issue_date=invoice.invoice_date,
        doc_type=branch.revenue_mapping.document_type,
        issuer=IssuerInfo(
            name=issuer.name,
            vat=issuer.vat,
            address=issuer.address,
            city=issuer.city,
            postal_code=issuer.postal_code,
            phone=issuer.phone,
        ),
        counterparty=Counterparty(
            name=customer.name,
            vat=customer.vat,
            email=customer.email or None,
            address=customer.address or None,
            city=customer.city or None,
        ),
        payment_method=invoice.payment_method or "cash",
    )


def _item_lines(invoice: Invoice, branch: Branch) -> list[PayloadLine]:
    mapping = branch.revenue_mapping
    lines: list[PayloadLine] = []
    for idx, item in enumerate(invoice.items, start=1):
        amounts = line_amounts(item)
        net_amount = round2(amounts.net)
        # VAT is derived from the rounded figures so each line still adds up to its gross.
        vat_amount = round2(to_decimal(round2(amounts.gross)) - to_decimal(net_amount))
        lines.append(
            PayloadLine(
                line_number=idx,
                description=item.description,
                qty=item.quantity,
                unit_price=item.unit_price,
                net_amount=net_amount,
                vat_category=mapping.vat_category(item.vat_rate),
                vat_amount=vat_amount,
                revenue_classification=mapping.e3_code or mapping.revenue_category,
            )
        )
    return lines


def _surcharge_line(branch: Branch, line_number: int, amount: float) -> PayloadLine:
    mapping = branch.revenue_mapping
    return PayloadLine(
        line_number=line_number,
        description=SURCHARGE_LINE_DESCRIPTION,
        qty=1,
        unit_price=amount,
        net_amount=amount,
        vat_category=mapping.vat_category(0),
        vat_amount=0.0,
        revenue_classification=mapping.e3_surcharge_code,
    )


def _sum(values) -> Decimal:
    return sum((to_decimal(v) for v in values), Decimal("0"))


def build_payload(
    invoice: Invoice,
    branch: Branch,
    mode: SurchargeMode | str = SurchargeMode.AUTO_LINE,
    *,
    sandbox: bool = True,
) -> Payload:
    """Assemble the myDATA document for one submission attempt.

    Totals are summed from the rounded line amounts, and gross is derived
    last from the rounded net and VAT.
    """
    mode = SurchargeMode(mode)
    surcharge = effective_surcharge(invoice, branch)
    base_lines = _item_lines(invoice, branch)
    base_net = round2(_sum(line.net_amount for line in base_lines))
    base_vat = round2(_sum(line.vat_amount for line in base_lines))

    if mode == SurchargeMode.AUTO_LINE:
        lines = list(base_lines)
        if surcharge > 0:
            lines.append(_surcharge_line(branch, len(base_lines) + 1, surcharge))
        net = round2(to_decimal(base_net) + to_decimal(surcharge))
        vat = base_vat
    elif mode == SurchargeMode.SEPARATE_INVOICE:
        lines = list(base_lines)
        net = base_net
        vat = base_vat
    else:
        lines = [_surcharge_line(branch, 1, surcharge)] if surcharge > 0 else []
        net = surcharge
        vat = 0.0

    return Payload(
        header=_header(invoice, branch),
        lines=lines,
        totals=PayloadTotals(
            net=net,
            vat=vat,
            gross=round2(to_decimal(net) + to_decimal(vat)),
            surcharge=surcharge,
        ),
        meta=PayloadMeta(branch_id=invoice.branch_id, sandbox=sandbox),
    )
