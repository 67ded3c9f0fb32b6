from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from invoicing.branches import Branch
from invoicing.models import HistoryEntry, HistoryStatus
from invoicing.money import round2, to_decimal


@dataclass(frozen=True)
class SummaryStats:
    branch_label: str
    total_invoices: int
    sent_invoices: int
    failed_invoices: int
    queue_length: int
    sent_percentage: int
    monthly_net: float
    monthly_vat: float
    monthly_gross: float


def _issue_date(entry: HistoryEntry) -> date | None:
    try:
        return date.fromisoformat((entry.invoice_date or "").strip()[:10])
    except ValueError:
        return None


def summary_stats(
    history: Iterable[HistoryEntry],
    queue_length: int,
    branch: Branch,
    today: date | None = None,
) -> SummaryStats:
    """Counters for the branch plus the current calendar month's totals."""
    today = today or date.today()
    entries = [entry for entry in history if entry.branch_id == branch.id]
    total = len(entries)
    sent = sum(1 for entry in entries if entry.status == HistoryStatus.SENT)
    failed = sum(1 for entry in entries if entry.status == HistoryStatus.FAILED)
    percentage = 0
    if total:
        ratio = Decimal(sent * 100) / Decimal(total)
        percentage = int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    net = vat = gross = Decimal("0")
    for entry in entries:
        issued = _issue_date(entry)
        if issued is None or (issued.year, issued.month) != (today.year, today.month):
            continue
        totals = entry.totals
        net += to_decimal(totals.net)
        vat += to_decimal(totals.vat)
        gross += to_decimal(totals.gross) if totals.gross else to_decimal(totals.net) + to_decimal(totals.vat)

    return SummaryStats(
        branch_label=branch.label,
        total_invoices=total,
        sent_invoices=sent,
        failed_invoices=failed,
        queue_length=queue_length,
        sent_percentage=percentage,
        monthly_net=round2(net),
        monthly_vat=round2(vat),
        monthly_gross=round2(gross),
    )
