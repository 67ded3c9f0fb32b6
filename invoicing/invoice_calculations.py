from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from invoicing.models import LineItem
from invoicing.money import round2, to_decimal


_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LineAmounts:
    gross: Decimal
    net: Decimal
    vat: Decimal


@dataclass(frozen=True)
class Totals:
    net: float
    vat: float

    @property
    def gross(self) -> float:
        return self.net + self.vat


def line_amounts(item: LineItem) -> LineAmounts:
    """Split a line into net and VAT, treating the unit price as VAT-inclusive."""
    gross = to_decimal(item.quantity) * to_decimal(item.unit_price)
    factor = Decimal("1") + to_decimal(item.vat_rate) / _HUNDRED
    net = gross / factor if factor else gross
    return LineAmounts(gross=gross, net=net, vat=gross - net)


def compute_totals(items: Iterable[LineItem] | None) -> Totals:
    """Unrounded net and VAT over all lines. Round with ``round2`` at the boundary."""
    net = Decimal("0")
    vat = Decimal("0")
    for item in items or []:
        amounts = line_amounts(item)
        net += amounts.net
        vat += amounts.vat
    return Totals(net=float(net), vat=float(vat))


def rounded_totals(
    items: Iterable[LineItem] | None,
    surcharge: float = 0.0,
    *,
    include_surcharge: bool = True,
) -> dict[str, float]:
    totals = compute_totals(items)
    surcharge_q = round2(surcharge or 0)
    gross = to_decimal(round2(totals.net)) + to_decimal(round2(totals.vat))
    if include_surcharge:
        gross += to_decimal(surcharge_q)
    return {
        "net": round2(totals.net),
        "vat": round2(totals.vat),
        "gross": round2(gross),
        "surcharge": surcharge_q,
    }
