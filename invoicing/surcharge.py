from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from invoicing.models import Invoice, LineItem
from invoicing.money import round2, to_decimal

if TYPE_CHECKING:
    from invoicing.branches import Branch


logger = logging.getLogger(__name__)

SUMMER_MONTHS = range(4, 11)  # April to October inclusive


@dataclass(frozen=True)
class PerNight:
    rate: float
    effective_from: Optional[str] = None
    effective_to: Optional[str] = None
    mode = "perNight"


@dataclass(frozen=True)
class SeasonalPerNight:
    summer_rate: float
    winter_rate: float
    effective_from: Optional[str] = None
    effective_to: Optional[str] = None
    mode = "seasonalPerNight"


@dataclass(frozen=True)
class PercentNet:
    # Fraction, e.g. 0.005 for half a percent. Applied to qty * entered (gross) price.
    percent: float
    effective_from: Optional[str] = None
    effective_to: Optional[str] = None
    mode = "percentNet"


@dataclass(frozen=True)
class FlatPerInvoice:
    amount: float
    effective_from: Optional[str] = None
    effective_to: Optional[str] = None
    mode = "flatPerInvoice"


SurchargeRule = Union[PerNight, SeasonalPerNight, PercentNet, FlatPerInvoice]


def surcharge_rule_from_dict(data: dict[str, Any] | None) -> SurchargeRule | None:
    if not data:
        return None
    mode = data.get("mode")
    bounds = {
        "effective_from": data.get("effectiveFrom") or data.get("effective_from"),
        "effective_to": data.get("effectiveTo") or data.get("effective_to"),
    }
    if mode == PerNight.mode:
        return PerNight(rate=float(data.get("rate", 0) or 0), **bounds)
    if mode == SeasonalPerNight.mode:
        return SeasonalPerNight(
            summer_rate=float(data.get("summerRate", data.get("summer_rate", 0)) or 0),
            winter_rate=float(data.get("winterRate", data.get("winter_rate", 0)) or 0),
            **bounds,
        )
    if mode == PercentNet.mode:
        return PercentNet(percent=float(data.get("percent", 0) or 0), **bounds)
    if mode == FlatPerInvoice.mode:
        return FlatPerInvoice(amount=float(data.get("amount", 0) or 0), **bounds)
    raise ValueError(f"Unknown surcharge rule mode: {mode!r}")


def surcharge_rule_to_dict(rule: SurchargeRule) -> dict[str, Any]:
    data: dict[str, Any] = {"mode": rule.mode}
    if isinstance(rule, PerNight):
        data["rate"] = rule.rate
    elif isinstance(rule, SeasonalPerNight):
        data["summerRate"] = rule.summer_rate
        data["winterRate"] = rule.winter_rate
    elif isinstance(rule, PercentNet):
        data["percent"] = rule.percent
    elif isinstance(rule, FlatPerInvoice):
        data["amount"] = rule.amount
    if rule.effective_from:
        data["effectiveFrom"] = rule.effective_from
    if rule.effective_to:
        data["effectiveTo"] = rule.effective_to
    return data


def _parse_date(value: str | None) -> date | None:
    try:
        return date.fromisoformat((value or "").strip()[:10])
    except ValueError:
        return None


def _within_bounds(rule: SurchargeRule, invoice_date: date | None) -> bool:
    if invoice_date is None:
        # Unparseable invoice date: the bounds cannot be checked, so they are skipped.
        return True
    start = _parse_date(rule.effective_from) if rule.effective_from else None
    end = _parse_date(rule.effective_to) if rule.effective_to else None
    if rule.effective_from and start is None:
        logger.warning("surcharge.bad_effective_from", extra={"value": rule.effective_from})
    if rule.effective_to and end is None:
        logger.warning("surcharge.bad_effective_to", extra={"value": rule.effective_to})
    if start is not None and invoice_date < start:
        return False
    if end is not None and invoice_date > end:
        return False
    return True


def _nights(items: Iterable[LineItem]) -> float:
    return float(sum(to_decimal(item.quantity) for item in items))


def compute_surcharge(
    branch: "Branch",
    invoice_date: str | None,
    items: Iterable[LineItem],
    *,
    today: date | None = None,
) -> float:
    """Accommodation levy for a villa branch, rounded to the cent.

    Non-villa branches and branches without a rule always yield 0.
    """
    rule = branch.revenue_mapping.surcharge_rule
    if rule is None or not branch.accepts_surcharge:
        return 0.0

    items = list(items or [])
    parsed = _parse_date(invoice_date)
    if not _within_bounds(rule, parsed):
        return 0.0

    value = to_decimal(0)
    if isinstance(rule, PerNight):
        value = to_decimal(rule.rate) * to_decimal(_nights(items))
    elif isinstance(rule, SeasonalPerNight):
        month = (parsed or today or date.today()).month
        rate = rule.summer_rate if month in SUMMER_MONTHS else rule.winter_rate
        value = to_decimal(rate) * to_decimal(_nights(items))
    elif isinstance(rule, PercentNet):
        base = sum((to_decimal(it.quantity) * to_decimal(it.unit_price) for it in items), to_decimal(0))
        value = to_decimal(rule.percent) * base
    elif isinstance(rule, FlatPerInvoice):
        value = to_decimal(rule.amount)
    return round2(value)


def effective_surcharge(invoice: Invoice, branch: "Branch") -> float:
    """Surcharge carried by an invoice.

    The rule is authoritative whenever there are items to evaluate it on; the
    stored ``invoice.surcharge`` is only a cache, except for surcharge-only
    documents that have no items.
    """
    if not branch.accepts_surcharge:
        return 0.0
    if branch.revenue_mapping.surcharge_rule is not None and invoice.items:
        return compute_surcharge(branch, invoice.invoice_date, invoice.items)
    return round2(invoice.surcharge or 0)
