from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

from invoicing.errors import UnknownBranchError
from invoicing.surcharge import SeasonalPerNight, SurchargeRule, surcharge_rule_from_dict


DEFAULT_VAT_MAP = {13.0: "VAT_13", 24.0: "VAT_24", 0.0: "VAT_0"}


class BranchKind(str, Enum):
    RESTAURANT = "restaurant"
    VILLA = "villa"


@dataclass(frozen=True)
class Issuer:
    name: str
    vat: str
    address: str = ""
    city: str = ""
    postal_code: str = ""
    phone: str = ""


@dataclass(frozen=True)
class RevenueMapping:
    document_type: str
    revenue_category: str
    default_vat: float
    allowed_vat_rates: tuple[float, ...]
    vat_map: Mapping[float, str] = field(default_factory=lambda: dict(DEFAULT_VAT_MAP))
    e3_code: str = "E3_GENERIC"
    e3_surcharge_code: str = "E3_SURCHARGE"
    surcharge_rule: Optional[SurchargeRule] = None

    def vat_category(self, rate: float) -> str:
        category = self.vat_map.get(float(rate))
        if category:
            return category
        return f"{float(rate):g}%"

    def allows_vat_rate(self, rate: Any) -> bool:
        try:
            return float(rate) in {float(r) for r in self.allowed_vat_rates}
        except (TypeError, ValueError):
            return False


@dataclass(frozen=True)
class Branch:
    id: str
    label: str
    series: str
    kind: BranchKind
    issuer: Issuer
    revenue_mapping: RevenueMapping

    @property
    def accepts_surcharge(self) -> bool:
        return self.kind == BranchKind.VILLA


class BranchRegistry:
    """Immutable lookup of the configured branches, in configuration order."""

    def __init__(self, branches: list[Branch]):
        if not branches:
            raise ValueError("At least one branch is required")
        self._branches: dict[str, Branch] = {}
        for branch in branches:
            if branch.id in self._branches:
                raise ValueError(f"Duplicate branch id '{branch.id}'")
            self._branches[branch.id] = branch

    def __contains__(self, branch_id: object) -> bool:
        return branch_id in self._branches

    def __iter__(self) -> Iterator[Branch]:
        return iter(list(self._branches.values()))

    def __len__(self) -> int:
        return len(self._branches)

    @property
    def default(self) -> Branch:
        return next(iter(self._branches.values()))

    def find(self, branch_id: str | None) -> Branch | None:
        if not branch_id:
            return None
        return self._branches.get(branch_id)

    def get(self, branch_id: str) -> Branch:
        branch = self.find(branch_id)
        if branch is None:
            raise UnknownBranchError(branch_id)
        return branch

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BranchRegistry":
        return cls([branch_from_dict(branch_id, raw) for branch_id, raw in data.items()])


def _vat_map_from_dict(raw: Mapping[str, Any] | None) -> dict[float, str]:
    if not raw:
        return dict(DEFAULT_VAT_MAP)
    return {float(rate): str(code) for rate, code in raw.items()}


def branch_from_dict(branch_id: str, raw: Mapping[str, Any]) -> Branch:
    mapping = raw.get("revenueMapping") or {}
    issuer = raw.get("issuer") or {}
    rule = surcharge_rule_from_dict(mapping.get("surchargeRule"))
    kind = raw.get("kind") or (BranchKind.VILLA.value if rule is not None else BranchKind.RESTAURANT.value)
    return Branch(
        id=str(raw.get("id") or branch_id),
        label=str(raw.get("label") or branch_id),
        series=str(raw.get("series") or ""),
        kind=BranchKind(kind),
        issuer=Issuer(
            name=str(issuer.get("name") or ""),
            vat=str(issuer.get("vat") or ""),
            address=str(issuer.get("address") or ""),
            city=str(issuer.get("city") or ""),
            postal_code=str(issuer.get("zip") or issuer.get("postalCode") or ""),
            phone=str(issuer.get("phone") or ""),
        ),
        revenue_mapping=RevenueMapping(
            document_type=str(mapping.get("documentType") or "1.1"),
            revenue_category=str(mapping.get("revenueCategory") or ""),
            default_vat=float(mapping.get("defaultVat", 13)),
            allowed_vat_rates=tuple(float(r) for r in mapping.get("allowedVatRates") or (13, 24)),
            vat_map=_vat_map_from_dict(mapping.get("vatMap")),
            e3_code=str((mapping.get("e3") or {}).get("code") or "E3_GENERIC"),
            e3_surcharge_code=str((mapping.get("e3Surcharge") or {}).get("code") or "E3_SURCHARGE"),
            surcharge_rule=rule,
        ),
    )


def load_branch_registry(path: str | Path) -> BranchRegistry:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("Branch file must contain an object keyed by branch id")
    return BranchRegistry.from_dict(raw)


# TAAK: 8 EUR per night from April to October, 2 EUR per night otherwise.
_TAAK_RULE = SeasonalPerNight(summer_rate=8.0, winter_rate=2.0)


def default_branch_registry() -> BranchRegistry:
    return BranchRegistry(
        [
            Branch(
                id="central",
                label="Italian Corner - Meeting Point",
                series="I-REST",
                kind=BranchKind.RESTAURANT,
                issuer=Issuer(
                    name="ITALIAN CORNER 'meeting point'",
                    vat="099999999",
                    address="Μάρκου Πορτάλιου 25",
                    city="Ρέθυμνο",
                    postal_code="74100",
                    phone="+302831020010",
                ),
                revenue_mapping=RevenueMapping(
                    document_type="1.1",
                    revenue_category="RESTAURANT_SERVICES",
                    default_vat=13.0,
                    allowed_vat_rates=(13.0, 24.0),
                    e3_code="E3_RESTAURANT",
                ),
            ),
            Branch(
                id="villa1",
                label="Villa Alexandros",
                series="I-VILLA1",
                kind=BranchKind.VILLA,
                issuer=Issuer(
                    name="Villa Alexandros OE",
                    vat="088888888",
                    address="Eparchiaki Odos Viran Episkopis-Monis Arkadiou 35",
                    city="Σκουλούφια",
                    postal_code="74052",
                ),
                revenue_mapping=RevenueMapping(
                    document_type="1.1",
                    revenue_category="ACCOMMODATION",
                    default_vat=13.0,
                    allowed_vat_rates=(13.0, 24.0),
                    e3_code="E3_ACCOMMODATION",
                    surcharge_rule=_TAAK_RULE,
                ),
            ),
            Branch(
                id="villa2",
                label="3A's Family Luxury Villa",
                series="I-VILLA2",
                kind=BranchKind.VILLA,
                issuer=Issuer(
                    name="3A's Family Luxury Villa OE",
                    vat="077777777",
                    address="Akadimias Vivi, 39",
                    city="Ρέθυμνο Πόλη",
                    postal_code="74150",
                ),
                revenue_mapping=RevenueMapping(
                    document_type="1.1",
                    revenue_category="ACCOMMODATION",
                    default_vat=13.0,
                    allowed_vat_rates=(13.0, 24.0),
                    e3_code="E3_ACCOMMODATION",
                    surcharge_rule=_TAAK_RULE,
                ),
            ),
        ]
    )
