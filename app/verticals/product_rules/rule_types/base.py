from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..domain.models import normalize_text, to_decimal

D = Decimal

# Unit price sentinel: billing is consumption based, no flat per-unit charge
WATER_ONLY = "solo_agua_consumida"

# Priority used when a rule is authored without one
DEFAULT_PRIORITY = 100

UnitPrice = Union[D, str]


def _pick(d: Mapping[str, Any], *keys: str) -> Any:
    """First present key wins (camelCase as stored by the CRM, snake_case from Python callers)."""
    for k in keys:
        if k in d:
            return d[k]
    return None


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


# -----------------------
# Conditions
# -----------------------


@dataclass(frozen=True)
class NumericRange:
    """Inclusive range; either bound may be absent."""

    min: Optional[D] = None
    max: Optional[D] = None

    @property
    def is_empty(self) -> bool:
        return self.min is None and self.max is None

    @property
    def is_impossible(self) -> bool:
        return self.min is not None and self.max is not None and self.min > self.max

    def contains(self, value: D) -> bool:
        if self.is_impossible:
            return False
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

    @staticmethod
    def from_value(value: Any) -> Optional["NumericRange"]:
        d = _as_mapping(value)
        rng = NumericRange(min=to_decimal(d.get("min")), max=to_decimal(d.get("max")))
        return None if rng.is_empty else rng

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.min is not None:
            out["min"] = str(self.min)
        if self.max is not None:
            out["max"] = str(self.max)
        return out


@dataclass(frozen=True)
class RuleConditions:
    """Every field is optional; None means 'does not constrain'."""

    product: Optional[str] = None
    product_category: Optional[str] = None
    quantity: Optional[NumericRange] = None
    contract: Optional[bool] = None
    contract_months: Optional[D] = None
    zone: Optional[str] = None
    service_type: Optional[str] = None
    order_total: Optional[NumericRange] = None

    @staticmethod
    def from_dict(value: Any) -> "RuleConditions":
        d = _as_mapping(value)
        contract = _pick(d, "contract")
        return RuleConditions(
            product=normalize_text(_pick(d, "product", "productId", "product_id")),
            product_category=normalize_text(_pick(d, "productCategory", "product_category")),
            quantity=NumericRange.from_value(_pick(d, "quantity")),
            contract=contract if isinstance(contract, bool) else None,
            contract_months=to_decimal(_pick(d, "contractMonths", "contract_months")),
            zone=normalize_text(_pick(d, "zone", "coverageZone", "coverage_zone")),
            service_type=normalize_text(_pick(d, "serviceType", "service_type")),
            order_total=NumericRange.from_value(_pick(d, "orderTotal", "order_total")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.product is not None:
            out["product"] = self.product
        if self.product_category is not None:
            out["productCategory"] = self.product_category
        if self.quantity is not None:
            out["quantity"] = self.quantity.to_dict()
        if self.contract is not None:
            out["contract"] = self.contract
        if self.contract_months is not None:
            out["contractMonths"] = str(self.contract_months)
        if self.zone is not None:
            out["zone"] = self.zone
        if self.service_type is not None:
            out["serviceType"] = self.service_type
        if self.order_total is not None:
            out["orderTotal"] = self.order_total.to_dict()
        return out


# -----------------------
# Effects
# -----------------------


def _parse_unit_price(value: Any) -> Optional[UnitPrice]:
    if isinstance(value, str) and value.strip() == WATER_ONLY:
        return WATER_ONLY
    return to_decimal(value)


def _parse_benefits(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()
    out = []
    for item in value:
        tag = normalize_text(item)
        if tag is not None and tag not in out:
            out.append(tag)
    return tuple(out)


@dataclass(frozen=True)
class RuleEffects:
    unit_price: Optional[UnitPrice] = None
    extra_charge: Optional[D] = None
    benefits: Tuple[str, ...] = ()
    notes: Optional[str] = None

    @staticmethod
    def from_dict(value: Any) -> "RuleEffects":
        d = _as_mapping(value)
        return RuleEffects(
            unit_price=_parse_unit_price(_pick(d, "unitPrice", "unit_price")),
            extra_charge=to_decimal(_pick(d, "extraCharge", "extra_charge")),
            benefits=_parse_benefits(_pick(d, "benefits")),
            notes=normalize_text(_pick(d, "notes")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.unit_price is not None:
            out["unitPrice"] = str(self.unit_price)
        if self.extra_charge is not None:
            out["extraCharge"] = str(self.extra_charge)
        if self.benefits:
            out["benefits"] = list(self.benefits)
        if self.notes is not None:
            out["notes"] = self.notes
        return out


# -----------------------
# Rule
# -----------------------


@dataclass(frozen=True)
class PricingRule:
    id: str
    name: str = ""
    priority: int = DEFAULT_PRIORITY
    is_active: bool = True
    conditions: RuleConditions = field(default_factory=RuleConditions)
    effects: RuleEffects = field(default_factory=RuleEffects)

    # Row columns, used by the rule source to pre-filter (not by the matcher)
    description: Optional[str] = None
    product_id: Optional[str] = None
    product_category: Optional[str] = None
    service_type: Optional[str] = None
    coverage_zone: Optional[str] = None

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "PricingRule":
        """
        Parse a stored rule row. Missing priority -> 100, missing active flag -> True.
        Malformed conditions/effects parse as empty (match anything / no effect).
        """
        priority = to_decimal(_pick(d, "priority"))
        is_active = _pick(d, "is_active", "isActive")
        return PricingRule(
            id=str(d["id"]),
            name=normalize_text(d.get("name")) or str(d["id"]),
            priority=int(priority) if priority is not None else DEFAULT_PRIORITY,
            is_active=is_active if isinstance(is_active, bool) else True,
            conditions=RuleConditions.from_dict(d.get("conditions")),
            effects=RuleEffects.from_dict(d.get("effects")),
            description=normalize_text(d.get("description")),
            product_id=normalize_text(_pick(d, "product_id", "productId")),
            product_category=normalize_text(_pick(d, "product_category", "productCategory")),
            service_type=normalize_text(_pick(d, "service_type", "serviceType")),
            coverage_zone=normalize_text(_pick(d, "coverage_zone", "coverageZone")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "priority": self.priority,
            "is_active": self.is_active,
            "product_id": self.product_id,
            "product_category": self.product_category,
            "service_type": self.service_type,
            "coverage_zone": self.coverage_zone,
            "conditions": self.conditions.to_dict(),
            "effects": self.effects.to_dict(),
        }
