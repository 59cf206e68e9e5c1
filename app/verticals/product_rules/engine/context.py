from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, localcontext
from typing import Any, Dict, List, Optional, Tuple

from ..domain.models import PricingMode, Product
from ..explain.breakdown_builder import Breakdown, BreakdownBuilder
from ..rule_types.base import WATER_ONLY, PricingRule, UnitPrice

D = Decimal


def money(amount: D) -> D:
    """Quantize to cents; precision grows with the magnitude so large amounts never raise."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return amount.quantize(D("0.01"))


# -----------------------------
# Input
# -----------------------------


@dataclass(frozen=True)
class EvaluationContext:
    """
    Inputs for one evaluation of one line item.

    order_total is the monetary total of the *other* line items of the
    order (plus, on the final pass, this line's provisional total).
    """

    product: Product
    quantity: int
    pricing_mode: PricingMode = PricingMode.SALE
    has_contract: bool = False
    contract_term_months: Optional[int] = None
    coverage_zone: Optional[str] = None
    service_type: Optional[str] = None
    order_total: D = D("0")

    def with_order_total(self, order_total: D) -> "EvaluationContext":
        return replace(self, order_total=order_total)

    @property
    def is_valid(self) -> bool:
        """Positive integer quantity and a supported pricing modality."""
        q = self.quantity
        if isinstance(q, bool) or not isinstance(q, int) or q <= 0:
            return False
        return isinstance(self.pricing_mode, PricingMode)


# -----------------------------
# Output
# -----------------------------


@dataclass(frozen=True)
class EvaluationResult:
    unit_price: Optional[UnitPrice] = None
    extra_charge: Optional[D] = None
    benefits: Tuple[str, ...] = ()
    notes: Tuple[str, ...] = ()
    applied_rule_ids: Tuple[str, ...] = ()
    rule_snapshot: Optional[PricingRule] = None
    total: Optional[D] = None
    steps: Tuple[str, ...] = ()

    @property
    def is_water_only(self) -> bool:
        return self.unit_price == WATER_ONLY

    def to_dict(self) -> Dict[str, Any]:
        """Shape persisted alongside the line item (camelCase like the CRM)."""
        return {
            "unitPrice": None if self.unit_price is None else str(self.unit_price),
            "extraCharge": None if self.extra_charge is None else str(self.extra_charge),
            "benefits": list(self.benefits),
            "notes": list(self.notes),
            "appliedRuleIds": list(self.applied_rule_ids),
            "ruleSnapshot": None if self.rule_snapshot is None else self.rule_snapshot.to_dict(),
            "total": None if self.total is None else str(self.total),
            "steps": list(self.steps),
        }


# -----------------------------
# Runtime state (per evaluation)
# -----------------------------


@dataclass
class EvaluationState:
    """Mutable accumulator; lives only inside one evaluate() call."""

    unit_price: Optional[UnitPrice] = None
    extra_charge: Optional[D] = None
    benefits: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    applied_rule_ids: List[str] = field(default_factory=list)
    first_rule: Optional[PricingRule] = None
    breakdown: Breakdown = field(default_factory=Breakdown)

    def add_benefit(self, tag: str) -> bool:
        if tag in self.benefits:
            return False
        self.benefits.append(tag)
        return True

    def add_extra_charge(self, amount: D) -> None:
        self.extra_charge = (self.extra_charge or D("0")) + amount

    def freeze(self, total: Optional[D]) -> EvaluationResult:
        return EvaluationResult(
            unit_price=self.unit_price,
            extra_charge=None if self.extra_charge is None else money(self.extra_charge),
            benefits=tuple(self.benefits),
            notes=tuple(self.notes),
            applied_rule_ids=tuple(self.applied_rule_ids),
            rule_snapshot=self.first_rule,
            total=total,
            steps=BreakdownBuilder().build_tuple(self.breakdown),
        )
