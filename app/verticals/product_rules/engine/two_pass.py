from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Sequence

from ..domain.models import to_decimal
from .context import EvaluationContext, EvaluationResult, money
from .rule_runner import RuleLike, evaluate

D = Decimal


@dataclass(frozen=True)
class LinePricing:
    """
    Outcome of pricing one line item with the two-pass protocol.

    `final` is authoritative; `provisional` is kept for audit/debug.
    """

    provisional: EvaluationResult
    provisional_total: D
    final: EvaluationResult
    monthly_revenue: D

    @property
    def unit_price(self) -> Optional[D]:
        """Persisted unit price: None for consumption-based (sentinel) billing."""
        if self.final.is_water_only:
            return None
        return self.final.unit_price  # type: ignore[return-value]

    def to_line_fields(self) -> Dict[str, Any]:
        """Fields stored on the opportunity line item."""
        f = self.final
        return {
            "unit_price": None if self.unit_price is None else str(self.unit_price),
            "monthly_revenue": str(self.monthly_revenue),
            "total_price": None if f.total is None else str(f.total),
            "benefits": list(f.benefits) or None,
            "extra_charges": None if f.extra_charge is None else str(f.extra_charge),
            "applied_rule_ids": list(f.applied_rule_ids) or None,
            "rule_snapshot": None if f.rule_snapshot is None else f.rule_snapshot.to_dict(),
        }


def _line_total(result: EvaluationResult, context: EvaluationContext) -> D:
    """Total of one pass, falling back to base price x quantity when no total came out."""
    if result.total is not None:
        return result.total
    if result.is_water_only:
        base = D("0")
    else:
        base = to_decimal(result.unit_price)
        if base is None:
            base = context.product.base_unit_price or D("0")
    q = context.quantity if isinstance(context.quantity, int) and context.quantity > 0 else 0
    return money(D(base) * q + (result.extra_charge or D("0")))


def price_line_item(
    rules: Sequence[RuleLike],
    context: EvaluationContext,
    other_lines_total: Any = D("0"),
) -> LinePricing:
    """
    Two-pass resolution of order-total dependent rules.

    1. provisional pass: order_total = other lines
    2. final pass: order_total = other lines + provisional total of this line

    Exactly two passes; the final pass is authoritative.
    """
    others = to_decimal(other_lines_total) or D("0")

    provisional = evaluate(rules, context.with_order_total(others))
    provisional_total = _line_total(provisional, context)

    final = evaluate(rules, context.with_order_total(others + provisional_total))
    monthly_revenue = _line_total(final, context)

    return LinePricing(
        provisional=provisional,
        provisional_total=provisional_total,
        final=final,
        monthly_revenue=monthly_revenue,
    )


def other_lines_total(line_totals: Iterable[Any], exclude_index: int) -> D:
    """
    Sum of the other line items of the order (the line being priced excluded).
    Non-numeric entries (half-filled rows) count as 0.
    """
    total = D("0")
    for idx, value in enumerate(line_totals):
        if idx == exclude_index:
            continue
        total += to_decimal(value) or D("0")
    return total
