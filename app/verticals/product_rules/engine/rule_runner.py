from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Union

from ..explain.breakdown_builder import clean_message
from ..rule_types.base import DEFAULT_PRIORITY, WATER_ONLY, PricingRule, UnitPrice
from .context import EvaluationContext, EvaluationResult, EvaluationState, money
from .matcher import matches

D = Decimal

RuleLike = Union[PricingRule, Mapping[str, Any]]


def _coerce_rule(rule: Any) -> Optional[PricingRule]:
    """Raw rows without an id, or entries that are not rows at all, are skipped."""
    if isinstance(rule, PricingRule):
        return rule
    if not isinstance(rule, Mapping) or not str(rule.get("id") or "").strip():
        return None
    return PricingRule.from_dict(rule)


def _priority(rule: PricingRule) -> int:
    p = rule.priority
    if isinstance(p, bool) or not isinstance(p, int):
        return DEFAULT_PRIORITY
    return p


def order_rules(rules: Iterable[RuleLike]) -> List[PricingRule]:
    """Active rules only, ascending priority; ties keep input order (sorted() is stable)."""
    coerced = (_coerce_rule(x) for x in rules or ())
    active = [r for r in coerced if r is not None and r.is_active is True]
    return sorted(active, key=_priority)


class RuleEvaluator:
    """
    Deterministic single-pass evaluator.

    Behavior:
    - active rules only, ascending priority (stable)
    - for each matching rule: record id, fold effects, keep first as snapshot
    - unit price: last matching rule with a unit price wins
    - extra charge: additive; benefits: deduplicated union; notes: collected
    - no rules at all -> no pricing decision (caller supplies the fallback)
    - no unit price after folding -> product base price (if any)
    - sentinel unit price -> quantity contributes nothing to the total

    Pure: no clock, no randomness, inputs are never mutated. The two-pass
    order-total protocol lives in two_pass.py, not here.
    """

    def evaluate(
        self, rules: Iterable[RuleLike], context: EvaluationContext
    ) -> EvaluationResult:
        rules = list(rules or ())
        if not rules:
            return EvaluationResult()

        state = EvaluationState()
        state.breakdown.add_meta(
            "INIT",
            clean_message(
                f"product={context.product.id}, qty={context.quantity}, "
                f"mode={getattr(context.pricing_mode, 'value', context.pricing_mode)}, "
                f"orderTotal={context.order_total}"
            ),
        )
        if not context.is_valid:
            state.breakdown.add_meta(
                "INVALID_CONTEXT", "quantity or pricing mode invalid: no rule can match"
            )

        for rule in order_rules(rules):
            if not matches(rule, context):
                continue
            self._apply(state, rule)

        if state.unit_price is None and context.product.base_unit_price is not None:
            state.unit_price = context.product.base_unit_price
            state.breakdown.add_step(
                "BASE_PRICE", f"Base unit price: {context.product.base_unit_price}"
            )

        total = self._total(state.unit_price, state.extra_charge, context)
        if total is not None:
            state.breakdown.add_step("TOTAL", f"Total: {total}")

        return state.freeze(total)

    @staticmethod
    def _apply(state: EvaluationState, rule: PricingRule) -> None:
        state.applied_rule_ids.append(rule.id)
        if state.first_rule is None:
            state.first_rule = rule

        label = clean_message(rule.name or rule.id)
        state.breakdown.add_step("RULE_MATCHED", clean_message(f"{label} [{rule.id}] (priority {_priority(rule)})"))

        effects = rule.effects

        if effects.unit_price is not None:
            state.unit_price = effects.unit_price
            if effects.unit_price == WATER_ONLY:
                state.breakdown.add_step("UNIT_PRICE", clean_message(f"{label}: consumption-based billing, no unit charge"))
            else:
                state.breakdown.add_step("UNIT_PRICE", clean_message(f"{label}: unit price {effects.unit_price}"))

        if effects.extra_charge is not None:
            state.add_extra_charge(effects.extra_charge)
            state.breakdown.add_step("EXTRA_CHARGE", clean_message(f"{label}: extra charge {effects.extra_charge:+}"))

        for tag in effects.benefits:
            if state.add_benefit(tag):
                state.breakdown.add_step("BENEFIT", clean_message(f"{label}: benefit {tag}"))

        if effects.notes is not None:
            state.notes.append(effects.notes)
            state.breakdown.add_step("NOTE", clean_message(f"{label}: {effects.notes}"))

    @staticmethod
    def _total(
        unit_price: Optional[UnitPrice],
        extra_charge: Optional[D],
        context: EvaluationContext,
    ) -> Optional[D]:
        q = context.quantity
        qty = D(q) if isinstance(q, int) and not isinstance(q, bool) and q > 0 else D("0")

        total: Optional[D] = None
        if unit_price == WATER_ONLY:
            total = D("0")
        elif unit_price is not None:
            total = D(unit_price) * qty

        if extra_charge is not None:
            total = (total or D("0")) + extra_charge

        return None if total is None else money(total)


_default_evaluator = RuleEvaluator()


def evaluate(rules: Iterable[RuleLike], context: EvaluationContext) -> EvaluationResult:
    return _default_evaluator.evaluate(rules, context)
