from __future__ import annotations

from decimal import Decimal

from ..domain.models import to_decimal
from ..rule_types.base import PricingRule
from .context import EvaluationContext

D = Decimal


def matches(rule: PricingRule, context: EvaluationContext) -> bool:
    """
    True iff every condition the rule specifies holds for the context.
    Unspecified conditions are vacuously satisfied. Never raises: an invalid
    context (non-positive quantity, unknown modality) or an impossible range
    simply does not match.
    """
    if not context.is_valid:
        return False

    cond = rule.conditions
    product = context.product

    if cond.product is not None and cond.product != product.id:
        return False

    if cond.product_category is not None and cond.product_category != product.category:
        return False

    if cond.quantity is not None and not cond.quantity.contains(D(context.quantity)):
        return False

    if cond.contract is True and not context.has_contract:
        return False

    if cond.contract_months is not None:
        months = to_decimal(context.contract_term_months) or D("0")
        if months < cond.contract_months:
            return False

    if cond.zone is not None and cond.zone != context.coverage_zone:
        return False

    if cond.service_type is not None and cond.service_type != context.service_type:
        return False

    if cond.order_total is not None:
        total = to_decimal(context.order_total) or D("0")
        if not cond.order_total.contains(total):
            return False

    return True
