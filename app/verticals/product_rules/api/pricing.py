from __future__ import annotations

import time
from functools import lru_cache
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException

from app.core.settings import settings
from app.verticals.product_rules.engine.rule_loader import RuleLoader, RuleSetError, filter_rules
from app.verticals.product_rules.engine.rule_runner import evaluate
from app.verticals.product_rules.engine.two_pass import price_line_item
from app.verticals.product_rules.rule_types.base import PricingRule
from app.verticals.product_rules.schemas.evaluate_v1 import (
    EvaluateRequestV1,
    EvaluationResultV1,
    LineRequestV1,
    PriceLineRequestV1,
    PriceLineResponseV1,
)

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/product-rules", tags=["product-rules"])


# ----------------------------
# Rule source
# ----------------------------
@lru_cache(maxsize=1)
def _loader() -> RuleLoader:
    return RuleLoader(settings.PRODUCT_RULES_PATH)


def get_rule_loader() -> RuleLoader:
    try:
        return _loader()
    except (OSError, RuleSetError) as e:
        log.error("rule_source_unavailable", path=settings.PRODUCT_RULES_PATH, error=str(e))
        raise HTTPException(status_code=503, detail="pricing rules unavailable")


def _resolve_rules(payload: LineRequestV1) -> List[PricingRule]:
    rules = payload.parsed_rules()
    if rules is not None:
        return rules
    loader = get_rule_loader()
    return filter_rules(loader.rules(), is_active=True)


# ----------------------------
# Endpoints
# ----------------------------
@router.post("/evaluate", response_model=EvaluationResultV1)
def evaluate_rules(payload: EvaluateRequestV1) -> EvaluationResultV1:
    t0 = time.perf_counter()
    rules = _resolve_rules(payload)
    result = evaluate(rules, payload.to_context(payload.order_total))

    log.info(
        "product_rules_evaluated",
        product_id=payload.product.id,
        qty=payload.quantity,
        mode=payload.pricing_mode.value,
        applied=list(result.applied_rule_ids),
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return EvaluationResultV1(**result.to_dict(), currency=settings.CURRENCY)


@router.post("/price-line", response_model=PriceLineResponseV1)
def price_line(payload: PriceLineRequestV1) -> PriceLineResponseV1:
    t0 = time.perf_counter()
    rules = _resolve_rules(payload)
    priced = price_line_item(rules, payload.to_context(), payload.other_lines_total)

    log.info(
        "line_item_priced",
        product_id=payload.product.id,
        qty=payload.quantity,
        other_lines_total=str(payload.other_lines_total),
        provisional_total=str(priced.provisional_total),
        monthly_revenue=str(priced.monthly_revenue),
        applied=list(priced.final.applied_rule_ids),
        duration_ms=round((time.perf_counter() - t0) * 1000, 2),
    )
    return PriceLineResponseV1(
        provisional=EvaluationResultV1(**priced.provisional.to_dict(), currency=settings.CURRENCY),
        provisionalTotal=str(priced.provisional_total),
        final=EvaluationResultV1(**priced.final.to_dict(), currency=settings.CURRENCY),
        line=priced.to_line_fields(),
        currency=settings.CURRENCY,
    )


@router.get("/rules")
def list_rules(
    product_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    service_type: Optional[str] = None,
    loader: RuleLoader = Depends(get_rule_loader),
) -> dict:
    loaded = loader.get()
    rules = filter_rules(
        loaded.ruleset.rules,
        product_id=product_id,
        is_active=is_active,
        service_type=service_type,
    )
    return {
        "ruleSetVersion": loaded.ruleset.rule_set_version,
        "rules": [r.to_dict() for r in rules],
    }
