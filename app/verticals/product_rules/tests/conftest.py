from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from app.verticals.product_rules.domain.models import PricingMode, Product
from app.verticals.product_rules.engine.context import EvaluationContext
from app.verticals.product_rules.rule_types.base import PricingRule

VERTICAL_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def default_rules_path() -> Path:
    return VERTICAL_ROOT / "rules" / "rule_sets" / "default.yaml"


@pytest.fixture
def product():
    return Product(
        id="prod-dispenser",
        name="Dispensador frío/caliente",
        category="dispensadores",
        pricing_mode=PricingMode.SALE,
        base_unit_price=Decimal("5000"),
        allow_sale=True,
        allow_rental=True,
    )


@pytest.fixture
def product_no_price():
    return Product(id="prod-custom", category="otros", base_unit_price=None)


@pytest.fixture
def make_rule():
    def _make(rule_id, *, priority=100, conditions=None, effects=None, is_active=True, **extra):
        row = {
            "id": rule_id,
            "name": extra.pop("name", rule_id),
            "priority": priority,
            "is_active": is_active,
            "conditions": conditions or {},
            "effects": effects or {},
        }
        row.update(extra)
        return PricingRule.from_dict(row)

    return _make


@pytest.fixture
def make_ctx(product):
    def _make(**overrides):
        fields = {
            "product": product,
            "quantity": 1,
            "pricing_mode": PricingMode.SALE,
            "has_contract": False,
        }
        fields.update(overrides)
        return EvaluationContext(**fields)

    return _make
