from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.core.settings import settings
from app.main import app
from app.verticals.product_rules.api import pricing


PRODUCT = {
    "id": "prod-dispenser",
    "name": "Dispensador",
    "category": "dispensadores",
    "pricing_mode": "venta",
    "base_unit_price": 5000,
}


@pytest.fixture
def client(monkeypatch, default_rules_path):
    monkeypatch.setattr(settings, "PRODUCT_RULES_PATH", str(default_rules_path))
    pricing._loader.cache_clear()
    yield TestClient(app)
    pricing._loader.cache_clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_evaluate_with_inline_rules(client):
    body = {
        "product": PRODUCT,
        "quantity": 6,
        "pricing_mode": "venta",
        "has_contract": True,
        "rules": [
            {"id": "rule-quantity", "priority": 10, "conditions": {"quantity": {"min": 5}}, "effects": {"unitPrice": 4000}},
            {"id": "rule-contract", "priority": 5, "conditions": {"contract": True}, "effects": {"benefits": ["contrato_12m"]}},
        ],
    }
    r = client.post("/api/product-rules/evaluate", json=body)

    assert r.status_code == 200
    data = r.json()
    assert data["appliedRuleIds"] == ["rule-contract", "rule-quantity"]
    assert data["unitPrice"] == "4000"
    assert data["benefits"] == ["contrato_12m"]
    assert data["total"] == "24000.00"
    assert data["ruleSnapshot"]["id"] == "rule-contract"


def test_evaluate_with_loaded_rules(client):
    body = {
        "product": PRODUCT,
        "quantity": 6,
        "pricing_mode": "venta",
        "has_contract": True,
        "contract_term_months": 12,
    }
    r = client.post("/api/product-rules/evaluate", json=body)

    assert r.status_code == 200
    assert r.json()["appliedRuleIds"] == ["contrato-12m", "dispensador-volumen"]


def test_price_line_two_pass(client):
    body = {
        "product": PRODUCT,
        "quantity": 10,
        "pricing_mode": "venta",
        "other_lines_total": 90000,
        "rules": [
            {"id": "volumen", "conditions": {"orderTotal": {"min": 100000}}, "effects": {"unitPrice": 4500}},
        ],
    }
    r = client.post("/api/product-rules/price-line", json=body)

    assert r.status_code == 200
    data = r.json()
    assert data["provisionalTotal"] == "50000.00"
    assert data["provisional"]["appliedRuleIds"] == []
    assert data["final"]["unitPrice"] == "4500"
    assert data["final"]["total"] == "45000.00"
    assert data["line"]["monthly_revenue"] == "45000.00"
    assert data["line"]["applied_rule_ids"] == ["volumen"]


@pytest.mark.parametrize(
    "patch",
    [
        {"quantity": 0},
        {"quantity": -2},
        {"pricing_mode": "trueque"},
        {"unexpected": True},
        {"rules": [{"priority": 1}]},
    ],
)
def test_evaluate_rejects_invalid_body(client, patch):
    body = {"product": PRODUCT, "quantity": 1, "pricing_mode": "venta"}
    body.update(patch)

    r = client.post("/api/product-rules/evaluate", json=body)
    assert r.status_code == 422


def test_pricing_mode_aliases_accepted(client):
    body = {
        "product": PRODUCT,
        "quantity": 1,
        "pricing_mode": "concesion",
        "rules": [{"id": "conc", "effects": {"unitPrice": 1000}}],
    }
    r = client.post("/api/product-rules/evaluate", json=body)

    assert r.status_code == 200
    assert r.json()["appliedRuleIds"] == ["conc"]


def test_empty_inline_rules_leave_pricing_to_caller(client):
    body = {"product": PRODUCT, "quantity": 2, "pricing_mode": "venta", "rules": []}
    r = client.post("/api/product-rules/evaluate", json=body)

    assert r.status_code == 200
    data = r.json()
    assert data["unitPrice"] is None
    assert data["total"] is None

    r = client.post("/api/product-rules/price-line", json=body)
    assert r.status_code == 200
    assert r.json()["line"]["monthly_revenue"] == "10000.00"


def test_responses_report_configured_currency(client, monkeypatch):
    body = {"product": PRODUCT, "quantity": 1, "pricing_mode": "venta", "rules": []}

    assert client.post("/api/product-rules/evaluate", json=body).json()["currency"] == "CLP"

    monkeypatch.setattr(settings, "CURRENCY", "USD")
    data = client.post("/api/product-rules/price-line", json=body).json()
    assert data["currency"] == "USD"
    assert data["final"]["currency"] == "USD"


def test_price_line_rejects_order_total(client):
    body = {"product": PRODUCT, "quantity": 1, "pricing_mode": "venta", "order_total": 999999}
    r = client.post("/api/product-rules/price-line", json=body)

    assert r.status_code == 422


def test_evaluate_uses_order_total(client):
    body = {
        "product": PRODUCT,
        "quantity": 1,
        "pricing_mode": "venta",
        "order_total": 150000,
        "rules": [{"id": "grande", "conditions": {"orderTotal": {"min": 100000}}, "effects": {"extraCharge": -500}}],
    }
    r = client.post("/api/product-rules/evaluate", json=body)

    assert r.status_code == 200
    assert r.json()["total"] == "4500.00"


def test_list_rules_filters(client):
    r = client.get("/api/product-rules/rules", params={"is_active": "false"})

    assert r.status_code == 200
    data = r.json()
    assert data["ruleSetVersion"] == "v1"
    assert [x["id"] for x in data["rules"]] == ["promo-invierno"]


def test_rule_source_unavailable_returns_503(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "PRODUCT_RULES_PATH", str(tmp_path / "missing.yaml"))
    pricing._loader.cache_clear()
    try:
        c = TestClient(app)
        body = {"product": PRODUCT, "quantity": 1, "pricing_mode": "venta"}
        r = c.post("/api/product-rules/evaluate", json=body)
        assert r.status_code == 503
    finally:
        pricing._loader.cache_clear()
