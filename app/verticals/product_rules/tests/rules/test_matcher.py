from decimal import Decimal

import pytest

from app.verticals.product_rules.engine.matcher import matches


def test_product_id_condition(make_rule, make_ctx):
    rule = make_rule("p", conditions={"product": "prod-dispenser"})
    other = make_rule("o", conditions={"product": "prod-bidon"})

    assert matches(rule, make_ctx())
    assert not matches(other, make_ctx())


def test_product_category_is_exact(make_rule, make_ctx):
    assert matches(make_rule("c", conditions={"productCategory": "dispensadores"}), make_ctx())
    assert not matches(make_rule("c", conditions={"productCategory": "Dispensadores"}), make_ctx())
    assert not matches(make_rule("c", conditions={"productCategory": "dispensador"}), make_ctx())


@pytest.mark.parametrize(
    "qty, expected",
    [(4, False), (5, True), (8, True), (10, True), (11, False)],
)
def test_quantity_range_is_inclusive(make_rule, make_ctx, qty, expected):
    rule = make_rule("q", conditions={"quantity": {"min": 5, "max": 10}})
    assert matches(rule, make_ctx(quantity=qty)) is expected


def test_quantity_max_only(make_rule, make_ctx):
    rule = make_rule("q", conditions={"quantity": {"max": 3}})

    assert matches(rule, make_ctx(quantity=3))
    assert not matches(rule, make_ctx(quantity=4))


def test_contract_flag(make_rule, make_ctx):
    rule = make_rule("c", conditions={"contract": True})

    assert matches(rule, make_ctx(has_contract=True))
    assert not matches(rule, make_ctx(has_contract=False))


def test_contract_false_does_not_constrain(make_rule, make_ctx):
    rule = make_rule("c", conditions={"contract": False})

    assert matches(rule, make_ctx(has_contract=True))
    assert matches(rule, make_ctx(has_contract=False))


def test_contract_months_minimum(make_rule, make_ctx):
    rule = make_rule("m", conditions={"contractMonths": 12})

    assert matches(rule, make_ctx(contract_term_months=12))
    assert matches(rule, make_ctx(contract_term_months=24))
    assert not matches(rule, make_ctx(contract_term_months=6))
    # no contract length counts as 0 months
    assert not matches(rule, make_ctx(contract_term_months=None))


def test_contract_months_zero_matches_without_contract(make_rule, make_ctx):
    assert matches(make_rule("m", conditions={"contractMonths": 0}), make_ctx(contract_term_months=None))


def test_zone_and_service_type(make_rule, make_ctx):
    rule = make_rule("z", conditions={"zone": "norte", "serviceType": "recarga"})

    assert matches(rule, make_ctx(coverage_zone="norte", service_type="recarga"))
    assert not matches(rule, make_ctx(coverage_zone="sur", service_type="recarga"))
    assert not matches(rule, make_ctx(coverage_zone="norte", service_type=None))


@pytest.mark.parametrize(
    "order_total, expected",
    [("99999.99", False), ("100000", True), ("150000", True), ("200000", True), ("200000.01", False)],
)
def test_order_total_range_is_inclusive(make_rule, make_ctx, order_total, expected):
    rule = make_rule("t", conditions={"orderTotal": {"min": 100000, "max": 200000}})
    assert matches(rule, make_ctx(order_total=Decimal(order_total))) is expected


def test_order_total_none_counts_as_zero(make_rule, make_ctx):
    rule = make_rule("t", conditions={"orderTotal": {"max": 0}})
    assert matches(rule, make_ctx(order_total=None))


def test_all_conditions_must_hold(make_rule, make_ctx):
    rule = make_rule(
        "all",
        conditions={
            "productCategory": "dispensadores",
            "quantity": {"min": 2},
            "contract": True,
            "zone": "centro",
        },
    )

    assert matches(rule, make_ctx(quantity=2, has_contract=True, coverage_zone="centro"))
    assert not matches(rule, make_ctx(quantity=2, has_contract=True, coverage_zone="norte"))


def test_impossible_range_never_matches(make_rule, make_ctx):
    rule = make_rule("bad", conditions={"quantity": {"min": 10, "max": 5}})

    for qty in (1, 5, 7, 10, 20):
        assert not matches(rule, make_ctx(quantity=qty))


def test_malformed_condition_values_do_not_constrain(make_rule, make_ctx):
    rule = make_rule(
        "junk",
        conditions={
            "quantity": {"min": "abc"},
            "orderTotal": [1, 2],
            "contract": "yes",
            "contractMonths": {"x": 1},
            "zone": "   ",
            "unknownCondition": 42,
        },
    )
    assert matches(rule, make_ctx(quantity=1))


def test_invalid_context_never_matches(make_rule, make_ctx):
    rule = make_rule("any")

    assert not matches(rule, make_ctx(quantity=0))
    assert not matches(rule, make_ctx(quantity=2.5))
    assert not matches(rule, make_ctx(quantity=True))
    assert not matches(rule, make_ctx(pricing_mode="trueque"))
