# app/verticals/product_rules/schemas/evaluate_v1.py
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, constr, field_validator

from ..domain.models import PricingMode, Product
from ..engine.context import EvaluationContext
from ..rule_types.base import PricingRule


class ProductV1(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: constr(strip_whitespace=True, min_length=1)  # type: ignore
    category: str = ""
    name: str = ""
    pricing_mode: PricingMode = PricingMode.SALE
    base_unit_price: Optional[Decimal] = None
    allow_sale: bool = True
    allow_rental: bool = False
    allow_concession: bool = False
    min_concession_units: Optional[int] = None
    rental_monthly_fee: Optional[Decimal] = None
    is_active: bool = True

    @field_validator("pricing_mode", mode="before")
    @classmethod
    def _parse_mode(cls, v: Any) -> Any:
        return PricingMode.parse(v) or v

    def to_domain(self) -> Product:
        return Product(**self.model_dump())


class LineRequestV1(BaseModel):
    """
    Context = allowlist. Rules are passed as stored rows (conditions/effects blobs);
    omit them to evaluate against the loaded rule set.
    """

    model_config = ConfigDict(extra="forbid")

    product: ProductV1
    quantity: PositiveInt
    pricing_mode: PricingMode
    has_contract: bool = False
    contract_term_months: Optional[int] = Field(default=None, ge=0)
    coverage_zone: Optional[str] = None
    service_type: Optional[str] = None
    rules: Optional[List[Dict[str, Any]]] = None

    @field_validator("pricing_mode", mode="before")
    @classmethod
    def _parse_mode(cls, v: Any) -> Any:
        return PricingMode.parse(v) or v

    @field_validator("rules")
    @classmethod
    def _rules_have_ids(cls, v: Optional[List[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
        if v is not None:
            for i, row in enumerate(v):
                if not str(row.get("id") or "").strip():
                    raise ValueError(f"rules[{i}] has no id")
        return v

    def to_context(self, order_total: Decimal = Decimal("0")) -> EvaluationContext:
        return EvaluationContext(
            product=self.product.to_domain(),
            quantity=self.quantity,
            pricing_mode=self.pricing_mode,
            has_contract=self.has_contract,
            contract_term_months=self.contract_term_months,
            coverage_zone=self.coverage_zone,
            service_type=self.service_type,
            order_total=order_total,
        )

    def parsed_rules(self) -> Optional[List[PricingRule]]:
        if self.rules is None:
            return None
        return [PricingRule.from_dict(r) for r in self.rules]


class EvaluateRequestV1(LineRequestV1):
    order_total: Decimal = Decimal("0")


class PriceLineRequestV1(LineRequestV1):
    """The order total is derived from the other lines, never sent directly."""

    other_lines_total: Decimal = Decimal("0")


class EvaluationResultV1(BaseModel):
    unitPrice: Optional[str] = None
    extraCharge: Optional[str] = None
    benefits: List[str] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)
    appliedRuleIds: List[str] = Field(default_factory=list)
    ruleSnapshot: Optional[Dict[str, Any]] = None
    total: Optional[str] = None
    steps: List[str] = Field(default_factory=list)
    currency: str


class PriceLineResponseV1(BaseModel):
    provisional: EvaluationResultV1
    provisionalTotal: str
    final: EvaluationResultV1
    line: Dict[str, Any]
    currency: str
