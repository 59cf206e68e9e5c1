from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Mapping, Optional

D = Decimal


# -----------------------------
# Pricing modality
# -----------------------------


class PricingMode(str, Enum):
    SALE = "venta"
    RENTAL = "alquiler"
    CONCESSION = "concesión"

    @classmethod
    def parse(cls, value: Any) -> Optional["PricingMode"]:
        """
        Lenient parse: stored values (venta/alquiler/concesión), the English
        names and the unaccented 'concesion'. Unknown -> None.
        """
        if isinstance(value, PricingMode):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        return _MODE_ALIASES.get(key)


_MODE_ALIASES: Dict[str, PricingMode] = {
    "venta": PricingMode.SALE,
    "sale": PricingMode.SALE,
    "alquiler": PricingMode.RENTAL,
    "rental": PricingMode.RENTAL,
    "concesión": PricingMode.CONCESSION,
    "concesion": PricingMode.CONCESSION,
    "concession": PricingMode.CONCESSION,
}

# Order used when the product's default mode is not allowed
PRICING_MODES = (PricingMode.SALE, PricingMode.RENTAL, PricingMode.CONCESSION)


# -----------------------------
# Value helpers
# -----------------------------


def to_decimal(value: Any) -> Optional[D]:
    """None/bool/garbage -> None, numbers and numeric strings -> Decimal."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, D):
        return value if value.is_finite() else None
    try:
        out = D(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return out if out.is_finite() else None


def normalize_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# -----------------------------
# Catalog product
# -----------------------------


@dataclass(frozen=True)
class Product:
    id: str
    category: str
    name: str = ""
    pricing_mode: PricingMode = PricingMode.SALE
    base_unit_price: Optional[D] = None
    allow_sale: bool = True
    allow_rental: bool = False
    allow_concession: bool = False
    min_concession_units: Optional[int] = None
    rental_monthly_fee: Optional[D] = None
    is_active: bool = True

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "Product":
        """Build from a catalog row (snake_case, as the products table stores it)."""
        min_units = to_decimal(d.get("min_concession_units"))
        return Product(
            id=str(d["id"]),
            category=str(d.get("category") or ""),
            name=str(d.get("name") or ""),
            pricing_mode=PricingMode.parse(d.get("pricing_mode")) or PricingMode.SALE,
            base_unit_price=to_decimal(d.get("base_unit_price")),
            allow_sale=bool(d.get("allow_sale", True)),
            allow_rental=bool(d.get("allow_rental", False)),
            allow_concession=bool(d.get("allow_concession", False)),
            min_concession_units=int(min_units) if min_units is not None else None,
            rental_monthly_fee=to_decimal(d.get("rental_monthly_fee")),
            is_active=bool(d.get("is_active", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "pricing_mode": self.pricing_mode.value,
            "base_unit_price": _str_or_none(self.base_unit_price),
            "allow_sale": self.allow_sale,
            "allow_rental": self.allow_rental,
            "allow_concession": self.allow_concession,
            "min_concession_units": self.min_concession_units,
            "rental_monthly_fee": _str_or_none(self.rental_monthly_fee),
            "is_active": self.is_active,
        }


def _str_or_none(value: Optional[D]) -> Optional[str]:
    return None if value is None else str(value)


def allowed_modes(product: Optional[Product]) -> Dict[PricingMode, bool]:
    """No product selected (custom line) -> every modality is allowed."""
    if product is None:
        return {mode: True for mode in PRICING_MODES}
    return {
        PricingMode.SALE: product.allow_sale,
        PricingMode.RENTAL: product.allow_rental,
        PricingMode.CONCESSION: product.allow_concession,
    }


def fallback_pricing_mode(product: Product) -> PricingMode:
    """
    Modality preselected when a product is picked on a line item:
    the product's default when allowed, else the first allowed one, else sale.
    """
    allowed = allowed_modes(product)
    if allowed[product.pricing_mode]:
        return product.pricing_mode
    for mode in PRICING_MODES:
        if allowed[mode]:
            return mode
    return PricingMode.SALE
