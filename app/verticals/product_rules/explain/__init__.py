# app/verticals/product_rules/explain/__init__.py
from __future__ import annotations

from .breakdown_builder import Breakdown, BreakdownBuilder, BreakdownEntry, clean_message

__all__ = [
    "Breakdown",
    "BreakdownBuilder",
    "BreakdownEntry",
    "clean_message",
]
