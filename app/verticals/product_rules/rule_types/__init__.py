from .base import (  # noqa
    DEFAULT_PRIORITY,
    WATER_ONLY,
    NumericRange,
    PricingRule,
    RuleConditions,
    RuleEffects,
)
