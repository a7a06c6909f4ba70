"""Engine subpackage - core pricing logic and resolution."""
from .pricing_engine import PricingEngine, round_currency
from .models import (
    Product, Region, Discount, Customer, CustomerTierDiscount,
    ProfitMargin, DiscountLine, PriceCalculation,
)
from .discount_stack import DiscountStack, default_discounts
from .tier_resolver import TierSelection, resolve_tier
from .margin import margin_label, parse_margin_label
from .calculator import CalculatorState

__all__ = [
    'PricingEngine', 'round_currency',
    'Product', 'Region', 'Discount', 'Customer', 'CustomerTierDiscount',
    'ProfitMargin', 'DiscountLine', 'PriceCalculation',
    'DiscountStack', 'default_discounts',
    'TierSelection', 'resolve_tier',
    'margin_label', 'parse_margin_label',
    'CalculatorState',
]
