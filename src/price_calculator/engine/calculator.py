"""
Calculator state - the live selections the pricing engine is run against.
"""
from dataclasses import dataclass, field
from typing import Optional

from .discount_stack import DiscountStack
from .models import Product, Region, ProfitMargin, PriceCalculation, PERCENTAGE, CASH
from .pricing_engine import PricingEngine
from .tier_resolver import TierSelection


def default_margin() -> ProfitMargin:
    return ProfitMargin(payment_type=CASH, margin_kind=PERCENTAGE, value=10)


@dataclass
class CalculatorState:
    """Everything the user has selected on the calculator screen."""
    product: Optional[Product] = None
    region: Optional[Region] = None
    selection: TierSelection = field(default_factory=TierSelection)
    discounts: DiscountStack = field(default_factory=DiscountStack)
    margin: ProfitMargin = field(default_factory=default_margin)

    def calculate(self, engine: Optional[PricingEngine] = None) -> Optional[PriceCalculation]:
        """Recompute from scratch; None until both product and region are chosen."""
        engine = engine or PricingEngine()
        return engine.compute(
            self.product,
            self.region,
            self.selection.tier,
            self.discounts,
            self.margin,
            customer_name=self.selection.customer_name,
        )
