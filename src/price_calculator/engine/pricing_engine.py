"""
Pricing Engine - Core sale price resolution with traceability.

Resolution order:
1. Region price: base price × region multiplier, rounded once to whole rupiah
2. Customer tier discount (at most one), always the first line item
3. Stacked manual discounts in list order, each against the running price
4. Margin on top of the net price (percentage of net, or nominal)

The engine is a pure function of its inputs: no I/O, no logging, and
identical inputs always produce an identical PriceCalculation.
"""
import math
from typing import Iterable, Optional

from .models import (
    Product, Region, Discount, CustomerTierDiscount, ProfitMargin,
    DiscountLine, PriceCalculation, PERCENTAGE, SOURCE_TIER, SOURCE_MANUAL,
)


def round_currency(amount: float) -> int:
    """Round half up to the nearest whole currency unit."""
    return int(math.floor(amount + 0.5))


def format_amount(amount: float) -> str:
    """Short rupiah rendering used in trace values."""
    return f"Rp {amount:,.0f}".replace(",", ".")


def apply_discount(running_price: float, kind: str, value: float) -> tuple[float, float]:
    """
    Apply one discount to the running price.

    Returns (amount, new_running_price). Percentages are computed against the
    running price and rounded; nominal amounts are taken as-is. The running
    price never drops below zero.
    """
    if kind == PERCENTAGE:
        amount = round_currency(running_price * (value / 100))
    else:
        amount = value
    return amount, max(0, running_price - amount)


class PricingEngine:
    """
    Computes an itemized sale price breakdown.

    Stateless; a single instance can be shared by the API, UI and services.
    """

    def compute(
        self,
        product: Optional[Product],
        region: Optional[Region],
        tier: Optional[CustomerTierDiscount],
        discounts: Iterable[Discount],
        margin: ProfitMargin,
        customer_name: Optional[str] = None,
    ) -> Optional[PriceCalculation]:
        """
        Calculate the price breakdown.

        Args:
            product: Selected product (None means nothing to price)
            region: Selected region (None means nothing to price)
            tier: Customer tier discount, applied before manual discounts
            discounts: Stacked manual discounts in application order
            margin: Margin configuration
            customer_name: Used to label the tier line item

        Returns:
            PriceCalculation, or None when product or region is missing
        """
        if product is None or region is None:
            return None

        base_price = product.base_price
        region_price = round_currency(base_price * region.price_multiplier)

        calculation = PriceCalculation(
            base_price=base_price,
            region_price=region_price,
            discounts=[],
            net_price=0,
            margin_amount=0,
            final_price=0,
        )
        calculation.add_trace(
            "Region Price",
            f"{format_amount(base_price)} × {region.price_multiplier} ({region.name})",
            format_amount(region_price),
        )

        running_price = region_price

        if tier is not None:
            amount, running_price = apply_discount(running_price, PERCENTAGE, tier.discount_percentage)
            label = f"{customer_name} - {tier.tier_name}" if customer_name else tier.tier_name
            calculation.discounts.append(DiscountLine(label=label, amount=amount, source=SOURCE_TIER))
            calculation.add_trace(
                "Tier Discount",
                f"{label} ({tier.discount_percentage}%)",
                format_amount(running_price),
            )

        for discount in discounts:
            if not discount.is_active:
                continue
            amount, running_price = apply_discount(running_price, discount.kind, discount.value)
            calculation.discounts.append(
                DiscountLine(label=discount.label, amount=amount, source=SOURCE_MANUAL)
            )
            suffix = "%" if discount.kind == PERCENTAGE else " nominal"
            calculation.add_trace(
                "Discount",
                f"{discount.label} ({discount.value}{suffix})",
                format_amount(running_price),
            )

        calculation.net_price = running_price

        if margin.margin_kind == PERCENTAGE:
            calculation.margin_amount = round_currency(running_price * (margin.value / 100))
        else:
            calculation.margin_amount = margin.value

        calculation.final_price = calculation.net_price + calculation.margin_amount
        calculation.add_trace(
            "Margin",
            f"{margin.payment_type} {margin.value}{'%' if margin.margin_kind == PERCENTAGE else ''}",
            format_amount(calculation.margin_amount),
        )
        calculation.add_trace("Final Price", "Net price + margin", format_amount(calculation.final_price))

        return calculation
