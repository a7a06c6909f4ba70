"""
Tier Resolver - Selects at most one customer tier discount for a calculation.
"""
from typing import Optional

from .models import Customer, CustomerTierDiscount


def resolve_tier(customer: Optional[Customer], tier_id: Optional[str]) -> Optional[CustomerTierDiscount]:
    """
    Resolve the active tier discount.

    Waterfall:
    1. No customer selected -> no tier
    2. Tier id owned by the customer -> that tier
    3. Anything else (foreign or unknown id) -> no tier
    """
    if customer is None:
        return None
    return customer.find_tier(tier_id)


class TierSelection:
    """
    Customer + tier selection state for the calculator.

    Switching customers always clears the selected tier, and a tier can only
    be selected if the current customer owns it.
    """

    def __init__(self, customer: Optional[Customer] = None, tier_id: Optional[str] = None):
        self.customer: Optional[Customer] = None
        self.tier_id: Optional[str] = None
        self.select_customer(customer)
        if tier_id:
            self.select_tier(tier_id)

    def select_customer(self, customer: Optional[Customer]):
        """Select a customer (or None); the previous tier never carries over."""
        self.customer = customer
        self.tier_id = None

    def select_tier(self, tier_id: Optional[str]):
        """Select one of the current customer's tiers, or clear with None."""
        if tier_id is None:
            self.tier_id = None
            return
        if resolve_tier(self.customer, tier_id) is None:
            owner = self.customer.name if self.customer else "no customer"
            raise ValueError(f"Tier '{tier_id}' does not belong to {owner}")
        self.tier_id = tier_id

    def clear(self):
        self.select_customer(None)

    @property
    def tier(self) -> Optional[CustomerTierDiscount]:
        return resolve_tier(self.customer, self.tier_id)

    @property
    def customer_name(self) -> Optional[str]:
        return self.customer.name if self.customer else None
