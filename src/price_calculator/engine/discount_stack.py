"""
Discount Stack - Ordered, capped list of manual discounts.

Used by the calculator UI and the duplicate workflow to edit the stacked
discounts that the pricing engine applies after the customer tier.
"""
from typing import Iterable, Optional

from ..config.settings import MAX_STACKED_DISCOUNTS
from ..errors import DiscountLimitReached
from .models import Discount, PERCENTAGE
from .pricing_engine import round_currency


def default_discounts() -> list[Discount]:
    """A fresh calculator starts with a single empty percentage discount."""
    return [Discount(id=1, label="Diskon 1", kind=PERCENTAGE, value=0, enabled=True)]


class DiscountStack:
    """
    Editable list of stacked discounts.

    Order is significant and preserved. Ids are unique within the list at
    the time an entry is created.
    """

    def __init__(self, discounts: Optional[Iterable[Discount]] = None, limit: int = MAX_STACKED_DISCOUNTS):
        self.limit = limit
        self._items: list[Discount] = list(discounts) if discounts is not None else default_discounts()

    def __iter__(self):
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> list[Discount]:
        return list(self._items)

    @property
    def can_add(self) -> bool:
        return len(self._items) < self.limit

    def get(self, discount_id: int) -> Optional[Discount]:
        for discount in self._items:
            if discount.id == discount_id:
                return discount
        return None

    def add(self) -> Discount:
        """Append an empty percentage discount."""
        if not self.can_add:
            raise DiscountLimitReached(self.limit)

        next_id = max((d.id for d in self._items), default=0) + 1
        discount = Discount(
            id=next_id,
            label=f"Diskon {len(self._items) + 1}",
            kind=PERCENTAGE,
            value=0,
            enabled=True,
        )
        self._items.append(discount)
        return discount

    def update(self, discount_id: int, **changes) -> Discount:
        """Replace fields on one entry, re-validating the result."""
        for i, discount in enumerate(self._items):
            if discount.id == discount_id:
                values = {
                    'id': discount.id,
                    'label': discount.label,
                    'kind': discount.kind,
                    'value': discount.value,
                    'enabled': discount.enabled,
                }
                for key, value in changes.items():
                    if key not in values or key == 'id':
                        raise ValueError(f"Cannot update discount field '{key}'")
                    values[key] = value
                self._items[i] = Discount(**values)
                return self._items[i]

        raise ValueError(f"Discount with ID '{discount_id}' not found")

    def toggle(self, discount_id: int, enabled: bool) -> Discount:
        return self.update(discount_id, enabled=enabled)

    def remove(self, discount_id: int) -> bool:
        original_count = len(self._items)
        self._items = [d for d in self._items if d.id != discount_id]
        if len(self._items) == original_count:
            raise ValueError(f"Discount with ID '{discount_id}' not found")
        return True

    def running_prices(self, start_price: float) -> list[Optional[int]]:
        """
        Preview of the running price after each entry.

        Inactive entries yield None. Values are rounded for display only;
        the preview compounds unrounded, like the on-screen hint it feeds.
        """
        preview = []
        price = start_price
        for discount in self._items:
            if discount.is_active:
                if discount.kind == PERCENTAGE:
                    price = price * (1 - discount.value / 100)
                else:
                    price = price - discount.value
                price = max(0, price)
                preview.append(round_currency(price))
            else:
                preview.append(None)
        return preview
