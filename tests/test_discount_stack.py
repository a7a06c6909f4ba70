import pytest

from price_calculator.engine.discount_stack import DiscountStack, default_discounts
from price_calculator.engine.models import Discount, PERCENTAGE, NOMINAL
from price_calculator.errors import DiscountLimitReached, ValidationFailed


def test_default_stack_has_single_empty_discount():
    stack = DiscountStack()
    assert len(stack) == 1
    only = stack.items[0]
    assert (only.id, only.label, only.kind, only.value, only.enabled) == (1, "Diskon 1", PERCENTAGE, 0, True)


def test_add_until_cap_then_reject_fifth():
    stack = DiscountStack()
    for _ in range(3):
        stack.add()
    assert [d.label for d in stack] == ["Diskon 1", "Diskon 2", "Diskon 3", "Diskon 4"]
    assert not stack.can_add

    with pytest.raises(DiscountLimitReached) as exc:
        stack.add()
    assert isinstance(exc.value, ValidationFailed)
    assert "discounts" in exc.value.errors
    assert len(stack) == 4


def test_new_ids_do_not_collide_after_removal():
    stack = DiscountStack()
    stack.add()
    stack.add()
    stack.remove(1)
    added = stack.add()
    assert added.id == 4
    assert len({d.id for d in stack}) == len(stack)


def test_update_and_toggle():
    stack = DiscountStack()
    stack.update(1, kind=NOMINAL, value=2500, label="Promo")
    stack.toggle(1, False)
    discount = stack.get(1)
    assert (discount.label, discount.kind, discount.value, discount.enabled) == ("Promo", NOMINAL, 2500, False)


def test_update_rejects_unknown_field_and_invalid_value():
    stack = DiscountStack()
    with pytest.raises(ValueError):
        stack.update(1, colour="red")
    with pytest.raises(ValueError):
        stack.update(1, value=-5)
    with pytest.raises(ValueError):
        stack.update(99, value=5)


def test_remove_unknown_raises():
    with pytest.raises(ValueError):
        DiscountStack().remove(42)


def test_running_prices_preview():
    stack = DiscountStack([
        Discount(id=1, label="A", kind=PERCENTAGE, value=10),
        Discount(id=2, label="B", kind=PERCENTAGE, value=10, enabled=False),
        Discount(id=3, label="C", kind=NOMINAL, value=1000),
    ])
    assert stack.running_prices(100000) == [90000, None, 89000]


def test_default_discounts_returns_fresh_list():
    first = default_discounts()
    first.append(Discount(id=2, label="x"))
    assert len(default_discounts()) == 1
