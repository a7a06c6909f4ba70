import pytest

from price_calculator.engine import PricingEngine, round_currency
from price_calculator.engine.models import (
    Discount, CustomerTierDiscount, ProfitMargin, Product,
    PERCENTAGE, NOMINAL, TEMPO, SOURCE_TIER, SOURCE_MANUAL,
)


@pytest.fixture
def engine():
    return PricingEngine()


@pytest.fixture
def no_margin():
    return ProfitMargin(margin_kind=PERCENTAGE, value=0)


def test_region_price_and_single_discount_with_margin(engine, sofa, kendal):
    """100000 x 1.05, 10% discount, 10% margin."""
    discounts = [Discount(id=1, label="Diskon 1", kind=PERCENTAGE, value=10)]
    margin = ProfitMargin(margin_kind=PERCENTAGE, value=10)

    result = engine.compute(sofa, kendal, None, discounts, margin)

    assert result.region_price == 105000
    assert [(d.label, d.amount) for d in result.discounts] == [("Diskon 1", 10500)]
    assert result.net_price == 94500
    assert result.margin_amount == 9450
    assert result.final_price == 103950


def test_tier_discount_applied_first(engine, sofa, kendal, no_margin):
    tier = CustomerTierDiscount(id="t1", customer_id="c1", tier_name="Gold", discount_percentage=5)
    discounts = [Discount(id=1, label="Diskon 1", kind=NOMINAL, value=5000)]

    result = engine.compute(sofa, kendal, tier, discounts, no_margin, customer_name="Toko Jaya")

    assert result.discounts[0].label == "Toko Jaya - Gold"
    assert result.discounts[0].amount == 5250
    assert result.discounts[0].source == SOURCE_TIER
    assert result.discounts[1].source == SOURCE_MANUAL
    assert result.net_price == 94750


def test_stacked_percentages_compound(engine, kudus, no_margin):
    product = Product(id="p", name="Meja", category="Meja", base_price=100000, unit="unit")
    discounts = [Discount(id=i, label=f"Diskon {i}", kind=PERCENTAGE, value=10) for i in (1, 2, 3)]

    result = engine.compute(product, kudus, None, discounts, no_margin)

    assert [d.amount for d in result.discounts] == [10000, 9000, 8100]
    assert result.net_price == 72900


def test_missing_product_or_region_returns_none(engine, sofa, kendal, no_margin):
    assert engine.compute(None, kendal, None, [], no_margin) is None
    assert engine.compute(sofa, None, None, [], no_margin) is None


def test_inactive_discounts_emit_no_line_items(engine, sofa, kudus, no_margin):
    discounts = [
        Discount(id=1, label="Off", kind=PERCENTAGE, value=10, enabled=False),
        Discount(id=2, label="Zero", kind=NOMINAL, value=0),
        Discount(id=3, label="On", kind=NOMINAL, value=1000),
    ]
    result = engine.compute(sofa, kudus, None, discounts, no_margin)
    assert [d.label for d in result.discounts] == ["On"]
    assert result.net_price == 99000


def test_nominal_discount_floors_at_zero(engine, sofa, kudus, no_margin):
    discounts = [
        Discount(id=1, label="Besar", kind=NOMINAL, value=150000),
        Discount(id=2, label="Lagi", kind=PERCENTAGE, value=10),
    ]
    result = engine.compute(sofa, kudus, None, discounts, no_margin)
    assert result.net_price == 0
    assert result.discounts[1].amount == 0
    assert result.final_price == 0


def test_nominal_margin_added_as_is(engine, sofa, kudus):
    margin = ProfitMargin(payment_type=TEMPO, margin_kind=NOMINAL, value=7500, tempo_term_days=45)
    result = engine.compute(sofa, kudus, None, [], margin)
    assert result.margin_amount == 7500
    assert result.final_price == 107500


def test_net_price_never_increases(engine, sofa, kendal, no_margin):
    discounts = [
        Discount(id=1, label="A", kind=PERCENTAGE, value=12.5),
        Discount(id=2, label="B", kind=NOMINAL, value=3333),
        Discount(id=3, label="C", kind=PERCENTAGE, value=33),
    ]
    result = engine.compute(sofa, kendal, None, discounts, no_margin)
    running = result.region_price
    for line in result.discounts:
        assert line.amount >= 0
        running -= line.amount
    assert running == result.net_price
    assert result.net_price >= 0


def test_compute_is_idempotent(engine, sofa, kendal):
    tier = CustomerTierDiscount(id="t1", customer_id="c1", tier_name="Silver", discount_percentage=3)
    discounts = [Discount(id=1, label="Diskon 1", kind=PERCENTAGE, value=7)]
    margin = ProfitMargin(margin_kind=PERCENTAGE, value=12)

    first = engine.compute(sofa, kendal, tier, discounts, margin)
    second = engine.compute(sofa, kendal, tier, discounts, margin)
    assert first.to_dict() == second.to_dict()
    assert first.get_trace_text() == second.get_trace_text()


@pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.4999, 2), (10499.5, 10500)])
def test_round_currency_half_up(value, expected):
    assert round_currency(value) == expected


def test_model_constructors_reject_invalid_values():
    with pytest.raises(ValueError):
        Product(id="p", name="x", category="", base_price=-1, unit="unit")
    with pytest.raises(ValueError):
        Discount(id=1, label="x", kind="bogus", value=1)
    with pytest.raises(ValueError):
        CustomerTierDiscount(id="t", customer_id="c", tier_name="x", discount_percentage=101)


def test_tempo_margin_defaults_term():
    margin = ProfitMargin(payment_type=TEMPO, margin_kind=PERCENTAGE, value=5)
    assert margin.tempo_term_days == 30
    cash = ProfitMargin(margin_kind=PERCENTAGE, value=5, tempo_term_days=60)
    assert cash.tempo_term_days is None
