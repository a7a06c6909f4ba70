"""
Data models for the pricing engine.

Uses dataclasses for structured, type-safe data representation. Constructors
reject negative or out-of-range amounts so invalid input never reaches the engine.
"""
from dataclasses import dataclass, field, asdict
from typing import Optional

from ..config.settings import DEFAULT_TEMPO_TERM


PERCENTAGE = "percentage"
NOMINAL = "nominal"
DISCOUNT_KINDS = (PERCENTAGE, NOMINAL)

CASH = "cash"
TEMPO = "tempo"
PAYMENT_TYPES = (CASH, TEMPO)

SOURCE_TIER = "tier"
SOURCE_MANUAL = "manual"

REGION_GROUPS = ("A", "B")


@dataclass
class TraceStep:
    """A single step in the price calculation trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class Product:
    """A sellable item with its list price."""
    id: str
    name: str
    category: str
    base_price: float
    unit: str

    def __post_init__(self):
        if self.base_price is None or self.base_price < 0:
            raise ValueError(f"base_price must be >= 0 (got {self.base_price})")


@dataclass
class Region:
    """A delivery region; its multiplier is applied to the base price."""
    id: str
    name: str
    price_multiplier: float
    region_group: str = "A"

    def __post_init__(self):
        if self.price_multiplier is None or self.price_multiplier < 0:
            raise ValueError(f"price_multiplier must be >= 0 (got {self.price_multiplier})")


@dataclass
class Discount:
    """A manually stacked discount."""
    id: int
    label: str
    kind: str = PERCENTAGE
    value: float = 0
    enabled: bool = True

    def __post_init__(self):
        if self.kind not in DISCOUNT_KINDS:
            raise ValueError(f"Unknown discount kind '{self.kind}'")
        if self.value is None or self.value < 0:
            raise ValueError(f"Discount value must be >= 0 (got {self.value})")

    @property
    def is_active(self) -> bool:
        return self.enabled and self.value > 0


@dataclass
class CustomerTierDiscount:
    """A percentage discount attached to one customer."""
    id: str
    customer_id: str
    tier_name: str
    discount_percentage: float
    description: Optional[str] = None

    def __post_init__(self):
        if self.discount_percentage is None or not 0 <= self.discount_percentage <= 100:
            raise ValueError(
                f"discount_percentage must be between 0 and 100 (got {self.discount_percentage})"
            )


@dataclass
class Customer:
    """A customer with the pricing tiers it owns."""
    id: str
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    pricing_tiers: list[CustomerTierDiscount] = field(default_factory=list)

    def find_tier(self, tier_id: Optional[str]) -> Optional[CustomerTierDiscount]:
        """Return the owned tier with this id, or None."""
        if not tier_id:
            return None
        for tier in self.pricing_tiers:
            if tier.id == tier_id:
                return tier
        return None


@dataclass
class ProfitMargin:
    """Margin configuration (cash or deferred 'tempo' payment)."""
    payment_type: str = CASH
    margin_kind: str = PERCENTAGE
    value: float = 0
    tempo_term_days: Optional[int] = None

    def __post_init__(self):
        if self.payment_type not in PAYMENT_TYPES:
            raise ValueError(f"Unknown payment type '{self.payment_type}'")
        if self.margin_kind not in DISCOUNT_KINDS:
            raise ValueError(f"Unknown margin kind '{self.margin_kind}'")
        if self.value is None or self.value < 0:
            raise ValueError(f"Margin value must be >= 0 (got {self.value})")
        if self.payment_type == TEMPO:
            if self.tempo_term_days is None:
                self.tempo_term_days = DEFAULT_TEMPO_TERM
            if int(self.tempo_term_days) <= 0:
                raise ValueError(f"tempo_term_days must be positive (got {self.tempo_term_days})")
            self.tempo_term_days = int(self.tempo_term_days)
        else:
            self.tempo_term_days = None


@dataclass
class DiscountLine:
    """One itemized discount in a calculation, tagged with where it came from."""
    label: str
    amount: float
    source: Optional[str] = SOURCE_MANUAL

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'DiscountLine':
        """Build from a stored line item; legacy rows carry no source tag."""
        return cls(
            label=str(data.get('label', '')),
            amount=data.get('amount', 0) or 0,
            source=data.get('source'),
        )


@dataclass
class PriceCalculation:
    """Complete, itemized result of a price calculation."""
    base_price: float
    region_price: int
    discounts: list[DiscountLine]
    net_price: float
    margin_amount: float
    final_price: float
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the calculation trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    @property
    def total_discount(self) -> float:
        return sum(line.amount for line in self.discounts)

    @property
    def tier_line(self) -> Optional[DiscountLine]:
        for line in self.discounts:
            if line.source == SOURCE_TIER:
                return line
        return None

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Breakdown without the trace, in field order."""
        return {
            "base_price": self.base_price,
            "region_price": self.region_price,
            "discounts": [line.to_dict() for line in self.discounts],
            "net_price": self.net_price,
            "margin_amount": self.margin_amount,
            "final_price": self.final_price,
        }
