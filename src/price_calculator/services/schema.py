"""
Row schemas for every persisted collection.

Each collection has an explicit pydantic model that the stores validate
against on write, independent of whatever client the backend ships with.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..engine.models import (
    Product, Region, Customer, CustomerTierDiscount, DiscountLine,
)


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProductRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=new_id)
    name: str
    category: str = ""
    base_price: float = Field(ge=0)
    unit: str

    def to_domain(self) -> Product:
        return Product(
            id=self.id,
            name=self.name,
            category=self.category or "",
            base_price=self.base_price,
            unit=self.unit,
        )

    @classmethod
    def from_domain(cls, product: Product) -> 'ProductRow':
        return cls(
            id=product.id or new_id(),
            name=product.name,
            category=product.category,
            base_price=product.base_price,
            unit=product.unit,
        )


class ProductRegionRow(BaseModel):
    """Region rows pass through backup/restore with any extra columns intact."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=new_id)
    name: str
    price_multiplier: float = Field(default=1.0, ge=0)
    region: str = "A"

    def to_domain(self) -> Region:
        return Region(
            id=self.id,
            name=self.name,
            price_multiplier=self.price_multiplier,
            region_group=self.region,
        )


class CustomerRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=new_id)
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)

    def to_domain(self, tiers: Optional[list[CustomerTierDiscount]] = None) -> Customer:
        return Customer(
            id=self.id,
            name=self.name,
            address=self.address,
            phone=self.phone,
            email=self.email,
            notes=self.notes,
            created_at=self.created_at,
            pricing_tiers=list(tiers or []),
        )


class CustomerPricingTierRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=new_id)
    customer_id: str
    tier_name: str
    discount_percentage: float = Field(ge=0, le=100)
    description: Optional[str] = None

    def to_domain(self) -> CustomerTierDiscount:
        return CustomerTierDiscount(
            id=self.id,
            customer_id=self.customer_id,
            tier_name=self.tier_name,
            discount_percentage=self.discount_percentage,
            description=self.description,
        )


class PriceHistoryRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=new_id)
    customer_id: Optional[str] = None
    product_name: str
    product_unit: str
    region_name: str
    base_price: float
    region_price: float
    discounts: list[dict[str, Any]] = Field(default_factory=list)
    net_price: float
    margin_amount: float
    margin_type: str
    payment_type: Optional[str] = None
    tempo_term_days: Optional[int] = None
    final_price: float
    notes: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)

    @field_validator("discounts", mode="before")
    @classmethod
    def _discounts_as_list(cls, value):
        # Older rows may hold null or a non-list JSON value here
        return value if isinstance(value, list) else []

    @property
    def discount_lines(self) -> list[DiscountLine]:
        return [DiscountLine.from_dict(d) for d in self.discounts if isinstance(d, dict)]

    @property
    def total_discount(self) -> float:
        return sum(line.amount for line in self.discount_lines)


PRODUCTS = "products"
PRODUCT_REGIONS = "product_regions"
CUSTOMERS = "customers"
CUSTOMER_PRICING_TIERS = "customer_pricing_tiers"
PRICE_HISTORY = "price_history"

COLLECTIONS: dict[str, type[BaseModel]] = {
    PRODUCTS: ProductRow,
    PRODUCT_REGIONS: ProductRegionRow,
    CUSTOMERS: CustomerRow,
    CUSTOMER_PRICING_TIERS: CustomerPricingTierRow,
    PRICE_HISTORY: PriceHistoryRow,
}

# Backup document key for each collection
BACKUP_KEYS = {
    PRODUCTS: "products",
    PRODUCT_REGIONS: "productRegions",
    CUSTOMERS: "customers",
    PRICE_HISTORY: "priceHistory",
    CUSTOMER_PRICING_TIERS: "customerPricingTiers",
}

# Referenced collections are written before the ones that point at them
IMPORT_ORDER = (PRODUCTS, PRODUCT_REGIONS, CUSTOMERS, PRICE_HISTORY, CUSTOMER_PRICING_TIERS)


def normalize_row(table: str, row: dict) -> dict:
    """Validate a row against its collection schema and return plain JSON data."""
    try:
        model = COLLECTIONS[table]
    except KeyError:
        raise ValueError(f"Unknown collection '{table}'")
    return model.model_validate(row).model_dump(mode="json")
