"""
Catalog Service - CRUD for products, regions, customers and their pricing tiers.
"""
import logging
from typing import Optional

from ..data.sample_data import DEFAULT_REGIONS
from ..engine.models import Product, Region, Customer, CustomerTierDiscount
from ..errors import RecordNotFound
from .schema import (
    ProductRow, ProductRegionRow, CustomerRow, CustomerPricingTierRow,
    PRODUCTS, PRODUCT_REGIONS, CUSTOMERS, CUSTOMER_PRICING_TIERS,
)
from .store import TableStore
from .validation import CustomerInput, ProductInput, TierInput, validate_input

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for managing the live entities the calculator selects from."""

    def __init__(self, store: TableStore):
        self.store = store

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def list_products(self, category: Optional[str] = None, search: Optional[str] = None) -> list[Product]:
        """List products sorted by name, optionally filtered."""
        products = [
            ProductRow.model_validate(row).to_domain()
            for row in self.store.select(PRODUCTS, order_by='name')
        ]
        if category and category.lower() != 'all':
            products = [p for p in products if p.category.lower() == category.lower()]
        if search:
            needle = search.lower()
            products = [p for p in products if needle in p.name.lower() or needle in p.category.lower()]
        return products

    def products_by_category(self) -> dict[str, list[Product]]:
        grouped: dict[str, list[Product]] = {}
        for product in self.list_products():
            grouped.setdefault(product.category or "Lainnya", []).append(product)
        return grouped

    def get_product(self, product_id: str) -> Product:
        row = self.store.get(PRODUCTS, product_id)
        if row is None:
            raise RecordNotFound(PRODUCTS, product_id)
        return ProductRow.model_validate(row).to_domain()

    def find_product_by_name(self, name: str) -> Optional[Product]:
        for product in self.list_products():
            if product.name == name:
                return product
        return None

    def add_product(self, data: dict) -> Product:
        form = validate_input(ProductInput, data)
        row = self.store.insert(PRODUCTS, form.model_dump())
        logger.info("Product added: %s", row['name'])
        return ProductRow.model_validate(row).to_domain()

    def update_product(self, product_id: str, data: dict) -> Product:
        form = validate_input(ProductInput, data)
        row = self.store.update(PRODUCTS, product_id, form.model_dump())
        return ProductRow.model_validate(row).to_domain()

    def delete_product(self, product_id: str) -> bool:
        return self.store.delete(PRODUCTS, product_id)

    # ------------------------------------------------------------------
    # Regions
    # ------------------------------------------------------------------

    def ensure_default_regions(self) -> int:
        """Seed the default regions into an empty collection."""
        if self.store.select(PRODUCT_REGIONS, limit=1):
            return 0
        count = self.store.upsert(PRODUCT_REGIONS, DEFAULT_REGIONS)
        logger.info("Seeded %d default regions", count)
        return count

    def list_regions(self) -> list[Region]:
        rows = self.store.select(PRODUCT_REGIONS)
        regions = [ProductRegionRow.model_validate(row).to_domain() for row in rows]
        return sorted(regions, key=lambda r: (r.region_group, r.price_multiplier, r.name))

    def regions_by_group(self) -> dict[str, list[Region]]:
        grouped: dict[str, list[Region]] = {}
        for region in self.list_regions():
            grouped.setdefault(region.region_group, []).append(region)
        return grouped

    def get_region(self, region_id: str) -> Region:
        row = self.store.get(PRODUCT_REGIONS, region_id)
        if row is None:
            raise RecordNotFound(PRODUCT_REGIONS, region_id)
        return ProductRegionRow.model_validate(row).to_domain()

    def find_region_by_name(self, name: str) -> Optional[Region]:
        for region in self.list_regions():
            if region.name == name:
                return region
        return None

    # ------------------------------------------------------------------
    # Customers and pricing tiers
    # ------------------------------------------------------------------

    def list_customers(self) -> list[Customer]:
        """List customers sorted by name, each with its pricing tiers attached."""
        tiers_by_customer: dict[str, list[CustomerTierDiscount]] = {}
        for row in self.store.select(CUSTOMER_PRICING_TIERS):
            tier = CustomerPricingTierRow.model_validate(row).to_domain()
            tiers_by_customer.setdefault(tier.customer_id, []).append(tier)

        return [
            CustomerRow.model_validate(row).to_domain(tiers_by_customer.get(row['id'], []))
            for row in self.store.select(CUSTOMERS, order_by='name')
        ]

    def get_customer(self, customer_id: str) -> Customer:
        row = self.store.get(CUSTOMERS, customer_id)
        if row is None:
            raise RecordNotFound(CUSTOMERS, customer_id)
        return CustomerRow.model_validate(row).to_domain(self.list_tiers(customer_id))

    def customer_names(self) -> dict[str, str]:
        return {row['id']: row['name'] for row in self.store.select(CUSTOMERS)}

    def add_customer(self, data: dict) -> Customer:
        form = validate_input(CustomerInput, data)
        row = self.store.insert(CUSTOMERS, form.model_dump())
        logger.info("Customer added: %s", row['name'])
        return CustomerRow.model_validate(row).to_domain()

    def update_customer(self, customer_id: str, data: dict) -> Customer:
        form = validate_input(CustomerInput, data)
        row = self.store.update(CUSTOMERS, customer_id, form.model_dump())
        return CustomerRow.model_validate(row).to_domain(self.list_tiers(customer_id))

    def delete_customer(self, customer_id: str) -> bool:
        """Delete a customer and the tiers it owns."""
        for tier in self.list_tiers(customer_id):
            self.store.delete(CUSTOMER_PRICING_TIERS, tier.id)
        return self.store.delete(CUSTOMERS, customer_id)

    def list_tiers(self, customer_id: str) -> list[CustomerTierDiscount]:
        return [
            CustomerPricingTierRow.model_validate(row).to_domain()
            for row in self.store.select(CUSTOMER_PRICING_TIERS, customer_id=customer_id)
        ]

    def add_tier(self, customer_id: str, data: dict) -> CustomerTierDiscount:
        form = validate_input(TierInput, data)
        if self.store.get(CUSTOMERS, customer_id) is None:
            raise RecordNotFound(CUSTOMERS, customer_id)
        row = self.store.insert(CUSTOMER_PRICING_TIERS, {'customer_id': customer_id, **form.model_dump()})
        return CustomerPricingTierRow.model_validate(row).to_domain()

    def delete_tier(self, tier_id: str) -> bool:
        return self.store.delete(CUSTOMER_PRICING_TIERS, tier_id)
