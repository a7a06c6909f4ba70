#!/usr/bin/env python
"""
Seed the configured store with the default regions and sample products.

Usage:
    python scripts/seed_data.py            # regions + sample products
    python scripts/seed_data.py --regions  # regions only
"""
import argparse
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from price_calculator.config.settings import get_settings, configure_logging
from price_calculator.data.sample_data import SAMPLE_PRODUCTS
from price_calculator.services.catalog_service import CatalogService
from price_calculator.services.store import build_store


def main():
    parser = argparse.ArgumentParser(description="Seed regions and sample products")
    parser.add_argument('--regions', action='store_true', help="Only seed the default regions")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level)
    catalog = CatalogService(build_store(settings))

    print("=" * 60)
    print("PRICE CALCULATOR SEED")
    print("=" * 60)
    print(f"Store: {settings.store_backend} ({settings.store_url or settings.data_dir})")

    added = catalog.ensure_default_regions()
    print(f"[1/2] Regions: {added} added" if added else "[1/2] Regions already present")

    if args.regions:
        return

    existing = {p.name for p in catalog.list_products()}
    created = 0
    for product in SAMPLE_PRODUCTS:
        if product['name'] in existing:
            continue
        catalog.add_product(product)
        created += 1
    print(f"[2/2] Sample products: {created} added, {len(existing)} already present")


if __name__ == "__main__":
    main()
