"""
Catalog API - products, regions, customers and pricing tiers.
"""
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends

from .state import AppState, get_state

router = APIRouter(tags=["catalog"])


@router.get("/products")
def list_products(category: Optional[str] = None, search: Optional[str] = None,
                  state: AppState = Depends(get_state)):
    return [asdict(p) for p in state.catalog.list_products(category, search)]


@router.get("/products/{product_id}")
def get_product(product_id: str, state: AppState = Depends(get_state)):
    return asdict(state.catalog.get_product(product_id))


@router.post("/products", status_code=201)
def add_product(data: dict, state: AppState = Depends(get_state)):
    return asdict(state.catalog.add_product(data))


@router.put("/products/{product_id}")
def update_product(product_id: str, data: dict, state: AppState = Depends(get_state)):
    return asdict(state.catalog.update_product(product_id, data))


@router.delete("/products/{product_id}")
def delete_product(product_id: str, state: AppState = Depends(get_state)):
    return {"deleted": state.catalog.delete_product(product_id)}


@router.get("/regions")
def list_regions(state: AppState = Depends(get_state)):
    return {group: [asdict(r) for r in regions] for group, regions in state.catalog.regions_by_group().items()}


@router.get("/regions/{region_id}")
def get_region(region_id: str, state: AppState = Depends(get_state)):
    return asdict(state.catalog.get_region(region_id))


@router.get("/customers")
def list_customers(state: AppState = Depends(get_state)):
    return [asdict(c) for c in state.catalog.list_customers()]


@router.get("/customers/{customer_id}")
def get_customer(customer_id: str, state: AppState = Depends(get_state)):
    return asdict(state.catalog.get_customer(customer_id))


@router.post("/customers", status_code=201)
def add_customer(data: dict, state: AppState = Depends(get_state)):
    return asdict(state.catalog.add_customer(data))


@router.put("/customers/{customer_id}")
def update_customer(customer_id: str, data: dict, state: AppState = Depends(get_state)):
    return asdict(state.catalog.update_customer(customer_id, data))


@router.delete("/customers/{customer_id}")
def delete_customer(customer_id: str, state: AppState = Depends(get_state)):
    return {"deleted": state.catalog.delete_customer(customer_id)}


@router.get("/customers/{customer_id}/tiers")
def list_tiers(customer_id: str, state: AppState = Depends(get_state)):
    return [asdict(t) for t in state.catalog.list_tiers(customer_id)]


@router.post("/customers/{customer_id}/tiers", status_code=201)
def add_tier(customer_id: str, data: dict, state: AppState = Depends(get_state)):
    return asdict(state.catalog.add_tier(customer_id, data))


@router.delete("/customers/{customer_id}/tiers/{tier_id}")
def delete_tier(customer_id: str, tier_id: str, state: AppState = Depends(get_state)):
    return {"deleted": state.catalog.delete_tier(tier_id)}
