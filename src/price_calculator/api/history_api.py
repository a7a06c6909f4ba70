"""
History API - saved calculations, price list and the duplicate workflow.
"""
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..services.history_service import HistoryEntry, group_by_product
from .calculator_api import calculator_state
from .schemas import SaveHistoryRequest
from .state import AppState, get_state

router = APIRouter(prefix="/history", tags=["history"])


def entry_json(entry: HistoryEntry) -> dict:
    data = entry.record.model_dump()
    data["customer_name"] = entry.customer_name
    data["total_discount"] = entry.record.total_discount
    return data


def list_entries(state: AppState, customer: str, search: Optional[str], payment: str,
                 limit: Optional[int] = None) -> list[HistoryEntry]:
    return state.history.list_history(
        customer_names=state.catalog.customer_names(),
        customer_filter=customer,
        search=search,
        payment_filter=payment,
        limit=limit,
    )


@router.get("")
def list_history(customer: str = "all", search: Optional[str] = None, payment: str = "all",
                 limit: Optional[int] = None, state: AppState = Depends(get_state)):
    return [entry_json(e) for e in list_entries(state, customer, search, payment, limit)]


@router.get("/by-product")
def price_list(customer: str = "all", search: Optional[str] = None, payment: str = "all",
               state: AppState = Depends(get_state)):
    grouped = group_by_product(list_entries(state, customer, search, payment))
    return {name: [entry_json(e) for e in entries] for name, entries in grouped.items()}


@router.post("", status_code=201)
def save_calculation(req: SaveHistoryRequest, state: AppState = Depends(get_state)):
    calc_state = calculator_state(state, req)
    calc = calc_state.calculate(state.engine)
    if calc is None:
        raise HTTPException(status_code=422, detail="Product and region are required")
    customer = calc_state.selection.customer
    record = state.history.save_calculation(
        calc,
        calc_state.product,
        calc_state.region,
        calc_state.margin,
        customer_id=customer.id if customer else None,
        notes=req.notes,
    )
    return record.model_dump()


@router.patch("/{record_id}")
def edit_record(record_id: str, data: dict, state: AppState = Depends(get_state)):
    return state.history.edit_record(record_id, data).model_dump()


@router.delete("/{record_id}")
def delete_record(record_id: str, state: AppState = Depends(get_state)):
    return {"deleted": state.history.delete_record(record_id)}


@router.post("/{record_id}/duplicate")
def duplicate(record_id: str, state: AppState = Depends(get_state)):
    """Calculator state rebuilt from a saved record, in /calculate request shape."""
    record = state.history.get_record(record_id)
    calc_state = state.history.duplicate_into_calculator(
        record,
        state.catalog.list_products(),
        state.catalog.list_regions(),
        state.catalog.list_customers(),
    )
    customer = calc_state.selection.customer
    return {
        "product_id": calc_state.product.id if calc_state.product else None,
        "region_id": calc_state.region.id if calc_state.region else None,
        "customer_id": customer.id if customer else None,
        "tier_id": calc_state.selection.tier_id,
        "discounts": [asdict(d) for d in calc_state.discounts],
        "margin": asdict(calc_state.margin),
        "notes": record.notes,
    }
