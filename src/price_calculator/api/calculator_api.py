"""
Calculator API - run the pricing engine against stored entities.
"""
from typing import Optional

from fastapi import APIRouter, Depends

from ..engine.calculator import CalculatorState
from ..engine.discount_stack import DiscountStack
from ..engine.tier_resolver import TierSelection
from ..errors import ValidationFailed
from .schemas import CalcRequest
from .state import AppState, get_state

router = APIRouter(tags=["calculator"])


def calculator_state(state: AppState, req: CalcRequest) -> CalculatorState:
    """Resolve ids in a request into live calculator state."""
    product = state.catalog.get_product(req.product_id) if req.product_id else None
    region = state.catalog.get_region(req.region_id) if req.region_id else None
    customer = state.catalog.get_customer(req.customer_id) if req.customer_id else None

    selection = TierSelection(customer)
    try:
        selection.select_tier(req.tier_id)
    except ValueError as e:
        raise ValidationFailed({"tier_id": str(e)})

    try:
        discounts = DiscountStack(d.to_domain() for d in req.discounts)
    except ValueError as e:
        raise ValidationFailed({"discounts": str(e)})
    try:
        margin = req.margin.to_domain()
    except ValueError as e:
        raise ValidationFailed({"margin": str(e)})

    return CalculatorState(product=product, region=region, selection=selection, discounts=discounts, margin=margin)


@router.post("/calculate")
def calculate(req: CalcRequest, state: AppState = Depends(get_state)) -> Optional[dict]:
    """Itemized breakdown, or null until both product and region are chosen."""
    calc = calculator_state(state, req).calculate(state.engine)
    if calc is None:
        return None
    result = calc.to_dict()
    result["total_discount"] = calc.total_discount
    result["trace"] = calc.get_trace_text()
    return result
