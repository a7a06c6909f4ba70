"""
Export API - Excel/PDF downloads for a calculation or the history list.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from ..services import export_service
from .calculator_api import calculator_state
from .history_api import list_entries
from .schemas import CalcRequest
from .state import AppState, get_state

router = APIRouter(prefix="/export", tags=["export"])

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF = "application/pdf"


def download(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _calculation_args(state: AppState, req: CalcRequest):
    calc_state = calculator_state(state, req)
    calc = calc_state.calculate(state.engine)
    if calc is None:
        raise HTTPException(status_code=422, detail="Product and region are required")
    return calc_state.product, calc_state.region, calc, calc_state.margin


@router.post("/calculation.xlsx")
def calculation_excel(req: CalcRequest, state: AppState = Depends(get_state)):
    product, region, calc, margin = _calculation_args(state, req)
    content = export_service.calculation_to_excel(product, region, calc, margin)
    return download(content, XLSX, export_service.calculation_filename(product, "xlsx"))


@router.post("/calculation.pdf")
def calculation_pdf(req: CalcRequest, state: AppState = Depends(get_state)):
    product, region, calc, margin = _calculation_args(state, req)
    content = export_service.calculation_to_pdf(product, region, calc, margin)
    return download(content, PDF, export_service.calculation_filename(product, "pdf"))


@router.get("/history.xlsx")
def history_excel(customer: str = "all", search: Optional[str] = None, payment: str = "all",
                  state: AppState = Depends(get_state)):
    entries = list_entries(state, customer, search, payment, limit=0)
    return download(export_service.history_to_excel(entries), XLSX, export_service.history_filename("xlsx"))


@router.get("/history.pdf")
def history_pdf(customer: str = "all", search: Optional[str] = None, payment: str = "all",
                state: AppState = Depends(get_state)):
    entries = list_entries(state, customer, search, payment, limit=0)
    return download(export_service.history_to_pdf(entries), PDF, export_service.history_filename("pdf"))
