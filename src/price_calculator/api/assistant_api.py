"""
Assistant API - streaming proxy to the AI pricing assistant.
"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from .schemas import ChatRequest
from .state import AppState, get_state

router = APIRouter(prefix="/assistant", tags=["assistant"])


@router.post("/chat")
def chat(req: ChatRequest, state: AppState = Depends(get_state)):
    if state.assistant is None:
        raise HTTPException(status_code=503, detail="AI assistant is not configured")

    stream = state.assistant.stream_chat(
        [m.model_dump() for m in req.messages],
        state.catalog.list_products(),
        state.catalog.list_customers(),
    )
    # Pull the first delta so connection and HTTP status errors surface as a
    # mapped error response instead of a broken stream
    first = next(stream, "")

    def body():
        if first:
            yield first
        yield from stream

    return StreamingResponse(body(), media_type="text/plain; charset=utf-8")
