"""
Endpoints du hold de siège (flux billetterie).
- /selection: choix de séance + quantité, démarre (ou reprend) le hold
- GET: un tick (temps restant, éviction éventuelle)
- /stream: Server-Sent Events, un tick par seconde jusqu'à l'expiration
"""
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from boutique.config import TICKET_PAYMENT_PATH
from boutique.eligibility.service import require_seat_access
from boutique.storage.state import VisitorState
from boutique.utils.visitor import get_visitor_state
from .seats import MAX_TICKETS, build_next_url, build_selection, load_selection, save_selection
from .timer import HoldTimer, format_remaining

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/holds", tags=["Holds"])


class SelectionRequest(BaseModel):
    event: str = Field(min_length=1)
    session: str = ""
    session_label: str = ""
    category_price: int = Field(ge=0)
    quantity: int = Field(default=1, ge=1, le=MAX_TICKETS)
    status: str = "presale"
    index: str = ""
    presale_flow: str = ""


def _hold_body(timer: HoldTimer):
    selection = load_selection(timer.state)
    remaining = timer.remaining_ms()
    return {
        "expires_at": timer.expires_at(),
        "remaining_ms": remaining,
        "display": format_remaining(remaining),
        "selection": selection.model_dump() if selection else None,
    }


@router.post("/selection")
def select_seat(body: SelectionRequest, state: VisitorState = Depends(get_visitor_state)):
    require_seat_access(state, body.status)
    selection = build_selection(**body.model_dump())
    save_selection(state, selection)
    timer = HoldTimer(state)
    timer.ensure_hold()
    logger.info("hold.selection visitor=%s event=%s seat=%s qty=%s",
                state.visitor_id, selection.event, selection.seat, selection.quantity)
    result = _hold_body(timer)
    result["redirect"] = build_next_url(selection.model_dump(), TICKET_PAYMENT_PATH)
    return result


@router.post("")
def start_hold(state: VisitorState = Depends(get_visitor_state)):
    selection = load_selection(state)
    require_seat_access(state, selection.status if selection else "presale")
    timer = HoldTimer(state)
    timer.ensure_hold()
    return _hold_body(timer)


@router.get("")
def tick(state: VisitorState = Depends(get_visitor_state)):
    return HoldTimer(state).tick().model_dump()


@router.delete("")
def cancel(state: VisitorState = Depends(get_visitor_state)):
    HoldTimer(state).cancel()
    return {"cancelled": True}


@router.get("/stream")
async def stream(request: Request, state: VisitorState = Depends(get_visitor_state)):
    timer = HoldTimer(state)

    async def events():
        async for result in timer.ticks(interval=1.0):
            if await request.is_disconnected():
                logger.info("hold.stream_closed visitor=%s", state.visitor_id)
                break
            event = "expired" if result.expired else "tick"
            yield f"event: {event}\ndata: {json.dumps(result.model_dump())}\n\n"

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-store", "X-Accel-Buffering": "no"},
    )
