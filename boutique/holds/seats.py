"""
Sélection de siège (flux billetterie).
- Le siège est déterminé par un hash stable de "événement|séance" (même entrée -> même siège).
- La sélection vit dans le scope session, à côté du hold.
"""
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from boutique.config import ELIGIBILITY_PATH
from boutique.storage import keys
from boutique.storage.state import VisitorState

SEAT_ROWS: Dict[str, int] = {"A": 4, "B": 8, "C": 8, "D": 4}
MAX_TICKETS = 8


def _string_hash(seed: str) -> int:
    # hash 31 sur 32 bits signés
    h = 0
    for ch in seed:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    return h - (1 << 32) if h & 0x80000000 else h


def seat_label(event: str, session: str) -> str:
    h = abs(_string_hash(f"{event or ''}|{session or ''}"))
    rows = list(SEAT_ROWS)
    row = rows[h % len(rows)]
    col = (h % SEAT_ROWS[row]) + 1
    return f"{row}{col}"


class SeatSelection(BaseModel):
    event: str
    seat: str
    session: str = ""
    session_label: str = ""
    category_price: int = Field(ge=0)
    quantity: int = Field(default=1, ge=1, le=MAX_TICKETS)
    total_price: int = Field(ge=0)
    status: str = "presale"
    index: str = ""
    presale_flow: str = ""


def build_selection(
    *,
    event: str,
    session: str,
    session_label: str = "",
    category_price: int,
    quantity: int = 1,
    status: str = "presale",
    index: str = "",
    presale_flow: str = "",
) -> SeatSelection:
    return SeatSelection(
        event=event,
        seat=seat_label(event, session),
        session=session,
        session_label=session_label,
        category_price=category_price,
        quantity=quantity,
        total_price=category_price * quantity,
        status=status,
        index=index,
        presale_flow=presale_flow,
    )


def save_selection(state: VisitorState, selection: SeatSelection) -> None:
    state.write_json(keys.SEAT_SELECTION, selection.model_dump(), scope=keys.SESSION)


def load_selection(state: VisitorState) -> Optional[SeatSelection]:
    raw = state.read_json(keys.SEAT_SELECTION, default=None, scope=keys.SESSION)
    if not raw:
        return None
    try:
        return SeatSelection.model_validate(raw)
    except PydanticValidationError:
        return None


def build_next_url(context: Optional[Dict[str, Any]], page: str) -> str:
    """Page suivante du parcours billetterie avec le contexte de l'événement en query."""
    context = context or {}
    query = urlencode({
        "event": context.get("event") or "",
        "price": context.get("price") or context.get("category_price") or "",
        "index": context.get("index") or "",
        "status": context.get("status") or "presale",
    })
    return f"{page}?{query}"


def eligibility_url(context: Optional[Dict[str, Any]] = None) -> str:
    return build_next_url(context, ELIGIBILITY_PATH)
