# module boutique.eligibility.saved_card
import re
import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ValidationError as PydanticValidationError

from boutique.storage import keys
from boutique.storage.state import VisitorState

logger = logging.getLogger(__name__)

EXPIRY_RE = re.compile(r"^(\d{2})/(\d{2,4})$")


class SavedCard(BaseModel):
    token: str
    scheme: Optional[str] = None
    last4: Optional[str] = None
    expiry_month: Optional[int] = None
    expiry_year: Optional[int] = None
    requires3ds: bool = True


def parse_expiry(value: str) -> Optional[Tuple[int, int]]:
    """'MM/YY' ou 'MM/YYYY' -> (mois, année); année à 2 chiffres -> 2000 + YY."""
    cleaned = re.sub(r"\s", "", value or "")
    m = EXPIRY_RE.match(cleaned)
    if not m:
        return None
    month = int(m.group(1))
    year = int(m.group(2))
    if month < 1 or month > 12:
        return None
    if year < 100:
        year += 2000
    return month, year


def save_card(state: VisitorState, token_data: Dict[str, Any]) -> SavedCard:
    """Un seul emplacement: la nouvelle carte remplace la précédente."""
    card = SavedCard(
        token=token_data["token"],
        scheme=token_data.get("scheme"),
        last4=token_data.get("last4"),
        expiry_month=token_data.get("expiry_month"),
        expiry_year=token_data.get("expiry_year"),
    )
    state.write_json(keys.TICKET_SAVED_CARD, card.model_dump())
    state.set(keys.TICKET_SAVED_CARD_ELIGIBLE, "true")
    return card


def load_saved_card(state: VisitorState) -> Optional[SavedCard]:
    raw = state.read_json(keys.TICKET_SAVED_CARD, default=None)
    if not raw:
        return None
    try:
        return SavedCard.model_validate(raw)
    except PydanticValidationError:
        logger.warning("Carte enregistrée illisible ignorée pour visiteur %s", state.visitor_id)
        return None


def clear_saved_card(state: VisitorState) -> None:
    state.remove(keys.TICKET_SAVED_CARD)
    state.remove(keys.TICKET_SAVED_CARD_ELIGIBLE)
