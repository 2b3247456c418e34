"""
Cas d'usage 'eligibility': orchestre la porte (gate), le client Checkout.com et le stockage visiteur.
- L'état de la porte vit dans le scope session (ELIGIBILITY_GATE).
- Debounce: attente PROBE_DEBOUNCE_MS puis vérification que la saisie n'a pas changé.
"""
import time
import asyncio
import logging
from typing import Any, Dict, Optional

from boutique.config import PROBE_DEBOUNCE_MS, SEAT_SELECTION_PATH
from boutique.errors import ProbeError, ValidationError
from boutique.holds.seats import build_next_url
from boutique.payments import checkout_client
from boutique.storage import keys
from boutique.storage.state import VisitorState
from boutique.utils.validators import digits_only
from . import gate as g
from .criteria import CardProbeResult, load_criteria
from .saved_card import SavedCard, parse_expiry, save_card

logger = logging.getLogger(__name__)


def load_gate(state: VisitorState) -> g.GateState:
    raw = state.read_json(keys.ELIGIBILITY_GATE, default=None, scope=keys.SESSION)
    if not isinstance(raw, dict):
        return g.GateState()
    try:
        return g.GateState.model_validate(raw)
    except ValueError:
        return g.GateState()


def save_gate(state: VisitorState, gate_state: g.GateState) -> g.GateState:
    state.write_json(keys.ELIGIBILITY_GATE, gate_state.model_dump(), scope=keys.SESSION)
    return gate_state


async def _run_probe(state: VisitorState, request: g.ProbeRequest) -> g.GateState:
    criteria = load_criteria(state)
    reference = f"PRECHECK-{int(time.time() * 1000)}"
    try:
        data = await checkout_client.card_metadata(request.number, request.source_type, reference=reference)
        probe = CardProbeResult.from_metadata(data)
        updated = g.apply_probe_result(load_gate(state), request.generation, probe, criteria)
    except ProbeError as e:
        logger.warning("eligibility.probe_failed visitor=%s: %s", state.visitor_id, e.message)
        updated = g.apply_probe_error(load_gate(state), request.generation, e.message)
    logger.info("eligibility.result visitor=%s status=%s gen=%s", state.visitor_id, updated.status, updated.generation)
    return save_gate(state, updated)


async def submit_card_input(
    state: VisitorState,
    raw: str,
    debounce_ms: int = PROBE_DEBOUNCE_MS,
    sleep=asyncio.sleep,
) -> g.GateState:
    """Saisie incrémentale du PAN; lance au plus une recherche par préfixe BIN."""
    current, request = g.on_card_input(load_gate(state), raw)
    save_gate(state, current)
    if request is None:
        return current
    if debounce_ms > 0:
        await sleep(debounce_ms / 1000)
        # saisie plus récente arrivée pendant l'attente
        latest = load_gate(state)
        if latest.generation != request.generation:
            return latest
    return await _run_probe(state, request)


async def check_bin(state: VisitorState, raw: str) -> g.GateState:
    current, request = g.on_bin_input(load_gate(state), raw)
    save_gate(state, current)
    return await _run_probe(state, request)


def require_seat_access(state: VisitorState, status: str = "presale") -> None:
    """Prévente: la sélection de siège exige une carte éligible (porte ou carte enregistrée)."""
    if status != "presale":
        return
    if load_gate(state).eligible or state.get_flag(keys.TICKET_SAVED_CARD_ELIGIBLE):
        return
    logger.info("eligibility.seat_access_denied visitor=%s", state.visitor_id)
    criteria = load_criteria(state)
    raise ValidationError(f"Please use a card matching the criteria: {criteria.display()}", code="not_eligible")


def reset_gate(state: VisitorState) -> g.GateState:
    current = load_gate(state)
    return save_gate(state, g.GateState(generation=current.generation + 1))


async def confirm(
    state: VisitorState,
    *,
    number: str,
    context: Optional[Dict[str, Any]] = None,
    save: bool = False,
    cardholder_name: str = "",
    expiry: str = "",
    cvv: str = "",
) -> Dict[str, Any]:
    """
    Valide l'étape d'éligibilité et renvoie l'URL de la sélection de siège.
    - La carte doit être éligible et correspondre au BIN vérifié.
    - save=True: tokenisation puis enregistrement (emplacement unique).
    """
    current = load_gate(state)
    digits = digits_only(number)
    if not current.eligible or digits[:len(current.last_bin)] != current.last_bin:
        criteria = load_criteria(state)
        raise ValidationError(f"Please use a card matching the criteria: {criteria.display()}", code="not_eligible")

    saved: Optional[SavedCard] = None
    if save:
        parsed = parse_expiry(expiry)
        if not cardholder_name.strip() or not parsed or not cvv.strip():
            raise ValidationError("Complete the card details to save this card.", code="incomplete_card")
        month, year = parsed
        token_data = await checkout_client.tokenize_card(digits, month, year, cvv.strip(), name=cardholder_name.strip())
        saved = save_card(state, token_data)
        logger.info("eligibility.card_saved visitor=%s scheme=%s last4=%s", state.visitor_id, saved.scheme, saved.last4)

    return {
        "redirect": build_next_url(context, SEAT_SELECTION_PATH),
        "saved_card": saved.model_dump() if saved else None,
    }
