"""
Paiements directs (POST /payments) avec 3DS.
- Paiement checkout par carte saisie (ORDER-<ms>)
- Paiement billetterie par carte enregistrée (token) ou nouvelle carte (TICKET-<ms>)
Si le processeur renvoie un lien 3DS (_links.redirect.href), il est remonté tel quel au client.
"""
import logging
from typing import Any, Dict, List, Optional

from boutique.config import BASE_URL, CHECKOUT_SUCCESS_PATH, CHECKOUT_FAILURE_PATH, PROCESSING_CHANNEL_ID
from boutique.errors import ValidationError
from boutique.eligibility.saved_card import load_saved_card
from boutique.holds.seats import load_selection
from boutique.holds.timer import HoldTimer
from boutique.storage.state import VisitorState
from boutique.utils.validators import (
    parse_short_expiry,
    validate_card_number,
    validate_cvv,
    validate_expiry,
)
from . import checkout_client
from .payload import new_reference, to_minor_units

logger = logging.getLogger(__name__)

TICKET_CURRENCY = "HKD"
THREE_DS = {"enabled": True, "challenge_indicator": "challenge_requested_mandate"}


def card_source(number: str, expiry: str, cvv: str, name: str = "") -> Dict[str, Any]:
    """Valide une carte saisie et construit la source "card"; erreurs par champ."""
    fields: Dict[str, str] = {}
    try:
        number = validate_card_number(number)
    except ValueError as e:
        fields["card_number"] = str(e)
    try:
        expiry = validate_expiry(expiry)
    except ValueError as e:
        fields["expiry"] = str(e)
    try:
        cvv = validate_cvv(cvv)
    except ValueError as e:
        fields["cvv"] = str(e)
    if fields:
        raise ValidationError("Informations de carte invalides", code="invalid_card", fields=fields)
    month, year = parse_short_expiry(expiry)
    source: Dict[str, Any] = {
        "type": "card",
        "number": number,
        "expiry_month": month,
        "expiry_year": year,
        "cvv": cvv,
    }
    if name:
        source["name"] = name
    return source


def _redirect_link(data: Dict[str, Any]) -> Optional[str]:
    return ((data.get("_links") or {}).get("redirect") or {}).get("href")


def _result(data: Dict[str, Any]) -> Dict[str, Any]:
    link = _redirect_link(data)
    return {
        "payment_id": data.get("id"),
        "status": data.get("status"),
        "approved": bool(data.get("approved")),
        "redirect": link or (CHECKOUT_SUCCESS_PATH if data.get("approved") else None),
        "requires_3ds": bool(link),
    }


def payment_body(
    *,
    source: Dict[str, Any],
    amount: int,
    currency: str,
    reference: str,
    customer: Dict[str, Any],
    items: List[Dict[str, Any]],
    description: str,
    **extra: Any,
) -> Dict[str, Any]:
    """Corps POST /payments; `extra` complète le corps (billing, shipping...)."""
    body: Dict[str, Any] = {
        "source": source,
        "amount": amount,
        "currency": currency,
        "reference": reference,
        "payment_type": "Regular",
        "description": description,
        "customer": customer,
        "items": items,
        "processing_channel_id": PROCESSING_CHANNEL_ID,
        "3ds": dict(THREE_DS),
        "success_url": f"{BASE_URL}{CHECKOUT_SUCCESS_PATH}",
        "failure_url": f"{BASE_URL}{CHECKOUT_FAILURE_PATH}",
    }
    body.update(extra)
    return body


async def pay_with_card(body: Dict[str, Any]) -> Dict[str, Any]:
    data = await checkout_client.create_payment(body)
    logger.info("payment.direct ref=%s status=%s", body.get("reference"), data.get("status"))
    return _result(data)


async def pay_ticket(
    state: VisitorState,
    *,
    use_saved_card: bool = True,
    card_number: str = "",
    expiry: str = "",
    cvv: str = "",
    cardholder_name: str = "",
    timer: Optional[HoldTimer] = None,
) -> Dict[str, Any]:
    """
    Paiement d'une sélection de sièges sous hold actif.
    - Hold expiré: éviction puis HoldExpiredError (410, retour à l'éligibilité)
    - Montant: prix de catégorie x quantité, en HKD
    - Paiement approuvé sans 3DS: le hold est libéré immédiatement
    """
    timer = timer or HoldTimer(state)
    timer.require_active()
    selection = load_selection(state)
    if selection is None:
        raise ValidationError("No seat selection found", code="missing_selection")

    saved = load_saved_card(state) if use_saved_card else None
    if saved is not None:
        source: Dict[str, Any] = {"type": "token", "token": saved.token}
    else:
        source = card_source(card_number, expiry, cvv, cardholder_name)

    body = payment_body(
        source=source,
        amount=to_minor_units(selection.total_price, TICKET_CURRENCY),
        currency=TICKET_CURRENCY,
        reference=new_reference("TICKET"),
        customer={"name": cardholder_name or "Ticket Buyer"},
        items=[{
            "name": f"Ticket - {selection.event}",
            "quantity": selection.quantity,
            "unit_price": to_minor_units(selection.category_price, TICKET_CURRENCY),
            "reference": f"TICKET-{selection.index or 0}",
        }],
        description=f"Ticket for {selection.event}",
    )
    result = await pay_with_card(body)
    logger.info("payment.ticket visitor=%s ref=%s seat=%s status=%s",
                state.visitor_id, body["reference"], selection.seat, result["status"])
    if result["approved"] and not result["requires_3ds"]:
        timer.release()
    return result
