"""
Handoff du paiement vers Checkout.com.

Deux modes, choisis par le drapeau visiteur "useFlow":
- redirect (défaut): lien de paiement hébergé, le client est redirigé
- embedded ("useFlow" == "true"): session de paiement pour le composant intégré

Le payload (figé) est conservé dans le scope session ("paymentPayload") jusqu'au succès;
un échec du processeur le laisse intact pour permettre un nouvel essai manuel.
Après un paiement intégré abouti, customer.id et source.id sont mémorisés par email.
"""
import json
import base64
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote

from pydantic import ValidationError as PydanticValidationError

from boutique.config import BASE_URL, CHECKOUT_SUCCESS_PATH, PAYMENT_FLOW_PATH, CK_PUBLIC, CK_ENVIRONMENT
from boutique.errors import HandoffError, ValidationError
from boutique.holds.timer import HoldTimer
from boutique.storage import keys
from boutique.storage.state import VisitorState
from boutique.utils.qrcode_utils import generate_qr_code
from . import checkout_client
from .payload import PaymentPayload, hosted_payment_body, payment_session_body

logger = logging.getLogger(__name__)

REDIRECT = "redirect"
EMBEDDED = "embedded"


# --- Modes ---

def get_mode(state: VisitorState) -> str:
    return EMBEDDED if state.get_flag(keys.USE_FLOW) else REDIRECT


def set_mode(state: VisitorState, mode: str) -> str:
    if mode not in (REDIRECT, EMBEDDED):
        raise ValidationError(f"Mode de paiement inconnu: {mode}", code="unknown_mode")
    state.set_flag(keys.USE_FLOW, mode == EMBEDDED)
    return mode


def get_remember_me(state: VisitorState) -> bool:
    # actif tant qu'il n'a pas été explicitement désactivé
    return (state.get(keys.USE_REMEMBER_ME) or "").lower() != "false"


def set_remember_me(state: VisitorState, enabled: bool) -> bool:
    state.set_flag(keys.USE_REMEMBER_ME, enabled)
    return enabled


# --- Payload en session ---

def start_handoff(state: VisitorState, payload: PaymentPayload) -> PaymentPayload:
    state.write_json(keys.PAYMENT_PAYLOAD, payload.model_dump(mode="json"), scope=keys.SESSION)
    logger.info("handoff.payload_stored visitor=%s ref=%s amount=%s %s",
                state.visitor_id, payload.reference, payload.amount, payload.currency)
    return payload


def load_payload(state: VisitorState) -> Optional[PaymentPayload]:
    raw = state.read_json(keys.PAYMENT_PAYLOAD, default=None, scope=keys.SESSION)
    if not raw:
        return None
    try:
        return PaymentPayload.model_validate(raw)
    except PydanticValidationError:
        logger.warning("Payload de paiement illisible ignoré pour visiteur %s", state.visitor_id)
        return None


def require_payload(state: VisitorState) -> PaymentPayload:
    payload = load_payload(state)
    if payload is None:
        raise ValidationError("No payment data found", code="missing_payload")
    return payload


# --- Client / instruments mémorisés (scope local, par email) ---

def get_customer_id(state: VisitorState, email: str) -> Optional[str]:
    if not email:
        return None
    return state.get(keys.customer_id_key(email)) or None


def store_customer_id(state: VisitorState, email: str, customer_id: str) -> None:
    if not email or not customer_id:
        return
    state.set(keys.customer_id_key(email), customer_id)


def remove_customer_id(state: VisitorState, email: str) -> None:
    if email:
        state.remove(keys.customer_id_key(email))


def get_instrument_ids(state: VisitorState, email: str) -> List[str]:
    if not email:
        return []
    ids = state.read_json(keys.instrument_ids_key(email), default=[])
    return [str(i) for i in ids] if isinstance(ids, list) else []


def store_instrument_id(state: VisitorState, email: str, instrument_id: str) -> None:
    if not email or not instrument_id:
        return
    ids = get_instrument_ids(state, email)
    if instrument_id not in ids:
        ids.append(instrument_id)
        state.write_json(keys.instrument_ids_key(email), ids)


def remove_instrument_ids(state: VisitorState, email: str) -> None:
    if email:
        state.remove(keys.instrument_ids_key(email))


async def validate_customer_by_email(state: VisitorState, email: str) -> Dict[str, Any]:
    """Resynchronise l'id client mémorisé avec celui connu du processeur."""
    customer = await checkout_client.get_customer(email)
    customer_id = (customer or {}).get("id")
    if customer_id:
        store_customer_id(state, email, customer_id)
        return {"exists": True, "customer_id": customer_id}
    remove_customer_id(state, email)
    return {"exists": False, "customer_id": None}


# --- Handoff ---

async def redirect_handoff(payload: PaymentPayload) -> Dict[str, Any]:
    data = await checkout_client.create_payment_link(hosted_payment_body(payload))
    link = ((data.get("_links") or {}).get("redirect") or {}).get("href")
    if not link:
        logger.error("Pas de lien de redirection dans la réponse Checkout: %s", data)
        raise HandoffError("No redirect link returned from Checkout", details=data)
    return {"mode": REDIRECT, "redirect": link}


async def embedded_handoff(
    state: VisitorState,
    payload: PaymentPayload,
    store_consent_collected: Optional[bool] = None,
) -> Dict[str, Any]:
    remember_me = get_remember_me(state)
    email = str(payload.customer.email)
    customer_id = payload.customer.id or get_customer_id(state, email)
    if customer_id and customer_id != payload.customer.id:
        payload = payload.model_copy(update={
            "customer": payload.customer.model_copy(update={"id": customer_id}),
        })
    instrument_ids = [] if remember_me else get_instrument_ids(state, email)
    body = payment_session_body(
        payload,
        remember_me=remember_me,
        instrument_ids=instrument_ids,
        store_consent_collected=None if remember_me else store_consent_collected,
    )
    session = await checkout_client.create_payment_session(body)
    return {
        "mode": EMBEDDED,
        "payment_session": session,
        "public_key": CK_PUBLIC,
        "environment": CK_ENVIRONMENT,
        "remember_me": remember_me,
    }


async def handoff(state: VisitorState, store_consent_collected: Optional[bool] = None) -> Dict[str, Any]:
    payload = require_payload(state)
    mode = get_mode(state)
    logger.info("handoff.start visitor=%s mode=%s ref=%s", state.visitor_id, mode, payload.reference)
    if mode == EMBEDDED:
        return await embedded_handoff(state, payload, store_consent_collected)
    return await redirect_handoff(payload)


# --- Callbacks du composant intégré ---

def on_ready(state: VisitorState) -> Dict[str, Any]:
    logger.info("handoff.ready visitor=%s", state.visitor_id)
    return {"status": "ready"}


async def on_completed(
    state: VisitorState,
    payment_id: str,
    email: Optional[str] = None,
    ticket: bool = False,
) -> Dict[str, Any]:
    """
    Paiement intégré abouti.
    - customer.id et source.id du paiement sont mémorisés pour l'email du payload
    - flux billetterie: hold, sélection de siège et carte enregistrée sont libérés
    - un échec de lecture des détails n'empêche pas la redirection de succès
    """
    if not email:
        payload = load_payload(state)
        email = str(payload.customer.email) if payload else None
    if payment_id:
        try:
            details = await checkout_client.get_payment_details(payment_id)
        except HandoffError as e:
            logger.warning("Détails du paiement %s indisponibles: %s", payment_id, e.details)
        else:
            store_customer_id(state, email, (details.get("customer") or {}).get("id"))
            store_instrument_id(state, email, (details.get("source") or {}).get("id"))
    if ticket:
        HoldTimer(state).release()
    state.remove(keys.PAYMENT_PAYLOAD, scope=keys.SESSION)
    logger.info("handoff.completed visitor=%s payment=%s", state.visitor_id, payment_id)
    return {"status": "completed", "redirect": CHECKOUT_SUCCESS_PATH}


def on_error(state: VisitorState, error: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    error = error or {}
    message = error.get("message") or error.get("reason") or error.get("code")
    message = str(message) if message else "Payment error occurred"
    logger.warning("handoff.error visitor=%s: %s", state.visitor_id, message)
    return {"status": "error", "message": message, "stay": True}


# --- Reprise par QR code ---

def encode_handoff_data(payload: PaymentPayload) -> str:
    raw = json.dumps(payload.model_dump(mode="json"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def build_handoff_url(payload: PaymentPayload) -> str:
    return f"{BASE_URL}{PAYMENT_FLOW_PATH}?data={quote(encode_handoff_data(payload), safe='')}"


def qr_handoff(state: VisitorState) -> Dict[str, Any]:
    payload = require_payload(state)
    url = build_handoff_url(payload)
    return {"url": url, "qr_code": generate_qr_code(url)}


def decode_handoff_data(state: VisitorState, data: str) -> PaymentPayload:
    """Paramètre ?data= scanné -> payload restauré dans le scope session."""
    encoded = unquote(data or "").strip().replace("+", "-").replace("/", "_")
    encoded += "=" * (-len(encoded) % 4)
    try:
        parsed = json.loads(base64.urlsafe_b64decode(encoded.encode("ascii")).decode("utf-8"))
        payload = PaymentPayload.model_validate(parsed)
    except (ValueError, UnicodeError) as e:
        logger.warning("Données de reprise illisibles pour visiteur %s: %s", state.visitor_id, e)
        raise ValidationError("Invalid payment data", code="invalid_handoff_data")
    return start_handoff(state, payload)
