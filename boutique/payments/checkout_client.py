"""
Adaptateur Checkout.com: centralise les appels HTTP (httpx) et la configuration.
- Clé secrète (Bearer CK_SECRET) pour les appels serveur.
- Clé publique (CK_PUBLIC) pour la tokenisation carte (/tokens).
Les erreurs HTTP/réseau sont converties en exceptions métier avec la réponse brute du processeur.
"""
import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import httpx

from boutique.config import CK_API_URL, CK_SECRET, CK_PUBLIC, CK_HTTP_TIMEOUT
from boutique.errors import HandoffError, ProbeError

logger = logging.getLogger(__name__)

# module boutique.payments.checkout_client
async def checkout_request(
    method: str,
    path: str,
    json_data: Optional[Dict[str, Any]] = None,
    use_public_key: bool = False,
) -> Tuple[int, Dict[str, Any]]:
    """
    Requête brute vers l'API Checkout.com.
    Retour: (status_code, body JSON ou {}). Les erreurs réseau remontent en httpx.HTTPError.
    """
    url = f"{CK_API_URL}{path}"
    key = CK_PUBLIC if use_public_key else CK_SECRET
    headers = {
        "Authorization": f"Bearer {key}",
        "Content-Type": "application/json",
    }
    async with httpx.AsyncClient(timeout=CK_HTTP_TIMEOUT) as client:
        response = await client.request(method, url, headers=headers, json=json_data)
    try:
        data = response.json() if response.content else {}
    except ValueError:
        data = {"raw": response.text}
    return response.status_code, data


async def _call(method: str, path: str, body: Optional[Dict[str, Any]], error_cls, message: str,
                use_public_key: bool = False) -> Dict[str, Any]:
    try:
        status, data = await checkout_request(method, path, body, use_public_key=use_public_key)
    except httpx.HTTPError as e:
        logger.error("Checkout API %s %s injoignable: %s", method, path, e)
        raise error_cls(message, details=str(e) or type(e).__name__)
    if status >= 400:
        logger.error("Checkout API %s %s status=%s body=%s", method, path, status, data)
        raise error_cls(message, details=data)
    return data


async def create_payment_link(body: Dict[str, Any]) -> Dict[str, Any]:
    return await _call("POST", "/hosted-payments", body, HandoffError, "Failed to create payment link")


async def create_payment_session(body: Dict[str, Any]) -> Dict[str, Any]:
    return await _call("POST", "/payment-sessions", body, HandoffError, "Failed to create payment session")


async def create_payment(body: Dict[str, Any]) -> Dict[str, Any]:
    return await _call("POST", "/payments", body, HandoffError, "Payment failed")


async def get_payment_details(payment_id: str) -> Dict[str, Any]:
    return await _call("GET", f"/payments/{quote(payment_id, safe='')}", None, HandoffError,
                       "Failed to fetch payment details")


async def card_metadata(number: str, source_type: str = "card", reference: Optional[str] = None) -> Dict[str, Any]:
    """
    Métadonnées carte (schéma, émetteur, pays, type) via /metadata/card.
    - source_type: "card" (PAN complet) ou "bin" (6 à 8 chiffres)
    """
    body: Dict[str, Any] = {"source": {"type": source_type}, "format": "basic"}
    if source_type == "bin":
        body["source"]["bin"] = number
    else:
        body["source"]["number"] = number
    if reference:
        body["reference"] = reference
    return await _call("POST", "/metadata/card", body, ProbeError, "Unable to check card eligibility")


async def tokenize_card(number: str, expiry_month: int, expiry_year: int, cvv: str, name: Optional[str] = None) -> Dict[str, Any]:
    body = {
        "type": "card",
        "number": number,
        "expiry_month": expiry_month,
        "expiry_year": expiry_year,
        "cvv": cvv,
    }
    if name:
        body["name"] = name
    try:
        return await _call("POST", "/tokens", body, HandoffError, "Tokenization failed", use_public_key=True)
    except HandoffError as e:
        details = e.details if isinstance(e.details, dict) else {}
        codes = details.get("error_codes") or []
        message = details.get("error_type") or (codes[0] if codes else None) or details.get("error") or e.message
        raise HandoffError(str(message), code="tokenization_failed", details=e.details)


async def get_customer(identifier: str) -> Optional[Dict[str, Any]]:
    """Client Checkout.com par id ou email; None s'il n'existe pas."""
    try:
        status, data = await checkout_request("GET", f"/customers/{quote(identifier, safe='')}")
    except httpx.HTTPError as e:
        logger.error("Checkout API customers injoignable: %s", e)
        raise HandoffError("Customer lookup failed", code="customer_lookup_failed", details=str(e))
    if status == 404:
        return None
    if status >= 400:
        logger.error("Checkout API customers status=%s body=%s", status, data)
        raise HandoffError("Customer lookup failed", code="customer_lookup_failed", details=data)
    return data
