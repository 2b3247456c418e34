"""
Cas d'usage 'checkout': relie la machine à états (flow.reduce), le panier et le paiement.
- L'état du flow vit dans le scope session (CHECKOUT_FLOW) et suit le contenu du panier:
  un panier qui devient (ou cesse d'être) 100% digital repart de l'état initial.
- Le formulaire de livraison est pré-rempli depuis le profil enregistré (session puis local).
- Les frais de port ne comptent que si le panier contient un article physique.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from boutique.account.service import load_profile
from boutique.cart.store import CartStore
from boutique.errors import ValidationError
from boutique.fx import service as fx
from boutique.payments.handoff import start_handoff
from boutique.payments.payload import PaymentPayload, build_payload, new_reference, to_minor_units
from boutique.payments.service import card_source, payment_body, pay_with_card
from boutique.storage import keys
from boutique.storage.state import VisitorState
from .flow import CARRIERS, EXPANDED, FlowState, ShippingAddress, initial_state, reduce

logger = logging.getLogger(__name__)

# clés du profil enregistré -> champs du formulaire de livraison
PROFILE_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "addressLine1": "address_line1",
    "addressLine2": "address_line2",
    "region": "region",
    "country": "country",
}
DEFAULT_EMAIL = "customer@example.com"


def _pydantic_fields(e: PydanticValidationError) -> Dict[str, str]:
    return {".".join(str(p) for p in err["loc"]): err["msg"] for err in e.errors()}


def prefill_form(state: VisitorState) -> Dict[str, str]:
    profile = load_profile(state) or {}
    return {
        field: str(profile.get(camel) or profile.get(field) or "")
        for camel, field in PROFILE_FIELDS.items()
    }


def prefill_address(state: VisitorState) -> Optional[ShippingAddress]:
    form = prefill_form(state)
    try:
        return ShippingAddress(**{k: (v or None) for k, v in form.items()})
    except PydanticValidationError:
        return None


def save_flow(state: VisitorState, flow: FlowState) -> FlowState:
    state.write_json(keys.CHECKOUT_FLOW, flow.model_dump(), scope=keys.SESSION)
    return flow


def load_flow(state: VisitorState, store: Optional[CartStore] = None) -> FlowState:
    store = store or CartStore(state)
    digital_only = store.is_digital_only()
    flow: Optional[FlowState] = None
    raw = state.read_json(keys.CHECKOUT_FLOW, default=None, scope=keys.SESSION)
    if isinstance(raw, dict):
        try:
            flow = FlowState.model_validate(raw)
        except PydanticValidationError:
            logger.warning("État de checkout illisible ignoré pour visiteur %s", state.visitor_id)
    if flow is None or flow.digital_only != digital_only:
        address = None if digital_only else prefill_address(state)
        flow = save_flow(state, initial_state(digital_only, address=address))
    return flow


def dispatch(state: VisitorState, action: str, payload: Any = None) -> FlowState:
    """Applique une action; une erreur de validation laisse l'état persisté inchangé."""
    flow = load_flow(state)
    updated = reduce(flow, action, payload)
    if updated is not flow:
        save_flow(state, updated)
    logger.info("checkout.%s visitor=%s shipping=%s carrier=%s payment=%s",
                action, state.visitor_id, updated.shipping, updated.carrier, updated.payment)
    return updated


def reset_flow(state: VisitorState) -> None:
    state.remove(keys.CHECKOUT_FLOW, scope=keys.SESSION)


def totals(state: VisitorState, currency: Optional[str] = None, store: Optional[CartStore] = None) -> Dict[str, Any]:
    store = store or CartStore(state)
    flow = load_flow(state, store)
    currency = (currency or store.current_currency()).upper()
    subtotal = store.total(currency)
    fee = Decimal("0")
    if store.has_physical():
        fee = Decimal(str(fx.convert(flow.selected_carrier.fee, currency)))
    total = subtotal + fee
    return {
        "currency": currency,
        "subtotal": float(subtotal),
        "shipping_fee": float(fee),
        "total": float(total),
        "formatted": {
            "subtotal": fx.format_price(subtotal, currency),
            "shipping_fee": fx.format_price(fee, currency),
            "total": fx.format_price(total, currency),
        },
        "carrier": flow.selected_carrier.model_dump(),
    }


def summary(state: VisitorState) -> Dict[str, Any]:
    store = CartStore(state)
    flow = load_flow(state, store)
    return {
        "flow": flow.model_dump(),
        "prefill": prefill_form(state),
        "carriers": [c.model_dump() for c in CARRIERS.values()],
        "totals": totals(state, store=store),
        "cart": store.summary(),
    }


def _require_payable(state: VisitorState, store: CartStore) -> FlowState:
    if not store.items:
        raise ValidationError("Your cart is empty", code="empty_cart")
    flow = load_flow(state, store)
    if flow.payment != EXPANDED or (not flow.digital_only and flow.address is None):
        raise ValidationError("Please select shipping address and carrier first", code="checkout_incomplete")
    return flow


def _cart_lines(store: CartStore, currency: str) -> List[Dict[str, Any]]:
    return [
        {"name": it.name, "quantity": it.quantity, "unit_price": it.display_price,
         "reference": it.id or f"ITEM-{i + 1}"}
        for i, it in enumerate(store.items)
        if it.display_currency == currency
    ]


def prepare_handoff(
    state: VisitorState,
    customer: Optional[Dict[str, Any]] = None,
    country: Optional[str] = None,
) -> PaymentPayload:
    """Panier + livraison -> payload figé conservé en session pour le handoff."""
    store = CartStore(state)
    flow = _require_payable(state, store)
    profile = load_profile(state) or {}
    if not customer:
        customer = {k: profile.get(k) or "" for k in ("name", "email", "phone_country_code", "phone_number")}
    country = country or (flow.address.country if flow.address else None) or profile.get("country") or "HK"
    t = totals(state, store=store)
    try:
        payload = build_payload(
            country=country,
            currency=t["currency"],
            customer=customer,
            lines=_cart_lines(store, t["currency"]),
            shipping_fee=t["shipping_fee"],
        )
    except PydanticValidationError as e:
        raise ValidationError("Informations client invalides", code="invalid_customer", fields=_pydantic_fields(e))
    return start_handoff(state, payload)


def _address_body(address: ShippingAddress) -> Dict[str, Any]:
    return {
        "address": {
            "address_line1": address.address_line1,
            "address_line2": address.address_line2,
            "city": address.region,
            "country": address.country,
        }
    }


async def pay(
    state: VisitorState,
    *,
    card_number: str,
    expiry: str,
    cvv: str,
    cardholder_name: str,
    email: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Paiement direct par carte du panier.
    - Carte: Luhn 13-19 chiffres, expiration MM/YY non passée, CVV 3-4 chiffres
    - Approuvé sans 3DS: panier vidé et flow réinitialisé
    - 3DS: le lien est renvoyé, le panier est vidé au retour (complete)
    """
    await fx.warm_rates()
    store = CartStore(state)
    flow = _require_payable(state, store)
    source = card_source(card_number, expiry, cvv, cardholder_name)
    t = totals(state, store=store)
    currency = t["currency"]
    items = _cart_lines(store, currency)
    for line in items:
        line["unit_price"] = to_minor_units(line["unit_price"], currency)
    if t["shipping_fee"] > 0:
        items.append({"name": "Shipping", "quantity": 1,
                      "unit_price": to_minor_units(t["shipping_fee"], currency), "reference": "SHIPPING"})
    extra: Dict[str, Any] = {}
    if flow.address is not None:
        extra["billing"] = _address_body(flow.address)
        extra["shipping"] = _address_body(flow.address)
    profile = load_profile(state) or {}
    body = payment_body(
        source=source,
        amount=to_minor_units(t["total"], currency),
        currency=currency,
        reference=new_reference("ORDER"),
        customer={"email": email or profile.get("email") or DEFAULT_EMAIL, "name": cardholder_name},
        items=items,
        description=f"Order ({currency})",
        **extra,
    )
    result = await pay_with_card(body)
    if result["approved"] and not result["requires_3ds"]:
        complete(state)
    return result


def complete(state: VisitorState) -> None:
    """Commande payée: panier vidé, flow et payload de session oubliés."""
    CartStore(state).clear()
    reset_flow(state)
    state.remove(keys.PAYMENT_PAYLOAD, scope=keys.SESSION)
    logger.info("checkout.completed visitor=%s", state.visitor_id)
