"""
Construction du payload de paiement (juste avant le handoff).
- Montants convertis en unités mineures entières (x100, JPY x1), arrondi demi-supérieur.
- Référence fraîche à chaque tentative (ORDER-<epoch ms>).
- Le payload est figé une fois construit.
"""
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from boutique.config import (
    BASE_URL,
    CHECKOUT_SUCCESS_PATH,
    CHECKOUT_FAILURE_PATH,
    CHECKOUT_CANCEL_PATH,
    DISPLAY_NAME,
    PROCESSING_CHANNEL_ID,
)
from boutique.fx.service import decimals_for
from boutique.utils.validators import validate_phone_number

_last_reference_ms = 0


def to_minor_units(amount, currency: str) -> int:
    factor = Decimal(10) ** decimals_for(currency)
    return int((Decimal(str(amount)) * factor).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def new_reference(prefix: str = "ORDER") -> str:
    """Référence horodatée, strictement croissante dans le process."""
    global _last_reference_ms
    now_ms = int(time.time() * 1000)
    if now_ms <= _last_reference_ms:
        now_ms = _last_reference_ms + 1
    _last_reference_ms = now_ms
    return f"{prefix}-{now_ms}"


class PaymentCustomer(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    email: EmailStr
    phone_country_code: str = ""
    phone_number: str
    id: Optional[str] = None

    @field_validator("phone_number")
    def phone_digits(cls, v: str) -> str:
        return validate_phone_number(v)


class PaymentProduct(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    quantity: int = Field(ge=1)
    unit_price: int = Field(ge=0)  # unités mineures
    reference: str


class PaymentPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    country: str
    currency: str
    amount: int = Field(ge=0)  # unités mineures
    customer: PaymentCustomer
    products: List[PaymentProduct]
    reference: str

    @property
    def description(self) -> str:
        first = self.products[0].name if self.products else "Order"
        return f"{first} ({self.currency})"


def build_payload(
    *,
    country: str,
    currency: str,
    customer: Dict[str, Any],
    lines: Iterable[Dict[str, Any]],
    shipping_fee: float = 0,
    reference_prefix: str = "ORDER",
) -> PaymentPayload:
    """
    lines: [{"name", "quantity", "unit_price" (unités majeures), "reference"?}, ...]
    shipping_fee: frais de port en unités majeures, ajoutés comme ligne distincte s'ils sont > 0.
    """
    currency = (currency or "").upper()
    products: List[PaymentProduct] = []
    for i, line in enumerate(lines):
        products.append(PaymentProduct(
            name=str(line.get("name") or "Article"),
            quantity=int(line.get("quantity") or 1),
            unit_price=to_minor_units(line.get("unit_price") or 0, currency),
            reference=str(line.get("reference") or f"ITEM-{i + 1}"),
        ))
    if shipping_fee and Decimal(str(shipping_fee)) > 0:
        products.append(PaymentProduct(
            name="Shipping",
            quantity=1,
            unit_price=to_minor_units(shipping_fee, currency),
            reference="SHIPPING",
        ))
    amount = sum(p.unit_price * p.quantity for p in products)
    return PaymentPayload(
        country=(country or "").upper(),
        currency=currency,
        amount=amount,
        customer=PaymentCustomer(**customer),
        products=products,
        reference=new_reference(reference_prefix),
    )


def allowed_payment_methods(country: str) -> List[str]:
    methods = ["card", "applepay", "googlepay"]
    if (country or "").upper() == "NL":
        methods.append("ideal")
    return methods


def _customer_body(customer: PaymentCustomer) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "name": customer.name,
        "email": customer.email,
        "phone": {"country_code": customer.phone_country_code, "number": customer.phone_number},
    }
    if customer.id:
        body["id"] = customer.id
    return body


def _return_urls() -> Dict[str, str]:
    return {
        "success_url": f"{BASE_URL}{CHECKOUT_SUCCESS_PATH}",
        "failure_url": f"{BASE_URL}{CHECKOUT_FAILURE_PATH}",
    }


def hosted_payment_body(payload: PaymentPayload) -> Dict[str, Any]:
    """Corps POST /hosted-payments (page de paiement hébergée)."""
    body = {
        "amount": payload.amount,
        "currency": payload.currency,
        "reference": payload.reference,
        "billing": {"address": {"country": payload.country}},
        "customer": _customer_body(payload.customer),
        "products": [
            {"name": p.name, "quantity": p.quantity, "price": p.unit_price, "reference": p.reference}
            for p in payload.products
        ],
        "processing_channel_id": PROCESSING_CHANNEL_ID,
        "allow_payment_methods": allowed_payment_methods(payload.country),
        "cancel_url": f"{BASE_URL}{CHECKOUT_CANCEL_PATH}",
        "display_name": DISPLAY_NAME,
        "description": payload.description,
    }
    body.update(_return_urls())
    return body


def payment_session_body(
    payload: PaymentPayload,
    *,
    remember_me: bool = False,
    instrument_ids: Optional[List[str]] = None,
    store_consent_collected: Optional[bool] = None,
) -> Dict[str, Any]:
    """
    Corps POST /payment-sessions (paiement intégré).
    - remember_me: l'option "se souvenir de moi" est gérée par le composant
    - sinon (cartes enregistrées): customer.id + instrument_ids transmis s'ils sont connus
    """
    body: Dict[str, Any] = {
        "amount": payload.amount,
        "currency": payload.currency,
        "reference": payload.reference,
        "billing": {"address": {"country": payload.country}},
        "customer": _customer_body(payload.customer),
        "items": [
            {"name": p.name, "quantity": p.quantity, "unit_price": p.unit_price, "reference": p.reference}
            for p in payload.products
        ],
        "processing_channel_id": PROCESSING_CHANNEL_ID,
        "display_name": DISPLAY_NAME,
        "description": payload.description,
    }
    body.update(_return_urls())
    card_config: Dict[str, Any] = {}
    if remember_me:
        card_config["store_payment_details"] = "enabled"
    elif store_consent_collected is not None:
        card_config["store_payment_details"] = "collect_consent" if store_consent_collected else "disabled"
    config: Dict[str, Any] = {}
    if card_config:
        config["card"] = card_config
    if not remember_me and payload.customer.id:
        stored: Dict[str, Any] = {"customer_id": payload.customer.id}
        if instrument_ids:
            stored["instrument_ids"] = list(instrument_ids)
        config["stored_card"] = stored
    if config:
        body["payment_method_configuration"] = config
    return body
