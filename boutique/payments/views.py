import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from boutique.config import CK_PUBLIC, CK_ENVIRONMENT
from boutique.errors import HandoffError, ProbeError
from boutique.storage.state import VisitorState
from boutique.utils.rate_limit import optional_rate_limit
from boutique.utils.visitor import get_visitor_state
from . import checkout_client, handoff as handoff_service
from .payload import (
    PaymentCustomer,
    PaymentPayload,
    PaymentProduct,
    build_payload,
    new_reference,
    payment_session_body,
)
from .service import pay_ticket

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])
# Routes historiques du proxy Checkout.com (contrat JSON conservé)
proxy_router = APIRouter(tags=["Checkout proxy"])


# module boutique.payments.views

class LineIn(BaseModel):
    name: str
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(ge=0)
    reference: Optional[str] = None


class PayloadRequest(BaseModel):
    country: str = Field(min_length=2, max_length=2)
    currency: str = Field(min_length=3, max_length=3)
    customer: PaymentCustomer
    lines: List[LineIn] = Field(min_length=1)
    shipping_fee: float = Field(default=0, ge=0)


class ModeRequest(BaseModel):
    mode: Optional[str] = None
    remember_me: Optional[bool] = None


class HandoffRequest(BaseModel):
    store_consent_collected: Optional[bool] = None


class CompletedRequest(BaseModel):
    payment_id: str
    email: Optional[str] = None
    ticket: bool = False


class ErrorCallbackRequest(BaseModel):
    message: Optional[str] = None
    reason: Optional[str] = None
    code: Optional[str] = None


class ResumeRequest(BaseModel):
    data: str


class TicketPaymentRequest(BaseModel):
    use_saved_card: bool = True
    card_number: str = ""
    expiry: str = ""
    cvv: str = ""
    cardholder_name: str = ""


@router.get("/mode")
def get_mode(state: VisitorState = Depends(get_visitor_state)):
    return {"mode": handoff_service.get_mode(state), "remember_me": handoff_service.get_remember_me(state)}


@router.put("/mode")
def put_mode(body: ModeRequest, state: VisitorState = Depends(get_visitor_state)):
    if body.mode is not None:
        handoff_service.set_mode(state, body.mode)
    if body.remember_me is not None:
        handoff_service.set_remember_me(state, body.remember_me)
    return get_mode(state)


@router.post("/payload")
def create_payload(body: PayloadRequest, state: VisitorState = Depends(get_visitor_state)):
    """
    Construit le payload figé depuis un formulaire (montants en unités majeures)
    et le conserve en session pour le handoff.
    """
    payload = build_payload(
        country=body.country,
        currency=body.currency,
        customer=body.customer.model_dump(),
        lines=[line.model_dump() for line in body.lines],
        shipping_fee=body.shipping_fee,
    )
    handoff_service.start_handoff(state, payload)
    return payload.model_dump(mode="json")


@router.get("/payload")
def get_payload(state: VisitorState = Depends(get_visitor_state)):
    payload = handoff_service.load_payload(state)
    return {"payload": payload.model_dump(mode="json") if payload else None}


@router.post("/handoff", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def start(body: Optional[HandoffRequest] = None, state: VisitorState = Depends(get_visitor_state)):
    consent = body.store_consent_collected if body else None
    return await handoff_service.handoff(state, store_consent_collected=consent)


@router.post("/callbacks/ready")
def callback_ready(state: VisitorState = Depends(get_visitor_state)):
    return handoff_service.on_ready(state)


@router.post("/callbacks/completed")
async def callback_completed(body: CompletedRequest, state: VisitorState = Depends(get_visitor_state)):
    return await handoff_service.on_completed(state, body.payment_id, email=body.email, ticket=body.ticket)


@router.post("/callbacks/error")
def callback_error(body: ErrorCallbackRequest, state: VisitorState = Depends(get_visitor_state)):
    return handoff_service.on_error(state, body.model_dump(exclude_none=True))


@router.get("/qr")
def qr(state: VisitorState = Depends(get_visitor_state)):
    return handoff_service.qr_handoff(state)


@router.post("/resume")
def resume(body: ResumeRequest, state: VisitorState = Depends(get_visitor_state)):
    payload = handoff_service.decode_handoff_data(state, body.data)
    return payload.model_dump(mode="json")


@router.post("/tickets", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def ticket_payment(body: TicketPaymentRequest, state: VisitorState = Depends(get_visitor_state)):
    return await pay_ticket(state, **body.model_dump())


# --- Proxy ---

class ProductIn(BaseModel):
    name: str
    quantity: int = Field(default=1, ge=1)
    unit_price: int = Field(ge=0)  # unités mineures
    reference: str = ""


class ProxyPaymentRequest(BaseModel):
    country: str
    currency: str
    amount: int = Field(ge=0)  # unités mineures
    customer: PaymentCustomer
    product: Optional[ProductIn] = None
    products: List[ProductIn] = []
    reference: Optional[str] = None
    # /create-payment-sessions uniquement
    mode: Optional[str] = None
    instrument_ids: List[str] = []
    store_consent_collected: Optional[bool] = None

    def to_payload(self) -> PaymentPayload:
        products = list(self.products) or ([self.product] if self.product else [])
        return PaymentPayload(
            country=self.country.upper(),
            currency=self.currency.upper(),
            amount=self.amount,
            customer=self.customer,
            products=[
                PaymentProduct(
                    name=p.name,
                    quantity=p.quantity,
                    unit_price=p.unit_price,
                    reference=p.reference or f"ITEM-{i + 1}",
                )
                for i, p in enumerate(products)
            ],
            reference=self.reference or new_reference("ORDER"),
        )


class CardMetadataRequest(BaseModel):
    number: str
    type: str = "card"
    format: str = "basic"
    reference: Optional[str] = None


class TokenizeRequest(BaseModel):
    number: str
    expiry_month: int = Field(ge=1, le=12)
    expiry_year: int
    cvv: str
    name: Optional[str] = None


def _proxy_error(e, status_code: int = 500) -> JSONResponse:
    return JSONResponse({"error": e.message, "details": e.details}, status_code=status_code)


@proxy_router.post("/create-payment-link", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_payment_link(body: ProxyPaymentRequest):
    """
    Crée un lien de paiement hébergé.
    - Succès: 200 {"link": "<url>"}
    - Échec processeur ou lien absent: 500 {"error", "details"} (réponse brute de Checkout)
    """
    try:
        result = await handoff_service.redirect_handoff(body.to_payload())
    except HandoffError as e:
        return _proxy_error(e)
    return {"link": result["redirect"]}


@proxy_router.post("/create-payment-sessions", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_payment_sessions(body: ProxyPaymentRequest):
    remember_me = body.mode != "stored_card"
    session_body = payment_session_body(
        body.to_payload(),
        remember_me=remember_me,
        instrument_ids=body.instrument_ids,
        store_consent_collected=None if remember_me else body.store_consent_collected,
    )
    try:
        return await checkout_client.create_payment_session(session_body)
    except HandoffError as e:
        return _proxy_error(e)


@proxy_router.post("/card-metadata", dependencies=[Depends(optional_rate_limit(times=60, seconds=60))])
async def card_metadata(body: CardMetadataRequest):
    try:
        return await checkout_client.card_metadata(body.number, body.type, reference=body.reference)
    except ProbeError as e:
        return _proxy_error(e)


@proxy_router.post("/tokenize-card", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def tokenize_card(body: TokenizeRequest):
    try:
        return await checkout_client.tokenize_card(
            body.number, body.expiry_month, body.expiry_year, body.cvv, name=body.name
        )
    except HandoffError as e:
        if isinstance(e.details, dict):
            return JSONResponse(e.details, status_code=400)
        return _proxy_error(e, status_code=400)


@proxy_router.get("/get-payment-details/{payment_id}")
async def get_payment_details(payment_id: str):
    try:
        return await checkout_client.get_payment_details(payment_id)
    except HandoffError as e:
        return _proxy_error(e)


@proxy_router.get("/validate-customer-by-email/{email}")
async def validate_customer_by_email(email: str, state: VisitorState = Depends(get_visitor_state)):
    try:
        return await handoff_service.validate_customer_by_email(state, email)
    except HandoffError as e:
        return _proxy_error(e)


@proxy_router.get("/api/checkout-config")
def checkout_config():
    return {"publicKey": CK_PUBLIC, "environment": CK_ENVIRONMENT}
