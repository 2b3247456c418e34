"""
Endpoints du checkout (Shipping -> Carrier -> Payment).
Chaque action renvoie l'état complet (flow, totaux) pour que la page se redessine.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from boutique.storage.state import VisitorState
from boutique.utils.rate_limit import optional_rate_limit
from boutique.utils.visitor import get_visitor_state
from . import service
from .flow import CHANGE_CARRIER, CHANGE_SHIPPING, CHOOSE_CARRIER, CONTINUE, SELECT_CARRIER

router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout"])


class ShippingForm(BaseModel):
    first_name: str = ""
    last_name: str = ""
    address_line1: str = ""
    address_line2: Optional[str] = None
    region: str = ""
    country: str = ""


class CarrierRequest(BaseModel):
    carrier: str


class HandoffPrepareRequest(BaseModel):
    customer: Optional[Dict[str, Any]] = None
    country: Optional[str] = None


class CardPaymentRequest(BaseModel):
    card_number: str
    expiry: str
    cvv: str
    cardholder_name: str
    email: Optional[str] = None


@router.get("")
def get_checkout(state: VisitorState = Depends(get_visitor_state)):
    return service.summary(state)


@router.get("/totals")
def get_totals(currency: Optional[str] = None, state: VisitorState = Depends(get_visitor_state)):
    return service.totals(state, currency)


@router.post("/shipping")
def choose_carrier(body: ShippingForm, state: VisitorState = Depends(get_visitor_state)):
    service.dispatch(state, CHOOSE_CARRIER, body.model_dump())
    return service.summary(state)


@router.put("/carrier")
def select_carrier(body: CarrierRequest, state: VisitorState = Depends(get_visitor_state)):
    service.dispatch(state, SELECT_CARRIER, body.carrier)
    return service.summary(state)


@router.post("/continue")
def continue_checkout(state: VisitorState = Depends(get_visitor_state)):
    service.dispatch(state, CONTINUE)
    return service.summary(state)


@router.post("/change-shipping")
def change_shipping(state: VisitorState = Depends(get_visitor_state)):
    service.dispatch(state, CHANGE_SHIPPING)
    return service.summary(state)


@router.post("/change-carrier")
def change_carrier(state: VisitorState = Depends(get_visitor_state)):
    service.dispatch(state, CHANGE_CARRIER)
    return service.summary(state)


@router.post("/handoff")
def prepare_handoff(body: Optional[HandoffPrepareRequest] = None, state: VisitorState = Depends(get_visitor_state)):
    body = body or HandoffPrepareRequest()
    payload = service.prepare_handoff(state, customer=body.customer, country=body.country)
    return payload.model_dump(mode="json")


@router.post("/pay", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def pay(body: CardPaymentRequest, state: VisitorState = Depends(get_visitor_state)):
    return await service.pay(state, **body.model_dump())


@router.post("/complete")
def complete(state: VisitorState = Depends(get_visitor_state)):
    service.complete(state)
    return {"completed": True}
