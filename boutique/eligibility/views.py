"""
Endpoints API de la porte d'éligibilité prévente.
- /card: saisie PAN incrémentale (debounce + recherche BIN)
- /bin: vérification d'un BIN de 6 chiffres
- /criteria: préférences de critères (lecture, sauvegarde, reset)
- /confirm: passage à la sélection de siège, avec enregistrement optionnel de la carte
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from boutique.storage.state import VisitorState
from boutique.utils.rate_limit import optional_rate_limit
from boutique.utils.visitor import get_visitor_state
from . import service
from .criteria import EligibilityCriteria, load_criteria, save_criteria, reset_criteria
from .gate import format_card_number
from .saved_card import load_saved_card, clear_saved_card

router = APIRouter(prefix="/api/v1/eligibility", tags=["Eligibility"])


class CardInputRequest(BaseModel):
    number: str


class BinRequest(BaseModel):
    bin: str


class CriteriaRequest(BaseModel):
    scheme: Optional[str] = None
    issuer: Optional[str] = None
    product: Optional[str] = None


class ConfirmRequest(BaseModel):
    number: str
    event: str = ""
    price: str = ""
    index: str = ""
    status: str = "presale"
    save_card: bool = False
    cardholder_name: str = ""
    expiry: str = ""
    cvv: str = ""


def _gate_body(gate_state, formatted: Optional[str] = None):
    body = gate_state.model_dump(exclude={"generation"})
    if formatted is not None:
        body["formatted"] = formatted
    return body


@router.get("")
def get_gate(state: VisitorState = Depends(get_visitor_state)):
    return _gate_body(service.load_gate(state))


@router.post("/card", dependencies=[Depends(optional_rate_limit(times=60, seconds=60))])
async def card_input(body: CardInputRequest, state: VisitorState = Depends(get_visitor_state)):
    gate_state = await service.submit_card_input(state, body.number)
    return _gate_body(gate_state, format_card_number(body.number))


@router.post("/bin", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
async def bin_check(body: BinRequest, state: VisitorState = Depends(get_visitor_state)):
    return _gate_body(await service.check_bin(state, body.bin))


@router.delete("")
def reset(state: VisitorState = Depends(get_visitor_state)):
    return _gate_body(service.reset_gate(state))


@router.get("/criteria")
def get_criteria(state: VisitorState = Depends(get_visitor_state)):
    criteria = load_criteria(state)
    return {**criteria.model_dump(), "display": criteria.display()}


@router.put("/criteria")
def put_criteria(body: CriteriaRequest, state: VisitorState = Depends(get_visitor_state)):
    criteria = save_criteria(state, EligibilityCriteria(scheme=body.scheme, issuer=body.issuer, product=body.product))
    return {**criteria.model_dump(), "display": criteria.display()}


@router.delete("/criteria")
def delete_criteria(state: VisitorState = Depends(get_visitor_state)):
    criteria = reset_criteria(state)
    return {**criteria.model_dump(), "display": criteria.display()}


@router.post("/confirm", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def confirm(body: ConfirmRequest, state: VisitorState = Depends(get_visitor_state)):
    context = {"event": body.event, "price": body.price, "index": body.index, "status": body.status}
    return await service.confirm(
        state,
        number=body.number,
        context=context,
        save=body.save_card,
        cardholder_name=body.cardholder_name,
        expiry=body.expiry,
        cvv=body.cvv,
    )


@router.get("/saved-card")
def get_saved_card(state: VisitorState = Depends(get_visitor_state)):
    card = load_saved_card(state)
    return {"saved_card": card.model_dump() if card else None}


@router.delete("/saved-card")
def delete_saved_card(state: VisitorState = Depends(get_visitor_state)):
    clear_saved_card(state)
    return {"saved_card": None}
