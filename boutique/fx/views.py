from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from boutique.cart.store import CartStore
from boutique.config import CANONICAL_CURRENCY
from boutique.storage.state import VisitorState
from boutique.utils.visitor import get_visitor_state
from . import service as fx

router = APIRouter(prefix="/api/v1/fx", tags=["Currency"])


class CurrencyRequest(BaseModel):
    currency: str = Field(min_length=3, max_length=3)


@router.get("/rates")
def get_rates():
    return {"base": CANONICAL_CURRENCY, "rates": fx.get_rates()}


@router.post("/refresh")
def refresh_rates():
    return {"base": CANONICAL_CURRENCY, "rates": fx.refresh_rates()}


@router.get("/convert")
def convert(amount: float, currency: str):
    converted = fx.convert(amount, currency)
    return {"amount": converted, "currency": currency.upper(), "formatted": fx.format_price(converted, currency)}


@router.get("/currency")
def get_currency(state: VisitorState = Depends(get_visitor_state)):
    return {"currency": fx.get_selected_currency(state)}


@router.put("/currency")
def set_currency(body: CurrencyRequest, state: VisitorState = Depends(get_visitor_state)):
    """
    Change la devise d'affichage du visiteur.
    - Pas de nouvel appel FX: les taux en cache sont réutilisés
    - Le panier est reprixé dans la nouvelle devise
    """
    currency = fx.set_selected_currency(state, body.currency)
    store = CartStore(state)
    store.sync_currency(currency)
    return {"currency": currency, "cart": store.summary(currency)}
