import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from boutique.fx import service as fx
from boutique.storage import keys
from boutique.storage.state import VisitorState
from boutique.utils.visitor import get_visitor_state
from .models import CartItem, DigitalMeta
from .store import CartStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/cart", tags=["Cart"])


class AddItemRequest(BaseModel):
    id: Optional[str] = None
    name: str = Field(min_length=1)
    price_hkd: float = Field(ge=0)
    kind: Literal["physical", "digital"] = "physical"
    image: Optional[str] = None
    design: Optional[str] = None
    recipient_name: Optional[str] = None
    sender_name: Optional[str] = None
    message: Optional[str] = None


class QuantityRequest(BaseModel):
    delta: int


class CheckoutSourceRequest(BaseModel):
    page: str = Field(min_length=1)


@router.get("")
def get_cart(state: VisitorState = Depends(get_visitor_state)):
    """Contenu du panier et total dans la devise de la première ligne."""
    return CartStore(state).summary()


@router.post("/items")
def add_item(body: AddItemRequest, state: VisitorState = Depends(get_visitor_state)):
    """
    Ajoute un article au prix catalogue HKD converti dans la devise choisie.
    - Physique: fusion par nom (+1)
    - Carte cadeau: toujours une nouvelle ligne, métadonnées conservées
    """
    currency = fx.get_selected_currency(state)
    meta = None
    if body.kind == "digital":
        meta = DigitalMeta(
            design=body.design,
            recipient_name=body.recipient_name,
            sender_name=body.sender_name,
            message=body.message,
        )
    item = CartItem(
        id=body.id or body.name.lower().replace(" ", "-"),
        name=body.name,
        unit_price_canonical=body.price_hkd,
        display_price=fx.convert(body.price_hkd, currency),
        display_currency=currency,
        kind=body.kind,
        image=body.image,
        digital_meta=meta,
    )
    store = CartStore(state)
    line = store.add(item)
    logger.info("cart.add name=%s kind=%s qty=%s", line.name, line.kind, line.quantity)
    return {"item": line.model_dump(), "cart": store.summary()}


@router.patch("/items/{index}")
def change_quantity(index: int, body: QuantityRequest, state: VisitorState = Depends(get_visitor_state)):
    store = CartStore(state)
    line = store.set_quantity(index, body.delta)
    return {"item": line.model_dump() if line else None, "cart": store.summary()}


@router.delete("/items/{index}")
def remove_item(index: int, state: VisitorState = Depends(get_visitor_state)):
    store = CartStore(state)
    removed = store.remove(index)
    return {"removed": removed, "cart": store.summary()}


@router.delete("")
def clear_cart(state: VisitorState = Depends(get_visitor_state)):
    store = CartStore(state)
    store.clear()
    return store.summary()


@router.post("/sync")
def sync_cart_currency(state: VisitorState = Depends(get_visitor_state)):
    """Reprix du panier dans la devise actuellement choisie."""
    store = CartStore(state)
    changed = store.sync_currency(fx.get_selected_currency(state))
    return {"changed": changed, "cart": store.summary()}


@router.post("/checkout")
def go_to_checkout(body: CheckoutSourceRequest, state: VisitorState = Depends(get_visitor_state)):
    """Mémorise la page d'origine pour le bouton retour du checkout."""
    state.set(keys.CHECKOUT_SOURCE_PAGE, body.page)
    state.set_flag(keys.SHOW_CART_ON_LOAD, True)
    return {"redirect": "/checkout.html"}


@router.get("/return")
def return_from_checkout(state: VisitorState = Depends(get_visitor_state)):
    """Page de retour + drapeau d'ouverture du panier (consommé une seule fois)."""
    show_cart = state.get_flag(keys.SHOW_CART_ON_LOAD)
    state.remove(keys.SHOW_CART_ON_LOAD)
    return {"page": state.get(keys.CHECKOUT_SOURCE_PAGE) or "/", "show_cart": show_cart}
