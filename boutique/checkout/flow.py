"""
Machine à états du checkout (Shipping -> Carrier -> Payment), sans I/O.

Chaque section est "expanded", "collapsed" ou "hidden". reduce(state, action, payload)
renvoie un nouvel état; l'état reçu n'est jamais modifié.

Transitions:
  initial          shipping=expanded  carrier=hidden    payment=hidden
  choose_carrier   shipping=collapsed carrier=expanded  (formulaire valide uniquement)
  select_carrier   change le transporteur, aucune transition
  continue         carrier=collapsed  payment=expanded
  change_shipping  retour à l'état initial (adresse gardée pour pré-remplissage)
  change_carrier   carrier=expanded   payment=hidden

Panier 100% digital: shipping et carrier restent masqués, payment est ouvert d'emblée.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from boutique.errors import ValidationError

EXPANDED = "expanded"
COLLAPSED = "collapsed"
HIDDEN = "hidden"

CHOOSE_CARRIER = "choose_carrier"
SELECT_CARRIER = "select_carrier"
CONTINUE = "continue"
CHANGE_SHIPPING = "change_shipping"
CHANGE_CARRIER = "change_carrier"
ACTIONS = (CHOOSE_CARRIER, SELECT_CARRIER, CONTINUE, CHANGE_SHIPPING, CHANGE_CARRIER)

REQUIRED_SHIPPING_FIELDS = ("first_name", "last_name", "address_line1", "region", "country")


class ShippingAddress(BaseModel):
    first_name: str
    last_name: str
    address_line1: str
    address_line2: Optional[str] = None
    region: str
    country: str

    def display(self) -> str:
        return f"{self.first_name} {self.last_name}, {self.address_line1}, {self.region}, {self.country}"


class Carrier(BaseModel):
    code: str
    name: str
    fee: float  # HKD


CARRIERS: Dict[str, Carrier] = {
    "regular": Carrier(code="regular", name="Regular Carrier", fee=0),
    "express": Carrier(code="express", name="Express Carrier", fee=50),
}
DEFAULT_CARRIER = "regular"


class FlowState(BaseModel):
    shipping: str = EXPANDED
    carrier: str = HIDDEN
    payment: str = HIDDEN
    address: Optional[ShippingAddress] = None
    carrier_code: str = DEFAULT_CARRIER
    digital_only: bool = False

    @property
    def selected_carrier(self) -> Carrier:
        return CARRIERS.get(self.carrier_code) or CARRIERS[DEFAULT_CARRIER]


def initial_state(digital_only: bool = False, address: Optional[ShippingAddress] = None) -> FlowState:
    if digital_only:
        return FlowState(shipping=HIDDEN, carrier=HIDDEN, payment=EXPANDED, digital_only=True, address=address)
    return FlowState(address=address)


def validate_shipping_form(form: Dict[str, Any]) -> ShippingAddress:
    """Contrôle les champs requis; lève ValidationError avec une erreur par champ manquant."""
    form = form or {}
    fields = {
        name: "Champ requis"
        for name in REQUIRED_SHIPPING_FIELDS
        if not str(form.get(name) or "").strip()
    }
    if fields:
        raise ValidationError("Adresse de livraison incomplète", code="invalid_shipping", fields=fields)
    try:
        return ShippingAddress(**{k: (str(v).strip() if v is not None else None) for k, v in form.items() if k in ShippingAddress.model_fields})
    except PydanticValidationError as e:
        raise ValidationError("Adresse de livraison invalide", code="invalid_shipping",
                              fields={".".join(str(p) for p in err["loc"]): err["msg"] for err in e.errors()})


def reduce(state: FlowState, action: str, payload: Any = None) -> FlowState:
    if action not in ACTIONS:
        raise ValidationError(f"Action inconnue: {action}", code="unknown_action")

    # Panier digital: pas d'étapes livraison/transporteur
    if state.digital_only:
        return state

    if action == CHOOSE_CARRIER:
        if state.shipping != EXPANDED:
            return state
        address = validate_shipping_form(payload or {})
        return state.model_copy(update={"shipping": COLLAPSED, "carrier": EXPANDED, "address": address})

    if action == SELECT_CARRIER:
        code = str(payload or "").lower()
        if code not in CARRIERS:
            raise ValidationError(f"Transporteur inconnu: {payload}", code="unknown_carrier",
                                  fields={"carrier": "Valeur non supportée"})
        return state.model_copy(update={"carrier_code": code})

    if action == CONTINUE:
        if state.carrier != EXPANDED:
            return state
        return state.model_copy(update={"carrier": COLLAPSED, "payment": EXPANDED})

    if action == CHANGE_SHIPPING:
        return initial_state(address=state.address)

    # CHANGE_CARRIER
    if state.carrier != COLLAPSED:
        return state
    return state.model_copy(update={"carrier": EXPANDED, "payment": HIDDEN})
