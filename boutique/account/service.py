"""
Connexion de démonstration (simulée).
- login: tout couple identifiant / mot de passe non vide est accepté
- le profil de livraison de démonstration est mémorisé pour pré-remplir le checkout
"""
import logging
from typing import Any, Dict, Optional

from boutique.errors import ValidationError
from boutique.storage import keys
from boutique.storage.state import VisitorState

logger = logging.getLogger(__name__)

DEMO_PROFILE: Dict[str, str] = {
    "name": "Ken So",
    "email": "ken.so@checkout.com",
    "phone_number": "64416246",
    "phone_country_code": "+852",
    "firstName": "Ken",
    "lastName": "So",
    "addressLine1": "Level 14, Five Pacific Place",
    "addressLine2": "28 Hennessy Road",
    "region": "Wan Chai",
    "country": "HK",
}


def is_logged_in(state: VisitorState) -> bool:
    return state.get_flag(keys.IS_LOGGED_IN)


def login(state: VisitorState, username: str, password: str) -> Dict[str, Any]:
    fields = {}
    if not (username or "").strip():
        fields["username"] = "Champ requis"
    if not (password or "").strip():
        fields["password"] = "Champ requis"
    if fields:
        raise ValidationError("Please enter username and password", code="invalid_credentials", fields=fields)
    state.set_flag(keys.IS_LOGGED_IN, True)
    state.write_json(keys.USER_SHIPPING_ADDRESS, DEMO_PROFILE)
    logger.info("account.login visitor=%s", state.visitor_id)
    return {"logged_in": True, "profile": dict(DEMO_PROFILE)}


def logout(state: VisitorState) -> Dict[str, Any]:
    state.remove(keys.IS_LOGGED_IN)
    state.remove(keys.USER_SHIPPING_ADDRESS)
    logger.info("account.logout visitor=%s", state.visitor_id)
    return {"logged_in": False, "profile": None}


def load_profile(state: VisitorState) -> Optional[Dict[str, Any]]:
    """Profil enregistré: scope session d'abord, puis local."""
    for scope in (keys.SESSION, keys.LOCAL):
        raw = state.read_json(keys.USER_SHIPPING_ADDRESS, default=None, scope=scope)
        if isinstance(raw, dict):
            return raw
    return None
