# module boutique.errors
"""
Exceptions métier de la boutique.
- BoutiqueError porte un message, un code stable et des détails optionnels.
- Chaque sous-classe fixe le status HTTP renvoyé par les gestionnaires (app_setup.exceptions).
"""
from typing import Any, Dict, Optional


class BoutiqueError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(BoutiqueError):
    """Entrée refusée; `fields` associe chaque champ fautif à son message."""
    status_code = 400
    code = "invalid"

    def __init__(self, message: str, code: str = "invalid", fields: Optional[Dict[str, str]] = None):
        super().__init__(message, code=code)
        self.fields = fields or {}

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.fields:
            body["fields"] = self.fields
        return body


class ProbeError(BoutiqueError):
    """Échec de la recherche de métadonnées carte (BIN)."""
    status_code = 502
    code = "probe_failed"


class HandoffError(BoutiqueError):
    """Le processeur a refusé la création du paiement; `details` garde sa réponse brute."""
    status_code = 502
    code = "handoff_failed"


class PersistenceError(BoutiqueError):
    status_code = 500
    code = "persistence"


class HoldExpiredError(BoutiqueError):
    """Le hold de siège a expiré: le client doit repartir de `redirect`."""
    status_code = 410
    code = "hold_expired"

    def __init__(self, message: str, redirect: str):
        super().__init__(message)
        self.redirect = redirect

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["redirect"] = self.redirect
        return body
