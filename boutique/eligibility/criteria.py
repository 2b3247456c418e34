"""
Critères de prévente et décision d'éligibilité d'une carte.
- "all" (ou "any") désactive un critère.
- Schéma: égalité insensible à la casse.
- Émetteur: le nom renvoyé par le processeur doit contenir l'identifiant du critère
  ("river_valley" -> "river valley"), insensible à la casse.
- Produit: mémorisé et affiché mais pas contrôlé (les métadonnées "basic" ne le fournissent pas).
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator

from boutique.storage import keys
from boutique.storage.state import VisitorState

ANY = "all"

ISSUER_NAMES: Dict[str, str] = {
    "river_valley": "RIVER VALLEY CREDIT UNION",
    "lloyds": "LLOYDS BANK PLC",
    "sbm": "SBM BANK (MAURITIUS) LTD",
    "euro": "EURO KARTENSYSTEME GMBH",
}

PRODUCT_NAMES: Dict[str, str] = {
    "visa_classic": "Visa Classic",
}


def _normalize(v: Optional[str]) -> str:
    v = (v or "").strip().lower()
    if not v or v == "any":
        return ANY
    return v


class EligibilityCriteria(BaseModel):
    scheme: str = ANY
    issuer: str = ANY
    product: str = ANY

    @field_validator("scheme", "issuer", "product", mode="before")
    def normalize(cls, v):
        return _normalize(v)

    def display(self) -> str:
        scheme = "Any scheme" if self.scheme == ANY else self.scheme[:1].upper() + self.scheme[1:]
        issuer = "Any issuer" if self.issuer == ANY else ISSUER_NAMES.get(self.issuer, self.issuer.replace("_", " ").upper())
        product = "Any product" if self.product == ANY else PRODUCT_NAMES.get(self.product, "Visa Classic")
        return f"{scheme}, {issuer}, {product}"


class CardProbeResult(BaseModel):
    bin: Optional[str] = None
    scheme: Optional[str] = None
    card_type: Optional[str] = None
    issuer: Optional[str] = None
    issuer_country: Optional[str] = None
    product_type: Optional[str] = None

    @classmethod
    def from_metadata(cls, data: Dict[str, Any]) -> "CardProbeResult":
        data = data or {}
        return cls(
            bin=data.get("bin"),
            scheme=data.get("scheme"),
            card_type=data.get("card_type"),
            issuer=data.get("issuer"),
            issuer_country=data.get("issuer_country"),
            product_type=data.get("product_type"),
        )

    def badge(self) -> str:
        kind = (self.card_type or "").lower()
        scheme = (self.scheme or "").upper()
        if kind == "credit":
            return f" ({scheme} Credit)"
        if kind == "debit":
            return f" ({scheme} Debit)"
        return f" ({scheme})"


def check_eligibility(probe: CardProbeResult, criteria: EligibilityCriteria) -> bool:
    scheme = (probe.scheme or "").lower()
    issuer = (probe.issuer or "").lower()
    if criteria.scheme != ANY and scheme != criteria.scheme:
        return False
    if criteria.issuer != ANY and criteria.issuer.replace("_", " ") not in issuer:
        return False
    return True


def eligibility_message(probe: CardProbeResult, criteria: EligibilityCriteria, eligible: bool) -> str:
    badge = probe.badge()
    if eligible:
        return f"Eligible card detected!{badge} This card meets the priority booking criteria."
    return f"This{badge} is not eligible for priority booking. Required criteria: {criteria.display()}"


def load_criteria(state: VisitorState) -> EligibilityCriteria:
    raw = state.read_json(keys.TICKET_CRITERIA, default=None)
    if not isinstance(raw, dict):
        return EligibilityCriteria()
    return EligibilityCriteria(
        scheme=raw.get("scheme"),
        issuer=raw.get("issuer"),
        product=raw.get("product"),
    )


def save_criteria(state: VisitorState, criteria: EligibilityCriteria) -> EligibilityCriteria:
    state.write_json(keys.TICKET_CRITERIA, criteria.model_dump())
    return criteria


def reset_criteria(state: VisitorState) -> EligibilityCriteria:
    return save_criteria(state, EligibilityCriteria())
