"""
Porte d'éligibilité prévente: machine à états pure (aucun appel réseau ici).

Saisie PAN complète:
- moins de 16 chiffres: remise à zéro (non éligible, dernier BIN oublié, formulaire masqué)
- 16 chiffres ou plus: une recherche par préfixe BIN de 8 chiffres; même préfixe -> rien à faire
Saisie BIN seule: exactement 6 chiffres.

Chaque recherche reçoit un numéro de génération; un résultat dont la génération n'est
plus la dernière est ignoré. Le numéro de carte n'est jamais conservé dans l'état.
"""
from typing import Optional, Tuple

from pydantic import BaseModel

from boutique.errors import ValidationError
from boutique.utils.validators import digits_only
from .criteria import CardProbeResult, EligibilityCriteria, check_eligibility, eligibility_message

IDLE = "idle"
PENDING = "pending"
ELIGIBLE = "eligible"
INELIGIBLE = "ineligible"

MAX_PAN_DIGITS = 19
FULL_PAN_DIGITS = 16
BIN_PREFIX_DIGITS = 8
BIN_ONLY_DIGITS = 6


class GateState(BaseModel):
    status: str = IDLE
    eligible: bool = False
    message: str = ""
    last_bin: str = ""
    length: int = 0
    generation: int = 0
    show_form: bool = False
    probe: Optional[CardProbeResult] = None


class ProbeRequest(BaseModel):
    number: str
    source_type: str = "card"
    generation: int


def format_card_number(value: str) -> str:
    digits = digits_only(value)[:MAX_PAN_DIGITS]
    return " ".join(digits[i:i + 4] for i in range(0, len(digits), 4))


def on_card_input(state: GateState, raw: str) -> Tuple[GateState, Optional[ProbeRequest]]:
    digits = digits_only(raw)[:MAX_PAN_DIGITS]
    if len(digits) < FULL_PAN_DIGITS:
        # la génération avance pour invalider une recherche encore en vol
        return GateState(length=len(digits), generation=state.generation + 1), None

    bin_prefix = digits[:BIN_PREFIX_DIGITS]
    if bin_prefix == state.last_bin:
        return state.model_copy(update={"length": len(digits)}), None

    generation = state.generation + 1
    pending = GateState(
        status=PENDING,
        message="Checking card eligibility...",
        last_bin=bin_prefix,
        length=len(digits),
        generation=generation,
        show_form=state.show_form,
    )
    return pending, ProbeRequest(number=digits, source_type="card", generation=generation)


def on_bin_input(state: GateState, raw: str) -> Tuple[GateState, ProbeRequest]:
    digits = digits_only(raw)
    if len(digits) != BIN_ONLY_DIGITS:
        raise ValidationError("Please enter a valid 6-digit BIN.", code="invalid_bin", fields={"bin": "6 chiffres requis"})
    generation = state.generation + 1
    pending = GateState(
        status=PENDING,
        message="Checking card eligibility...",
        last_bin=digits,
        length=len(digits),
        generation=generation,
    )
    return pending, ProbeRequest(number=digits, source_type="bin", generation=generation)


def apply_probe_result(state: GateState, generation: int, probe: CardProbeResult,
                       criteria: EligibilityCriteria) -> GateState:
    if generation != state.generation:
        return state
    eligible = check_eligibility(probe, criteria)
    return state.model_copy(update={
        "status": ELIGIBLE if eligible else INELIGIBLE,
        "eligible": eligible,
        "message": eligibility_message(probe, criteria, eligible),
        "probe": probe,
        "show_form": True,
    })


def apply_probe_error(state: GateState, generation: int, message: str) -> GateState:
    if generation != state.generation:
        return state
    return state.model_copy(update={
        "status": INELIGIBLE,
        "eligible": False,
        "message": message or "Unable to check card eligibility",
        "probe": None,
        "show_form": True,
    })
