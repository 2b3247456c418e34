"""
Adaptateur de devises: prix catalogue en HKD -> devise d'affichage.
- Les taux sont chargés une fois (API FX) puis gardés en cache process.
- En cas d'échec réseau ou de réponse invalide, on bascule sur FALLBACK_RATES (jamais d'exception).
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

import httpx

from boutique.config import FX_API_URL, CANONICAL_CURRENCY
from boutique.errors import ValidationError
from boutique.storage import keys
from boutique.storage.state import VisitorState

logger = logging.getLogger(__name__)

# 1 HKD = X devise
FALLBACK_RATES: Dict[str, float] = {
    "HKD": 1,
    "USD": 0.128,
    "GBP": 0.100,
    "AED": 0.470,
    "CNY": 0.925,
    "JPY": 19.50,
    "SGD": 0.172,
}

ZERO_DECIMAL_CURRENCIES = {"JPY"}

_rates: Optional[Dict[str, float]] = None


def _parse_rates(resp: httpx.Response) -> Dict[str, float]:
    resp.raise_for_status()
    rates = (resp.json() or {}).get("rates")
    if not isinstance(rates, dict) or not rates:
        raise ValueError("réponse FX sans 'rates'")
    return {str(k).upper(): float(v) for k, v in rates.items()}


def fetch_rates(timeout: float = 10.0) -> Dict[str, float]:
    try:
        return _parse_rates(httpx.get(FX_API_URL, timeout=timeout))
    except Exception as e:
        logger.warning("Taux FX indisponibles, utilisation des taux de secours: %s", e)
        return dict(FALLBACK_RATES)


async def fetch_rates_async(timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict[str, float]:
    """Variante non bloquante pour la boucle d'événements (démarrage, routes async)."""
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            return _parse_rates(await client.get(FX_API_URL))
    except Exception as e:
        logger.warning("Taux FX indisponibles, utilisation des taux de secours: %s", e)
        return dict(FALLBACK_RATES)


def get_rates() -> Dict[str, float]:
    global _rates
    if _rates is None:
        _rates = fetch_rates()
    return _rates


async def warm_rates() -> Dict[str, float]:
    """Remplit le cache sans bloquer; sans effet si les taux sont déjà chargés."""
    global _rates
    if _rates is None:
        _rates = await fetch_rates_async()
    return _rates


def refresh_rates() -> Dict[str, float]:
    global _rates
    _rates = fetch_rates()
    return _rates


def reset_rates_cache() -> None:
    global _rates
    _rates = None


def decimals_for(currency: str) -> int:
    return 0 if (currency or "").upper() in ZERO_DECIMAL_CURRENCIES else 2


def round_amount(amount, currency: str) -> float:
    exp = Decimal(1).scaleb(-decimals_for(currency))
    return float(Decimal(str(amount)).quantize(exp, rounding=ROUND_HALF_UP))


def convert(amount, currency: str, rates: Optional[Dict[str, float]] = None) -> float:
    """
    Convertit un montant HKD vers `currency`.
    - arrondi demi-supérieur: 0 décimale pour JPY, 2 sinon
    - devise sans taux connu: montant inchangé
    """
    rates = rates if rates is not None else get_rates()
    currency = (currency or "").upper()
    rate = rates.get(currency)
    if not rate:
        logger.warning("Pas de taux FX pour %s, montant laissé en %s", currency, CANONICAL_CURRENCY)
        return float(amount)
    return round_amount(Decimal(str(amount)) * Decimal(str(rate)), currency)


def format_price(amount, currency: str) -> str:
    currency = (currency or "").upper()
    if decimals_for(currency) == 0:
        return f"{currency} {int(round_amount(amount, currency)):,}"
    return f"{currency} {round_amount(amount, currency):.2f}"


def get_selected_currency(state: VisitorState) -> str:
    return (state.get(keys.SELECTED_CURRENCY) or CANONICAL_CURRENCY).upper()


def set_selected_currency(state: VisitorState, currency: str, rates: Optional[Dict[str, float]] = None) -> str:
    """Mémorise la devise choisie; les taux en cache ne sont pas rechargés."""
    currency = (currency or "").upper()
    rates = rates if rates is not None else get_rates()
    if currency not in rates:
        raise ValidationError(f"Devise non supportée: {currency}", code="unsupported_currency")
    state.set(keys.SELECTED_CURRENCY, currency)
    return currency
