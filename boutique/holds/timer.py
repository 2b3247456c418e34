"""
Hold de siège à durée fixe (HOLD_DURATION_SECONDS).

- ensure_hold(): reprend un hold non expiré, sinon en crée un nouveau (now + durée).
- tick(now): temps restant = max(0, expiration - now), affiché "mm:ss" (arrondi inférieur).
  Le premier tick à 0 déclenche l'éviction, une seule fois: hold, sélection de siège
  et carte enregistrée sont effacés, puis le client est renvoyé vers l'étape d'éligibilité.
- Les horloges sont injectables (millisecondes epoch) pour les tests.
"""
import time
import asyncio
import logging
from typing import AsyncIterator, Callable, Optional

from pydantic import BaseModel

from boutique.config import HOLD_DURATION_SECONDS
from boutique.errors import HoldExpiredError
from boutique.storage import keys
from boutique.storage.state import VisitorState
from .seats import load_selection, eligibility_url

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def format_remaining(remaining_ms: int) -> str:
    remaining_ms = max(0, int(remaining_ms))
    minutes = remaining_ms // 60000
    seconds = (remaining_ms % 60000) // 1000
    return f"{minutes:02d}:{seconds:02d}"


class TickResult(BaseModel):
    active: bool
    remaining_ms: int
    display: str
    expired: bool
    evicted: bool = False
    redirect: Optional[str] = None


class HoldTimer:
    def __init__(self, state: VisitorState, duration_seconds: int = HOLD_DURATION_SECONDS,
                 clock: Callable[[], int] = now_ms):
        self.state = state
        self.duration_ms = int(duration_seconds) * 1000
        self.clock = clock
        self._evicted = False
        self._cancelled = False

    def expires_at(self) -> Optional[int]:
        raw = self.state.get(keys.HOLD_EXPIRES_AT, scope=keys.SESSION)
        try:
            return int(raw) if raw else None
        except ValueError:
            logger.warning("Expiration de hold illisible ignorée: %r", raw)
            return None

    def ensure_hold(self, now: Optional[int] = None) -> int:
        now = self.clock() if now is None else now
        current = self.expires_at()
        if current is not None and current > now:
            return current
        expires = now + self.duration_ms
        self.state.set(keys.HOLD_EXPIRES_AT, str(expires), scope=keys.SESSION)
        self._evicted = False
        self._cancelled = False
        logger.info("hold.created visitor=%s expires_at=%s", self.state.visitor_id, expires)
        return expires

    def remaining_ms(self, now: Optional[int] = None) -> int:
        now = self.clock() if now is None else now
        expires = self.expires_at()
        if expires is None:
            return 0
        return max(0, expires - now)

    def _clear(self) -> None:
        self.state.remove(keys.HOLD_EXPIRES_AT, scope=keys.SESSION)
        self.state.remove(keys.SEAT_SELECTION, scope=keys.SESSION)

    def evict(self) -> str:
        selection = load_selection(self.state)
        redirect = eligibility_url(selection.model_dump() if selection else None)
        self._clear()
        self.state.remove(keys.TICKET_SAVED_CARD)
        self.state.remove(keys.TICKET_SAVED_CARD_ELIGIBLE)
        self._evicted = True
        logger.info("hold.evicted visitor=%s", self.state.visitor_id)
        return redirect

    def tick(self, now: Optional[int] = None) -> TickResult:
        now = self.clock() if now is None else now
        expires = self.expires_at()
        if expires is None or self._evicted or self._cancelled:
            return TickResult(active=False, remaining_ms=0, display="00:00", expired=True)
        remaining = max(0, expires - now)
        if remaining > 0:
            return TickResult(active=True, remaining_ms=remaining, display=format_remaining(remaining), expired=False)
        redirect = self.evict()
        return TickResult(active=False, remaining_ms=0, display="00:00", expired=True, evicted=True, redirect=redirect)

    def require_active(self, now: Optional[int] = None) -> int:
        """Exige un hold en cours (page de paiement); sinon éviction et HoldExpiredError."""
        now = self.clock() if now is None else now
        expires = self.expires_at()
        if expires is None or expires <= now:
            redirect = self.evict()
            raise HoldExpiredError("Seat hold expired", redirect=redirect)
        return expires

    def cancel(self) -> None:
        """Arrête le décompte et libère le hold (idempotent)."""
        if self._cancelled:
            return
        self._cancelled = True
        self._clear()

    def release(self) -> None:
        """Paiement abouti: hold, sélection et carte enregistrée sont consommés."""
        self._clear()
        self.state.remove(keys.TICKET_SAVED_CARD)
        self.state.remove(keys.TICKET_SAVED_CARD_ELIGIBLE)
        self._cancelled = True

    async def ticks(self, interval: float = 1.0, sleep=asyncio.sleep) -> AsyncIterator[TickResult]:
        """Un TickResult par intervalle jusqu'à l'expiration (incluse) ou l'annulation."""
        while not self._cancelled:
            result = self.tick()
            yield result
            if result.expired:
                return
            await sleep(interval)
