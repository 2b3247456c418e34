import pytest

from boutique.config import ELIGIBILITY_PATH
from boutique.eligibility.saved_card import load_saved_card, save_card
from boutique.errors import HoldExpiredError
from boutique.holds.seats import build_selection, load_selection, save_selection
from boutique.holds.timer import HoldTimer, format_remaining

T = 1_700_000_000_000


def _timer(state, now=T):
    return HoldTimer(state, duration_seconds=300, clock=lambda: now)


def _select(state):
    save_selection(state, build_selection(event="Concert", session="s1", category_price=880, index="2"))


def test_format_remaining():
    assert format_remaining(300000) == "05:00"
    assert format_remaining(61999) == "01:01"
    assert format_remaining(999) == "00:00"
    assert format_remaining(-5) == "00:00"


def test_tick_counts_down_from_five_minutes(state):
    timer = _timer(state)
    assert timer.ensure_hold() == T + 300000
    assert timer.tick(T).display == "05:00"
    assert timer.tick(T + 299000).display == "00:01"

    last = timer.tick(T + 299500)
    assert last.active is True
    assert last.display == "00:00"


def test_existing_hold_is_resumed(state):
    _timer(state).ensure_hold()
    assert _timer(state).ensure_hold(now=T + 60000) == T + 300000


def test_expired_hold_is_replaced(state):
    _timer(state).ensure_hold()
    assert _timer(state).ensure_hold(now=T + 400000) == T + 700000


def test_eviction_happens_exactly_once(state):
    _select(state)
    save_card(state, {"token": "tok_1", "last4": "1111"})
    timer = _timer(state)
    timer.ensure_hold()

    first = timer.tick(T + 300000)
    assert first.expired is True
    assert first.evicted is True
    assert first.redirect.startswith(f"{ELIGIBILITY_PATH}?event=Concert")
    assert load_selection(state) is None
    assert load_saved_card(state) is None
    assert timer.expires_at() is None

    second = timer.tick(T + 301000)
    assert second.expired is True
    assert second.evicted is False

    # nouvelle requête sur le même visiteur: plus rien à évincer
    assert _timer(state).tick(T + 302000).evicted is False


def test_require_active_raises_after_expiry(state):
    _select(state)
    timer = _timer(state)
    timer.ensure_hold()
    assert timer.require_active(T + 1000) == T + 300000

    with pytest.raises(HoldExpiredError) as exc:
        timer.require_active(T + 300000)
    assert exc.value.status_code == 410
    assert exc.value.redirect.startswith(ELIGIBILITY_PATH)
    assert load_selection(state) is None


def test_cancel_is_idempotent(state):
    _select(state)
    timer = _timer(state)
    timer.ensure_hold()
    timer.cancel()
    timer.cancel()

    assert timer.expires_at() is None
    assert load_selection(state) is None
    assert timer.tick(T + 1000).active is False


@pytest.mark.asyncio
async def test_ticks_stop_after_expiry(state):
    clock = iter([T + 298000, T + 299000, T + 300000])
    timer = HoldTimer(state, duration_seconds=300, clock=lambda: next(clock))
    timer.ensure_hold(now=T)
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    results = [r async for r in timer.ticks(1.0, sleep=fake_sleep)]

    assert [r.display for r in results] == ["00:02", "00:01", "00:00"]
    assert results[-1].evicted is True
    assert sleeps == [1.0, 1.0]
