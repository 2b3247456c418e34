from urllib.parse import parse_qs, urlparse

import pytest

from boutique.config import BASE_URL, CHECKOUT_SUCCESS_PATH, PAYMENT_FLOW_PATH
from boutique.errors import HandoffError, ValidationError
from boutique.holds.seats import build_selection, load_selection, save_selection
from boutique.holds.timer import HoldTimer
from boutique.payments import handoff
from boutique.payments.payload import build_payload

CUSTOMER = {
    "name": "Ken So",
    "email": "ken.so@checkout.com",
    "phone_country_code": "+852",
    "phone_number": "64416246",
}


def _start(state, country="HK"):
    payload = build_payload(
        country=country,
        currency="HKD",
        customer=CUSTOMER,
        lines=[{"name": "Phone Case Black", "quantity": 1, "unit_price": 100}],
    )
    return handoff.start_handoff(state, payload)


def test_mode_defaults_to_redirect(state):
    assert handoff.get_mode(state) == handoff.REDIRECT
    handoff.set_mode(state, handoff.EMBEDDED)
    assert handoff.get_mode(state) == handoff.EMBEDDED
    with pytest.raises(ValidationError):
        handoff.set_mode(state, "popup")


def test_remember_me_is_on_until_disabled(state):
    assert handoff.get_remember_me(state) is True
    handoff.set_remember_me(state, False)
    assert handoff.get_remember_me(state) is False


def test_payload_is_kept_in_session(state):
    payload = _start(state)
    assert handoff.load_payload(state) == payload


@pytest.mark.asyncio
async def test_handoff_without_payload_fails(state, fake_checkout):
    with pytest.raises(ValidationError) as exc:
        await handoff.handoff(state)
    assert exc.value.code == "missing_payload"
    assert fake_checkout.calls == []


@pytest.mark.asyncio
async def test_redirect_handoff_returns_hosted_link(state, fake_checkout):
    payload = _start(state)
    result = await handoff.handoff(state)

    assert result == {"mode": "redirect", "redirect": "https://pay.sandbox.checkout.com/page/pl_123"}
    [body] = fake_checkout.bodies("create_payment_link")
    assert body["amount"] == payload.amount == 10000
    assert body["reference"] == payload.reference


@pytest.mark.asyncio
async def test_missing_link_keeps_payload_for_retry(state, fake_checkout):
    _start(state)
    fake_checkout.link = {"id": "pl_123"}
    with pytest.raises(HandoffError) as exc:
        await handoff.handoff(state)
    assert exc.value.details == {"id": "pl_123"}
    assert handoff.load_payload(state) is not None


@pytest.mark.asyncio
async def test_embedded_handoff_with_stored_cards(state, fake_checkout):
    _start(state)
    handoff.set_mode(state, handoff.EMBEDDED)
    handoff.set_remember_me(state, False)
    handoff.store_customer_id(state, CUSTOMER["email"], "cus_1")
    handoff.store_instrument_id(state, CUSTOMER["email"], "src_1")

    result = await handoff.handoff(state, store_consent_collected=False)

    assert result["mode"] == "embedded"
    assert result["payment_session"]["id"] == "ps_123"
    assert result["remember_me"] is False
    [body] = fake_checkout.bodies("create_payment_session")
    config = body["payment_method_configuration"]
    assert config["stored_card"] == {"customer_id": "cus_1", "instrument_ids": ["src_1"]}
    assert config["card"] == {"store_payment_details": "disabled"}
    assert body["customer"]["id"] == "cus_1"


@pytest.mark.asyncio
async def test_embedded_handoff_with_remember_me(state, fake_checkout):
    _start(state)
    handoff.set_mode(state, handoff.EMBEDDED)
    handoff.store_instrument_id(state, CUSTOMER["email"], "src_1")

    await handoff.handoff(state)

    [body] = fake_checkout.bodies("create_payment_session")
    assert body["payment_method_configuration"] == {"card": {"store_payment_details": "enabled"}}


@pytest.mark.asyncio
async def test_completed_payment_remembers_customer_and_instrument(state, fake_checkout):
    _start(state)
    result = await handoff.on_completed(state, "pay_123")
    await handoff.on_completed(state, "pay_123", email=CUSTOMER["email"])

    assert result == {"status": "completed", "redirect": CHECKOUT_SUCCESS_PATH}
    assert handoff.get_customer_id(state, CUSTOMER["email"]) == "cus_123"
    assert handoff.get_instrument_ids(state, CUSTOMER["email"]) == ["src_123"]
    assert handoff.load_payload(state) is None


@pytest.mark.asyncio
async def test_completed_payment_survives_details_failure(state, fake_checkout):
    _start(state)
    fake_checkout.errors["get_payment_details"] = HandoffError("Failed to fetch payment details")
    result = await handoff.on_completed(state, "pay_123")
    assert result["status"] == "completed"
    assert handoff.get_customer_id(state, CUSTOMER["email"]) is None


@pytest.mark.asyncio
async def test_completed_ticket_payment_releases_hold(state, fake_checkout):
    save_selection(state, build_selection(event="Concert", session="s1", category_price=880))
    HoldTimer(state).ensure_hold()

    await handoff.on_completed(state, "pay_123", email=CUSTOMER["email"], ticket=True)

    assert HoldTimer(state).expires_at() is None
    assert load_selection(state) is None


def test_error_callback_keeps_customer_on_page(state):
    assert handoff.on_error(state, {"reason": "declined", "code": "20005"})["message"] == "declined"
    result = handoff.on_error(state, None)
    assert result == {"status": "error", "message": "Payment error occurred", "stay": True}


@pytest.mark.asyncio
async def test_validate_customer_by_email_syncs_stored_id(state, fake_checkout):
    handoff.store_customer_id(state, CUSTOMER["email"], "cus_old")
    assert await handoff.validate_customer_by_email(state, CUSTOMER["email"]) == {"exists": False, "customer_id": None}
    assert handoff.get_customer_id(state, CUSTOMER["email"]) is None

    fake_checkout.customer = {"id": "cus_9"}
    assert await handoff.validate_customer_by_email(state, CUSTOMER["email"]) == {"exists": True, "customer_id": "cus_9"}
    assert handoff.get_customer_id(state, CUSTOMER["email"]) == "cus_9"


def test_qr_handoff_resumes_on_other_device(state, memory_backend):
    from boutique.storage.state import VisitorState

    payload = _start(state, country="NL")
    result = handoff.qr_handoff(state)

    assert result["url"].startswith(f"{BASE_URL}{PAYMENT_FLOW_PATH}?data=")
    assert result["qr_code"].startswith("data:image/png;base64,")

    data = parse_qs(urlparse(result["url"]).query)["data"][0]
    phone = VisitorState("phone", backend=memory_backend)
    assert handoff.decode_handoff_data(phone, data) == payload
    assert handoff.load_payload(phone) == payload


def test_invalid_resume_data_is_rejected(state):
    with pytest.raises(ValidationError) as exc:
        handoff.decode_handoff_data(state, "pas-du-base64!")
    assert exc.value.code == "invalid_handoff_data"
    with pytest.raises(ValidationError):
        handoff.decode_handoff_data(state, "e30")  # {}
