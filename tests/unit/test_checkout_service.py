import pytest

from boutique.account.service import login
from boutique.cart.models import CartItem
from boutique.cart.store import CartStore
from boutique.checkout import service
from boutique.checkout.flow import CHOOSE_CARRIER, CONTINUE, EXPANDED, HIDDEN, SELECT_CARRIER
from boutique.errors import ValidationError
from boutique.payments.handoff import load_payload

ADDRESS = {
    "first_name": "Ken",
    "last_name": "So",
    "address_line1": "Level 14, Five Pacific Place",
    "region": "Wan Chai",
    "country": "HK",
}


def _add(state, name="Phone Case Black", price=100, kind="physical", times=1):
    store = CartStore(state)
    for _ in range(times):
        store.add(CartItem(id=name.lower().replace(" ", "-"), name=name, unit_price_canonical=price,
                           display_price=price, display_currency="HKD", kind=kind))
    return store


def _ready_to_pay(state, carrier="express"):
    service.dispatch(state, CHOOSE_CARRIER, ADDRESS)
    service.dispatch(state, SELECT_CARRIER, carrier)
    service.dispatch(state, CONTINUE)


def test_totals_include_carrier_fee_for_physical_items(state):
    _add(state, times=2)
    _ready_to_pay(state)

    totals = service.totals(state)
    assert totals["subtotal"] == 200
    assert totals["shipping_fee"] == 50
    assert totals["total"] == 250
    assert totals["formatted"]["total"] == "HKD 250.00"
    assert totals["carrier"]["code"] == "express"


def test_digital_only_cart_has_no_shipping(state):
    _add(state, "Gift Card", 500, kind="digital")
    service.dispatch(state, SELECT_CARRIER, "express")

    flow = service.load_flow(state)
    assert flow.digital_only is True
    assert flow.payment == EXPANDED
    assert service.totals(state)["shipping_fee"] == 0


def test_flow_restarts_when_cart_kind_changes(state):
    _add(state, "Gift Card", 500, kind="digital")
    assert service.load_flow(state).shipping == HIDDEN

    _add(state)
    flow = service.load_flow(state)
    assert flow.digital_only is False
    assert flow.shipping == EXPANDED


def test_invalid_action_leaves_stored_flow_untouched(state):
    _add(state)
    service.dispatch(state, CHOOSE_CARRIER, ADDRESS)
    with pytest.raises(ValidationError):
        service.dispatch(state, SELECT_CARRIER, "drone")
    assert service.load_flow(state).carrier_code == "regular"


def test_shipping_form_is_prefilled_after_login(state):
    login(state, "ken", "secret")
    assert service.prefill_form(state)["first_name"] == "Ken"
    assert service.prefill_form(state)["address_line2"] == "28 Hennessy Road"

    _add(state)
    assert service.load_flow(state).address.region == "Wan Chai"


def test_prepare_handoff_requires_completed_steps(state):
    with pytest.raises(ValidationError) as exc:
        service.prepare_handoff(state)
    assert exc.value.code == "empty_cart"

    _add(state)
    with pytest.raises(ValidationError) as exc:
        service.prepare_handoff(state)
    assert exc.value.code == "checkout_incomplete"


def test_prepare_handoff_stores_payload(state):
    login(state, "ken", "secret")
    _add(state, times=2)
    _ready_to_pay(state)

    payload = service.prepare_handoff(state)

    assert payload.amount == 25000
    assert payload.country == "HK"
    assert payload.customer.email == "ken.so@checkout.com"
    assert [p.reference for p in payload.products] == ["phone-case-black", "SHIPPING"]
    assert load_payload(state) == payload


def test_prepare_handoff_without_profile_reports_customer_fields(state):
    _add(state)
    _ready_to_pay(state)
    with pytest.raises(ValidationError) as exc:
        service.prepare_handoff(state)
    assert exc.value.code == "invalid_customer"
    assert "email" in exc.value.fields


@pytest.mark.asyncio
async def test_pay_rejects_invalid_card(state, fake_checkout):
    _add(state)
    _ready_to_pay(state)
    with pytest.raises(ValidationError) as exc:
        await service.pay(state, card_number="4111111111111112", expiry="01/20", cvv="1",
                          cardholder_name="Ken So")
    assert set(exc.value.fields) == {"card_number", "expiry", "cvv"}
    assert fake_checkout.bodies("create_payment") == []


@pytest.mark.asyncio
async def test_pay_sends_order_and_clears_cart(state, fake_checkout):
    _add(state, times=2)
    _ready_to_pay(state)

    result = await service.pay(state, card_number="4242 4242 4242 4242", expiry="12/30", cvv="123",
                               cardholder_name="Ken So", email="ken@example.com")

    assert result["approved"] is True
    assert result["requires_3ds"] is False
    [body] = fake_checkout.bodies("create_payment")
    assert body["amount"] == 25000
    assert body["currency"] == "HKD"
    assert body["reference"].startswith("ORDER-")
    assert body["source"]["number"] == "4242424242424242"
    assert body["items"][-1] == {"name": "Shipping", "quantity": 1, "unit_price": 5000, "reference": "SHIPPING"}
    assert body["shipping"]["address"]["city"] == "Wan Chai"
    assert body["customer"]["email"] == "ken@example.com"
    assert body["3ds"]["enabled"] is True
    assert CartStore(state).items == []


@pytest.mark.asyncio
async def test_pay_with_3ds_keeps_cart_until_return(state, fake_checkout):
    _add(state)
    _ready_to_pay(state, carrier="regular")
    fake_checkout.payment = {"id": "pay_3ds", "status": "Pending", "approved": False,
                             "_links": {"redirect": {"href": "https://3ds.example/challenge"}}}

    result = await service.pay(state, card_number="4242424242424242", expiry="12/30", cvv="123",
                               cardholder_name="Ken So")

    assert result["requires_3ds"] is True
    assert result["redirect"] == "https://3ds.example/challenge"
    assert fake_checkout.bodies("create_payment")[0]["customer"]["email"] == service.DEFAULT_EMAIL
    assert len(CartStore(state).items) == 1

    service.complete(state)
    assert CartStore(state).items == []
