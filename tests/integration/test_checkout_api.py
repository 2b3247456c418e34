from boutique.errors import HandoffError

ADDRESS = {
    "first_name": "Ken",
    "last_name": "So",
    "address_line1": "Level 14, Five Pacific Place",
    "address_line2": "28 Hennessy Road",
    "region": "Wan Chai",
    "country": "HK",
}
CUSTOMER = {"name": "Ken So", "email": "ken.so@checkout.com", "phone_country_code": "+852",
            "phone_number": "64416246"}
CARD = {"card_number": "4242 4242 4242 4242", "expiry": "12/30", "cvv": "123", "cardholder_name": "Ken So"}


def _fill_cart(client, times=2):
    for _ in range(times):
        client.post("/api/v1/cart/items", json={"name": "Phone Case Black", "price_hkd": 100})


def _complete_steps(client, carrier="express"):
    client.post("/api/v1/checkout/shipping", json=ADDRESS)
    client.put("/api/v1/checkout/carrier", json={"carrier": carrier})
    return client.post("/api/v1/checkout/continue").json()


def test_checkout_starts_on_shipping(client):
    _fill_cart(client)
    body = client.get("/api/v1/checkout").json()
    assert body["flow"]["shipping"] == "expanded"
    assert body["flow"]["carrier"] == "hidden"
    assert [c["code"] for c in body["carriers"]] == ["regular", "express"]
    assert body["totals"]["total"] == 200


def test_missing_shipping_fields_are_reported(client):
    _fill_cart(client)
    r = client.post("/api/v1/checkout/shipping", json={**ADDRESS, "last_name": ""})
    assert r.status_code == 400
    assert r.json()["code"] == "invalid_shipping"
    assert r.json()["fields"] == {"last_name": "Champ requis"}
    assert client.get("/api/v1/checkout").json()["flow"]["shipping"] == "expanded"


def test_step_progression_and_totals(client):
    _fill_cart(client)
    r = client.post("/api/v1/checkout/shipping", json=ADDRESS)
    assert r.json()["flow"]["carrier"] == "expanded"

    r = client.put("/api/v1/checkout/carrier", json={"carrier": "express"})
    assert r.json()["totals"]["shipping_fee"] == 50
    assert r.json()["totals"]["formatted"]["total"] == "HKD 250.00"

    body = client.post("/api/v1/checkout/continue").json()
    assert body["flow"]["payment"] == "expanded"

    body = client.post("/api/v1/checkout/change-carrier").json()
    assert body["flow"]["carrier"] == "expanded"
    assert body["flow"]["payment"] == "hidden"

    body = client.post("/api/v1/checkout/change-shipping").json()
    assert body["flow"]["shipping"] == "expanded"
    assert body["flow"]["address"]["region"] == "Wan Chai"


def test_totals_in_other_currency(client):
    client.put("/api/v1/fx/currency", json={"currency": "USD"})
    _fill_cart(client, times=1)
    _complete_steps(client)
    totals = client.get("/api/v1/checkout/totals").json()
    assert totals["currency"] == "USD"
    assert totals["subtotal"] == 12.8
    assert totals["shipping_fee"] == 6.4
    assert totals["formatted"]["total"] == "USD 19.20"


def test_unknown_carrier(client):
    _fill_cart(client)
    client.post("/api/v1/checkout/shipping", json=ADDRESS)
    r = client.put("/api/v1/checkout/carrier", json={"carrier": "drone"})
    assert r.status_code == 400
    assert r.json()["code"] == "unknown_carrier"


def test_pay_before_steps_is_refused(client, fake_checkout):
    _fill_cart(client)
    r = client.post("/api/v1/checkout/pay", json=CARD)
    assert r.status_code == 400
    assert r.json()["code"] == "checkout_incomplete"
    assert fake_checkout.calls == []


def test_pay_approved_clears_cart(client, fake_checkout):
    _fill_cart(client)
    _complete_steps(client)

    r = client.post("/api/v1/checkout/pay", json=CARD)
    assert r.status_code == 200
    assert r.json() == {"payment_id": "pay_123", "status": "Authorized", "approved": True,
                        "redirect": "/success.html", "requires_3ds": False}
    assert fake_checkout.bodies("create_payment")[0]["amount"] == 25000
    assert client.get("/api/v1/cart").json()["items"] == []


def test_invalid_card_fields(client, fake_checkout):
    _fill_cart(client)
    _complete_steps(client)
    r = client.post("/api/v1/checkout/pay", json={**CARD, "cvv": "12"})
    assert r.status_code == 400
    assert r.json()["fields"] == {"cvv": "CVV invalide (3 ou 4 chiffres)"}


def test_processor_decline_is_a_bad_gateway(client, fake_checkout):
    _fill_cart(client)
    _complete_steps(client)
    fake_checkout.errors["create_payment"] = HandoffError("Payment failed", details={"error_type": "request_invalid"})

    r = client.post("/api/v1/checkout/pay", json=CARD)
    assert r.status_code == 502
    assert r.json() == {"detail": "Payment failed", "code": "handoff_failed",
                        "details": {"error_type": "request_invalid"}}
    assert len(client.get("/api/v1/cart").json()["items"]) == 1


def test_handoff_prepares_payload_then_redirects(client, fake_checkout):
    _fill_cart(client)
    _complete_steps(client)

    payload = client.post("/api/v1/checkout/handoff", json={"customer": CUSTOMER}).json()
    assert payload["amount"] == 25000
    assert payload["country"] == "HK"
    assert payload["products"][-1]["name"] == "Shipping"

    r = client.post("/api/v1/payments/handoff")
    assert r.json() == {"mode": "redirect", "redirect": "https://pay.sandbox.checkout.com/page/pl_123"}

    assert client.post("/api/v1/checkout/complete").json() == {"completed": True}
    assert client.get("/api/v1/cart").json()["items"] == []
    assert client.get("/api/v1/payments/payload").json() == {"payload": None}


def test_digital_cart_goes_straight_to_payment(client):
    client.post("/api/v1/cart/items", json={"name": "Gift Card", "price_hkd": 500, "kind": "digital"})
    body = client.get("/api/v1/checkout").json()
    assert body["flow"]["shipping"] == "hidden"
    assert body["flow"]["payment"] == "expanded"
    assert body["totals"]["shipping_fee"] == 0
