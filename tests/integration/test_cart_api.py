from fastapi.testclient import TestClient

from boutique.config import VISITOR_COOKIE_NAME

CASE = {"name": "Phone Case Black", "price_hkd": 100, "image": "/public/img/case-black.png"}
GIFT = {"name": "Gift Card", "price_hkd": 500, "kind": "digital", "design": "birthday",
        "recipient_name": "Amy", "sender_name": "Ken", "message": "Joyeux anniversaire"}


def test_add_item_sets_visitor_cookie_and_merges(client):
    r = client.post("/api/v1/cart/items", json=CASE)
    assert r.status_code == 200
    assert VISITOR_COOKIE_NAME in r.cookies
    assert r.json()["item"]["id"] == "phone-case-black"

    r = client.post("/api/v1/cart/items", json=CASE)
    cart = r.json()["cart"]
    assert len(cart["items"]) == 1
    assert cart["count"] == 2
    assert cart["formatted_total"] == "HKD 200.00"


def test_cart_is_per_visitor(app, client):
    client.post("/api/v1/cart/items", json=CASE)
    with TestClient(app) as other:
        assert other.get("/api/v1/cart").json()["items"] == []


def test_quantity_change_and_removal(client):
    client.post("/api/v1/cart/items", json=CASE)
    client.post("/api/v1/cart/items", json={"name": "Screen Protector", "price_hkd": 80})

    r = client.patch("/api/v1/cart/items/1", json={"delta": 2})
    assert r.json()["item"]["quantity"] == 3

    r = client.patch("/api/v1/cart/items/0", json={"delta": -1})
    assert r.json()["item"] is None
    assert [it["name"] for it in r.json()["cart"]["items"]] == ["Screen Protector"]

    r = client.delete("/api/v1/cart/items/5")
    assert r.json()["removed"] is False

    assert client.delete("/api/v1/cart").json()["items"] == []


def test_gift_cards_keep_metadata_on_separate_lines(client):
    client.post("/api/v1/cart/items", json=GIFT)
    r = client.post("/api/v1/cart/items", json=GIFT)
    cart = r.json()["cart"]
    assert len(cart["items"]) == 2
    assert cart["digital_only"] is True
    assert cart["items"][0]["digital_meta"]["recipient_name"] == "Amy"


def test_currency_switch_reprices_cart(client):
    client.post("/api/v1/cart/items", json=CASE)
    client.post("/api/v1/cart/items", json=CASE)

    r = client.put("/api/v1/fx/currency", json={"currency": "usd"})
    assert r.status_code == 200
    cart = r.json()["cart"]
    assert cart["currency"] == "USD"
    assert cart["items"][0]["display_price"] == 12.8
    assert cart["formatted_total"] == "USD 25.60"

    # les nouveaux articles sont prix dans la devise choisie
    r = client.post("/api/v1/cart/items", json={"name": "Leather Case", "price_hkd": 300})
    assert r.json()["item"]["display_currency"] == "USD"
    assert r.json()["item"]["display_price"] == 38.4


def test_unsupported_currency_is_rejected(client):
    r = client.put("/api/v1/fx/currency", json={"currency": "XYZ"})
    assert r.status_code == 400
    assert r.json()["code"] == "unsupported_currency"
    assert client.get("/api/v1/fx/currency").json() == {"currency": "HKD"}


def test_return_from_checkout_reopens_cart_once(client):
    r = client.post("/api/v1/cart/checkout", json={"page": "/iphone-cases.html"})
    assert r.json() == {"redirect": "/checkout.html"}

    assert client.get("/api/v1/cart/return").json() == {"page": "/iphone-cases.html", "show_cart": True}
    assert client.get("/api/v1/cart/return").json()["show_cart"] is False


def test_cart_responses_are_not_cached(client):
    r = client.get("/api/v1/cart")
    assert r.headers["Cache-Control"].startswith("no-store")


def test_invalid_item_is_rejected(client):
    assert client.post("/api/v1/cart/items", json={"name": "", "price_hkd": -1}).status_code == 422
