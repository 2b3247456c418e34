def test_login_flow(client):
    assert client.get("/api/v1/account").json() == {"logged_in": False, "profile": None}

    r = client.post("/api/v1/account/login", json={"username": "", "password": "x"})
    assert r.status_code == 400
    assert r.json()["fields"] == {"username": "Champ requis"}

    r = client.post("/api/v1/account/login", json={"username": "ken", "password": "x"})
    assert r.json()["profile"]["addressLine1"] == "Level 14, Five Pacific Place"
    assert client.get("/api/v1/account").json()["logged_in"] is True

    assert client.post("/api/v1/account/logout").json() == {"logged_in": False, "profile": None}
    assert client.get("/api/v1/account").json()["profile"] is None


def test_login_prefills_checkout(client):
    client.post("/api/v1/account/login", json={"username": "ken", "password": "x"})
    client.post("/api/v1/cart/items", json={"name": "Phone Case Black", "price_hkd": 100})
    body = client.get("/api/v1/checkout").json()
    assert body["prefill"]["first_name"] == "Ken"
    assert body["flow"]["address"]["country"] == "HK"


def test_health_endpoints(client):
    assert client.get("/health").json() == {"ok": True}

    storage = client.get("/health/storage")
    assert storage.status_code == 200
    assert storage.json()["backend"] == "memory"
    assert storage.json()["ok"] is True

    fx = client.get("/health/fx").json()
    assert fx["source"] == "api.exchangerate-api.com"
    assert fx["fallback"] is True
    assert fx["currencies"] == 7

    assert client.get("/health/rate-limit").json()["enabled"] is False


def test_home_page_and_favicon(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "text/html" in r.headers["content-type"]
    assert client.get("/favicon.ico").status_code == 204


def test_security_headers(client):
    r = client.get("/health")
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert "https://checkout-web-components.checkout.com" in r.headers["Content-Security-Policy"]


def test_forwarded_http_is_redirected_to_https(client):
    r = client.get("/health", headers={"x-forwarded-proto": "http"}, follow_redirects=False)
    assert r.status_code == 301
    assert r.headers["location"].startswith("https://")
