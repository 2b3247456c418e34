import os

# Avant tout import de l'app: pas d'init Redis pour le rate limiting, stockage en mémoire,
# pas d'attente de debounce sur la recherche BIN
os.environ["DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS"] = "1"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["PROBE_DEBOUNCE_MS"] = "0"

import pytest
from typing import Any, Dict, Generator, List, Tuple
from fastapi.testclient import TestClient

from boutique.app import app as fastapi_app
from boutique.fx import service as fx
from boutique.payments import checkout_client
from boutique.storage.backends import MemoryBackend, set_backend
from boutique.storage.state import VisitorState

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "tests/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

# Stockage visiteur neuf pour chaque test
@pytest.fixture(autouse=True)
def memory_backend() -> Generator[MemoryBackend, None, None]:
    backend = MemoryBackend()
    set_backend(backend)
    yield backend
    set_backend(None)

@pytest.fixture
def state(memory_backend) -> VisitorState:
    return VisitorState("visitor-test", backend=memory_backend)

# Taux FX figés (pas d'appel réseau)
@pytest.fixture(autouse=True)
def fixed_rates(monkeypatch) -> Dict[str, float]:
    rates = dict(fx.FALLBACK_RATES)
    monkeypatch.setattr(fx, "fetch_rates", lambda timeout=10.0: dict(rates))

    async def fetch_rates_async(timeout=10.0, transport=None):
        return dict(rates)

    monkeypatch.setattr(fx, "fetch_rates_async", fetch_rates_async)
    fx.reset_rates_cache()
    yield rates
    fx.reset_rates_cache()


class FakeCheckout:
    """Remplace les appels Checkout.com; chaque appel est enregistré dans `calls`."""

    def __init__(self):
        self.calls: List[Tuple[str, Any]] = []
        self.errors: Dict[str, Exception] = {}
        self.metadata = {
            "bin": "41111111",
            "scheme": "visa",
            "card_type": "credit",
            "issuer": "LLOYDS BANK PLC",
            "issuer_country": "GB",
        }
        self.link = {"id": "pl_123", "_links": {"redirect": {"href": "https://pay.sandbox.checkout.com/page/pl_123"}}}
        self.session = {"id": "ps_123", "payment_session_token": "pst_abc", "payment_session_secret": "pss_abc"}
        self.payment = {"id": "pay_123", "status": "Authorized", "approved": True}
        self.details = {"id": "pay_123", "customer": {"id": "cus_123"}, "source": {"id": "src_123"}}
        self.token = {"token": "tok_123", "scheme": "Visa", "last4": "1111", "expiry_month": 12, "expiry_year": 2030}
        self.customer = None

    def _record(self, name: str, payload: Any):
        self.calls.append((name, payload))
        if name in self.errors:
            raise self.errors[name]

    def bodies(self, name: str) -> List[Any]:
        return [payload for n, payload in self.calls if n == name]

    async def create_payment_link(self, body):
        self._record("create_payment_link", body)
        return self.link

    async def create_payment_session(self, body):
        self._record("create_payment_session", body)
        return self.session

    async def create_payment(self, body):
        self._record("create_payment", body)
        return self.payment

    async def get_payment_details(self, payment_id):
        self._record("get_payment_details", payment_id)
        return self.details

    async def card_metadata(self, number, source_type="card", reference=None):
        self._record("card_metadata", {"number": number, "source_type": source_type, "reference": reference})
        return self.metadata

    async def tokenize_card(self, number, expiry_month, expiry_year, cvv, name=None):
        self._record("tokenize_card", {"number": number, "expiry_month": expiry_month,
                                       "expiry_year": expiry_year, "cvv": cvv, "name": name})
        return self.token

    async def get_customer(self, identifier):
        self._record("get_customer", identifier)
        return self.customer


@pytest.fixture
def fake_checkout(monkeypatch) -> FakeCheckout:
    fake = FakeCheckout()
    for name in ("create_payment_link", "create_payment_session", "create_payment", "get_payment_details",
                 "card_metadata", "tokenize_card", "get_customer"):
        monkeypatch.setattr(checkout_client, name, getattr(fake, name))
    return fake
