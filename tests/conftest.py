import os

# Désactive l'init fastapi-limiter (évite toute connexion Redis pendant les tests)
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import pytest
from typing import Any, Dict, Generator, List, Optional, Tuple
from fastapi.testclient import TestClient

from backend.asgi import app as fastapi_app
from backend.payments.provider import PaymentProviderError
from backend.payments.stripe_client import get_payment_provider
from backend.utils.csrf import CSRF_HEADER_NAME
from backend.utils.security import require_admin, require_user

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


class FakeProvider:
    """
    PaymentProvider en mémoire qui enregistre chaque appel.
    - sessions / intents: réponses par id
    - listed: résultat de list_intents (ordre conservé)
    - fail: nom de méthode -> PaymentProviderError à lever
    """

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.session: Dict[str, Any] = {"id": "cs_test_123", "url": "https://checkout.stripe.test/c/pay/cs_test_123"}
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.intents: Dict[str, Dict[str, Any]] = {}
        self.listed: List[Dict[str, Any]] = []
        self.refund: Dict[str, Any] = {"id": "re_test_1", "status": "succeeded"}
        self.fail: Dict[str, PaymentProviderError] = {}

    def _record(self, name: str, **kwargs: Any) -> None:
        self.calls.append((name, kwargs))
        if name in self.fail:
            raise self.fail[name]

    def count(self, name: Optional[str] = None) -> int:
        return len([c for c in self.calls if name is None or c[0] == name])

    def last(self, name: str) -> Dict[str, Any]:
        return [kw for n, kw in self.calls if n == name][-1]

    def create_session(self, **params: Any) -> Dict[str, Any]:
        self._record("create_session", **params)
        return dict(self.session)

    def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        self._record("retrieve_session", session_id=session_id)
        if session_id not in self.sessions:
            raise PaymentProviderError(f"No such checkout.session: '{session_id}'", {"code": "resource_missing"})
        return self.sessions[session_id]

    def retrieve_intent(self, intent_id: str) -> Dict[str, Any]:
        self._record("retrieve_intent", intent_id=intent_id)
        if intent_id not in self.intents:
            raise PaymentProviderError(f"No such payment_intent: '{intent_id}'", {"code": "resource_missing"})
        return self.intents[intent_id]

    def list_intents(self, *, created_gte: int, created_lte: int, limit: int = 100) -> List[Dict[str, Any]]:
        self._record("list_intents", created_gte=created_gte, created_lte=created_lte, limit=limit)
        return list(self.listed)

    def create_refund(self, *, payment_intent: str, amount: int, reason: str, metadata: Dict[str, str]) -> Dict[str, Any]:
        self._record("create_refund", payment_intent=payment_intent, amount=amount, reason=reason, metadata=metadata)
        # le fournisseur renvoie le montant soumis (centimes)
        return {**self.refund, "amount": amount, "payment_intent": payment_intent}


@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture(autouse=True)
def _clean_app_state(app, monkeypatch):
    # Pas de fallback mémoire ni de compteurs résiduels d'un test à l'autre
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    if hasattr(app.state, "_rl_store"):
        del app.state._rl_store
    yield
    app.dependency_overrides.clear()

@pytest.fixture
def fake_provider(app) -> FakeProvider:
    """Fournisseur simulé, aussi injecté dans l'app via dependency_overrides."""
    provider = FakeProvider()
    app.dependency_overrides[get_payment_provider] = lambda: provider
    return provider

@pytest.fixture
def csrf_headers(client) -> Dict[str, str]:
    token = client.get("/api/csrf-token").json()["token"]
    return {CSRF_HEADER_NAME: token}

@pytest.fixture
def customer(app) -> Dict[str, Any]:
    user = {"id": "user-1", "email": "customer@example.com", "role": "user", "metadata": {}, "token": "fake-token"}
    app.dependency_overrides[require_user] = lambda: user
    return user

@pytest.fixture
def admin(app) -> Dict[str, Any]:
    user = {"id": "admin-1", "email": "admin@example.com", "role": "admin", "metadata": {"role": "admin"}, "token": "fake-token"}
    app.dependency_overrides[require_admin] = lambda: user
    app.dependency_overrides[require_user] = lambda: user
    return user

@pytest.fixture
def order_store(monkeypatch) -> Dict[str, Dict[str, Any]]:
    """Remplace le repository Supabase des commandes par un dict {id: row}."""
    store: Dict[str, Dict[str, Any]] = {}

    def _get(order_id):
        row = store.get(order_id)
        return dict(row) if row else None

    def _update(order_id, fields):
        if order_id not in store:
            return None
        store[order_id] = {**store[order_id], **fields, "updated_at": "2024-05-02T10:00:00+00:00"}
        return dict(store[order_id])

    def _by_refund_status(statuses, limit=100):
        rows = [dict(r) for r in store.values() if r.get("refund_status") in set(statuses)]
        rows.sort(key=lambda r: r.get("refund_requested_at") or "", reverse=True)
        return rows[:limit]

    def _user_orders(user_id, statuses, limit=100):
        wanted = set(statuses)
        rows = [dict(r) for r in store.values() if r.get("user_id") == user_id and r.get("status") in wanted]
        rows.sort(key=lambda r: r.get("created_at") or "", reverse=True)
        return rows[:limit]

    monkeypatch.setattr("backend.orders.repository.get_order", _get)
    monkeypatch.setattr("backend.orders.repository.update_order", _update)
    monkeypatch.setattr("backend.orders.repository.list_orders_by_refund_status", _by_refund_status)
    monkeypatch.setattr("backend.orders.repository.list_user_orders", _user_orders)
    return store

def make_order(**overrides: Any) -> Dict[str, Any]:
    row = {
        "id": "order-1",
        "user_id": "user-1",
        "user_email": "customer@example.com",
        "title": "Lavender Bath Salts",
        "amount_cents": 4999,
        "status": "paid",
        "payment_status": "completed",
        "is_store_order": True,
        "payment_intent_id": None,
        "refund_status": None,
        "refund_amount_cents": None,
        "refund_reason": None,
        "refund_id": None,
        "created_at": "2024-05-01T12:00:00+00:00",
        "updated_at": "2024-05-01T12:00:00+00:00",
    }
    row.update(overrides)
    return row

@pytest.fixture
def order_factory():
    return make_order
