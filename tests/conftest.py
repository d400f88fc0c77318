import os
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Generator, Optional

import pytest
from fastapi.testclient import TestClient

# Pas de Redis en tests (avant l'import de l'app)
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
os.environ.setdefault("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver")

from storefront.app_setup.factory import create_app
from storefront.coupons.repository import CouponCodeCollision
from storefront.utils.security import require_user

TEST_USER_ID = "user-1"

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/"):
            item.add_marker(pytest.mark.integration)


def future(days: int = 10) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def past(days: int = 1) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


class FakeCouponStore:
    """Table `coupons` en mémoire (un coupon par utilisateur, codes uniques)."""

    def __init__(self):
        self.by_owner: Dict[str, Dict[str, Any]] = {}
        self.deactivations = []
        self._lock = threading.Lock()

    def add(self, code: str, user_id: str = TEST_USER_ID, discount_percentage: int = 10,
            is_active: bool = True, expiration_date: Optional[str] = None) -> Dict[str, Any]:
        row = {
            "id": str(uuid.uuid4()),
            "code": code,
            "user_id": user_id,
            "discount_percentage": discount_percentage,
            "is_active": is_active,
            "expiration_date": expiration_date or future(),
        }
        self.by_owner[user_id] = row
        return row

    def find_active(self, code, user_id):
        row = self.by_owner.get(user_id)
        if row and row["code"] == code and row["is_active"]:
            return dict(row)
        return None

    def get_for_owner(self, user_id):
        row = self.by_owner.get(user_id)
        return dict(row) if row and row["is_active"] else None

    def deactivate(self, code, user_id):
        with self._lock:
            self.deactivations.append((code, user_id))
            row = self.by_owner.get(user_id)
            if row and row["code"] == code and row["is_active"]:
                row["is_active"] = False
                return True
            return False

    def replace_for_owner(self, user_id, coupon):
        with self._lock:
            if any(r["code"] == coupon["code"] and owner != user_id for owner, r in self.by_owner.items()):
                raise CouponCodeCollision(coupon["code"])
            row = {**coupon, "id": str(uuid.uuid4()), "user_id": user_id}
            self.by_owner[user_id] = row
            return dict(row)

    def active_for(self, user_id):
        return [r for owner, r in self.by_owner.items() if owner == user_id and r["is_active"]]


class FakeOrderStore:
    """Table `orders` en mémoire avec contrainte UNIQUE sur stripe_session_id."""

    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.fail_inserts = False
        self._lock = threading.Lock()

    def find_by_session_id(self, session_id):
        row = self.rows.get(session_id)
        return dict(row) if row else None

    def insert_if_absent(self, order):
        if self.fail_inserts:
            raise RuntimeError("database unavailable")
        with self._lock:
            existing = self.rows.get(order["stripe_session_id"])
            if existing:
                return False, dict(existing)
            row = {**order, "id": str(uuid.uuid4()), "created_at": datetime.now(timezone.utc).isoformat()}
            self.rows[order["stripe_session_id"]] = row
            return True, dict(row)

    def list_for_user(self, user_id, limit=50):
        return [dict(r) for r in self.rows.values() if r["user_id"] == user_id][:limit]


class FakeProcessor:
    """Stripe simulé: sessions en mémoire, metadata restituées à l'identique."""

    def __init__(self):
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.discounts = []
        self.created = []

    def require_stripe(self):
        return None

    def create_discount(self, percent_off):
        self.discounts.append(percent_off)
        return f"coupon_{len(self.discounts)}"

    def create_session(self, *, line_items, success_url, cancel_url, metadata, discounts=None, mode="payment"):
        session_id = f"cs_test_{len(self.sessions) + 1}"
        session = {
            "id": session_id,
            "url": f"https://checkout.stripe.test/{session_id}",
            "payment_status": "unpaid",
            "amount_total": int(metadata["total_amount_minor"]),
            "metadata": dict(metadata),
            "line_items": line_items,
            "discounts": discounts or [],
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        self.sessions[session_id] = session
        self.created.append(session)
        return {"id": session_id, "url": session["url"]}

    def get_session(self, session_id):
        return dict(self.sessions[session_id])

    def mark_paid(self, session_id, amount_total: Optional[int] = None):
        self.sessions[session_id]["payment_status"] = "paid"
        if amount_total is not None:
            self.sessions[session_id]["amount_total"] = amount_total


@pytest.fixture
def coupon_store(monkeypatch) -> FakeCouponStore:
    store = FakeCouponStore()
    for name in ("find_active", "get_for_owner", "deactivate", "replace_for_owner"):
        monkeypatch.setattr(f"storefront.coupons.repository.{name}", getattr(store, name))
    return store


@pytest.fixture
def order_store(monkeypatch) -> FakeOrderStore:
    store = FakeOrderStore()
    for name in ("find_by_session_id", "insert_if_absent", "list_for_user"):
        monkeypatch.setattr(f"storefront.orders.repository.{name}", getattr(store, name))
    # orders.service importe list_for_user directement
    monkeypatch.setattr("storefront.orders.service.list_for_user", store.list_for_user)
    return store


@pytest.fixture
def processor(monkeypatch) -> FakeProcessor:
    fake = FakeProcessor()
    for name in ("require_stripe", "create_discount", "create_session", "get_session"):
        monkeypatch.setattr(f"storefront.payments.stripe_client.{name}", getattr(fake, name))
    return fake


@pytest.fixture(scope="session")
def app():
    return create_app()


@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    fake_user = {"id": TEST_USER_ID, "email": "test@example.com", "role": "user"}
    app.dependency_overrides[require_user] = lambda: fake_user
    try:
        yield fake_user
    finally:
        app.dependency_overrides.pop(require_user, None)
