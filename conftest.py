# conftest.py
import os
import tempfile
from decimal import Decimal

import pytest

# settings are read at import time, so point them at a scratch database first
_TMP = tempfile.mkdtemp(prefix="pos-test-")
os.environ.setdefault("APP_SECRET", "test-secret-not-for-prod")
os.environ["DB_URL"] = f"sqlite:///{os.path.join(_TMP, 'pos.db')}"
os.environ.setdefault("APP_ENV", "dev")
os.environ["TZ"] = "UTC"
os.environ.pop("KITCHEN_WEBHOOK_URL", None)

from fastapi.testclient import TestClient  # noqa: E402

from pos.db import Base, SessionLocal, engine  # noqa: E402
from pos import models  # noqa: E402,F401
from pos.models.core import MenuCategory, MenuItem, Outlet, User  # noqa: E402
from pos.principal import Principal  # noqa: E402
from pos.rbac import Role  # noqa: E402
from pos.services.events import Emitter  # noqa: E402
from pos.util.security import hash_pw  # noqa: E402

PASSWORD = "password123"


class RecordingEmitter(Emitter):
    def __init__(self):
        self.events = []

    def emit(self, event):
        self.events.append(event)


class BrokenEmitter(Emitter):
    def emit(self, event):
        raise RuntimeError("kitchen display offline")


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


def _outlet(db, name, prefix):
    o = Outlet(name=name)
    db.add(o)
    db.flush()
    users = {}
    for role in Role:
        u = User(outlet_id=o.id, name=f"{prefix} {role.value}", email=f"{role.value}@{prefix}.test",
                 pass_hash=hash_pw(PASSWORD), role=role)
        db.add(u)
        db.flush()
        users[role] = u
    cat = MenuCategory(outlet_id=o.id, name="Mains")
    db.add(cat)
    db.flush()
    return o, users, cat


@pytest.fixture
def seed(db):
    """Two outlets; outlet A has Burger $12, Fries $4 and an inactive Soup; outlet B has Pizza."""
    a, a_users, a_cat = _outlet(db, "Outlet A", "a")
    b, b_users, b_cat = _outlet(db, "Outlet B", "b")
    burger = MenuItem(outlet_id=a.id, category_id=a_cat.id, name="Burger", price=Decimal("12.00"))
    fries = MenuItem(outlet_id=a.id, category_id=a_cat.id, name="Fries", price=Decimal("4.00"), modifier_groups=[
        {"name": "Dips", "min_selection": 0, "max_selection": 2,
         "modifiers": [{"name": "Cheese", "price": "1.00", "is_required": False}]},
    ])
    soup = MenuItem(outlet_id=a.id, category_id=a_cat.id, name="Soup", price=Decimal("6.00"), is_active=False)
    pizza = MenuItem(outlet_id=b.id, category_id=b_cat.id, name="Pizza", price=Decimal("12.00"))
    db.add_all([burger, fries, soup, pizza])
    db.commit()
    return {
        "outlet_a": a.id,
        "outlet_b": b.id,
        "users_a": {r: u.id for r, u in a_users.items()},
        "users_b": {r: u.id for r, u in b_users.items()},
        "burger": burger.id,
        "fries": fries.id,
        "soup": soup.id,
        "pizza": pizza.id,
    }


def principal_for(seed, role, outlet="a"):
    users = seed["users_a"] if outlet == "a" else seed["users_b"]
    return Principal(id=users[role], role=role, outlet_id=seed[f"outlet_{outlet}"])


@pytest.fixture
def waiter(seed):
    return principal_for(seed, Role.WAITER)


@pytest.fixture
def cashier(seed):
    return principal_for(seed, Role.CASHIER)


@pytest.fixture
def admin(seed):
    return principal_for(seed, Role.ADMIN)


@pytest.fixture
def other_admin(seed):
    return principal_for(seed, Role.ADMIN, outlet="b")


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def client(seed):
    from pos.main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture
def login(client):
    def _login(email, password=PASSWORD):
        r = client.post("/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, f"/auth/login failed: {r.text}"
        return {"Authorization": f"Bearer {r.json()['access_token']}"}
    return _login
