from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from pos.config import settings
from pos.db import get_db
from pos.errors import Forbidden
from pos.models.core import MenuCategory, MenuItem, Outlet, User
from pos.rbac import Role
from pos.util.security import hash_pw

router = APIRouter(prefix="/admin", tags=["admin"])

DEV_PASSWORD = "password123"

@router.post("/dev-bootstrap")
def dev_bootstrap(db: Session = Depends(get_db)):
    if settings.APP_ENV != "dev":
        raise Forbidden([])

    # Outlet
    o = db.scalars(select(Outlet)).first()
    if not o:
        o = Outlet(name="Demo Outlet", phone="1800123456", address="123 Food Street")
        db.add(o); db.flush()

    # One user per role, all in the demo outlet
    users = {}
    for role in Role:
        email = f"{role.value}@example.com"
        u = db.scalars(select(User).where(User.email == email)).first()
        if not u:
            u = User(outlet_id=o.id, name=role.value.title(), email=email,
                     pass_hash=hash_pw(DEV_PASSWORD), role=role, active=True)
            db.add(u); db.flush()
        users[role.value] = u

    # Menu
    cat = db.scalars(
        select(MenuCategory).where(MenuCategory.outlet_id == o.id, MenuCategory.name == "Mains")
    ).first()
    if not cat:
        cat = MenuCategory(outlet_id=o.id, name="Mains", display_order=1)
        db.add(cat); db.flush()

    seeds = [
        ("Burger", Decimal("10.00"), []),
        ("Fries", Decimal("4.00"), [{
            "name": "Dips", "min_selection": 0, "max_selection": 2,
            "modifiers": [
                {"name": "Cheese", "price": "1.00", "is_required": False},
                {"name": "Salsa", "price": "0.50", "is_required": False},
            ],
        }]),
    ]
    items = {}
    for name, price, groups in seeds:
        it = db.scalars(select(MenuItem).where(MenuItem.outlet_id == o.id, MenuItem.name == name)).first()
        if not it:
            it = MenuItem(outlet_id=o.id, category_id=cat.id, name=name, price=price, modifier_groups=groups)
            db.add(it); db.flush()
        items[name.lower()] = it.id

    db.commit()
    return {
        "outlet_id": o.id,
        "users": {k: {"id": u.id, "email": u.email} for k, u in users.items()},
        "password": DEV_PASSWORD,
        "category_id": cat.id,
        "items": items,
    }
