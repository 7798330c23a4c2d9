from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from pos.errors import NotFound
from pos.models.core import MenuCategory, MenuItem


def active_items(db: Session, outlet_id: str, item_ids: Iterable[str]) -> dict[str, MenuItem]:
    """Items usable on a new order: present, active and owned by the outlet."""
    ids = set(item_ids)
    if not ids:
        return {}
    rows = db.scalars(
        select(MenuItem).where(
            MenuItem.id.in_(ids),
            MenuItem.outlet_id == outlet_id,
            MenuItem.is_active.is_(True),
        )
    ).all()
    return {m.id: m for m in rows}


def list_items(db: Session, outlet_id: str, category_id: str | None = None,
               include_inactive: bool = False) -> list[MenuItem]:
    q = select(MenuItem).where(MenuItem.outlet_id == outlet_id)
    if not include_inactive:
        q = q.where(MenuItem.is_active.is_(True))
    if category_id:
        q = q.where(MenuItem.category_id == category_id)
    return list(db.scalars(q.order_by(MenuItem.created_at.desc())).all())


def get_item(db: Session, outlet_id: str, item_id: str) -> MenuItem:
    it = db.scalars(
        select(MenuItem).where(MenuItem.id == item_id, MenuItem.outlet_id == outlet_id)
    ).first()
    if not it:
        raise NotFound("Menu item not found", item_id=item_id)
    return it


def get_category(db: Session, outlet_id: str, category_id: str) -> MenuCategory:
    c = db.scalars(
        select(MenuCategory).where(MenuCategory.id == category_id, MenuCategory.outlet_id == outlet_id)
    ).first()
    if not c:
        raise NotFound("Category not found", category_id=category_id)
    return c


def list_categories(db: Session, outlet_id: str) -> list[MenuCategory]:
    q = (
        select(MenuCategory)
        .where(MenuCategory.outlet_id == outlet_id, MenuCategory.is_active.is_(True))
        .order_by(MenuCategory.display_order.asc(), MenuCategory.name.asc())
    )
    return list(db.scalars(q).all())
