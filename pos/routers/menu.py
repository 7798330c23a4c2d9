import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pos.db import get_db
from pos.deps import require_perm
from pos.errors import Conflict
from pos.models.core import MenuCategory, MenuItem
from pos.principal import Principal
from pos.rbac import Perm
from pos.schemas.menu import MenuCategoryIn, MenuCategoryOut, MenuItemIn, MenuItemOut, MenuItemUpdate
from pos.services import catalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/menu", tags=["menu"])


# ---------- CATEGORIES ----------

@router.get("/categories", response_model=List[MenuCategoryOut])
def list_categories(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.MENU_VIEW)),
):
    return catalog.list_categories(db, principal.outlet_id)


@router.post("/categories", response_model=MenuCategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(
    body: MenuCategoryIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.MENU_CREATE)),
):
    c = MenuCategory(**body.model_dump(), outlet_id=principal.outlet_id)
    db.add(c)
    db.commit()
    return c


# ---------- ITEMS ----------

@router.get("/", response_model=List[MenuItemOut])
def list_items(
    category_id: Optional[str] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.MENU_VIEW)),
):
    return catalog.list_items(db, principal.outlet_id, category_id, include_inactive)


@router.get("/{item_id}", response_model=MenuItemOut)
def get_item(
    item_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.MENU_VIEW)),
):
    return catalog.get_item(db, principal.outlet_id, item_id)


@router.post("/", response_model=MenuItemOut, status_code=status.HTTP_201_CREATED)
def create_item(
    body: MenuItemIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.MENU_CREATE)),
):
    catalog.get_category(db, principal.outlet_id, body.category_id)
    data = body.model_dump(mode="json")
    it = MenuItem(**{**data, "price": body.price}, outlet_id=principal.outlet_id)
    db.add(it)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("SKU already exists")
    logger.info("menu item %s created in outlet %s", it.id, principal.outlet_id)
    return it


@router.patch("/{item_id}", response_model=MenuItemOut)
def update_item(
    item_id: str,
    body: MenuItemUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.MENU_UPDATE)),
):
    # price edits only affect future orders; order lines keep their snapshot
    it = catalog.get_item(db, principal.outlet_id, item_id)
    changes = body.model_dump(exclude_unset=True, mode="json")
    if "category_id" in changes:
        catalog.get_category(db, principal.outlet_id, changes["category_id"])
    if "price" in changes:
        changes["price"] = body.price
    for k, v in changes.items():
        setattr(it, k, v)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("SKU already exists")
    return it


@router.delete("/{item_id}")
def deactivate_item(
    item_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.MENU_DELETE)),
):
    it = catalog.get_item(db, principal.outlet_id, item_id)
    it.is_active = False
    db.commit()
    return {"ok": True, "id": it.id}
