# pos/routers/users.py
import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from pos.db import get_db
from pos.deps import require_perm
from pos.errors import Conflict, Forbidden, NotFound, ValidationFailed
from pos.models.core import User
from pos.principal import Principal
from pos.rbac import Perm, Role, available_roles, has_minimum_role, permissions_for, role_level
from pos.schemas.users import ActiveUpdate, RoleInfo, RoleUpdate, UserIn, UserOut
from pos.util.security import hash_pw

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _get_user(db: Session, principal: Principal, user_id: str) -> User:
    u = db.get(User, user_id)
    if not u or u.outlet_id != principal.outlet_id:
        raise NotFound("User not found", user_id=user_id)
    return u


def _check_grant(principal: Principal, role: Role) -> None:
    # nobody hands out a role above their own
    if not has_minimum_role(principal.role, role):
        raise Forbidden([], role=principal.role.value)


# ── Users ───────────────────────────────────────────────────────────────────

@router.get("/", response_model=List[UserOut], summary="List staff of the caller's outlet")
def list_users(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.USERS_VIEW)),
):
    q = select(User).where(User.outlet_id == principal.outlet_id).order_by(User.created_at.desc())
    return db.scalars(q).all()


@router.post("/", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserIn,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.USERS_CREATE)),
):
    _check_grant(principal, Role(body.role))
    email = body.email.strip().lower()
    if db.scalars(select(User).where(User.email == email)).first():
        raise Conflict("Email already exists")
    u = User(
        outlet_id=principal.outlet_id,
        name=body.name,
        email=email,
        pass_hash=hash_pw(body.password),
        role=Role(body.role),
    )
    db.add(u)
    db.commit()
    logger.info("user %s (%s) created by %s", u.id, u.role.value, principal.id)
    return u


@router.put("/{user_id}/role", response_model=UserOut, summary="Change a user's role")
def update_role(
    user_id: str,
    body: RoleUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.USERS_UPDATE)),
):
    if user_id == principal.id:
        raise ValidationFailed.field("role", "You cannot change your own role")
    _check_grant(principal, Role(body.role))
    u = _get_user(db, principal, user_id)
    old = u.role
    u.role = Role(body.role)
    db.commit()
    logger.info("user %s role %s -> %s by %s", u.id, old.value, u.role.value, principal.id)
    return u


@router.put("/{user_id}/active", response_model=UserOut, summary="Activate or deactivate a user")
def set_active(
    user_id: str,
    body: ActiveUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_perm(Perm.USERS_UPDATE)),
):
    if user_id == principal.id and not body.active:
        raise ValidationFailed.field("active", "You cannot deactivate yourself")
    u = _get_user(db, principal, user_id)
    u.active = body.active
    db.commit()
    return u


# ── Roles & Permissions ─────────────────────────────────────────────────────

@router.get("/roles", response_model=List[RoleInfo], summary="Roles and their permissions")
def list_roles(principal: Principal = Depends(require_perm(Perm.USERS_VIEW))):
    return [
        RoleInfo(role=r, level=role_level(r), permissions=sorted(p.value for p in permissions_for(r)))
        for r in available_roles()
    ]
