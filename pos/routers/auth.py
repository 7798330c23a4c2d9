import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from pos.config import settings
from pos.db import get_db
from pos.deps import require_auth
from pos.errors import Conflict, Unauthorized
from pos.models.core import Outlet, User
from pos.principal import Principal
from pos.rbac import Role
from pos.schemas.common import Token
from pos.schemas.users import MeOut, SignupIn, UserOut
from pos.util.security import create_token, hash_pw, verify_pw

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

class LoginIn(BaseModel):
    email: str
    password: str

class SignupOut(Token):
    user: UserOut

def _token_for(user: User) -> Token:
    return Token(access_token=create_token(user.id, user.outlet_id), expires_in=settings.JWT_EXP_MIN * 60)

@router.post("/login", response_model=Token)
def login(body: LoginIn, db: Session = Depends(get_db)):
    user = db.scalars(select(User).where(User.email == body.email.strip().lower())).first()
    if not user or not verify_pw(user.pass_hash, body.password):
        logger.info("failed login for %s", body.email)
        raise Unauthorized("Invalid credentials")
    if not user.active:
        raise Unauthorized("Account is deactivated. Please contact support.")
    user.last_login_at = datetime.now(timezone.utc)
    db.commit()
    return _token_for(user)

@router.post("/signup", response_model=SignupOut, status_code=status.HTTP_201_CREATED)
def signup(body: SignupIn, db: Session = Depends(get_db)):
    """New business: creates its outlet and the owner as that outlet's admin, then logs the owner in."""
    email = body.email.strip().lower()
    if db.scalars(select(User).where(User.email == email)).first():
        raise Conflict("User with this email already exists")

    o = Outlet(name=body.business_name.strip(), phone=body.phone, business_type=body.business_type)
    db.add(o); db.flush()
    u = User(outlet_id=o.id, name=body.name.strip(), email=email, pass_hash=hash_pw(body.password),
             role=Role.ADMIN, active=True, last_login_at=datetime.now(timezone.utc))
    db.add(u)
    db.commit()
    logger.info("outlet %s signed up with owner %s", o.id, u.id)
    return SignupOut(**_token_for(u).model_dump(), user=UserOut.model_validate(u))

@router.get("/me", response_model=MeOut)
def me(principal: Principal = Depends(require_auth), db: Session = Depends(get_db)):
    user = db.get(User, principal.id)
    return MeOut(user=UserOut.model_validate(user), permissions=sorted(p.value for p in principal.permissions))

@router.post("/refresh", response_model=Token)
def refresh(principal: Principal = Depends(require_auth), db: Session = Depends(get_db)):
    return _token_for(db.get(User, principal.id))
