from fastapi import BackgroundTasks, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from sqlalchemy.orm import Session

from pos.db import get_db
from pos.errors import Forbidden, Unauthorized
from pos.models.core import User
from pos.principal import Principal
from pos.rbac import Mode, Perm, is_authorized
from pos.services.events import BackgroundEmitter, Emitter, default_emitter
from pos.util.security import decode_token

auth_scheme = HTTPBearer(auto_error=False)

def require_auth(creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
                 db: Session = Depends(get_db)) -> Principal:
    if not creds:
        raise Unauthorized("Access denied. No token provided.")
    try:
        data = decode_token(creds.credentials)
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired. Please login again.")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token.")

    user = db.get(User, data.get("sub"))
    if not user:
        raise Unauthorized("Token is not valid. User not found.")
    if not user.active:
        raise Unauthorized("Account is deactivated. Please contact support.")
    return Principal(id=user.id, role=user.role, outlet_id=user.outlet_id, is_active=user.active)

def require_perm(*perms: Perm, mode: Mode = Mode.ANY):
    def _dep(principal: Principal = Depends(require_auth)) -> Principal:
        if not is_authorized(principal.role, perms, mode):
            raise Forbidden(perms, role=principal.role.value)
        return principal
    return _dep

def get_emitter(tasks: BackgroundTasks) -> Emitter:
    return BackgroundEmitter(tasks, default_emitter())
