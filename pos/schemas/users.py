import re
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from pos.rbac import Role

RoleLiteral = Literal["waiter", "cashier", "admin"]
BusinessTypeLiteral = Literal["restaurant", "cafe", "food-truck", "catering", "bakery", "other"]

_PASSWORD_RULES = [
    (re.compile(r"[a-z]"), "one lowercase letter"),
    (re.compile(r"[A-Z]"), "one uppercase letter"),
    (re.compile(r"\d"), "one number"),
    (re.compile(r"[@$!%*?&]"), "one special character (@$!%*?&)"),
]

def check_password(p: str) -> str:
    missing = [label for rx, label in _PASSWORD_RULES if not rx.search(p)]
    if missing:
        raise ValueError("Password must contain at least " + ", ".join(missing))
    return p

class UserIn(BaseModel):
    name: str = Field(min_length=2, max_length=160)
    email: str = Field(max_length=160)
    password: str = Field(min_length=8)
    role: RoleLiteral = "waiter"

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password(v)

class SignupIn(BaseModel):
    name: str = Field(min_length=2, max_length=160)
    email: str = Field(max_length=160, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=8)
    business_name: str = Field(min_length=2, max_length=100)
    business_type: BusinessTypeLiteral = "restaurant"
    phone: Optional[str] = Field(default=None, pattern=r"^\+?[1-9]\d{0,15}$")

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password(v)

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    outlet_id: str
    name: str
    email: str
    role: Role
    active: bool

class RoleUpdate(BaseModel):
    role: RoleLiteral

class ActiveUpdate(BaseModel):
    active: bool

class MeOut(BaseModel):
    user: UserOut
    permissions: list[str]

class RoleInfo(BaseModel):
    role: Role
    level: int
    permissions: list[str]
    description: Optional[str] = None
