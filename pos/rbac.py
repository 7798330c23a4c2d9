"""
Permission catalog and authorization guard.

Single source of truth for which role may do what. Everything here is a pure
lookup over static tables; the request boundary (pos.deps) turns a ``False``
into a 403.
"""
from enum import Enum as PyEnum
from typing import Iterable


class Role(str, PyEnum):
    WAITER = "waiter"
    CASHIER = "cashier"
    ADMIN = "admin"


class Perm(str, PyEnum):
    # Orders
    ORDERS_VIEW = "orders:view"
    ORDERS_CREATE = "orders:create"
    ORDERS_UPDATE = "orders:update"
    ORDERS_DELETE = "orders:delete"
    ORDERS_MANAGE = "orders:manage"

    # Payments
    PAYMENTS_VIEW = "payments:view"
    PAYMENTS_PROCESS = "payments:process"
    PAYMENTS_REFUND = "payments:refund"
    PAYMENTS_MANAGE = "payments:manage"

    # Menu
    MENU_VIEW = "menu:view"
    MENU_CREATE = "menu:create"
    MENU_UPDATE = "menu:update"
    MENU_DELETE = "menu:delete"

    # Inventory
    INVENTORY_VIEW = "inventory:view"
    INVENTORY_UPDATE = "inventory:update"
    INVENTORY_MANAGE = "inventory:manage"

    # Users
    USERS_VIEW = "users:view"
    USERS_CREATE = "users:create"
    USERS_UPDATE = "users:update"
    USERS_DELETE = "users:delete"

    # Reports
    REPORTS_VIEW = "reports:view"
    REPORTS_EXPORT = "reports:export"

    # Settings
    SETTINGS_VIEW = "settings:view"
    SETTINGS_UPDATE = "settings:update"

    # Invoicing
    INVOICES_VIEW = "invoices:view"
    INVOICES_CREATE = "invoices:create"
    INVOICES_UPDATE = "invoices:update"
    INVOICES_DELETE = "invoices:delete"

    DASHBOARD_VIEW = "dashboard:view"


class Mode(str, PyEnum):
    ANY = "ANY"
    ALL = "ALL"


# admin is computed so a new Perm member is granted to it automatically
ROLE_PERMISSIONS: dict[Role, frozenset[Perm]] = {
    Role.WAITER: frozenset({
        Perm.ORDERS_VIEW,
        Perm.ORDERS_CREATE,
        Perm.ORDERS_UPDATE,
        Perm.MENU_VIEW,
        Perm.DASHBOARD_VIEW,
    }),
    Role.CASHIER: frozenset({
        Perm.ORDERS_VIEW,
        Perm.PAYMENTS_VIEW,
        Perm.PAYMENTS_PROCESS,
        Perm.INVOICES_VIEW,
        Perm.INVOICES_CREATE,
        Perm.INVOICES_UPDATE,
        Perm.MENU_VIEW,
        Perm.DASHBOARD_VIEW,
    }),
    Role.ADMIN: frozenset(Perm),
}

ROLE_LEVELS = {Role.WAITER: 1, Role.CASHIER: 2, Role.ADMIN: 3}


def permissions_for(role: Role | str | None) -> frozenset[Perm]:
    """Granted permissions for ``role``; anything unknown gets nothing."""
    try:
        r = Role(role)
    except ValueError:
        return frozenset()
    return ROLE_PERMISSIONS.get(r, frozenset())


def is_authorized(role: Role | str | None, required: Perm | Iterable[Perm], mode: Mode = Mode.ANY) -> bool:
    granted = permissions_for(role)
    if isinstance(required, Perm):
        return required in granted
    wanted = list(required)
    if not wanted:
        return mode == Mode.ALL
    if mode == Mode.ALL:
        return all(p in granted for p in wanted)
    return any(p in granted for p in wanted)


def available_roles() -> list[Role]:
    return list(ROLE_PERMISSIONS.keys())


def role_level(role: Role | str | None) -> int:
    try:
        return ROLE_LEVELS.get(Role(role), 0)
    except ValueError:
        return 0


def has_minimum_role(role: Role | str | None, minimum: Role) -> bool:
    return role_level(role) >= role_level(minimum)
