# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    OrderStatus, OrderType, DiscountType, LineStatus, PayMethod, PaymentStatus,
    TERMINAL_STATUSES, STATUS_SEQUENCE, SETTLING_PAYMENT_STATUSES,

    # Identity
    Outlet, User,

    # Menu
    MenuCategory, MenuItem,

    # Orders / payments
    OrderSequence, Order, OrderLine, Payment,
)

__all__ = [
    # Enums
    "OrderStatus", "OrderType", "DiscountType", "LineStatus", "PayMethod", "PaymentStatus",
    "TERMINAL_STATUSES", "STATUS_SEQUENCE", "SETTLING_PAYMENT_STATUSES",

    # Identity
    "Outlet", "User",

    # Menu
    "MenuCategory", "MenuItem",

    # Orders / payments
    "OrderSequence", "Order", "OrderLine", "Payment",
]
