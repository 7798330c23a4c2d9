from decimal import Decimal
from typing import Iterable


class PosError(Exception):
    """Recoverable domain error; rendered by the handler in pos.main."""
    status_code = 400
    kind = "Error"

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message, **self.extra}


class NotFound(PosError):
    status_code = 404
    kind = "NotFound"


class ItemNotFound(NotFound):
    def __init__(self, item_ids: Iterable[str]):
        ids = sorted(set(item_ids))
        super().__init__("One or more menu items not found or inactive", item_ids=ids)


class OrderNotFound(NotFound):
    # same message whether the order is missing or belongs to another outlet
    def __init__(self, order_id: str):
        super().__init__("Order not found", order_id=order_id)


class PaymentNotFound(NotFound):
    def __init__(self, payment_id: str):
        super().__init__("Payment not found", payment_id=payment_id)


class ValidationFailed(PosError):
    status_code = 400
    kind = "ValidationFailed"

    def __init__(self, fields: list[dict], message: str = "Validation failed"):
        super().__init__(message, details=fields)
        self.fields = fields

    @classmethod
    def field(cls, name: str, message: str) -> "ValidationFailed":
        return cls([{"field": name, "message": message}])


class Unauthorized(PosError):
    status_code = 401
    kind = "Unauthorized"


class Forbidden(PosError):
    status_code = 403
    kind = "Forbidden"

    def __init__(self, required: Iterable[str], role: str | None = None):
        req = [getattr(p, "value", p) for p in required]
        super().__init__("Access denied. Insufficient permissions.", required=req, role=role)


class InvalidTransition(PosError):
    status_code = 409
    kind = "InvalidTransition"

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move order from {current} to {requested}", current=current, requested=requested)


class OverpaymentRejected(PosError):
    status_code = 400
    kind = "OverpaymentRejected"

    def __init__(self, remaining: Decimal):
        super().__init__(
            f"Payment amount exceeds remaining balance. Remaining: {remaining:.2f}",
            remaining=f"{remaining:.2f}",
        )
        self.remaining = remaining


class Conflict(PosError):
    status_code = 409
    kind = "Conflict"

    def __init__(self, message: str):
        super().__init__(message, retryable=True)
