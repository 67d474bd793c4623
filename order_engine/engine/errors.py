"""
Engine Errors

Closed set of failures the engine reports. Each carries a stable ``code``
and structured ``details``; transports map them to their own status codes.
"""

from enum import Enum
from typing import Any, Dict, Optional


class OrderEngineError(Exception):
    """Base class for every error raised by the engine"""

    code = "order_engine_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidOrderRequest(OrderEngineError):
    """Cart input that cannot be turned into an order"""

    code = "invalid_order_request"


class ProductNotFound(OrderEngineError):
    code = "product_not_found"

    def __init__(self, product_id):
        super().__init__(
            f"Product {product_id} does not exist",
            {"product_id": str(product_id)},
        )
        self.product_id = product_id


class ProductInactive(OrderEngineError):
    """Product exists but is not currently sold"""

    code = "product_inactive"

    def __init__(self, product_id, name: Optional[str] = None):
        super().__init__(
            f"Product {name or product_id} is not available",
            {"product_id": str(product_id)},
        )
        self.product_id = product_id


class InsufficientStock(OrderEngineError):
    code = "insufficient_stock"

    def __init__(self, product_id, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}",
            {"product_id": str(product_id), "requested": requested, "available": available},
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class OrderNotFound(OrderEngineError):
    code = "order_not_found"

    def __init__(self, order_id):
        super().__init__(f"Order {order_id} does not exist", {"order_id": str(order_id)})
        self.order_id = order_id


class Forbidden(OrderEngineError):
    """Caller may not act on the order"""

    code = "forbidden"


class InvalidStateTransition(OrderEngineError):
    code = "invalid_state_transition"

    def __init__(self, axis: str, current: str, requested: str):
        super().__init__(
            f"Cannot move {axis} status from {current} to {requested}",
            {"axis": axis, "current": current, "requested": requested},
        )
        self.axis = axis
        self.current = current
        self.requested = requested


class DiscountRejection(str, Enum):
    """Why a discount code could not be redeemed"""
    CODE_NOT_FOUND = "code_not_found"
    CODE_INACTIVE = "code_inactive"
    OUTSIDE_VALIDITY_WINDOW = "outside_validity_window"
    USAGE_CAP_REACHED = "usage_cap_reached"
    BELOW_MINIMUM_AMOUNT = "below_minimum_amount"


class DiscountRejected(OrderEngineError):
    code = "discount_rejected"

    def __init__(self, discount_code: str, reason: DiscountRejection):
        super().__init__(
            f"Discount code {discount_code} rejected: {reason.value}",
            {"discount_code": discount_code, "reason": reason.value},
        )
        self.discount_code = discount_code
        self.reason = reason


class OrderNumberGenerationError(OrderEngineError):
    """No unique order number could be produced; an infrastructure fault"""

    code = "order_number_generation_failed"
