"""
Order & Inventory Transaction Engine
"""
from .errors import (
    DiscountRejected,
    DiscountRejection,
    Forbidden,
    InsufficientStock,
    InvalidOrderRequest,
    InvalidStateTransition,
    OrderEngineError,
    OrderNotFound,
    OrderNumberGenerationError,
    ProductInactive,
    ProductNotFound,
)
from .requests import (
    Caller,
    DeliveryUpdate,
    NewOrder,
    OrderFilters,
    OrderLine,
    PaymentUpdate,
    Role,
    SortField,
    SortOrder,
)
from .service import OrderService

__all__ = [
    "Caller",
    "DeliveryUpdate",
    "DiscountRejected",
    "DiscountRejection",
    "Forbidden",
    "InsufficientStock",
    "InvalidOrderRequest",
    "InvalidStateTransition",
    "NewOrder",
    "OrderEngineError",
    "OrderFilters",
    "OrderLine",
    "OrderNotFound",
    "OrderNumberGenerationError",
    "OrderService",
    "PaymentUpdate",
    "ProductInactive",
    "ProductNotFound",
    "Role",
    "SortField",
    "SortOrder",
]
