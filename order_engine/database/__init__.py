"""
Database Module
"""
from .connection import Database
from .models import (
    Base,
    DeliveryStatus,
    DiscountCode,
    DiscountKind,
    Order,
    OrderItem,
    PaymentMethod,
    PaymentStatus,
    Product,
)

__all__ = [
    "Database",
    "Base",
    "DeliveryStatus",
    "DiscountCode",
    "DiscountKind",
    "Order",
    "OrderItem",
    "PaymentMethod",
    "PaymentStatus",
    "Product",
]
