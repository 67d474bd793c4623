"""
API Routes Module
"""
from .health import router as health_router
from .orders import router as orders_router
from .discounts import router as discounts_router

__all__ = [
    "health_router",
    "orders_router",
    "discounts_router",
]
