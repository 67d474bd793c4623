"""
Engine Inputs

Explicit input structures for every engine operation. Updates only ever touch
the fields listed here.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from order_engine.database.models import DeliveryStatus, PaymentMethod, PaymentStatus


class Role(str, Enum):
    """Caller role enumeration"""
    CUSTOMER = "customer"
    ADMIN = "admin"


class SortField(str, Enum):
    """Columns an order listing may be sorted by"""
    CREATED_AT = "created_at"
    TOTAL = "total"
    ORDER_NUMBER = "order_number"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Caller:
    """Authenticated caller, trusted as given"""
    user_id: str
    role: Role = Role.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class OrderLine:
    product_id: uuid.UUID
    quantity: int


@dataclass
class NewOrder:
    user_id: str
    items: List[OrderLine]
    shipping_address: dict
    payment_method: PaymentMethod
    billing_address: Optional[dict] = None
    notes: Optional[str] = None
    discount_code: Optional[str] = None


@dataclass(frozen=True)
class PaymentUpdate:
    status: PaymentStatus
    gateway_reference: Optional[str] = None


@dataclass(frozen=True)
class DeliveryUpdate:
    status: DeliveryStatus
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


@dataclass
class OrderFilters:
    """Listing filters; ``user_id`` is honoured for admins only"""
    user_id: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    delivery_status: Optional[DeliveryStatus] = None
    payment_method: Optional[PaymentMethod] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    sort_by: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
