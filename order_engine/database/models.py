"""
Database Models - Order & Inventory Schema

Tables:
- products: catalog rows whose stock the engine reserves and releases
- discount_codes: promotional codes with usage caps and validity windows
- orders: order aggregate root with its price breakdown and status axes
- order_items: line items owned by an order, priced at reservation time

Monetary columns are Numeric with two decimal places. Timestamps are naive UTC.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class PaymentStatus(str, Enum):
    """Payment status enumeration"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REFUNDED = "refunded"


class DeliveryStatus(str, Enum):
    """Delivery status enumeration"""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """Payment method enumeration"""
    ONLINE = "online"
    CASH_ON_DELIVERY = "cash_on_delivery"


class DiscountKind(str, Enum):
    """Discount code kind"""
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# =============================================================================
# CATALOG
# =============================================================================

class Product(Base):
    """
    Product Table

    Catalog rows are owned by the catalog service; the engine only mutates
    ``stock``, and only through conditional updates.
    """
    __tablename__ = "products"

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    sku: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Audit
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        Index("ix_products_active", "is_active"),
    )


class DiscountCode(Base):
    """
    Discount Code Table

    ``used_count`` is incremented only by a conditional update that re-checks
    the cap, so it can never pass ``max_uses``.
    """
    __tablename__ = "discount_codes"

    discount_code_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255))

    kind: Mapped[DiscountKind] = mapped_column(
        SQLEnum(DiscountKind, values_callable=_enum_values, name="discount_kind"),
        nullable=False,
    )
    value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    min_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    max_discount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))

    # Usage
    max_uses: Mapped[Optional[int]] = mapped_column(Integer)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Validity
    valid_from: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    valid_until: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "max_uses IS NULL OR used_count <= max_uses",
            name="ck_discount_codes_usage_cap",
        ),
    )


# =============================================================================
# ORDERS
# =============================================================================

class Order(Base):
    """
    Order Table

    Aggregate root for a placed order. Created atomically with its items,
    reserved stock and redeemed discount; never deleted.
    """
    __tablename__ = "orders"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Unique constraint is the authoritative collision guard
    order_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Price breakdown
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    shipping_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False, default="COP")
    discount_code: Mapped[Optional[str]] = mapped_column(String(50))

    # Payment
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod, values_callable=_enum_values, name="payment_method"),
        nullable=False,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, values_callable=_enum_values, name="payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    gateway_reference: Mapped[Optional[str]] = mapped_column(String(100))

    # Delivery
    delivery_status: Mapped[DeliveryStatus] = mapped_column(
        SQLEnum(DeliveryStatus, values_callable=_enum_values, name="delivery_status"),
        nullable=False,
        default=DeliveryStatus.PENDING,
    )
    shipping_address: Mapped[dict] = mapped_column(JSON, nullable=False)
    billing_address: Mapped[Optional[dict]] = mapped_column(JSON)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100))
    estimated_delivery: Mapped[Optional[datetime]] = mapped_column(DateTime)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Audit
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    items: Mapped[List["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    __table_args__ = (
        Index("ix_orders_user", "user_id"),
        Index("ix_orders_payment_status", "payment_status"),
        Index("ix_orders_delivery_status", "delivery_status"),
        Index("ix_orders_created_at", "created_at"),
    )

    # Load server-side timestamps on insert instead of lazily
    __mapper_args__ = {"eager_defaults": True}


class OrderItem(Base):
    """
    Order Item Table

    Line snapshot taken at reservation time; later catalog price changes never
    touch it.
    """
    __tablename__ = "order_items"

    order_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("products.product_id", ondelete="RESTRICT"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Snapshot
    sku: Mapped[str] = mapped_column(String(50), nullable=False)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Relationships
    order: Mapped["Order"] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        Index("ix_order_items_order", "order_id"),
        Index("ix_order_items_product", "product_id"),
    )
