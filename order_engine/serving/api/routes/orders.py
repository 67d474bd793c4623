"""
Orders API Endpoints

Order placement, cancellation, status updates and order reads.
"""

from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from order_engine.database.models import DeliveryStatus, PaymentMethod, PaymentStatus
from order_engine.engine.requests import (
    Caller,
    DeliveryUpdate,
    NewOrder,
    OrderFilters,
    OrderLine,
    PaymentUpdate,
    SortField,
    SortOrder,
)
from order_engine.engine.service import OrderService
from order_engine.serving.api.dependencies import get_caller, get_order_service, require_admin

router = APIRouter()


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class Address(BaseModel):
    """Postal address"""
    street: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    department: str = Field(..., min_length=1, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: str = Field("CO", min_length=2, max_length=3)


class OrderItemRequest(BaseModel):
    product_id: UUID
    quantity: int = Field(..., ge=1, le=1000)


class CreateOrderRequest(BaseModel):
    """Cart submitted for checkout"""
    items: List[OrderItemRequest] = Field(..., min_length=1, max_length=100)
    shipping_address: Address
    billing_address: Optional[Address] = None
    payment_method: PaymentMethod
    notes: Optional[str] = Field(None, max_length=1000)
    discount_code: Optional[str] = Field(None, max_length=50)


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class PaymentStatusRequest(BaseModel):
    status: PaymentStatus
    gateway_reference: Optional[str] = Field(None, max_length=100)


class DeliveryStatusRequest(BaseModel):
    status: DeliveryStatus
    tracking_number: Optional[str] = Field(None, max_length=100)
    estimated_delivery: Optional[datetime] = None


class OrderItemResponse(BaseModel):
    """Order line"""
    product_id: UUID
    sku: str
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Order with its price breakdown and statuses"""
    order_id: UUID
    order_number: str
    user_id: str
    items: List[OrderItemResponse]
    subtotal: Decimal
    discount_amount: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    currency_code: str
    discount_code: Optional[str]
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    gateway_reference: Optional[str]
    delivery_status: DeliveryStatus
    shipping_address: dict
    billing_address: Optional[dict]
    tracking_number: Optional[str]
    estimated_delivery: Optional[datetime]
    delivered_at: Optional[datetime]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    """Paginated order list"""
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class MonthlyRevenueResponse(BaseModel):
    year: int
    month: int
    orders: int
    revenue: Decimal


class OrderStatsResponse(BaseModel):
    """Order counts and revenue"""
    total_orders: int
    pending_payments: int
    approved_payments: int
    delivered_orders: int
    cancelled_orders: int
    approved_revenue: Decimal
    monthly_revenue: List[MonthlyRevenueResponse] = []


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    payload: CreateOrderRequest,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """
    Place an order for the calling user.

    Stock is reserved for every item; an unusable discount code is ignored
    rather than failing the order.
    """
    order = await service.create_order(
        NewOrder(
            user_id=caller.user_id,
            items=[OrderLine(product_id=i.product_id, quantity=i.quantity) for i in payload.items],
            shipping_address=payload.shipping_address.model_dump(),
            billing_address=payload.billing_address.model_dump() if payload.billing_address else None,
            payment_method=payload.payment_method,
            notes=payload.notes,
            discount_code=payload.discount_code,
        )
    )
    return OrderResponse.model_validate(order)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user_id: Optional[str] = None,
    payment_status: Optional[PaymentStatus] = None,
    delivery_status: Optional[DeliveryStatus] = None,
    payment_method: Optional[PaymentMethod] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    sort_by: SortField = SortField.CREATED_AT,
    sort_order: SortOrder = SortOrder.DESC,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """
    List orders with pagination and filtering.

    Customers only see their own orders; ``user_id`` is honoured for admins.
    Sorting is limited to ``created_at``, ``total`` and ``order_number``.
    """
    filters = OrderFilters(
        user_id=user_id,
        payment_status=payment_status,
        delivery_status=delivery_status,
        payment_method=payment_method,
        start_date=start_date,
        end_date=end_date,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    orders, total = await service.list_orders(caller, filters, page, page_size)

    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size,
    )


@router.get("/stats", response_model=OrderStatsResponse)
async def get_order_stats(
    caller: Caller = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
) -> OrderStatsResponse:
    """Order counts per status, approved revenue and its monthly breakdown."""
    stats = await service.order_stats()
    return OrderStatsResponse(**asdict(stats))


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    order = await service.get_order(order_id, caller)
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: UUID,
    payload: Optional[CancelOrderRequest] = None,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """
    Cancel an order that has not been delivered and restock its items.
    """
    reason = payload.reason if payload else None
    order = await service.cancel_order(order_id, caller, reason)
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/payment-status", response_model=OrderResponse)
async def update_payment_status(
    order_id: UUID,
    payload: PaymentStatusRequest,
    caller: Caller = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Record the payment result reported by the payment integration."""
    order = await service.update_payment_status(
        order_id,
        PaymentUpdate(status=payload.status, gateway_reference=payload.gateway_reference),
    )
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/delivery-status", response_model=OrderResponse)
async def update_delivery_status(
    order_id: UUID,
    payload: DeliveryStatusRequest,
    caller: Caller = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Advance delivery along processing, shipped and delivered."""
    order = await service.update_delivery_status(
        order_id,
        DeliveryUpdate(
            status=payload.status,
            tracking_number=payload.tracking_number,
            estimated_delivery=payload.estimated_delivery,
        ),
    )
    return OrderResponse.model_validate(order)
