"""
Order Lifecycle Controller

Payment and delivery are independent status axes. Every transition is a
conditional UPDATE on the statuses it may start from, so two concurrent
requests cannot both move an order out of the same state.

Payment:   PENDING/APPROVED -> any reported status; REJECTED, REFUNDED terminal
Delivery:  PENDING -> PROCESSING -> SHIPPED -> DELIVERED (forward only)
Cancel:    any non-terminal delivery status -> CANCELLED, releasing stock once
"""

import uuid
from datetime import datetime
from typing import Callable, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from order_engine.database.models import DeliveryStatus, Order, PaymentStatus
from order_engine.engine.clock import to_naive_utc, utcnow
from order_engine.engine.errors import Forbidden, InvalidStateTransition, OrderNotFound
from order_engine.engine.requests import Caller, DeliveryUpdate, PaymentUpdate
from order_engine.engine.stock import StockLedger

logger = structlog.get_logger(__name__)


TERMINAL_PAYMENT_STATUSES = (PaymentStatus.REJECTED, PaymentStatus.REFUNDED)
TERMINAL_DELIVERY_STATUSES = (DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED)

# Position along the forward delivery path
DELIVERY_SEQUENCE = (
    DeliveryStatus.PENDING,
    DeliveryStatus.PROCESSING,
    DeliveryStatus.SHIPPED,
    DeliveryStatus.DELIVERED,
)


def delivery_sources(target: DeliveryStatus) -> list:
    """Statuses an administrative update may move to ``target`` from"""
    if target not in DELIVERY_SEQUENCE:
        return []
    index = DELIVERY_SEQUENCE.index(target)
    return [s for s in DELIVERY_SEQUENCE[:index + 1] if s not in TERMINAL_DELIVERY_STATUSES]


def payment_sources() -> list:
    return [s for s in PaymentStatus if s not in TERMINAL_PAYMENT_STATUSES]


async def load_order(session: AsyncSession, order_id: uuid.UUID) -> Optional[Order]:
    """Fetch an order with its items, overwriting any stale identity-map copy."""
    result = await session.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.order_id == order_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


class OrderLifecycleController:
    """Status transitions for persisted orders, bound to one transaction"""

    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.session = session
        self.ledger = StockLedger(session)
        self.clock = clock

    async def _require(self, order_id: uuid.UUID) -> Order:
        order = await load_order(self.session, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    async def cancel(self, order_id: uuid.UUID, caller: Caller, reason: Optional[str] = None) -> Order:
        """
        Cancel an order and release every item's quantity back to stock.

        Raises:
            OrderNotFound, Forbidden, InvalidStateTransition
        """
        order = await self._require(order_id)
        if not caller.is_admin and order.user_id != caller.user_id:
            raise Forbidden(
                "Only the order owner or an admin may cancel this order",
                {"order_id": str(order_id)},
            )

        values = {"delivery_status": DeliveryStatus.CANCELLED}
        if reason:
            values["notes"] = f"{order.notes}\nCancelled: {reason}" if order.notes else f"Cancelled: {reason}"

        result = await self.session.execute(
            update(Order)
            .where(
                Order.order_id == order_id,
                Order.delivery_status.not_in(TERMINAL_DELIVERY_STATUSES),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = await self._require(order_id)
            raise InvalidStateTransition(
                "delivery", current.delivery_status.value, DeliveryStatus.CANCELLED.value
            )

        # Only the request that won the status update reaches this point
        for item in order.items:
            await self.ledger.release(item.product_id, item.quantity)

        order = await self._require(order_id)
        logger.info(
            "order_cancelled",
            order_id=str(order_id),
            order_number=order.order_number,
            cancelled_by=caller.user_id,
            reason=reason,
            released=[(str(i.product_id), i.quantity) for i in order.items],
        )
        return order

    async def update_payment_status(self, order_id: uuid.UUID, change: PaymentUpdate) -> Order:
        """
        Store the payment status reported by the payment integration.

        Raises:
            OrderNotFound, InvalidStateTransition (order already REJECTED/REFUNDED)
        """
        values = {"payment_status": change.status}
        if change.gateway_reference:
            values["gateway_reference"] = change.gateway_reference

        result = await self.session.execute(
            update(Order)
            .where(
                Order.order_id == order_id,
                Order.payment_status.in_(payment_sources()),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        order = await self._require(order_id)
        if result.rowcount != 1:
            raise InvalidStateTransition("payment", order.payment_status.value, change.status.value)

        logger.info(
            "payment_status_updated",
            order_id=str(order_id),
            order_number=order.order_number,
            payment_status=change.status.value,
            gateway_reference=change.gateway_reference,
        )
        return order

    async def update_delivery_status(self, order_id: uuid.UUID, change: DeliveryUpdate) -> Order:
        """
        Advance the delivery status. Skipping forward is allowed, moving back
        is not, and CANCELLED is only reachable through ``cancel``.

        Raises:
            OrderNotFound, InvalidStateTransition
        """
        sources = delivery_sources(change.status)

        values = {"delivery_status": change.status}
        if change.tracking_number:
            values["tracking_number"] = change.tracking_number
        if change.estimated_delivery:
            values["estimated_delivery"] = to_naive_utc(change.estimated_delivery)
        if change.status == DeliveryStatus.DELIVERED:
            values["delivered_at"] = self.clock()

        rowcount = 0
        if sources:
            result = await self.session.execute(
                update(Order)
                .where(
                    Order.order_id == order_id,
                    Order.delivery_status.in_(sources),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            rowcount = result.rowcount

        order = await self._require(order_id)
        if rowcount != 1:
            raise InvalidStateTransition("delivery", order.delivery_status.value, change.status.value)

        logger.info(
            "delivery_status_updated",
            order_id=str(order_id),
            order_number=order.order_number,
            delivery_status=change.status.value,
            tracking_number=order.tracking_number,
        )
        return order
