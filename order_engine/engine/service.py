"""
Order Service

Entry point for the order operations exposed to transports. Each mutating
operation runs in exactly one transaction opened on the injected ``Database``.
"""

import random
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

import structlog

from order_engine.config.settings import OrderSettings
from order_engine.database.connection import Database
from order_engine.database.models import Order
from order_engine.engine.builder import OrderBuilder
from order_engine.engine.clock import utcnow
from order_engine.engine.discounts import DiscountOutcome, DiscountValidator
from order_engine.engine.errors import OrderNotFound
from order_engine.engine.lifecycle import OrderLifecycleController
from order_engine.engine.queries import OrderQueries, OrderStats
from order_engine.engine.requests import Caller, DeliveryUpdate, NewOrder, OrderFilters, PaymentUpdate

logger = structlog.get_logger(__name__)


class OrderService:
    """
    Order placement and lifecycle operations.

    Args:
        database: Connected store handle
        config: Pricing and numbering configuration
        rng: Random source for order numbers (defaults to SystemRandom)
        clock: UTC time source
    """

    def __init__(
        self,
        database: Database,
        config: OrderSettings,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.database = database
        self.config = config
        self.rng = rng
        self.clock = clock

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def create_order(self, request: NewOrder) -> Order:
        async with self.database.transaction() as session:
            builder = OrderBuilder(session, self.config, rng=self.rng, clock=self.clock)
            order = await builder.build(request)

        logger.info(
            "order_created",
            order_id=str(order.order_id),
            order_number=order.order_number,
            user_id=order.user_id,
            total=str(order.total),
            items=len(order.items),
        )
        return order

    async def cancel_order(self, order_id: uuid.UUID, caller: Caller, reason: Optional[str] = None) -> Order:
        async with self.database.transaction() as session:
            return await OrderLifecycleController(session, self.clock).cancel(order_id, caller, reason)

    async def update_payment_status(self, order_id: uuid.UUID, change: PaymentUpdate) -> Order:
        async with self.database.transaction() as session:
            return await OrderLifecycleController(session, self.clock).update_payment_status(order_id, change)

    async def update_delivery_status(self, order_id: uuid.UUID, change: DeliveryUpdate) -> Order:
        async with self.database.transaction() as session:
            return await OrderLifecycleController(session, self.clock).update_delivery_status(order_id, change)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_order(self, order_id: uuid.UUID, caller: Caller) -> Order:
        async with self.database.session() as session:
            order = await OrderQueries(session).get(order_id, caller)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    async def list_orders(
        self,
        caller: Caller,
        filters: Optional[OrderFilters] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Order], int]:
        async with self.database.session() as session:
            return await OrderQueries(session).search(caller, filters or OrderFilters(), page, page_size)

    async def order_stats(self) -> OrderStats:
        async with self.database.session() as session:
            return await OrderQueries(session).stats(self.clock())

    async def quote_discount(self, code: str, subtotal: Decimal) -> DiscountOutcome:
        """
        Evaluate a code without redeeming it.

        Raises:
            DiscountRejected: the code would not be applied to ``subtotal``
        """
        async with self.database.session() as session:
            validator = DiscountValidator(session, self.config.currency_precision, self.clock)
            return await validator.evaluate(code, subtotal)
