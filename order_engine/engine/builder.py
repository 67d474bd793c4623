"""
Order Builder

Turns a cart into a persisted order inside the caller's transaction:

1. reserve stock for every line (Stock Ledger)
2. price the lines from the snapshot taken at reservation
3. redeem the discount code, if any (Discount Validator)
4. compute the breakdown (Pricing Calculator)
5. draw an order number and insert the order with its items

Any failure propagates to the caller, whose transaction rollback undoes every
reservation and redemption made here. The order insert runs in a SAVEPOINT so
a unique violation on the order number only retries the insert.
"""

import random
from datetime import datetime
from typing import Callable, List, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from order_engine.config.settings import OrderSettings
from order_engine.database.models import DeliveryStatus, Order, OrderItem, PaymentStatus
from order_engine.engine.clock import utcnow
from order_engine.engine.discounts import DiscountOutcome, DiscountValidator
from order_engine.engine.errors import InvalidOrderRequest, OrderNumberGenerationError
from order_engine.engine.order_numbers import OrderNumberGenerator
from order_engine.engine.pricing import PriceBreakdown, PricingCalculator
from order_engine.engine.requests import NewOrder
from order_engine.engine.stock import ReservedLine, StockLedger

logger = structlog.get_logger(__name__)


class OrderBuilder:

    def __init__(
        self,
        session: AsyncSession,
        config: OrderSettings,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.config = config
        self.ledger = StockLedger(session)
        self.discounts = DiscountValidator(session, config.currency_precision, clock)
        self.pricing = PricingCalculator(config.tax_rate, config.shipping_fee, config.currency_precision)
        self.numbers = OrderNumberGenerator(session, config, rng=rng, clock=clock)

    @staticmethod
    def _validate(request: NewOrder) -> None:
        if not request.items:
            raise InvalidOrderRequest("An order needs at least one item")
        for line in request.items:
            if line.quantity < 1:
                raise InvalidOrderRequest(
                    f"Quantity for product {line.product_id} must be positive",
                    {"product_id": str(line.product_id), "quantity": line.quantity},
                )
        if not request.shipping_address:
            raise InvalidOrderRequest("A shipping address is required")

    async def build(self, request: NewOrder) -> Order:
        """
        Reserve, price, number and persist a new order.

        Raises:
            InvalidOrderRequest, ProductNotFound, ProductInactive,
            InsufficientStock, OrderNumberGenerationError
        """
        self._validate(request)

        reserved: List[ReservedLine] = []
        try:
            for line in request.items:
                reserved.append(await self.ledger.reserve(line.product_id, line.quantity))

            subtotal = self.pricing.subtotal((r.unit_price, r.quantity) for r in reserved)

            if request.discount_code:
                discount = await self.discounts.apply(request.discount_code, subtotal)
            else:
                discount = DiscountOutcome.none()

            breakdown = self.pricing.price(subtotal, discount.amount)
            order = await self._persist(request, reserved, breakdown, discount)
        except Exception as e:
            logger.warning(
                "order_build_aborted",
                user_id=request.user_id,
                error=type(e).__name__,
                reserved=[(str(r.product_id), r.quantity) for r in reserved],
            )
            raise

        logger.info(
            "order_built",
            order_number=order.order_number,
            user_id=order.user_id,
            total=str(order.total),
            discount_code=order.discount_code,
        )
        return order

    def _make_order(
        self,
        order_number: str,
        request: NewOrder,
        reserved: List[ReservedLine],
        breakdown: PriceBreakdown,
        discount: DiscountOutcome,
    ) -> Order:
        order = Order(
            order_number=order_number,
            user_id=request.user_id,
            subtotal=breakdown.subtotal,
            discount_amount=breakdown.discount,
            shipping_amount=breakdown.shipping,
            tax_amount=breakdown.tax,
            total=breakdown.total,
            currency_code=self.config.currency,
            discount_code=discount.code if discount.applied else None,
            payment_method=request.payment_method,
            payment_status=PaymentStatus.PENDING,
            delivery_status=DeliveryStatus.PENDING,
            shipping_address=request.shipping_address,
            billing_address=request.billing_address,
            notes=request.notes,
        )
        order.items = [
            OrderItem(
                product_id=r.product_id,
                position=position,
                sku=r.sku,
                product_name=r.name,
                quantity=r.quantity,
                unit_price=r.unit_price,
                line_total=self.pricing.line_total(r.unit_price, r.quantity),
            )
            for position, r in enumerate(reserved)
        ]
        return order

    async def _persist(
        self,
        request: NewOrder,
        reserved: List[ReservedLine],
        breakdown: PriceBreakdown,
        discount: DiscountOutcome,
    ) -> Order:
        attempts = self.config.number_persist_attempts
        for attempt in range(1, attempts + 1):
            order_number = await self.numbers.generate()
            order = self._make_order(order_number, request, reserved, breakdown, discount)
            try:
                async with self.session.begin_nested():
                    self.session.add(order)
                    await self.session.flush()
                return order
            except IntegrityError as e:
                if "order_number" not in str(e.orig):
                    raise
                # Another transaction inserted the same number after our check
                logger.warning(
                    "order_number_collision",
                    order_number=order_number,
                    attempt=attempt,
                    on_insert=True,
                )

        raise OrderNumberGenerationError(
            f"Order number still colliding after {attempts} insert attempts",
            {"attempts": attempts},
        )
