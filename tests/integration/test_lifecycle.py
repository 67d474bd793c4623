"""
Integration Tests - Order Lifecycle
"""
import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from order_engine.database.models import DeliveryStatus, Order, PaymentStatus
from order_engine.engine.errors import (
    Forbidden,
    InvalidStateTransition,
    OrderNotFound,
)
from order_engine.engine.queries import MonthlyRevenue
from order_engine.engine.requests import DeliveryUpdate, OrderFilters, PaymentUpdate, SortField, SortOrder
from order_engine.engine.service import OrderService


@pytest.fixture
async def product(add_product):
    return await add_product("CAFE-TRA-500", price="22000", stock=10)


@pytest.fixture
async def order(service, product, order_request):
    return await service.create_order(order_request("user-1", (product.product_id, 3)))


async def deliver(service, order_id):
    return await service.update_delivery_status(order_id, DeliveryUpdate(status=DeliveryStatus.DELIVERED))


async def set_created_at(database, order_id, created_at):
    async with database.transaction() as session:
        await session.execute(
            update(Order)
            .where(Order.order_id == order_id)
            .values(created_at=created_at)
            .execution_options(synchronize_session=False)
        )


class TestCancelOrder:
    """Tests for cancellation and stock release"""

    async def test_cancel_restores_stock(self, service, order, product, customer, stock_of):
        assert await stock_of(product.product_id) == 7

        cancelled = await service.cancel_order(order.order_id, customer, "Changed my mind")

        assert cancelled.delivery_status == DeliveryStatus.CANCELLED
        assert cancelled.notes == "Cancelled: Changed my mind"
        assert await stock_of(product.product_id) == 10

    async def test_cancel_keeps_existing_notes(self, service, product, customer, order_request):
        order = await service.create_order(
            order_request("user-1", (product.product_id, 1), notes="Leave at the door")
        )

        cancelled = await service.cancel_order(order.order_id, customer, "Duplicate")

        assert cancelled.notes == "Leave at the door\nCancelled: Duplicate"

    async def test_second_cancel_rejected(self, service, order, product, customer, stock_of):
        await service.cancel_order(order.order_id, customer)

        with pytest.raises(InvalidStateTransition) as exc_info:
            await service.cancel_order(order.order_id, customer)

        assert exc_info.value.current == "cancelled"
        assert await stock_of(product.product_id) == 10

    async def test_cancel_after_delivery_rejected(self, service, order, product, customer, stock_of):
        await deliver(service, order.order_id)

        with pytest.raises(InvalidStateTransition) as exc_info:
            await service.cancel_order(order.order_id, customer)

        assert exc_info.value.current == "delivered"
        assert await stock_of(product.product_id) == 7

    async def test_cancel_while_shipped(self, service, order, product, admin, stock_of):
        await service.update_delivery_status(order.order_id, DeliveryUpdate(status=DeliveryStatus.SHIPPED))

        cancelled = await service.cancel_order(order.order_id, admin)

        assert cancelled.delivery_status == DeliveryStatus.CANCELLED
        assert await stock_of(product.product_id) == 10

    async def test_other_customer_forbidden(self, service, order, product, other_customer, stock_of):
        with pytest.raises(Forbidden):
            await service.cancel_order(order.order_id, other_customer)

        assert await stock_of(product.product_id) == 7

    async def test_admin_may_cancel_any_order(self, service, order, admin):
        cancelled = await service.cancel_order(order.order_id, admin)

        assert cancelled.delivery_status == DeliveryStatus.CANCELLED

    async def test_unknown_order(self, service, customer):
        with pytest.raises(OrderNotFound):
            await service.cancel_order(uuid.uuid4(), customer)

    async def test_concurrent_cancels_release_once(self, service, order, product, customer, stock_of):
        results = await asyncio.gather(
            service.cancel_order(order.order_id, customer),
            service.cancel_order(order.order_id, customer),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], InvalidStateTransition)
        assert await stock_of(product.product_id) == 10

    async def test_cancel_releases_every_item(self, service, add_product, customer, stock_of, order_request):
        first = await add_product("FIRST", stock=5)
        second = await add_product("SECOND", stock=5)
        order = await service.create_order(
            order_request("user-1", (first.product_id, 2), (second.product_id, 5))
        )

        await service.cancel_order(order.order_id, customer)

        assert await stock_of(first.product_id) == 5
        assert await stock_of(second.product_id) == 5


class TestDeliveryStatus:
    """Tests for delivery transitions"""

    async def test_forward_path(self, service, order):
        estimated = datetime(2026, 10, 25, 12, 0)

        processing = await service.update_delivery_status(
            order.order_id, DeliveryUpdate(status=DeliveryStatus.PROCESSING)
        )
        shipped = await service.update_delivery_status(
            order.order_id,
            DeliveryUpdate(
                status=DeliveryStatus.SHIPPED,
                tracking_number="TRK-123",
                estimated_delivery=estimated,
            ),
        )
        delivered = await deliver(service, order.order_id)

        assert processing.delivery_status == DeliveryStatus.PROCESSING
        assert processing.delivered_at is None
        assert shipped.tracking_number == "TRK-123"
        assert shipped.estimated_delivery == estimated
        assert delivered.delivery_status == DeliveryStatus.DELIVERED
        assert delivered.delivered_at is not None
        assert delivered.tracking_number == "TRK-123"

    async def test_estimated_delivery_stored_as_utc(self, service, order):
        bogota = timezone(timedelta(hours=-5))

        shipped = await service.update_delivery_status(
            order.order_id,
            DeliveryUpdate(
                status=DeliveryStatus.SHIPPED,
                estimated_delivery=datetime(2026, 10, 25, 9, 30, tzinfo=bogota),
            ),
        )

        assert shipped.estimated_delivery == datetime(2026, 10, 25, 14, 30)
        assert shipped.estimated_delivery.tzinfo is None

    async def test_skipping_forward_allowed(self, service, order):
        shipped = await service.update_delivery_status(
            order.order_id, DeliveryUpdate(status=DeliveryStatus.SHIPPED)
        )

        assert shipped.delivery_status == DeliveryStatus.SHIPPED

    async def test_moving_back_rejected(self, service, order):
        await service.update_delivery_status(order.order_id, DeliveryUpdate(status=DeliveryStatus.SHIPPED))

        with pytest.raises(InvalidStateTransition):
            await service.update_delivery_status(
                order.order_id, DeliveryUpdate(status=DeliveryStatus.PROCESSING)
            )

    async def test_delivered_is_terminal(self, service, order, admin):
        delivered = await deliver(service, order.order_id)

        with pytest.raises(InvalidStateTransition):
            await deliver(service, order.order_id)

        after = await service.get_order(order.order_id, admin)
        assert after.delivered_at == delivered.delivered_at

    async def test_cancelled_only_through_cancel(self, service, order):
        with pytest.raises(InvalidStateTransition):
            await service.update_delivery_status(
                order.order_id, DeliveryUpdate(status=DeliveryStatus.CANCELLED)
            )

    async def test_cancelled_order_cannot_ship(self, service, order, customer):
        await service.cancel_order(order.order_id, customer)

        with pytest.raises(InvalidStateTransition):
            await service.update_delivery_status(
                order.order_id, DeliveryUpdate(status=DeliveryStatus.SHIPPED)
            )

    async def test_unknown_order(self, service):
        with pytest.raises(OrderNotFound):
            await service.update_delivery_status(uuid.uuid4(), DeliveryUpdate(status=DeliveryStatus.SHIPPED))


class TestPaymentStatus:
    """Tests for payment status updates"""

    async def test_records_reported_status(self, service, order):
        updated = await service.update_payment_status(
            order.order_id,
            PaymentUpdate(status=PaymentStatus.APPROVED, gateway_reference="gw-42"),
        )

        assert updated.payment_status == PaymentStatus.APPROVED
        assert updated.gateway_reference == "gw-42"

    async def test_approved_may_be_refunded(self, service, order):
        await service.update_payment_status(order.order_id, PaymentUpdate(status=PaymentStatus.APPROVED))

        refunded = await service.update_payment_status(
            order.order_id, PaymentUpdate(status=PaymentStatus.REFUNDED)
        )

        assert refunded.payment_status == PaymentStatus.REFUNDED
        assert refunded.gateway_reference is None

    @pytest.mark.parametrize("terminal", [PaymentStatus.REJECTED, PaymentStatus.REFUNDED])
    async def test_terminal_statuses(self, service, order, terminal):
        await service.update_payment_status(order.order_id, PaymentUpdate(status=terminal))

        with pytest.raises(InvalidStateTransition) as exc_info:
            await service.update_payment_status(order.order_id, PaymentUpdate(status=PaymentStatus.APPROVED))

        assert exc_info.value.axis == "payment"

    async def test_payment_independent_of_delivery(self, service, order, customer):
        await service.cancel_order(order.order_id, customer)

        refunded = await service.update_payment_status(
            order.order_id, PaymentUpdate(status=PaymentStatus.REFUNDED)
        )

        assert refunded.delivery_status == DeliveryStatus.CANCELLED
        assert refunded.payment_status == PaymentStatus.REFUNDED

    async def test_unknown_order(self, service):
        with pytest.raises(OrderNotFound):
            await service.update_payment_status(uuid.uuid4(), PaymentUpdate(status=PaymentStatus.APPROVED))


class TestOrderQueries:
    """Tests for reads"""

    async def test_owner_and_admin_can_read(self, service, order, customer, admin):
        assert (await service.get_order(order.order_id, customer)).order_number == order.order_number
        assert (await service.get_order(order.order_id, admin)).order_number == order.order_number

    async def test_other_customer_sees_not_found(self, service, order, other_customer):
        with pytest.raises(OrderNotFound):
            await service.get_order(order.order_id, other_customer)

    async def test_customers_list_only_their_orders(
        self, service, product, customer, other_customer, order_request
    ):
        for user_id in ["user-1", "user-1", "user-2"]:
            await service.create_order(order_request(user_id, (product.product_id, 1)))

        mine, total = await service.list_orders(customer)
        theirs, other_total = await service.list_orders(other_customer)

        assert total == 2
        assert {o.user_id for o in mine} == {"user-1"}
        assert other_total == 1

    async def test_admin_filters(self, service, product, admin, order_request):
        orders = [
            await service.create_order(order_request(user_id, (product.product_id, 1)))
            for user_id in ["user-1", "user-2", "user-2"]
        ]
        await service.update_payment_status(orders[1].order_id, PaymentUpdate(status=PaymentStatus.APPROVED))

        _, everything = await service.list_orders(admin)
        _, by_user = await service.list_orders(admin, OrderFilters(user_id="user-2"))
        approved, approved_total = await service.list_orders(
            admin, OrderFilters(payment_status=PaymentStatus.APPROVED)
        )

        assert everything == 3
        assert by_user == 2
        assert approved_total == 1
        assert approved[0].order_id == orders[1].order_id

    async def test_pagination(self, service, product, customer, order_request):
        for _ in range(5):
            await service.create_order(order_request("user-1", (product.product_id, 1)))

        page, total = await service.list_orders(customer, page=2, page_size=2)
        last, _ = await service.list_orders(customer, page=3, page_size=2)

        assert total == 5
        assert len(page) == 2
        assert len(last) == 1

    async def test_stats(self, service, product, admin, customer, order_request):
        approved = await service.create_order(order_request("user-1", (product.product_id, 1)))
        cancelled = await service.create_order(order_request("user-1", (product.product_id, 1)))
        await service.create_order(order_request("user-1", (product.product_id, 1)))

        await service.update_payment_status(approved.order_id, PaymentUpdate(status=PaymentStatus.APPROVED))
        await deliver(service, approved.order_id)
        await service.cancel_order(cancelled.order_id, customer)

        stats = await service.order_stats()

        assert stats.total_orders == 3
        assert stats.pending_payments == 2
        assert stats.approved_payments == 1
        assert stats.delivered_orders == 1
        assert stats.cancelled_orders == 1
        # 22000 + 4180 tax + 5000 shipping
        assert stats.approved_revenue == Decimal("31180")
        assert [(m.year, m.month, m.orders) for m in stats.monthly_revenue] == [
            (approved.created_at.year, approved.created_at.month, 1)
        ]

    async def test_date_filters_accept_offsets(self, service, product, admin, order_request):
        await service.create_order(order_request("user-1", (product.product_id, 1)))
        hour_ago = datetime.now(timezone(timedelta(hours=5))) - timedelta(hours=1)

        _, since_hour_ago = await service.list_orders(admin, OrderFilters(start_date=hour_ago))
        _, until_hour_ago = await service.list_orders(admin, OrderFilters(end_date=hour_ago))

        assert since_hour_ago == 1
        assert until_hour_ago == 0

    async def test_sorting(self, service, product, customer, order_request):
        for quantity in [2, 1, 3]:
            await service.create_order(order_request("user-1", (product.product_id, quantity)))

        cheapest_first, _ = await service.list_orders(
            customer, OrderFilters(sort_by=SortField.TOTAL, sort_order=SortOrder.ASC)
        )
        dearest_first, _ = await service.list_orders(customer, OrderFilters(sort_by=SortField.TOTAL))
        by_number, _ = await service.list_orders(
            customer, OrderFilters(sort_by=SortField.ORDER_NUMBER, sort_order=SortOrder.ASC)
        )

        assert [o.items[0].quantity for o in cheapest_first] == [1, 2, 3]
        assert [o.items[0].quantity for o in dearest_first] == [3, 2, 1]
        assert [o.order_number for o in by_number] == sorted(o.order_number for o in by_number)

    async def test_monthly_revenue(self, database, order_settings, product, order_request):
        """Approved revenue per month over the trailing year, newest first"""
        service = OrderService(database, order_settings, clock=lambda: datetime(2026, 10, 18, 12, 0))
        placed = {
            datetime(2026, 10, 2): PaymentStatus.APPROVED,
            datetime(2026, 10, 10): PaymentStatus.APPROVED,
            datetime(2026, 10, 5): PaymentStatus.PENDING,
            datetime(2026, 3, 15): PaymentStatus.APPROVED,
            datetime(2025, 10, 20): PaymentStatus.APPROVED,
            datetime(2025, 9, 30): PaymentStatus.APPROVED,
        }
        for created_at, status in placed.items():
            order = await service.create_order(order_request("user-1", (product.product_id, 1)))
            if status == PaymentStatus.APPROVED:
                await service.update_payment_status(order.order_id, PaymentUpdate(status=status))
            await set_created_at(database, order.order_id, created_at)

        stats = await service.order_stats()

        # Each order: 22000 + 4180 tax + 5000 shipping
        assert stats.monthly_revenue == (
            MonthlyRevenue(year=2026, month=10, orders=2, revenue=Decimal("62360.00")),
            MonthlyRevenue(year=2026, month=3, orders=1, revenue=Decimal("31180.00")),
            MonthlyRevenue(year=2025, month=10, orders=1, revenue=Decimal("31180.00")),
        )
        assert stats.approved_revenue == Decimal("155900")
