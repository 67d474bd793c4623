"""
Order Queries

Read-side access to orders: single lookup, filtered listing and summary
statistics. Nothing here mutates state.
"""

import calendar
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import and_, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from order_engine.database.models import DeliveryStatus, Order, PaymentStatus
from order_engine.engine.clock import to_naive_utc, utcnow
from order_engine.engine.lifecycle import load_order
from order_engine.engine.pricing import quantize
from order_engine.engine.requests import Caller, OrderFilters, SortField, SortOrder

SORT_COLUMNS = {
    SortField.CREATED_AT: Order.created_at,
    SortField.TOTAL: Order.total,
    SortField.ORDER_NUMBER: Order.order_number,
}

REVENUE_MONTHS = 12


@dataclass(frozen=True)
class MonthlyRevenue:
    year: int
    month: int
    orders: int
    revenue: Decimal


@dataclass(frozen=True)
class OrderStats:
    total_orders: int
    pending_payments: int
    approved_payments: int
    delivered_orders: int
    cancelled_orders: int
    approved_revenue: Decimal
    monthly_revenue: Tuple[MonthlyRevenue, ...] = ()


def months_before(moment: datetime, months: int) -> datetime:
    """Same day and time ``months`` calendar months earlier, clamped to month end."""
    index = moment.year * 12 + moment.month - 1 - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class OrderQueries:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, order_id: uuid.UUID, caller: Caller) -> Optional[Order]:
        """Order visible to ``caller``; customers only see their own orders."""
        order = await load_order(self.session, order_id)
        if order is None:
            return None
        if not caller.is_admin and order.user_id != caller.user_id:
            return None
        return order

    def _conditions(self, caller: Caller, filters: OrderFilters) -> list:
        conditions = []
        if not caller.is_admin:
            conditions.append(Order.user_id == caller.user_id)
        elif filters.user_id:
            conditions.append(Order.user_id == filters.user_id)

        if filters.payment_status:
            conditions.append(Order.payment_status == filters.payment_status)
        if filters.delivery_status:
            conditions.append(Order.delivery_status == filters.delivery_status)
        if filters.payment_method:
            conditions.append(Order.payment_method == filters.payment_method)
        if filters.start_date:
            conditions.append(Order.created_at >= to_naive_utc(filters.start_date))
        if filters.end_date:
            conditions.append(Order.created_at <= to_naive_utc(filters.end_date))
        return conditions

    def _ordering(self, filters: OrderFilters) -> list:
        column = SORT_COLUMNS.get(SortField(filters.sort_by), Order.created_at)
        if SortOrder(filters.sort_order) == SortOrder.ASC:
            ordering = [column.asc()]
            tiebreak = Order.order_number.asc()
        else:
            ordering = [column.desc()]
            tiebreak = Order.order_number.desc()
        if column is not Order.order_number:
            ordering.append(tiebreak)
        return ordering

    async def search(
        self,
        caller: Caller,
        filters: OrderFilters,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Order], int]:
        """
        Page through orders, newest first unless ``filters`` picks another
        sort column or direction. Ties fall back to the order number.

        Returns:
            (orders on the page, total matching orders)
        """
        query = select(Order).options(selectinload(Order.items))
        count_query = select(func.count(Order.order_id))

        conditions = self._conditions(caller, filters)
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        total = (await self.session.execute(count_query)).scalar() or 0

        offset = (page - 1) * page_size
        query = query.order_by(*self._ordering(filters)).offset(offset).limit(page_size)
        orders = (await self.session.execute(query)).scalars().all()

        return list(orders), total

    async def monthly_revenue(self, now: Optional[datetime] = None) -> Tuple[MonthlyRevenue, ...]:
        """
        Approved revenue per calendar month over the trailing twelve months,
        newest month first.
        """
        since = months_before(to_naive_utc(now or utcnow()), REVENUE_MONTHS)
        year = extract("year", Order.created_at)
        month = extract("month", Order.created_at)

        query = (
            select(
                year.label("year"),
                month.label("month"),
                func.count(Order.order_id).label("orders"),
                func.coalesce(func.sum(Order.total), 0).label("revenue"),
            )
            .where(
                Order.payment_status == PaymentStatus.APPROVED,
                Order.created_at >= since,
            )
            .group_by(year, month)
            .order_by(year.desc(), month.desc())
            .limit(REVENUE_MONTHS)
        )
        rows = (await self.session.execute(query)).all()

        return tuple(
            MonthlyRevenue(
                year=int(row.year),
                month=int(row.month),
                orders=row.orders,
                revenue=quantize(Decimal(str(row.revenue))),
            )
            for row in rows
        )

    async def stats(self, now: Optional[datetime] = None) -> OrderStats:
        """Order counts per status and revenue from approved payments."""
        query = select(
            func.count(Order.order_id).label("total_orders"),
            func.count(Order.order_id).filter(Order.payment_status == PaymentStatus.PENDING).label("pending"),
            func.count(Order.order_id).filter(Order.payment_status == PaymentStatus.APPROVED).label("approved"),
            func.count(Order.order_id).filter(Order.delivery_status == DeliveryStatus.DELIVERED).label("delivered"),
            func.count(Order.order_id).filter(Order.delivery_status == DeliveryStatus.CANCELLED).label("cancelled"),
            func.coalesce(
                func.sum(Order.total).filter(Order.payment_status == PaymentStatus.APPROVED), 0
            ).label("revenue"),
        )
        row = (await self.session.execute(query)).one()

        return OrderStats(
            total_orders=row.total_orders or 0,
            pending_payments=row.pending or 0,
            approved_payments=row.approved or 0,
            delivered_orders=row.delivered or 0,
            cancelled_orders=row.cancelled or 0,
            approved_revenue=Decimal(str(row.revenue or 0)),
            monthly_revenue=await self.monthly_revenue(now),
        )
