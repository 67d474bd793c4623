"""
Stock Ledger

Reserves and releases ``Product.stock`` with single conditional UPDATE
statements. Checking and decrementing happen in the same statement, so two
concurrent reservations can never both see the same stock value.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from order_engine.database.models import Product
from order_engine.engine.errors import InsufficientStock, ProductInactive, ProductNotFound

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReservedLine:
    """Snapshot of a product taken right after its stock was reserved"""
    product_id: uuid.UUID
    sku: str
    name: str
    quantity: int
    unit_price: Decimal


class StockLedger:
    """Atomic stock mutations against the catalog, bound to one transaction"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def reserve(self, product_id: uuid.UUID, quantity: int) -> ReservedLine:
        """
        Decrement stock by exactly ``quantity`` if enough is available.

        Raises:
            ProductNotFound, ProductInactive, InsufficientStock
        """
        if quantity < 1:
            raise ValueError("quantity must be positive")

        stmt = (
            update(Product)
            .where(
                Product.product_id == product_id,
                Product.is_active.is_(True),
                Product.stock >= quantity,
            )
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        if result.rowcount != 1:
            await self._raise_rejection(product_id, quantity)

        # The row is write-locked by the update above until commit
        row = (
            await self.session.execute(
                select(Product.sku, Product.name, Product.price, Product.stock)
                .where(Product.product_id == product_id)
            )
        ).one()

        logger.debug(
            "stock_reserved",
            product_id=str(product_id),
            quantity=quantity,
            remaining=row.stock,
        )
        return ReservedLine(
            product_id=product_id,
            sku=row.sku,
            name=row.name,
            quantity=quantity,
            unit_price=row.price,
        )

    async def release(self, product_id: uuid.UUID, quantity: int) -> None:
        """Return previously reserved units to stock."""
        if quantity < 1:
            raise ValueError("quantity must be positive")

        stmt = (
            update(Product)
            .where(Product.product_id == product_id)
            .values(stock=Product.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        if result.rowcount != 1:
            logger.error(
                "stock_release_failed",
                product_id=str(product_id),
                quantity=quantity,
            )
            raise ProductNotFound(product_id)

        logger.debug("stock_released", product_id=str(product_id), quantity=quantity)

    async def _raise_rejection(self, product_id: uuid.UUID, quantity: int) -> None:
        """Read the row to report why the conditional update matched nothing."""
        row = (
            await self.session.execute(
                select(Product.name, Product.is_active, Product.stock)
                .where(Product.product_id == product_id)
            )
        ).one_or_none()

        if row is None:
            raise ProductNotFound(product_id)
        if not row.is_active:
            raise ProductInactive(product_id, row.name)

        logger.info(
            "stock_insufficient",
            product_id=str(product_id),
            requested=quantity,
            available=row.stock,
        )
        raise InsufficientStock(product_id, quantity, row.stock)
