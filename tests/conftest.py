"""
Test Suite Configuration
"""
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from sqlalchemy import select

from order_engine.config import DatabaseSettings, OrderSettings, Settings
from order_engine.database.connection import Database
from order_engine.database.models import (
    DiscountCode,
    DiscountKind,
    PaymentMethod,
    Product,
)
from order_engine.engine.clock import utcnow
from order_engine.engine.requests import Caller, NewOrder, OrderLine, Role
from order_engine.engine.service import OrderService

SHIPPING_ADDRESS = {
    "street": "Calle 10 # 20-30",
    "city": "Marinilla",
    "department": "Antioquia",
    "zip_code": "054020",
    "country": "CO",
}


@pytest.fixture
def database_settings(tmp_path) -> DatabaseSettings:
    """File-backed SQLite so concurrent transactions get separate connections"""
    return DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")


@pytest.fixture
def test_settings(database_settings) -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
        database=database_settings,
    )


@pytest.fixture
def order_settings() -> OrderSettings:
    return OrderSettings()


@pytest.fixture
async def database(database_settings) -> AsyncGenerator[Database, None]:
    """Connected database with the schema created"""
    db = Database(database_settings)
    await db.connect()
    await db.create_all()

    yield db

    await db.close()


@pytest.fixture
def service(database, order_settings) -> OrderService:
    return OrderService(database, order_settings)


@pytest.fixture
def add_product(database):
    """Factory inserting a catalog product"""

    async def _add(
        sku: str,
        price: str = "10000",
        stock: int = 10,
        is_active: bool = True,
        name: str = None,
    ) -> Product:
        product = Product(
            sku=sku,
            name=name or f"Product {sku}",
            price=Decimal(price),
            stock=stock,
            is_active=is_active,
        )
        async with database.transaction() as session:
            session.add(product)
        return product

    return _add


@pytest.fixture
def add_discount(database):
    """Factory inserting a discount code valid from yesterday until tomorrow"""

    async def _add(
        code: str,
        kind: DiscountKind = DiscountKind.PERCENTAGE,
        value: str = "10",
        min_amount: str = None,
        max_discount: str = None,
        max_uses: int = None,
        used_count: int = 0,
        is_active: bool = True,
        valid_from=None,
        valid_until=None,
    ) -> DiscountCode:
        now = utcnow()
        record = DiscountCode(
            code=code,
            kind=kind,
            value=Decimal(value),
            min_amount=Decimal(min_amount) if min_amount is not None else None,
            max_discount=Decimal(max_discount) if max_discount is not None else None,
            max_uses=max_uses,
            used_count=used_count,
            is_active=is_active,
            valid_from=valid_from or now - timedelta(days=1),
            valid_until=valid_until or now + timedelta(days=1),
        )
        async with database.transaction() as session:
            session.add(record)
        return record

    return _add


@pytest.fixture
def stock_of(database):
    """Current stock of a product, read fresh from the store"""

    async def _stock(product_id) -> int:
        async with database.session() as session:
            result = await session.execute(
                select(Product.stock).where(Product.product_id == product_id)
            )
            return result.scalar_one()

    return _stock


@pytest.fixture
def used_count_of(database):

    async def _used(code: str) -> int:
        async with database.session() as session:
            result = await session.execute(
                select(DiscountCode.used_count).where(DiscountCode.code == code)
            )
            return result.scalar_one()

    return _used


@pytest.fixture
def customer() -> Caller:
    return Caller(user_id="user-1", role=Role.CUSTOMER)


@pytest.fixture
def other_customer() -> Caller:
    return Caller(user_id="user-2", role=Role.CUSTOMER)


@pytest.fixture
def admin() -> Caller:
    return Caller(user_id="admin-1", role=Role.ADMIN)


def new_order(user_id: str, *lines, discount_code: str = None, **kwargs) -> NewOrder:
    """Build a NewOrder from ``(product_id, quantity)`` pairs"""
    return NewOrder(
        user_id=user_id,
        items=[OrderLine(product_id=p, quantity=q) for p, q in lines],
        shipping_address=kwargs.pop("shipping_address", SHIPPING_ADDRESS),
        payment_method=kwargs.pop("payment_method", PaymentMethod.ONLINE),
        discount_code=discount_code,
        **kwargs,
    )


@pytest.fixture
def order_request():
    """Factory building a NewOrder: ``order_request(user_id, (product_id, qty), ...)``"""
    return new_order
