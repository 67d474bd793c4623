"""
Demo Catalog Seeding

Loads a small coffee catalog and the welcome discount codes into an empty
store. Rows that already exist (matched by SKU or code) are left untouched,
so running it twice is harmless.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List

import structlog
from sqlalchemy import select

from order_engine.database.connection import Database
from order_engine.database.models import DiscountCode, DiscountKind, Product
from order_engine.engine.clock import utcnow

logger = structlog.get_logger(__name__)


DEMO_PRODUCTS: List[Dict[str, Any]] = [
    {"sku": "CAFE-MAR-500", "name": "Café Premium Marinilla", "price": Decimal("28000"), "stock": 50},
    {"sku": "CAFE-GUA-500", "name": "Café Especial Guarne", "price": Decimal("32000"), "stock": 30},
    {"sku": "CAFE-TRA-500", "name": "Café Tradicional", "price": Decimal("22000"), "stock": 100},
    {"sku": "CAFE-DES-500", "name": "Café Descafeinado", "price": Decimal("25000"), "stock": 40},
    {"sku": "PACK-DEG-001", "name": "Pack Degustación", "price": Decimal("45000"), "stock": 20},
    {"sku": "CAFE-HON-250", "name": "Café Honey Process", "price": Decimal("38000"), "stock": 25},
    {"sku": "CAFE-GEI-250", "name": "Café Geisha", "price": Decimal("55000"), "stock": 15},
    {"sku": "CAFE-CBR-001", "name": "Café Cold Brew", "price": Decimal("30000"), "stock": 35},
]


def demo_discount_codes() -> List[Dict[str, Any]]:
    now = utcnow()
    return [
        {
            "code": "BIENVENIDO10",
            "description": "Welcome discount 10%",
            "kind": DiscountKind.PERCENTAGE,
            "value": Decimal("10"),
            "min_amount": Decimal("20000"),
            "max_uses": 100,
            "valid_from": now,
            "valid_until": now + timedelta(days=90),
        },
        {
            "code": "CAFE5MIL",
            "description": "5,000 off",
            "kind": DiscountKind.FIXED_AMOUNT,
            "value": Decimal("5000"),
            "min_amount": Decimal("30000"),
            "max_uses": 50,
            "valid_from": now,
            "valid_until": now + timedelta(days=30),
        },
        {
            "code": "VERANO15",
            "description": "Summer discount 15%",
            "kind": DiscountKind.PERCENTAGE,
            "value": Decimal("15"),
            "min_amount": Decimal("40000"),
            "valid_from": now,
            "valid_until": now + timedelta(days=60),
        },
    ]


async def seed_catalog(database: Database) -> Dict[str, int]:
    """
    Insert missing demo products and discount codes.

    Returns:
        Number of rows inserted per table
    """
    inserted = {"products": 0, "discount_codes": 0}

    async with database.transaction() as session:
        existing_skus = set((await session.execute(select(Product.sku))).scalars().all())
        for data in DEMO_PRODUCTS:
            if data["sku"] in existing_skus:
                continue
            session.add(Product(is_active=True, **data))
            inserted["products"] += 1

        existing_codes = set((await session.execute(select(DiscountCode.code))).scalars().all())
        for data in demo_discount_codes():
            if data["code"] in existing_codes:
                continue
            session.add(DiscountCode(is_active=True, used_count=0, **data))
            inserted["discount_codes"] += 1

    logger.info("Demo catalog seeded", **inserted)
    return inserted
