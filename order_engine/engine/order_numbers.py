"""
Order Number Generator

Order numbers look like ``ORD2610184821``: a prefix, the UTC date as YYMMDD
and a random numeric suffix. A drawn number is checked against existing
orders and redrawn on a hit. After ``max_draws`` hits the suffix widens to
``fallback_suffix_digits``; if that space also yields only hits the generator
gives up with ``OrderNumberGenerationError``.

The existence check only narrows the window: the unique constraint on
``orders.order_number`` remains the authoritative guard (see OrderBuilder).
"""

import random
from datetime import datetime
from typing import Callable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from order_engine.config.settings import OrderSettings
from order_engine.database.models import Order
from order_engine.engine.clock import utcnow
from order_engine.engine.errors import OrderNumberGenerationError

logger = structlog.get_logger(__name__)


class OrderNumberGenerator:

    def __init__(
        self,
        session: Optional[AsyncSession],
        config: OrderSettings,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.prefix = config.number_prefix
        self.suffix_digits = config.number_suffix_digits
        self.fallback_suffix_digits = max(config.number_fallback_suffix_digits, config.number_suffix_digits)
        self.max_draws = config.number_max_draws
        self.rng = rng or random.SystemRandom()
        self.clock = clock

    def date_prefix(self) -> str:
        return f"{self.prefix}{self.clock().strftime('%y%m%d')}"

    def draw(self, digits: int) -> str:
        suffix = self.rng.randrange(10 ** digits)
        return f"{self.date_prefix()}{suffix:0{digits}d}"

    async def exists(self, order_number: str) -> bool:
        result = await self.session.execute(
            select(Order.order_id).where(Order.order_number == order_number)
        )
        return result.first() is not None

    async def generate(self) -> str:
        """
        Produce an order number not used by any existing order.

        Raises:
            OrderNumberGenerationError: every draw in both suffix widths collided
        """
        widths = [self.suffix_digits]
        if self.fallback_suffix_digits > self.suffix_digits:
            widths.append(self.fallback_suffix_digits)

        collisions = 0
        for digits in widths:
            for _ in range(self.max_draws):
                candidate = self.draw(digits)
                if not await self.exists(candidate):
                    if collisions:
                        logger.info("order_number_generated_after_collisions", collisions=collisions, digits=digits)
                    return candidate
                collisions += 1
                logger.warning("order_number_collision", order_number=candidate, digits=digits)

        logger.error("order_number_space_exhausted", collisions=collisions, prefix=self.date_prefix())
        raise OrderNumberGenerationError(
            f"No free order number after {collisions} draws",
            {"collisions": collisions},
        )
