"""
Unit Tests - Order Number Generation
"""
import random
import re
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from order_engine.config import OrderSettings
from order_engine.engine.errors import OrderNumberGenerationError
from order_engine.engine.order_numbers import OrderNumberGenerator


def fixed_clock() -> datetime:
    return datetime(2026, 10, 18, 9, 30)


def make_generator(exists: AsyncMock, **config) -> OrderNumberGenerator:
    generator = OrderNumberGenerator(
        None,
        OrderSettings(**config),
        rng=random.Random(42),
        clock=fixed_clock,
    )
    generator.exists = exists
    return generator


class TestOrderNumberGenerator:
    """Tests for OrderNumberGenerator"""

    async def test_format(self):
        generator = make_generator(AsyncMock(return_value=False))

        number = await generator.generate()

        assert re.fullmatch(r"ORD261018\d{4}", number)

    async def test_custom_prefix(self):
        generator = make_generator(AsyncMock(return_value=False), number_prefix="CAF")

        number = await generator.generate()

        assert number.startswith("CAF261018")

    async def test_redraws_on_collision(self):
        exists = AsyncMock(side_effect=[True, True, False])
        generator = make_generator(exists)

        number = await generator.generate()

        assert exists.await_count == 3
        assert len(number) == len("ORD261018") + 4

    async def test_widens_suffix_after_max_draws(self):
        exists = AsyncMock(side_effect=[True, True, True, False])
        generator = make_generator(exists, number_max_draws=3)

        number = await generator.generate()

        assert re.fullmatch(r"ORD261018\d{8}", number)
        assert exists.await_count == 4

    async def test_gives_up_when_every_draw_collides(self):
        exists = AsyncMock(return_value=True)
        generator = make_generator(exists, number_max_draws=5)

        with pytest.raises(OrderNumberGenerationError) as exc_info:
            await generator.generate()

        # One pass per suffix width
        assert exists.await_count == 10
        assert exc_info.value.details == {"collisions": 10}

    async def test_no_widening_when_fallback_not_wider(self):
        exists = AsyncMock(return_value=True)
        generator = make_generator(
            exists,
            number_max_draws=5,
            number_fallback_suffix_digits=4,
        )

        with pytest.raises(OrderNumberGenerationError):
            await generator.generate()

        assert exists.await_count == 5

    def test_suffix_is_zero_padded(self):
        generator = make_generator(AsyncMock())
        generator.rng = random.Random()
        generator.rng.randrange = lambda n: 7

        assert generator.draw(4) == "ORD2610180007"
