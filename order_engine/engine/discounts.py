"""
Discount Validator

Decides whether a discount code is redeemable against a subtotal, computes its
amount, and redeems it. Redemption is a conditional UPDATE that re-checks the
usage cap, so ``used_count`` cannot exceed ``max_uses`` under concurrency.

Two entry points:
- ``evaluate``: read-only, raises ``DiscountRejected`` (hard-fail callers)
- ``apply``: evaluate + redeem, degrades any rejection to a zero discount
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from order_engine.database.models import DiscountCode, DiscountKind
from order_engine.engine.clock import utcnow
from order_engine.engine.errors import DiscountRejected, DiscountRejection
from order_engine.engine.pricing import quantize

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DiscountOutcome:
    """Result of evaluating or applying a code"""
    code: Optional[str]
    amount: Decimal
    applied: bool
    rejection: Optional[DiscountRejection] = None
    record: Optional[DiscountCode] = None

    @classmethod
    def none(cls, code: Optional[str] = None, rejection: Optional[DiscountRejection] = None) -> "DiscountOutcome":
        return cls(code=code, amount=Decimal("0"), applied=False, rejection=rejection)


def normalize_code(code: str) -> str:
    return code.strip().upper()


def check_redeemable(record: Optional[DiscountCode], subtotal: Decimal, now: datetime, code: str = "") -> None:
    """
    Raise ``DiscountRejected`` if ``record`` cannot be redeemed right now.

    Checks run in a fixed order: existence, active flag, validity window,
    usage cap, minimum amount.
    """
    if record is None:
        raise DiscountRejected(code, DiscountRejection.CODE_NOT_FOUND)
    if not record.is_active:
        raise DiscountRejected(record.code, DiscountRejection.CODE_INACTIVE)
    if now < record.valid_from or now > record.valid_until:
        raise DiscountRejected(record.code, DiscountRejection.OUTSIDE_VALIDITY_WINDOW)
    if record.max_uses is not None and record.used_count >= record.max_uses:
        raise DiscountRejected(record.code, DiscountRejection.USAGE_CAP_REACHED)
    if record.min_amount is not None and subtotal < record.min_amount:
        raise DiscountRejected(record.code, DiscountRejection.BELOW_MINIMUM_AMOUNT)


def compute_discount(record: DiscountCode, subtotal: Decimal, precision: Decimal = Decimal("0.01")) -> Decimal:
    """Raw discount for the code, clamped to ``max_discount`` and to the subtotal"""
    if record.kind == DiscountKind.PERCENTAGE:
        amount = Decimal(subtotal) * Decimal(record.value) / Decimal(100)
    else:
        amount = Decimal(record.value)

    if record.max_discount is not None and amount > record.max_discount:
        amount = Decimal(record.max_discount)

    # Never credit more than the order is worth
    amount = min(amount, Decimal(subtotal))
    return quantize(amount, precision)


class DiscountValidator:
    """Discount checks and redemption, bound to one transaction"""

    def __init__(
        self,
        session: AsyncSession,
        precision: Decimal = Decimal("0.01"),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.precision = precision
        self.clock = clock

    async def _load(self, code: str) -> Optional[DiscountCode]:
        result = await self.session.execute(
            select(DiscountCode).where(DiscountCode.code == code)
        )
        return result.scalar_one_or_none()

    async def evaluate(self, code: str, subtotal: Decimal) -> DiscountOutcome:
        """
        Compute the discount ``code`` would grant on ``subtotal`` without
        redeeming it.

        Raises:
            DiscountRejected: with the first failing reason
        """
        code = normalize_code(code)
        record = await self._load(code)
        check_redeemable(record, subtotal, self.clock(), code)

        return DiscountOutcome(
            code=record.code,
            amount=compute_discount(record, subtotal, self.precision),
            applied=True,
            record=record,
        )

    async def apply(self, code: str, subtotal: Decimal) -> DiscountOutcome:
        """
        Evaluate and redeem ``code``. Must run in the same transaction that
        persists the order, so a rolled-back order also rolls back the
        redemption.

        Returns:
            DiscountOutcome: ``applied`` is False with ``rejection`` set when
            the code could not be redeemed; the amount is then zero
        """
        code = normalize_code(code)
        try:
            outcome = await self.evaluate(code, subtotal)
        except DiscountRejected as e:
            logger.info("discount_rejected", code=code, reason=e.reason.value)
            return DiscountOutcome.none(code, e.reason)

        if not await self._redeem(code):
            logger.info(
                "discount_rejected",
                code=code,
                reason=DiscountRejection.USAGE_CAP_REACHED.value,
                lost_race=True,
            )
            return DiscountOutcome.none(code, DiscountRejection.USAGE_CAP_REACHED)

        await self.session.refresh(outcome.record, attribute_names=["used_count"])
        logger.info(
            "discount_redeemed",
            code=code,
            amount=str(outcome.amount),
            used_count=outcome.record.used_count,
        )
        return outcome

    async def _redeem(self, code: str) -> bool:
        """Increment ``used_count`` only while the code is still redeemable."""
        now = self.clock()
        stmt = (
            update(DiscountCode)
            .where(
                DiscountCode.code == code,
                DiscountCode.is_active.is_(True),
                DiscountCode.valid_from <= now,
                DiscountCode.valid_until >= now,
                or_(
                    DiscountCode.max_uses.is_(None),
                    DiscountCode.used_count < DiscountCode.max_uses,
                ),
            )
            .values(used_count=DiscountCode.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
