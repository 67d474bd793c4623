"""
Pricing Calculator

Pure price arithmetic on Decimal values. Every stored component is quantized
to the currency precision before the total is summed, so the total can always
be recomputed exactly from the stored components.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple


def quantize(amount: Decimal, precision: Decimal = Decimal("0.01")) -> Decimal:
    """Round a monetary amount half-up to the currency precision"""
    return Decimal(amount).quantize(precision, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal

    @property
    def tax_base(self) -> Decimal:
        return self.subtotal - self.discount

    def recompute_total(self) -> Decimal:
        """Total rebuilt from the stored components"""
        return self.subtotal - self.discount + self.tax + self.shipping


class PricingCalculator:
    """
    Computes the price breakdown of an order.

    Args:
        tax_rate: Fraction applied to ``subtotal - discount`` (0.19 for 19%)
        shipping_fee: Flat fee added to every order
        precision: Smallest currency unit
    """

    def __init__(
        self,
        tax_rate: Decimal,
        shipping_fee: Decimal,
        precision: Decimal = Decimal("0.01"),
    ):
        self.tax_rate = Decimal(tax_rate)
        self.shipping_fee = Decimal(shipping_fee)
        self.precision = Decimal(precision)

    def line_total(self, unit_price: Decimal, quantity: int) -> Decimal:
        return quantize(Decimal(unit_price) * quantity, self.precision)

    def subtotal(self, lines: Iterable[Tuple[Decimal, int]]) -> Decimal:
        """Sum of line totals for ``(unit_price, quantity)`` pairs"""
        total = Decimal("0")
        for unit_price, quantity in lines:
            total += self.line_total(unit_price, quantity)
        return quantize(total, self.precision)

    def price(self, subtotal: Decimal, discount: Decimal = Decimal("0")) -> PriceBreakdown:
        subtotal = quantize(subtotal, self.precision)
        discount = quantize(discount, self.precision)
        if discount < 0 or discount > subtotal:
            raise ValueError("discount must be between 0 and the subtotal")

        tax_base = subtotal - discount
        tax = quantize(tax_base * self.tax_rate, self.precision)
        shipping = quantize(self.shipping_fee, self.precision)

        return PriceBreakdown(
            subtotal=subtotal,
            discount=discount,
            shipping=shipping,
            tax=tax,
            total=tax_base + tax + shipping,
        )
