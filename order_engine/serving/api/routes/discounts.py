"""
Discount Code Endpoints

Lets a storefront preview a code before checkout. Quoting never redeems.
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from order_engine.engine.requests import Caller
from order_engine.engine.service import OrderService
from order_engine.serving.api.dependencies import get_caller, get_order_service

router = APIRouter()


class DiscountQuoteResponse(BaseModel):
    """Discount a code would grant on a subtotal"""
    code: str
    subtotal: Decimal
    discount_amount: Decimal
    description: Optional[str] = None


@router.get("/{code}/quote", response_model=DiscountQuoteResponse)
async def quote_discount(
    code: str,
    subtotal: Decimal = Query(..., ge=0),
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
) -> DiscountQuoteResponse:
    """
    Quote a discount code against ``subtotal``.

    Responds 422 with the rejection reason when the code is not usable.
    """
    outcome = await service.quote_discount(code, subtotal)
    return DiscountQuoteResponse(
        code=outcome.code,
        subtotal=subtotal,
        discount_amount=outcome.amount,
        description=outcome.record.description if outcome.record else None,
    )
