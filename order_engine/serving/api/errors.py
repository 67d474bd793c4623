"""
Engine Error Mapping

Translates engine errors into HTTP responses. This is the only place that
knows about status codes.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog

from order_engine.engine.errors import (
    DiscountRejected,
    Forbidden,
    InsufficientStock,
    InvalidOrderRequest,
    InvalidStateTransition,
    OrderEngineError,
    OrderNotFound,
    OrderNumberGenerationError,
    ProductInactive,
    ProductNotFound,
)

logger = structlog.get_logger(__name__)

STATUS_CODES = {
    OrderNotFound: 404,
    ProductNotFound: 404,
    Forbidden: 403,
    ProductInactive: 400,
    InsufficientStock: 400,
    InvalidOrderRequest: 400,
    InvalidStateTransition: 409,
    DiscountRejected: 422,
    OrderNumberGenerationError: 503,
}


async def engine_error_handler(request: Request, exc: OrderEngineError) -> JSONResponse:
    status_code = STATUS_CODES.get(type(exc), 500)

    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request rejected by order engine",
        path=request.url.path,
        error=exc.code,
        status_code=status_code,
    )

    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "detail": exc.message, "context": exc.details},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderEngineError, engine_error_handler)
