"""
FastAPI Application Factory

Creates and configures the API application: middleware, error mapping and
routers. Lifecycle wiring lives in ``order_engine.main``.
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from order_engine.config import Settings, get_settings
from order_engine.serving.api.errors import register_error_handlers
from order_engine.serving.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from order_engine.serving.api.routes import discounts_router, health_router, orders_router


def create_api_app(settings: Optional[Settings] = None, lifespan=None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Application settings (defaults to ``get_settings()``)
        lifespan: Optional lifespan context manager

    Returns:
        Configured FastAPI app instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Order Engine API",
        description="Order placement, inventory reservation and order lifecycle",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Add CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add compression
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    register_error_handlers(app)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(orders_router, prefix="/api/v1/orders", tags=["Orders"])
    app.include_router(discounts_router, prefix="/api/v1/discount-codes", tags=["Discounts"])

    return app
