"""
Order Engine Application

Main entry point: builds the API and wires the store handle and order
service into the application state.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
import structlog

from order_engine.config import Settings, get_settings
from order_engine.config.logging import configure_logging
from order_engine.database.connection import Database
from order_engine.engine.service import OrderService
from order_engine.serving.api.main import create_api_app

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    configure_logging(settings=settings)

    logger.info("Starting Order Engine API", environment=settings.app_env)

    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        database = Database(settings.database)
        await database.connect()
        if settings.database.create_tables:
            await database.create_all()
        app.state.database = database
        app.state.order_service = OrderService(database, settings.orders)
        logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    if owns_database:
        await app.state.database.close()


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Create the application.

    Args:
        settings: Application settings (defaults to ``get_settings()``)
        database: Already connected store handle. When given, the caller
            owns its lifecycle and the lifespan does not open or close it.
    """
    settings = settings or get_settings()
    app = create_api_app(settings, lifespan=lifespan)

    if database is not None:
        app.state.database = database
        app.state.order_service = OrderService(database, settings.orders)

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.app_env,
            "currency": settings.orders.currency,
            "documentation": "/docs",
        }

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve ``app`` with Uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
