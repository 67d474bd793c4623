"""
Health Check Endpoints

Liveness and readiness checks plus a detailed health report. Only the
relational store is a hard dependency of the order engine.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from order_engine.database.connection import Database
from order_engine.serving.api.dependencies import get_database

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    database: Database = Depends(get_database),
) -> HealthResponse:
    """Report database connectivity and latency along with build information."""
    settings = request.app.state.settings
    database_check = await database.health()

    return HealthResponse(
        status=database_check["status"],
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks={"database": database_check},
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Process is up; never touches the database."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(
    response: Response,
    database: Database = Depends(get_database),
) -> Dict[str, str]:
    """
    Ready to take orders. Responds 503 while the database is unreachable so
    the load balancer stops routing checkout traffic here.
    """
    if (await database.health())["status"] != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}
    return {"status": "ready"}
