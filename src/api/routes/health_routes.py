"""
Health Check API Routes
Liveness, health and Prometheus endpoints.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST
from pydantic import BaseModel

from src.config.constants import SERVICE_NAME, SERVICE_VERSION
from src.dependencies import ContainerDep

router = APIRouter(tags=["health"])


class HealthStatus(BaseModel):
    """Health status response model"""
    status: str
    service: str
    version: str
    environment: str
    uptime_seconds: float
    timestamp: datetime


@router.get(
    "/",
    summary="Service status",
    description="Liveness check with conversation counters"
)
async def service_status(container: ContainerDep) -> Dict[str, Any]:
    """
    Report that the relay is running

    Returns:
        Service name, version, uptime and memory counters
    """
    return container.status()


@router.get(
    "/health",
    response_model=HealthStatus,
    summary="Basic health check",
    description="Simple health check endpoint for load balancers"
)
async def health_check(container: ContainerDep) -> HealthStatus:
    status = container.status()
    return HealthStatus(
        status="healthy",
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        environment=container.settings.ENVIRONMENT.value,
        uptime_seconds=status["uptime_seconds"],
        timestamp=datetime.now(timezone.utc)
    )


@router.get("/metrics", summary="Prometheus metrics")
async def prometheus_metrics(container: ContainerDep) -> Response:
    """Prometheus metrics endpoint."""
    return Response(container.metrics.export(), media_type=CONTENT_TYPE_LATEST)
