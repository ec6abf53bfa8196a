"""
API Routes Package
HTTP endpoints of the relay.
"""

from fastapi import APIRouter

from .health_routes import router as health_router
from .webhook_routes import router as webhook_router

router = APIRouter()

router.include_router(health_router)
router.include_router(webhook_router)

__all__ = [
    "router",
    "health_router",
    "webhook_router",
]
