"""Application routes."""

from __future__ import annotations

import structlog
from fastapi import APIRouter

from animalmatch.routes import animals, general

logger = structlog.get_logger("animalmatch.routes")


def create_app_router() -> APIRouter:
    """Create and configure main application router."""
    router = APIRouter()
    router.include_router(general.router, tags=["general"])
    router.include_router(animals.router, tags=["animals"])
    logger.debug("Included general and animals routers in app_router")
    return router
