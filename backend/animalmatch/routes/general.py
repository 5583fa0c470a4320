"""General API routes."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from animalmatch import __version__
from animalmatch.core.config import Settings
from animalmatch.core.tracing import get_trace_id

router = APIRouter(prefix="/api")
logger = structlog.get_logger("animalmatch.routes.general")


@router.get("/")
async def root() -> JSONResponse:
    """Service banner."""
    trace_id = get_trace_id()
    logger.info("Root endpoint accessed")
    return JSONResponse(
        {
            "message": "Guess the animal behind your name",
            "version": __version__,
            "status": "ok",
            "trace_id": trace_id,
        }
    )


@router.get("/health")
async def health() -> JSONResponse:
    """Health check endpoint."""
    logger.debug("Health check")
    return JSONResponse(
        {
            "status": "healthy",
            "trace_id": get_trace_id(),
        }
    )


@router.get("/config")
async def get_config(request: Request) -> JSONResponse:
    """Public settings read by the results page."""
    settings: Settings = request.app.state.settings
    return JSONResponse(
        {
            "app_name": settings.app_name,
            "price": settings.price,
            "network": settings.network,
            "retry_grace_seconds": settings.retry_grace_seconds,
            "trace_id": get_trace_id(),
        }
    )
