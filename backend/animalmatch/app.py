"""Application entry point for animalmatch."""

from __future__ import annotations

import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from x402.http import FacilitatorConfig, HTTPFacilitatorClient

from animalmatch import __version__
from animalmatch.core.catalog import CatalogStore, load_catalog
from animalmatch.core.config import Settings, get_settings, validate_payment_settings
from animalmatch.core.errors import PaymentGateError
from animalmatch.core.logging import setup_logging
from animalmatch.core.metrics import setup_metrics
from animalmatch.core.middleware import PaymentGateMiddleware, TracingMiddleware
from animalmatch.core.payment import PaymentGate, PricedRoute, X402PaymentGate
from animalmatch.core.routes import create_app_router

logger = structlog.get_logger("animalmatch.app")

STATIC_DIR = Path(__file__).parent / "static"


def create_payment_gate(settings: Settings) -> tuple[X402PaymentGate, HTTPFacilitatorClient]:
    """Build the x402 gate described by the settings.

    Raises:
        ConfigurationError: If the receiver address, network or price is unusable
    """
    validate_payment_settings(settings)
    facilitator = HTTPFacilitatorClient(FacilitatorConfig(url=settings.facilitator_url))
    route = PricedRoute(
        price=settings.price,
        network=settings.network,
        description=settings.resource_description,
        max_timeout_seconds=settings.max_timeout_seconds,
    )
    gate = X402PaymentGate(
        pay_to=settings.receiver_address,
        routes={pattern: route for pattern in settings.protected_routes},
        facilitator=facilitator,
        app_name=settings.app_name,
        app_logo=settings.app_logo,
    )
    return gate, facilitator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    logger.info(
        "Starting animalmatch",
        version=__version__,
        env=settings.env,
        host=settings.host_bind_address,
        port=settings.host_port,
        animals=len(app.state.catalog),
    )

    x402_gate: X402PaymentGate | None = app.state.x402_gate
    if x402_gate is not None:
        try:
            await x402_gate.start()
        except PaymentGateError:
            logger.warning("Payment gate will retry on the first paid request")

    yield

    facilitator: HTTPFacilitatorClient | None = app.state.facilitator
    if facilitator is not None:
        await facilitator.aclose()
        logger.info("Facilitator client closed")
    logger.info("Shutting down animalmatch")


def create_app(
    settings: Settings | None = None,
    gate: PaymentGate | None = None,
    catalog: CatalogStore | None = None,
    rng: random.Random | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The catalog is loaded and the payment gate validated here so that a
    misconfigured process fails before it serves anything.

    Args:
        settings: Settings to use (defaults to the cached settings)
        gate: Payment gate (defaults to an x402 gate built from settings)
        catalog: Animal catalog (defaults to loading settings.catalog_path)
        rng: Random source for tie-breaking (defaults to a fresh random.Random)

    Raises:
        ConfigurationError: If the catalog or payment settings are unusable
    """
    if settings is None:
        settings = get_settings()

    setup_logging(
        debug=settings.is_debug,
        logs_dir=settings.logs_dir if settings.log_to_file else None,
        level=settings.log_level,
    )

    if catalog is None:
        catalog = load_catalog(settings.catalog_path)

    facilitator: HTTPFacilitatorClient | None = None
    x402_gate: X402PaymentGate | None = None
    if gate is None:
        x402_gate, facilitator = create_payment_gate(settings)
        gate = x402_gate

    app = FastAPI(
        title="animalmatch",
        description="Match a name to an animal, one paid request at a time",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.catalog = catalog
    app.state.rng = rng if rng is not None else random.Random()
    app.state.facilitator = facilitator
    app.state.x402_gate = x402_gate

    # Added first so it sits innermost: the gate runs after tracing and metrics
    app.add_middleware(PaymentGateMiddleware, gate=gate)
    app.add_middleware(TracingMiddleware)

    setup_metrics(app, __version__)

    app.include_router(create_app_router())
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    return app


def main() -> None:
    """Main entry point."""
    import uvicorn

    settings = get_settings()
    app = create_app(settings)

    logger.info(
        "Starting uvicorn server",
        host=settings.host_bind_address,
        port=settings.host_port,
    )

    uvicorn.run(
        app,
        host=settings.host_bind_address,
        port=settings.host_port,
        log_config=None,  # We use structlog
    )


if __name__ == "__main__":
    main()
