"""FastAPI middleware for request/response handling."""

from __future__ import annotations

import structlog
from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp
from x402.http import HTTPResponseInstructions

from animalmatch.core.errors import PaymentGateError
from animalmatch.core.metrics import payment_gate_decisions_total, payment_settlements_total
from animalmatch.core.payment import Denied, GateRequest, PaymentGate
from animalmatch.core.tracing import TRACE_HEADER, generate_trace_id, trace_context

logger = structlog.get_logger("animalmatch.middleware")

GATE_UNAVAILABLE_ERROR = "Payment verification unavailable"
SETTLEMENT_FAILED_ERROR = "Settlement failed"


class TracingMiddleware(BaseHTTPMiddleware):
    """Middleware to add trace IDs to all requests."""

    async def dispatch(self, request: Request, call_next):
        """Bind a trace ID for the request and echo it in the X-Trace-ID header.

        An incoming X-Trace-ID header is reused so traces can span services.
        """
        trace_id = request.headers.get(TRACE_HEADER) or generate_trace_id()

        with trace_context(trace_id):
            logger.debug(
                "Processing request",
                method=request.method,
                path=request.url.path,
            )

            response = await call_next(request)
            response.headers[TRACE_HEADER] = trace_id

            logger.debug(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
            )

            return response


def gate_request_from(request: Request) -> GateRequest:
    """Describe a Starlette request to the payment gate."""
    return GateRequest(
        method=request.method,
        path=request.url.path,
        url=str(request.url.replace(fragment="")),
        headers={key.lower(): value for key, value in request.headers.items()},
        query_params=dict(request.query_params),
    )


def challenge_response(challenge: HTTPResponseInstructions) -> Response:
    """Render a 402 challenge (or failed settlement) produced by the gate."""
    if challenge.is_html:
        return HTMLResponse(
            challenge.body, status_code=challenge.status, headers=challenge.headers
        )
    return JSONResponse(
        challenge.body or {}, status_code=challenge.status, headers=challenge.headers
    )


class PaymentGateMiddleware(BaseHTTPMiddleware):
    """Consult the payment gate before any route runs.

    Denied requests get the gate's 402 challenge (an HTML paywall for
    browsers) and never reach the route. Paid requests are settled after the
    route answers successfully; a failed settlement replaces the route's
    response with a 402 so the result is not handed out unpaid.
    """

    def __init__(self, app: ASGIApp, gate: PaymentGate) -> None:
        super().__init__(app)
        self.gate = gate

    async def dispatch(self, request: Request, call_next):
        try:
            decision = await self.gate.check(gate_request_from(request))
        except PaymentGateError as e:
            payment_gate_decisions_total.labels(outcome="error").inc()
            logger.error("Payment gate check failed", path=request.url.path, error=str(e))
            return JSONResponse({"error": GATE_UNAVAILABLE_ERROR}, status_code=500)

        if isinstance(decision, Denied):
            payment_gate_decisions_total.labels(outcome="denied").inc()
            return challenge_response(decision.challenge)

        if decision.verification is None:
            return await call_next(request)

        payment_gate_decisions_total.labels(outcome="allowed").inc()
        response = await call_next(request)
        if response.status_code >= 400:
            return response

        try:
            settlement = await self.gate.settle(decision)
        except PaymentGateError as e:
            payment_settlements_total.labels(outcome="failed").inc()
            logger.error("Payment settlement failed", path=request.url.path, error=str(e))
            return JSONResponse({"error": SETTLEMENT_FAILED_ERROR}, status_code=402)

        if not settlement.success:
            payment_settlements_total.labels(outcome="failed").inc()
            logger.warning(
                "Payment settlement rejected",
                path=request.url.path,
                reason=settlement.error_reason,
            )
            if settlement.response is not None:
                return challenge_response(settlement.response)
            return JSONResponse(
                {"error": settlement.error_reason or SETTLEMENT_FAILED_ERROR},
                status_code=402,
                headers=settlement.headers,
            )

        payment_settlements_total.labels(outcome="success").inc()
        logger.info(
            "Payment settled",
            path=request.url.path,
            transaction=settlement.transaction,
            payer=settlement.payer,
        )
        response.headers.update(settlement.headers)
        return response
