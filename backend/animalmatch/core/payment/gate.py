"""Pay-per-request gate.

The gate is a plain async function of a request description: it answers
Allowed or Denied and knows nothing about the web framework. The x402
resource server does the protocol work (challenge, paywall page, facilitator
verify/settle); the middleware in animalmatch.core.middleware adapts
Starlette requests to the gate.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

import httpx
import structlog
from x402 import (
    FacilitatorCapabilityError,
    PaymentPayload,
    PaymentRequirements,
    x402ResourceServer,
)
from x402.http import (
    PAYMENT_SIGNATURE_HEADER,
    FacilitatorClient,
    HTTPProcessResult,
    HTTPRequestContext,
    HTTPResponseInstructions,
    PaymentOption,
    PaywallConfig,
    ProcessSettleResult,
    RouteConfig,
    RouteConfigurationError,
    x402HTTPResourceServer,
)
from x402.http.facilitator_client_base import FacilitatorResponseError
from x402.mechanisms.svm import SCHEME_EXACT, SOLANA_MAINNET_CAIP2, normalize_network
from x402.mechanisms.svm.exact import ExactSvmServerScheme

from animalmatch.core.errors import ConfigurationError, PaymentGateError

logger = structlog.get_logger("animalmatch.payment.gate")


@dataclass(frozen=True)
class GateRequest:
    """Framework-neutral view of an incoming request.

    ``url`` is the full request URL including the query string; the paywall
    page retries exactly this URL once the payment is signed. Header names
    must be lowercase.
    """

    method: str
    path: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    query_params: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @property
    def payment_header(self) -> str | None:
        return self.header(PAYMENT_SIGNATURE_HEADER)


class GateRequestAdapter:
    """x402 HTTPAdapter over a GateRequest."""

    def __init__(self, request: GateRequest) -> None:
        self._request = request

    def get_header(self, name: str) -> str | None:
        return self._request.header(name)

    def get_method(self) -> str:
        return self._request.method

    def get_path(self) -> str:
        return self._request.path

    def get_url(self) -> str:
        return self._request.url

    def get_accept_header(self) -> str:
        return self._request.header("accept") or ""

    def get_user_agent(self) -> str:
        return self._request.header("user-agent") or ""

    def get_query_params(self) -> dict[str, str | list[str]]:
        return dict(self._request.query_params)

    def get_query_param(self, name: str) -> str | None:
        return self._request.query_params.get(name)

    def get_body(self) -> None:
        return None


def request_context(request: GateRequest) -> HTTPRequestContext:
    return HTTPRequestContext(
        adapter=GateRequestAdapter(request),
        path=request.path,
        method=request.method,
        payment_header=request.payment_header,
    )


@dataclass(frozen=True)
class Allowed:
    """The request may proceed.

    ``verification`` is None for unpriced routes; otherwise it holds the
    verified payment, which must be settled once the route has answered.
    """

    verification: HTTPProcessResult | None = None
    context: HTTPRequestContext | None = None

    @property
    def requirements(self) -> PaymentRequirements | None:
        return self.verification.payment_requirements if self.verification else None

    @property
    def payment(self) -> PaymentPayload | None:
        return self.verification.payment_payload if self.verification else None


@dataclass(frozen=True)
class Denied:
    """The request must not reach the route; answer with the challenge."""

    challenge: HTTPResponseInstructions

    @property
    def status_code(self) -> int:
        return self.challenge.status


GateDecision = Allowed | Denied


class PaymentGate(Protocol):
    """Anything that can gate requests and settle accepted payments."""

    async def check(self, request: GateRequest) -> GateDecision: ...

    async def settle(self, decision: Allowed) -> ProcessSettleResult: ...


@dataclass(frozen=True)
class PricedRoute:
    """Price and presentation of one protected route pattern."""

    price: str
    network: str
    description: str = ""
    mime_type: str = "application/json"
    max_timeout_seconds: int = 60


def resolve_network(network: str) -> str:
    """Turn a network name ("solana-devnet") or CAIP-2 id into a CAIP-2 id.

    Raises:
        ConfigurationError: If the network is not a Solana network
    """
    try:
        return normalize_network(network)
    except ValueError as e:
        raise ConfigurationError(f"Unsupported network: {network}") from e


def validate_price(scheme: ExactSvmServerScheme, price: str, network: str) -> str:
    """Return the price in atomic token units.

    Raises:
        ConfigurationError: If the price cannot be charged on the network
    """
    try:
        amount = scheme.parse_price(price, network).amount
    except ValueError as e:
        raise ConfigurationError(f"Invalid price: {price!r}") from e
    if int(amount) <= 0:
        raise ConfigurationError(f"Price {price!r} is below the smallest payable unit")
    return amount


class X402PaymentGate:
    """Gate that prices routes with the x402 exact scheme on Solana."""

    def __init__(
        self,
        pay_to: str,
        routes: Mapping[str, PricedRoute],
        facilitator: FacilitatorClient,
        app_name: str = "",
        app_logo: str = "",
    ) -> None:
        """Initialize payment gate.

        Nothing is fetched here; call start() (or let the first protected
        request do it) to load what the facilitator supports.

        Args:
            pay_to: Wallet address receiving payments
            routes: Route pattern -> price configuration
            facilitator: Facilitator client (verify, settle, supported kinds)
            app_name: Application name shown on the browser paywall
            app_logo: Logo URL shown on the browser paywall

        Raises:
            ConfigurationError: If a route uses an unknown network or bad price
        """
        if not pay_to:
            raise ConfigurationError("Payment gate requires a receiver address")

        scheme = ExactSvmServerScheme()
        server = x402ResourceServer(facilitator)
        x402_routes: dict[str, RouteConfig] = {}
        networks: set[str] = set()

        for pattern, route in routes.items():
            network = resolve_network(route.network)
            validate_price(scheme, route.price, network)
            networks.add(network)
            x402_routes[pattern] = RouteConfig(
                accepts=PaymentOption(
                    scheme=SCHEME_EXACT,
                    pay_to=pay_to,
                    price=route.price,
                    network=network,
                    max_timeout_seconds=route.max_timeout_seconds,
                ),
                description=route.description,
                mime_type=route.mime_type,
            )

        for network in networks:
            server.register(network, scheme)

        try:
            self._server = x402HTTPResourceServer(server, x402_routes)
        except RouteConfigurationError as e:
            raise ConfigurationError(str(e)) from e

        self.pay_to = pay_to
        self.routes = dict(routes)
        self.facilitator = facilitator
        self.paywall = PaywallConfig(
            app_name=app_name,
            app_logo=app_logo,
            testnet=SOLANA_MAINNET_CAIP2 not in networks,
        )
        self._ready = False
        self._start_lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self._ready

    async def start(self) -> None:
        """Load the facilitator's supported payment kinds.

        Succeeds once; after that unpaid requests are answered without
        talking to the facilitator. A failed attempt is not remembered, so
        the next protected request tries again.

        Raises:
            ConfigurationError: If the facilitator cannot serve the configured routes
            PaymentGateError: If the facilitator cannot be reached
        """
        if self._ready:
            return
        async with self._start_lock:
            if self._ready:
                return
            try:
                await asyncio.to_thread(self._server.initialize)
            except (RouteConfigurationError, FacilitatorCapabilityError) as e:
                raise ConfigurationError(str(e)) from e
            except (httpx.HTTPError, ValueError, RuntimeError) as e:
                logger.warning("Facilitator not ready", error=str(e))
                raise PaymentGateError(f"Facilitator unavailable: {e}") from e
            self._ready = True
            logger.info("Payment gate ready", routes=list(self.routes))

    async def check(self, request: GateRequest) -> GateDecision:
        """Decide whether a request may reach its route.

        Raises:
            PaymentGateError: If the facilitator cannot be reached or answers garbage
        """
        context = request_context(request)
        if not self._server.requires_payment(context):
            return Allowed()

        await self.start()

        try:
            result = await self._server.process_http_request(context, self.paywall)
        except FacilitatorResponseError as e:
            raise PaymentGateError(str(e), status_code=502) from e

        if result.type == "no-payment-required":
            return Allowed()

        if result.type == "payment-verified":
            logger.info("Payment verified", path=request.path)
            return Allowed(verification=result, context=context)

        challenge = result.response or HTTPResponseInstructions(
            status=402, headers={}, body={"error": "Payment required"}
        )
        if request.payment_header:
            logger.info("Payment rejected", path=request.path, status=challenge.status)
        else:
            logger.debug("Payment required", path=request.path)
        return Denied(challenge)

    async def settle(self, decision: Allowed) -> ProcessSettleResult:
        """Settle the payment carried by an Allowed decision.

        Facilitator failures come back as an unsuccessful result carrying a
        402 response; nothing is raised for them.

        Raises:
            ValueError: If the decision carries no payment
        """
        verification = decision.verification
        if verification is None or verification.payment_payload is None:
            raise ValueError("Nothing to settle for an unpriced request")
        return await self._server.process_settlement(
            verification.payment_payload,
            verification.payment_requirements,
            context=decision.context,
            declared_extensions=verification.declared_extensions,
            before_handler_settlement=verification.before_handler_settlement,
        )
