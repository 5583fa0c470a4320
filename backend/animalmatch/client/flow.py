"""Caller-side flow for a paid animal lookup.

The flow issues one request; a 402 on the first attempt sends the user to
the gate's own paywall page, and the page the user lands on afterwards
calls ``resume`` once. A second 402 after that is reported as a failure,
so the flow never loops.
"""

from __future__ import annotations

import asyncio
import webbrowser
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Protocol

import httpx
import structlog

from animalmatch.core.models import AnimalResponse

logger = structlog.get_logger("animalmatch.client.flow")

ANIMALS_PATH = "/api/animals"

EMPTY_NAME_ERROR = "Please enter your name"
PAYMENT_NOT_COMPLETED_ERROR = (
    "Payment required but the payment may not have completed. "
    "Check that the receiver address is a wallet address (not a token account)."
)


class FlowState(Enum):
    """Where a lookup currently stands."""

    IDLE = "idle"
    REQUESTING = "requesting"
    SUCCESS = "success"
    PAYMENT_PENDING = "payment_pending"
    FAILED = "failed"


class Navigator(Protocol):
    """Sends the user somewhere the payment gate can show its own UI."""

    def navigate(self, url: str) -> None: ...


class BrowserNavigator:
    """Open the paywall in the system web browser."""

    def navigate(self, url: str) -> None:
        webbrowser.open(url)


class AnimalLookupFlow:
    """State machine for requesting an animal and reacting to payment challenges."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        navigator: Navigator | None = None,
        retry_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize lookup flow.

        Args:
            client: HTTP client whose base_url points at the service. Reusing
                one client keeps its cookies, so the gate can see a session
                started on the paywall.
            navigator: Where to send the user when payment is needed
            retry_delay: Grace period before the post-redirect retry
            sleep: Awaitable delay, replaceable in tests
        """
        self.client = client
        self.navigator = navigator if navigator is not None else BrowserNavigator()
        self.retry_delay = retry_delay
        self.sleep = sleep

        self.state = FlowState.IDLE
        self.result: AnimalResponse | None = None
        self.error: str | None = None
        self.show_input = True
        self._resumed = False

    @property
    def loading(self) -> bool:
        return self.state is FlowState.REQUESTING

    def lookup_url(self, name: str) -> str:
        """Absolute URL of the retrieval endpoint for ``name``."""
        return str(self.client.base_url.join(ANIMALS_PATH).copy_merge_params({"name": name}))

    async def submit(self, name: str) -> FlowState:
        """Look up ``name`` as a first attempt."""
        name = name.strip()
        if not name:
            self.error = EMPTY_NAME_ERROR
            return self.state
        return await self._fetch(name, is_retry=False)

    async def resume(self, name: str) -> FlowState:
        """Retry after returning from the paywall with ``name`` pre-filled.

        Only the first call does anything; the flow allows a single retry.
        """
        if self._resumed or self.result is not None or not name:
            return self.state
        self._resumed = True

        await self.sleep(self.retry_delay)
        return await self._fetch(name, is_retry=True)

    async def _fetch(self, name: str, is_retry: bool) -> FlowState:
        self.state = FlowState.REQUESTING
        self.error = None

        try:
            response = await self.client.get(
                ANIMALS_PATH,
                params={"name": name},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.warning("Animal request failed", name=name, error=str(e))
            return self._fail(str(e) or "Failed to fetch animal")

        if response.status_code == 402:
            if not is_retry:
                url = self.lookup_url(name)
                logger.info("Payment required, opening paywall", url=url)
                self.state = FlowState.PAYMENT_PENDING
                self.navigator.navigate(url)
                return self.state

            logger.error("Payment still required after retry", body=response.text)
            return self._fail(PAYMENT_NOT_COMPLETED_ERROR)

        if not response.is_success:
            logger.error("Animal request rejected", status_code=response.status_code)
            return self._fail(
                f"Error {response.status_code}: {response.text or response.reason_phrase}"
            )

        try:
            self.result = AnimalResponse.model_validate(response.json())
        except ValueError as e:
            logger.error("Unexpected animal payload", error=str(e))
            return self._fail("Unexpected response from server")

        self.state = FlowState.SUCCESS
        self.show_input = False
        return self.state

    def _fail(self, message: str) -> FlowState:
        self.state = FlowState.FAILED
        self.error = message
        return self.state
