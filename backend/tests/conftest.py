"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from prometheus_client import REGISTRY
from x402 import (
    PaymentPayload,
    PaymentRequired,
    PaymentRequirements,
    SettleResponse,
    SupportedKind,
    SupportedResponse,
    VerifyResponse,
)
from x402.http import (
    PAYMENT_REQUIRED_HEADER,
    PAYMENT_RESPONSE_HEADER,
    HTTPProcessResult,
    HTTPResponseInstructions,
    ProcessSettleResult,
    encode_payment_required_header,
    encode_payment_response_header,
)
from x402.mechanisms.svm import SOLANA_DEVNET_CAIP2, USDC_DEVNET_ADDRESS

from animalmatch.core.catalog import AnimalRecord, CatalogStore
from animalmatch.core.config import Settings
from animalmatch.core.payment import (
    Allowed,
    Denied,
    GateRequest,
    PricedRoute,
    X402PaymentGate,
)

RECEIVER = "CmGgLQL36Y9ubtTsy2zmE46TAxwCBm66onZmPPhUWNqv"
FEE_PAYER = "EwWqGE4ZFKLofuestmU4LDdK7XM1N4ALgdZccwYugwGd"

SAMPLE_ANIMALS = [
    {"name": "Ant", "description": "Small and strong."},
    {"name": "Cat", "description": "Naps a lot."},
    {"name": "Tac", "description": "A cat spelled backwards."},
    {"name": "Dog", "description": "Loyal friend."},
    {"name": "Llama", "description": "Spits when annoyed."},
]


@pytest.fixture(autouse=True)
def reset_prometheus_registry():
    """Reset the Prometheus registry around each test.

    setup_metrics() registers instrumentator metrics in the global registry,
    so creating an app in more than one test would otherwise fail with
    "Duplicated timeseries" errors.
    """
    for collector in list(REGISTRY._collector_to_names.keys()):
        REGISTRY.unregister(collector)

    yield

    for collector in list(REGISTRY._collector_to_names.keys()):
        REGISTRY.unregister(collector)


@pytest.fixture
def sample_catalog() -> CatalogStore:
    """A small catalog with one tie (Cat/Tac)."""
    return CatalogStore([AnimalRecord(**animal) for animal in SAMPLE_ANIMALS])


@pytest.fixture
def catalog_file(tmp_path: Path) -> Path:
    """SAMPLE_ANIMALS written to a JSON file."""
    path = tmp_path / "animals.json"
    path.write_text(json.dumps(SAMPLE_ANIMALS), encoding="utf-8")
    return path


@pytest.fixture
def settings(tmp_path: Path, catalog_file: Path) -> Settings:
    """Settings isolated to a temporary data directory."""
    return Settings(
        env="testing",
        data_dir=tmp_path,
        catalog_file=catalog_file,
        receiver_address=RECEIVER,
        network="solana-devnet",
        facilitator_url="https://facilitator.test",
    )


def make_requirements() -> PaymentRequirements:
    return PaymentRequirements(
        scheme="exact",
        network=SOLANA_DEVNET_CAIP2,
        asset=USDC_DEVNET_ADDRESS,
        amount="1000",
        pay_to=RECEIVER,
        max_timeout_seconds=60,
        extra={"feePayer": FEE_PAYER},
    )


def settled(transaction: str = "tx-123") -> ProcessSettleResult:
    """A successful settlement carrying its PAYMENT-RESPONSE receipt."""
    receipt = SettleResponse(
        success=True, transaction=transaction, network=SOLANA_DEVNET_CAIP2, payer="payer-1"
    )
    return ProcessSettleResult(
        success=True,
        headers={PAYMENT_RESPONSE_HEADER: encode_payment_response_header(receipt)},
        transaction=transaction,
        network=SOLANA_DEVNET_CAIP2,
        payer="payer-1",
        settle_response=receipt,
    )


def settlement_rejected(reason: str) -> ProcessSettleResult:
    return ProcessSettleResult(
        success=False,
        error_reason=reason,
        response=HTTPResponseInstructions(status=402, headers={}, body={"error": reason}),
    )


class StubGate:
    """Payment gate with a scripted answer that records what it saw."""

    def __init__(
        self,
        allow: bool = True,
        settlement: ProcessSettleResult | Exception | None = None,
        error: Exception | None = None,
        protected_prefix: str = "/api/animals",
    ) -> None:
        self.allow = allow
        self.settlement = settlement or settled()
        self.error = error
        self.protected_prefix = protected_prefix
        self.checked: list[GateRequest] = []
        self.settled: list[Allowed] = []

    async def check(self, request: GateRequest) -> Allowed | Denied:
        self.checked.append(request)
        if not request.path.startswith(self.protected_prefix):
            return Allowed()
        if self.error is not None:
            raise self.error
        requirements = make_requirements()
        if not self.allow:
            challenge = PaymentRequired(error="Payment required", accepts=[requirements])
            return Denied(
                HTTPResponseInstructions(
                    status=402,
                    headers={PAYMENT_REQUIRED_HEADER: encode_payment_required_header(challenge)},
                    body={},
                )
            )
        return Allowed(
            verification=HTTPProcessResult(
                type="payment-verified",
                payment_payload=PaymentPayload(payload={}, accepted=requirements),
                payment_requirements=requirements,
            )
        )

    async def settle(self, decision: Allowed) -> ProcessSettleResult:
        self.settled.append(decision)
        if isinstance(self.settlement, Exception):
            raise self.settlement
        return self.settlement


@pytest.fixture
def make_gate():
    """Factory for StubGate instances."""

    def _make(**kwargs: Any) -> StubGate:
        return StubGate(**kwargs)

    return _make


@pytest.fixture
def receiver() -> str:
    """Receiver wallet address used by the test settings."""
    return RECEIVER


class FakeFacilitator:
    """In-process facilitator that records every call.

    get_supported is synchronous, like the HTTP client's, because the
    resource server calls it from initialize().
    """

    def __init__(self, valid: bool = True, settles: bool = True) -> None:
        self.valid = valid
        self.settles = settles
        self.unavailable: Exception | None = None
        self.calls: list[str] = []

    def get_supported(self) -> SupportedResponse:
        self.calls.append("supported")
        if self.unavailable is not None:
            raise self.unavailable
        return SupportedResponse(
            kinds=[
                SupportedKind(
                    x402_version=2,
                    scheme="exact",
                    network=SOLANA_DEVNET_CAIP2,
                    extra={"feePayer": FEE_PAYER},
                )
            ]
        )

    async def verify(self, payload, requirements) -> VerifyResponse:
        self.calls.append("verify")
        if self.valid:
            return VerifyResponse(is_valid=True, payer="payer-1")
        return VerifyResponse(
            is_valid=False, invalid_reason="invalid_exact_svm_payload_transaction"
        )

    async def settle(self, payload, requirements) -> SettleResponse:
        self.calls.append("settle")
        if self.settles:
            return SettleResponse(
                success=True,
                transaction="5xSettledTx",
                network=requirements.network,
                payer="payer-1",
            )
        return SettleResponse(
            success=False,
            error_reason="insufficient_funds",
            transaction="",
            network=requirements.network,
        )


@pytest.fixture
def facilitator() -> FakeFacilitator:
    return FakeFacilitator()


@pytest.fixture
def x402_gate(facilitator: FakeFacilitator, receiver: str) -> X402PaymentGate:
    """The real gate pricing /api/animals against the fake facilitator."""
    return X402PaymentGate(
        pay_to=receiver,
        routes={"/api/animals": PricedRoute(price="$0.001", network="solana-devnet")},
        facilitator=facilitator,
        app_name="Guess the Animal - x402",
    )


@pytest.fixture
def fee_payer() -> str:
    """Fee payer the fake facilitator advertises for Solana devnet."""
    return FEE_PAYER
