"""Pay-per-request gate speaking the x402 protocol."""

from .gate import (
    Allowed,
    Denied,
    GateDecision,
    GateRequest,
    PaymentGate,
    PricedRoute,
    X402PaymentGate,
    resolve_network,
    validate_price,
)

__all__ = [
    "Allowed",
    "Denied",
    "GateDecision",
    "GateRequest",
    "PaymentGate",
    "PricedRoute",
    "X402PaymentGate",
    "resolve_network",
    "validate_price",
]
