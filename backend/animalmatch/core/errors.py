"""Exception hierarchy for animalmatch."""

from __future__ import annotations


class AnimalMatchError(Exception):
    """Base class for all animalmatch errors."""


class ConfigurationError(AnimalMatchError):
    """Raised at startup when the service cannot be configured safely."""


class CatalogError(ConfigurationError):
    """Raised when the animal catalog is missing, unreadable or malformed."""


class EmptyCatalogError(CatalogError):
    """Raised when matching is attempted against an empty catalog."""


class PaymentGateError(AnimalMatchError):
    """Raised when the payment gate cannot reach or understand the facilitator."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
