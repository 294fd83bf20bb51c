"""
Exception hierarchy for the checkout proxy.

Every error raised on purpose by the proxy inherits from ProxyError, so the
HTTP layer can map it to a status code and body in one place.
"""

from typing import Any


class ProxyError(Exception):
    """Base exception for all proxy errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(ProxyError):
    """Required ePayco credentials are missing."""


class RemoteAuthError(ProxyError):
    """ePayco rejected the public/private key pair."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(
            f"ePayco authentication failed: {status_code} - {body}",
            {"status_code": status_code},
        )
        self.status_code = status_code
        self.body = body


class GatewayProtocolError(ProxyError):
    """ePayco answered with a body the proxy cannot use."""


class RemoteValidationError(ProxyError):
    """
    ePayco accepted the call but flagged field-level problems.

    ``payload`` is the entire, unmodified response body. It must reach the
    caller exactly as received.
    """

    def __init__(self, payload: dict[str, Any]) -> None:
        super().__init__("ePayco API returned error")
        self.payload = payload


class RemoteLookupNotFound(ProxyError):
    """ePayco does not know the reference (yet)."""

    def __init__(self, reference: str, status_code: int, body: str) -> None:
        super().__init__(
            f"Transaction lookup failed: {status_code} - {body}",
            {"reference": reference, "status_code": status_code},
        )
        self.reference = reference
        self.status_code = status_code
        self.body = body


class InvalidAmountError(ProxyError):
    """Checkout amount is not a positive number."""


class TunnelUnavailable(ProxyError):
    """The public tunnel could not be established."""
