from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    CONFIGURATION = "configuration_error"
    NETWORK = "network_error"
    UPSTREAM_SERVER = "upstream_server_error"
    RATE_LIMITED = "rate_limited_by_upstream"
    UPSTREAM_CLIENT = "upstream_client_error"
    VALIDATION = "validation_error"
    UNSUPPORTED_DATA_TYPE = "unsupported_data_type"


class ProviderError(RuntimeError):
    """Base exception for provider-related failures."""

    kind: ErrorKind = ErrorKind.CONFIGURATION
    retryable: bool = False

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def summary(self) -> str:
        """Short, user-safe description (no upstream bodies, no tracebacks)."""
        if self.status_code is not None:
            return f"{self.kind}: HTTP {self.status_code}: {self.message}"
        return f"{self.kind}: {self.message}"


class ConfigurationError(ProviderError):
    """Unknown provider, malformed provider/league config, missing credential."""

    kind = ErrorKind.CONFIGURATION


class ProviderRequestError(ProviderError):
    """HTTP/network/transport layer failures (timeouts, connection errors, non-2xx, etc.)."""

    kind = ErrorKind.NETWORK
    retryable = True


class NetworkError(ProviderRequestError):
    """No response at all: connection failure or timeout."""


class UpstreamServerError(ProviderRequestError):
    kind = ErrorKind.UPSTREAM_SERVER


class RateLimitedByUpstream(ProviderRequestError):
    """Provider throttled the request (HTTP 429)."""

    kind = ErrorKind.RATE_LIMITED


class UpstreamClientError(ProviderRequestError):
    """Any 4xx other than 429. Never retried."""

    kind = ErrorKind.UPSTREAM_CLIENT
    retryable = False


class PayloadValidationError(ProviderError):
    """Provider response did not match the expected shape for its data type."""

    kind = ErrorKind.VALIDATION


class UnsupportedDataTypeError(ProviderError):
    """Adapter does not support a requested data type."""

    kind = ErrorKind.UNSUPPORTED_DATA_TYPE


def error_for_status(status_code: int, message: str) -> ProviderRequestError:
    if status_code == 429:
        return RateLimitedByUpstream(message, status_code=status_code)
    if 500 <= status_code <= 599:
        return UpstreamServerError(message, status_code=status_code)
    if 400 <= status_code <= 499:
        return UpstreamClientError(message, status_code=status_code)
    # 1xx/3xx that survived redirects; treat as a transient oddity.
    return ProviderRequestError(message, status_code=status_code)
