"""Custom exceptions for the creative generation core."""

from typing import Optional, Dict, Any


class CreativeException(Exception):
    """Base exception for the creative generation core."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.status_code = status_code
        self.details = details or {}


class ValidationException(CreativeException):
    """Malformed or incomplete creative request."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="VALIDATION_ERROR", status_code=400, **kwargs)
        if field:
            self.details["field"] = field


class ProviderException(CreativeException):
    """Provider-related exception."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        error_code: str = "PROVIDER_ERROR",
        status_code: int = 502,
        status: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, error_code=error_code, status_code=status_code, **kwargs)
        self.provider = provider
        # upstream HTTP status reported by the vendor, if any
        self.status = status
        if provider:
            self.details["provider"] = provider


class TransientProviderError(ProviderException):
    """Overload-type failure expected to clear after a short wait."""

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs):
        kwargs.setdefault("status", 503)
        super().__init__(
            message, provider=provider, error_code="PROVIDER_UNAVAILABLE", status_code=503, **kwargs
        )


class FatalProviderError(ProviderException):
    """Failure that will not succeed if retried unmodified."""

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs):
        super().__init__(message, provider=provider, error_code="PROVIDER_ERROR", status_code=502, **kwargs)


class GenerationTimeoutError(ProviderException):
    """A polled job did not complete before its deadline."""

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs):
        super().__init__(
            message, provider=provider, error_code="GENERATION_TIMEOUT", status_code=504, **kwargs
        )


class PersistenceError(CreativeException):
    """Generated asset could not be stored durably."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="PERSISTENCE_ERROR", status_code=502, **kwargs)


class LedgerWriteError(CreativeException):
    """Usage record could not be written. Logged, never surfaced."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="LEDGER_WRITE_ERROR", status_code=500, **kwargs)


OVERLOAD_SIGNATURES = ("503", "overloaded", "UNAVAILABLE")


def is_transient_error(error: BaseException) -> bool:
    """True when the error looks like a provider overload (HTTP 503)."""
    if isinstance(error, TransientProviderError):
        return True
    for attr in ("status", "status_code", "code"):
        if getattr(error, attr, None) == 503:
            return True
    message = str(error)
    return any(signature in message for signature in OVERLOAD_SIGNATURES)


DEFAULT_CLIENT_MESSAGE = "An error occurred. Please try again."

_QUOTA_MARKERS = ("resource_exhausted", "quota", "429", "rate limit", "rate_limit", "exceeded")
_SAFETY_MARKERS = ("safety", "blocked", "harmful", "policy")
_AUTH_MARKERS = ("unauthorized", "401", "forbidden", "403", "invalid api key")
_TIMEOUT_MARKERS = ("timeout", "timed out", "504")
_UNAVAILABLE_MARKERS = ("503", "unavailable", "overloaded")
_NETWORK_MARKERS = ("network", "econnrefused", "enotfound", "connection")


def sanitize_error_message(error: BaseException, default: str = DEFAULT_CLIENT_MESSAGE) -> str:
    """Map an exception to a message that is safe to show a client.

    Validation and persistence messages are written by this package and are
    passed through. Everything else is reduced to a category so that vendor
    payloads, credentials and stack traces never reach the response.
    """
    if isinstance(error, (ValidationException, PersistenceError)):
        return error.message

    text = str(error).lower()

    if isinstance(error, GenerationTimeoutError) or any(m in text for m in _TIMEOUT_MARKERS):
        return "The operation took too long. Please try again."
    if any(m in text for m in _QUOTA_MARKERS):
        return "Usage limit temporarily reached. Wait a few minutes and try again."
    if any(m in text for m in _SAFETY_MARKERS):
        return "The content was blocked by safety policies. Try rephrasing the prompt."
    if any(m in text for m in _AUTH_MARKERS):
        return "Provider authentication failed."
    if isinstance(error, TransientProviderError) or any(m in text for m in _UNAVAILABLE_MARKERS):
        return "Service temporarily unavailable. Please try again later."
    if any(m in text for m in _NETWORK_MARKERS):
        return "Connection error while contacting the provider. Please try again."
    return default


__all__ = [
    "CreativeException",
    "ValidationException",
    "ProviderException",
    "TransientProviderError",
    "FatalProviderError",
    "GenerationTimeoutError",
    "PersistenceError",
    "LedgerWriteError",
    "is_transient_error",
    "sanitize_error_message",
]
