"""
Error taxonomy for language-model provider calls.

Every failure raised by a provider SDK is mapped onto one of the classes
below by `map_provider_error`. The retry policy uses `retryable` to decide
whether another attempt can help: only an invalid key is fatal.
"""

import asyncio
from typing import Optional


class ConfigurationError(ValueError):
    """Unknown provider/model, unknown mode or missing mandatory input."""


class ProviderError(Exception):
    """Base class for all provider failures."""

    retryable = True

    def __init__(
        self,
        message: str,
        provider_name: str,
        original_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.provider_name = provider_name
        self.original_error = original_error


class ProviderTimeoutError(ProviderError):
    def __init__(self, provider_name: str, timeout: Optional[float] = None) -> None:
        detail = f" after {timeout}s" if timeout is not None else ""
        super().__init__(f"AI request timed out{detail}", provider_name)
        self.timeout = timeout


class InvalidKeyError(ProviderError):
    retryable = False

    def __init__(self, provider_name: str) -> None:
        super().__init__("Invalid API key for AI provider", provider_name)


class RateLimitError(ProviderError):
    def __init__(self, provider_name: str, retry_after: Optional[float] = None) -> None:
        super().__init__("AI provider rate limit exceeded", provider_name)
        self.retry_after = retry_after


class QuotaExceededError(ProviderError):
    def __init__(self, provider_name: str, retry_after: Optional[float] = None) -> None:
        super().__init__("AI provider quota exceeded", provider_name)
        self.retry_after = retry_after


class ServiceUnavailableError(ProviderError):
    def __init__(self, provider_name: str) -> None:
        super().__init__("AI provider service temporarily unavailable", provider_name)


class InvalidResponseError(ProviderError):
    def __init__(self, provider_name: str, reason: str) -> None:
        super().__init__(f"Invalid response from AI provider: {reason}", provider_name)


# ---------------------------------------------------------------------------
# Signal extraction. SDK exceptions expose these under different names
# ---------------------------------------------------------------------------

def _status_code(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


def _error_type(exc: BaseException) -> Optional[str]:
    """Anthropic puts the type in body["error"]["type"], OpenAI on .type."""
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("type"), str):
            return error["type"]
        if isinstance(body.get("type"), str) and body["type"] != "error":
            return body["type"]
    value = getattr(exc, "type", None)
    return value if isinstance(value, str) else None


def _retry_after(exc: BaseException) -> Optional[float]:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None) or getattr(exc, "headers", None)
    if not headers:
        return None
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return True
    if getattr(exc, "code", None) == "ECONNABORTED":
        return True
    return any("Timeout" in cls.__name__ for cls in type(exc).__mro__)


def map_provider_error(exc: BaseException, provider_name: str) -> ProviderError:
    """
    Classify an arbitrary provider exception.

    Order matters: timeout -> auth -> rate limit -> overload -> quota ->
    generic 5xx -> wrapped fallback.
    """
    if isinstance(exc, ProviderError):
        return exc

    if _is_timeout(exc):
        return ProviderTimeoutError(provider_name)

    status = _status_code(exc)
    error_type = _error_type(exc)
    message = str(exc).lower()

    if error_type == "authentication_error" or status == 401:
        return InvalidKeyError(provider_name)

    if error_type == "rate_limit_error" or status == 429:
        return RateLimitError(provider_name, _retry_after(exc))

    if error_type == "overloaded_error" or status == 529:
        return ServiceUnavailableError(provider_name)

    if (
        getattr(exc, "code", None) == "insufficient_quota"
        or "quota" in message
        or "billing" in message
        or status == 402
    ):
        return QuotaExceededError(provider_name, _retry_after(exc))

    if status is not None and 500 <= status < 600:
        return ServiceUnavailableError(provider_name)

    return ProviderError(
        f"AI generation failed: {exc or type(exc).__name__}",
        provider_name,
        exc,
    )


def is_retryable(exc: BaseException) -> bool:
    """True unless the (classified) error is an authentication failure."""
    if not isinstance(exc, ProviderError):
        exc = map_provider_error(exc, "unknown")
    return exc.retryable
