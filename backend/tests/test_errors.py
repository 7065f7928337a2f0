"""Tests for provider error classification."""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio

import pytest

from services.errors import (
    InvalidKeyError,
    InvalidResponseError,
    ProviderError,
    ProviderTimeoutError,
    QuotaExceededError,
    RateLimitError,
    ServiceUnavailableError,
    is_retryable,
    map_provider_error,
)


class FakeResponse:
    def __init__(self, headers=None):
        self.headers = headers or {}


class FakeAPIError(Exception):
    """Shaped like the anthropic / openai SDK status errors."""

    def __init__(self, message="boom", status_code=None, body=None, headers=None, code=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.response = FakeResponse(headers)
        self.code = code


class APITimeoutError(Exception):
    pass


class TestMapProviderError:
    def test_asyncio_timeout(self):
        assert isinstance(map_provider_error(asyncio.TimeoutError(), "p"), ProviderTimeoutError)

    def test_sdk_timeout_class_name(self):
        assert isinstance(map_provider_error(APITimeoutError("slow"), "p"), ProviderTimeoutError)

    def test_401_is_invalid_key(self):
        err = map_provider_error(FakeAPIError(status_code=401), "anthropic")
        assert isinstance(err, InvalidKeyError)
        assert err.provider_name == "anthropic"

    def test_authentication_error_type_in_body(self):
        body = {"type": "error", "error": {"type": "authentication_error"}}
        assert isinstance(map_provider_error(FakeAPIError(body=body), "p"), InvalidKeyError)

    def test_429_is_rate_limit_with_retry_after(self):
        err = map_provider_error(
            FakeAPIError(status_code=429, headers={"retry-after": "12"}), "p"
        )
        assert isinstance(err, RateLimitError)
        assert err.retry_after == 12.0

    def test_rate_limit_without_header(self):
        err = map_provider_error(FakeAPIError(status_code=429), "p")
        assert isinstance(err, RateLimitError)
        assert err.retry_after is None

    def test_529_overloaded(self):
        assert isinstance(
            map_provider_error(FakeAPIError(status_code=529), "p"), ServiceUnavailableError
        )

    def test_overloaded_error_type(self):
        body = {"type": "error", "error": {"type": "overloaded_error"}}
        assert isinstance(map_provider_error(FakeAPIError(body=body), "p"), ServiceUnavailableError)

    def test_quota_from_code(self):
        err = map_provider_error(FakeAPIError(code="insufficient_quota"), "openai")
        assert isinstance(err, QuotaExceededError)

    def test_quota_from_message(self):
        err = map_provider_error(Exception("Your billing details are missing"), "p")
        assert isinstance(err, QuotaExceededError)

    def test_402_is_quota(self):
        assert isinstance(map_provider_error(FakeAPIError(status_code=402), "p"), QuotaExceededError)

    def test_generic_5xx(self):
        assert isinstance(
            map_provider_error(FakeAPIError(status_code=503), "p"), ServiceUnavailableError
        )

    def test_fallback_wraps_original(self):
        original = RuntimeError("socket closed")
        err = map_provider_error(original, "p")
        assert type(err) is ProviderError
        assert err.original_error is original
        assert "socket closed" in str(err)

    def test_auth_checked_before_rate_limit(self):
        body = {"type": "error", "error": {"type": "authentication_error"}}
        err = map_provider_error(FakeAPIError(status_code=429, body=body), "p")
        assert isinstance(err, InvalidKeyError)

    def test_provider_errors_pass_through(self):
        err = RateLimitError("p", 3)
        assert map_provider_error(err, "other") is err


class TestRetryability:
    @pytest.mark.parametrize(
        "error",
        [
            ProviderTimeoutError("p"),
            RateLimitError("p"),
            QuotaExceededError("p"),
            ServiceUnavailableError("p"),
            InvalidResponseError("p", "empty"),
            ProviderError("generic", "p"),
        ],
    )
    def test_everything_but_invalid_key_is_retryable(self, error):
        assert is_retryable(error)

    def test_invalid_key_is_not_retryable(self):
        assert not is_retryable(InvalidKeyError("p"))

    def test_raw_exceptions_are_classified(self):
        assert not is_retryable(FakeAPIError(status_code=401))
        assert is_retryable(FakeAPIError(status_code=500))
