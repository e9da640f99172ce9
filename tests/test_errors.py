"""Tests for the error taxonomy and rate limit retry delays."""

import pytest

from validkit.errors import (
    DEFAULT_RATE_LIMIT_DELAY_MS,
    RATE_LIMIT_DETAIL_KEY,
    ErrorCategory,
    ValidKitError,
)
from validkit.types import RateLimitInfo


class TestFromResponse:
    @pytest.mark.parametrize(
        "status,category",
        [
            (401, ErrorCategory.INVALID_API_KEY),
            (429, ErrorCategory.RATE_LIMIT),
            (400, ErrorCategory.VALIDATION),
            (408, ErrorCategory.TIMEOUT),
            (504, ErrorCategory.TIMEOUT),
            (500, ErrorCategory.SERVER),
            (502, ErrorCategory.SERVER),
            (503, ErrorCategory.SERVER),
            (404, ErrorCategory.GENERIC),
            (418, ErrorCategory.GENERIC),
        ],
    )
    def test_status_mapping(self, status, category):
        error = ValidKitError.from_response(status, "Reason")
        assert error.category is category
        assert error.status_code == status

    def test_batch_size_code_on_400(self):
        error = ValidKitError.from_response(
            400, "Bad Request", {"code": "BATCH_SIZE_EXCEEDED", "message": "Too many emails"}
        )
        assert error.category is ErrorCategory.BATCH_SIZE
        assert error.message == "Too many emails"

    def test_other_400_codes_are_validation(self):
        error = ValidKitError.from_response(400, "Bad Request", {"code": "INVALID_EMAIL"})
        assert error.category is ErrorCategory.VALIDATION
        assert error.message == "Bad Request"

    def test_payload_message_and_details_kept(self):
        error = ValidKitError.from_response(
            401, "Unauthorized", {"message": "Key revoked", "details": {"key_id": "k1"}}
        )
        assert error.message == "Key revoked"
        assert error.details == {"key_id": "k1"}

    def test_default_messages(self):
        assert ValidKitError.from_response(401).message == "Invalid or missing API key"
        assert ValidKitError.from_response(429).message == "Rate limit exceeded"
        assert ValidKitError.from_response(503).message == "Service temporarily unavailable"

    def test_generic_keeps_status_message_and_code(self):
        error = ValidKitError.from_response(
            402, "Payment Required", {"message": "Out of credits", "code": "NO_CREDITS"}
        )
        assert error.category is ErrorCategory.GENERIC
        assert error.status_code == 402
        assert error.message == "Out of credits"
        assert error.code == "NO_CREDITS"

    def test_generic_falls_back_to_reason_then_template(self):
        assert ValidKitError.from_response(409, "Conflict").message == "Conflict"
        assert ValidKitError.from_response(499).message == "API request failed with status 499"

    def test_rate_limit_info_attached(self):
        info = RateLimitInfo(limit=1000, remaining=0, reset=1642000000, retry_after=5)
        error = ValidKitError.from_response(429, "Too Many Requests", None, info)
        assert error.details[RATE_LIMIT_DETAIL_KEY] == info.to_dict()
        assert error.rate_limit == info

    def test_rate_limit_info_ignored_for_other_categories(self):
        info = RateLimitInfo(limit=1000, remaining=10, reset=0)
        error = ValidKitError.from_response(500, "Server Error", None, info)
        assert RATE_LIMIT_DETAIL_KEY not in error.details
        assert error.rate_limit is None


class TestRetryDelay:
    def test_explicit_retry_after_in_details_wins(self):
        error = ValidKitError(
            ErrorCategory.RATE_LIMIT,
            details={
                "retry_after": 3,
                RATE_LIMIT_DETAIL_KEY: {"limit": 1, "remaining": 0, "reset": 0, "retry_after": 9},
            },
        )
        assert error.retry_delay_ms() == 3000

    def test_retry_after_from_rate_limit_info(self):
        info = RateLimitInfo(limit=100, remaining=0, reset=0, retry_after=7)
        error = ValidKitError.from_response(429, rate_limit=info)
        assert error.retry_delay_ms() == 7000

    def test_reset_time_used_without_retry_after(self):
        info = RateLimitInfo(limit=100, remaining=0, reset=1000)
        error = ValidKitError.from_response(429, rate_limit=info)
        assert error.retry_delay_ms(now_ms=995_500) == 4500

    def test_reset_in_the_past_gives_zero(self):
        info = RateLimitInfo(limit=100, remaining=0, reset=1000)
        error = ValidKitError.from_response(429, rate_limit=info)
        assert error.retry_delay_ms(now_ms=2_000_000) == 0

    def test_default_one_minute(self):
        error = ValidKitError.from_response(429)
        assert error.retry_delay_ms() == DEFAULT_RATE_LIMIT_DELAY_MS == 60000

    def test_numeric_string_retry_after(self):
        error = ValidKitError(ErrorCategory.RATE_LIMIT, details={"retry_after": "2.5"})
        assert error.retry_delay_ms() == 2500

    def test_non_numeric_retry_after_falls_through(self):
        error = ValidKitError(
            ErrorCategory.RATE_LIMIT,
            details={
                "retry_after": "soon",
                RATE_LIMIT_DETAIL_KEY: {"limit": 1, "remaining": 0, "reset": 0, "retry_after": 4},
            },
        )
        assert error.retry_delay_ms() == 4000

    @pytest.mark.parametrize("reset", ["2024-01-01T00:00:00Z", None, [1], {"at": 1}])
    def test_unparsable_reset_gives_default(self, reset):
        error = ValidKitError(
            ErrorCategory.RATE_LIMIT,
            details={"retry_after": "soon", RATE_LIMIT_DETAIL_KEY: {"limit": "?", "reset": reset}},
        )
        assert error.retry_delay_ms() == DEFAULT_RATE_LIMIT_DELAY_MS


class TestRateLimitInfoFromDict:
    def test_numeric_strings_accepted(self):
        info = RateLimitInfo.from_dict({"limit": "100", "remaining": "7", "reset": "1642000000", "retry_after": "30"})
        assert info == RateLimitInfo(limit=100, remaining=7, reset=1642000000, retry_after=30)

    def test_garbage_fields_read_as_unset(self):
        info = RateLimitInfo.from_dict(
            {"limit": "lots", "remaining": None, "reset": "2024-01-01T00:00:00Z", "retry_after": "soon"}
        )
        assert info == RateLimitInfo(limit=0, remaining=0, reset=0, retry_after=None)

    def test_round_trips_to_dict(self):
        info = RateLimitInfo(limit=10, remaining=3, reset=99, retry_after=None)
        assert RateLimitInfo.from_dict(info.to_dict()) == info


class TestCategory:
    def test_retryable_allow_list(self):
        retryable = {c for c in ErrorCategory if c.retryable}
        assert retryable == {
            ErrorCategory.RATE_LIMIT,
            ErrorCategory.TIMEOUT,
            ErrorCategory.CONNECTION,
            ErrorCategory.SERVER,
        }

    def test_local_error_defaults(self):
        error = ValidKitError(ErrorCategory.VALIDATION)
        assert error.message == "Validation failed"
        assert error.status_code == 400
        assert error.code == "VALIDATION_ERROR"
        assert str(error) == "Validation failed"

    def test_connection_error_has_no_status(self):
        assert ValidKitError(ErrorCategory.CONNECTION).status_code is None

    def test_to_dict(self):
        error = ValidKitError(ErrorCategory.SERVER, "boom", status_code=502, details={"a": 1})
        assert error.to_dict() == {
            "category": "SERVER",
            "code": "SERVER_ERROR",
            "message": "boom",
            "status_code": 502,
            "details": {"a": 1},
        }
