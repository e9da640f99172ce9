"""
ValidKit error taxonomy.

Every failure surfaced by the client is a ValidKitError carrying one
ErrorCategory. The category is fixed at construction and drives retry
eligibility in the request executor.
"""

import time
from enum import Enum
from typing import Any, Dict, Optional, Union

from .types import RateLimitInfo, parse_number

RATE_LIMIT_DETAIL_KEY = "rate_limit"
DEFAULT_RATE_LIMIT_DELAY_MS = 60000


class ErrorCategory(str, Enum):
    INVALID_API_KEY = "INVALID_API_KEY"
    RATE_LIMIT = "RATE_LIMIT_EXCEEDED"
    VALIDATION = "VALIDATION_ERROR"
    BATCH_SIZE = "BATCH_SIZE_EXCEEDED"
    TIMEOUT = "TIMEOUT"
    CONNECTION = "CONNECTION_ERROR"
    SERVER = "SERVER_ERROR"
    GENERIC = "VALIDKIT_ERROR"

    @property
    def retryable(self) -> bool:
        """Whether the request executor may retry a failure of this category."""
        return self in _RETRYABLE

    @property
    def default_message(self) -> str:
        return _DEFAULT_MESSAGES[self]

    @property
    def default_status(self) -> Optional[int]:
        return _DEFAULT_STATUS.get(self)


_RETRYABLE = frozenset(
    {
        ErrorCategory.RATE_LIMIT,
        ErrorCategory.TIMEOUT,
        ErrorCategory.CONNECTION,
        ErrorCategory.SERVER,
    }
)

_DEFAULT_MESSAGES = {
    ErrorCategory.INVALID_API_KEY: "Invalid or missing API key",
    ErrorCategory.RATE_LIMIT: "Rate limit exceeded",
    ErrorCategory.VALIDATION: "Validation failed",
    ErrorCategory.BATCH_SIZE: "Batch size exceeds maximum limit",
    ErrorCategory.TIMEOUT: "Request timed out",
    ErrorCategory.CONNECTION: "Connection failed",
    ErrorCategory.SERVER: "Internal server error",
    ErrorCategory.GENERIC: "Request failed",
}

_DEFAULT_STATUS = {
    ErrorCategory.INVALID_API_KEY: 401,
    ErrorCategory.RATE_LIMIT: 429,
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.BATCH_SIZE: 400,
    ErrorCategory.TIMEOUT: 408,
    ErrorCategory.SERVER: 500,
}


class ValidKitError(Exception):
    """
    Single error type raised by the ValidKit client.

    Attributes:
        category: ErrorCategory of the failure
        message: Human readable message
        status_code: HTTP status, when one applies
        details: Structured detail map (server details, rate limit info)
        code: Machine code (category code, or the server code for GENERIC)
    """

    def __init__(
        self,
        category: ErrorCategory,
        message: str = None,
        status_code: Optional[int] = None,
        details: Dict[str, Any] = None,
        code: str = None,
    ):
        self.category = category
        self.message = message or category.default_message
        self.status_code = status_code if status_code is not None else category.default_status
        self.details = dict(details or {})
        self.code = code or category.value
        super().__init__(self.message)

    def __repr__(self) -> str:
        return (
            f"ValidKitError(category={self.category.name}, "
            f"status_code={self.status_code}, message={self.message!r})"
        )

    @classmethod
    def from_response(
        cls,
        status: int,
        reason: str = None,
        payload: Optional[Dict[str, Any]] = None,
        rate_limit: Optional[RateLimitInfo] = None,
    ) -> "ValidKitError":
        """
        Classify a failed HTTP response.

        Args:
            status: HTTP status code
            reason: HTTP reason phrase
            payload: Decoded error body (message, code, details), if any
            rate_limit: Rate limit info parsed from the response headers

        Returns:
            ValidKitError of exactly one category
        """
        payload = payload if isinstance(payload, dict) else {}
        message = payload.get("message") or None
        server_code = payload.get("code")
        details = payload.get("details")
        details = dict(details) if isinstance(details, dict) else {}

        if status == 401:
            category = ErrorCategory.INVALID_API_KEY
        elif status == 429:
            category = ErrorCategory.RATE_LIMIT
        elif status == 400:
            if server_code == ErrorCategory.BATCH_SIZE.value:
                category = ErrorCategory.BATCH_SIZE
            else:
                category = ErrorCategory.VALIDATION
                message = message or reason or None
        elif status in (408, 504):
            category = ErrorCategory.TIMEOUT
        elif status in (500, 502):
            category = ErrorCategory.SERVER
        elif status == 503:
            category = ErrorCategory.SERVER
            message = message or "Service temporarily unavailable"
        else:
            return cls(
                ErrorCategory.GENERIC,
                message or reason or f"API request failed with status {status}",
                status_code=status,
                details=details,
                code=server_code or None,
            )

        if category is ErrorCategory.RATE_LIMIT and rate_limit is not None:
            details[RATE_LIMIT_DETAIL_KEY] = rate_limit.to_dict()

        return cls(category, message, status_code=status, details=details)

    @property
    def rate_limit(self) -> Optional[RateLimitInfo]:
        """Rate limit info attached to a RATE_LIMIT error."""
        info = self.details.get(RATE_LIMIT_DETAIL_KEY)
        if isinstance(info, RateLimitInfo):
            return info
        if isinstance(info, dict):
            return RateLimitInfo.from_dict(info)
        return None

    def retry_delay_ms(self, now_ms: Union[int, float] = None) -> int:
        """
        Milliseconds to wait before retrying a rate limited request.

        Order: explicit retry_after in details, retry_after of the attached
        rate limit info, time left until the rate limit reset, 60s. Values
        that are not numbers are skipped.
        """
        retry_after = parse_number(self.details.get("retry_after"))
        if retry_after:
            return int(max(0, retry_after) * 1000)

        info = self.rate_limit
        if info is not None:
            if info.retry_after:
                return int(info.retry_after * 1000)
            if info.reset:
                if now_ms is None:
                    now_ms = time.time() * 1000
                return int(max(0, info.reset * 1000 - now_ms))

        return DEFAULT_RATE_LIMIT_DELAY_MS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.name,
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }
