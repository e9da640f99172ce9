"""
Request executor for the ValidKit API.

Turns one logical request into one or more HTTP calls:
- per-call timeout (the in-flight call is cancelled on expiry)
- rate limit header parsing
- failure classification into ValidKitError categories
- bounded retries with exponential backoff, honouring rate limit hints
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from ..config import ClientConfig
from ..errors import ErrorCategory, ValidKitError
from ..types import ApiResponse, RateLimitInfo

logger = logging.getLogger(__name__)

RETRY_BASE_DELAY_MS = 1000
MAX_RETRY_DELAY_MS = 30000

HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_REMAINING = "X-RateLimit-Remaining"
HEADER_RATE_RESET = "X-RateLimit-Reset"
HEADER_RETRY_AFTER = "Retry-After"


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def parse_rate_limit(headers: Mapping[str, str]) -> Optional[RateLimitInfo]:
    """
    Build RateLimitInfo from response headers.

    Returns None when the limit header is absent. Missing or unparsable
    numeric headers default to 0, except Retry-After which stays None.
    """
    if headers.get(HEADER_RATE_LIMIT) is None:
        return None

    return RateLimitInfo(
        limit=_parse_int(headers.get(HEADER_RATE_LIMIT)) or 0,
        remaining=_parse_int(headers.get(HEADER_RATE_REMAINING)) or 0,
        reset=_parse_int(headers.get(HEADER_RATE_RESET)) or 0,
        retry_after=_parse_int(headers.get(HEADER_RETRY_AFTER)),
    )


def backoff_delay_ms(retry_count: int) -> int:
    """Exponential backoff: 1s, 2s, 4s, ... capped at 30s."""
    # exponent capped, the delay has long hit the ceiling by then
    return min(RETRY_BASE_DELAY_MS * (2 ** min(retry_count, 16)), MAX_RETRY_DELAY_MS)


def _error_payload(response: httpx.Response) -> Optional[Dict[str, Any]]:
    """Decode a JSON error body. The API wraps errors in an 'error' object."""
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        return error
    return body


class RequestExecutor:
    """
    Executes requests against the ValidKit API with retries.

    The executor holds no per-request state; every call to execute() runs its
    own attempt loop, so one executor can serve concurrent operations.
    """

    def __init__(
        self,
        config: ClientConfig,
        http_client: httpx.AsyncClient,
        sleep: Callable[[float], Awaitable[Any]] = None,
    ):
        """
        Initialize executor.

        Args:
            config: Client configuration (base URL, timeout, retry bound)
            http_client: httpx client used for every call
            sleep: Coroutine function awaited between retries, in seconds
                   (defaults to asyncio.sleep)
        """
        self.config = config
        self.http_client = http_client
        self._sleep = sleep or asyncio.sleep

    def should_retry(self, error: ValidKitError, retry_count: int) -> bool:
        """Retry only allow-listed categories, and only within the retry budget."""
        return retry_count < self.config.max_retries and error.category.retryable

    def retry_delay_ms(self, error: ValidKitError, retry_count: int) -> int:
        if error.category is ErrorCategory.RATE_LIMIT:
            return error.retry_delay_ms()
        return backoff_delay_ms(retry_count)

    async def execute(
        self,
        path: str,
        method: str = "GET",
        headers: Mapping[str, str] = None,
        body: Any = None,
    ) -> ApiResponse:
        """
        Run a request, retrying retryable failures.

        Args:
            path: API path, appended to the configured base URL
            method: HTTP method
            headers: Full header set for this request
            body: JSON-serialisable request body

        Returns:
            ApiResponse with the decoded body and rate limit info

        Raises:
            ValidKitError: Terminal failure after classification and retries
        """
        url = f"{self.config.base_url}{path}"
        content = json.dumps(body).encode("utf-8") if body is not None else None
        retry_count = 0

        while True:
            try:
                return await self._attempt(method, url, headers, content, retry_count)
            except ValidKitError as error:
                if not self.should_retry(error, retry_count):
                    raise
                delay_ms = self.retry_delay_ms(error, retry_count)
                logger.warning(
                    f"{method} {path} failed ({error.category.name}: {error.message}), "
                    f"retry {retry_count + 1}/{self.config.max_retries} in {delay_ms}ms"
                )
                await self._sleep(delay_ms / 1000)
                retry_count += 1

    async def _attempt(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]],
        content: Optional[bytes],
        retry_count: int,
    ) -> ApiResponse:
        """Issue exactly one HTTP call and classify its outcome."""
        logger.debug(f"{method} {url} (attempt {retry_count + 1})")
        timeout = self.config.timeout

        try:
            response = await asyncio.wait_for(
                self.http_client.request(
                    method,
                    url,
                    headers=dict(headers or {}),
                    content=content,
                    timeout=httpx.Timeout(timeout),
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise ValidKitError(
                ErrorCategory.TIMEOUT, f"Request timed out after {timeout:g}s"
            ) from None
        except httpx.HTTPError as e:
            raise ValidKitError(ErrorCategory.CONNECTION, f"Request failed: {e}") from e

        rate_limit = parse_rate_limit(response.headers)
        if rate_limit is not None:
            logger.debug(
                f"Rate limit: {rate_limit.remaining}/{rate_limit.limit}, reset {rate_limit.reset}"
            )

        if not response.is_success:
            raise ValidKitError.from_response(
                response.status_code,
                response.reason_phrase,
                _error_payload(response),
                rate_limit,
            )

        if not response.content:
            return ApiResponse({}, rate_limit)

        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidKitError(
                ErrorCategory.GENERIC,
                "Response body is not valid JSON",
                status_code=response.status_code,
            ) from None

        return ApiResponse(data, rate_limit)
