"""
ValidKit API Client for email verification.

Requires: httpx

Usage:
    async with ValidKitClient(api_key="vk_...") as client:
        result = await client.verify_email("user@example.com")
        results = await client.verify_batch(emails, format="compact")
        job = await client.verify_batch_async(emails, webhook_url="https://...")
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from urllib.parse import quote

import httpx

from .config import ClientConfig
from .errors import ErrorCategory, ValidKitError
from .lib.batching import ProgressCallback, chunked, notify, report_progress
from .lib.normalizer import (
    BatchShape,
    detect_batch_shape,
    is_enveloped_result,
    normalize_batch,
    normalize_single,
)
from .lib.request_executor import RequestExecutor
from .types import ApiResponse, BatchJobStatus, RateLimitInfo, ResponseFormat

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 10000

PATH_VERIFY = "/api/v1/verify"
PATH_BULK = "/api/v1/verify/bulk"
PATH_BULK_AGENT = "/api/v1/verify/bulk/agent"
PATH_BATCH_JOB = "/api/v1/batch/{job_id}"
PATH_BATCH_RESULTS = "/api/v1/batch/{job_id}/results"


def _coerce_format(fmt: Union[ResponseFormat, str]) -> ResponseFormat:
    try:
        return ResponseFormat(fmt)
    except ValueError:
        raise ValidKitError(
            ErrorCategory.VALIDATION,
            f"Unknown format {fmt!r}, expected 'full' or 'compact'",
        ) from None


def _check_email_list(emails: Any) -> List[str]:
    if not isinstance(emails, (list, tuple)) or not emails:
        raise ValidKitError(ErrorCategory.VALIDATION, "Emails must be a non-empty list")
    return list(emails)


def _check_job_id(job_id: Any) -> str:
    if not job_id or not isinstance(job_id, str):
        raise ValidKitError(ErrorCategory.VALIDATION, "Job ID is required")
    return quote(job_id, safe="")


class ValidKitClient:
    """
    ValidKit API client for:
    - Single email verification
    - Batch verification (chunked, up to 10K emails)
    - Agent bulk verification (single high-throughput call)
    - Async batch jobs (start, status, results, cancel)
    """

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        timeout: float = None,
        max_retries: int = None,
        default_chunk_size: int = None,
        user_agent: str = None,
        http_client: httpx.AsyncClient = None,
        sleep: Callable[[float], Awaitable[Any]] = None,
    ):
        """
        Initialize ValidKit client.

        Args:
            api_key: ValidKit API key (required)
            base_url: API base URL (default https://api.validkit.com)
            timeout: Per-request timeout in seconds (default 30)
            max_retries: Retries for retryable failures (default 3)
            default_chunk_size: Emails per bulk call in verify_batch (default 1000)
            user_agent: Custom User-Agent string
            http_client: httpx.AsyncClient to use instead of an owned one
            sleep: Coroutine function used to wait between retries
        """
        self.config = ClientConfig.build(
            api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            default_chunk_size=default_chunk_size,
            user_agent=user_agent,
        )
        self._base_headers = self.config.base_headers()
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(follow_redirects=True)
        self._sleep = sleep or asyncio.sleep
        self._executor = RequestExecutor(self.config, self._http_client, sleep=self._sleep)
        self._last_rate_limit: Optional[RateLimitInfo] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http_client.aclose()

    @property
    def last_rate_limit(self) -> Optional[RateLimitInfo]:
        """Rate limit info from the most recent successful response."""
        return self._last_rate_limit

    def _headers(self, trace_id: str = None, parent_id: str = None) -> Dict[str, str]:
        """Per-request headers: a copy of the base headers plus correlation ids."""
        headers = dict(self._base_headers)
        if trace_id:
            headers["X-Trace-ID"] = trace_id
        if parent_id:
            headers["X-Parent-ID"] = parent_id
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        body: Dict[str, Any] = None,
        trace_id: str = None,
        parent_id: str = None,
    ) -> Any:
        """Make API request through the retrying executor."""
        response: ApiResponse = await self._executor.execute(
            path,
            method=method,
            headers=self._headers(trace_id, parent_id),
            body=body,
        )
        if response.rate_limit is not None:
            self._last_rate_limit = response.rate_limit
        return response.data

    async def verify_email(
        self,
        email: str,
        format: Union[ResponseFormat, str] = ResponseFormat.FULL,
        trace_id: str = None,
        parent_id: str = None,
        debug: bool = False,
        share_signals: bool = None,
    ) -> Dict[str, Any]:
        """
        Verify a single email address.

        Args:
            email: Email to verify
            format: 'full' (all checks) or 'compact' ({v, d?})
            trace_id: Correlation id sent as X-Trace-ID
            parent_id: Parent correlation id sent as X-Parent-ID
            debug: Ask the API for detailed validation steps
            share_signals: Opt in/out of signal sharing (omitted when None)

        Returns:
            Full or compact verification result
        """
        if not email or not isinstance(email, str):
            raise ValidKitError(ErrorCategory.VALIDATION, "Email must be a non-empty string")
        fmt = _coerce_format(format)

        body = {"email": email, "format": fmt.value, "debug": debug}
        if share_signals is not None:
            body["share_signals"] = share_signals

        data = await self._request("POST", PATH_VERIFY, body, trace_id, parent_id)
        if not is_enveloped_result(data):
            logger.warning("Unrecognized verify response shape, returning it unchanged")
        return normalize_single(data, fmt)

    async def verify_batch(
        self,
        emails: List[str],
        format: Union[ResponseFormat, str] = ResponseFormat.COMPACT,
        chunk_size: int = None,
        progress_callback: Optional[ProgressCallback] = None,
        trace_id: str = None,
        parent_id: str = None,
        debug: bool = False,
        share_signals: bool = None,
    ) -> Dict[str, Any]:
        """
        Verify up to 10,000 emails, split into sequential chunks.

        Args:
            emails: Emails to verify
            format: 'compact' (default) or 'full'
            chunk_size: Emails per bulk call (default: client default_chunk_size)
            progress_callback: Called as (processed, total) after each chunk
                               when more than one chunk is needed; may be async
            trace_id: Correlation id sent as X-Trace-ID
            parent_id: Parent correlation id sent as X-Parent-ID
            debug: Ask the API for detailed validation steps
            share_signals: Opt in/out of signal sharing (omitted when None)

        Returns:
            Results keyed by email

        Raises:
            ValidKitError: BATCH_SIZE above 10,000 emails (no request is sent);
                           any terminal chunk failure aborts the whole batch
        """
        emails = _check_email_list(emails)
        if len(emails) > MAX_BATCH_SIZE:
            raise ValidKitError(
                ErrorCategory.BATCH_SIZE,
                f"Batch size cannot exceed {MAX_BATCH_SIZE} emails. "
                f"Use verify_batch_async for larger batches.",
            )
        fmt = _coerce_format(format)
        chunk_size = self.config.default_chunk_size if chunk_size is None else chunk_size
        if not isinstance(chunk_size, int) or chunk_size <= 0:
            raise ValidKitError(ErrorCategory.VALIDATION, "chunk_size must be a positive integer")

        chunk_args = (fmt, trace_id, parent_id, debug, share_signals)

        if len(emails) <= chunk_size:
            return await self._verify_chunk(emails, *chunk_args)

        results: Dict[str, Any] = {}
        processed = 0
        total = len(emails)
        for chunk in chunked(emails, chunk_size):
            results.update(await self._verify_chunk(chunk, *chunk_args, merging=True))
            processed += len(chunk)
            logger.debug(f"Batch progress: {processed}/{total}")
            await report_progress(progress_callback, processed, total)

        return results

    async def _verify_chunk(
        self,
        emails: List[str],
        fmt: ResponseFormat,
        trace_id: str = None,
        parent_id: str = None,
        debug: bool = False,
        share_signals: bool = None,
        merging: bool = False,
    ) -> Dict[str, Any]:
        """
        Verify one chunk through the bulk endpoint and key results by email.

        An unrecognized body is returned unchanged, unless the chunk is being
        merged with others, where it raises GENERIC instead.
        """
        body = {"emails": emails, "format": fmt.value, "debug": debug}
        if share_signals is not None:
            body["share_signals"] = share_signals

        data = await self._request("POST", PATH_BULK, body, trace_id, parent_id)
        if detect_batch_shape(data) is BatchShape.UNKNOWN:
            if merging:
                raise ValidKitError(
                    ErrorCategory.GENERIC,
                    "Unrecognized bulk response shape",
                    details={"body": data},
                )
            logger.warning("Unrecognized bulk response shape, returning it unchanged")
        return normalize_batch(data, emails, fmt)

    async def verify_batch_agent(
        self,
        emails: List[str],
        format: Union[ResponseFormat, str] = ResponseFormat.COMPACT,
        trace_id: str = None,
        parent_id: str = None,
        share_signals: bool = None,
    ) -> Dict[str, Any]:
        """
        Verify emails in one call to the agent endpoint (no chunking).

        The caller stays within the API's own limits.

        Returns:
            Agent bulk response as returned by the API
        """
        emails = _check_email_list(emails)
        fmt = _coerce_format(format)

        body = {"emails": emails, "format": fmt.value}
        if share_signals is not None:
            body["share_signals"] = share_signals

        return await self._request("POST", PATH_BULK_AGENT, body, trace_id, parent_id)

    async def verify_batch_async(
        self,
        emails: List[str],
        format: Union[ResponseFormat, str] = ResponseFormat.COMPACT,
        webhook_url: str = None,
        trace_id: str = None,
        parent_id: str = None,
        share_signals: bool = None,
    ) -> Dict[str, Any]:
        """
        Start an async batch job and return immediately.

        Args:
            emails: Emails to verify (any size the API accepts)
            format: Result format of the job
            webhook_url: URL notified when the job completes

        Returns:
            Batch job (id, status, counts, timestamps)
        """
        emails = _check_email_list(emails)
        fmt = _coerce_format(format)

        body = {"emails": emails, "format": fmt.value, "async": True}
        if webhook_url:
            body["webhook_url"] = webhook_url
        if share_signals is not None:
            body["share_signals"] = share_signals

        job = await self._request("POST", PATH_BULK_AGENT, body, trace_id, parent_id)
        logger.debug(f"Batch job started: {job.get('id') if isinstance(job, dict) else job}")
        return job

    async def get_batch_job(self, job_id: str) -> Dict[str, Any]:
        """
        Get status of an async batch job.

        Returns:
            Batch job with status pending/processing/completed/failed/cancelled
        """
        path = PATH_BATCH_JOB.format(job_id=_check_job_id(job_id))
        return await self._request("GET", path)

    async def get_batch_results(self, job_id: str) -> Dict[str, Any]:
        """Get results of a completed batch job."""
        path = PATH_BATCH_RESULTS.format(job_id=_check_job_id(job_id))
        return await self._request("GET", path)

    async def cancel_batch_job(self, job_id: str) -> Dict[str, Any]:
        """Cancel an async batch job. Returns the job in its new state."""
        path = PATH_BATCH_JOB.format(job_id=_check_job_id(job_id))
        return await self._request("DELETE", path)

    async def wait_for_batch_job(
        self,
        job_id: str,
        poll_interval: float = 5.0,
        timeout: float = None,
        on_update: Callable[[Dict[str, Any]], Any] = None,
    ) -> Dict[str, Any]:
        """
        Poll a batch job until it reaches a terminal status.

        Args:
            job_id: Batch job ID
            poll_interval: Seconds between polls
            timeout: Give up after this many seconds (None waits forever)
            on_update: Called with each fetched job; may be async

        Returns:
            The job in its terminal state (completed, failed or cancelled)

        Raises:
            ValidKitError: TIMEOUT if the job is still running at the deadline
        """
        _check_job_id(job_id)
        if poll_interval <= 0:
            raise ValidKitError(ErrorCategory.VALIDATION, "poll_interval must be positive")

        deadline = time.monotonic() + timeout if timeout is not None else None

        while True:
            job = await self.get_batch_job(job_id)
            await notify(on_update, job)

            status_text = job.get("status") if isinstance(job, dict) else None
            try:
                status = BatchJobStatus(status_text)
            except ValueError:
                status = None
            if status is not None and status.is_terminal:
                return job

            if deadline is not None and time.monotonic() + poll_interval > deadline:
                raise ValidKitError(
                    ErrorCategory.TIMEOUT,
                    f"Batch job {job_id} still {status_text} after {timeout:g}s",
                    details={"job": job},
                )
            await self._sleep(poll_interval)
