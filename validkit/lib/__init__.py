"""Internals of the ValidKit client: request execution, normalization, batching."""

from .request_executor import RequestExecutor, parse_rate_limit, backoff_delay_ms
from .normalizer import normalize_single, normalize_batch, detect_batch_shape, BatchShape
from .batching import chunked, notify, report_progress

__all__ = [
    "RequestExecutor",
    "parse_rate_limit",
    "backoff_delay_ms",
    "normalize_single",
    "normalize_batch",
    "detect_batch_shape",
    "BatchShape",
    "chunked",
    "notify",
    "report_progress",
]
