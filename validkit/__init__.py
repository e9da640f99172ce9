"""ValidKit - async client for the ValidKit email verification API."""

__version__ = "1.0.0"

from .errors import ErrorCategory, ValidKitError  # noqa: E402
from .types import ApiResponse, BatchJobStatus, RateLimitInfo, ResponseFormat  # noqa: E402
from .config import ClientConfig  # noqa: E402
from .client import ValidKitClient, MAX_BATCH_SIZE  # noqa: E402

__all__ = [
    "ValidKitClient",
    "ClientConfig",
    "ValidKitError",
    "ErrorCategory",
    "ResponseFormat",
    "BatchJobStatus",
    "RateLimitInfo",
    "ApiResponse",
    "MAX_BATCH_SIZE",
]
