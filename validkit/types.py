"""Small value types shared by the client, executor and normalizer."""

import math
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


def parse_number(value: Any) -> Optional[float]:
    """Finite float value of a number or numeric string, None otherwise."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class ResponseFormat(str, Enum):
    """Result encoding requested from the API."""

    FULL = "full"
    COMPACT = "compact"  # v / d / r only


class BatchJobStatus(str, Enum):
    """Lifecycle of an async batch job: pending -> processing -> terminal."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            BatchJobStatus.COMPLETED,
            BatchJobStatus.FAILED,
            BatchJobStatus.CANCELLED,
        )


@dataclass(frozen=True)
class RateLimitInfo:
    """Rate limit headers of a single response."""

    limit: int
    remaining: int
    reset: int  # epoch seconds
    retry_after: Optional[int] = None  # seconds

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RateLimitInfo":
        """Rebuild from a server or to_dict() mapping; unparsable fields read as unset."""
        numbers = {key: parse_number(data.get(key)) for key in ("limit", "remaining", "reset", "retry_after")}
        return cls(
            limit=int(numbers["limit"] or 0),
            remaining=int(numbers["remaining"] or 0),
            reset=int(numbers["reset"] or 0),
            retry_after=int(numbers["retry_after"]) if numbers["retry_after"] is not None else None,
        )


@dataclass(frozen=True)
class ApiResponse:
    """Decoded success body plus the rate limit info it carried, if any."""

    data: Any
    rate_limit: Optional[RateLimitInfo] = None
