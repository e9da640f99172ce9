"""
Response normalizer.

The v1 API nests check results under a 'result' field and always answers in
the full shape, whatever format was asked for. These functions map its raw
bodies onto the documented result shapes:

- full:    {success, email, valid, format, disposable, mx, smtp, ...}
- compact: {v, d?, r?, trace_id?}

All functions are pure: no I/O, input never mutated, output freshly built.
"""

import copy
from enum import Enum
from typing import Any, Dict, List, Optional

from ..types import ResponseFormat

CHECK_FIELDS = ("format", "disposable", "mx", "smtp")
ENVELOPE_FIELDS = ("timestamp", "trace_id", "request_id", "cached", "warning", "signal_pool")


class BatchShape(Enum):
    INDEXED = "indexed"      # {"0": {...}, "1": {...}}
    ENVELOPED = "enveloped"  # {"results": [{email, result}, ...], "trace_id": ...}
    UNKNOWN = "unknown"


def is_enveloped_result(raw: Any) -> bool:
    """True for the nested {email, result: {...}} shape of a single verification."""
    return isinstance(raw, dict) and "result" in raw and "email" in raw and isinstance(raw["result"], dict)


def detect_batch_shape(raw: Any) -> BatchShape:
    if not isinstance(raw, dict):
        return BatchShape.UNKNOWN
    if isinstance(raw.get("results"), list):
        return BatchShape.ENVELOPED
    if "results" not in raw and all(isinstance(k, str) and k.isdigit() for k in raw):
        return BatchShape.INDEXED
    return BatchShape.UNKNOWN


def to_compact(result: Dict[str, Any], trace_id: Optional[str] = None) -> Dict[str, Any]:
    """Downgrade a nested check result to the compact shape."""
    compact = {"v": result.get("valid")}
    disposable = result.get("disposable")
    if isinstance(disposable, dict) and disposable.get("value"):
        compact["d"] = True
    if trace_id:
        compact["trace_id"] = trace_id
    return compact


def to_full(envelope: Dict[str, Any], defaults: Dict[str, Any] = None) -> Dict[str, Any]:
    """
    Flatten an {email, result} envelope into the full result shape.

    Args:
        envelope: Raw envelope with the nested 'result' field
        defaults: Envelope fields to use when the envelope itself lacks them
                  (batch responses echo trace/request ids once at the top)
    """
    result = envelope["result"]
    defaults = defaults or {}

    full = {
        "success": envelope.get("success"),
        "email": envelope.get("email"),
        "valid": result.get("valid"),
    }
    for field in CHECK_FIELDS:
        if result.get(field) is not None:
            full[field] = copy.deepcopy(result[field])

    processing_time = result.get("validation_time_ms") or result.get("processing_time_ms")
    if processing_time is not None:
        full["processing_time_ms"] = processing_time

    for field in ENVELOPE_FIELDS:
        value = envelope.get(field, defaults.get(field))
        if value is not None:
            full[field] = copy.deepcopy(value)

    return full


def normalize_single(raw: Any, fmt: ResponseFormat) -> Any:
    """
    Normalize a single verification body.

    Bodies without the nested {email, result} shape are returned unchanged.
    """
    if not is_enveloped_result(raw):
        return raw

    if fmt == ResponseFormat.COMPACT:
        return to_compact(raw["result"], raw.get("trace_id"))
    return to_full(raw)


def normalize_batch(raw: Any, emails: List[str], fmt: ResponseFormat) -> Any:
    """
    Normalize a bulk verification body into a map keyed by email.

    Args:
        raw: Decoded body of the bulk call
        emails: The chunk submitted, in order (indexed answers point into it)
        fmt: Requested result format

    Returns:
        {email: result}, or the raw body unchanged if its shape is unknown
    """
    shape = detect_batch_shape(raw)

    if shape is BatchShape.INDEXED:
        keyed = {}
        for index, email in enumerate(emails):
            value = raw.get(str(index))
            if value:
                keyed[email] = copy.deepcopy(value)
        return keyed

    if shape is BatchShape.ENVELOPED:
        trace_id = raw.get("trace_id")
        defaults = {"trace_id": trace_id, "request_id": raw.get("request_id")}
        keyed = {}
        for entry in raw["results"]:
            if not is_enveloped_result(entry) or not entry["email"]:
                continue
            if fmt == ResponseFormat.COMPACT:
                keyed[entry["email"]] = to_compact(entry["result"], entry.get("trace_id") or trace_id)
            else:
                keyed[entry["email"]] = to_full(entry, defaults)
        return keyed

    return raw
