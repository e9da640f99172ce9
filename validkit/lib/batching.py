"""Chunking and progress reporting for bulk verification."""

import inspect
from typing import Any, Awaitable, Callable, Iterator, List, Optional, TypeVar, Union

T = TypeVar("T")

ProgressCallback = Callable[[int, int], Union[None, Awaitable[Any]]]


def chunked(items: List[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of at most `size` items, in order."""
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def notify(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    """Call a sync or async callback, awaiting it when it returns an awaitable."""
    if callback is None:
        return
    outcome = callback(*args)
    if inspect.isawaitable(outcome):
        await outcome


async def report_progress(callback: Optional[ProgressCallback], processed: int, total: int) -> None:
    await notify(callback, processed, total)
