"""Batch processing with bounded concurrency."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

T = TypeVar("T")
R = TypeVar("R")


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    """Split *items* into consecutive lists of at most *size* elements."""
    if size < 1:
        msg = f"Chunk size must be positive, got {size}"
        raise ValueError(msg)
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


async def batch_process(
    items: Sequence[T],
    processor: Callable[[T], Awaitable[R]],
    *,
    batch_size: int = 10,
    concurrency: int = 5,
    on_progress: Callable[[int, int], None] | None = None,
) -> list[R]:
    """Run *processor* over *items* in fixed-size batches.

    Within a batch at most *concurrency* processors are in flight at
    once. Batches run one after another, results keep input order, and
    *on_progress* receives ``(completed, total)`` after each batch.

    Every processor in a batch settles before the batch is judged. If
    any failed, the error of the earliest failing item is raised and
    later batches are not started.
    """
    if concurrency < 1:
        msg = f"Concurrency must be positive, got {concurrency}"
        raise ValueError(msg)

    semaphore = asyncio.Semaphore(concurrency)
    results: list[R] = []

    async def _run(item: T) -> R:
        async with semaphore:
            return await processor(item)

    for batch in chunk(items, batch_size):
        outcomes = await asyncio.gather(
            *(_run(item) for item in batch), return_exceptions=True
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        results.extend(outcomes)  # type: ignore[arg-type]
        if on_progress is not None:
            on_progress(len(results), len(items))

    return results
