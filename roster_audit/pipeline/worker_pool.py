"""
Bounded worker pool for per-character work.

``run_bounded(items, worker, concurrency)`` starts ``concurrency`` workers
that drain one shared ``asyncio.Queue``.  Taking an item from the queue is
the only shared step, and ``get_nowait()`` on a single event loop hands each
item to exactly one worker.

A worker exception is logged and counted in ``failed``; the worker then
moves on to the next item, so one bad character never stops the pass.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONCURRENCY = 5


@dataclass
class PoolResult:
    synced: int = 0
    failed: int = 0
    total: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"synced": self.synced, "failed": self.failed, "total": self.total}


async def run_bounded(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[object]],
    concurrency: int = DEFAULT_CONCURRENCY,
    label: Callable[[T], str] = str,
) -> PoolResult:
    """Run ``worker`` over every item with at most ``concurrency`` in flight.

    Args:
        items: Work items (e.g. due roster entries).
        worker: Coroutine function processing one item.
        concurrency: Number of workers; must be >= 1.
        label: Renders an item for log messages.

    Returns:
        ``PoolResult`` with ``synced + failed == total``.

    Raises:
        ValueError: If ``concurrency`` < 1.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}.")

    queue: asyncio.Queue[T] = asyncio.Queue()
    for item in items:
        queue.put_nowait(item)

    result = PoolResult(total=queue.qsize())
    if result.total == 0:
        return result

    async def _drain(worker_id: int) -> None:
        while True:
            try:
                item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                await worker(item)
                result.synced += 1
            except Exception as exc:
                result.failed += 1
                logger.error(
                    "Worker %d: %s failed: %s: %s",
                    worker_id, label(item), type(exc).__name__, exc,
                )
            finally:
                queue.task_done()
            done = result.synced + result.failed
            if done % 25 == 0 or done == result.total:
                logger.info("Progress: %d/%d processed", done, result.total)

    workers = min(concurrency, result.total)
    await asyncio.gather(*(_drain(i) for i in range(workers)))
    return result
