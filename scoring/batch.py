"""
BaitGuard — Batch Runner
Runs an async worker over many inputs in fixed-size chunks. Items inside a
chunk run concurrently; chunks run one after another with a short pause.

A chunk that exceeds its deadline is cancelled as a whole and every item in it
is reported as failed, but the remaining chunks still run.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_CONCURRENT = 3
DEFAULT_CHUNK_TIMEOUT = 30.0   # seconds
DEFAULT_CHUNK_DELAY = 0.1      # seconds
CHUNK_FAILED = "Batch processing failed"


@dataclass
class BatchItem:
    index: int
    result: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_batch(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[Any]],
    max_concurrent: int = DEFAULT_MAX_CONCURRENT,
    timeout: float = DEFAULT_CHUNK_TIMEOUT,
    delay: float = DEFAULT_CHUNK_DELAY,
) -> list[BatchItem]:
    """Return one BatchItem per input, in input order."""
    size = max(1, int(max_concurrent))
    out: list[BatchItem] = []

    for start in range(0, len(items), size):
        chunk = items[start:start + size]
        try:
            results = await asyncio.wait_for(
                asyncio.gather(*(worker(item) for item in chunk), return_exceptions=True),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Batch chunk %d-%d timed out after %.1fs",
                           start, start + len(chunk) - 1, timeout)
            out.extend(BatchItem(index=start + i, error=CHUNK_FAILED) for i in range(len(chunk)))
        else:
            for i, res in enumerate(results):
                if isinstance(res, Exception):
                    logger.warning("Batch item %d failed: %s", start + i, res)
                    out.append(BatchItem(index=start + i, error=str(res) or type(res).__name__))
                elif isinstance(res, BaseException):
                    raise res
                else:
                    out.append(BatchItem(index=start + i, result=res))

        if start + size < len(items) and delay > 0:
            await asyncio.sleep(delay)

    return out
