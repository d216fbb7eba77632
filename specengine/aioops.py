"""Async helpers: file access through aiofiles and rate-limited bulk work."""

from __future__ import annotations

__all__ = ["BoundedRunner", "aiexists", "ailistdir", "airead_text"]

import asyncio
from typing import TYPE_CHECKING, TypeVar

import aiofiles
import aiofiles.os

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable
    from pathlib import Path

T = TypeVar("T")

aiexists = aiofiles.os.path.exists
ailistdir = aiofiles.os.listdir


async def airead_text(path: Path | str) -> str:
    """Read a whole UTF-8 text file."""
    async with aiofiles.open(path, encoding="utf-8") as f:
        return await f.read()


class BoundedRunner:
    """Runs background jobs with bounded concurrency.

    Jobs are started in batches of `concurrency` items with a pause of
    `delay` seconds between batches. The semaphore is shared by every caller
    of the same runner, so concurrent bulk requests stay bounded as a whole.
    """

    def __init__(self, concurrency: int, delay: float) -> None:
        self.concurrency = max(1, concurrency)
        self.delay = delay
        self._semaphore = asyncio.Semaphore(self.concurrency)

    async def run(self, job: Callable[[], Awaitable[T]]) -> T:
        """Run a single job under the semaphore."""
        async with self._semaphore:
            return await job()

    async def map(self, jobs: Iterable[Callable[[], Awaitable[T]]]) -> list[T]:
        """Run `jobs` batch by batch, keeping their order in the result."""
        pending = list(jobs)
        results: list[T] = []
        for start in range(0, len(pending), self.concurrency):
            if start and self.delay > 0:
                await asyncio.sleep(self.delay)
            batch = pending[start : start + self.concurrency]
            results.extend(await asyncio.gather(*(self.run(job) for job in batch)))
        return results
