"""Running generator commands with time limits and caching.

Interactive callers wait at most the soft timeout; the subprocess itself is
stopped at the hard timeout. The raw output of every run, including
failures (as empty output), is cached under (command, cwd) for the
generator's TTL, and each caller splits it with its own settings. Failures
are only logged at debug level.
"""

from __future__ import annotations

__all__ = ["GeneratorExecutor", "split_output"]

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from .aioops import BoundedRunner
from .cache import TTLCache
from .config_loader import default_configuration
from .constants import GENERATOR_CACHE_MAX_ENTRIES, MAX_OUTPUT_BYTES
from .logging_setup import get_logger
from .models import GeneratorError, GeneratorExecutionError, GeneratorTimeout
from .process import ManagedProcess, sandbox_environment

if TYPE_CHECKING:
    import logging
    from collections.abc import Iterable

    from .config import Configuration
    from .spec.models import GeneratorSpec


def split_output(output: str, generator: GeneratorSpec) -> list[str]:
    """Turn generator output into values.

    Items are split on `split_on`, trimmed, stripped of `strip_prefix` and
    dropped when empty.
    """
    values = []
    for raw in output.split(generator.split_on):
        item = raw.strip()
        if generator.strip_prefix and item.startswith(generator.strip_prefix):
            item = item[len(generator.strip_prefix) :].strip()
        if item:
            values.append(item)
    return values


class GeneratorExecutor:
    """Runs GeneratorSpec commands.

    Args:
        config: Engine configuration (timeouts, TTL, bulk limits)
        logger: Logger instance
    """

    def __init__(self, config: Configuration | None = None, logger: logging.Logger | None = None) -> None:
        self.log = logger or get_logger("specengine.executor")
        self.config = config if config is not None else default_configuration(self.log)
        self.soft_timeout = self.config.get_seconds("generator_timeout_ms")
        self.hard_timeout = max(self.config.get_seconds("generator_hard_timeout_ms"), self.soft_timeout)
        self._cache: TTLCache[tuple[str, str], str] = TTLCache(
            "generators",
            ttl=self.config.get_float("generator_cache_ttl"),
            max_entries=GENERATOR_CACHE_MAX_ENTRIES,
            logger=self.log,
        )
        self._runner = BoundedRunner(self.config.get_int("bulk_concurrency"), self.config.get_seconds("bulk_delay_ms"))
        self._tasks: set[asyncio.Task] = set()

    def _soft_timeout_for(self, generator: GeneratorSpec) -> float:
        if generator.timeout_ms:
            return min(generator.timeout_ms / 1000, self.hard_timeout)
        return self.soft_timeout

    @staticmethod
    def _key(generator: GeneratorSpec, cwd: Path | None) -> tuple[str, str]:
        return (generator.command, str(cwd) if cwd else "")

    def _output(self, generator: GeneratorSpec, cwd: Path | None) -> asyncio.Task[str]:
        """Return a task resolving to the cached (or freshly captured) raw output."""
        task = asyncio.create_task(
            self._cache.get_or_build(self._key(generator, cwd), lambda: self._build(generator, cwd), ttl=generator.cache_ttl)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self, generator: GeneratorSpec, cwd: Path | None = None) -> list[str]:
        """Return the values produced by `generator` in `cwd`.

        Never raises for generator problems: they produce an empty list.
        A run outliving the soft timeout keeps going in the background (up
        to the hard timeout) so that its output is cached for later calls.
        """
        cached = self._cache.lookup(self._key(generator, cwd))
        if cached is not None:
            return split_output(cached, generator)
        task = self._output(generator, cwd)
        try:
            return split_output(await asyncio.wait_for(asyncio.shield(task), self._soft_timeout_for(generator)), generator)
        except TimeoutError:
            self.log.debug("Generator still running after soft timeout: %s", generator.command)
            return []

    async def run_many(self, requests: Iterable[tuple[GeneratorSpec, Path | None]]) -> list[list[str]]:
        """Run several generators as background work, with bounded concurrency.

        Results are returned in request order; each run may take up to the hard timeout.
        """
        pending = list(requests)
        outputs = await self._runner.map([lambda gen=gen, cwd=cwd: self._output(gen, cwd) for gen, cwd in pending])
        return [split_output(output, gen) for output, (gen, _cwd) in zip(outputs, pending, strict=True)]

    def clear_cache(self) -> None:
        """Forget every cached output."""
        self._cache.clear()

    async def _build(self, generator: GeneratorSpec, cwd: Path | None) -> str:
        try:
            return await self._execute(generator, cwd)
        except GeneratorError as e:
            self.log.debug("Generator failed (%s): %s", generator.command, e)
            return ""

    async def _execute(self, generator: GeneratorSpec, cwd: Path | None) -> str:
        """Run the command and return its standard output.

        Raises:
            GeneratorTimeout: When the hard timeout is reached
            GeneratorExecutionError: When the command cannot run or exits with an error
        """
        if cwd is not None and not Path(cwd).is_dir():
            msg = f"working directory {cwd} does not exist"
            raise GeneratorExecutionError(msg)
        proc = ManagedProcess()
        try:
            await proc.start(
                generator.command,
                cwd=cwd,
                env=sandbox_environment(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
            stdout, stderr = await proc.communicate(self.hard_timeout, max_bytes=MAX_OUTPUT_BYTES)
        except TimeoutError as e:
            msg = f"timed out after {self.hard_timeout}s"
            raise GeneratorTimeout(msg) from e
        except (OSError, ValueError) as e:
            # ValueError: NUL bytes in the command or the directory
            raise GeneratorExecutionError(str(e)) from e
        finally:
            await proc.stop()

        if proc.returncode != 0:
            msg = f"exit status {proc.returncode}: {stderr.decode(errors='replace').strip()[:200]}"
            raise GeneratorExecutionError(msg, proc.returncode)
        return stdout.decode(errors="replace")
