"""Subprocesses of generators and help queries.

They run through the shell, are stopped with SIGTERM then SIGKILL when they
overstay, and their output is collected up to a byte limit.
"""

__all__ = ["ManagedProcess", "sandbox_environment"]

import asyncio
import contextlib
import os
import signal
from typing import Any

from .constants import SANDBOX_ENV


def sandbox_environment() -> dict[str, str]:
    """Environment for spawned helpers: the current one without interactive prompts."""
    return {**os.environ, **SANDBOX_ENV}


class ManagedProcess:
    """A shell command with a bounded lifetime.

    Stopping sends SIGTERM, waits `graceful_timeout`, then sends SIGKILL, and
    always reaps the process. With `start_new_session=True` the signals reach
    the whole process group, so the children of the shell stop too.

    Usage:
        proc = ManagedProcess()
        await proc.start("git branch", stdout=PIPE, stderr=PIPE, start_new_session=True)
        stdout, stderr = await proc.communicate(timeout=5.0, max_bytes=65536)
    """

    def __init__(self, graceful_timeout: float = 0.2) -> None:
        self._proc: asyncio.subprocess.Process | None = None
        self._graceful_timeout = graceful_timeout
        self._group = False

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    @property
    def returncode(self) -> int | None:
        """Exit status, None while running or before start."""
        return self._proc.returncode if self._proc else None

    @property
    def is_alive(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    async def start(self, command: str, **subprocess_kwargs: Any) -> None:  # noqa: ANN401
        """Run `command` in a shell, stopping the previous one if still alive.

        `subprocess_kwargs` go to create_subprocess_shell.
        """
        if self.is_alive:
            await self.stop()

        self._group = bool(subprocess_kwargs.get("start_new_session"))
        self._proc = await asyncio.create_subprocess_shell(command, **subprocess_kwargs)

    def _signal(self, sig: int) -> None:
        if self._proc is None:
            return
        with contextlib.suppress(ProcessLookupError, PermissionError):
            if self._group:
                os.killpg(self._proc.pid, sig)
            else:
                self._proc.send_signal(sig)

    async def stop(self) -> int | None:
        """Stop the process gracefully.

        Returns:
            The process return code, or None if not running
        """
        if self._proc is None:
            return None

        if self._proc.returncode is not None:
            return self._proc.returncode

        self._signal(signal.SIGTERM)
        try:
            await asyncio.wait_for(self._proc.wait(), timeout=self._graceful_timeout)
        except TimeoutError:
            self._signal(signal.SIGKILL)
            await self._proc.wait()

        return self._proc.returncode

    async def wait(self) -> int:
        """Wait for process to exit and return exit code.

        Raises:
            RuntimeError: If no process is running
        """
        if self._proc is None:
            msg = "No process running"
            raise RuntimeError(msg)
        return await self._proc.wait()

    async def communicate(self, timeout: float, max_bytes: int | None = None) -> tuple[bytes, bytes]:
        """Collect stdout and stderr until the process exits.

        Output beyond `max_bytes` (per stream) is discarded.

        Args:
            timeout: Seconds before the process is stopped
            max_bytes: Per-stream limit on the returned data

        Returns:
            The (stdout, stderr) pair

        Raises:
            RuntimeError: If no process is running
            TimeoutError: If the process outlived `timeout` (it is stopped first)
        """
        if self._proc is None:
            msg = "No process running"
            raise RuntimeError(msg)
        try:
            async with asyncio.timeout(timeout):
                stdout, stderr = await asyncio.gather(
                    self._read_stream(self._proc.stdout, max_bytes),
                    self._read_stream(self._proc.stderr, max_bytes),
                )
                await self._proc.wait()
        except TimeoutError:
            await self.stop()
            raise
        return stdout, stderr

    @staticmethod
    async def _read_stream(stream: asyncio.StreamReader | None, max_bytes: int | None) -> bytes:
        if stream is None:
            return b""
        chunks: list[bytes] = []
        size = 0
        while chunk := await stream.read(65536):
            if max_bytes is None or size < max_bytes:
                chunks.append(chunk)
            size += len(chunk)
        data = b"".join(chunks)
        return data if max_bytes is None else data[:max_bytes]
