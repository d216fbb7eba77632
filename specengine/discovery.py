"""Discovering specs of installed commands from their `--help` output.

Reading help text runs the command, so it is guarded: dangerous or interactive
commands are never queried, the help run happens in a scratch directory with
stdin closed and a sanitized environment, and its output is capped.
Discovered specs are persisted as JSON documents.
"""

from __future__ import annotations

import asyncio
import json
import os
import shlex
import shutil
import tempfile
import time
from pathlib import Path
from typing import TYPE_CHECKING

import aiofiles

from .aioops import aiexists, airead_text
from .constants import DISCOVERY_TIMEOUT, MAX_OUTPUT_BYTES, SECONDS_PER_DAY
from .logging_setup import get_logger
from .models import SpecParseError, SpecSource
from .process import ManagedProcess, sandbox_environment
from .spec.help_parser import parse_help_text
from .spec.parsing import parse_spec_data, spec_to_data

if TYPE_CHECKING:
    import logging
    from collections.abc import Iterable

    from .spec.models import CommandSpec

__all__ = [
    "DISCOVERY_BLOCKLIST",
    "DiscoveredSpecs",
    "can_discover",
    "discover_spec",
    "fetch_help_text",
    "is_safe_command_name",
]

# Never queried: destructive, privileged, interactive or network commands
DISCOVERY_BLOCKLIST = frozenset(
    {
        "rm", "dd", "mkfs", "fdisk", "shutdown", "reboot", "halt", "poweroff", "format", "diskutil",
        "sudo", "su", "doas", "login", "passwd", "kinit", "security", "open", "xdg-open", "osascript",
        "say", "afplay", "screencapture", "pmset", "caffeinate", "networksetup", "systemsetup",
        "launchctl", "systemctl", "defaults", "softwareupdate", "xcode-select", "xcodebuild",
        "instruments", "installer", "hdiutil", "codesign", "spctl", "ssh", "scp", "sftp", "ssh-agent",
        "ssh-add", "telnet", "ftp", "apt", "apt-get", "dpkg", "yum", "dnf", "pacman", "snap", "flatpak",
        "port", "mysql", "psql", "mongo", "redis-cli", "sqlite3",
    }
)  # fmt: skip

_RISKY_NAMES = frozenset(
    {
        "completion", "completions", "generate", "install", "setup", "configure", "init", "bootstrap",
        "deploy", "migrate", "update", "upgrade", "uninstall", "remove", "clean", "purge", "reset", "destroy",
    }
)  # fmt: skip

_HELP_FLAGS = ("--help", "-h")


def is_safe_command_name(command: str) -> bool:
    """Reject names too short, private looking, or hinting at side effects."""
    if len(command) <= 1 or command.startswith(("_", "-")):
        return False
    if "/" in command or any(c.isspace() for c in command):
        return False
    return command not in _RISKY_NAMES


def can_discover(command: str, extra_blocklist: Iterable[str] = ()) -> bool:
    """Tell whether `command` may be queried for its help text."""
    return (
        command not in DISCOVERY_BLOCKLIST
        and command not in set(extra_blocklist)
        and is_safe_command_name(command)
        and shutil.which(command) is not None
    )


def _looks_like_help(text: str) -> bool:
    lower = text.lower()
    return "usage" in lower or "options" in lower


async def fetch_help_text(command: str, timeout: float = DISCOVERY_TIMEOUT, logger: logging.Logger | None = None) -> str | None:
    """Run `command --help` (then `-h`) in a sandbox and return its output.

    Args:
        command: The command name
        timeout: Seconds allowed per attempt
        logger: Logger instance

    Returns:
        The help text, or None if no attempt produced any
    """
    log = logger or get_logger("specengine.discovery")
    with tempfile.TemporaryDirectory(prefix="specengine-") as scratch:
        for flag in _HELP_FLAGS:
            proc = ManagedProcess()
            try:
                await proc.start(
                    f"{shlex.quote(command)} {flag}",
                    cwd=scratch,
                    env=sandbox_environment(),
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    start_new_session=True,
                )
                stdout, stderr = await proc.communicate(timeout, max_bytes=MAX_OUTPUT_BYTES)
            except TimeoutError:
                log.debug("%s %s timed out", command, flag)
                continue
            except OSError as e:
                log.debug("%s %s failed: %s", command, flag, e)
                continue
            finally:
                await proc.stop()

            text = stdout.decode(errors="replace")
            error_text = stderr.decode(errors="replace")
            if not text.strip() or (not _looks_like_help(text) and _looks_like_help(error_text)):
                text = error_text
            if text.strip():
                return text
    return None


async def discover_spec(command: str, timeout: float = DISCOVERY_TIMEOUT, logger: logging.Logger | None = None) -> CommandSpec | None:
    """Build a spec for `command` from its help text."""
    text = await fetch_help_text(command, timeout, logger)
    if text is None:
        return None
    return parse_help_text(command, text)


class DiscoveredSpecs:
    """Directory of persisted discoveries, one `<command>.json` per command."""

    def __init__(self, directory: Path, max_age_days: float, logger: logging.Logger | None = None) -> None:
        self.directory = directory
        self.max_age = max_age_days * SECONDS_PER_DAY
        self.log = logger or get_logger("specengine.discovery")

    def path_for(self, command: str) -> Path:
        return self.directory / f"{command}.json"

    def is_stale(self, discovered_at: float) -> bool:
        """Tell whether a discovery made at `discovered_at` should be redone."""
        return time.time() - discovered_at > self.max_age

    async def load(self, command: str) -> tuple[CommandSpec, float] | None:
        """Return the persisted spec and its discovery time.

        Unreadable or invalid documents are logged and ignored.
        """
        path = self.path_for(command)
        if not await aiexists(path):
            return None
        try:
            document = json.loads(await airead_text(path))
            spec = parse_spec_data(document["spec"], path.name, SpecSource.DISCOVERED, self.log)
            discovered_at = float(document.get("discovered_at", 0))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError, SpecParseError) as e:
            self.log.warning("Ignoring discovered spec %s: %s", path, e)
            return None
        return spec, discovered_at

    async def save(self, spec: CommandSpec) -> Path:
        """Persist `spec` atomically, stamped with the current time."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(spec.name)
        document = {"discovered_at": time.time(), "command_path": shutil.which(spec.name), "spec": spec_to_data(spec)}
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{spec.name}.", suffix=".tmp")
        os.close(fd)
        try:
            async with aiofiles.open(tmp_name, "w", encoding="utf-8") as f:
                await f.write(json.dumps(document, indent=2))
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return path
