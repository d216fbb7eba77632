"""Installing generated completion files."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from ..logging_setup import get_logger
from ..models import SpecSource
from .generators import export

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..spec.models import CommandSpec

__all__ = ["GenerationReport", "completion_filename", "generate_all", "remove_stale_project_auto", "write_completion_file"]

log = get_logger("specengine.export")

_PROJECT_AUTO_MARKER = f"# Source: {SpecSource.PROJECT_AUTO.value}"
_HEADER_LINES = 6


@dataclass
class GenerationReport:
    """Outcome of a bulk generation."""

    generated: list[str] = field(default_factory=list)
    skipped_existing: list[str] = field(default_factory=list)


def completion_filename(command: str, shell: str = "zsh") -> str:
    """Name of the completion file of `command`: `_<command>` for zsh, `<command>` for bash."""
    if not command or command in (".", "..") or "/" in command:
        msg = f"Invalid command name for a completion file: {command!r}"
        raise ValueError(msg)
    return f"_{command}" if shell == "zsh" else command


def write_completion_file(spec: CommandSpec, output_dir: Path, shell: str = "zsh", generated_at: str | None = None) -> Path:
    """Write the completion script of `spec` into `output_dir`.

    The script is written to a temporary file of the same directory, then
    renamed over the destination: readers never see a partial file.

    Returns:
        The path of the written file

    Raises:
        OSError: If the file cannot be written (no partial file is left behind)
        ValueError: If the shell is not supported
    """
    content = export(spec, shell, generated_at)
    path = output_dir / completion_filename(spec.name, shell)
    output_dir.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=output_dir, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    log.debug("Wrote %s", path)
    return path


def generate_all(
    specs: Iterable[CommandSpec],
    output_dir: Path,
    shell: str = "zsh",
    existing_commands: Iterable[str] = (),
    gap_only: bool = False,
) -> GenerationReport:
    """Write the completion files of several specs.

    Args:
        specs: The specs to export
        output_dir: Destination directory
        shell: Target shell
        existing_commands: Commands already having a completion from elsewhere
        gap_only: Skip the commands of `existing_commands`, except project specs
    """
    existing = set(existing_commands)
    report = GenerationReport()
    for spec in specs:
        if gap_only and spec.source is not SpecSource.PROJECT_AUTO and spec.name in existing:
            report.skipped_existing.append(spec.name)
            continue
        write_completion_file(spec, output_dir, shell)
        report.generated.append(spec.name)
    return report


def _is_project_auto(path: Path) -> bool:
    try:
        with path.open(encoding="utf-8") as f:
            return any(f.readline().rstrip("\n") == _PROJECT_AUTO_MARKER for _ in range(_HEADER_LINES))
    except (OSError, UnicodeDecodeError):
        return False


def remove_stale_project_auto(output_dir: Path, generated_names: Iterable[str], shell: str = "zsh") -> list[str]:
    """Delete generated project completions whose command is no longer generated.

    Only files carrying the project-auto provenance header are considered.

    Returns:
        The commands whose file was removed
    """
    if not output_dir.is_dir():
        return []
    keep = set(generated_names)
    removed = []
    for path in sorted(output_dir.iterdir()):
        name = path.name
        if name.startswith(".") or not path.is_file():
            continue
        if shell == "zsh":
            if not name.startswith("_"):
                continue
            name = name[1:]
        if name in keep or not _is_project_auto(path):
            continue
        path.unlink()
        log.info("Removed stale completion %s", path)
        removed.append(name)
    return removed
