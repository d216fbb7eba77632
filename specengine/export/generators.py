"""Registry of the shell generators."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..constants import SUPPORTED_SHELLS
from .bash import generate_bash
from .format import timestamp
from .zsh import generate_zsh

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..spec.models import CommandSpec

__all__ = ["GENERATORS", "export"]

GENERATORS: dict[str, Callable[[CommandSpec, str], str]] = {
    "bash": generate_bash,
    "zsh": generate_zsh,
}


def export(spec: CommandSpec, shell: str = "zsh", generated_at: str | None = None) -> str:
    """Return the completion script of `spec` for `shell`.

    Args:
        spec: The command spec
        shell: Target shell, one of SUPPORTED_SHELLS
        generated_at: Provenance timestamp (defaults to now)

    Raises:
        ValueError: If the shell is not supported
    """
    try:
        generator = GENERATORS[shell]
    except KeyError:
        msg = f"Unsupported shell: {shell}. Supported: {', '.join(SUPPORTED_SHELLS)}"
        raise ValueError(msg) from None
    return generator(spec, generated_at or timestamp())
