"""The engine facade: spec lookup, context resolution, candidates and export."""

from __future__ import annotations

__all__ = ["SpecEngine"]

from pathlib import Path
from typing import TYPE_CHECKING

from .candidates import complete
from .config_loader import default_configuration
from .constants import COMPLETIONS_DIR
from .context.models import PositionKind
from .context.resolver import resolve
from .executor import GeneratorExecutor
from .export import export, write_completion_file
from .logging_setup import get_logger
from .models import SpecSource
from .store import SpecStore

if TYPE_CHECKING:
    import logging
    from collections.abc import Iterable

    from .candidates import Candidate
    from .context.models import CompletionContext
    from .config import Configuration
    from .spec.models import CommandSpec, GeneratorSpec


class SpecEngine:
    """Wires the spec store, the context resolver and the generator executor.

    Args:
        config: Engine configuration (defaults to the schema defaults)
        logger: Logger instance
    """

    def __init__(self, config: Configuration | None = None, logger: logging.Logger | None = None) -> None:
        self.log = logger or get_logger("specengine")
        self.config = config if config is not None else default_configuration(self.log)
        self.store = SpecStore(self.config, logger)
        self.executor = GeneratorExecutor(self.config, logger)

    async def lookup(self, command: str, cwd: Path | None = None) -> CommandSpec | None:
        """Return the spec of `command` as seen from `cwd`."""
        return await self.store.lookup(command, cwd)

    async def resolve(self, buffer: str, cwd: Path | None = None, cursor: int | None = None) -> CompletionContext:
        """Analyze `buffer` (up to `cursor`) typed in `cwd`."""
        cwd = Path(cwd) if cwd is not None else Path.cwd()

        async def lookup(command: str) -> CommandSpec | None:
            return await self.store.lookup(command, cwd)

        return await resolve(buffer, lookup, cursor=cursor, cwd=cwd, max_depth=self.config.get_int("max_recursion_depth"))

    def _generators_allowed(self, context: CompletionContext) -> bool:
        """Project-local specs come with the repository: their commands only run when trusted."""
        if context.spec is None or context.spec.source is not SpecSource.PROJECT_USER:
            return True
        return self.config.get_bool("trust_project_generators")

    async def complete(self, context: CompletionContext) -> list[Candidate]:
        """Return the candidates for `context`.

        Never raises: any problem is logged and yields no candidates.
        """
        try:
            names: Iterable[str] = ()
            if context.position.kind in (PositionKind.COMMAND_NAME, PositionKind.PIPE_TARGET):
                names = await self.store.all_command_names(context.cwd)
            return await complete(
                context,
                run_generator=self.run_generator,
                command_names=names,
                allow_generators=self._generators_allowed(context),
            )
        except Exception:  # noqa: BLE001  # pylint: disable=broad-exception-caught
            self.log.debug("Completion failed for %r", context.buffer, exc_info=True)
            return []

    async def complete_buffer(self, buffer: str, cwd: Path | None = None, cursor: int | None = None) -> list[Candidate]:
        """Resolve then complete `buffer`, recovering from any error."""
        try:
            context = await self.resolve(buffer, cwd, cursor)
        except Exception:  # noqa: BLE001  # pylint: disable=broad-exception-caught
            self.log.debug("Resolution failed for %r", buffer, exc_info=True)
            return []
        return await self.complete(context)

    async def run_generator(self, generator: GeneratorSpec, cwd: Path | None = None) -> list[str]:
        """Return the values of `generator` run in `cwd` (cached, time boxed, never raising)."""
        return await self.executor.run(generator, cwd)

    def export(self, spec: CommandSpec, shell: str = "zsh") -> str:
        """Return the completion script of `spec` for `shell`."""
        return export(spec, shell)

    def completions_dir(self, shell: str = "zsh") -> Path:
        """Default directory of the completion files of `shell`."""
        return self.config.get_path("completions_dir", COMPLETIONS_DIR) / shell

    def write_completion_file(self, spec: CommandSpec, output_dir: Path | None = None, shell: str = "zsh") -> Path:
        """Atomically write the completion file of `spec`, return its path."""
        return write_completion_file(spec, output_dir or self.completions_dir(shell), shell)

    async def discover_many(self, commands: Iterable[str]) -> dict[str, CommandSpec | None]:
        """Discover specs for `commands` from their help texts, with bounded concurrency."""
        return await self.store.discover_many(commands)

    def clear_cache(self) -> None:
        """Forget every cached spec and generator output."""
        self.store.clear_cache()
        self.executor.clear_cache()
