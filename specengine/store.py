"""Tiered lookup of command specs.

Tiers are consulted in priority order, the first one knowing the command wins:

1. user: `<project>/.specengine/specs/<command>.toml`, then the user specs directory
2. project-auto: specs generated from the project manifests
3. global: packaged built-ins, then specs discovered from `--help`

Each tier caches its answers (including "no spec") under (command, project root).
"""

from __future__ import annotations

__all__ = ["SpecStore"]

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from .aioops import BoundedRunner, aiexists, ailistdir
from .cache import TTLCache
from .config_loader import default_configuration
from .constants import (
    DISCOVERED_SPECS_DIR,
    PROJECT_SPEC_CACHE_MAX_ENTRIES,
    PROJECT_SPECS_DIRNAME,
    SPEC_FILE_SUFFIX,
    USER_SPECS_DIR,
)
from .discovery import DiscoveredSpecs, can_discover, discover_spec
from .logging_setup import get_logger
from .models import SpecEngineError, SpecSource
from .spec.autogen import find_project_root, generate_project_specs
from .spec.builtin import builtin_specs
from .spec.parsing import load_spec_file

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable, Iterable

    from .config import Configuration
    from .spec.models import CommandSpec

StoreKey = tuple[str, str]

# Tier builds failing with these count as "no spec in this tier"
_TIER_ERRORS = (SpecEngineError, OSError, ValueError)


class SpecStore:  # pylint: disable=too-many-instance-attributes
    """Resolves command names to specs.

    Args:
        config: Engine configuration
        logger: Logger instance
    """

    def __init__(self, config: Configuration | None = None, logger: logging.Logger | None = None) -> None:
        self.log = logger or get_logger("specengine.store")
        self.config = config if config is not None else default_configuration(self.log)
        ttl = self.config.get_float("project_spec_ttl")
        self.user_specs_dir = self.config.get_path("user_specs_dir", USER_SPECS_DIR)
        self.discoveries = DiscoveredSpecs(
            self.config.get_path("discovered_specs_dir", DISCOVERED_SPECS_DIR),
            self.config.get_float("discovered_max_age_days"),
            self.log,
        )
        self._user: TTLCache[StoreKey, CommandSpec | None] = TTLCache("user specs", ttl, PROJECT_SPEC_CACHE_MAX_ENTRIES, self.log)
        self._project: TTLCache[StoreKey, CommandSpec | None] = TTLCache("project specs", ttl, PROJECT_SPEC_CACHE_MAX_ENTRIES, self.log)
        self._catalogues: TTLCache[str, dict[str, CommandSpec]] = TTLCache("project catalogues", ttl, PROJECT_SPEC_CACHE_MAX_ENTRIES, self.log)
        self._indexes: TTLCache[str, dict[str, Path]] = TTLCache("spec directories", ttl, logger=self.log)
        self._global: TTLCache[StoreKey, CommandSpec | None] = TTLCache("global specs", logger=self.log)
        self._runner = BoundedRunner(self.config.get_int("bulk_concurrency"), self.config.get_seconds("bulk_delay_ms"))
        self._discovering: set[str] = set()
        self._tasks: set[asyncio.Task] = set()

    def project_root(self, cwd: Path | None) -> Path:
        """Return the project root of `cwd`, or `cwd` itself outside of projects."""
        cwd = Path(cwd) if cwd is not None else Path.cwd()
        return find_project_root(cwd, self.config.get_int("project_root_max_depth")) or cwd.resolve()

    def _user_dirs(self, root: Path) -> tuple[tuple[Path, SpecSource], ...]:
        return ((root / PROJECT_SPECS_DIRNAME, SpecSource.PROJECT_USER), (self.user_specs_dir, SpecSource.USER))

    async def lookup(self, command: str, cwd: Path | None = None) -> CommandSpec | None:
        """Return the highest priority spec for `command` as seen from `cwd`.

        Never raises for broken specs: a failing tier is skipped.
        """
        if not self.config.get_bool("enabled") or not command:
            return None
        root = self.project_root(cwd)
        tiers: tuple[tuple[str, TTLCache[StoreKey, CommandSpec | None], Callable[[], Awaitable[CommandSpec | None]]], ...] = (
            ("user", self._user, lambda: self._build_user(command, root)),
            ("project", self._project, lambda: self._build_project(command, root)),
            ("global", self._global, lambda: self._build_global(command)),
        )
        for name, cache, builder in tiers:
            # global specs do not depend on the project
            key = (command, "" if cache is self._global else str(root))
            try:
                spec = await cache.get_or_build(key, builder)
            except _TIER_ERRORS as e:
                self.log.warning("Ignoring %s spec for %s: %s", name, command, e)
                continue
            if spec is not None:
                self.log.debug("%s: %s spec from %s", command, name, spec.source)
                return spec
        return None

    async def _directory_index(self, directory: Path) -> dict[str, Path]:
        """Map the aliases declared by the specs in `directory` to their files."""

        async def build() -> dict[str, Path]:
            index: dict[str, Path] = {}
            if not await aiexists(directory):
                return index
            for filename in sorted(await ailistdir(directory)):
                if not filename.endswith(SPEC_FILE_SUFFIX):
                    continue
                path = directory / filename
                try:
                    spec = await load_spec_file(path, logger=self.log)
                except _TIER_ERRORS as e:
                    self.log.warning("Skipping spec %s: %s", path, e)
                    continue
                for alias in spec.aliases:
                    index.setdefault(alias, path)
            return index

        return await self._indexes.get_or_build(str(directory), build)

    async def _build_user(self, command: str, root: Path) -> CommandSpec | None:
        for directory, source in self._user_dirs(root):
            path: Path | None = directory / f"{command}{SPEC_FILE_SUFFIX}"
            if not await aiexists(path):
                path = (await self._directory_index(directory)).get(command)
            if path is not None:
                return await load_spec_file(path, source, self.log)
        return None

    async def _catalogue(self, root: Path) -> dict[str, CommandSpec]:
        """Return the specs generated for the project at `root`, by name and alias."""

        async def build() -> dict[str, CommandSpec]:
            catalogue: dict[str, CommandSpec] = {}
            for spec in await generate_project_specs(root, self.log):
                for name in spec.all_names:
                    catalogue.setdefault(name, spec)
            return catalogue

        return await self._catalogues.get_or_build(str(root), build)

    async def _build_project(self, command: str, root: Path) -> CommandSpec | None:
        if not self.config.get_bool("auto_generate"):
            return None
        return (await self._catalogue(root)).get(command)

    async def _build_global(self, command: str) -> CommandSpec | None:
        spec = builtin_specs().get(command)
        if spec is not None:
            return spec
        stored = await self.discoveries.load(command)
        if stored is not None:
            spec, discovered_at = stored
            if self.discoveries.is_stale(discovered_at):
                self._schedule_discovery(command)
            return spec
        self._schedule_discovery(command)
        return None

    def _schedule_discovery(self, command: str) -> None:
        """Discover `command` in the background, if allowed."""
        if not self.config.get_bool("discover_from_help") or command in self._discovering:
            return
        if not can_discover(command, self.config.get_str_list("discover_blocklist")):
            return
        self._discovering.add(command)
        task = asyncio.create_task(self._runner.run(lambda: self._discover(command)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _discover(self, command: str) -> CommandSpec | None:
        try:
            spec = await discover_spec(command, logger=self.log)
            if spec is None:
                self.log.debug("No usable help text for %s", command)
                return None
            try:
                await self.discoveries.save(spec)
            except OSError as e:
                self.log.warning("Cannot save discovered spec for %s: %s", command, e)
            self._global.insert((command, ""), spec)
            self.log.info("Discovered spec for %s", command)
            return spec
        finally:
            self._discovering.discard(command)

    async def discover_many(self, commands: Iterable[str]) -> dict[str, CommandSpec | None]:
        """Discover several commands with bounded concurrency.

        Commands that may not be queried are reported as None.
        """
        blocklist = self.config.get_str_list("discover_blocklist")
        names = list(dict.fromkeys(commands))
        allowed = [name for name in names if can_discover(name, blocklist)]
        results = dict.fromkeys(names)
        specs = await self._runner.map([lambda name=name: self._discover(name) for name in allowed])
        results.update(zip(allowed, specs, strict=True))
        return results

    async def all_command_names(self, cwd: Path | None = None) -> list[str]:
        """Every command name (and alias) known from `cwd`, sorted."""
        names: set[str] = set(builtin_specs())
        root = self.project_root(cwd)
        for directory, _source in self._user_dirs(root):
            if await aiexists(directory):
                names.update(f.removesuffix(SPEC_FILE_SUFFIX) for f in await ailistdir(directory) if f.endswith(SPEC_FILE_SUFFIX))
                names.update(await self._directory_index(directory))
        if self.config.get_bool("auto_generate"):
            names.update(await self._catalogue(root))
        if await aiexists(self.discoveries.directory):
            names.update(f.removesuffix(".json") for f in await ailistdir(self.discoveries.directory) if f.endswith(".json"))
        return sorted(names)

    def invalidate(self, command: str) -> None:
        """Forget what every tier knows about `command`."""
        for cache in (self._user, self._project, self._global):
            cache.invalidate_where(lambda key: key[0] == command)
        self._indexes.clear()

    def clear_cache(self) -> None:
        """Forget every cached spec, in all tiers."""
        for cache in (self._user, self._project, self._catalogues, self._indexes, self._global):
            cache.clear()
        builtin_specs.cache_clear()
