"""Completion candidates for a resolved context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .context.models import PositionKind, ValueKind
from .models import CandidateKind

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable
    from pathlib import Path

    from .context.models import CompletionContext, ExpectedType
    from .spec.models import CommandSpec, GeneratorSpec, OptionSpec, SubcommandSpec

__all__ = ["Candidate", "complete"]


@dataclass(frozen=True)
class Candidate:
    """A completion suggestion."""

    text: str
    description: str = ""
    kind: CandidateKind = CandidateKind.VALUE


def _unique(candidates: Iterable[Candidate]) -> list[Candidate]:
    seen: set[str] = set()
    result = []
    for candidate in candidates:
        if candidate.text not in seen:
            seen.add(candidate.text)
            result.append(candidate)
    return result


def _subcommands(node: CommandSpec | SubcommandSpec, partial: str) -> list[Candidate]:
    candidates = []
    for sub in node.subcommands:
        if sub.name.startswith(partial):
            candidates.append(Candidate(sub.name, sub.description, CandidateKind.SUBCOMMAND))
        else:
            candidates.extend(Candidate(alias, sub.description, CandidateKind.SUBCOMMAND) for alias in sub.aliases if alias.startswith(partial))
    return candidates


def _excluded(option: OptionSpec, node: CommandSpec | SubcommandSpec, present: tuple[str, ...]) -> bool:
    """Tell whether `option` conflicts with an option already typed."""
    for other in node.options:
        if other is option or not any(other.matches(name) for name in present):
            continue
        if option.excludes(other) or other.excludes(option):
            return True
    return False


def _options(node: CommandSpec | SubcommandSpec, partial: str, present: tuple[str, ...]) -> list[Candidate]:
    candidates = []
    for option in node.options:
        if _excluded(option, node, present):
            continue
        for flag in (option.long, option.short):
            if flag and flag.startswith(partial):
                candidates.append(Candidate(flag, option.description, CandidateKind.OPTION))
    return candidates


async def _values(
    expected: ExpectedType,
    partial: str,
    kind: CandidateKind,
    run_generator: Callable[[GeneratorSpec, Path | None], Awaitable[list[str]]],
    cwd: Path | None,
    allow_generators: bool,
) -> list[Candidate]:
    if expected.kind is ValueKind.ONE_OF:
        values: Iterable[str] = expected.choices
    elif expected.kind is ValueKind.GENERATOR and expected.generator is not None and allow_generators:
        values = await run_generator(expected.generator, cwd)
    else:
        # structural kinds (files, directories...) are completed by the shell
        return []
    return [Candidate(value, "", kind) for value in values if value.startswith(partial)]


async def complete(
    context: CompletionContext,
    *,
    run_generator: Callable[[GeneratorSpec, Path | None], Awaitable[list[str]]],
    command_names: Iterable[str] = (),
    allow_generators: bool = True,
) -> list[Candidate]:
    """Return the candidates fitting `context`, in declaration order.

    Args:
        context: The resolved context
        run_generator: Coroutine running a generator in a directory
        command_names: Known command names, for command positions
        allow_generators: When False, generator-backed values are not produced

    Returns:
        The candidates matching the partial word
    """
    position = context.position.kind
    partial = context.partial
    node = context.node

    if position in (PositionKind.COMMAND_NAME, PositionKind.PIPE_TARGET):
        return _unique(Candidate(name, "", CandidateKind.COMMAND) for name in sorted(command_names) if name.startswith(partial))
    if node is None:
        return []
    if position is PositionKind.SUBCOMMAND:
        return _unique(_subcommands(node, partial))
    if position is PositionKind.OPTION_FLAG:
        return _unique(_options(node, partial, context.present_options))
    if position is PositionKind.OPTION_VALUE:
        return _unique(await _values(context.expected_type, partial, CandidateKind.VALUE, run_generator, context.cwd, allow_generators))
    if position is PositionKind.ARGUMENT:
        return _unique(await _values(context.expected_type, partial, CandidateKind.ARGUMENT, run_generator, context.cwd, allow_generators))
    return []
