"""Quoting and naming helpers shared by the shell generators."""

from __future__ import annotations

import re
import shlex
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..spec.models import CommandSpec, GeneratorSpec, SubcommandSpec

__all__ = [
    "GENERATOR_HELPER",
    "FunctionNames",
    "generator_call",
    "header_lines",
    "single_quote",
    "timestamp",
    "uses_generators",
    "walk_nodes",
    "zsh_bracket",
    "zsh_list_item",
    "zsh_message",
]

GENERATOR_HELPER = "_specengine_generate"

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")


def single_quote(text: str) -> str:
    """Escape `text` for use inside single quotes."""
    return text.replace("'", "'\\''")


def zsh_bracket(text: str) -> str:
    """Escape an option description, written between brackets in `_arguments` specs."""
    text = " ".join(text.split())
    for char in ("\\", "[", "]"):
        text = text.replace(char, "\\" + char)
    return text


def zsh_message(text: str) -> str:
    """Escape a message field (colon separated) of an `_arguments` spec."""
    return text.replace("\\", "\\\\").replace(":", "\\:")


def zsh_list_item(text: str) -> str:
    """Escape one word of a `(a b c)` action."""
    return re.sub(r"([\\\s()'\"$`])", r"\\\1", text)


def generator_call(generator: GeneratorSpec) -> str:
    """Call of the runtime helper evaluating `generator` through `specengine run-generator`."""
    words = [GENERATOR_HELPER, shlex.quote(generator.command)]
    if generator.strip_prefix:
        words += ["--strip-prefix", shlex.quote(generator.strip_prefix)]
    if generator.split_on != "\n":
        words += ["--split-on", shlex.quote(generator.split_on)]
    return " ".join(words)


def timestamp() -> str:
    """Current UTC time, as written in the provenance line."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def header_lines(spec: CommandSpec, shell: str, generated_at: str) -> list[str]:
    """Comment lines opening a generated file.

    Only the "Generated at" line depends on the time of the run.
    """
    return [
        f"# {shell} completion for {spec.name}, generated by specengine",
        f"# Source: {spec.source.value}",
        f"# Provenance: {spec.source.label}",
        f"# Generated at: {generated_at}",
        f"# Regenerate with: specengine export {spec.name} --shell {shell}",
    ]


class FunctionNames:
    """Allocates shell function names for the nodes of a spec, without collisions."""

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix
        self._taken: set[str] = set()

    def allocate(self, path: tuple[str, ...]) -> str:
        base = "_".join([self.prefix, *(_UNSAFE_NAME_CHARS.sub("_", part) for part in path)])
        name = base
        counter = 2
        while name in self._taken:
            name = f"{base}_{counter}"
            counter += 1
        self._taken.add(name)
        return name


def walk_nodes(spec: CommandSpec) -> list[tuple[tuple[str, ...], CommandSpec | SubcommandSpec]]:
    """Every node of `spec` with its name path, parents first, in declared order.

    The subcommands of recursive commands are not visited: the wrapped
    command line is completed as a command of its own.
    """
    nodes: list[tuple[tuple[str, ...], CommandSpec | SubcommandSpec]] = []

    def visit(node: CommandSpec | SubcommandSpec, path: tuple[str, ...]) -> None:
        nodes.append((path, node))
        for sub in node.subcommands:
            visit(sub, (*path, sub.name))

    if spec.recursive:
        nodes.append(((spec.name,), spec))
    else:
        visit(spec, (spec.name,))
    return nodes


def uses_generators(spec: CommandSpec) -> bool:
    """Tell whether a generated file needs the generator helper function."""
    return any(
        any(option.arg_generator for option in node.options) or any(arg.generator for arg in node.args) for _path, node in walk_nodes(spec)
    )
