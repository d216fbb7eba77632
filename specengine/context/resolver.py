"""Turning a partial command line into a CompletionContext.

Only the last segment of the buffer (after the last pipe, redirect or
command separator) is analyzed. Its command is looked up and the words
typed so far are walked through the spec tree to find where the cursor is
and which kind of value is expected there.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from ..constants import MAX_RECURSION_DEPTH
from ..logging_setup import get_logger
from ..spec.models import CommandSpec, OptionSpec, SubcommandSpec
from .models import CompletionContext, ExpectedType, Position, ValueKind
from .tokenizer import Token, TokenKind, last_segment, tokenize_with_operators

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from pathlib import Path

__all__ = ["FALLBACK_ARG_KINDS", "RECURSIVE_WRAPPERS", "resolve"]

# Argument kinds of common commands that have no spec
FALLBACK_ARG_KINDS: dict[str, ValueKind] = {
    **dict.fromkeys(("cd", "pushd", "mkdir", "rmdir"), ValueKind.DIRECTORY),
    **dict.fromkeys(
        (
            "cat", "less", "more", "head", "tail", "vim", "nvim", "vi", "nano", "code", "bat", "wc", "sort",
            "uniq", "file", "stat", "touch", "open", "cp", "mv", "rm", "chmod", "chown", "ln", "source",
            "python", "python3", "node", "ruby", "perl", "bash", "sh", "zsh",
        ),  # fmt: skip
        ValueKind.FILE_PATH,
    ),
    **dict.fromkeys(("ssh", "scp", "sftp", "ping", "mosh", "telnet"), ValueKind.HOSTNAME),
    **dict.fromkeys(("export", "unset"), ValueKind.ENV_VAR),
    **dict.fromkeys(("which", "type", "man", "command"), ValueKind.COMMAND),
}

# Commands running the rest of their command line as another command
RECURSIVE_WRAPPERS = frozenset({"sudo", "doas", "env", "nohup", "time", "watch", "xargs", "nice", "ionice", "strace", "exec"})

_ASSIGNMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")

log = get_logger("specengine.resolver")


def _has_trailing_space(buffer: str, tokens: list[Token]) -> bool:
    if not buffer or not buffer[-1].isspace():
        return False
    return not tokens or tokens[-1].end < len(buffer)


@dataclass
class _Walk:
    """Mutable state of a walk through a spec tree."""

    node: CommandSpec | SubcommandSpec
    path: list[str] = field(default_factory=list)
    present: list[str] = field(default_factory=list)
    pending: OptionSpec | None = None
    arg_index: int = 0
    options_done: bool = False


class _Resolver:
    def __init__(self, lookup: Callable[[str], Awaitable[CommandSpec | None]], max_depth: int) -> None:
        self.lookup = lookup
        self.max_depth = max_depth

    async def find_spec(self, command: str) -> CommandSpec | None:
        try:
            spec = await self.lookup(command)
        except Exception:  # noqa: BLE001  # pylint: disable=broad-exception-caught
            log.debug("Spec lookup failed for %s", command, exc_info=True)
            spec = None
        if spec is None and command in RECURSIVE_WRAPPERS:
            spec = CommandSpec(name=command, recursive=True)
        return spec

    async def segment(self, words: list[Token], trailing: bool, depth: int) -> CompletionContext:
        """Resolve a command line made of `words` (no operators)."""
        base = CompletionContext(buffer="", trailing_space=trailing)
        if not words:
            return replace(base, position=Position.command_name(), expected_type=ExpectedType.of(ValueKind.COMMAND))
        command = words[0].text
        if len(words) == 1 and not trailing:
            return replace(base, position=Position.command_name(), expected_type=ExpectedType.of(ValueKind.COMMAND))

        spec = await self.find_spec(command)
        base = replace(base, command=command, spec=spec)
        if spec is None:
            return self.fallback(base, command, words, trailing)
        if spec.recursive:
            return await self.wrapper(base, spec, words, trailing, depth)
        return self.walk(base, spec, words, trailing)

    def fallback(self, base: CompletionContext, command: str, words: list[Token], trailing: bool) -> CompletionContext:
        partial = "" if trailing else words[-1].text
        if partial.startswith("-"):
            return replace(base, position=Position.option_flag())
        kind = FALLBACK_ARG_KINDS.get(command)
        if kind is None:
            return replace(base, position=Position.unknown())
        complete_words = words[1:] if trailing else words[1:-1]
        index = sum(1 for word in complete_words if not word.text.startswith("-"))
        return replace(base, position=Position.argument(index), expected_type=ExpectedType.of(kind))

    async def wrapper(self, base: CompletionContext, spec: CommandSpec, words: list[Token], trailing: bool, depth: int) -> CompletionContext:
        """Skip the wrapper's own options, then resolve the wrapped command line."""
        if depth >= self.max_depth:
            log.debug("Recursion limit reached at %s", spec.name)
            return replace(base, position=Position.unknown())

        rest = words[1:]
        last = len(rest) - 1
        present: list[str] = []
        index = 0
        while index < len(rest):
            text = rest[index].text
            typing = index == last and not trailing
            if typing:
                break
            if text == "--":
                index += 1
                break
            if text.startswith("-") and len(text) > 1:
                option = spec.option_by_flag(text)
                present.append(option.identifier if option else text)
                if option and option.takes_arg and "=" not in text:
                    value_index = index + 1
                    if value_index > last or (value_index == last and not trailing):
                        return replace(
                            base,
                            node=spec,
                            present_options=tuple(present),
                            position=Position.option_value(option.identifier),
                            expected_type=ExpectedType.from_source(option.arg_generator, option.template, option.suggestions),
                        )
                    index = value_index + 1
                    continue
                index += 1
                continue
            if _ASSIGNMENT.match(text):
                index += 1
                continue
            break

        inner = rest[index:]
        base = replace(base, node=spec, present_options=tuple(present))
        if not inner:
            return replace(base, position=Position.command_name(), expected_type=ExpectedType.of(ValueKind.COMMAND))
        if len(inner) == 1 and not trailing:
            partial = inner[0].text
            if partial.startswith("-"):
                return replace(base, position=Position.option_flag())
            return replace(base, position=Position.command_name(), expected_type=ExpectedType.of(ValueKind.COMMAND))
        return await self.segment(inner, trailing, depth + 1)

    def walk(self, base: CompletionContext, spec: CommandSpec, words: list[Token], trailing: bool) -> CompletionContext:
        """Follow the complete words through the spec tree, then classify the partial one."""
        state = _Walk(node=spec)
        rest = words[1:] if trailing else words[1:-1]
        for token in rest:
            self.consume(state, token.text)

        partial = "" if trailing else words[-1].text
        base = replace(
            base,
            node=state.node,
            subcommand_path=tuple(state.path),
            present_options=tuple(state.present),
            conflicts=self.conflicts(state),
        )
        if base.conflicts:
            log.debug("Mutually exclusive options present: %s", base.conflicts)

        if state.pending is not None:
            option = state.pending
            return replace(
                base,
                position=Position.option_value(option.identifier),
                expected_type=ExpectedType.from_source(option.arg_generator, option.template, option.suggestions),
            )
        if partial.startswith("-") and not state.options_done:
            return replace(base, position=Position.option_flag())

        node = state.node
        if node.subcommands and state.arg_index == 0 and any(name.startswith(partial) for sub in node.subcommands for name in sub.all_names):
            return replace(base, position=Position.subcommand())
        arg = node.arg_at(state.arg_index)
        if arg is not None:
            return replace(
                base,
                position=Position.argument(state.arg_index),
                expected_type=ExpectedType.from_source(arg.generator, arg.template, arg.suggestions),
            )
        if node.subcommands and state.arg_index == 0:
            return replace(base, position=Position.subcommand())
        if state.path or state.arg_index or node.args:
            return replace(base, position=Position.argument(state.arg_index))
        return replace(base, position=Position.unknown())

    @staticmethod
    def consume(state: _Walk, text: str) -> None:
        """Account for one complete word."""
        if state.pending is not None:
            state.pending = None
            return
        if not state.options_done:
            if text == "--":
                state.options_done = True
                return
            if text.startswith("-") and len(text) > 1:
                option = state.node.option_by_flag(text)
                state.present.append(option.identifier if option else text)
                if option and option.takes_arg and "=" not in text:
                    state.pending = option
                return
            if state.arg_index == 0:
                sub = state.node.find_subcommand(text)
                if sub is not None:
                    state.node = sub
                    state.path.append(sub.name)
                    return
        state.arg_index += 1

    @staticmethod
    def conflicts(state: _Walk) -> tuple[tuple[str, str], ...]:
        found = []
        options = [o for o in state.node.options if o.identifier in state.present]
        for option in options:
            for other in options:
                if other is not option and option.excludes(other) and (other.identifier, option.identifier) not in found:
                    found.append((option.identifier, other.identifier))
        return tuple(found)


async def resolve(
    buffer: str,
    lookup: Callable[[str], Awaitable[CommandSpec | None]],
    *,
    cursor: int | None = None,
    cwd: Path | None = None,
    max_depth: int = MAX_RECURSION_DEPTH,
) -> CompletionContext:
    """Analyze `buffer` up to `cursor`.

    Args:
        buffer: The command line
        lookup: Coroutine returning the spec of a command name (or alias)
        cursor: Cursor offset (defaults to the end of the buffer)
        cwd: Working directory, stored in the context
        max_depth: Limit of nested wrapper commands (sudo env ...)

    Returns:
        The completion context
    """
    if cursor is not None:
        buffer = buffer[: max(cursor, 0)]
    tokens = tokenize_with_operators(buffer)
    trailing = _has_trailing_space(buffer, tokens)
    all_words = tuple(token.text for token in tokens if token.is_word)

    if not tokens or tokens[-1].kind is not TokenKind.WORD or trailing:
        partial = ""
        prefix = buffer
    else:
        partial = tokens[-1].text
        prefix = buffer[: tokens[-1].start]
    frame = {"buffer": buffer, "tokens": all_words, "trailing_space": trailing, "partial": partial, "prefix": prefix, "cwd": cwd}

    if not tokens:
        return CompletionContext(position=Position.command_name(), expected_type=ExpectedType.of(ValueKind.ANY), **frame)

    words, operator = last_segment(tokens)
    if operator is not None:
        if operator.kind is TokenKind.PIPE and (not words or (len(words) == 1 and not trailing)):
            return CompletionContext(position=Position.pipe_target(), expected_type=ExpectedType.of(ValueKind.COMMAND), **frame)
        if operator.kind.is_redirect:
            return CompletionContext(position=Position.redirect(), expected_type=ExpectedType.of(ValueKind.FILE_PATH), **frame)

    context = await _Resolver(lookup, max_depth).segment(words, trailing, 0)
    return replace(context, **frame)
