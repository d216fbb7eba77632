"""Result types of the context resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from ..spec.models import ArgTemplate

if TYPE_CHECKING:
    from pathlib import Path

    from ..spec.models import CommandSpec, GeneratorSpec, SubcommandSpec

__all__ = ["CompletionContext", "ExpectedType", "Position", "PositionKind", "ValueKind"]


class PositionKind(StrEnum):
    """Where the cursor sits in the command line."""

    COMMAND_NAME = "command_name"
    SUBCOMMAND = "subcommand"
    OPTION_FLAG = "option_flag"
    OPTION_VALUE = "option_value"
    ARGUMENT = "argument"
    PIPE_TARGET = "pipe_target"
    REDIRECT = "redirect"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Position:
    """A PositionKind with its payload (option identifier or argument index)."""

    kind: PositionKind
    option_id: str | None = None
    index: int | None = None

    @classmethod
    def command_name(cls) -> Position:
        return cls(PositionKind.COMMAND_NAME)

    @classmethod
    def subcommand(cls) -> Position:
        return cls(PositionKind.SUBCOMMAND)

    @classmethod
    def option_flag(cls) -> Position:
        return cls(PositionKind.OPTION_FLAG)

    @classmethod
    def option_value(cls, option_id: str) -> Position:
        return cls(PositionKind.OPTION_VALUE, option_id=option_id)

    @classmethod
    def argument(cls, index: int) -> Position:
        return cls(PositionKind.ARGUMENT, index=index)

    @classmethod
    def pipe_target(cls) -> Position:
        return cls(PositionKind.PIPE_TARGET)

    @classmethod
    def redirect(cls) -> Position:
        return cls(PositionKind.REDIRECT)

    @classmethod
    def unknown(cls) -> Position:
        return cls(PositionKind.UNKNOWN)


class ValueKind(StrEnum):
    """What kind of value is expected at the cursor."""

    ANY = "any"
    COMMAND = "command"
    FILE_PATH = "file_path"
    DIRECTORY = "directory"
    ENV_VAR = "env_var"
    HOSTNAME = "hostname"
    HISTORY = "history"
    ONE_OF = "one_of"
    GENERATOR = "generator"


_TEMPLATE_KINDS = {
    ArgTemplate.FILE_PATHS: ValueKind.FILE_PATH,
    ArgTemplate.DIRECTORIES: ValueKind.DIRECTORY,
    ArgTemplate.ENV_VARS: ValueKind.ENV_VAR,
    ArgTemplate.HISTORY: ValueKind.HISTORY,
}


@dataclass(frozen=True)
class ExpectedType:
    """A ValueKind with its payload (static choices or a generator)."""

    kind: ValueKind
    choices: tuple[str, ...] = ()
    generator: GeneratorSpec | None = None

    @classmethod
    def of(cls, kind: ValueKind) -> ExpectedType:
        return cls(kind)

    @classmethod
    def one_of(cls, choices: tuple[str, ...]) -> ExpectedType:
        return cls(ValueKind.ONE_OF, choices=tuple(choices))

    @classmethod
    def from_generator(cls, generator: GeneratorSpec) -> ExpectedType:
        return cls(ValueKind.GENERATOR, generator=generator)

    @classmethod
    def from_source(
        cls,
        generator: GeneratorSpec | None,
        template: ArgTemplate | None,
        suggestions: tuple[str, ...],
    ) -> ExpectedType:
        """Expected type for an option value or an argument declaring these sources."""
        if generator is not None:
            return cls.from_generator(generator)
        if template is not None:
            return cls(_TEMPLATE_KINDS[template])
        if suggestions:
            return cls.one_of(suggestions)
        return cls(ValueKind.ANY)


@dataclass(frozen=True)
class CompletionContext:  # pylint: disable=too-many-instance-attributes
    """Everything known about the word being completed.

    Attributes:
        buffer: The analyzed buffer (up to the cursor)
        tokens: Every word of the buffer, unquoted
        trailing_space: Whether the buffer ends with an unquoted separator
        partial: The word being typed ("" after a separator)
        prefix: The buffer text before `partial`
        command: The command of the analyzed segment
        position: Where the cursor is
        expected_type: What kind of value fits there
        subcommand_path: Canonical names of the subcommands walked through
        present_options: Identifiers of the options already typed
        conflicts: Pairs of present options declared mutually exclusive
        spec: The spec of `command`, when one was found
        node: The spec node the cursor belongs to
        cwd: Working directory of the shell
    """

    buffer: str
    tokens: tuple[str, ...] = ()
    trailing_space: bool = False
    partial: str = ""
    prefix: str = ""
    command: str | None = None
    position: Position = field(default_factory=Position.unknown)
    expected_type: ExpectedType = field(default_factory=lambda: ExpectedType(ValueKind.ANY))
    subcommand_path: tuple[str, ...] = ()
    present_options: tuple[str, ...] = ()
    conflicts: tuple[tuple[str, str], ...] = ()
    spec: CommandSpec | None = field(default=None, compare=False)
    node: CommandSpec | SubcommandSpec | None = field(default=None, compare=False)
    cwd: Path | None = None
