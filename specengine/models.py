"""Common types and errors shared by the engine components."""

from enum import IntEnum, StrEnum

__all__ = [
    "CandidateKind",
    "ConfigError",
    "ExitCode",
    "GeneratorError",
    "GeneratorExecutionError",
    "GeneratorTimeout",
    "SpecEngineError",
    "SpecParseError",
    "SpecSource",
]


class SpecEngineError(Exception):
    """Base class for errors raised by specengine."""


class SpecParseError(SpecEngineError):
    """A spec (or project manifest) could not be turned into a CommandSpec.

    Attributes:
        message: What went wrong
        location: Where it went wrong (file name and path inside the document)
    """

    def __init__(self, message: str, location: str = "") -> None:
        super().__init__(message, location)
        self.message = message
        self.location = location

    def __str__(self) -> str:
        if self.location:
            return f"{self.location}: {self.message}"
        return self.message


class ConfigError(SpecEngineError):
    """The configuration file is unreadable or malformed."""


class GeneratorError(SpecEngineError):
    """A generator command did not produce usable output."""


class GeneratorTimeout(GeneratorError):
    """A generator command exceeded its time budget."""


class GeneratorExecutionError(GeneratorError):
    """A generator command could not be spawned or exited with an error."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class SpecSource(StrEnum):
    """Where a CommandSpec came from."""

    USER = "user"
    PROJECT_USER = "project-user"
    PROJECT_AUTO = "project-auto"
    DISCOVERED = "discovered"
    BUILTIN = "builtin"

    @property
    def label(self) -> str:
        """Human readable provenance."""
        return {
            SpecSource.USER: "user-authored",
            SpecSource.PROJECT_USER: "user-authored",
            SpecSource.PROJECT_AUTO: "auto-generated",
            SpecSource.DISCOVERED: "discovered",
            SpecSource.BUILTIN: "built-in",
        }[self]


class CandidateKind(StrEnum):
    """Kind of a completion candidate."""

    COMMAND = "command"
    SUBCOMMAND = "subcommand"
    OPTION = "option"
    ARGUMENT = "argument"
    VALUE = "value"


# Exit codes for the command line client
class ExitCode(IntEnum):
    """Standard exit codes for the specengine client."""

    SUCCESS = 0
    USAGE_ERROR = 1  # No command provided, invalid arguments
    SPEC_ERROR = 2  # Spec file could not be parsed
    IO_ERROR = 3  # Reading or writing a file failed
