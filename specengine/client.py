"""The `specengine` command line client.

Commands:
    run-generator <command> [--cwd DIR] [--strip-prefix P] [--split-on S]
    complete <buffer> [--cwd DIR] [--cursor N]
    export <command|spec.toml> [--shell zsh|bash] [--output default|DIR]
    discover <command>...

Global options: `--debug <logfile>`, `--config <file>`.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from .ansi import CandidateStyles, colorize, should_colorize
from .config_loader import load_configuration
from .constants import SPEC_FILE_SUFFIX, SUPPORTED_SHELLS
from .engine import SpecEngine
from .logging_setup import get_logger, init_logger
from .models import ConfigError, ExitCode, SpecParseError, SpecSource
from .spec.models import GeneratorSpec
from .spec.parsing import load_spec_file

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .candidates import Candidate
    from .spec.models import CommandSpec

__all__ = ["main"]

USAGE = """Usage: specengine [--debug <logfile>] [--config <file>] <command> [args]

Commands:
  run-generator <command> [--cwd DIR] [--strip-prefix P] [--split-on S]
                     Print the values produced by a generator command
  complete <buffer> [--cwd DIR] [--cursor N]
                     Print the completion candidates of a command line
  export <command|spec.toml> [--shell zsh|bash] [--output default|DIR]
                     Print (or install) the completion script of a spec
  discover <command>...
                     Build specs from the --help output of commands"""


def use_param(args: list[str], txt: str) -> str:
    """Check if parameter `txt` is in `args`.

    if found, removes it from `args` & returns the argument value
    """
    v = ""
    if txt in args:
        i = args.index(txt)
        v = args[i + 1] if i + 1 < len(args) else ""
        del args[i : i + 2]
    return v


def _usage_error(message: str) -> ExitCode:
    print(f"Error: {message}", file=sys.stderr)
    return ExitCode.USAGE_ERROR


async def run_generator_command(engine: SpecEngine, args: list[str]) -> ExitCode:
    """Print the values of a generator, one per line."""
    cwd = use_param(args, "--cwd")
    strip_prefix = use_param(args, "--strip-prefix")
    split_on = use_param(args, "--split-on")
    if len(args) != 1:
        return _usage_error("run-generator expects exactly one command")
    generator = GeneratorSpec(command=args[0], split_on=split_on or "\n", strip_prefix=strip_prefix or None)
    values = await engine.run_generator(generator, Path(cwd) if cwd else None)
    if values:
        print("\n".join(values))
    return ExitCode.SUCCESS


def _format_candidate(candidate: Candidate, color: bool) -> str:
    text, kind, description = candidate.text, candidate.kind.value, candidate.description
    if color:
        text = colorize(text, *CandidateStyles.TEXT)
        kind = colorize(kind, *CandidateStyles.KIND)
        description = colorize(description, *CandidateStyles.DESCRIPTION) if description else ""
    return "\t".join((text, kind, description)).rstrip("\t")


async def complete_command(engine: SpecEngine, args: list[str]) -> ExitCode:
    """Print the candidates of a buffer as `text<TAB>kind<TAB>description` lines."""
    cwd = use_param(args, "--cwd")
    cursor = use_param(args, "--cursor")
    if not args:
        return _usage_error("complete expects a buffer")
    if cursor and not cursor.isdigit():
        return _usage_error(f"invalid cursor position: {cursor}")
    candidates = await engine.complete_buffer(" ".join(args), Path(cwd) if cwd else None, int(cursor) if cursor else None)
    color = should_colorize(sys.stdout)
    for candidate in candidates:
        print(_format_candidate(candidate, color))
    return ExitCode.SUCCESS


async def _export_target(engine: SpecEngine, target: str) -> CommandSpec | None:
    """A spec file path, or a command name looked up from the current directory."""
    path = Path(target).expanduser()
    if target.endswith(SPEC_FILE_SUFFIX) or path.is_file():
        return await load_spec_file(path, SpecSource.USER, engine.log)
    return await engine.lookup(target, Path.cwd())


async def export_command(engine: SpecEngine, args: list[str]) -> ExitCode:
    """Print the completion script of a spec, or write it with `--output`."""
    shell = use_param(args, "--shell") or "zsh"
    output = use_param(args, "--output")
    if len(args) != 1:
        return _usage_error("export expects a command name or a spec file")
    if shell not in SUPPORTED_SHELLS:
        return _usage_error(f"Unsupported shell: {shell}. Supported: {', '.join(SUPPORTED_SHELLS)}")
    if output and output != "default" and not output.startswith(("/", "~")):
        return _usage_error("Relative paths not supported. Use absolute path, ~/path, or 'default'.")

    try:
        spec = await _export_target(engine, args[0])
    except (SpecParseError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.SPEC_ERROR
    if spec is None:
        print(f"Error: no spec found for {args[0]}", file=sys.stderr)
        return ExitCode.SPEC_ERROR

    if not output:
        print(engine.export(spec, shell), end="")
        return ExitCode.SUCCESS

    output_dir = engine.completions_dir(shell) if output == "default" else Path(output).expanduser()
    try:
        path = engine.write_completion_file(spec, output_dir, shell)
    except OSError as e:
        print(f"Error: Failed to write completion file: {e}", file=sys.stderr)
        return ExitCode.IO_ERROR
    print(f"Completions written to {path}")
    return ExitCode.SUCCESS


async def discover_command(engine: SpecEngine, args: list[str]) -> ExitCode:
    """Discover specs for the given commands and report the outcome."""
    if not args:
        return _usage_error("discover expects at least one command")
    results = await engine.discover_many(args)
    for name, spec in results.items():
        if spec is None:
            print(f"{name}: skipped")
        else:
            print(f"{name}: {len(spec.subcommands)} subcommands, {len(spec.options)} options")
    return ExitCode.SUCCESS


COMMANDS: dict[str, Callable[[SpecEngine, list[str]], Awaitable[ExitCode]]] = {
    "run-generator": run_generator_command,
    "complete": complete_command,
    "export": export_command,
    "discover": discover_command,
}


def main() -> None:
    """Run the command."""
    args = sys.argv[1:]
    debug_flag = use_param(args, "--debug")
    if debug_flag:
        init_logger(filename=debug_flag, force_debug=True)
    else:
        init_logger()
    log = get_logger("specengine.client")
    config_file = use_param(args, "--config")

    if not args or args[0] in {"--help", "-h", "help"}:
        print(USAGE)
        sys.exit(ExitCode.SUCCESS if args else ExitCode.USAGE_ERROR)

    handler = COMMANDS.get(args[0])
    if handler is None:
        print(USAGE, file=sys.stderr)
        sys.exit(_usage_error(f"unknown command {args[0]}"))

    try:
        config = load_configuration(config_file or None, log)
    except ConfigError:
        sys.exit(ExitCode.USAGE_ERROR)

    try:
        code = asyncio.run(handler(SpecEngine(config), args[1:]))
    except KeyboardInterrupt:
        code = ExitCode.USAGE_ERROR
    sys.exit(code)


if __name__ == "__main__":
    main()
