"""Building CommandSpec objects from spec documents.

Parsing is all-or-nothing: any problem raises SpecParseError carrying the
location of the offending table, a partial spec is never returned.
"""

from __future__ import annotations

import tomllib
from typing import TYPE_CHECKING, Any

from ..aioops import airead_text
from ..config import coerce_to_bool
from ..logging_setup import get_logger
from ..models import SpecParseError, SpecSource
from ..validation import ConfigValidator
from .models import ArgSpec, ArgTemplate, CommandSpec, GeneratorSpec, OptionSpec, SubcommandSpec
from .schema import ARG_SCHEMA, COMMAND_SCHEMA, GENERATOR_SCHEMA, OPTION_SCHEMA, SUBCOMMAND_SCHEMA

if TYPE_CHECKING:
    import logging
    from pathlib import Path

    from ..validation import ConfigItems

__all__ = ["load_spec_file", "parse_spec_data", "parse_spec_text", "spec_to_data"]


class _SpecReader:
    """Walks a spec document, validating every table against its schema."""

    def __init__(self, origin: str, logger: logging.Logger) -> None:
        self.origin = origin
        self.log = logger

    def fail(self, path: str, message: str) -> SpecParseError:
        location = f"{self.origin}: {path}" if path else self.origin
        return SpecParseError(message, location)

    def check(self, data: Any, schema: ConfigItems, path: str) -> dict[str, Any]:  # noqa: ANN401
        if not isinstance(data, dict):
            raise self.fail(path, f"expected a table, got {type(data).__name__}")
        validator = ConfigValidator(data, path or self.origin, self.log)
        errors = validator.validate(schema)
        if errors:
            raise self.fail(path, "; ".join(errors))
        validator.warn_unknown_keys(schema)
        return data

    def command(self, data: Any, source: SpecSource) -> CommandSpec:  # noqa: ANN401
        table = self.check(data, COMMAND_SCHEMA, "")
        subcommands, options, args = self.children(table, "")
        return CommandSpec(
            name=table["name"],
            description=table.get("description", ""),
            aliases=tuple(table.get("aliases", ())),
            recursive=coerce_to_bool(table.get("recursive")),
            subcommands=subcommands,
            options=options,
            args=args,
            source=source,
        )

    def subcommand(self, data: Any, path: str) -> SubcommandSpec:  # noqa: ANN401
        table = self.check(data, SUBCOMMAND_SCHEMA, path)
        subcommands, options, args = self.children(table, path)
        return SubcommandSpec(
            name=table["name"],
            aliases=tuple(table.get("aliases", ())),
            description=table.get("description", ""),
            subcommands=subcommands,
            options=options,
            args=args,
        )

    def children(
        self, table: dict[str, Any], path: str
    ) -> tuple[tuple[SubcommandSpec, ...], tuple[OptionSpec, ...], tuple[ArgSpec, ...]]:
        prefix = f"{path}." if path else ""
        subcommands = tuple(self.subcommand(item, f"{prefix}subcommands[{i}]") for i, item in enumerate(table.get("subcommands", ())))
        options = tuple(self.option(item, f"{prefix}options[{i}]") for i, item in enumerate(table.get("options", ())))
        args = tuple(self.arg(item, f"{prefix}args[{i}]") for i, item in enumerate(table.get("args", ())))

        seen: dict[str, str] = {}
        for i, sub in enumerate(subcommands):
            for name in sub.all_names:
                if name in seen:
                    raise self.fail(f"{prefix}subcommands[{i}]", f"'{name}' is already used by subcommand '{seen[name]}'")
                seen[name] = sub.name

        flags: set[str] = set()
        for i, option in enumerate(options):
            for flag in option.flags:
                if flag in flags:
                    raise self.fail(f"{prefix}options[{i}]", f"flag '{flag}' is declared twice")
                flags.add(flag)

        for i, arg in enumerate(args[:-1]):
            if arg.variadic:
                raise self.fail(f"{prefix}args[{i}]", "only the last argument can be variadic")
        return subcommands, options, args

    def option(self, data: Any, path: str) -> OptionSpec:  # noqa: ANN401
        table = self.check(data, OPTION_SCHEMA, path)
        if not table.get("short") and not table.get("long"):
            raise self.fail(path, "an option needs a short or a long flag")
        generator = self.generator(table["arg_generator"], f"{path}.arg_generator") if "arg_generator" in table else None
        template = ArgTemplate(table["template"]) if "template" in table else None
        suggestions = tuple(table.get("suggestions", ()))
        self.single_source(path, generator, template, suggestions)
        # a declared value source implies a value
        takes_arg = coerce_to_bool(table.get("takes_arg")) or bool(generator or template or suggestions)
        return OptionSpec(
            short=table.get("short"),
            long=table.get("long"),
            takes_arg=takes_arg,
            description=table.get("description", ""),
            arg_generator=generator,
            suggestions=suggestions,
            template=template,
            exclusive_with=tuple(table.get("exclusive_with", ())),
        )

    def arg(self, data: Any, path: str) -> ArgSpec:  # noqa: ANN401
        table = self.check(data, ARG_SCHEMA, path)
        generator = self.generator(table["generator"], f"{path}.generator") if "generator" in table else None
        template = ArgTemplate(table["template"]) if "template" in table else None
        suggestions = tuple(table.get("suggestions", ()))
        self.single_source(path, generator, template, suggestions)
        return ArgSpec(
            name=table["name"],
            description=table.get("description", ""),
            variadic=coerce_to_bool(table.get("variadic")),
            required=coerce_to_bool(table.get("required")),
            suggestions=suggestions,
            template=template,
            generator=generator,
        )

    def generator(self, data: Any, path: str) -> GeneratorSpec:  # noqa: ANN401
        table = self.check(data, GENERATOR_SCHEMA, path)
        cache_ttl = table.get("cache_ttl")
        return GeneratorSpec(
            command=table["command"],
            split_on=table.get("split_on", "\n"),
            strip_prefix=table.get("strip_prefix"),
            cache_ttl=float(cache_ttl) if cache_ttl is not None else None,
            timeout_ms=table.get("timeout_ms"),
        )

    def single_source(self, path: str, generator: GeneratorSpec | None, template: ArgTemplate | None, suggestions: tuple[str, ...]) -> None:
        if sum((generator is not None, template is not None, bool(suggestions))) > 1:
            raise self.fail(path, "use only one of suggestions, template or generator")


def parse_spec_data(
    data: Any,  # noqa: ANN401
    origin: str = "<data>",
    source: SpecSource = SpecSource.USER,
    logger: logging.Logger | None = None,
) -> CommandSpec:
    """Build a CommandSpec from an already decoded document.

    Args:
        data: The decoded document (a mapping)
        origin: Name of the document, used in error locations
        source: Origin tag stored in the spec
        logger: Logger for unknown-key warnings

    Returns:
        The spec

    Raises:
        SpecParseError: If the document is not a valid spec
    """
    return _SpecReader(origin, logger or get_logger("specengine.spec")).command(data, source)


def parse_spec_text(
    text: str,
    origin: str = "<string>",
    source: SpecSource = SpecSource.USER,
    logger: logging.Logger | None = None,
) -> CommandSpec:
    """Build a CommandSpec from TOML text.

    Raises:
        SpecParseError: If the text is not valid TOML or not a valid spec
    """
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise SpecParseError(f"invalid TOML: {e}", origin) from e
    return parse_spec_data(data, origin, source, logger)


async def load_spec_file(path: Path, source: SpecSource = SpecSource.USER, logger: logging.Logger | None = None) -> CommandSpec:
    """Read and parse a spec file.

    Raises:
        SpecParseError: If the file is not a valid spec
        OSError: If the file cannot be read
    """
    try:
        text = await airead_text(path)
    except UnicodeDecodeError as e:
        raise SpecParseError(f"not UTF-8 text: {e}", path.name) from e
    return parse_spec_text(text, path.name, source, logger)


def _generator_to_data(generator: GeneratorSpec) -> dict[str, Any]:
    data: dict[str, Any] = {"command": generator.command}
    if generator.split_on != "\n":
        data["split_on"] = generator.split_on
    if generator.strip_prefix is not None:
        data["strip_prefix"] = generator.strip_prefix
    if generator.cache_ttl is not None:
        data["cache_ttl"] = generator.cache_ttl
    if generator.timeout_ms is not None:
        data["timeout_ms"] = generator.timeout_ms
    return data


def _value_source_to_data(data: dict[str, Any], suggestions: tuple[str, ...], template: ArgTemplate | None) -> None:
    if suggestions:
        data["suggestions"] = list(suggestions)
    if template is not None:
        data["template"] = template.value


def _node_to_data(node: CommandSpec | SubcommandSpec) -> dict[str, Any]:
    data: dict[str, Any] = {"name": node.name}
    if node.description:
        data["description"] = node.description
    if node.aliases:
        data["aliases"] = list(node.aliases)
    if node.subcommands:
        data["subcommands"] = [_node_to_data(sub) for sub in node.subcommands]
    options = []
    for option in node.options:
        item: dict[str, Any] = {}
        if option.short:
            item["short"] = option.short
        if option.long:
            item["long"] = option.long
        if option.takes_arg:
            item["takes_arg"] = True
        if option.description:
            item["description"] = option.description
        if option.arg_generator:
            item["arg_generator"] = _generator_to_data(option.arg_generator)
        _value_source_to_data(item, option.suggestions, option.template)
        if option.exclusive_with:
            item["exclusive_with"] = list(option.exclusive_with)
        options.append(item)
    if options:
        data["options"] = options
    args = []
    for arg in node.args:
        item = {"name": arg.name}
        if arg.description:
            item["description"] = arg.description
        if arg.variadic:
            item["variadic"] = True
        if arg.required:
            item["required"] = True
        if arg.generator:
            item["generator"] = _generator_to_data(arg.generator)
        _value_source_to_data(item, arg.suggestions, arg.template)
        args.append(item)
    if args:
        data["args"] = args
    return data


def spec_to_data(spec: CommandSpec) -> dict[str, Any]:
    """Convert a spec back to a plain document accepted by `parse_spec_data`."""
    data = _node_to_data(spec)
    if spec.recursive:
        data["recursive"] = True
    return data
