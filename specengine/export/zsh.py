"""Zsh completion functions built on compsys `_arguments`.

Each node of the spec tree becomes one function. Nodes with subcommands
describe them at the first position and dispatch the remaining words to the
child function, aliases sharing the branch of their canonical name.
"""

from __future__ import annotations

import shlex
from typing import TYPE_CHECKING

from ..spec.models import ArgTemplate
from .format import (
    GENERATOR_HELPER,
    FunctionNames,
    generator_call,
    header_lines,
    single_quote,
    uses_generators,
    walk_nodes,
    zsh_bracket,
    zsh_list_item,
    zsh_message,
)

if TYPE_CHECKING:
    from ..spec.models import ArgSpec, CommandSpec, GeneratorSpec, OptionSpec, SubcommandSpec

__all__ = ["generate_zsh"]

_CONTINUATION = " \\\n        "

_TEMPLATE_ACTIONS = {
    ArgTemplate.FILE_PATHS: "_files",
    ArgTemplate.DIRECTORIES: "_files -/",
    ArgTemplate.ENV_VARS: '_parameters -g "*export*"',
    ArgTemplate.HISTORY: " ",
}

_GENERATOR_FUNCTION = f"""(( $+functions[{GENERATOR_HELPER}] )) ||
{GENERATOR_HELPER}() {{
    local -a values
    values=(${{(f)"$(specengine run-generator "$@" --cwd "$PWD" 2>/dev/null)"}})
    compadd -a values
}}"""


def _action(generator: GeneratorSpec | None, template: ArgTemplate | None, suggestions: tuple[str, ...]) -> str:
    if generator is not None:
        return f"{{{generator_call(generator)}}}"
    if template is not None:
        return _TEMPLATE_ACTIONS[template]
    if suggestions:
        return "(" + " ".join(zsh_list_item(value) for value in suggestions) + ")"
    return " "


def _exclusion_group(option: OptionSpec, node: CommandSpec | SubcommandSpec) -> list[str]:
    """The option's own flags, plus those of every option it conflicts with."""
    group = list(option.flags)
    for other in node.options:
        if other is not option and (option.excludes(other) or other.excludes(option)):
            group.extend(other.flags)
    for name in option.exclusive_with:
        if name.startswith("-") and not any(o.matches(name) for o in node.options):
            group.append(name)
    return list(dict.fromkeys(group))


def _option_spec(option: OptionSpec, node: CommandSpec | SubcommandSpec) -> str:
    tail = f"[{zsh_bracket(option.description)}]"
    if option.takes_arg:
        message = zsh_message(option.identifier.lstrip("-"))
        tail += f":{message}:{_action(option.arg_generator, option.template, option.suggestions)}"
    group = _exclusion_group(option, node)
    eq = "=" if option.takes_arg else ""
    if option.short and option.long:
        return f"'({' '.join(group)})'{{{option.short},{option.long}{eq}}}'{single_quote(tail)}'"
    flag = option.long + eq if option.long else option.short or ""
    prefix = f"({' '.join(group)})" if len(group) > 1 else ""
    return f"'{single_quote(prefix + flag + tail)}'"


def _arg_spec(index: int, arg: ArgSpec) -> str:
    position = "*" if arg.variadic else str(index + 1)
    spec = f"{position}:{zsh_message(arg.name or 'arg')}:{_action(arg.generator, arg.template, arg.suggestions)}"
    return f"'{single_quote(spec)}'"


def _describe_entry(name: str, description: str) -> str:
    entry = name.replace(":", "\\:")
    if description:
        entry += ":" + " ".join(description.split())
    return f"'{single_quote(entry)}'"


def _function(node: CommandSpec | SubcommandSpec, path: tuple[str, ...], names: dict[tuple[str, ...], str], recursive: bool) -> str:
    specs = [_option_spec(option, node) for option in node.options]
    if recursive:
        body = _arguments("-s", [*specs, "'*::command:_normal'"])
    elif node.subcommands:
        body = _dispatch(node, path, names, specs)
    else:
        specs += [_arg_spec(i, arg) for i, arg in enumerate(node.args)]
        body = _arguments("-s", specs) if specs else "    _message 'no more arguments'"
    return f"{names[path]}() {{\n{body}\n}}"


def _arguments(flags: str, specs: list[str]) -> str:
    return "    _arguments " + _CONTINUATION.join([flags, *specs])


def _dispatch(
    node: CommandSpec | SubcommandSpec, path: tuple[str, ...], names: dict[tuple[str, ...], str], specs: list[str]
) -> str:
    entries = []
    branches = []
    for sub in node.subcommands:
        entries.extend(_describe_entry(name, sub.description) for name in sub.all_names)
        pattern = "|".join(shlex.quote(name) for name in sub.all_names)
        branches.append(f'                {pattern})\n                    {names[(*path, sub.name)]} "$@"\n                    ;;')
    entry_block = "\n".join(f"                {entry}" for entry in entries)
    branch_block = "\n".join(branches)
    label = single_quote(" ".join(path))
    arguments = _arguments("-C", [*specs, "'1:command:->command'", "'*::arg:->args'"])
    return f"""    local curcontext="$curcontext" state state_descr line
    typeset -A opt_args

{arguments}

    case $state in
        command)
            local -a subcommands=(
{entry_block}
            )
            _describe -t commands '{label} subcommand' subcommands
            ;;
        args)
            case $words[1] in
{branch_block}
            esac
            ;;
    esac"""


def generate_zsh(spec: CommandSpec, generated_at: str) -> str:
    """Return the `_<command>` completion file for `spec`."""
    nodes = walk_nodes(spec)
    allocator = FunctionNames("_specengine")
    names = {path: allocator.allocate(path) for path, _node in nodes}

    lines = [f"#compdef {' '.join(spec.all_names)}", *header_lines(spec, "zsh", generated_at), ""]
    if uses_generators(spec):
        lines += [_GENERATOR_FUNCTION, ""]
    for path, node in nodes:
        lines += [_function(node, path, names, recursive=spec.recursive and node is spec), ""]
    lines.append(f'{names[(spec.name,)]} "$@"')
    return "\n".join(lines) + "\n"
