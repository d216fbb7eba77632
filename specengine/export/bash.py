"""Bash completion functions (`complete -F`).

A single function walks the words before the cursor to find the current
node, the open option (if its value is being typed) and the positional
index, then completes from tables keyed by those.
"""

from __future__ import annotations

import shlex
from typing import TYPE_CHECKING

from ..spec.models import ArgTemplate
from .format import FunctionNames, generator_call, header_lines, uses_generators, walk_nodes

if TYPE_CHECKING:
    from ..spec.models import CommandSpec, GeneratorSpec, SubcommandSpec

__all__ = ["generate_bash"]

_TEMPLATE_ACTIONS = {
    ArgTemplate.FILE_PATHS: 'COMPREPLY=($(compgen -f -- "$cur"))',
    ArgTemplate.DIRECTORIES: 'COMPREPLY=($(compgen -d -- "$cur"))',
    ArgTemplate.ENV_VARS: 'COMPREPLY=($(compgen -e -- "$cur"))',
    ArgTemplate.HISTORY: ":",
}

# Candidates never go through `compgen -W`: it expands `$(...)` in its word list.
_WORDS_FUNCTION = """_specengine_words() {
    local value
    for value in "$@"; do
        if [[ $value == "$cur"* ]]; then
            COMPREPLY+=("$value")
        fi
    done
}"""

_GENERATOR_FUNCTION = """_specengine_generate() {
    local value
    while IFS= read -r value; do
        _specengine_words "$value"
    done < <(specengine run-generator "$@" --cwd "$PWD" 2>/dev/null)
}"""

_NESTED = " " * 12

Nodes = list[tuple[tuple[str, ...], "CommandSpec | SubcommandSpec"]]


def _words(values: list[str] | tuple[str, ...]) -> str:
    return " ".join(("_specengine_words", *(shlex.quote(value) for value in values)))


def _action(generator: GeneratorSpec | None, template: ArgTemplate | None, suggestions: tuple[str, ...]) -> str:
    if generator is not None:
        return generator_call(generator)
    if template is not None:
        return _TEMPLATE_ACTIONS[template]
    if suggestions:
        return _words(suggestions)
    return ":"


def _pattern(*alternatives: str) -> str:
    return "|".join(shlex.quote(alternative) for alternative in alternatives)


def _branch(pattern: str, action: str, indent: str = "        ") -> str:
    return f"{indent}{pattern}) {action} ;;"


def _case(subject: str, branches: list[str], indent: str = "    ") -> list[str]:
    if not branches:
        return []
    return [f'{indent}case "{subject}" in', *branches, f"{indent}esac"]


def _walk_loop(spec: CommandSpec, nodes: Nodes, ids: dict[tuple[str, ...], str]) -> list[str]:
    value_options = []
    descents = []
    for path, node in nodes:
        for option in node.options:
            if option.takes_arg:
                flags = [f"{ids[path]}:{flag}" for flag in option.flags]
                value_options.append(f'            {_pattern(*flags)})\n                opt="$node:$word"\n                skip=1\n                continue\n                ;;')
        for sub in () if spec.recursive else node.subcommands:
            names = [f"{ids[path]}:0:{name}" for name in sub.all_names]
            descents.append(f"            {_pattern(*names)})\n                node={ids[(*path, sub.name)]}\n                pos=0\n                continue\n                ;;")

    lines = [
        "    for ((i = 1; i < COMP_CWORD; i++)); do",
        '        word="${COMP_WORDS[i]}"',
        "        if ((skip)); then",
        "            skip=0",
        "            continue",
        "        fi",
        *_case("$node:$word", value_options, "        "),
        "        [[ $word == -* ]] && continue",
        *_case("$node:$pos:$word", descents, "        "),
    ]
    if spec.recursive:
        # the first positional word starts the wrapped command line
        lines += ['        _command_offset "$i"', "        return"]
    lines += ["        pos=$((pos + 1))", "    done"]
    return lines


def _value_branches(nodes: Nodes, ids: dict[tuple[str, ...], str]) -> list[str]:
    branches = []
    for path, node in nodes:
        for option in node.options:
            if option.takes_arg:
                pattern = _pattern(*(f"{ids[path]}:{flag}" for flag in option.flags))
                branches.append(_branch(pattern, _action(option.arg_generator, option.template, option.suggestions), _NESTED))
    return branches


def _flag_branches(nodes: Nodes, ids: dict[tuple[str, ...], str]) -> list[str]:
    branches = []
    for path, node in nodes:
        flags = [flag for option in node.options for flag in (option.long, option.short) if flag]
        if flags:
            branches.append(_branch(ids[path], _words(flags), _NESTED))
    return branches


def _position_branches(spec: CommandSpec, nodes: Nodes, ids: dict[tuple[str, ...], str]) -> list[str]:
    branches = []
    for path, node in nodes:
        node_id = ids[path]
        if spec.recursive:
            branches.append(_branch(f"{node_id}:0", 'COMPREPLY=($(compgen -c -- "$cur"))'))
        elif node.subcommands:
            branches.append(_branch(f"{node_id}:0", _words([name for sub in node.subcommands for name in sub.all_names])))
        else:
            for index, arg in enumerate(node.args):
                position = "*" if arg.variadic else str(index)
                branches.append(_branch(f"{node_id}:{position}", _action(arg.generator, arg.template, arg.suggestions)))
    return branches


def generate_bash(spec: CommandSpec, generated_at: str) -> str:
    """Return the bash completion file for `spec`."""
    nodes = walk_nodes(spec)
    allocator = FunctionNames("_specengine")
    ids = {path: allocator.allocate(path) for path, _node in nodes}
    function = ids[(spec.name,)]

    body = [
        f'    local cur="${{COMP_WORDS[COMP_CWORD]}}" node={function} opt="" word i pos=0 skip=0',
        "    COMPREPLY=()",
        "",
        *_walk_loop(spec, nodes, ids),
        "",
        "    if ((skip)); then",
        *_case("$opt", _value_branches(nodes, ids), "        "),
        "        return",
        "    fi",
        "    if [[ $cur == -* ]]; then",
        *_case("$node", _flag_branches(nodes, ids), "        "),
        "        return",
        "    fi",
        *_case("$node:$pos", _position_branches(spec, nodes, ids)),
    ]

    lines = [*header_lines(spec, "bash", generated_at), "", _WORDS_FUNCTION, ""]
    if uses_generators(spec):
        lines += [_GENERATOR_FUNCTION, ""]
    lines += [f"{function}() {{", *body, "}", "", f"complete -F {function} {' '.join(spec.all_names)}"]
    return "\n".join(lines) + "\n"
