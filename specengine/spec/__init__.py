"""Command specs: the model, its file format and the ways to obtain specs."""

from .models import ArgSpec, ArgTemplate, CommandSpec, GeneratorSpec, OptionSpec, SubcommandSpec
from .parsing import load_spec_file, parse_spec_data, parse_spec_text, spec_to_data

__all__ = [
    "ArgSpec",
    "ArgTemplate",
    "CommandSpec",
    "GeneratorSpec",
    "OptionSpec",
    "SubcommandSpec",
    "load_spec_file",
    "parse_spec_data",
    "parse_spec_text",
    "spec_to_data",
]
