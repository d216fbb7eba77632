"""Shell completion files generated from command specs.

This package provides:
- `export`: the completion script of a spec for a given shell
- `write_completion_file`: atomic installation of that script
- bulk helpers to regenerate a completions directory
"""

from __future__ import annotations

from .files import GenerationReport, completion_filename, generate_all, remove_stale_project_auto, write_completion_file
from .generators import GENERATORS, export

__all__ = [
    "GENERATORS",
    "GenerationReport",
    "completion_filename",
    "export",
    "generate_all",
    "remove_stale_project_auto",
    "write_completion_file",
]
