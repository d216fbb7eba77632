"""specengine - command specs for shell completion.

Resolves partially typed command lines against structured command
descriptions (specs), runs the commands producing dynamic values with
time limits and caching, and compiles specs into zsh or bash completion
functions.
"""

from .engine import SpecEngine

__all__ = ["SpecEngine"]
