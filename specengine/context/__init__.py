"""Command line analysis: tokenizing and locating the cursor in a spec tree."""

from .models import CompletionContext, ExpectedType, Position, PositionKind, ValueKind
from .resolver import resolve
from .tokenizer import tokenize, tokenize_with_operators

__all__ = [
    "CompletionContext",
    "ExpectedType",
    "Position",
    "PositionKind",
    "ValueKind",
    "resolve",
    "tokenize",
    "tokenize_with_operators",
]
