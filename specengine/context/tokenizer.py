"""Shell-like tokenizer for partial command lines.

Quotes and backslash escapes are honored (no escaping inside single quotes);
an unterminated quote extends to the end of the buffer. Operators split
words even without surrounding spaces.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

__all__ = ["Token", "TokenKind", "last_segment", "tokenize", "tokenize_with_operators"]


class TokenKind(StrEnum):
    """Token categories."""

    WORD = "word"
    PIPE = "|"
    OR = "||"
    AND = "&&"
    SEMICOLON = ";"
    BACKGROUND = "&"
    REDIRECT_OUT = ">"
    REDIRECT_APPEND = ">>"
    REDIRECT_IN = "<"

    @property
    def is_redirect(self) -> bool:
        return self in (TokenKind.REDIRECT_OUT, TokenKind.REDIRECT_APPEND, TokenKind.REDIRECT_IN)

    @property
    def is_separator(self) -> bool:
        return self in (TokenKind.OR, TokenKind.AND, TokenKind.SEMICOLON, TokenKind.BACKGROUND)


# Longest operators first
_OPERATORS = (">>", "&&", "||", "|", "&", ";", ">", "<")


@dataclass(frozen=True)
class Token:
    """A word (unquoted text) or an operator, with its span in the buffer."""

    kind: TokenKind
    text: str
    start: int
    end: int

    @property
    def is_word(self) -> bool:
        return self.kind is TokenKind.WORD


def tokenize_with_operators(buffer: str) -> list[Token]:
    """Split `buffer` into words and operators."""
    tokens: list[Token] = []
    current: list[str] = []
    start: int | None = None
    quote: str | None = None
    i = 0
    length = len(buffer)

    def flush(end: int) -> None:
        nonlocal start
        if start is not None:
            tokens.append(Token(TokenKind.WORD, "".join(current), start, end))
            current.clear()
            start = None

    while i < length:
        char = buffer[i]
        if quote is not None:
            if char == quote:
                quote = None
            elif char == "\\" and quote == '"' and i + 1 < length and buffer[i + 1] in '"\\$`':
                i += 1
                current.append(buffer[i])
            else:
                current.append(char)
            i += 1
            continue

        if char.isspace():
            flush(i)
            i += 1
            continue

        operator = next((op for op in _OPERATORS if buffer.startswith(op, i)), None)
        if operator is not None:
            flush(i)
            tokens.append(Token(TokenKind(operator), operator, i, i + len(operator)))
            i += len(operator)
            continue

        if start is None:
            start = i
        if char in "'\"":
            quote = char
        elif char == "\\":
            if i + 1 < length:
                i += 1
                current.append(buffer[i])
        else:
            current.append(char)
        i += 1

    flush(length)
    return tokens


def tokenize(buffer: str) -> list[str]:
    """Return the words of `buffer`, operators dropped."""
    return [token.text for token in tokenize_with_operators(buffer) if token.is_word]


def last_segment(tokens: list[Token]) -> tuple[list[Token], Token | None]:
    """Return the words after the last operator, and that operator."""
    for index in range(len(tokens) - 1, -1, -1):
        if not tokens[index].is_word:
            return tokens[index + 1 :], tokens[index]
    return tokens, None
