"""Token types and source origins shared by the lexer and parser."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenType(Enum):
    """Kinds of tokens produced by the lexer."""

    TEXT = "text"
    RAW_TEXT = "raw_text"
    LINE_SEPARATOR = "line_separator"
    EXPRESSION = "expression"
    SECTION_START = "section_start"
    SECTION_END = "section_end"
    COMMENT = "comment"
    EOF = "eof"


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexical unit of template source.

    For tags, ``value`` holds the tag content without delimiters and sigils:
    ``{#for i in items}`` becomes ``"for i in items"``, ``{/for}`` becomes
    ``"for"`` and ``{item.name}`` becomes ``"item.name"``.

    Attributes:
        type: Token kind
        value: Token content
        lineno: 1-based line of the first character
        col_offset: 0-based column of the first character
        self_closing: True for ``{#name .../}`` section tags
    """

    type: TokenType
    value: str
    lineno: int
    col_offset: int
    self_closing: bool = False

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.lineno}:{self.col_offset})"


@dataclass(frozen=True, slots=True)
class Origin:
    """Where a piece of template source came from."""

    template_name: str | None
    lineno: int
    col_offset: int = 0

    def __str__(self) -> str:
        return f"{self.template_name or '<template>'}:{self.lineno}"
