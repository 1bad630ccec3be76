"""Lexer for Tessera template source.

Splits source into a flat token stream:

- ``TEXT``: literal runs (``\\{`` yields a literal brace)
- ``LINE_SEPARATOR``: ``\\n`` or ``\\r\\n``
- ``EXPRESSION``: ``{item.name}``
- ``SECTION_START``: ``{#for item in items}`` or self-closing ``{#include base /}``
- ``SECTION_END``: ``{/for}`` or ``{/}``
- ``COMMENT``: ``{! not rendered !}``
- ``RAW_TEXT``: ``{| emitted as-is, {even} this |}``

A ``{`` followed by whitespace, another ``{`` or any character that cannot
start a tag is plain text, so inline CSS and JavaScript need no escaping.

Standalone lines:
When enabled, a line made only of whitespace, section tags and comments
loses its whitespace and its line separator, so block structure does not
leave blank lines in the output.

"""

from __future__ import annotations

import logging
import re

from tessera._types import Origin, Token, TokenType
from tessera.environment.exceptions import ErrorCode
from tessera.parser.errors import ParseError

logger = logging.getLogger(__name__)

# Characters that need attention while scanning text
_SPECIAL_RE = re.compile(r"[{\\\n\r]")

_TAG_SIGILS = frozenset("#/!|_$'\"")

# Tokens a standalone line may contain besides whitespace text
_STANDALONE_TAGS = frozenset({TokenType.SECTION_START, TokenType.SECTION_END, TokenType.COMMENT})


class LexerError(ParseError):
    """Malformed tag delimiters (unterminated tag or comment)."""


class Lexer:
    """Tokenizer for template source.

    Example:
            >>> [t.type.name for t in Lexer("Hi {name}!").tokenize()]
        ['TEXT', 'EXPRESSION', 'TEXT', 'EOF']

    """

    __slots__ = ("_line_start", "_lineno", "_name", "_source", "_text", "_text_col", "_text_lineno", "_tokens")

    def __init__(self, source: str, name: str | None = None):
        self._source = source
        self._name = name
        self._tokens: list[Token] = []
        self._text: list[str] = []
        self._text_lineno = 1
        self._text_col = 0
        self._lineno = 1
        self._line_start = 0

    def tokenize(self) -> list[Token]:
        """Return the token stream, terminated by an EOF token."""
        source = self._source
        length = len(source)
        pos = 0
        while pos < length:
            match = _SPECIAL_RE.search(source, pos)
            if match is None:
                self._add_text(source[pos:], pos)
                break
            start = match.start()
            if start > pos:
                self._add_text(source[pos:start], pos)
            char = source[start]
            if char == "\n":
                self._add_line_separator("\n", start)
                pos = start + 1
            elif char == "\r":
                if source.startswith("\n", start + 1):
                    self._add_line_separator("\r\n", start)
                    pos = start + 2
                else:
                    self._add_text(char, start)
                    pos = start + 1
            elif char == "\\":
                if source.startswith("{", start + 1):
                    self._add_text("{", start)
                    pos = start + 2
                else:
                    self._add_text(char, start)
                    pos = start + 1
            elif start + 1 < length and self._is_tag_start(source[start + 1]):
                pos = self._lex_tag(start)
            else:
                self._add_text(char, start)
                pos = start + 1

        self._flush_text()
        self._tokens.append(Token(TokenType.EOF, "", self._lineno, pos - self._line_start))
        return self._tokens

    @staticmethod
    def _is_tag_start(char: str) -> bool:
        return char in _TAG_SIGILS or char.isalnum()

    def _col(self, pos: int) -> int:
        return pos - self._line_start

    def _add_text(self, text: str, pos: int) -> None:
        if not self._text:
            self._text_lineno = self._lineno
            self._text_col = self._col(pos)
        self._text.append(text)

    def _flush_text(self) -> None:
        if self._text:
            self._tokens.append(Token(TokenType.TEXT, "".join(self._text), self._text_lineno, self._text_col))
            self._text = []

    def _emit(self, token_type: TokenType, value: str, pos: int, self_closing: bool = False) -> None:
        self._flush_text()
        self._tokens.append(Token(token_type, value, self._lineno, self._col(pos), self_closing))

    def _add_line_separator(self, separator: str, pos: int) -> None:
        self._emit(TokenType.LINE_SEPARATOR, separator, pos)
        self._lineno += 1
        self._line_start = pos + len(separator)

    def _advance_lines(self, start: int, end: int) -> None:
        """Account for line breaks inside a multi-line tag."""
        newlines = self._source.count("\n", start, end)
        if newlines:
            self._lineno += newlines
            self._line_start = self._source.rfind("\n", start, end) + 1

    def _error(self, message: str, pos: int, code: ErrorCode) -> LexerError:
        return LexerError(
            message,
            Origin(self._name, self._lineno, self._col(pos)),
            source=self._source,
            code=code,
        )

    def _lex_tag(self, start: int) -> int:
        """Lex the tag starting at ``start`` and return the position after it."""
        source = self._source
        sigil = source[start + 1]

        if sigil == "!":
            end = source.find("!}", start + 2)
            if end == -1:
                raise self._error("Unterminated comment: missing '!}'", start, ErrorCode.UNTERMINATED_COMMENT)
            self._emit(TokenType.COMMENT, source[start + 2 : end], start)
            self._advance_lines(start, end)
            return end + 2

        if sigil == "|":
            end = source.find("|}", start + 2)
            if end == -1:
                raise self._error("Unterminated raw text: missing '|}'", start, ErrorCode.UNTERMINATED_TAG)
            self._emit(TokenType.RAW_TEXT, source[start + 2 : end], start)
            self._advance_lines(start, end)
            return end + 2

        end = self._find_tag_end(start + 1)
        if end == -1:
            raise self._error("Unterminated tag: missing '}'", start, ErrorCode.UNTERMINATED_TAG)
        content = source[start + 1 : end]

        if sigil == "#":
            body = content[1:].rstrip()
            self_closing = body.endswith("/")
            if self_closing:
                body = body[:-1]
            self._emit(TokenType.SECTION_START, body.strip(), start, self_closing)
        elif sigil == "/":
            self._emit(TokenType.SECTION_END, content[1:].strip(), start)
        else:
            self._emit(TokenType.EXPRESSION, content.strip(), start)

        self._advance_lines(start, end)
        return end + 1

    def _find_tag_end(self, pos: int) -> int:
        """Find the closing ``}`` of a tag, skipping braces inside string literals."""
        source = self._source
        quote: str | None = None
        for index in range(pos, len(source)):
            char = source[index]
            if quote is not None:
                if char == quote:
                    quote = None
            elif char in "'\"":
                quote = char
            elif char == "}":
                return index
        return -1


def _is_standalone(line: list[Token]) -> bool:
    has_tag = False
    for token in line:
        if token.type in _STANDALONE_TAGS:
            has_tag = True
        elif token.type is TokenType.TEXT:
            if token.value.strip():
                return False
        elif token.type not in (TokenType.LINE_SEPARATOR, TokenType.EOF):
            return False
    return has_tag


def remove_standalone_lines(tokens: list[Token]) -> list[Token]:
    """Drop whitespace and line separators of lines that hold only tags.

    Example:
        ``"{#if ok}\\nyes\\n{/if}\\n"`` lexes as if written ``"{#if ok}yes\\n{/if}"``.
    """
    result: list[Token] = []
    line: list[Token] = []
    removed = 0

    def flush() -> None:
        nonlocal removed
        if _is_standalone(line):
            removed += 1
            result.extend(t for t in line if t.type not in (TokenType.TEXT, TokenType.LINE_SEPARATOR))
        else:
            result.extend(line)
        line.clear()

    for token in tokens:
        line.append(token)
        if token.type is TokenType.LINE_SEPARATOR:
            flush()
    flush()

    if removed:
        logger.debug(f"Removed {removed} standalone line(s)")
    return result


def tokenize(source: str, name: str | None = None, *, standalone_lines: bool = False) -> list[Token]:
    """Tokenize ``source``, optionally removing standalone lines."""
    tokens = Lexer(source, name).tokenize()
    if standalone_lines:
        tokens = remove_standalone_lines(tokens)
    return tokens
