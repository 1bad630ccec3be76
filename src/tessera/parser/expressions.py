"""Expression and parameter parsing for Tessera.

Expression grammar::

    expression := operand (OPERATOR operand)* ['??']
    operand    := literal | path
    path       := segment ('.' segment)*
    segment    := NAME ['(' args ')'] ('[' literal ']')*
    literal    := 'true' | 'false' | 'null' | INT | FLOAT | STRING

Infix notation is sugar for method calls: ``{a or b}`` is ``{a.or(b)}`` and
``{count + 1}`` is ``{count.+(1)}``. ``{value??}`` is ``{value or ''}``.
Bracket access ``{items[0]}`` is ``{items.0}``.

"""

from __future__ import annotations

import re
from typing import Any

from tessera._types import Origin
from tessera.environment.exceptions import ErrorCode
from tessera.nodes import Expr, Literal, Parameters, Part, Path
from tessera.parser.errors import ParseError

_INT_RE = re.compile(r"^[-+]?\d+$")
_FLOAT_RE = re.compile(r"^[-+]?\d+\.\d+$")
_NAME_RE = re.compile(r"^[^\s'\"()\[\],.]+$")
_PARAM_KEY_RE = re.compile(r"^[A-Za-z_$][\w$-]*$")

_CLOSERS = {"(": ")", "[": "]"}

_NO_LITERAL = object()

_KEYWORDS = {"true": True, "false": False, "null": None}


def split_top_level(text: str, separator: str | None = None) -> list[str]:
    """Split ``text`` outside quotes, parentheses and brackets.

    With no ``separator`` the text is split at whitespace runs and empty
    pieces are dropped; otherwise it is split at every ``separator``.

    Raises:
        ValueError: Unbalanced brackets or an unterminated string literal
    """
    parts: list[str] = []
    buf: list[str] = []
    stack: list[str] = []
    quote: str | None = None

    for char in text:
        if quote is not None:
            buf.append(char)
            if char == quote:
                quote = None
            continue
        if char in "'\"":
            quote = char
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in ")]":
            if not stack or stack.pop() != char:
                raise ValueError(f"Unbalanced '{char}'")
        elif not stack and (char.isspace() if separator is None else char == separator):
            if separator is not None or buf:
                parts.append("".join(buf))
            buf = []
            continue
        buf.append(char)

    if quote is not None:
        raise ValueError("Unterminated string literal")
    if stack:
        raise ValueError(f"Missing '{stack[-1]}'")
    if separator is not None or buf:
        parts.append("".join(buf))
    return parts


def literal_value(text: str) -> Any:
    """Return the value of a literal, or ``_NO_LITERAL`` if ``text`` is not one."""
    if text in _KEYWORDS:
        return _KEYWORDS[text]
    if _INT_RE.match(text):
        return int(text)
    if _FLOAT_RE.match(text):
        return float(text)
    if len(text) >= 2 and text[0] in "'\"" and text[-1] == text[0] and text[0] not in text[1:-1]:
        return text[1:-1]
    return _NO_LITERAL


def is_literal(text: str) -> bool:
    return literal_value(text) is not _NO_LITERAL


class ExpressionParser:
    """Parses expression text into ``Literal`` and ``Path`` nodes.

    Example:
            >>> expr = ExpressionParser(Origin(None, 1)).parse("item.get(0).name")
            >>> [str(p) for p in expr.parts]
        ['item', 'get(0)', 'name']

    """

    __slots__ = ("_origin", "_source")

    def __init__(self, origin: Origin, source: str | None = None):
        self._origin = origin
        self._source = source

    def _error(self, message: str, suggestion: str | None = None) -> ParseError:
        return ParseError(
            message,
            self._origin,
            source=self._source,
            code=ErrorCode.INVALID_EXPRESSION,
            suggestion=suggestion,
        )

    def parse(self, text: str) -> Expr:
        text = text.strip()
        if not text:
            raise self._error("Empty expression")

        if text.endswith("??"):
            operand = self.parse(text[:-2])
            return _append_part(operand, Part("or", (self._literal("''", ""),)), text)

        try:
            tokens = split_top_level(text)
        except ValueError as exc:
            raise self._error(f"Malformed expression '{text}': {exc}") from exc

        if len(tokens) == 1:
            return self._parse_operand(tokens[0])
        if len(tokens) % 2 == 0:
            raise self._error(
                f"Malformed expression '{text}': infix notation needs an operand after every operator",
                suggestion="Write infix calls as {a or b} or {count + 1}",
            )

        expr = self._parse_operand(tokens[0])
        rendered = tokens[0]
        for index in range(1, len(tokens), 2):
            operator, operand = tokens[index], tokens[index + 1]
            if not _NAME_RE.match(operator):
                raise self._error(f"Invalid infix operator '{operator}' in '{text}'")
            rendered = f"{rendered} {operator} {operand}"
            expr = _append_part(expr, Part(operator, (self._parse_operand(operand),)), rendered)
        return expr

    def _literal(self, text: str, value: Any) -> Literal:
        return Literal(self._origin.lineno, self._origin.col_offset, text, value)

    def _parse_operand(self, text: str) -> Expr:
        value = literal_value(text)
        if value is not _NO_LITERAL:
            return self._literal(text, value)

        try:
            segments = split_top_level(text, ".")
        except ValueError as exc:
            raise self._error(f"Malformed expression '{text}': {exc}") from exc

        # A float base such as 1.5.plus(1)
        if len(segments) > 2 and _INT_RE.match(segments[0]) and segments[1].isdecimal():
            segments[0:2] = [f"{segments[0]}.{segments[1]}"]

        base: Literal | None = None
        first = segments[0]
        value = literal_value(first)
        if value is not _NO_LITERAL:
            base = self._literal(first, value)
            segments = segments[1:]

        parts: list[Part] = []
        for segment in segments:
            parts.extend(self._parse_segment(segment, text))
        return Path(self._origin.lineno, self._origin.col_offset, text, tuple(parts), base)

    def _parse_segment(self, segment: str, text: str) -> list[Part]:
        if not segment:
            raise self._error(f"Malformed expression '{text}': empty path segment")

        cut = len(segment)
        for index, char in enumerate(segment):
            if char in "([":
                cut = index
                break
        name, rest = segment[:cut], segment[cut:]
        if not _NAME_RE.match(name):
            raise self._error(f"Malformed expression '{text}': invalid name '{name}'")

        parts: list[Part] = []
        if rest.startswith("("):
            close = _matching_close(rest)
            args = self._parse_args(rest[1:close], text)
            parts.append(Part(name, args))
            rest = rest[close + 1 :]
        else:
            parts.append(Part(name))

        while rest:
            if not rest.startswith("["):
                raise self._error(f"Malformed expression '{text}': unexpected '{rest}'")
            close = _matching_close(rest)
            key = rest[1:close].strip()
            value = literal_value(key)
            if value is _NO_LITERAL or value is None or isinstance(value, bool):
                raise self._error(
                    f"Malformed expression '{text}': bracket access requires a string or integer literal",
                    suggestion="Use {map.get(key)} for a computed key",
                )
            parts.append(Part(str(value)))
            rest = rest[close + 1 :]
        return parts

    def _parse_args(self, text: str, full_text: str) -> tuple[Expr, ...]:
        if not text.strip():
            return ()
        try:
            pieces = split_top_level(text, ",")
        except ValueError as exc:
            raise self._error(f"Malformed expression '{full_text}': {exc}") from exc
        return tuple(self.parse(piece) for piece in pieces)


def _matching_close(text: str) -> int:
    """Index of the bracket closing ``text[0]``; ``text`` is known to be balanced."""
    depth = 0
    quote: str | None = None
    for index, char in enumerate(text):
        if quote is not None:
            if char == quote:
                quote = None
        elif char in "'\"":
            quote = char
        elif char in "([":
            depth += 1
        elif char in ")]":
            depth -= 1
            if depth == 0:
                return index
    return len(text) - 1


def _append_part(expr: Expr, part: Part, text: str) -> Path:
    if isinstance(expr, Literal):
        return Path(expr.lineno, expr.col_offset, text, (part,), expr)
    assert isinstance(expr, Path)
    return Path(expr.lineno, expr.col_offset, text, (*expr.parts, part), expr.base)


def parse_expression(text: str, origin: Origin, source: str | None = None) -> Expr:
    """Parse a single expression."""
    return ExpressionParser(origin, source).parse(text)


def parse_parameters(text: str, origin: Origin, source: str | None = None) -> Parameters:
    """Split section tag parameters into positional and ``key=value`` items.

    Example:
        ``"base title='Hi there' _isolated"`` yields positional
        ``("base", "_isolated")`` and named ``(("title", "'Hi there'"),)``.
    """
    try:
        tokens = split_top_level(text)
    except ValueError as exc:
        raise ParseError(
            f"Malformed section parameters '{text}': {exc}",
            origin,
            source=source,
            code=ErrorCode.INVALID_PARAMETERS,
        ) from exc

    positional: list[str] = []
    named: list[tuple[str, str]] = []
    for token in tokens:
        key, sep, value = token.partition("=")
        if sep and value and not value.startswith("=") and _PARAM_KEY_RE.match(key):
            named.append((key, value))
        else:
            positional.append(token)
    return Parameters(tuple(tokens), tuple(positional), tuple(named), text)
