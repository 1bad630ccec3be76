"""``{#if}`` section.

Syntax:
    ``{#if user.active && user.age >= 18}...{#else if user.invited}...{#else}...{/if}``

Operators, loosest binding first:
    ``||`` / ``or``, ``&&`` / ``and``, then comparisons ``gt`` / ``>``,
    ``ge`` / ``>=``, ``lt`` / ``<``, ``le`` / ``<=``, ``eq`` / ``==`` / ``is``,
    ``ne`` / ``!=``. ``!`` negates an operand and parentheses group.
    Operators must be separated from operands by whitespace.

Logical operators short-circuit: the right operand is not evaluated when
the left one decides the result. A numeric string compared with a number
is converted to a number first.

"""

from __future__ import annotations

import operator
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from tessera._types import Origin
from tessera.environment.exceptions import ErrorCode
from tessera.nodes import Block, Expr
from tessera.resolvers.base import NOT_FOUND
from tessera.sections.base import BlockInfo, SectionContext, SectionHelper, SectionHelperFactory, SectionInfo

if TYPE_CHECKING:
    from tessera.parser.core import Parser

_COMPARISONS: dict[str, Callable[[Any, Any], bool]] = {
    "gt": operator.gt,
    ">": operator.gt,
    "ge": operator.ge,
    ">=": operator.ge,
    "lt": operator.lt,
    "<": operator.lt,
    "le": operator.le,
    "<=": operator.le,
    "eq": operator.eq,
    "==": operator.eq,
    "is": operator.eq,
    "ne": operator.ne,
    "!=": operator.ne,
}
_AND = frozenset({"&&", "and"})
_OR = frozenset({"||", "or"})


# Condition tree ------------------------------------------------------------


class Condition:
    """Node of a parsed condition."""

    __slots__ = ()

    async def test(self, ctx: SectionContext) -> Any:
        raise NotImplementedError


class Operand(Condition):
    __slots__ = ("expr",)

    def __init__(self, expr: Expr):
        self.expr = expr

    async def test(self, ctx: SectionContext) -> Any:
        return await ctx.evaluate(self.expr)


class Not(Condition):
    __slots__ = ("operand",)

    def __init__(self, operand: Condition):
        self.operand = operand

    async def test(self, ctx: SectionContext) -> Any:
        return not await self.operand.test(ctx)


class Compare(Condition):
    __slots__ = ("left", "op", "right")

    def __init__(self, op: str, left: Condition, right: Condition):
        self.op = op
        self.left = left
        self.right = right

    async def test(self, ctx: SectionContext) -> Any:
        left, right = _coerce(await self.left.test(ctx), await self.right.test(ctx))
        try:
            return _COMPARISONS[self.op](left, right)
        except TypeError as exc:
            raise ctx.error(
                f"Cannot compare {type(left).__name__} and {type(right).__name__} with '{self.op}'",
                code=ErrorCode.INVALID_VALUE,
            ) from exc


class And(Condition):
    __slots__ = ("left", "right")

    def __init__(self, left: Condition, right: Condition):
        self.left = left
        self.right = right

    async def test(self, ctx: SectionContext) -> Any:
        return await self.left.test(ctx) and await self.right.test(ctx)


class Or(Condition):
    __slots__ = ("left", "right")

    def __init__(self, left: Condition, right: Condition):
        self.left = left
        self.right = right

    async def test(self, ctx: SectionContext) -> Any:
        return await self.left.test(ctx) or await self.right.test(ctx)


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _to_number(value: str) -> Any:
    try:
        return int(value)
    except ValueError:
        try:
            return float(value)
        except ValueError:
            return value


def _coerce(left: Any, right: Any) -> tuple[Any, Any]:
    if left is NOT_FOUND:
        left = None
    if right is NOT_FOUND:
        right = None
    if _is_number(left) and isinstance(right, str):
        right = _to_number(right)
    elif _is_number(right) and isinstance(left, str):
        left = _to_number(left)
    return left, right


# Condition parser ----------------------------------------------------------


def tokenize_condition(text: str) -> list[str]:
    """Split a condition into operands, operators, ``!``, ``(`` and ``)``.

    A parenthesis at the start of a token groups; parentheses inside an
    operand belong to a method call (``items.get(0)``).
    """
    tokens: list[str] = []
    pos = 0
    length = len(text)
    while pos < length:
        char = text[pos]
        if char.isspace():
            pos += 1
        elif char in "()":
            tokens.append(char)
            pos += 1
        elif char == "!" and not text.startswith("!=", pos):
            tokens.append("!")
            pos += 1
        else:
            start = pos
            depth = 0
            quote: str | None = None
            while pos < length:
                char = text[pos]
                if quote is not None:
                    if char == quote:
                        quote = None
                elif char in "'\"":
                    quote = char
                elif char in "([":
                    depth += 1
                elif char in ")]":
                    if depth == 0:
                        break
                    depth -= 1
                elif char.isspace() and depth == 0:
                    break
                pos += 1
            tokens.append(text[start:pos])
    return tokens


class ConditionParser:
    """Recursive-descent parser for ``{#if}`` conditions."""

    __slots__ = ("_block", "_ctx", "_origin", "_pos", "_tokens")

    def __init__(self, text: str, block: BlockInfo | None, ctx: Parser, origin: Origin):
        self._tokens = tokenize_condition(text)
        self._pos = 0
        self._block = block
        self._ctx = ctx
        self._origin = origin

    def parse(self) -> Condition:
        if not self._tokens:
            raise self._error("Missing condition")
        condition = self._parse_or()
        if self._pos < len(self._tokens):
            raise self._error(f"Unexpected '{self._tokens[self._pos]}' in condition")
        return condition

    def _error(self, message: str) -> Exception:
        return self._ctx.error(
            message,
            self._origin,
            code=ErrorCode.INVALID_PARAMETERS,
            suggestion="Conditions look like {#if a && (b || !c)} or {#if count gt 10}",
        )

    def _peek(self) -> str | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> str:
        token = self._peek()
        if token is None:
            raise self._error("Incomplete condition")
        self._pos += 1
        return token

    def _parse_or(self) -> Condition:
        left = self._parse_and()
        while self._peek() in _OR:
            self._pos += 1
            left = Or(left, self._parse_and())
        return left

    def _parse_and(self) -> Condition:
        left = self._parse_comparison()
        while self._peek() in _AND:
            self._pos += 1
            left = And(left, self._parse_comparison())
        return left

    def _parse_comparison(self) -> Condition:
        left = self._parse_unary()
        op = self._peek()
        if op in _COMPARISONS:
            self._pos += 1
            return Compare(op, left, self._parse_unary())
        return left

    def _parse_unary(self) -> Condition:
        token = self._next()
        if token == "!":
            return Not(self._parse_unary())
        if token == "(":
            condition = self._parse_or()
            if self._next() != ")":
                raise self._error("Missing ')' in condition")
            return condition
        if token == ")" or token in _AND or token in _OR or token in _COMPARISONS:
            raise self._error(f"Unexpected '{token}' in condition")
        if self._block is not None:
            key = f"operand{len(self._block.expressions)}"
            return Operand(self._block.add_expression(key, token))
        return Operand(self._ctx.parse_expression(token, self._origin))


def _condition_text(block: BlockInfo | Block) -> str | None:
    """Condition source of a block, or None for a plain ``{#else}``."""
    source = block.params.source.strip()
    if block.label == "else":
        if not source:
            return None
        keyword, _, rest = source.partition(" ")
        return rest.strip() if keyword == "if" else source
    return source


class IfSectionFactory(SectionHelperFactory):
    names = ("if",)
    block_labels = frozenset({"else", "elif"})

    def initialize_block(self, block: BlockInfo, ctx: Parser) -> None:
        text = _condition_text(block)
        if text is not None:
            ConditionParser(text, block, ctx, block.origin).parse()

    def create_helper(self, section: SectionInfo, ctx: Parser) -> SectionHelper:
        branches: list[tuple[Condition | None, Block]] = []
        for block in section.blocks:
            if branches and branches[-1][0] is None:
                raise ctx.error(
                    "{#else} must be the last block of {#if}",
                    Origin(ctx.template_name, block.lineno, block.col_offset),
                    code=ErrorCode.INVALID_PARAMETERS,
                )
            text = _condition_text(block)
            origin = Origin(ctx.template_name, block.lineno, block.col_offset)
            condition = None if text is None else ConditionParser(text, None, ctx, origin).parse()
            branches.append((condition, block))
        return IfSectionHelper(tuple(branches))


class IfSectionHelper(SectionHelper):
    """Renders the first branch whose condition is truthy."""

    __slots__ = ("branches",)

    def __init__(self, branches: tuple[tuple[Condition | None, Block], ...]):
        self.branches = branches

    async def render(self, ctx: SectionContext) -> str:
        for condition, block in self.branches:
            if condition is None or await condition.test(ctx):
                return await ctx.render_block(block)
        return ""
