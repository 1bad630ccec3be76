"""Built-in resolvers.

=============  ==========================================================
Resolver       Names
=============  ==========================================================
this           ``this`` (the base itself)
or             ``or``, ``?:`` (fallback when the base is unresolved/None)
raw            ``raw``, ``safe`` (mark the value as safe markup)
mapping        any key, ``size``, ``empty``, ``keys``, ``values``,
               ``items``, ``get(key)``, ``contains(key)``
sequence       ``0``, ``-1``, ``size``, ``empty``, ``first``, ``last``,
               ``get(i)``, ``take(n)``, ``contains(x)``
numeric        ``plus``/``+``, ``minus``/``-``, ``mod``/``%``
attribute      public attributes; bound methods are called
=============  ==========================================================

"""

from __future__ import annotations

import inspect
from collections.abc import Mapping, Sequence
from typing import Any, NamedTuple

from tessera.resolvers.base import BUILTIN_PRIORITY, NOT_FOUND, ResolutionContext, ValueResolver
from tessera.utils.html import Markup


class Entry(NamedTuple):
    """A mapping entry, as produced by ``{map.items}`` and loops over mappings."""

    key: Any
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


class ThisResolver(ValueResolver):
    priority = BUILTIN_PRIORITY

    def applies_to(self, ctx: ResolutionContext) -> bool:
        return ctx.name == "this" and not ctx.is_call

    def resolve(self, ctx: ResolutionContext) -> Any:
        return ctx.base


class OrResolver(ValueResolver):
    """``{name or 'Anonymous'}``, ``{name ?: 'Anonymous'}``"""

    priority = BUILTIN_PRIORITY

    def applies_to(self, ctx: ResolutionContext) -> bool:
        return ctx.name in ("or", "?:") and ctx.args is not None and len(ctx.args) == 1

    async def resolve(self, ctx: ResolutionContext) -> Any:
        if ctx.base is NOT_FOUND or ctx.base is None:
            assert ctx.args is not None
            return await ctx.evaluate(ctx.args[0])
        return ctx.base


class RawResolver(ValueResolver):
    priority = BUILTIN_PRIORITY

    def applies_to(self, ctx: ResolutionContext) -> bool:
        return ctx.name in ("raw", "safe") and not ctx.is_call and ctx.base is not NOT_FOUND

    def resolve(self, ctx: ResolutionContext) -> Any:
        if hasattr(ctx.base, "__html__"):
            return ctx.base
        return Markup("" if ctx.base is None else ctx.base)


class MappingResolver(ValueResolver):
    priority = BUILTIN_PRIORITY - 1

    def applies_to(self, ctx: ResolutionContext) -> bool:
        return isinstance(ctx.base, Mapping)

    async def resolve(self, ctx: ResolutionContext) -> Any:
        base: Mapping = ctx.base
        name = ctx.name
        if not ctx.is_call:
            if name in base:
                return base[name]
            if name == "size":
                return len(base)
            if name == "empty":
                return not base
            if name == "keys":
                return list(base.keys())
            if name == "values":
                return list(base.values())
            if name == "items":
                return [Entry(key, value) for key, value in base.items()]
            return NOT_FOUND
        args = await ctx.evaluate_args()
        if name == "get" and len(args) == 1:
            return base.get(args[0], NOT_FOUND)
        if name == "contains" and len(args) == 1:
            return args[0] in base
        return NOT_FOUND


class SequenceResolver(ValueResolver):
    priority = BUILTIN_PRIORITY - 1

    def applies_to(self, ctx: ResolutionContext) -> bool:
        return isinstance(ctx.base, Sequence)

    async def resolve(self, ctx: ResolutionContext) -> Any:
        base: Sequence = ctx.base
        name = ctx.name
        if not ctx.is_call:
            if name.lstrip("-").isdecimal():
                return _item(base, int(name))
            if name == "size":
                return len(base)
            if name == "empty":
                return not base
            if name == "first":
                return _item(base, 0)
            if name == "last":
                return _item(base, -1)
            return NOT_FOUND
        args = await ctx.evaluate_args()
        if len(args) != 1:
            return NOT_FOUND
        if name == "get" and isinstance(args[0], int):
            return _item(base, args[0])
        if name == "take" and isinstance(args[0], int):
            return list(base[: args[0]])
        if name == "contains":
            return args[0] in base
        return NOT_FOUND


def _item(base: Sequence, index: int) -> Any:
    try:
        return base[index]
    except IndexError:
        return NOT_FOUND


class NumericResolver(ValueResolver):
    """``{count.plus(1)}``, ``{count + 1}``, ``{total - discount}``, ``{i % 2}``"""

    priority = BUILTIN_PRIORITY - 1

    _OPERATIONS = {
        "plus": lambda a, b: a + b,
        "+": lambda a, b: a + b,
        "minus": lambda a, b: a - b,
        "-": lambda a, b: a - b,
        "mod": lambda a, b: a % b,
        "%": lambda a, b: a % b,
    }

    def applies_to(self, ctx: ResolutionContext) -> bool:
        return (
            _is_number(ctx.base)
            and ctx.name in self._OPERATIONS
            and ctx.args is not None
            and len(ctx.args) == 1
        )

    async def resolve(self, ctx: ResolutionContext) -> Any:
        assert ctx.args is not None
        operand = await ctx.evaluate(ctx.args[0])
        if not _is_number(operand):
            return NOT_FOUND
        return self._OPERATIONS[ctx.name](ctx.base, operand)


class AttributeResolver(ValueResolver):
    """Public attributes and methods of arbitrary objects.

    A bound method accessed without arguments (``{user.full_name}``) is
    called; with arguments (``{user.greet('Hi')}``) any callable is called
    with the evaluated arguments. Coroutines they return are awaited by the
    chain.
    """

    priority = BUILTIN_PRIORITY - 2

    def applies_to(self, ctx: ResolutionContext) -> bool:
        return ctx.base is not NOT_FOUND and ctx.base is not None and not ctx.name.startswith("_")

    async def resolve(self, ctx: ResolutionContext) -> Any:
        try:
            value = getattr(ctx.base, ctx.name)
        except (AttributeError, TypeError):
            return NOT_FOUND
        if ctx.is_call:
            if not callable(value):
                return NOT_FOUND
            return value(*await ctx.evaluate_args())
        if _is_bound_to(value, ctx.base):
            return value()
        return value


def _is_bound_to(value: Any, base: Any) -> bool:
    if inspect.ismethod(value) or inspect.isbuiltin(value):
        return getattr(value, "__self__", None) is base
    return False


def default_resolvers() -> list[ValueResolver]:
    """Fresh instances of every built-in resolver."""
    return [
        ThisResolver(),
        OrResolver(),
        RawResolver(),
        MappingResolver(),
        SequenceResolver(),
        NumericResolver(),
        AttributeResolver(),
    ]
