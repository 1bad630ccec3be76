"""``{#for}`` and ``{#each}`` sections.

Syntax:
    ``{#for item in items}...{#else}no items{/for}``
    ``{#each items}{it}{/each}``

Iterables:
    sequences, sets and other iterables; mappings (one ``Entry`` with
    ``key`` and ``value`` per item); integers (``{#for i in 3}`` iterates
    1, 2, 3); async iterables; awaitables of any of these. An unresolved or
    ``None`` iterable iterates zero times.

"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from tessera.environment.exceptions import ErrorCode
from tessera.nodes import Block, Expr, Parameters
from tessera.resolvers.base import NOT_FOUND
from tessera.resolvers.builtins import Entry
from tessera.sections.base import BlockInfo, SectionContext, SectionHelper, SectionHelperFactory, SectionInfo
from tessera.template.loop_context import IterationScope

if TYPE_CHECKING:
    from tessera.parser.core import Parser

DEFAULT_ALIAS = "it"


def _signature(params: Parameters) -> tuple[str, str] | None:
    """Split loop parameters into (alias, iterable text)."""
    tokens = params.tokens
    if len(tokens) == 1:
        return DEFAULT_ALIAS, tokens[0]
    if len(tokens) >= 3 and tokens[1] == "in" and tokens[0].isidentifier():
        return tokens[0], " ".join(tokens[2:])
    return None


class LoopSectionFactory(SectionHelperFactory):
    names = ("for", "each")
    block_labels = frozenset({"else"})

    def initialize_block(self, block: BlockInfo, ctx: Parser) -> None:
        if not block.is_main:
            return
        signature = _signature(block.params)
        if signature is None:
            raise ctx.error(
                f"Invalid loop parameters '{block.params.source}'",
                block.origin,
                code=ErrorCode.INVALID_PARAMETERS,
                suggestion="Use {#for item in items} or {#each items}",
            )
        block.add_expression("iterable", signature[1])

    def create_helper(self, section: SectionInfo, ctx: Parser) -> SectionHelper:
        signature = _signature(section.params)
        assert signature is not None
        else_block = next((block for block in section.blocks[1:] if block.label == "else"), None)
        return LoopSectionHelper(signature[0], section.main_block.expressions["iterable"], else_block)


class LoopSectionHelper(SectionHelper):
    __slots__ = ("alias", "else_block", "iterable")

    def __init__(self, alias: str, iterable: Expr, else_block: Block | None):
        self.alias = alias
        self.iterable = iterable
        self.else_block = else_block

    async def render(self, ctx: SectionContext) -> str:
        value = await ctx.evaluate(self.iterable)
        items = await self._collect(value, ctx)
        if not items:
            if self.else_block is not None:
                return await ctx.render_block(self.else_block)
            return ""

        parts = []
        length = len(items)
        for index, item in enumerate(items):
            scope = IterationScope(self.alias, item, index, length)
            parts.append(await ctx.render_block(ctx.main_block, ctx.render_ctx.push_scope(scope)))
        return "".join(parts)

    async def _collect(self, value: Any, ctx: SectionContext) -> list[Any]:
        value = await ctx.render_ctx.settle(value)
        if value is NOT_FOUND or value is None:
            return []
        if isinstance(value, Mapping):
            return [Entry(key, item) for key, item in value.items()]
        if isinstance(value, int) and not isinstance(value, bool):
            return list(range(1, value + 1))
        if hasattr(value, "__aiter__"):
            return [item async for item in value]
        try:
            return list(value)
        except TypeError as exc:
            raise ctx.error(
                f"Cannot iterate over {type(value).__name__} returned by {{{self.iterable.text}}}",
                code=ErrorCode.INVALID_VALUE,
            ) from exc
