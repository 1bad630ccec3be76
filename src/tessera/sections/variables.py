"""``{#let}`` / ``{#set}`` and ``{#with}`` sections.

``{#let total=order.total name=user.name.or('guest')}`` defines local
variables. Its end tag is optional: without one the variables are visible
until the end of the enclosing block::

    {#for order in orders}
      {#let total=order.total}
      {total}
    {/for}

``{#with item.owner}{name}{/with}`` pushes a value as a data scope, so its
properties are visible by name.

"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tessera.environment.exceptions import ErrorCode
from tessera.nodes import Expr
from tessera.resolvers.base import NOT_FOUND
from tessera.sections.base import (
    BlockInfo,
    EndTag,
    SectionContext,
    SectionHelper,
    SectionHelperFactory,
    SectionInfo,
)

if TYPE_CHECKING:
    from tessera.parser.core import Parser


class LetSectionFactory(SectionHelperFactory):
    names = ("let", "set")
    end_tag = EndTag.OPTIONAL

    def initialize_block(self, block: BlockInfo, ctx: Parser) -> None:
        params = block.params
        if params.positional or not params.named:
            raise ctx.error(
                f"Invalid {{#let}} parameters '{params.source}'",
                block.origin,
                code=ErrorCode.INVALID_PARAMETERS,
                suggestion="Use {#let name=value other=expr}",
            )
        for key, value in params.named:
            block.add_expression(key, value)

    def create_helper(self, section: SectionInfo, ctx: Parser) -> SectionHelper:
        return LetSectionHelper(tuple(section.main_block.expressions.items()))


class LetSectionHelper(SectionHelper):
    __slots__ = ("variables",)

    def __init__(self, variables: tuple[tuple[str, Expr], ...]):
        self.variables = variables

    async def render(self, ctx: SectionContext) -> str:
        values = {key: await ctx.evaluate(expr) for key, expr in self.variables}
        return await ctx.render_block(ctx.main_block, ctx.render_ctx.push_scope(values))


class WithSectionFactory(SectionHelperFactory):
    names = ("with",)

    def initialize_block(self, block: BlockInfo, ctx: Parser) -> None:
        params = block.params
        if len(params.tokens) != 1:
            raise ctx.error(
                f"{{#with}} requires exactly one expression, got '{params.source}'",
                block.origin,
                code=ErrorCode.INVALID_PARAMETERS,
            )
        block.add_expression("object", params.tokens[0])

    def create_helper(self, section: SectionInfo, ctx: Parser) -> SectionHelper:
        return WithSectionHelper(section.main_block.expressions["object"])


class WithSectionHelper(SectionHelper):
    __slots__ = ("expr",)

    def __init__(self, expr: Expr):
        self.expr = expr

    async def render(self, ctx: SectionContext) -> str:
        value = await ctx.evaluate(self.expr)
        if value is NOT_FOUND or value is None:
            return await ctx.render_block(ctx.main_block)
        return await ctx.render_block(ctx.main_block, ctx.render_ctx.push_scope(value, local=False))
