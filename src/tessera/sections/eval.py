"""``{#eval}`` section: render a template string computed at render time.

``{#eval snippet name=user.name /}`` parses the value of ``snippet`` as
template source and renders it in the current scope, with the named
parameters added as local variables. The section has no body.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tessera.environment.exceptions import ErrorCode
from tessera.nodes import Expr
from tessera.resolvers.base import NOT_FOUND
from tessera.sections.base import BlockInfo, EndTag, SectionContext, SectionHelper, SectionHelperFactory, SectionInfo

if TYPE_CHECKING:
    from tessera.parser.core import Parser
    from tessera.template.core import Template

SOURCE = "source"
CACHE_SIZE = 64


class EvalSectionFactory(SectionHelperFactory):
    names = ("eval",)
    end_tag = EndTag.NEVER

    def initialize_block(self, block: BlockInfo, ctx: Parser) -> None:
        params = block.params
        if len(params.positional) != 1:
            raise ctx.error(
                f"{{#eval}} requires exactly one template expression, got '{params.source}'",
                block.origin,
                code=ErrorCode.INVALID_PARAMETERS,
                suggestion="Use {#eval snippet key=value /}",
            )
        block.add_expression(SOURCE, params.positional[0])
        for key, value in params.named:
            block.add_expression(key, value)

    def create_helper(self, section: SectionInfo, ctx: Parser) -> SectionHelper:
        expressions = dict(section.main_block.expressions)
        source = expressions.pop(SOURCE)
        return EvalSectionHelper(source, tuple(expressions.items()))


class EvalSectionHelper(SectionHelper):
    __slots__ = ("_cache", "params", "source")

    def __init__(self, source: Expr, params: tuple[tuple[str, Expr], ...]):
        self.source = source
        self.params = params
        self._cache: dict[tuple[str, str], Template] = {}

    async def render(self, ctx: SectionContext) -> str:
        source = await ctx.evaluate(self.source)
        if source is NOT_FOUND or source is None:
            return ""
        cache_key = (str(source), f"{ctx.render_ctx.template_name or '<template>'}#eval")
        template = self._cache.get(cache_key)
        if template is None:
            if len(self._cache) >= CACHE_SIZE:
                self._cache.clear()
            template = ctx.environment.parse(*cache_key)
            self._cache[cache_key] = template

        values = {key: await ctx.evaluate(expr) for key, expr in self.params}
        render_ctx = ctx.render_ctx.with_template(template.name, template.source)
        if values:
            render_ctx = render_ctx.push_scope(values)
        return await ctx.renderer.render_nodes(template.tree.body, render_ctx)
