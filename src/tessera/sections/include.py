"""``{#include}`` and ``{#insert}`` sections.

A base template declares overridable points::

    <title>{#insert title}Default title{/insert}</title>
    {#insert}{/insert}
    {#insert footer /}

and a caller renders it, supplying some of them::

    {#include base title='unused' _isolated}
      {#title}My page{/title}
      <p>Body content overrides the anonymous insert.</p>
    {/include}

Semantics:
    - Every sub-block of the include body overrides the insert of the same
      name. The main block overrides the anonymous ``{#insert}`` when it
      holds anything but whitespace.
    - Override blocks render in the scope active at the insert point, which
      chains through the include parameters to the caller's scope.
    - Parameters are evaluated in the caller's scope before the included
      template renders. ``_isolated`` hides the caller's data, from the
      included template and from the override blocks rendered inside it:
      those blocks see only what the include passes as parameters.
    - Inserts search enclosing includes innermost first and fall back to
      their default content.

"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from tessera.environment.exceptions import ErrorCode, TemplateNotFoundError
from tessera.nodes import Block, Expr, Parameters
from tessera.parser.expressions import literal_value
from tessera.sections.base import BlockInfo, SectionContext, SectionHelper, SectionHelperFactory, SectionInfo

if TYPE_CHECKING:
    from tessera.parser.core import Parser
    from tessera.template.core import Template

logger = logging.getLogger(__name__)

ANONYMOUS_INSERT = ""
ISOLATED = "_isolated"


def template_id(token: str) -> str:
    """``'base.html'`` and ``base.html`` both name ``base.html``."""
    value = literal_value(token)
    return value if isinstance(value, str) else token


def is_isolated(params: Parameters) -> bool:
    return ISOLATED in params.positional or params.get(ISOLATED) == "true"


def override_blocks(section: SectionInfo) -> dict[str, Block]:
    """Map insert names to the blocks of an include or user tag body."""
    overrides = {block.label: block for block in section.blocks[1:]}
    if not section.main_block.is_blank:
        overrides[ANONYMOUS_INSERT] = section.main_block
    return overrides


def load_template(ctx: SectionContext, name: str) -> Template:
    try:
        return ctx.environment.get_template(name)
    except TemplateNotFoundError as exc:
        raise ctx.error(
            f"Template '{name}' not found",
            code=ErrorCode.TEMPLATE_NOT_FOUND,
            suggestion=exc.suggestion,
            error_class=TemplateNotFoundError,
        ) from exc


class IncludeSectionFactory(SectionHelperFactory):
    names = ("include",)
    unknown_sections_as_blocks = True
    unique_block_labels = True

    def initialize_block(self, block: BlockInfo, ctx: Parser) -> None:
        if not block.is_main:
            return
        params = block.params
        positional = [token for token in params.positional if token != ISOLATED]
        if len(positional) != 1:
            raise ctx.error(
                "{#include} requires exactly one template name"
                if not positional
                else f"Unexpected {{#include}} parameter '{positional[1]}'",
                block.origin,
                code=ErrorCode.INVALID_PARAMETERS,
                suggestion="Use {#include base key=value /}",
            )
        for key, value in params.named:
            if key != ISOLATED:
                block.add_expression(key, value)

    def create_helper(self, section: SectionInfo, ctx: Parser) -> SectionHelper:
        params = section.params
        name = next(token for token in params.positional if token != ISOLATED)
        return IncludeSectionHelper(
            template_id(name),
            dict(section.main_block.expressions),
            override_blocks(section),
            is_isolated(params),
        )


class IncludeSectionHelper(SectionHelper):
    """Renders another template with override blocks and parameters.

    Used for ``{#include}`` and for user tags.
    """

    __slots__ = ("isolated", "overrides", "params", "template_id")

    def __init__(
        self,
        template_id: str,
        params: Mapping[str, Expr],
        overrides: Mapping[str, Block],
        isolated: bool = False,
    ):
        self.template_id = template_id
        self.params = params
        self.overrides = overrides
        self.isolated = isolated

    async def render(self, ctx: SectionContext) -> str:
        template = load_template(ctx, self.template_id)
        values = {key: await ctx.evaluate(expr) for key, expr in self.params.items()}
        render_ctx = ctx.render_ctx
        logger.debug(
            f"Including {template.name} from {render_ctx.template_name or '<template>'}:{ctx.section.lineno} "
            f"(overrides: {sorted(self.overrides) or 'none'})"
        )
        child = render_ctx.include(
            template.name,
            template.source,
            lineno=ctx.section.lineno,
            blocks=self.overrides,
            params=values,
            root=render_ctx.root_scope() if self.isolated else None,
        )
        return await ctx.renderer.render_nodes(template.tree.body, child)


class InsertSectionFactory(SectionHelperFactory):
    names = ("insert",)

    def initialize_block(self, block: BlockInfo, ctx: Parser) -> None:
        if not block.is_main:
            return
        params = block.params
        if len(params.tokens) > 1 or params.named:
            raise ctx.error(
                f"Invalid {{#insert}} parameters '{params.source}'",
                block.origin,
                code=ErrorCode.INVALID_PARAMETERS,
                suggestion="Use {#insert name}default{/insert} or {#insert}{/insert}",
            )
        name = params.tokens[0] if params.tokens else ANONYMOUS_INSERT
        if name and name in ctx.sections:
            raise ctx.error(
                f"An {{#insert}} section defined in the {{#include}} section on line {block.origin.lineno} "
                f"conflicts with an existing section/tag: {name}",
                block.origin,
                code=ErrorCode.TAG_CONFLICT,
                suggestion=f"Rename the insert; {{#{name}}} inside an include body would open the section instead",
            )

    def create_helper(self, section: SectionInfo, ctx: Parser) -> SectionHelper:
        tokens = section.params.tokens
        return InsertSectionHelper(tokens[0] if tokens else ANONYMOUS_INSERT)


class InsertSectionHelper(SectionHelper):
    """Renders the innermost override for ``name``, else the default content."""

    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    async def render(self, ctx: SectionContext) -> str:
        frame = ctx.render_ctx.find_override(self.name)
        if frame is None:
            return await ctx.render_block(ctx.main_block)
        render_ctx = ctx.render_ctx.with_overrides(frame.parent).with_template(frame.template_name, frame.source)
        return await ctx.render_block(frame.blocks[self.name], render_ctx)
