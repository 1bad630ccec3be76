"""Section helper framework.

A section such as ``{#for}`` or ``{#include}`` is implemented by two
cooperating objects:

- a ``SectionHelperFactory`` consulted by the parser: which tag names open
  the section, which sub-block tags it recognizes, its end-tag policy, how
  block parameters become expressions (``initialize_block``) and how the
  finished section turns into a helper (``create_helper``);
- a ``SectionHelper`` produced at parse time and stored on the ``Section``
  node, whose ``render()`` coroutine produces the section's output.

The parser knows nothing about individual sections; registering a factory
with ``Environment.add_section_helper()`` is all a new section needs.

Example:
    ```python
    class UpperFactory(SectionHelperFactory):
        names = ("upper",)

        def create_helper(self, section, ctx):
            return UpperHelper()


    class UpperHelper(SectionHelper):
        async def render(self, ctx):
            return (await ctx.render_block(ctx.main_block)).upper()
    ```

"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from tessera._types import Origin
from tessera.environment.exceptions import ErrorCode, TemplateRuntimeError
from tessera.nodes import MAIN_BLOCK, Block, Expr, Node, Parameters, Section

if TYPE_CHECKING:
    from tessera.environment.core import Environment
    from tessera.parser.core import Parser
    from tessera.render_context import RenderContext
    from tessera.renderer import Renderer


class EndTag(Enum):
    """How a section is terminated."""

    REQUIRED = "required"  # {/name} or {/} must close the section
    OPTIONAL = "optional"  # closed implicitly by the enclosing end tag or EOF
    NEVER = "never"  # no body, the start tag alone is the section


@dataclass(slots=True)
class BlockInfo:
    """A block under construction, handed to ``initialize_block``."""

    label: str
    params: Parameters
    origin: Origin
    parser: Parser
    body: list[Node] = field(default_factory=list)
    expressions: dict[str, Expr] = field(default_factory=dict)

    @property
    def is_main(self) -> bool:
        return self.label == MAIN_BLOCK

    def add_expression(self, key: str, text: str) -> Expr:
        """Parse ``text`` and register it on the block under ``key``."""
        expr = self.parser.parse_expression(text, self.origin)
        self.expressions[key] = expr
        return expr

    def build(self) -> Block:
        return Block(
            self.origin.lineno,
            self.origin.col_offset,
            self.label,
            tuple(self.body),
            self.params,
            dict(self.expressions),
        )


@dataclass(frozen=True, slots=True)
class SectionInfo:
    """A closed section, handed to ``create_helper``."""

    name: str
    origin: Origin
    blocks: tuple[Block, ...]

    @property
    def main_block(self) -> Block:
        return self.blocks[0]

    @property
    def params(self) -> Parameters:
        return self.blocks[0].params


class SectionHelperFactory:
    """Parse-time half of a section.

    Attributes:
        names: Tag names that open the section
        block_labels: Sub-block tags recognized inside the section
        unknown_sections_as_blocks: Treat any unregistered tag as a sub-block
        unique_block_labels: Reject two sub-blocks with the same label
        end_tag: Termination policy
    """

    names: tuple[str, ...] = ()
    block_labels: frozenset[str] = frozenset()
    unknown_sections_as_blocks: bool = False
    unique_block_labels: bool = False
    end_tag: EndTag = EndTag.REQUIRED

    def is_block_label(self, label: str) -> bool:
        return label in self.block_labels or self.unknown_sections_as_blocks

    def initialize_block(self, block: BlockInfo, ctx: Parser) -> None:
        """Validate block parameters and register their expressions."""

    def create_helper(self, section: SectionInfo, ctx: Parser) -> SectionHelper:
        return SectionHelper()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {'/'.join(self.names)}>"


class SectionHelper:
    """Render-time half of a section; renders the main block by default."""

    async def render(self, ctx: SectionContext) -> str:
        return await ctx.render_block(ctx.main_block)


@dataclass(frozen=True, slots=True)
class SectionContext:
    """What a helper sees while rendering its section."""

    section: Section
    render_ctx: RenderContext
    renderer: Renderer

    @property
    def blocks(self) -> tuple[Block, ...]:
        return tuple(self.section.blocks)

    @property
    def main_block(self) -> Block:
        return self.section.main_block

    @property
    def environment(self) -> Environment:
        return self.renderer.environment

    async def evaluate(self, expr: Expr, render_ctx: RenderContext | None = None) -> Any:
        """Evaluate an expression; ``NOT_FOUND`` is subject to the undefined policy."""
        return await self.renderer.evaluate(expr, render_ctx or self.render_ctx)

    async def render_block(self, block: Block, render_ctx: RenderContext | None = None) -> str:
        return await self.renderer.render_nodes(block.body, render_ctx or self.render_ctx)

    def error(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        suggestion: str | None = None,
        error_class: type[TemplateRuntimeError] = TemplateRuntimeError,
    ) -> TemplateRuntimeError:
        """Build a runtime error located at this section."""
        return self.renderer.runtime_error(
            message,
            self.render_ctx,
            lineno=self.section.lineno,
            code=code,
            suggestion=suggestion,
            error_class=error_class,
        )
