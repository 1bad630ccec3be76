"""User tags: templates invoked as sections.

Registering a tag makes ``{#name ...}`` render the tag's template::

    env.add_tag("card", "tags/card")
    env.parse("{#card item title='Featured' /}")

Inside the tag template the first positional parameter is ``it`` and named
parameters are variables of the same name. The caller's data stays visible
unless ``_isolated`` is given. The tag body overrides the tag template's
inserts exactly as an ``{#include}`` body does: ``{#insert}`` renders the
body's main block.

"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tessera.environment.exceptions import ErrorCode
from tessera.sections.base import BlockInfo, SectionHelper, SectionHelperFactory, SectionInfo
from tessera.sections.include import ISOLATED, IncludeSectionHelper, is_isolated, override_blocks

if TYPE_CHECKING:
    from tessera.parser.core import Parser

IT = "it"


class UserTagSectionFactory(SectionHelperFactory):
    unknown_sections_as_blocks = True
    unique_block_labels = True

    def __init__(self, name: str, template_id: str | None = None):
        self.names = (name,)
        self.template_id = template_id or name

    def initialize_block(self, block: BlockInfo, ctx: Parser) -> None:
        if not block.is_main:
            return
        positional = [token for token in block.params.positional if token != ISOLATED]
        if len(positional) > 1:
            raise ctx.error(
                f"User tag {{#{self.names[0]}}} accepts one positional parameter, got {len(positional)}",
                block.origin,
                code=ErrorCode.INVALID_PARAMETERS,
                suggestion="Pass further values as key=value parameters",
            )
        if positional:
            block.add_expression(IT, positional[0])
        for key, value in block.params.named:
            if key != ISOLATED:
                block.add_expression(key, value)

    def create_helper(self, section: SectionInfo, ctx: Parser) -> SectionHelper:
        return IncludeSectionHelper(
            self.template_id,
            dict(section.main_block.expressions),
            override_blocks(section),
            is_isolated(section.params),
        )

    def __repr__(self) -> str:
        return f"<UserTagSectionFactory {self.names[0]} -> {self.template_id}>"
