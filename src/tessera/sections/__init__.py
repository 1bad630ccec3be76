"""Section helpers: the block directives of the template language.

Built-in sections:
    ``{#for}`` / ``{#each}``, ``{#if}``, ``{#include}``, ``{#insert}``,
    ``{#let}`` / ``{#set}``, ``{#with}``, ``{#eval}``

User tags (``Environment.add_tag``) and custom factories
(``Environment.add_section_helper``) plug into the same interface.
"""

from tessera.sections.base import (
    BlockInfo,
    EndTag,
    SectionContext,
    SectionHelper,
    SectionHelperFactory,
    SectionInfo,
)
from tessera.sections.conditional import IfSectionFactory, IfSectionHelper
from tessera.sections.eval import EvalSectionFactory
from tessera.sections.include import (
    IncludeSectionFactory,
    IncludeSectionHelper,
    InsertSectionFactory,
    InsertSectionHelper,
)
from tessera.sections.loop import LoopSectionFactory, LoopSectionHelper
from tessera.sections.user_tag import UserTagSectionFactory
from tessera.sections.variables import LetSectionFactory, WithSectionFactory


def default_section_factories() -> list[SectionHelperFactory]:
    """Fresh instances of every built-in section factory."""
    return [
        LoopSectionFactory(),
        IfSectionFactory(),
        IncludeSectionFactory(),
        InsertSectionFactory(),
        LetSectionFactory(),
        WithSectionFactory(),
        EvalSectionFactory(),
    ]


__all__ = [
    "BlockInfo",
    "EndTag",
    "EvalSectionFactory",
    "IfSectionFactory",
    "IfSectionHelper",
    "IncludeSectionFactory",
    "IncludeSectionHelper",
    "InsertSectionFactory",
    "InsertSectionHelper",
    "LetSectionFactory",
    "LoopSectionFactory",
    "LoopSectionHelper",
    "SectionContext",
    "SectionHelper",
    "SectionHelperFactory",
    "SectionInfo",
    "UserTagSectionFactory",
    "WithSectionFactory",
    "default_section_factories",
]
