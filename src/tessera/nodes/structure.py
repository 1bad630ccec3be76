"""Template structure nodes for the Tessera tree."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tessera.nodes.base import Node
from tessera.nodes.expressions import Expr

if TYPE_CHECKING:
    from tessera.sections.base import SectionHelper

# Label of the anonymous block every section starts with.
MAIN_BLOCK = "$main"


@dataclass(frozen=True, slots=True)
class Parameters:
    """Parameters of a section or block tag, split at top-level whitespace.

    ``{#include base title='Hi' user=item.owner}`` yields
    ``positional=("base",)`` and ``named=(("title", "'Hi'"), ("user", "item.owner"))``.
    ``tokens`` keeps every raw token in order for helpers with their own
    grammar, such as ``{#if}``.
    """

    tokens: tuple[str, ...] = ()
    positional: tuple[str, ...] = ()
    named: tuple[tuple[str, str], ...] = ()
    source: str = ""

    def get(self, name: str, default: str | None = None) -> str | None:
        for key, value in self.named:
            if key == name:
                return value
        return default

    def __contains__(self, name: object) -> bool:
        return any(key == name for key, _ in self.named)

    def __bool__(self) -> bool:
        return bool(self.tokens)


@dataclass(frozen=True, slots=True)
class Text(Node):
    """Literal text between template constructs."""

    value: str


@dataclass(frozen=True, slots=True)
class Output(Node):
    """Output expression: {expr}"""

    expr: Expr
    escape: bool = False


@dataclass(frozen=True, slots=True)
class Block(Node):
    """A labelled region of a section body.

    Every section has a main block (label ``MAIN_BLOCK``) holding the content
    after the start tag; sub-block tags such as ``{#else}`` or ``{#header}``
    open further blocks labelled with the tag name.
    """

    label: str
    body: Sequence[Node] = ()
    params: Parameters = field(default_factory=Parameters)
    expressions: dict[str, Expr] = field(default_factory=dict)

    @property
    def is_main(self) -> bool:
        return self.label == MAIN_BLOCK

    @property
    def is_blank(self) -> bool:
        """True if the block holds nothing but whitespace text."""
        return all(isinstance(node, Text) and not node.value.strip() for node in self.body)


@dataclass(frozen=True, slots=True)
class Section(Node):
    """Block directive: {#name params}...{/name}

    ``helper`` is the render-time half produced by the section's factory at
    parse time; ``blocks[0]`` is always the main block.
    """

    name: str
    helper: SectionHelper
    blocks: Sequence[Block]

    @property
    def main_block(self) -> Block:
        return self.blocks[0]


@dataclass(frozen=True, slots=True)
class Template(Node):
    """Root node representing a complete template."""

    name: str | None
    body: Sequence[Node]
