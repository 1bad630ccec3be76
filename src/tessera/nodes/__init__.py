"""Tessera template tree nodes.

Nodes are frozen, slotted dataclasses: a parsed template is immutable and
can be rendered by many concurrent render calls.
"""

from tessera.nodes.base import Node
from tessera.nodes.expressions import Expr, Literal, Part, Path
from tessera.nodes.structure import (
    MAIN_BLOCK,
    Block,
    Output,
    Parameters,
    Section,
    Template,
    Text,
)

__all__ = [
    "MAIN_BLOCK",
    "Block",
    "Expr",
    "Literal",
    "Node",
    "Output",
    "Parameters",
    "Part",
    "Path",
    "Section",
    "Template",
    "Text",
]
