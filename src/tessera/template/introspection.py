"""Static introspection of parsed templates.

Walks the node tree once, at parse time, to collect what a template
references. Nothing here is recomputed during rendering.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from tessera.nodes import Expr, Node, Output, Section
from tessera.sections.include import InsertSectionHelper


def iter_sections(nodes: Sequence[Node]) -> Iterator[Section]:
    """Yield every section of the tree, depth-first in document order."""
    for node in nodes:
        if isinstance(node, Section):
            yield node
            for block in node.blocks:
                yield from iter_sections(block.body)


def collect_expressions(nodes: Sequence[Node]) -> tuple[Expr, ...]:
    """Output and parameter expressions in document order.

    A section contributes the parameter expressions of each block before
    the expressions inside that block's body.
    """
    found: list[Expr] = []

    def visit(body: Sequence[Node]) -> None:
        for node in body:
            if isinstance(node, Output):
                found.append(node.expr)
            elif isinstance(node, Section):
                for block in node.blocks:
                    found.extend(block.expressions.values())
                    visit(block.body)

    visit(nodes)
    return tuple(found)


def collect_inserts(nodes: Sequence[Node]) -> tuple[str, ...]:
    """Names of the insert points a template declares (``""`` is anonymous)."""
    names: list[str] = []
    for section in iter_sections(nodes):
        helper = section.helper
        if isinstance(helper, InsertSectionHelper) and helper.name not in names:
            names.append(helper.name)
    return tuple(names)
