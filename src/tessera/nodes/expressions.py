"""Expression nodes for the Tessera template tree.

Two shapes exist: a ``Literal`` and a ``Path``. A path is a sequence of
parts navigated left to right, where every part is either a property access
(``item.name``) or a method call (``item.get(1)``). Infix notation
(``{name or 'x'}``) and bracket access (``{items[0]}``) are parsed into the
same shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tessera.nodes.base import Node


@dataclass(frozen=True, slots=True)
class Expr(Node):
    """Base class for expressions.

    ``text`` is the expression as written in the template, used for
    diagnostics and the undefined ``token`` policy.
    """

    text: str


@dataclass(frozen=True, slots=True)
class Literal(Expr):
    """Constant value: string, number, boolean or null."""

    value: Any


@dataclass(frozen=True, slots=True)
class Part:
    """One segment of a path: ``name`` or ``name(args)``."""

    name: str
    args: tuple[Expr, ...] | None = None

    @property
    def is_call(self) -> bool:
        return self.args is not None

    def __str__(self) -> str:
        if self.args is None:
            return self.name
        return f"{self.name}({', '.join(arg.text for arg in self.args)})"


@dataclass(frozen=True, slots=True)
class Path(Expr):
    """Navigable path: ``item.name``, ``map.get('k')``, ``'abc'.upper``.

    When ``base`` is set the first part is resolved against the literal value
    instead of being looked up in the scope chain.
    """

    parts: tuple[Part, ...]
    base: Literal | None = None

    @property
    def head(self) -> Part:
        return self.parts[0]

    @property
    def dotted(self) -> str:
        """The path with call arguments elided, e.g. ``item.get.name``."""
        names = [part.name for part in self.parts]
        if self.base is not None:
            names.insert(0, self.base.text)
        return ".".join(names)
