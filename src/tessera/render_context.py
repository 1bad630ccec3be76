"""Tessera RenderContext: immutable per-render state.

A render walks the node tree with a ``RenderContext`` holding:

- the scope chain: data scopes (any host object, looked up through the
  resolver chain) and local scopes (mappings of template variables such as
  loop aliases, ``{#let}`` values and include parameters);
- the override chain: one frame per entered ``{#include}`` or user tag,
  mapping insert names to the caller's blocks;
- the current template name and source, the include depth and the template
  stack for error traces;
- the settled awaitables of the render, shared by every derived context.

Contexts are never mutated. Sections derive child contexts, so siblings
rendered concurrently (``parallel=True``) cannot observe each other. The one
shared table maps each awaitable met during the render to the task awaiting
it, so a coroutine passed as data can be referenced any number of times.

"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from tessera.environment.exceptions import IncludeDepthError
from tessera.nodes import Block


@dataclass(frozen=True, slots=True)
class Scope:
    """One link of the scope chain.

    Local scopes are mappings consulted by key; data scopes hold an arbitrary
    object consulted through the resolver chain.
    """

    data: Any
    parent: Scope | None = None
    local: bool = True

    def __iter__(self) -> Iterator[Scope]:
        scope: Scope | None = self
        while scope is not None:
            yield scope
            scope = scope.parent


@dataclass(frozen=True, slots=True)
class OverrideFrame:
    """Blocks supplied by one ``{#include}`` (or user tag) call site.

    Attributes:
        blocks: Insert name → caller's block (``""`` for the anonymous insert)
        template_name: Template the blocks were written in
        source: Source of that template, for error snippets
        parent: Frame of the enclosing include, if any
    """

    blocks: Mapping[str, Block]
    template_name: str | None = None
    source: str | None = None
    parent: OverrideFrame | None = None


@dataclass(frozen=True, slots=True)
class RenderContext:
    """Per-render state.

    Attributes:
        scope: Innermost scope
        overrides: Innermost override frame
        template_name: Current template name for error messages
        source: Current template source for error snippets
        include_depth: Current include/user tag nesting depth
        max_include_depth: Maximum allowed nesting depth
        template_stack: (template_name, line) of every include call site
        settled: Awaitable id → (awaitable, task), shared by the whole render
    """

    scope: Scope
    overrides: OverrideFrame | None = None
    template_name: str | None = None
    source: str | None = None
    include_depth: int = 0
    max_include_depth: int = 50
    template_stack: tuple[tuple[str, int], ...] = ()
    settled: dict[int, tuple[Any, asyncio.Future[Any]]] = field(default_factory=dict, compare=False, repr=False)

    async def settle(self, value: Any) -> Any:
        """Await ``value`` until it is no longer awaitable.

        Each awaitable is awaited once per render; later references to the
        same object get the same result.
        """
        while inspect.isawaitable(value):
            entry = self.settled.get(id(value))
            if entry is None or entry[0] is not value:
                entry = (value, asyncio.ensure_future(value))
                self.settled[id(value)] = entry
            value = await entry[1]
        return value

    def push_scope(self, data: Any, *, local: bool = True) -> RenderContext:
        """Derive a context with ``data`` as the innermost scope."""
        return replace(self, scope=Scope(data, self.scope, local))

    def with_template(self, template_name: str | None, source: str | None) -> RenderContext:
        return replace(self, template_name=template_name, source=source)

    def with_overrides(self, overrides: OverrideFrame | None) -> RenderContext:
        return replace(self, overrides=overrides)

    def include(
        self,
        template_name: str | None,
        source: str | None,
        *,
        lineno: int,
        blocks: Mapping[str, Block],
        params: Mapping[str, Any] | None = None,
        root: Scope | None = None,
    ) -> RenderContext:
        """Derive the context an included template renders in.

        Args:
            template_name: Name of the included template
            source: Its source
            lineno: Line of the call site in the current template
            blocks: Override blocks supplied by the call site
            params: Evaluated call parameters, pushed as a local scope
            root: Scope to build on instead of the caller's (isolated includes)
        """
        self.check_include_depth(template_name)
        scope = self.scope if root is None else root
        if params:
            scope = Scope(dict(params), scope, True)
        stack = self.template_stack
        if self.template_name:
            stack = (*stack, (self.template_name, lineno))
        frame = OverrideFrame(blocks, self.template_name, self.source, self.overrides)
        return replace(
            self,
            scope=scope,
            overrides=frame,
            template_name=template_name,
            source=source,
            include_depth=self.include_depth + 1,
            template_stack=stack,
        )

    def find_override(self, name: str) -> OverrideFrame | None:
        """Innermost override frame supplying a block for the insert ``name``."""
        frame = self.overrides
        while frame is not None:
            if name in frame.blocks:
                return frame
            frame = frame.parent
        return None

    def check_include_depth(self, template_name: str | None) -> None:
        """Raise IncludeDepthError if one more include would exceed the limit."""
        if self.include_depth >= self.max_include_depth:
            raise IncludeDepthError(
                f"Maximum include depth exceeded ({self.max_include_depth}) "
                f"when including '{template_name}'",
                template_name=self.template_name,
                template_stack=self.template_stack,
                suggestion="Check for circular includes: A → B → A",
            )

    def root_scope(self) -> Scope:
        """Outermost scope (the environment globals)."""
        scope = self.scope
        while scope.parent is not None:
            scope = scope.parent
        return scope

    def local_names(self) -> frozenset[str]:
        """Names defined in local scopes, for "did you mean" suggestions."""
        names: set[str] = set()
        for scope in self.scope:
            if scope.local:
                names.update(key for key in scope.data if isinstance(key, str))
            elif isinstance(scope.data, Mapping):
                names.update(key for key in scope.data if isinstance(key, str))
        return frozenset(names)


def root_context(
    data: Any = None,
    kwargs: Mapping[str, Any] | None = None,
    *,
    globals: Mapping[str, Any] | None = None,
    template_name: str | None = None,
    source: str | None = None,
    max_include_depth: int = 50,
) -> RenderContext:
    """Build the context a top-level render starts with.

    Scopes, outermost first: ``globals`` (local), ``data`` (data scope,
    any object), ``kwargs`` (local).
    """
    scope = Scope(dict(globals or {}), None, True)
    if data is not None:
        scope = Scope(data, scope, False)
    if kwargs:
        scope = Scope(dict(kwargs), scope, True)
    return RenderContext(
        scope=scope,
        template_name=template_name,
        source=source,
        max_include_depth=max_include_depth,
    )
