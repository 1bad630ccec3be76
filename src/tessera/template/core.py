"""Tessera Template: a parsed template ready for rendering.

Architecture:
    ```
    Template
    ├── _env_ref: WeakRef[Environment]  # Prevents circular refs
    ├── _tree: nodes.Template           # Immutable node tree
    ├── _expressions, _inserts          # Collected once at parse time
    └── _name, _filename, _source       # For error messages
    ```

Memory Safety:
Uses ``weakref.ref(env)`` to break potential cycles:
``Template → (weak) → Environment → registry → Template``

Concurrency:
- Templates are immutable after construction
- Each render builds its own RenderContext and Renderer
- Any number of renders of one template may run concurrently

"""

from __future__ import annotations

import asyncio
import weakref
from typing import TYPE_CHECKING, Any

from tessera.render_context import root_context
from tessera.renderer import Renderer
from tessera.template.introspection import collect_expressions, collect_inserts

if TYPE_CHECKING:
    from tessera.environment import Environment
    from tessera.nodes import Expr
    from tessera.nodes import Template as TemplateNode


class Template:
    """Parsed template ready for rendering.

    Attributes:
        name: Template identifier (for error messages and includes)
        filename: Source file path, when loaded from disk
        source: Template source
        expressions: Every expression the template references, in document order
        inserts: Names of the insert points the template declares

    Methods:
        render(data=None, **kwargs): Render and return the output
        render_async(data=None, **kwargs): Coroutine version of ``render()``

    Data:
        ``data`` may be any object: a mapping, a dataclass, an ORM entity.
        Keyword arguments form a scope above it and environment globals a
        scope below it.

    Example:
            >>> env = Environment()
            >>> t = env.parse("Hello {name}!")
            >>> t.render(name="World")
            'Hello World!'

            >>> await t.render_async({"name": "World"})
            'Hello World!'

    """

    __slots__ = (
        "_env_ref",
        "_expressions",
        "_filename",
        "_inserts",
        "_name",
        "_source",
        "_tree",
    )

    def __init__(
        self,
        env: Environment,
        tree: TemplateNode,
        name: str | None,
        source: str,
        filename: str | None = None,
    ):
        self._env_ref: weakref.ref[Environment] = weakref.ref(env)
        self._tree = tree
        self._name = name
        self._source = source
        self._filename = filename
        self._expressions = collect_expressions(tree.body)
        self._inserts = collect_inserts(tree.body)

    @property
    def _env(self) -> Environment:
        """Get the Environment (dereferences weak reference)."""
        env = self._env_ref()
        if env is None:
            raise RuntimeError(f"Environment has been garbage collected (template: {self._name or 'unknown'})")
        return env

    @property
    def environment(self) -> Environment:
        return self._env

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def filename(self) -> str | None:
        return self._filename

    @property
    def source(self) -> str:
        return self._source

    @property
    def tree(self) -> TemplateNode:
        return self._tree

    @property
    def expressions(self) -> tuple[Expr, ...]:
        return self._expressions

    @property
    def inserts(self) -> tuple[str, ...]:
        return self._inserts

    def render(self, data: Any = None, **kwargs: Any) -> str:
        """Render the template, blocking until done.

        Cannot be called from a running event loop; use ``render_async()``
        there.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.render_async(data, **kwargs))
        raise RuntimeError(
            f"Template.render() called from a running event loop (template: {self._name or '(inline)'}); "
            "use 'await template.render_async()' instead"
        )

    async def render_async(self, data: Any = None, **kwargs: Any) -> str:
        """Render the template.

        Raises:
            TemplateRuntimeError: A resolver, section or data access failed
            UndefinedError: Unresolved expression under ``undefined="strict"``
        """
        env = self._env
        ctx = root_context(
            data,
            kwargs,
            globals=env.globals,
            template_name=self._name,
            source=self._source,
            max_include_depth=env.max_include_depth,
        )
        return await Renderer(env).render_nodes(self._tree.body, ctx)

    def __repr__(self) -> str:
        return f"<Template {self._name or '(inline)'}>"
