"""Asynchronous tree-walking renderer.

Nodes render depth-first and their output is joined in document order.
Expressions are evaluated one path part at a time through the resolver
chain; the head of a path is looked up through the scope chain, innermost
scope first.

Undefined policy (``Environment(undefined=...)``):
    - ``"empty"``: unresolved output renders as an empty string (default)
    - ``"token"``: unresolved output renders ``Environment.undefined_token``
    - ``"strict"``: any unresolved evaluation raises ``UndefinedError``

Parallel mode (``Environment(parallel=True)``):
    Sibling nodes are rendered as concurrent tasks and re-assembled in order.
    If one sibling fails the others are cancelled.

"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from tessera.environment.exceptions import (
    ErrorCode,
    TemplateError,
    TemplateRuntimeError,
    UndefinedError,
    build_source_snippet,
)
from tessera.nodes import Expr, Literal, Node, Output, Part, Path, Section, Text
from tessera.resolvers.base import NOT_FOUND, ResolutionContext, ResolverChain
from tessera.sections.base import SectionContext
from tessera.utils.html import html_escape

if TYPE_CHECKING:
    from tessera.environment.core import Environment
    from tessera.render_context import RenderContext

logger = logging.getLogger(__name__)


def format_value(value: Any, escape: bool = False) -> str:
    """Convert a resolved value to output text.

    ``None`` renders empty and booleans as ``true``/``false``. Values
    implementing ``__html__`` are never escaped.
    """
    if value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if hasattr(value, "__html__"):
        return str(value.__html__())
    text = str(value)
    return html_escape(text) if escape else text


class Renderer:
    """Renders node trees for one Environment snapshot.

    The resolver chain and flags are captured at construction, so a render
    in flight is unaffected by later ``add_resolver()`` calls.
    """

    __slots__ = ("_chain", "_parallel", "_undefined", "_undefined_token", "environment")

    def __init__(self, environment: Environment, chain: ResolverChain | None = None):
        self.environment = environment
        self._chain = chain if chain is not None else environment.resolvers
        self._parallel = environment.parallel
        self._undefined = environment.undefined
        self._undefined_token = environment.undefined_token

    @property
    def chain(self) -> ResolverChain:
        return self._chain

    # Nodes -----------------------------------------------------------------

    async def render_nodes(self, nodes: Sequence[Node], ctx: RenderContext) -> str:
        if self._parallel and len(nodes) > 1:
            return await self._render_parallel(nodes, ctx)
        parts = []
        for node in nodes:
            parts.append(await self.render_node(node, ctx))
        return "".join(parts)

    async def _render_parallel(self, nodes: Sequence[Node], ctx: RenderContext) -> str:
        parts: list[Any] = []
        tasks: list[asyncio.Future[str]] = []
        for node in nodes:
            if isinstance(node, Text):
                parts.append(node.value)
            else:
                task = asyncio.ensure_future(self.render_node(node, ctx))
                tasks.append(task)
                parts.append(task)
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        return "".join(part if isinstance(part, str) else part.result() for part in parts)

    async def render_node(self, node: Node, ctx: RenderContext) -> str:
        if isinstance(node, Text):
            return node.value
        if isinstance(node, Output):
            return await self.render_output(node, ctx)
        if isinstance(node, Section):
            try:
                return await node.helper.render(SectionContext(node, ctx, self))
            except TemplateError:
                raise
            except Exception as exc:
                raise self.runtime_error(
                    f"Error rendering {{#{node.name}}}: {type(exc).__name__}: {exc}",
                    ctx,
                    lineno=node.lineno,
                ) from exc
        raise TypeError(f"Cannot render node {node!r}")

    async def render_output(self, node: Output, ctx: RenderContext) -> str:
        value = await self.evaluate(node.expr, ctx)
        if value is NOT_FOUND:
            return self._undefined_token if self._undefined == "token" else ""
        return format_value(value, node.escape)

    # Expressions -----------------------------------------------------------

    async def evaluate(self, expr: Expr, ctx: RenderContext) -> Any:
        """Evaluate ``expr``, applying the undefined policy to the result."""
        value = await self.resolve(expr, ctx)
        if value is NOT_FOUND:
            logger.debug(f"Unresolved expression {{{expr.text}}} in {ctx.template_name or '<template>'}:{expr.lineno}")
            if self._undefined == "strict":
                raise self.undefined_error(expr, ctx)
        return value

    async def resolve(self, expr: Expr, ctx: RenderContext) -> Any:
        """Evaluate ``expr``; unresolved values are returned as ``NOT_FOUND``."""
        try:
            return await self._resolve(expr, ctx)
        except TemplateError:
            raise
        except Exception as exc:
            raise self.runtime_error(
                f"{type(exc).__name__}: {exc}",
                ctx,
                lineno=expr.lineno,
                expression=f"{{{expr.text}}}",
                code=ErrorCode.RESOLUTION_ERROR,
            ) from exc

    async def _resolve(self, expr: Expr, ctx: RenderContext) -> Any:
        if isinstance(expr, Literal):
            return expr.value
        assert isinstance(expr, Path)
        parts = expr.parts
        if expr.base is not None:
            value = expr.base.value
        else:
            value = await self._lookup(parts[0], ctx)
            parts = parts[1:]
        for part in parts:
            value = await self._chain.resolve(ResolutionContext(value, part.name, part.args, ctx, self))
        return value

    async def _lookup(self, part: Part, ctx: RenderContext) -> Any:
        """Resolve the head of a path through the scope chain."""
        for scope in ctx.scope:
            if scope.local:
                if part.name not in scope.data:
                    continue
                value = await ctx.settle(scope.data[part.name])
                if part.args is not None:
                    if not callable(value):
                        return NOT_FOUND
                    value = await ctx.settle(value(*[await self.resolve(arg, ctx) for arg in part.args]))
                return value
            value = await self._chain.resolve(ResolutionContext(scope.data, part.name, part.args, ctx, self))
            if value is not NOT_FOUND:
                return value
        return NOT_FOUND

    # Errors ----------------------------------------------------------------

    def runtime_error(
        self,
        message: str,
        ctx: RenderContext,
        *,
        lineno: int | None = None,
        expression: str | None = None,
        code: ErrorCode | None = None,
        suggestion: str | None = None,
        error_class: type[TemplateRuntimeError] = TemplateRuntimeError,
    ) -> TemplateRuntimeError:
        snippet = build_source_snippet(ctx.source, lineno) if ctx.source and lineno else None
        return error_class(
            message,
            expression=expression,
            template_name=ctx.template_name,
            lineno=lineno,
            suggestion=suggestion,
            source_snippet=snippet,
            template_stack=ctx.template_stack,
            code=code,
        )

    def undefined_error(self, expr: Expr, ctx: RenderContext) -> UndefinedError:
        snippet = build_source_snippet(ctx.source, expr.lineno) if ctx.source and expr.lineno else None
        return UndefinedError(
            expr.text,
            ctx.template_name,
            expr.lineno,
            ctx.local_names(),
            snippet,
            ctx.template_stack,
        )
