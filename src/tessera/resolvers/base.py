"""Value resolution for Tessera expressions.

Every step of a path such as ``{item.price.plus(1)}`` is one lookup: the
chain asks each resolver, highest priority first, whether it applies to the
current base value and name, and the first answer other than ``NOT_FOUND``
wins. A resolver may answer with an awaitable, which the chain awaits, so
lookups can hit a database or a remote service without blocking the render.
Awaitable values found along the way, such as an ``async def`` method or a
coroutine stored in a mapping, are awaited too, once per render.

Host resolvers default to priority 1; the built-in resolvers run at -1 or
lower, so a host resolver always gets the first word.

Example:
    ```python
    class UpperResolver(ValueResolver):
        def applies_to(self, ctx):
            return isinstance(ctx.base, str) and ctx.name == "shout"

        def resolve(self, ctx):
            return ctx.base.upper() + "!"


    env.add_resolver(UpperResolver())
    env.parse("{name.shout}").render(name="hi")  # 'HI!'
    ```

"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tessera.nodes import Expr
    from tessera.render_context import RenderContext
    from tessera.renderer import Renderer

DEFAULT_PRIORITY = 1
BUILTIN_PRIORITY = -1


class _NotFound:
    """Sentinel for a lookup no resolver could answer."""

    __slots__ = ()
    _instance: _NotFound | None = None

    def __new__(cls) -> _NotFound:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __reduce__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND: Any = _NotFound()


@dataclass(frozen=True, slots=True)
class ResolutionContext:
    """One lookup step: ``name`` (with optional call ``args``) on ``base``."""

    base: Any
    name: str
    args: tuple[Expr, ...] | None
    render_ctx: RenderContext
    renderer: Renderer

    @property
    def is_call(self) -> bool:
        return self.args is not None

    async def evaluate(self, expr: Expr) -> Any:
        """Evaluate an argument in the scope of the lookup.

        Returns ``NOT_FOUND`` for unresolved arguments regardless of the
        undefined policy.
        """
        return await self.renderer.resolve(expr, self.render_ctx)

    async def evaluate_args(self) -> list[Any]:
        return [await self.evaluate(arg) for arg in self.args or ()]


class ValueResolver:
    """Base class for resolvers.

    Subclasses override ``applies_to`` and ``resolve``. ``resolve`` returns
    the value, ``NOT_FOUND`` to let lower-priority resolvers try, or an
    awaitable of either.
    """

    priority: int = DEFAULT_PRIORITY

    def applies_to(self, ctx: ResolutionContext) -> bool:
        return True

    def resolve(self, ctx: ResolutionContext) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} priority={self.priority}>"


class FunctionResolver(ValueResolver):
    """Resolver built from plain callables.

    Example:
        >>> env.add_resolver(
        ...     FunctionResolver(lambda ctx: ctx.base * 2, applies_to=lambda ctx: ctx.name == "double")
        ... )
    """

    def __init__(
        self,
        func: Callable[[ResolutionContext], Any],
        *,
        applies_to: Callable[[ResolutionContext], bool] | None = None,
        priority: int = DEFAULT_PRIORITY,
    ):
        self._func = func
        self._applies_to = applies_to
        self.priority = priority

    def applies_to(self, ctx: ResolutionContext) -> bool:
        return self._applies_to is None or bool(self._applies_to(ctx))

    def resolve(self, ctx: ResolutionContext) -> Any:
        return self._func(ctx)


class ResolverChain:
    """Immutable, priority-ordered sequence of resolvers.

    Resolvers are sorted by descending priority; equal priorities keep their
    registration order. ``with_resolver()`` returns a new chain, so templates
    being rendered keep the chain they started with.
    """

    __slots__ = ("_resolvers",)

    def __init__(self, resolvers: Iterable[ValueResolver] = ()):
        self._resolvers = tuple(sorted(resolvers, key=lambda resolver: -resolver.priority))

    def with_resolver(self, resolver: ValueResolver) -> ResolverChain:
        return ResolverChain((*self._resolvers, resolver))

    async def resolve(self, ctx: ResolutionContext) -> Any:
        for resolver in self._resolvers:
            if not resolver.applies_to(ctx):
                continue
            result = resolver.resolve(ctx)
            if inspect.iscoroutinefunction(resolver.resolve):
                result = await result
            result = await ctx.render_ctx.settle(result)
            if result is not NOT_FOUND:
                return result
        return NOT_FOUND

    def __iter__(self) -> Iterator[ValueResolver]:
        return iter(self._resolvers)

    def __len__(self) -> int:
        return len(self._resolvers)

    def __repr__(self) -> str:
        return f"<ResolverChain {list(self._resolvers)!r}>"
