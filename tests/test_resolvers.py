"""Tests for the resolver chain and built-in resolvers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import pytest

from tessera import NOT_FOUND, Entry, Environment, FunctionResolver, Markup, ResolverChain, ValueResolver
from tessera.resolvers.builtins import default_resolvers


@dataclass
class User:
    name: str
    age: int
    _secret: str = "hidden"

    def greeting(self) -> str:
        return f"Hi {self.name}"

    def greet(self, other: str) -> str:
        return f"{self.name} greets {other}"


class Named(ValueResolver):
    def __init__(self, value: str, priority: int = 1, applies: bool = True):
        self.value = value
        self.priority = priority
        self.applies = applies

    def applies_to(self, ctx) -> bool:
        return self.applies and ctx.name == "who"

    def resolve(self, ctx):
        return self.value


class TestNotFound:
    def test_falsy_singleton(self) -> None:
        assert not NOT_FOUND
        assert repr(NOT_FOUND) == "NOT_FOUND"
        assert type(NOT_FOUND)() is NOT_FOUND


class TestResolverChain:
    def test_sorted_by_descending_priority(self) -> None:
        low, high, mid = Named("low", -5), Named("high", 10), Named("mid", 1)
        chain = ResolverChain([low, high, mid])
        assert list(chain) == [high, mid, low]

    def test_equal_priorities_keep_registration_order(self) -> None:
        first, second = Named("first"), Named("second")
        assert list(ResolverChain([first, second])) == [first, second]

    def test_with_resolver_returns_new_chain(self) -> None:
        chain = ResolverChain()
        extended = chain.with_resolver(Named("x"))
        assert len(chain) == 0
        assert len(extended) == 1

    def test_highest_priority_wins(self, env: Environment) -> None:
        env.add_resolver(Named("low", priority=2))
        env.add_resolver(Named("high", priority=5))
        assert env.parse("{item.who}").render(item={}) == "high"

    def test_first_registered_wins_on_tie(self, env: Environment) -> None:
        env.add_resolver(Named("first"))
        env.add_resolver(Named("second"))
        assert env.parse("{item.who}").render(item={}) == "first"

    def test_skips_resolvers_that_do_not_apply(self, env: Environment) -> None:
        env.add_resolver(Named("skipped", priority=5, applies=False))
        env.add_resolver(Named("used", priority=1))
        assert env.parse("{item.who}").render(item={}) == "used"

    def test_not_found_falls_through(self, env: Environment) -> None:
        env.add_resolver(FunctionResolver(lambda ctx: NOT_FOUND, priority=10))
        assert env.parse("{user.name}").render(user={"name": "Ann"}) == "Ann"

    def test_host_resolver_beats_builtins(self, env: Environment) -> None:
        env.add_resolver(FunctionResolver(lambda ctx: "host", applies_to=lambda ctx: ctx.name == "size"))
        assert env.parse("{items.size}").render(items=[1, 2]) == "host"

    def test_added_resolver_applies_to_next_render(self, env: Environment) -> None:
        template = env.parse("{item.who}")
        before = template.render(item={})
        env.add_resolver(Named("added"))
        assert before == ""
        assert template.render(item={}) == "added"

    def test_constructor_resolvers(self) -> None:
        env = Environment(resolvers=[Named("ctor")])
        assert env.parse("{x.who}").render(x=1) == "ctor"
        assert len(env.resolvers) == len(default_resolvers()) + 1


class TestFunctionResolver:
    def test_applies_to_callable(self, env: Environment) -> None:
        env.add_resolver(
            FunctionResolver(
                lambda ctx: ctx.base * 2,
                applies_to=lambda ctx: ctx.name == "double" and isinstance(ctx.base, int),
            )
        )
        assert env.parse("{n.double}").render(n=21) == "42"

    def test_call_arguments(self, env: Environment) -> None:
        async def repeat(ctx):
            (times,) = await ctx.evaluate_args()
            return ctx.base * times

        env.add_resolver(FunctionResolver(repeat, applies_to=lambda ctx: ctx.name == "repeat" and ctx.is_call))
        assert env.parse("{word.repeat(count)}").render(word="ab", count=3) == "ababab"


class TestAsyncResolvers:
    @pytest.mark.asyncio
    async def test_coroutine_resolver(self, env: Environment) -> None:
        async def fetch(ctx):
            await asyncio.sleep(0)
            return f"remote:{ctx.base['id']}"

        env.add_resolver(FunctionResolver(fetch, applies_to=lambda ctx: ctx.name == "remote"))
        assert await env.parse("{item.remote}").render_async(item={"id": 7}) == "remote:7"

    @pytest.mark.asyncio
    async def test_async_resolver_returning_not_found(self, env: Environment) -> None:
        async def nothing(ctx):
            return NOT_FOUND

        env.add_resolver(FunctionResolver(nothing, priority=10))
        assert await env.parse("{item.name}").render_async(item={"name": "x"}) == "x"

    @pytest.mark.asyncio
    async def test_awaitable_data_value(self, env: Environment) -> None:
        async def load():
            return "loaded"

        assert await env.parse("{value}").render_async(value=load()) == "loaded"

    @pytest.mark.asyncio
    async def test_async_methods(self, env: Environment) -> None:
        class Account:
            async def load(self) -> str:
                await asyncio.sleep(0)
                return "loaded"

            async def greet(self, name: str) -> str:
                return f"hi {name}"

        template = env.parse("[{account.load}|{account.greet('bob')}]")
        assert await template.render_async(account=Account()) == "[loaded|hi bob]"

    @pytest.mark.asyncio
    async def test_awaitable_in_data_mapping(self, env: Environment) -> None:
        async def load():
            return "loaded"

        assert await env.parse("[{a}]").render_async({"a": load()}) == "[loaded]"

    @pytest.mark.asyncio
    async def test_awaitable_mid_path(self, env: Environment) -> None:
        async def load():
            return {"x": "X"}

        assert await env.parse("[{d.a.x}]").render_async(d={"a": load()}) == "[X]"

    @pytest.mark.asyncio
    async def test_awaitable_resolved_once_per_render(self, env: Environment) -> None:
        calls = []

        async def load():
            calls.append(1)
            return "v"

        assert await env.parse("{value}-{value}").render_async(value=load()) == "v-v"
        assert await env.parse("{a}{a.size}").render_async({"a": load()}) == "v1"
        assert await env.parse("{#for x in items}{x}{x}{/for}").render_async(items=[load()]) == "vv"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_shared_awaitable_in_parallel_render(self) -> None:
        async def load():
            await asyncio.sleep(0.001)
            return "v"

        env = Environment(parallel=True)
        assert await env.parse("{value}{#if value}!{/if}{value}").render_async(value=load()) == "v!v"

    def test_sync_render_with_async_resolver(self, env: Environment) -> None:
        async def slow(ctx):
            await asyncio.sleep(0.001)
            return "done"

        env.add_resolver(FunctionResolver(slow, applies_to=lambda ctx: ctx.name == "status"))
        assert env.parse("{job.status}").render(job=object()) == "done"


class TestBuiltinResolvers:
    def test_this(self, env: Environment) -> None:
        assert env.parse("{this}").render("HEADER") == "HEADER"
        assert env.parse("{item.this}").render(item=5) == "5"

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("{missing or 'x'}", "x"),
            ("{missing ?: 'x'}", "x"),
            ("{missing.or('x')}", "x"),
            ("{none or 'x'}", "x"),
            ("{name or 'x'}", "Ann"),
            ("{empty or 'x'}", ""),
            ("{missing??}", ""),
            ("{missing.deeper or 'x'}", "x"),
        ],
    )
    def test_or(self, env: Environment, source: str, expected: str) -> None:
        assert env.parse(source).render(name="Ann", none=None, empty="") == expected

    def test_raw(self, env_autoescape: Environment) -> None:
        template = env_autoescape.parse("{html}|{html.raw}|{html.safe}")
        assert template.render(html="<b>") == "&lt;b&gt;|<b>|<b>"

    def test_raw_on_markup(self, env: Environment) -> None:
        markup = Markup("<i>")
        assert env.parse("{m.raw}").render(m=markup) == "<i>"

    def test_mapping(self, env: Environment) -> None:
        data = {"a": 1, "b": 2}
        template = env.parse("{m.a} {m.size} {m.empty} {m.keys} {m.get('b')} {m.contains('z')} {m['a']}")
        assert template.render(m=data) == "1 2 false ['a', 'b'] 2 false 1"

    def test_mapping_key_shadows_builtin_name(self, env: Environment) -> None:
        assert env.parse("{m.size}").render(m={"size": "XL"}) == "XL"

    def test_mapping_items(self, env: Environment) -> None:
        assert env.parse("{#for e in m.items}{e.key}={e.value};{/for}").render(m={"a": 1, "b": 2}) == "a=1;b=2;"

    def test_sequence(self, env: Environment) -> None:
        template = env.parse(
            "{xs.0} {xs[1]} {xs.-1} {xs.size} {xs.first} {xs.last} {xs.get(1)} {xs.take(2)} {xs.contains(3)}"
        )
        assert template.render(xs=[1, 2, 3]) == "1 2 3 3 1 3 2 [1, 2] true"

    def test_sequence_out_of_range(self, env: Environment) -> None:
        assert env.parse("[{xs.5}{xs.first}]").render(xs=[]) == "[]"

    def test_string_is_a_sequence(self, env: Environment) -> None:
        assert env.parse("{s.size} {s.0}").render(s="hello") == "5 h"

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("{n.plus(1)}", "11"),
            ("{n + 1}", "11"),
            ("{n - 3}", "7"),
            ("{n.minus(3)}", "7"),
            ("{n % 3}", "1"),
            ("{n.mod(4)}", "2"),
            ("{n + m}", "12"),
            ("{1.5.plus(1)}", "2.5"),
            ("{n + 'x'}", ""),
        ],
    )
    def test_numeric(self, env: Environment, source: str, expected: str) -> None:
        assert env.parse(source).render(n=10, m=2) == expected

    def test_attributes(self, env: Environment) -> None:
        user = User("Ann", 30)
        template = env.parse("{user.name} {user.age} {user.greeting} {user.greet('Bob')} [{user._secret}]")
        assert template.render(user=user) == "Ann 30 Hi Ann Ann greets Bob []"

    def test_unbound_callable_attribute_not_called(self, env: Environment) -> None:
        class Holder:
            factory = staticmethod(lambda: "called")

        assert "function" in env.parse("{h.factory}").render(h=Holder())

    def test_builtin_method_called(self, env: Environment) -> None:
        assert env.parse("{s.upper}").render(s="abc") == "ABC"

    def test_entry(self) -> None:
        entry = Entry("k", "v")
        assert entry.key == "k"
        assert entry.value == "v"
