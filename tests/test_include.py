"""Tests for {#include} and {#insert} composition."""

from __future__ import annotations

import pytest

from tessera import (
    Environment,
    IncludeDepthError,
    ParseError,
    TemplateNotFoundError,
    TemplateSyntaxError,
)
from tessera.environment.exceptions import ErrorCode


class TestIncludeBasics:
    """Overriding inserts from an include body."""

    def test_include_overrides_insert(self, env: Environment) -> None:
        env.put_template("super", "{this}: {#insert header}default header{/insert}")
        result = env.parse("{#include super}{#header}super header{/header}{/include}").render("HEADER")
        assert result == "HEADER: super header"

    def test_multiple_inserts(self, env: Environment) -> None:
        env.put_template(
            "super",
            "{#insert header}default header{/insert} AND {#insert content}default content{/insert}",
        )
        template = env.parse(
            "{#include super}{#header}super header{/header}  {#content}super content{/content} {/include}"
        )
        assert template.render() == "super header AND super content"

    def test_defaults_render_without_overrides(self, env: Environment) -> None:
        env.put_template("super", "[{#insert header}default header{/insert}]")
        assert env.parse("{#include super /}").render() == "[default header]"

    def test_include_simple_data(self, env: Environment) -> None:
        env.put_template("detail", "<strong>{name}</strong>:{price}")
        result = env.parse("{#include detail/}").render({"name": "Al", "price": "100"})
        assert result == "<strong>Al</strong>:100"

    def test_quoted_template_name(self, env: Environment) -> None:
        env.put_template("super", "{#insert header}default{/}")
        assert env.parse("{#include 'super'}{#header}quoted{/header}{/include}").render() == "quoted"

    def test_template_name_with_path(self, env: Environment) -> None:
        env.put_template("bar/fool.html", "{foo} and {that}")
        result = env.parse("{#include bar/fool.html that=true /}").render(foo=1)
        assert result == "1 and true"

    def test_optional_block_end_tags(self, env: Environment) -> None:
        """A sub-block ends where the next one starts."""
        env.put_template("super", "{#insert header}header{/}:{#insert footer /}")
        result = env.parse("{#include super}{#header}super header{#footer}super footer{/include}").render()
        assert result == "super header:super footer"

    def test_include_from_loader(self, env_with_loader: Environment) -> None:
        result = env_with_loader.get_template("child.html").render()
        assert result == "<html><head><title>Child</title></head><body>Hello World</body></html>"


class TestDefaultInsert:
    """The include's main block fills the anonymous {#insert}."""

    def test_main_block_overrides_anonymous_insert(self, env: Environment) -> None:
        env.put_template(
            "super",
            "<html>"
            "<head>"
            '<meta charset="UTF-8">'
            "<title>{#insert title}Default Title{/}</title>"
            "</head>"
            "<body>"
            "  {#insert}No body!{/}"
            "</body>"
            "</html>",
        )
        result = env.parse("{#include super}{#title}My Title{/title}Body {foo}!{/}").render(foo=1)
        assert result == (
            "<html>"
            "<head>"
            '<meta charset="UTF-8">'
            "<title>My Title</title>"
            "</head>"
            "<body>"
            "  Body 1!"
            "</body>"
            "</html>"
        )

    def test_blank_main_block_keeps_default(self, env: Environment) -> None:
        env.put_template("super", "{#insert}No body!{/}")
        assert env.parse("{#include super}  \n  {/include}").render() == "No body!"

    def test_main_block_without_anonymous_insert_is_ignored(self, env: Environment) -> None:
        env.put_template("foo", "{#insert snippet}empty{/insert}")
        result = env.parse("{#include foo}{#snippet}1{/snippet} this is not rendered {/include}").render()
        assert result == "1"


class TestIncludeScope:
    """Override blocks and parameters see the right variables."""

    def test_include_in_loop(self, env: Environment) -> None:
        env.put_template("foo", "{#insert snippet}empty{/insert}")
        result = env.parse(
            "{#for i in 5}{#include foo}{#snippet}{i_count}.{/snippet} this should be ignored {/include}{/for}"
        ).render()
        assert result == "1.2.3.4.5."

    def test_include_in_if(self, env: Environment) -> None:
        env.put_template("foo", "{#insert snippet}empty{/insert}")
        assert env.parse("{#if true}{#include foo} {#snippet}1{/snippet} {/include}{/if}").render() == "1"

    def test_insert_in_loop(self, env: Environment) -> None:
        """Overrides render in the scope of the insert point."""
        env.put_template("super", "{#for i in 5}{#insert row}No row{/}{/for}")
        assert env.parse("{#include super}{#row}{i}:{/row}{/}").render() == "1:2:3:4:5:"

    def test_insert_param(self, env: Environment) -> None:
        env.put_template("super", "{#insert header}default header{/insert} and {#insert footer}{that}{/}")
        template = env.parse("{#include 'super' that=foo}{#header}{that}{/}{/}")
        assert [expr.text for expr in template.expressions] == ["foo", "that"]
        assert template.render(foo=1) == "1 and 1"

    def test_params_evaluated_in_caller_scope(self, env: Environment) -> None:
        env.put_template("greeting", "Hello {who}")
        result = env.parse("{#for name in names}{#include greeting who=name /};{/for}").render(names=["Ann", "Bob"])
        assert result == "Hello Ann;Hello Bob;"

    def test_literal_params(self, env: Environment) -> None:
        env.put_template("card", "{title}|{count}|{flag}")
        assert env.parse("{#include card title='Hi there' count=3 flag=false /}").render() == "Hi there|3|false"

    def test_caller_data_visible_by_default(self, env: Environment) -> None:
        env.put_template("greeting", "Hello {name}")
        assert env.parse("{#include greeting /}").render(name="World") == "Hello World"

    def test_isolated_hides_caller_data(self, env: Environment) -> None:
        env.put_template("greeting", "Hello {name}{who}")
        result = env.parse("{#include greeting _isolated who='!' /}").render(name="World")
        assert result == "Hello !"

    def test_isolated_keeps_globals(self) -> None:
        env = Environment(globals={"site": "Docs"})
        env.put_template("title", "{site}:{name}")
        assert env.parse("{#include title _isolated /}").render(name="x") == "Docs:"

    def test_isolated_override_sees_only_include_scope(self, env: Environment) -> None:
        env.put_template("row", "{#insert cell /}")
        shared = "{#for i in 2}{#include row}{#cell}{i}{/cell}{/include}{/for}"
        isolated = "{#for i in 2}{#include row _isolated n=i}{#cell}{i}{n}{/cell}{/include}{/for}"
        assert env.parse(shared).render() == "12"
        assert env.parse(isolated).render() == "12"

    def test_nested_includes_resolve_innermost_override(self, env: Environment) -> None:
        env.put_template("outer", "<{#insert content}outer default{/insert}>")
        env.put_template("inner", "{#include outer}{#content}[{#insert content}inner default{/insert}]{/content}{/include}")
        assert env.parse("{#include inner /}").render() == "<[inner default]>"
        assert env.parse("{#include inner}{#content}page{/content}{/include}").render() == "<[page]>"

    def test_override_can_reach_outer_override(self, env: Environment) -> None:
        """An insert inside an override block is answered by the enclosing include."""
        env.put_template("layout", "{#insert body /}")
        env.put_template("page", "{#include layout}{#body}({#insert main}none{/insert}){/body}{/include}")
        assert env.parse("{#include page}{#main}hello{/main}{/include}").render() == "(hello)"

    @pytest.mark.asyncio
    async def test_include_async(self, env: Environment) -> None:
        env.put_template("super", "{#insert header}default{/insert}")
        template = env.parse("{#include super}{#header}{value}{/header}{/include}")
        assert await template.render_async(value="async") == "async"


class TestIncludeStandaloneLines:
    def test_include_standalone_lines(self, env_standalone: Environment) -> None:
        env_standalone.put_template("super", "{#insert header}\ndefault header\n{/insert}")
        result = env_standalone.parse(
            "{#include super}\n{#header}\nsuper header\n{/header}\n{/include}"
        ).render()
        assert result == "super header\n"

    def test_default_content_keeps_inner_lines(self, env_standalone: Environment) -> None:
        env_standalone.put_template("super", "<ul>\n{#insert items}\n<li>none</li>\n{/insert}\n</ul>")
        assert env_standalone.parse("{#include super /}").render() == "<ul>\n<li>none</li>\n</ul>"


class TestIncludeErrors:
    def test_ambiguous_inserts(self, env: Environment) -> None:
        env.put_template("super", "{#insert header}default header{/insert}")
        with pytest.raises(ParseError) as exc_info:
            env.parse("{#include super}{#header}1{/}{#header}2{/}{/}")
        error = exc_info.value
        assert error.message == (
            "Multiple blocks define the content for the {#insert} section of name [header] on line 1"
        )
        assert error.origin is not None
        assert error.code == ErrorCode.AMBIGUOUS_BLOCK

    def test_ambiguous_inserts_reports_include_line(self, env: Environment) -> None:
        with pytest.raises(ParseError) as exc_info:
            env.parse("\n\n{#include super}\n{#a}1{/a}\n{#a}2{/a}\n{/include}")
        assert exc_info.value.message.endswith("[a] on line 3")
        assert exc_info.value.origin.lineno == 5

    def test_tag_and_insert_conflict(self) -> None:
        env = Environment(tags={"row": "row"})
        env.put_template("row", "{foo}")
        with pytest.raises(ParseError) as exc_info:
            env.parse("{#insert}{/}\n{#insert row /}")
        error = exc_info.value
        assert error.message == (
            "An {#insert} section defined in the {#include} section on line 2 "
            "conflicts with an existing section/tag: row"
        )
        assert error.origin.lineno == 2
        assert error.code == ErrorCode.TAG_CONFLICT

    def test_insert_conflicts_with_builtin_section(self, env: Environment) -> None:
        with pytest.raises(ParseError, match="conflicts with an existing section/tag: for"):
            env.parse("{#insert for}x{/insert}")

    def test_include_requires_template_name(self, env: Environment) -> None:
        with pytest.raises(TemplateSyntaxError, match="requires exactly one template name"):
            env.parse("{#include /}")

    def test_include_rejects_second_template(self, env: Environment) -> None:
        with pytest.raises(TemplateSyntaxError, match="Unexpected"):
            env.parse("{#include a b /}")

    def test_missing_template_fails_at_render(self, env: Environment) -> None:
        template = env.parse("before {#include missing /}", name="page")
        with pytest.raises(TemplateNotFoundError) as exc_info:
            template.render()
        assert "missing" in str(exc_info.value)
        assert exc_info.value.template_name == "page"

    def test_missing_template_in_loader(self, env_with_loader: Environment) -> None:
        with pytest.raises(TemplateNotFoundError, match="partial.htm"):
            env_with_loader.parse("{#include partial.htm /}").render()

    def test_template_registered_after_parse(self, env: Environment) -> None:
        template = env.parse("{#include later /}")
        env.put_template("later", "found")
        assert template.render() == "found"

    def test_recursive_include_depth(self) -> None:
        env = Environment(max_include_depth=5)
        env.put_template("loop", "x{#include loop /}")
        with pytest.raises(IncludeDepthError) as exc_info:
            env.get_template("loop").render()
        assert exc_info.value.code == ErrorCode.INCLUDE_DEPTH
        assert len(exc_info.value.template_stack) == 5

    def test_recursion_with_base_case(self, env: Environment) -> None:
        env.put_template("countdown", "{n}{#if n gt 1}{#include countdown n=n.minus(1) /}{/if}")
        assert env.get_template("countdown").render(n=3) == "321"


class TestInsertIntrospection:
    def test_inserts_listed(self, env: Environment) -> None:
        template = env.parse("{#insert title}x{/}{#insert}{/}{#insert footer /}{#insert title}again{/}")
        assert template.inserts == ("title", "", "footer")

    def test_insert_without_include_renders_default(self, env: Environment) -> None:
        assert env.parse("[{#insert title}Default{/insert}]").render() == "[Default]"

    def test_insert_rejects_extra_params(self, env: Environment) -> None:
        with pytest.raises(TemplateSyntaxError, match="Invalid"):
            env.parse("{#insert a b}{/insert}")
