"""Tests for user tags: templates invoked as sections."""

from __future__ import annotations

import pytest

from tessera import Environment, ParseError, TemplateNotFoundError
from tessera.environment.exceptions import ErrorCode


@pytest.fixture
def tag_env() -> Environment:
    env = Environment(tags={"hello": "hello"})
    env.put_template("hello", "{name}")
    return env


class TestUserTags:
    def test_user_tag_inside_insert(self, tag_env: Environment) -> None:
        tag_env.put_template("base", "{#insert snippet}{/insert}")
        result = tag_env.parse("{#include base} {#snippet}{#hello name='foo'/}{/snippet} {/include}").render()
        assert result == "foo"

    def test_first_positional_is_it(self, env: Environment) -> None:
        env.add_tag("badge", "tags/badge")
        env.put_template("tags/badge", "<span>{it}</span>")
        assert env.parse("{#badge item.label /}").render(item={"label": "New"}) == "<span>New</span>"

    def test_template_id_defaults_to_name(self, env: Environment) -> None:
        env.add_tag("card")
        env.put_template("card", "[{title}]")
        assert env.parse("{#card title='T' /}").render() == "[T]"

    def test_tag_from_loader(self, env_with_loader: Environment) -> None:
        env_with_loader.add_tag("badge", "tags/badge")
        assert env_with_loader.parse("{#badge 'hot' /}").render() == "<span>hot</span>"

    def test_caller_data_visible(self, tag_env: Environment) -> None:
        assert tag_env.parse("{#hello /}").render(name="outer") == "outer"

    def test_isolated(self, tag_env: Environment) -> None:
        assert tag_env.parse("[{#hello _isolated /}]").render(name="outer") == "[]"

    def test_body_fills_anonymous_insert(self, env: Environment) -> None:
        env.add_tag("panel")
        env.put_template("panel", "<div class='{kind}'>{#insert}empty{/insert}</div>")
        result = env.parse("{#panel kind='note'}Hello {who}{/panel}").render(who="you")
        assert result == "<div class='note'>Hello you</div>"

    def test_named_blocks(self, env: Environment) -> None:
        env.add_tag("dialog")
        env.put_template("dialog", "<h1>{#insert title}Untitled{/insert}</h1>{#insert}{/insert}")
        result = env.parse("{#dialog}{#title}Warning{/title}Careful{/dialog}").render()
        assert result == "<h1>Warning</h1>Careful"

    def test_duplicate_blocks_rejected(self, env: Environment) -> None:
        env.add_tag("dialog")
        with pytest.raises(ParseError) as exc_info:
            env.parse("{#dialog}{#title}a{/title}{#title}b{/title}{/dialog}")
        assert exc_info.value.code == ErrorCode.AMBIGUOUS_BLOCK

    def test_tag_in_loop(self, tag_env: Environment) -> None:
        assert tag_env.parse("{#for n in names}{#hello name=n /},{/for}").render(names=["a", "b"]) == "a,b,"

    def test_two_positional_rejected(self, tag_env: Environment) -> None:
        with pytest.raises(ParseError) as exc_info:
            tag_env.parse("{#hello a b /}")
        assert exc_info.value.code == ErrorCode.INVALID_PARAMETERS

    def test_missing_tag_template(self, env: Environment) -> None:
        env.add_tag("ghost")
        with pytest.raises(TemplateNotFoundError):
            env.parse("{#ghost /}").render()

    def test_tags_listed_in_section_helpers(self, tag_env: Environment) -> None:
        assert "hello" in tag_env.section_helpers
        assert tag_env.section_helpers["hello"].template_id == "hello"
