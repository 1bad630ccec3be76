"""Tests for the Environment: configuration, loaders and template registry."""

from __future__ import annotations

import gc
import logging
from pathlib import Path

import pytest

from tessera import (
    ChoiceLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    Template,
    TemplateNotFoundError,
)
from tessera.sections import LoopSectionFactory


class TestConfiguration:
    def test_defaults(self, env: Environment) -> None:
        assert env.undefined == "empty"
        assert env.max_include_depth == 50
        assert not env.parallel
        assert not env.should_escape("page.html")

    def test_invalid_include_depth(self) -> None:
        with pytest.raises(ValueError, match="max_include_depth"):
            Environment(max_include_depth=0)

    def test_default_sections_registered(self, env: Environment) -> None:
        for name in ("for", "each", "if", "include", "insert", "let", "set", "with", "eval"):
            assert name in env.section_helpers

    def test_section_registry_copy_on_write(self, env: Environment) -> None:
        before = env.section_helpers.copy()
        env.section_helpers["loop"] = LoopSectionFactory()
        assert "loop" not in before
        assert "loop" in env.section_helpers
        del env.section_helpers["loop"]
        assert "loop" not in env.section_helpers

    def test_registry_update_and_views(self, env: Environment) -> None:
        factory = LoopSectionFactory()
        env.section_helpers.update({"repeat": factory})
        assert env.section_helpers.get("repeat") is factory
        assert env.section_helpers.get("unknown") is None
        assert "repeat" in env.section_helpers.keys()
        assert factory in list(env.section_helpers.values())
        assert len(env.section_helpers) == len(list(env.section_helpers))

    def test_registry_rejects_non_factories(self, env: Environment) -> None:
        with pytest.raises(TypeError, match="must be a SectionHelperFactory"):
            env.section_helpers["bad"] = object()
        assert "bad" not in env.section_helpers

    def test_parse_uses_registry_snapshot(self, env: Environment) -> None:
        template = env.parse("{#for x in xs}{x}{/for}")
        env.section_helpers["for"] = LoopSectionFactory()
        assert template.render(xs=[1]) == "1"

    def test_repr(self, env: Environment) -> None:
        assert repr(env).startswith("<Environment templates=0")


class TestTemplateRegistry:
    def test_put_and_get(self, env: Environment) -> None:
        template = env.put_template("page", "Hi")
        assert isinstance(template, Template)
        assert env.get_template("page") is template
        assert template.name == "page"

    def test_put_parsed_template(self, env: Environment) -> None:
        parsed = env.parse("x")
        assert env.put_template("alias", parsed) is parsed
        assert env.get_template("alias").render() == "x"

    def test_get_missing_without_loader(self, env: Environment) -> None:
        with pytest.raises(TemplateNotFoundError, match="not found"):
            env.get_template("missing")

    def test_has_and_remove(self, env: Environment) -> None:
        env.put_template("page", "x")
        assert env.has_template("page")
        assert env.remove_template("page")
        assert not env.has_template("page")
        assert not env.remove_template("page")

    def test_loader_result_is_registered(self, env_with_loader: Environment) -> None:
        first = env_with_loader.get_template("partial.html")
        assert env_with_loader.get_template("partial.html") is first
        assert first.render() == "<p>Partial content</p>"

    def test_registry_wins_over_loader(self, env_with_loader: Environment) -> None:
        env_with_loader.put_template("partial.html", "override")
        assert env_with_loader.get_template("partial.html").render() == "override"

    def test_list_templates(self, env_with_loader: Environment) -> None:
        env_with_loader.put_template("extra", "x")
        names = env_with_loader.list_templates()
        assert "extra" in names
        assert "base.html" in names
        assert names == sorted(names)

    def test_get_template_logs(self, env_with_loader: Environment, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="tessera"):
            env_with_loader.get_template("greeting.html")
        assert any("Loaded template greeting.html" in record.message for record in caplog.records)

    def test_template_properties(self, env: Environment) -> None:
        template = env.parse("{a}{#insert x}{b}{/insert}", name="t")
        assert template.environment is env
        assert template.source == "{a}{#insert x}{b}{/insert}"
        assert template.filename is None
        assert [expr.text for expr in template.expressions] == ["a", "b"]
        assert template.inserts == ("x",)
        assert repr(template) == "<Template t>"

    def test_template_outliving_environment(self) -> None:
        template = Environment().parse("x")
        gc.collect()
        with pytest.raises(RuntimeError, match="garbage collected"):
            template.render()


class TestDictLoader:
    def test_get_source(self) -> None:
        loader = DictLoader({"a": "A"})
        assert loader.get_source("a") == ("A", None)
        assert loader.list_templates() == ["a"]

    def test_close_match_suggestion(self) -> None:
        loader = DictLoader({"layout.html": "x"})
        with pytest.raises(TemplateNotFoundError, match="Did you mean 'layout.html'"):
            loader.get_source("layuot.html")

    def test_available_listed(self) -> None:
        loader = DictLoader({"alpha": "x"})
        with pytest.raises(TemplateNotFoundError, match="Available: alpha"):
            loader.get_source("zzz")


class TestFileSystemLoader:
    @pytest.fixture
    def template_dir(self, tmp_path: Path) -> Path:
        (tmp_path / "base.html").write_text("<b>{#insert}{/insert}</b>", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("note", encoding="utf-8")
        (tmp_path / "mail").mkdir()
        (tmp_path / "mail" / "welcome.html").write_text("Welcome {name}", encoding="utf-8")
        return tmp_path

    def test_exact_name(self, template_dir: Path) -> None:
        source, filename = FileSystemLoader(template_dir).get_source("base.html")
        assert source == "<b>{#insert}{/insert}</b>"
        assert filename == str(template_dir / "base.html")

    def test_suffix_fallback(self, template_dir: Path) -> None:
        loader = FileSystemLoader(template_dir)
        assert loader.get_source("base")[0] == "<b>{#insert}{/insert}</b>"
        assert loader.get_source("notes")[0] == "note"
        assert loader.get_source("mail/welcome")[0] == "Welcome {name}"

    def test_custom_suffixes(self, template_dir: Path) -> None:
        loader = FileSystemLoader(template_dir, suffixes=(".txt",))
        assert loader.get_source("notes")[0] == "note"
        with pytest.raises(TemplateNotFoundError):
            loader.get_source("base")

    def test_search_path_order(self, tmp_path: Path) -> None:
        first, second = tmp_path / "first", tmp_path / "second"
        first.mkdir()
        second.mkdir()
        (first / "a.html").write_text("first", encoding="utf-8")
        (second / "a.html").write_text("second", encoding="utf-8")
        (second / "b.html").write_text("only second", encoding="utf-8")
        loader = FileSystemLoader([first, second])
        assert loader.get_source("a.html")[0] == "first"
        assert loader.get_source("b")[0] == "only second"

    def test_missing(self, template_dir: Path) -> None:
        with pytest.raises(TemplateNotFoundError, match="not found in"):
            FileSystemLoader(template_dir).get_source("nope")

    def test_missing_suggests_name_without_suffix(self, template_dir: Path) -> None:
        with pytest.raises(TemplateNotFoundError, match="Did you mean 'base'"):
            FileSystemLoader(template_dir).get_source("bsae")

    def test_list_templates(self, template_dir: Path) -> None:
        assert FileSystemLoader(template_dir).list_templates() == ["base.html", "mail/welcome.html", "notes.txt"]

    def test_include_through_environment(self, template_dir: Path) -> None:
        env = Environment(loader=FileSystemLoader(template_dir))
        result = env.parse("{#include base}{#include mail/welcome /}{/include}").render(name="Ann")
        assert result == "<b>Welcome Ann</b>"
        assert env.get_template("base").filename == str(template_dir / "base.html")


class TestChoiceLoader:
    def test_first_match_wins(self) -> None:
        loader = ChoiceLoader([DictLoader({"a": "custom"}), DictLoader({"a": "default", "b": "B"})])
        assert loader.get_source("a")[0] == "custom"
        assert loader.get_source("b")[0] == "B"
        assert loader.list_templates() == ["a", "b"]

    def test_missing_everywhere(self) -> None:
        with pytest.raises(TemplateNotFoundError, match="any of 2 loaders"):
            ChoiceLoader([DictLoader({}), DictLoader({})]).get_source("x")
