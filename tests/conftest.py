"""Pytest configuration and fixtures for Tessera tests."""

import pytest

from tessera import DictLoader, Environment


@pytest.fixture
def env():
    """Create a basic Tessera Environment."""
    return Environment()


@pytest.fixture
def env_autoescape():
    """Create a Tessera Environment with autoescape enabled."""
    return Environment(autoescape=True)


@pytest.fixture
def env_standalone():
    """Create a Tessera Environment that removes standalone lines."""
    return Environment(remove_standalone_lines=True)


@pytest.fixture
def env_strict():
    """Create a Tessera Environment that raises on unresolved expressions."""
    return Environment(undefined="strict")


@pytest.fixture
def env_with_loader():
    """Create a Tessera Environment with DictLoader and test templates."""
    loader = DictLoader(
        {
            "base.html": (
                "<html>"
                "<head><title>{#insert title}Untitled{/insert}</title></head>"
                "<body>{#insert}{/insert}</body>"
                "</html>"
            ),
            "child.html": "{#include base.html}{#title}Child{/title}Hello World{/include}",
            "partial.html": "<p>Partial content</p>",
            "greeting.html": "Hello {name}",
            "tags/badge": "<span>{it}</span>",
        }
    )
    return Environment(loader=loader)


def _collapse(text: str) -> str:
    return " ".join(text.split())


def assert_template_equal(rendered: str, expected: str) -> None:
    """Compare rendered output with ``expected``, ignoring whitespace layout."""
    actual = _collapse(rendered)
    assert actual == _collapse(expected), f"Rendered {actual!r}, expected {_collapse(expected)!r}"


def assert_contains(rendered: str, *fragments: str) -> None:
    """Assert every fragment occurs in the rendered output."""
    missing = [fragment for fragment in fragments if fragment not in rendered]
    assert not missing, f"Missing {missing!r} in rendered output {rendered!r}"
