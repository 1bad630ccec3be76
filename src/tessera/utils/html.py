"""HTML escaping and safe-string marking."""

from __future__ import annotations

from typing import Any

_ESCAPE_TABLE = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#39;",
    }
)


class Markup(str):
    """A string that is already safe for output and must not be escaped again.

    Any object implementing ``__html__`` is treated the same way by the
    renderer, so values produced by other template libraries pass through.

    Example:
        >>> html_escape(Markup("<b>bold</b>"))
        '<b>bold</b>'
    """

    __slots__ = ()

    def __html__(self) -> str:
        return self

    def __repr__(self) -> str:
        return f"Markup({str.__repr__(self)})"


def html_escape(value: Any) -> str:
    """Escape a value for HTML output in a single ``str.translate()`` pass.

    Values implementing ``__html__`` are returned unescaped.
    """
    html = getattr(value, "__html__", None)
    if html is not None:
        return str(html())
    return str(value).translate(_ESCAPE_TABLE)
