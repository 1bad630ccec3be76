"""Utility helpers for Tessera."""

from tessera.utils.html import Markup, html_escape

__all__ = ["Markup", "html_escape"]
