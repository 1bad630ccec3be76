"""Tessera Template package: parsed templates ready for rendering."""

from tessera.template.core import Template
from tessera.template.loop_context import IterationScope

__all__ = ["IterationScope", "Template"]
