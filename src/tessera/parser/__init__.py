"""Tessera parser: tokens to an immutable node tree."""

from tessera.parser.core import Parser
from tessera.parser.errors import ParseError
from tessera.parser.expressions import parse_expression, parse_parameters, split_top_level

__all__ = ["ParseError", "Parser", "parse_expression", "parse_parameters", "split_top_level"]
