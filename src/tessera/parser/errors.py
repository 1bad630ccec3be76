"""Parser error handling for Tessera.

Provides ParseError, a TemplateSyntaxError that always carries the source
origin (template name, line, column) of the offending construct.
"""

from __future__ import annotations

from tessera._types import Origin
from tessera.environment.exceptions import ErrorCode, TemplateSyntaxError


class ParseError(TemplateSyntaxError):
    """Template compilation failure with source origin.

    Attributes:
        origin: Template name, line and column of the offending construct
    """

    def __init__(
        self,
        message: str,
        origin: Origin,
        *,
        source: str | None = None,
        code: ErrorCode | None = None,
        suggestion: str | None = None,
    ):
        self.origin = origin
        super().__init__(
            message,
            lineno=origin.lineno,
            name=origin.template_name,
            source=source,
            col_offset=origin.col_offset,
            code=code,
            suggestion=suggestion,
        )
