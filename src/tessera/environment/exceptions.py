"""Exceptions for the Tessera template engine.

Exception Hierarchy:
TemplateError (base)
├── TemplateSyntaxError       # Parse-time error (see tessera.parser.errors.ParseError)
├── TemplateRuntimeError      # Render-time error with context
│   ├── TemplateNotFoundError # Include/user tag/get_template target missing
│   └── IncludeDepthError     # Include recursion limit exceeded
└── UndefinedError            # Unresolved expression under the strict policy

Parse errors are raised synchronously by ``Environment.parse()``. Render
errors surface from the awaited render call; a failed render never returns
partial output.

Example:
    ```
    T-RUN-001: Unresolved expression 'user.nmae'
      Location: page.html:3
       |
    >  3 | <h1>{user.nmae}</h1>
       |
      Hint: Use {user.nmae ?: 'fallback'} or {user.nmae??} for optional values
    ```

"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from difflib import get_close_matches
from enum import Enum
from typing import Any

from tessera.environment import terminal


class ErrorCode(Enum):
    """Searchable error codes.

    Format: T-{CATEGORY}-{NUMBER}
    Categories: LEX (lexer), PAR (parser), RUN (runtime), TPL (template loading)
    """

    # Lexer errors (T-LEX-xxx)
    UNTERMINATED_TAG = "T-LEX-001"
    UNTERMINATED_COMMENT = "T-LEX-002"

    # Parser errors (T-PAR-xxx)
    UNTERMINATED_SECTION = "T-PAR-001"
    UNKNOWN_SECTION = "T-PAR-002"
    INVALID_EXPRESSION = "T-PAR-003"
    UNEXPECTED_END_TAG = "T-PAR-004"
    AMBIGUOUS_BLOCK = "T-PAR-005"
    TAG_CONFLICT = "T-PAR-006"
    INVALID_PARAMETERS = "T-PAR-007"

    # Runtime errors (T-RUN-xxx)
    UNDEFINED_VALUE = "T-RUN-001"
    RESOLUTION_ERROR = "T-RUN-002"
    INCLUDE_DEPTH = "T-RUN-003"
    INVALID_VALUE = "T-RUN-004"
    RUNTIME_ERROR = "T-RUN-005"

    # Template loading errors (T-TPL-xxx)
    TEMPLATE_NOT_FOUND = "T-TPL-001"
    SYNTAX_ERROR = "T-TPL-002"

    @property
    def category(self) -> str:
        """Error category (e.g., 'runtime', 'lexer', 'parser', 'template')."""
        prefix = self.value.split("-")[1]
        return {
            "LEX": "lexer",
            "PAR": "parser",
            "RUN": "runtime",
            "TPL": "template",
        }.get(prefix, "unknown")


def format_template_stack(stack: tuple[tuple[str, int], ...] | list[tuple[str, int]] | None) -> str:
    """Format the include chain for error messages.

    Example:
        >>> print(format_template_stack([("page.html", 4), ("layout.html", 12)]))
        Template stack:
          • page.html:4
          • layout.html:12
    """
    if not stack:
        return ""
    lines = [terminal.dim_text("Template stack:")]
    for template_name, lineno in stack:
        lines.append(f"  • {terminal.location(f'{template_name}:{lineno}')}")
    return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source lines around an error line.

    Attributes:
        lines: Tuple of (line_number, line_content) pairs around the error.
        error_line: The 1-based line number where the error occurred.
        column: Optional column offset for a caret pointer.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int
    column: int | None = None

    def format(self) -> str:
        parts: list[str] = [terminal.dim_text("   |")]
        for lineno, content in self.lines:
            parts.append(terminal.format_source_line(lineno, content, is_error=lineno == self.error_line))
        if self.column is not None:
            parts.append(f"{terminal.dim_text('   |')} {' ' * self.column}^")
        parts.append(terminal.dim_text("   |"))
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    context_lines: int = 2,
    column: int | None = None,
) -> SourceSnippet:
    """Build a SourceSnippet with ``context_lines`` lines on each side."""
    all_lines = source.splitlines()
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line, column=column)


class TemplateError(Exception):
    """Base exception for all Tessera template errors.

    An error is reported as a headline followed by whatever context it
    carries: location, source snippet, include stack and a suggestion.
    Subclasses pick the headline label and may add lines of their own.

    Attributes:
        code: ErrorCode for searchable error identification.
        message: Error description without location or context
        template_name: Template the error occurred in
        lineno: 1-based line in that template
        suggestion: Actionable fix suggestion
        source_snippet: Source lines around ``lineno``
        template_stack: Include chain as (template_name, line) pairs
    """

    code: ErrorCode | None = None
    label = "Error"
    location_prefix = "Location:"
    suggestion_label = "Suggestion:"

    def __init__(
        self,
        message: str,
        *,
        template_name: str | None = None,
        lineno: int | None = None,
        suggestion: str | None = None,
        source_snippet: SourceSnippet | None = None,
        template_stack: Sequence[tuple[str, int]] | None = None,
        code: ErrorCode | None = None,
    ):
        self.message = message
        self.template_name = template_name
        self.lineno = lineno
        self.suggestion = suggestion
        self.source_snippet = source_snippet
        self.template_stack = list(template_stack or [])
        if code is not None:
            self.code = code
        super().__init__(self._format_message())

    @property
    def location(self) -> str:
        location = self.template_name or "<template>"
        if self.lineno:
            location += f":{self.lineno}"
        return location

    def _context(self) -> list[str]:
        parts = [f"  {self.location_prefix} {terminal.location(self.location)}"]
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        if self.template_stack:
            parts.append(format_template_stack(self.template_stack))
        return parts

    def _details(self, compact: bool = False) -> list[str]:
        return []

    def _format_message(self) -> str:
        parts = [f"{self.label}: {self.message}", *self._context(), *self._details()]
        if self.suggestion:
            parts.append(f"  {terminal.hint(self.suggestion_label)} {self.suggestion}")
        return "\n".join(parts)

    def format_compact(self) -> str:
        """Format the error as a short diagnostic led by its code."""
        code = f"{terminal.error_code(self.code.value)}: " if self.code else ""
        parts = [f"{code}{self.message}", *self._context(), *self._details(compact=True)]
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        return "\n".join(parts)


class TemplateSyntaxError(TemplateError):
    """Parse-time syntax error in template source.

    When ``source`` and ``lineno`` are provided the message shows the
    offending line, with a caret under ``col_offset`` when it is known.
    """

    code: ErrorCode | None = ErrorCode.SYNTAX_ERROR
    label = "Syntax Error"
    location_prefix = "-->"

    def __init__(
        self,
        message: str,
        lineno: int | None = None,
        name: str | None = None,
        filename: str | None = None,
        source: str | None = None,
        col_offset: int | None = None,
        *,
        code: ErrorCode | None = None,
        suggestion: str | None = None,
    ):
        self.name = name
        self.filename = filename
        self.source = source
        self.col_offset = col_offset
        snippet = None
        if source and lineno and lineno <= len(source.splitlines()):
            snippet = build_source_snippet(source, lineno, context_lines=0, column=col_offset)
        super().__init__(
            message,
            template_name=name,
            lineno=lineno,
            suggestion=suggestion,
            source_snippet=snippet,
            code=code,
        )

    @property
    def location(self) -> str:
        location = self.filename or self.name or "<template>"
        if self.lineno:
            location += f":{self.lineno}"
            if self.col_offset is not None:
                location += f":{self.col_offset}"
        return location


class TemplateRuntimeError(TemplateError):
    """Render-time error with debugging context.

    Output Format:
            ```
            Runtime Error: division by zero
              Location: invoice.html:15
              Expression: {total.mod(0)}
            ```

    Attributes:
        expression: Template expression that failed
        values: Dict of names → values for context

    """

    code: ErrorCode | None = ErrorCode.RUNTIME_ERROR
    label = "Runtime Error"

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        values: dict[str, Any] | None = None,
        **context: Any,
    ):
        self.expression = expression
        self.values = values or {}
        super().__init__(message, **context)

    def _details(self, compact: bool = False) -> list[str]:
        parts = []
        if self.expression:
            parts.append(f"  Expression: {self.expression}")
        if self.values and not compact:
            parts.append("  Values:")
            for name, value in self.values.items():
                value_repr = repr(value)
                if len(value_repr) > 80:
                    value_repr = value_repr[:77] + "..."
                parts.append(f"    {name} = {value_repr} ({type(value).__name__})")
        return parts


class TemplateNotFoundError(TemplateRuntimeError):
    """Template not found in the registry or by the configured loader.

    Raised by ``Environment.get_template()`` and, during rendering, by
    ``{#include}`` and user tags whose target template is missing.

    Example:
        >>> env.get_template("missing.html")
        TemplateNotFoundError: Template 'missing.html' not found
    """

    code: ErrorCode | None = ErrorCode.TEMPLATE_NOT_FOUND


class IncludeDepthError(TemplateRuntimeError):
    """Include nesting exceeded ``Environment.max_include_depth``.

    Almost always caused by a template including itself, directly or
    through a chain such as A → B → A.
    """

    code: ErrorCode | None = ErrorCode.INCLUDE_DEPTH


class UndefinedError(TemplateError):
    """An expression could not be resolved under the strict undefined policy.

    The default policy renders unresolved expressions as an empty string; an
    Environment created with ``undefined="strict"`` raises this instead.
    ``available_names`` feeds the "did you mean" suggestion.
    """

    code: ErrorCode | None = ErrorCode.UNDEFINED_VALUE
    label = "Undefined Value"
    suggestion_label = "Hint:"

    def __init__(
        self,
        expression: str,
        template: str | None = None,
        lineno: int | None = None,
        available_names: Iterable[str] | None = None,
        source_snippet: SourceSnippet | None = None,
        template_stack: Sequence[tuple[str, int]] | None = None,
    ):
        self.expression = expression
        message = f"Unresolved expression '{expression}'"
        matches = get_close_matches(self.name, list(available_names or ()), n=1, cutoff=0.6)
        if matches:
            message += f". Did you mean '{matches[0]}'?"
        super().__init__(
            message,
            template_name=template,
            lineno=lineno,
            suggestion=f"Use {{{expression} ?: 'fallback'}} or {{{expression}??}} for optional values",
            source_snippet=source_snippet,
            template_stack=template_stack,
        )

    @property
    def template(self) -> str:
        return self.template_name or "<template>"

    @property
    def name(self) -> str:
        """First identifier of the unresolved expression."""
        return self.expression.split(".", 1)[0].split("(", 1)[0].split("[", 1)[0]
