"""Tessera parser: token stream to node tree.

The parser keeps an explicit stack of open section frames. The bottom frame
is the template root; every ``{#name}`` tag either opens a nested section
(``name`` is a registered section helper), opens a sub-block of an open
section whose factory recognizes ``name`` as a block label, or fails.

End tags:
    ``{/label}`` or ``{/}`` inside a sub-block closes the sub-block and the
    following content flows back into the section's main block.
    ``{/name}`` or ``{/}`` closes the section. Sections with an optional end
    tag are closed implicitly by an enclosing end tag or the end of input.

"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from difflib import get_close_matches
from typing import TYPE_CHECKING

from tessera._types import Origin, Token, TokenType
from tessera.environment.exceptions import ErrorCode
from tessera.nodes import MAIN_BLOCK, Block, Expr, Output, Parameters, Section, Template, Text
from tessera.parser.errors import ParseError
from tessera.parser.expressions import parse_expression, parse_parameters
from tessera.sections.base import BlockInfo, EndTag, SectionHelperFactory, SectionInfo

if TYPE_CHECKING:
    from tessera.environment.core import Environment

logger = logging.getLogger(__name__)

_TEXT_TOKENS = frozenset({TokenType.TEXT, TokenType.RAW_TEXT, TokenType.LINE_SEPARATOR})


@dataclass(slots=True)
class _Frame:
    """An open section on the parser stack; ``factory`` is None for the root."""

    name: str
    factory: SectionHelperFactory | None
    origin: Origin
    blocks: list[BlockInfo] = field(default_factory=list)
    current: BlockInfo | None = None

    @property
    def is_root(self) -> bool:
        return self.factory is None


class Parser:
    """Recursive-descent parser over a stack of section frames.

    The parser doubles as the parse context handed to section factories:
    ``parse_expression``, ``error``, ``sections``, ``template_name``,
    ``source`` and ``environment`` are part of that contract.

    Example:
            >>> tokens = Lexer("Hello {name}!").tokenize()
            >>> Parser(tokens, "greeting", "Hello {name}!", {}).parse()
        Template(lineno=1, col_offset=0, name='greeting', body=(...))

    """

    __slots__ = ("_escape", "_name", "_sections", "_source", "_stack", "_tokens", "environment")

    def __init__(
        self,
        tokens: list[Token],
        name: str | None,
        source: str | None,
        sections: Mapping[str, SectionHelperFactory],
        *,
        escape: bool = False,
        environment: Environment | None = None,
    ):
        self._tokens = tokens
        self._name = name
        self._source = source
        self._sections = sections
        self._escape = escape
        self._stack: list[_Frame] = []
        self.environment = environment

    @property
    def template_name(self) -> str | None:
        return self._name

    @property
    def source(self) -> str | None:
        return self._source

    @property
    def sections(self) -> Mapping[str, SectionHelperFactory]:
        """Registered section factories by tag name (user tags included)."""
        return self._sections

    def parse(self) -> Template:
        origin = Origin(self._name, 1, 0)
        root = _Frame("", None, origin)
        root.blocks.append(BlockInfo(MAIN_BLOCK, Parameters(), origin, self))
        root.current = root.blocks[0]
        self._stack = [root]

        for token in self._tokens:
            if token.type in _TEXT_TOKENS:
                self._add_text(token)
            elif token.type is TokenType.EXPRESSION:
                self._add_output(token)
            elif token.type is TokenType.SECTION_START:
                self._open(token)
            elif token.type is TokenType.SECTION_END:
                self._close(token)
            elif token.type is TokenType.EOF:
                self._finish()

        body = tuple(root.blocks[0].body)
        logger.debug(f"Parsed template {self._name or '<template>'}: {len(body)} top-level nodes")
        return Template(1, 0, self._name, body)

    # Parse context ---------------------------------------------------------

    def origin(self, token: Token) -> Origin:
        return Origin(self._name, token.lineno, token.col_offset)

    def parse_expression(self, text: str, origin: Origin) -> Expr:
        return parse_expression(text, origin, self._source)

    def error(
        self,
        message: str,
        origin: Origin,
        *,
        code: ErrorCode | None = None,
        suggestion: str | None = None,
    ) -> ParseError:
        return ParseError(message, origin, source=self._source, code=code, suggestion=suggestion)

    # Tokens ----------------------------------------------------------------

    def _body(self) -> list:
        current = self._stack[-1].current
        assert current is not None
        return current.body

    def _add_text(self, token: Token) -> None:
        body = self._body()
        if body and isinstance(body[-1], Text):
            last = body[-1]
            body[-1] = Text(last.lineno, last.col_offset, last.value + token.value)
        else:
            body.append(Text(token.lineno, token.col_offset, token.value))

    def _add_output(self, token: Token) -> None:
        if not token.value:
            raise self.error("Empty expression", self.origin(token), code=ErrorCode.INVALID_EXPRESSION)
        expr = self.parse_expression(token.value, self.origin(token))
        self._body().append(Output(token.lineno, token.col_offset, expr, self._escape))

    def _open(self, token: Token) -> None:
        origin = self.origin(token)
        if not token.value:
            raise self.error(
                "Missing section name",
                origin,
                code=ErrorCode.UNKNOWN_SECTION,
                suggestion="Section tags look like {#if condition} or {#include base /}",
            )
        name, *rest = token.value.split(None, 1)
        params = parse_parameters(rest[0] if rest else "", origin, self._source)

        factory = self._sections.get(name)
        if factory is not None:
            self._open_section(name, factory, params, origin, token.self_closing)
            return

        index = self._find_block_owner(name)
        if index is None:
            raise self._unknown_section(name, origin)
        while len(self._stack) - 1 > index:
            self._close_section()
        self._open_block(name, params, origin, token.self_closing)

    def _open_section(
        self,
        name: str,
        factory: SectionHelperFactory,
        params: Parameters,
        origin: Origin,
        self_closing: bool,
    ) -> None:
        frame = _Frame(name, factory, origin)
        main = BlockInfo(MAIN_BLOCK, params, origin, self)
        frame.blocks.append(main)
        frame.current = main
        factory.initialize_block(main, self)
        self._stack.append(frame)
        if self_closing or factory.end_tag is EndTag.NEVER:
            self._close_section()

    def _find_block_owner(self, label: str) -> int | None:
        """Index of the innermost frame that accepts ``label`` as a sub-block."""
        for index in range(len(self._stack) - 1, 0, -1):
            frame = self._stack[index]
            assert frame.factory is not None
            if frame.factory.is_block_label(label):
                return index
            if frame.factory.end_tag is not EndTag.OPTIONAL:
                return None
        return None

    def _open_block(self, label: str, params: Parameters, origin: Origin, self_closing: bool) -> None:
        frame = self._stack[-1]
        assert frame.factory is not None
        block = BlockInfo(label, params, origin, self)
        frame.factory.initialize_block(block, self)
        frame.blocks.append(block)
        frame.current = frame.blocks[0] if self_closing else block

    def _unknown_section(self, name: str, origin: Origin) -> ParseError:
        matches = get_close_matches(name, list(self._sections), n=1, cutoff=0.6)
        suggestion = f"Did you mean {{#{matches[0]}}}?" if matches else None
        top = self._stack[-1]
        if not top.is_root and not matches:
            suggestion = f"{{#{top.name}}} does not accept a {{#{name}}} block"
        return self.error(
            f"No section helper found for {{#{name}}}",
            origin,
            code=ErrorCode.UNKNOWN_SECTION,
            suggestion=suggestion,
        )

    def _close(self, token: Token) -> None:
        name = token.value
        while True:
            frame = self._stack[-1]
            if frame.is_root:
                raise self.error(
                    f"Unexpected end tag {{/{name}}}: no section is open",
                    self.origin(token),
                    code=ErrorCode.UNEXPECTED_END_TAG,
                )
            assert frame.factory is not None and frame.current is not None
            current = frame.current
            if not current.is_main and name in ("", current.label):
                frame.current = frame.blocks[0]
                return
            if name in ("", frame.name):
                self._close_section()
                return
            if frame.factory.end_tag is EndTag.OPTIONAL:
                self._close_section()
                continue
            raise self.error(
                f"Section end tag {{/{name}}} does not match the open section {{#{frame.name}}} "
                f"defined on line {frame.origin.lineno}",
                self.origin(token),
                code=ErrorCode.UNEXPECTED_END_TAG,
                suggestion=f"Close the section with {{/{frame.name}}} or {{/}}",
            )

    def _close_section(self) -> None:
        frame = self._stack.pop()
        assert frame.factory is not None
        blocks = tuple(block.build() for block in frame.blocks)
        if frame.factory.unique_block_labels:
            self._check_unique_labels(frame, blocks)
        info = SectionInfo(frame.name, frame.origin, blocks)
        helper = frame.factory.create_helper(info, self)
        section = Section(frame.origin.lineno, frame.origin.col_offset, frame.name, helper, blocks)
        self._body().append(section)

    def _check_unique_labels(self, frame: _Frame, blocks: tuple[Block, ...]) -> None:
        seen: set[str] = set()
        for block in blocks[1:]:
            if block.label in seen:
                raise self.error(
                    f"Multiple blocks define the content for the {{#insert}} section of name "
                    f"[{block.label}] on line {frame.origin.lineno}",
                    Origin(self._name, block.lineno, block.col_offset),
                    code=ErrorCode.AMBIGUOUS_BLOCK,
                )
            seen.add(block.label)

    def _finish(self) -> None:
        while len(self._stack) > 1:
            frame = self._stack[-1]
            assert frame.factory is not None
            if frame.factory.end_tag is not EndTag.OPTIONAL:
                raise self.error(
                    f"Unterminated section {{#{frame.name}}} defined on line {frame.origin.lineno}",
                    frame.origin,
                    code=ErrorCode.UNTERMINATED_SECTION,
                    suggestion=f"Add {{/{frame.name}}} to close the section",
                )
            self._close_section()
