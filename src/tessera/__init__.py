"""Tessera: an asynchronous text-templating engine with pluggable sections.

Quickstart:
    >>> from tessera import Environment
    >>> env = Environment()
    >>> template = env.parse("Hello {name}!")
    >>> template.render(name="World")
    'Hello World!'

Composition:
    >>> env.put_template("base", "<h1>{#insert title}Untitled{/}</h1>{#insert}{/}")
    >>> env.parse("{#include base}{#title}Home{/title}<p>Hi</p>{/include}").render()
    '<h1>Home</h1><p>Hi</p>'

Architecture:
Template Source → Lexer → Parser (+ section factories) → node tree → Renderer

Pipeline stages:
1. **Lexer**: Tokenizes source; optionally removes standalone lines
2. **Parser**: Builds an immutable node tree driven by section factories
3. **Template**: Wraps the tree with ``render()`` / ``render_async()``
4. **Renderer**: Walks the tree asynchronously, resolving expressions
   through a priority-ordered resolver chain

Syntax:
- ``{item.name}`` output, ``{item.price + 1}`` infix calls, ``{name ?: 'x'}``
- ``{#for item in items}...{/for}``, ``{#if a && b}...{#else}...{/if}``
- ``{#include base}{#title}...{/title}{/include}`` and ``{#insert title}...{/}``
- ``{! comment !}``, ``{| raw text |}``, ``\\{`` literal brace

Concurrency:
Templates are immutable and may be rendered concurrently. Resolvers and data
values may be awaitable; ``Environment(parallel=True)`` renders sibling
nodes as concurrent tasks while keeping output in document order.

Undefined Values (``Environment(undefined=...)``):
``"empty"`` (default) renders unresolved expressions as an empty string,
``"token"`` renders ``undefined_token`` and ``"strict"`` raises
``UndefinedError``.

"""

from tessera.environment import (
    ChoiceLoader,
    DictLoader,
    Environment,
    ErrorCode,
    FileSystemLoader,
    IncludeDepthError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    UndefinedError,
)
from tessera._types import Origin, Token, TokenType
from tessera.parser import ParseError
from tessera.render_context import RenderContext
from tessera.resolvers import (
    NOT_FOUND,
    Entry,
    FunctionResolver,
    ResolutionContext,
    ResolverChain,
    ValueResolver,
)
from tessera.sections import (
    EndTag,
    SectionContext,
    SectionHelper,
    SectionHelperFactory,
)
from tessera.template import IterationScope, Template
from tessera.utils.html import Markup, html_escape

__version__ = "0.1.0"

__all__ = [
    "NOT_FOUND",
    "ChoiceLoader",
    "DictLoader",
    "EndTag",
    "Entry",
    "Environment",
    "ErrorCode",
    "FileSystemLoader",
    "FunctionResolver",
    "IncludeDepthError",
    "IterationScope",
    "Markup",
    "Origin",
    "ParseError",
    "RenderContext",
    "ResolutionContext",
    "ResolverChain",
    "SectionContext",
    "SectionHelper",
    "SectionHelperFactory",
    "Template",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "Token",
    "TokenType",
    "UndefinedError",
    "ValueResolver",
    "__version__",
    "html_escape",
]
