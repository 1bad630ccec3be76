"""Tessera Environment: configuration, section registry and template registry.

The Environment is the central configuration object. It holds the resolver
chain, the section helper factories (user tags included), the template
registry and the loader, and parses template source.

Configuration is copy-on-write: ``add_resolver()``, ``add_section_helper()``
and ``add_tag()`` replace the underlying chain or mapping instead of mutating
it, so templates being parsed and renders in flight keep a stable snapshot.

Example:
    ```python
    env = Environment(
        loader=FileSystemLoader("templates/"),
        autoescape=lambda name: name is not None and name.endswith(".html"),
        remove_standalone_lines=True,
        undefined="strict",
    )
    env.add_tag("card", "tags/card")
    page = env.get_template("page.html")
    html = page.render(user=current_user)
    ```

"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from tessera.environment.exceptions import TemplateNotFoundError
from tessera.environment.loaders import Loader
from tessera.environment.registry import SectionRegistry
from tessera.lexer import tokenize
from tessera.parser import Parser
from tessera.resolvers import ResolverChain, ValueResolver, default_resolvers
from tessera.sections import SectionHelperFactory, UserTagSectionFactory, default_section_factories
from tessera.template import Template

logger = logging.getLogger(__name__)

UNDEFINED_POLICIES = frozenset({"empty", "token", "strict"})


class Environment:
    """Central configuration and template registry.

    Args:
        loader: Where ``get_template()`` finds templates missing from the registry
        autoescape: HTML-escape output expressions; a bool, or a callable
            receiving the template name
        remove_standalone_lines: Drop lines holding only section tags and comments
        undefined: Policy for unresolved expressions: ``"empty"``, ``"token"``
            or ``"strict"``
        undefined_token: Output for unresolved expressions under ``"token"``
        globals: Variables visible to every template (outermost scope)
        max_include_depth: Maximum include/user tag nesting
        parallel: Render sibling nodes concurrently
        resolvers: Extra resolvers added to the built-in chain
        section_helpers: Extra section factories
        tags: User tags, tag name → template id

    Raises:
        ValueError: Invalid ``undefined`` policy or ``max_include_depth``
    """

    def __init__(
        self,
        loader: Loader | None = None,
        *,
        autoescape: bool | Callable[[str | None], bool] = False,
        remove_standalone_lines: bool = False,
        undefined: str = "empty",
        undefined_token: str = "NOT_FOUND",
        globals: Mapping[str, Any] | None = None,
        max_include_depth: int = 50,
        parallel: bool = False,
        resolvers: Iterable[ValueResolver] | None = None,
        section_helpers: Iterable[SectionHelperFactory] | None = None,
        tags: Mapping[str, str] | None = None,
    ):
        if undefined not in UNDEFINED_POLICIES:
            raise ValueError(f"undefined must be one of {sorted(UNDEFINED_POLICIES)}, got {undefined!r}")
        if max_include_depth < 1:
            raise ValueError(f"max_include_depth must be at least 1, got {max_include_depth}")

        self.loader = loader
        self.autoescape = autoescape
        self.remove_standalone_lines = remove_standalone_lines
        self.undefined = undefined
        self.undefined_token = undefined_token
        self.globals: dict[str, Any] = dict(globals or {})
        self.max_include_depth = max_include_depth
        self.parallel = parallel

        self._resolvers = ResolverChain([*default_resolvers(), *(resolvers or ())])
        self._section_helpers: dict[str, SectionHelperFactory] = {}
        self._templates: dict[str, Template] = {}

        for factory in default_section_factories():
            self.add_section_helper(factory)
        for factory in section_helpers or ():
            self.add_section_helper(factory)
        for name, template_id in (tags or {}).items():
            self.add_tag(name, template_id)

    # Configuration ---------------------------------------------------------

    @property
    def resolvers(self) -> ResolverChain:
        return self._resolvers

    @property
    def section_helpers(self) -> SectionRegistry:
        """Section factories by tag name, as a copy-on-write dict-like view."""
        return SectionRegistry(self, "_section_helpers")

    def add_resolver(self, resolver: ValueResolver) -> None:
        self._resolvers = self._resolvers.with_resolver(resolver)

    def add_section_helper(self, factory: SectionHelperFactory) -> None:
        """Register ``factory`` under each of its names, replacing earlier ones."""
        if not factory.names:
            raise ValueError(f"Section factory {factory!r} declares no names")
        self.section_helpers.register(factory)

    def add_tag(self, name: str, template_id: str | None = None) -> None:
        """Register a user tag rendering ``template_id`` (default: ``name``)."""
        self.add_section_helper(UserTagSectionFactory(name, template_id))

    def should_escape(self, name: str | None) -> bool:
        if callable(self.autoescape):
            return bool(self.autoescape(name))
        return bool(self.autoescape)

    # Parsing ---------------------------------------------------------------

    def parse(self, source: str, name: str | None = None, filename: str | None = None) -> Template:
        """Parse template source.

        Raises:
            TemplateSyntaxError: Malformed source (a ``ParseError`` with origin)
        """
        tokens = tokenize(source, name, standalone_lines=self.remove_standalone_lines)
        parser = Parser(
            tokens,
            name,
            source,
            self._section_helpers,
            escape=self.should_escape(name),
            environment=self,
        )
        return Template(self, parser.parse(), name, source, filename)

    def from_string(self, source: str, name: str | None = None) -> Template:
        return self.parse(source, name)

    # Registry --------------------------------------------------------------

    def put_template(self, name: str, template: Template | str) -> Template:
        """Register a template (or source to parse) under ``name``."""
        if isinstance(template, str):
            template = self.parse(template, name)
        templates = self._templates.copy()
        templates[name] = template
        self._templates = templates
        logger.debug(f"Registered template {name}")
        return template

    def get_template(self, name: str) -> Template:
        """Return the registered template, loading it through the loader if needed.

        Raises:
            TemplateNotFoundError: Neither the registry nor the loader has it
            TemplateSyntaxError: The loaded source does not parse
        """
        template = self._templates.get(name)
        if template is not None:
            return template
        if self.loader is None:
            raise TemplateNotFoundError(
                f"Template '{name}' not found",
                suggestion="Register it with put_template() or configure a loader",
            )
        source, filename = self.loader.get_source(name)
        template = self.parse(source, name, filename)
        logger.debug(f"Loaded template {name} from {filename or 'loader'}")
        templates = self._templates.copy()
        templates[name] = template
        self._templates = templates
        return template

    def has_template(self, name: str) -> bool:
        if name in self._templates:
            return True
        try:
            self.get_template(name)
        except TemplateNotFoundError:
            return False
        return True

    def remove_template(self, name: str) -> bool:
        """Drop ``name`` from the registry; True if it was registered."""
        if name not in self._templates:
            return False
        templates = self._templates.copy()
        del templates[name]
        self._templates = templates
        return True

    def list_templates(self) -> list[str]:
        names = set(self._templates)
        if self.loader is not None:
            names.update(self.loader.list_templates())
        return sorted(names)

    def __repr__(self) -> str:
        return (
            f"<Environment templates={len(self._templates)} sections={len(self._section_helpers)} "
            f"resolvers={len(self._resolvers)}>"
        )
