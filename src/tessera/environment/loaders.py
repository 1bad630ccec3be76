"""Template loaders for the Tessera environment.

The Environment asks its loader for the source of templates missing from
its registry. A loader implements ``get_source(name)``, returning
``(source, filename)`` or raising ``TemplateNotFoundError``, and
``list_templates()``.

Built-in Loaders:
- ``DictLoader``: in-memory mapping (tests, embedded templates)
- ``FileSystemLoader``: one or more directories, with suffix fallback
  so ``{#include base}`` finds ``base.html``
- ``ChoiceLoader``: several loaders in order (theme fallback)

Custom Loaders:
Any object with the same two methods works:
    ```python
    class PackageLoader:
        def __init__(self, package: str):
            self.root = importlib.resources.files(package) / "templates"

        def get_source(self, name: str) -> tuple[str, str | None]:
            resource = self.root / f"{name}.html"
            if not resource.is_file():
                raise TemplateNotFoundError(f"Template '{name}' not packaged")
            return resource.read_text("utf-8"), str(resource)

        def list_templates(self) -> list[str]:
            return sorted(r.name.removesuffix(".html") for r in self.root.iterdir())
    ```

"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from difflib import get_close_matches
from pathlib import Path
from typing import Protocol

from tessera.environment.exceptions import TemplateNotFoundError


def not_found(name: str, known: Sequence[str], where: str = "") -> TemplateNotFoundError:
    """Error for a missing template, suggesting a close name or listing known ones."""
    suggestion = None
    matches = get_close_matches(name, known, n=1, cutoff=0.6)
    if matches:
        suggestion = f"Did you mean '{matches[0]}'?"
    elif known:
        suggestion = f"Available: {', '.join(known[:10])}"
        if len(known) > 10:
            suggestion += f" ... ({len(known)} total)"
    return TemplateNotFoundError(f"Template '{name}' not found{where}", suggestion=suggestion)


class Loader(Protocol):
    def get_source(self, name: str) -> tuple[str, str | None]: ...

    def list_templates(self) -> list[str]: ...


class DictLoader:
    """Load templates from an in-memory mapping of name → source.

    Example:
            >>> env = Environment(loader=DictLoader({
            ...     "base": "<h1>{#insert title}Untitled{/}</h1>",
            ...     "page": "{#include base}{#title}Home{/title}{/include}",
            ... }))
            >>> env.get_template("page").render()
            '<h1>Home</h1>'

    """

    __slots__ = ("_mapping",)

    def __init__(self, mapping: Mapping[str, str]):
        self._mapping = mapping

    def get_source(self, name: str) -> tuple[str, None]:
        try:
            return self._mapping[name], None
        except KeyError:
            raise not_found(name, self.list_templates()) from None

    def list_templates(self) -> list[str]:
        return sorted(self._mapping)


class FileSystemLoader:
    """Load templates from filesystem directories.

    Directories are searched in order and the first match wins. A name
    without a match is retried with each of ``suffixes`` appended, so
    ``get_source("items")`` finds ``items.html``.

    Example:
            >>> loader = FileSystemLoader(["themes/custom/", "themes/default/"])
            >>> source, filename = loader.get_source("layout")
            >>> filename
            'themes/default/layout.html'

    """

    __slots__ = ("_encoding", "_paths", "_suffixes")

    def __init__(
        self,
        paths: str | Path | Sequence[str | Path],
        encoding: str = "utf-8",
        suffixes: Sequence[str] = ("html", "txt"),
    ):
        if isinstance(paths, str | Path):
            paths = [paths]
        self._paths = [Path(p) for p in paths]
        self._encoding = encoding
        self._suffixes = tuple(suffix.lstrip(".") for suffix in suffixes)

    def _candidates(self, name: str) -> list[str]:
        return [name, *(f"{name}.{suffix}" for suffix in self._suffixes)]

    def get_source(self, name: str) -> tuple[str, str]:
        for candidate in self._candidates(name):
            for base in self._paths:
                path = base / candidate
                if path.is_file():
                    return path.read_text(self._encoding), str(path)

        known = [self._strip_suffix(t) for t in self.list_templates()]
        raise not_found(name, known, f" in: {', '.join(str(p) for p in self._paths)}")

    def _strip_suffix(self, name: str) -> str:
        stem, dot, suffix = name.rpartition(".")
        return stem if dot and suffix in self._suffixes else name

    def list_templates(self) -> list[str]:
        templates: set[str] = set()
        for base in self._paths:
            if base.is_dir():
                for path in base.rglob("*"):
                    if path.is_file() and not path.name.startswith("."):
                        templates.add(path.relative_to(base).as_posix())
        return sorted(templates)


class ChoiceLoader:
    """Try several loaders in order, returning the first match.

    Example:
            >>> loader = ChoiceLoader([
            ...     DictLoader({"nav": "<nav>Custom</nav>"}),
            ...     FileSystemLoader("themes/default/"),
            ... ])

    """

    __slots__ = ("_loaders",)

    def __init__(self, loaders: Sequence[Loader]):
        self._loaders = list(loaders)

    def get_source(self, name: str) -> tuple[str, str | None]:
        for loader in self._loaders:
            try:
                return loader.get_source(name)
            except TemplateNotFoundError:
                continue
        raise not_found(name, self.list_templates(), f" in any of {len(self._loaders)} loaders")

    def list_templates(self) -> list[str]:
        templates: set[str] = set()
        for loader in self._loaders:
            templates.update(loader.list_templates())
        return sorted(templates)
