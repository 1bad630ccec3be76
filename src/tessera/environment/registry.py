"""Section helper registry for the Tessera environment."""

from __future__ import annotations

from collections.abc import ItemsView, Iterator, KeysView, Mapping, ValuesView
from typing import TYPE_CHECKING

from tessera.sections.base import SectionHelperFactory

if TYPE_CHECKING:
    from tessera.environment.core import Environment


class SectionRegistry:
    """Dict-like view of the section factories registered by tag name.

    Supports:
        - env.section_helpers['name'] = factory
        - env.section_helpers.update({'name': factory})
        - env.section_helpers.register(factory)  # under all its names
        - 'name' in env.section_helpers

    Every mutation installs a new mapping on the Environment. A parser holds
    on to the mapping it started with, so registering a section while a
    template is being parsed never changes how that template is parsed.
    """

    __slots__ = ("_attr", "_env")

    def __init__(self, env: Environment, attr: str = "_section_helpers"):
        self._env = env
        self._attr = attr

    @property
    def _factories(self) -> dict[str, SectionHelperFactory]:
        return getattr(self._env, self._attr)

    def _commit(self, changes: Mapping[str, SectionHelperFactory], *, remove: str | None = None) -> None:
        for name, factory in changes.items():
            if not isinstance(factory, SectionHelperFactory):
                raise TypeError(f"Section '{name}' must be a SectionHelperFactory, got {type(factory).__name__}")
        factories = {**self._factories, **changes}
        if remove is not None:
            del factories[remove]
        setattr(self._env, self._attr, factories)

    def __getitem__(self, name: str) -> SectionHelperFactory:
        return self._factories[name]

    def __setitem__(self, name: str, factory: SectionHelperFactory) -> None:
        self._commit({name: factory})

    def __delitem__(self, name: str) -> None:
        self._commit({}, remove=name)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(self._factories)

    def __len__(self) -> int:
        return len(self._factories)

    def get(self, name: str, default: SectionHelperFactory | None = None) -> SectionHelperFactory | None:
        return self._factories.get(name, default)

    def register(self, factory: SectionHelperFactory) -> None:
        """Register ``factory`` under every one of its names."""
        self._commit(dict.fromkeys(factory.names, factory))

    def update(self, mapping: Mapping[str, SectionHelperFactory]) -> None:
        self._commit(mapping)

    def copy(self) -> dict[str, SectionHelperFactory]:
        return dict(self._factories)

    def keys(self) -> KeysView[str]:
        return self._factories.keys()

    def values(self) -> ValuesView[SectionHelperFactory]:
        return self._factories.values()

    def items(self) -> ItemsView[str, SectionHelperFactory]:
        return self._factories.items()
