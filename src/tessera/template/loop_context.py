"""Iteration metadata for Tessera ``{#for}`` and ``{#each}`` sections."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any


class IterationScope(Mapping[str, Any]):
    """Local scope of one loop iteration.

    Exposes the current element under the loop alias plus metadata keys
    prefixed with the alias. All metadata is computed on access.

    Keys (alias ``item``):
        item: Current element
        item_count: 1-based iteration count (1, 2, 3, ...)
        item_index: 0-based iteration count (0, 1, 2, ...)
        item_hasNext: True unless this is the final iteration
        item_isFirst: True on the first iteration
        item_isLast: True on the final iteration
        item_odd: True on odd counts (1st, 3rd, ...)
        item_even: True on even counts (2nd, 4th, ...)
        item_indexParity: ``"odd"`` or ``"even"``, by count

    Example:
            ```
            <ul>
            {#for fruit in fruits}
                <li class="{fruit_indexParity}">{fruit_count}/{fruits.size}: {fruit}</li>
            {/for}
            </ul>
            ```

    Output:
            ```html
            <ul>
                <li class="odd">1/3: Apple</li>
                <li class="even">2/3: Banana</li>
                <li class="odd">3/3: Cherry</li>
            </ul>
            ```

    """

    __slots__ = ("_alias", "_index", "_item", "_keys", "_length")

    _SUFFIXES = ("count", "index", "hasNext", "isFirst", "isLast", "odd", "even", "indexParity")

    def __init__(self, alias: str, item: Any, index: int, length: int) -> None:
        self._alias = alias
        self._item = item
        self._index = index
        self._length = length
        self._keys = (alias, *(f"{alias}_{suffix}" for suffix in self._SUFFIXES))

    @property
    def count(self) -> int:
        """1-based iteration count."""
        return self._index + 1

    @property
    def index(self) -> int:
        """0-based iteration count."""
        return self._index

    @property
    def has_next(self) -> bool:
        return self._index < self._length - 1

    @property
    def first(self) -> bool:
        """True if this is the first iteration."""
        return self._index == 0

    @property
    def last(self) -> bool:
        """True if this is the last iteration."""
        return self._index == self._length - 1

    @property
    def odd(self) -> bool:
        return self.count % 2 == 1

    def __getitem__(self, key: str) -> Any:
        if key == self._alias:
            return self._item
        prefix, sep, suffix = key.rpartition("_")
        if not sep or prefix != self._alias:
            raise KeyError(key)
        if suffix == "count":
            return self.count
        if suffix == "index":
            return self.index
        if suffix == "hasNext":
            return self.has_next
        if suffix == "isFirst":
            return self.first
        if suffix == "isLast":
            return self.last
        if suffix == "odd":
            return self.odd
        if suffix == "even":
            return not self.odd
        if suffix == "indexParity":
            return "odd" if self.odd else "even"
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __repr__(self) -> str:
        return f"<IterationScope {self._alias} {self.count}/{self._length}>"
