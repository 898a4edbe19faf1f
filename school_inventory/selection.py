"""Multi-select state shared by the list views."""
from __future__ import annotations

from typing import FrozenSet, Hashable, Iterable, Iterator, Set


class Selection:
    """Set of selected identifiers over the currently displayed collection.

    Identifiers are stable entity ids, never list positions.
    """

    def __init__(self, ids: Iterable[Hashable] = ()) -> None:
        self._ids: Set[Hashable] = set(ids)

    @property
    def ids(self) -> FrozenSet[Hashable]:
        return frozenset(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._ids

    def __iter__(self) -> Iterator[Hashable]:
        return iter(list(self._ids))

    def is_selected(self, identifier: Hashable) -> bool:
        return identifier in self._ids

    def toggle(self, identifier: Hashable) -> bool:
        """Flip membership of ``identifier`` and return the new state."""

        if identifier in self._ids:
            self._ids.discard(identifier)
            return False
        self._ids.add(identifier)
        return True

    def select_all(self, all_ids: Iterable[Hashable]) -> None:
        self._ids = set(all_ids)

    def clear(self) -> None:
        self._ids.clear()

    def is_all_selected(self, all_ids: Iterable[Hashable]) -> bool:
        displayed = list(all_ids)
        return len(self._ids) > 0 and len(self._ids) == len(displayed)

    def toggle_all(self, all_ids: Iterable[Hashable]) -> None:
        displayed = list(all_ids)
        if self.is_all_selected(displayed):
            self.clear()
        else:
            self.select_all(displayed)

    def discard_many(self, ids: Iterable[Hashable]) -> None:
        self._ids.difference_update(ids)

    def retain(self, valid_ids: Iterable[Hashable]) -> None:
        """Drop identifiers that are no longer part of the displayed collection."""

        self._ids.intersection_update(set(valid_ids))


__all__ = ["Selection"]
