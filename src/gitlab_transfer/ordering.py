"""Total orderings over the transferred entities.

Milestones and issues are ordered by IID, notes by ID, all ascending. Every
collection in the entity model is a ``SortedCollection`` built on one of
these keys: iteration is deterministic (which keeps staged files diffable)
and presence lookups during reconciliation are binary searches.

A tie between two members means two entities claim the same IID/ID. That is
a data-integrity violation and is rejected, never deduplicated.
"""

from __future__ import annotations

import bisect
from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, Generic, TypeVar

from .exceptions import DuplicateKeyError

if TYPE_CHECKING:
    from .models import Issue, Milestone, Note

T = TypeVar("T")


def milestone_key(milestone: Milestone) -> int:
    return milestone.iid


def issue_key(issue: Issue) -> int:
    return issue.iid


def note_key(note: Note) -> int:
    return note.id


class SortedCollection(Generic[T]):
    """Entities kept sorted by a unique integer key."""

    def __init__(self, key: Callable[[T], int], items: Iterable[T] = (), *, kind: str = "item") -> None:
        self._key: Callable[[T], int] = key
        self.kind: str = kind
        self._keys: list[int] = []
        self._items: list[T] = []
        self.extend(items)

    def add(self, item: T) -> None:
        """Insert an item at its sorted position.

        Raises:
            DuplicateKeyError: If an item with the same key is already present
        """
        key = self._key(item)
        index = bisect.bisect_left(self._keys, key)
        if index < len(self._keys) and self._keys[index] == key:
            raise DuplicateKeyError(self.kind, key)
        self._keys.insert(index, key)
        self._items.insert(index, item)

    def extend(self, items: Iterable[T]) -> None:
        for item in items:
            self.add(item)

    def find(self, key: int) -> T | None:
        """Binary search for the item with the given key."""
        index = bisect.bisect_left(self._keys, key)
        if index < len(self._keys) and self._keys[index] == key:
            return self._items[index]
        return None

    def keys(self) -> list[int]:
        return list(self._keys)

    def clear(self) -> None:
        self._keys.clear()
        self._items.clear()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, int) and self.find(key) is not None

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __repr__(self) -> str:
        return f"SortedCollection(kind={self.kind!r}, keys={self._keys!r})"


def milestone_collection(items: Iterable[Milestone] = ()) -> SortedCollection[Milestone]:
    return SortedCollection(milestone_key, items, kind="milestone")


def issue_collection(items: Iterable[Issue] = ()) -> SortedCollection[Issue]:
    return SortedCollection(issue_key, items, kind="issue")


def note_collection(items: Iterable[Note] = ()) -> SortedCollection[Note]:
    return SortedCollection(note_key, items, kind="note")
