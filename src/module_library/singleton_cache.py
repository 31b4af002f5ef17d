"""Per-scope storage of memoised instances.

Scopes cloned for isolation share one cache. A scope forked by a reset gets an
overlay: it keeps its own entries, hides the reset names, and falls through to
its parent for everything else. The fall-through only accepts entries that
already existed when the overlay was made, so an overlay behaves exactly like
a copy of the parent with the reset names deleted. Storing a name again keeps
the earlier entry, so overlays made before that still see it.
"""

import itertools
import uuid
from collections.abc import Iterable
from typing import Any, Optional

from module_library.domain import SingletonEntry

__all__ = ["SingletonCache"]

_sequence = itertools.count(1)


class SingletonCache:
    """Mapping from module name (or external identifier) to :class:`SingletonEntry`."""

    def __init__(
        self,
        parent: Optional["SingletonCache"] = None,
        cleared: Iterable[str] = (),
    ):
        self._entries: dict[str, list[SingletonEntry]] = {}
        self._parent = parent
        self._cleared = frozenset(cleared)
        self._forked_at = next(_sequence) if parent else 0

    def overlay(self, cleared: Iterable[str]) -> "SingletonCache":
        """Return a cache that sees this one minus ``cleared``, and writes only to itself."""
        return SingletonCache(self, cleared)

    def store(self, name: str, instance: Any) -> SingletonEntry:
        entry = SingletonEntry(instance, uuid.uuid4(), next(_sequence))
        self._entries.setdefault(name, []).append(entry)
        return entry

    def entry(self, name: str) -> Optional[SingletonEntry]:
        return self._lookup(name, None)

    def _lookup(self, name: str, before: Optional[int]) -> Optional[SingletonEntry]:
        entry = _latest(self._entries.get(name, ()), before)
        if entry is not None:
            return entry
        if self._parent is None or name in self._cleared:
            return None
        limit = self._forked_at if before is None else min(before, self._forked_at)
        return self._parent._lookup(name, limit)

    def names(self) -> list[str]:
        return sorted(self._names(None), key=lambda name: self.entry(name).sequence)

    def _names(self, before: Optional[int]) -> set[str]:
        names = {
            name
            for name, entries in self._entries.items()
            if _latest(entries, before) is not None
        }
        if self._parent is not None:
            limit = self._forked_at if before is None else min(before, self._forked_at)
            names.update(
                name for name in self._parent._names(limit) if name not in self._cleared
            )
        return names

    def __contains__(self, name: str) -> bool:
        return self.entry(name) is not None

    def __getitem__(self, name: str) -> Any:
        entry = self.entry(name)
        if entry is None:
            raise KeyError(name)
        return entry.instance


def _latest(entries: Iterable[SingletonEntry], before: Optional[int]) -> Optional[SingletonEntry]:
    """Most recent entry created before ``before``; entries are in creation order."""
    for entry in reversed(list(entries)):
        if before is None or entry.sequence < before:
            return entry
    return None
