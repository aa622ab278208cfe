from __future__ import annotations

import threading
from typing import FrozenSet, Iterable, Iterator


class ConnectedDeviceSet:
    """
    Device identifiers believed to be attached.

    Mutations swap in a new frozenset under a lock; readers take the current
    snapshot without locking, so iteration never observes a half-applied update.
    Identifiers are stored as given; lookups against queue names ignore case.
    """

    def __init__(self, initial: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._snapshot: FrozenSet[str] = frozenset(initial)

    def snapshot(self) -> FrozenSet[str]:
        return self._snapshot

    def add(self, identifier: str) -> bool:
        with self._lock:
            if identifier in self._snapshot:
                return False
            self._snapshot = self._snapshot | {identifier}
            return True

    def discard(self, identifier: str) -> bool:
        with self._lock:
            if identifier not in self._snapshot:
                return False
            self._snapshot = frozenset(d for d in self._snapshot if d != identifier)
            return True

    def replace(self, identifiers: Iterable[str]) -> None:
        new = frozenset(identifiers)
        with self._lock:
            self._snapshot = new

    def contains_ignore_case(self, name: str) -> bool:
        folded = name.casefold()
        return any(d.casefold() == folded for d in self._snapshot)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._snapshot

    def __iter__(self) -> Iterator[str]:
        return iter(self._snapshot)

    def __len__(self) -> int:
        return len(self._snapshot)

    def __repr__(self) -> str:
        return f"ConnectedDeviceSet({sorted(self._snapshot)!r})"


__all__ = ["ConnectedDeviceSet"]
