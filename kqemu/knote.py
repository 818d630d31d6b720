"""Knotes and the per-filter index of knotes."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from sortedcontainers import SortedDict

from .events import Kevent


@dataclass(eq=False)
class Knote:
    """A watched event and its state while it is being monitored.

    When the last reference is released the knote is marked dropped and,
    if it belongs to a queue, appended to that queue's ``tofree`` list.
    """

    kev: Kevent = field(default_factory=Kevent)
    kq: Any = None
    ref: int = 1
    deleted: bool = False
    dropped: bool = False
    active: bool = False
    state: dict = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def retain(self) -> int:
        """Take a reference; return the new count."""
        with self._lock:
            self.ref += 1
            return self.ref

    def release(self) -> bool:
        """Drop a reference; return True when it was the last one."""
        with self._lock:
            if self.ref <= 0:
                raise RuntimeError("knote released with no references held")
            self.ref -= 1
            last = self.ref == 0
        if last:
            self.dropped = True
            if self.kq is not None:
                self.kq.tofree.append(self)
        return last


class KnoteTree:
    """Knotes of one filter, ordered and unique by ident."""

    def __init__(self) -> None:
        self._items: SortedDict = SortedDict()
        self._lock = threading.RLock()

    def insert(self, kn: Knote) -> Knote | None:
        """Add ``kn``; if its ident is taken, return the knote already there."""
        with self._lock:
            existing = self._items.get(kn.kev.ident)
            if existing is not None:
                return existing
            self._items[kn.kev.ident] = kn
            return None

    def lookup(self, ident: int) -> Knote | None:
        with self._lock:
            return self._items.get(ident)

    def remove(self, kn: Knote) -> bool:
        """Remove ``kn`` if it is the knote stored under its ident."""
        with self._lock:
            if self._items.get(kn.kev.ident) is kn:
                del self._items[kn.kev.ident]
                return True
            return False

    def __iter__(self) -> Iterator[Knote]:
        with self._lock:
            snapshot = list(self._items.values())
        return iter(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)