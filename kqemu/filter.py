"""Filters and the table that maps filter numbers to them."""

from __future__ import annotations

import errno
from collections.abc import Iterator, Mapping
from dataclasses import replace
from typing import Any

from .events import SYSCOUNT, EventFlag, Kevent, filter_name
from .knote import Knote, KnoteTree


class Filter:
    """A filter whose knotes fire when events are posted to them.

    Subclasses override the knote operations and the ``_setup`` and
    ``_teardown`` hooks to watch real event sources.
    """

    def __init__(self) -> None:
        self.ident: int | None = None
        self.kqueue: Any = None
        self.knotes = KnoteTree()

    def _setup(self) -> None:
        """Called when the filter is registered; raise to refuse."""

    def _teardown(self) -> None:
        """Called when the filter is unregistered."""

    def create(self, kn: Knote) -> None:
        kn.active = False

    def modify(self, kn: Knote, kev: Kevent) -> None:
        kn.kev.fflags = kev.fflags
        kn.kev.data = kev.data

    def delete(self, kn: Knote) -> None:
        kn.active = False

    def enable(self, kn: Knote) -> None:
        kn.kev.flags &= ~EventFlag.DISABLE

    def disable(self, kn: Knote) -> None:
        kn.kev.flags |= EventFlag.DISABLE

    def copyout(self, kn: Knote) -> Kevent:
        """Return the event to report for ``kn`` and clear its pending state."""
        kn.active = False
        return replace(kn.kev)

    def delete_knote(self, kn: Knote) -> None:
        """Remove ``kn`` from this filter and drop the filter's reference."""
        if kn.deleted:
            raise OSError(errno.ENOENT, "double deletion of knote")
        self.knotes.remove(kn)
        self.delete(kn)
        kn.deleted = True
        kn.release()

    def disable_knote(self, kn: Knote) -> None:
        if kn.kev.flags & EventFlag.DISABLE:
            raise ValueError("knote is already disabled")
        self.disable(kn)
        kn.kev.flags |= EventFlag.DISABLE


class FilterTable:
    """The filters of one queue, indexed by filter number."""

    def __init__(self, kq: Any = None) -> None:
        self.kq = kq
        self._slots: list[Filter | None] = [None] * SYSCOUNT

    def register(self, ident: int, filt: Filter | None) -> None:
        """Install ``filt`` for filter ``ident``; None marks it unimplemented."""
        index = -int(ident) - 1
        if not 0 <= index < SYSCOUNT:
            raise OSError(errno.EINVAL, f"invalid filter {ident}")
        self._slots[index] = None
        if filt is None:
            return
        filt.ident = ident
        filt.kqueue = self.kq
        filt.knotes = KnoteTree()
        filt._setup()
        self._slots[index] = filt

    def register_all(self, filters: Mapping[int, Filter | None]) -> None:
        """Register every filter; on any failure unregister all and raise."""
        errors: list[Exception] = []
        for ident, filt in filters.items():
            try:
                self.register(ident, filt)
            except Exception as exc:  # noqa: BLE001 - reported after cleanup
                errors.append(exc)
        if errors:
            self.unregister_all()
            raise errors[0]

    def unregister_all(self) -> None:
        for filt in self._slots:
            if filt is not None:
                filt._teardown()
        self._slots = [None] * SYSCOUNT

    def lookup(self, ident: int) -> Filter:
        index = ~int(ident)
        if not 0 <= index < SYSCOUNT:
            raise OSError(errno.EINVAL, f"invalid filter id {ident}")
        filt = self._slots[index]
        if filt is None:
            raise OSError(errno.ENOSYS, f"filter {filter_name(ident)} is not implemented")
        return filt

    def __iter__(self) -> Iterator[Filter]:
        return iter([f for f in self._slots if f is not None])