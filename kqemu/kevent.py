"""The event queue: applying changes and collecting triggered events."""

from __future__ import annotations

import errno
import threading
from collections.abc import Iterable, Mapping
from dataclasses import replace

from .events import EventFilter, EventFlag, Kevent
from .filter import Filter, FilterTable
from .knote import Knote

MAX_KEVENT = 512
"""The most events a single call to ``Kqueue.kevent`` returns from waiting."""

KEVENT_FLAG_IMMEDIATE = 0x001
"""Do not wait for events; behave as if the timeout were zero."""

KEVENT_FLAG_ERROR_EVENTS = 0x002
"""Only apply the changelist and report errors; never wait for events."""

_DEFAULT_FILTERS = (
    EventFilter.READ,
    EventFilter.WRITE,
    EventFilter.SIGNAL,
    EventFilter.VNODE,
    EventFilter.PROC,
    EventFilter.TIMER,
    EventFilter.USER,
    EventFilter.MACHPORT,
    EventFilter.FS,
)


class KeventError(OSError):
    """A change could not be applied or no event could be collected."""


def _flag(value: EventFlag) -> int:
    return int(value)


class Kqueue:
    """A queue of watched events.

    Changes are applied with ``apply``/``kevent``; events are made pending
    with ``post`` and collected with ``kevent``.
    """

    def __init__(self, filters: Mapping[int, Filter | None] | None = None) -> None:
        self.tofree: list[Knote] = []
        self._cond = threading.Condition(threading.RLock())
        self.filters = FilterTable(self)
        if filters is None:
            filters = {ident: Filter() for ident in _DEFAULT_FILTERS}
        self.filters.register_all(filters)

    # -- changes ---------------------------------------------------------

    def _lookup_filter(self, ident: int) -> Filter:
        try:
            return self.filters.lookup(ident)
        except OSError as exc:
            raise KeventError(exc.errno, exc.strerror) from exc

    def apply(self, change: Kevent) -> None:
        """Apply one change to the queue; raise KeventError on failure."""
        flags = int(change.flags)
        if flags & _flag(EventFlag.DISPATCH) and flags & _flag(EventFlag.ONESHOT):
            raise KeventError(errno.EINVAL, "EV_DISPATCH and EV_ONESHOT are mutually exclusive")

        with self._cond:
            filt = self._lookup_filter(change.filter)
            kn = filt.knotes.lookup(change.ident)

            if kn is None:
                if not flags & _flag(EventFlag.ADD):
                    raise KeventError(errno.ENOENT, f"no entry found for ident={change.ident}")
                kn = Knote(kev=replace(change), kq=self)
                kn.kev.flags = (
                    int(kn.kev.flags) & ~_flag(EventFlag.ENABLE) & ~_flag(EventFlag.VANISHED)
                ) | _flag(EventFlag.ADD)
                try:
                    filt.create(kn)
                except Exception as exc:
                    kn.release()
                    raise KeventError(errno.EBADF, "filter refused the knote") from exc
                filt.knotes.insert(kn)
                if flags & _flag(EventFlag.DISABLE):
                    kn.kev.flags = int(kn.kev.flags) | _flag(EventFlag.DISABLE)
                    filt.disable(kn)
                return

            if flags & _flag(EventFlag.DELETE):
                try:
                    filt.delete_knote(kn)
                except OSError as exc:
                    raise KeventError(exc.errno, exc.strerror) from exc
            elif flags & _flag(EventFlag.DISABLE):
                kn.kev.flags = int(kn.kev.flags) | _flag(EventFlag.DISABLE)
                filt.disable(kn)
            elif flags & _flag(EventFlag.ENABLE):
                kn.kev.flags = int(kn.kev.flags) & ~_flag(EventFlag.DISABLE)
                filt.enable(kn)
                if kn.active:
                    self._cond.notify_all()
            elif flags & _flag(EventFlag.ADD) or flags == 0 or flags & _flag(EventFlag.RECEIPT):
                kn.kev.udata = change.udata
                filt.modify(kn, change)

    def copyin(self, changes: Iterable[Kevent], nevents: int) -> list[Kevent]:
        """Apply changes; return error and receipt events, at most ``nevents``.

        A failure, or a receipt, for which there is no room left raises.
        """
        reports: list[Kevent] = []
        room = nevents
        for change in changes:
            error: KeventError | None = None
            try:
                self.apply(change)
            except KeventError as exc:
                error = exc
                status = exc.errno or 0
            else:
                if not int(change.flags) & _flag(EventFlag.RECEIPT):
                    continue
                status = 0

            if room <= 0:
                if error is not None:
                    raise error
                raise KeventError(errno.EINVAL, "no room to report receipt")
            reports.append(replace(change, data=status, flags=_flag(EventFlag.ERROR)))
            room -= 1
        return reports

    # -- events ----------------------------------------------------------

    def post(self, kev: Kevent) -> None:
        """Make the knote matching ``kev``'s filter and ident pending."""
        with self._cond:
            filt = self._lookup_filter(kev.filter)
            kn = filt.knotes.lookup(kev.ident)
            if kn is None:
                raise KeventError(errno.ENOENT, f"no entry found for ident={kev.ident}")
            kn.kev.fflags = int(kn.kev.fflags) | int(kev.fflags)
            kn.kev.data = kev.data
            kn.active = True
            self._cond.notify_all()

    def _ready(self) -> list[tuple[Filter, Knote]]:
        return [
            (filt, kn)
            for filt in self.filters
            for kn in filt.knotes
            if kn.active and not int(kn.kev.flags) & _flag(EventFlag.DISABLE)
        ]

    def _copyout(self, nevents: int) -> list[Kevent]:
        events: list[Kevent] = []
        for filt, kn in self._ready()[:nevents]:
            events.append(filt.copyout(kn))
            flags = int(kn.kev.flags)
            if flags & _flag(EventFlag.ONESHOT):
                filt.delete_knote(kn)
            elif flags & _flag(EventFlag.DISPATCH):
                filt.disable_knote(kn)
            if flags & _flag(EventFlag.CLEAR):
                kn.kev.data = 0
                kn.kev.fflags = 0
        return events

    def kevent(
        self,
        changelist: Iterable[Kevent] = (),
        nevents: int = 0,
        timeout: float | None = None,
        flags: int = 0,
    ) -> list[Kevent]:
        """Apply ``changelist`` and wait up to ``timeout`` seconds for events.

        ``timeout`` None waits until at least one event arrives. Returns the
        error/receipt reports followed by the events collected.
        """
        result: list[Kevent] = []
        changes = list(changelist)
        if changes:
            with self._cond:
                result = self.copyin(changes, nevents)
            nevents -= len(result)

        nevents = min(nevents, MAX_KEVENT)
        if flags & KEVENT_FLAG_ERROR_EVENTS or nevents <= 0:
            return result

        wait = 0 if flags & KEVENT_FLAG_IMMEDIATE else timeout
        with self._cond:
            self._cond.wait_for(lambda: bool(self._ready()), timeout=wait)
            result.extend(self._copyout(nevents))
            self.tofree.clear()
        return result