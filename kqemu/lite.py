"""A small event queue over the platform selector and POSIX signals.

Read and write readiness of descriptors is watched through ``selectors``;
signals are reported when they become pending on a blocked signal mask.
"""

from __future__ import annotations

import errno
import selectors
import signal
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

from .events import EventFlag, Kevent
from .kevent import KeventError

EVFILT_READ = 0
EVFILT_WRITE = 1
EVFILT_VNODE = 2
EVFILT_SIGNAL = 3
EVFILT_TIMER = 4
EVFILT_SYSCOUNT = 5

EPEV_BUF_MAX = 512
"""The most events a single call to ``LiteKqueue.event`` returns."""

_POLL_SLICE = 0.05
_DISPATCH_BATCH = 64

_SELECTOR_MASK = {
    EVFILT_READ: selectors.EVENT_READ,
    EVFILT_WRITE: selectors.EVENT_WRITE,
}


class LiteKqueue:
    """An event queue supporting the read, write and signal filters.

    Signals are only reported if they are blocked in the waiting thread,
    so that they stay pending until collected.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._selector = selectors.DefaultSelector()
        self._knotes: dict[int, dict[int, Kevent]] = {f: {} for f in range(EVFILT_SYSCOUNT)}
        self._sigmask: set[int] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the selector and forget every watched event."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._selector.close()
            for table in self._knotes.values():
                table.clear()
            self._sigmask.clear()

    def __enter__(self) -> LiteKqueue:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # -- changes ---------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise KeventError(errno.EBADF, "event queue is closed")

    def _sync_fd(self, fd: int) -> None:
        mask = 0
        for filt, bit in _SELECTOR_MASK.items():
            if fd in self._knotes[filt]:
                mask |= bit
        try:
            self._selector.get_key(fd)
        except KeyError:
            registered = False
        else:
            registered = True
        if mask == 0:
            if registered:
                self._selector.unregister(fd)
        elif registered:
            self._selector.modify(fd, mask)
        else:
            self._selector.register(fd, mask)

    def _add(self, change: Kevent) -> None:
        filt = int(change.filter)
        ident = int(change.ident)
        if filt in _SELECTOR_MASK:
            table = self._knotes[filt]
            previous = table.get(ident)
            table[ident] = replace(change)
            try:
                self._sync_fd(ident)
            except (ValueError, OSError, KeyError) as exc:
                if previous is None:
                    del table[ident]
                else:
                    table[ident] = previous
                raise KeventError(errno.EBADF, f"cannot watch descriptor {ident}") from exc
        elif filt == EVFILT_SIGNAL:
            if ident not in signal.valid_signals():
                raise KeventError(errno.EINVAL, f"invalid signal {ident}")
            self._knotes[filt][ident] = replace(change)
            self._sigmask.add(ident)
        elif filt in (EVFILT_VNODE, EVFILT_TIMER):
            raise KeventError(errno.ENOSYS, f"filter {filt} is not supported")
        else:
            raise KeventError(errno.EINVAL, f"invalid filter {filt}")

    def _delete(self, change: Kevent) -> None:
        filt = int(change.filter)
        ident = int(change.ident)
        if not 0 <= filt < EVFILT_SYSCOUNT:
            raise KeventError(errno.EINVAL, f"invalid filter {filt}")
        table = self._knotes[filt]
        if ident not in table:
            raise KeventError(errno.ENOENT, f"no entry found for ident={ident}")
        del table[ident]
        if filt in _SELECTOR_MASK:
            try:
                self._sync_fd(ident)
            except (ValueError, OSError, KeyError) as exc:
                raise KeventError(errno.EBADF, f"cannot unwatch descriptor {ident}") from exc
        elif filt == EVFILT_SIGNAL:
            self._sigmask.discard(ident)

    def _apply(self, change: Kevent) -> None:
        flags = int(change.flags)
        if flags & int(EventFlag.ADD):
            self._add(change)
        elif flags & int(EventFlag.DELETE):
            self._delete(change)
        else:
            raise KeventError(errno.EINVAL, "change must carry EV_ADD or EV_DELETE")

    # -- events ----------------------------------------------------------

    def _pending_signals(self, limit: int) -> list[Kevent]:
        events: list[Kevent] = []
        if not self._sigmask:
            return events
        pending = signal.sigpending() & self._sigmask
        for signo in sorted(pending):
            if len(events) >= limit:
                break
            signal.sigwait({signo})
            kev = self._knotes[EVFILT_SIGNAL].get(int(signo))
            if kev is not None:
                events.append(replace(kev))
        return events

    def _fd_events(self, ready, limit: int) -> list[Kevent]:
        events: list[Kevent] = []
        for key, mask in ready:
            for filt, bit in _SELECTOR_MASK.items():
                if len(events) >= limit:
                    return events
                if mask & bit:
                    kev = self._knotes[filt].get(key.fd)
                    if kev is not None:
                        events.append(replace(kev))
        return events

    def event(
        self,
        changelist: Iterable[Kevent] = (),
        nevents: int = 0,
        timeout: float | None = None,
    ) -> list[Kevent]:
        """Apply ``changelist`` then wait up to ``timeout`` seconds for events.

        ``timeout`` None waits until an event arrives. At most ``nevents``
        (and never more than ``EPEV_BUF_MAX``) events are returned; an empty
        list means the wait timed out.
        """
        with self._lock:
            self._check_open()
            for change in changelist:
                self._apply(change)

        limit = min(int(nevents), EPEV_BUF_MAX)
        if limit <= 0:
            return []

        deadline = None if timeout is None else time.monotonic() + max(0.0, timeout)
        while True:
            with self._lock:
                self._check_open()
                events = self._pending_signals(limit)
            remaining = limit - len(events)
            if remaining > 0:
                if events:
                    wait = 0.0
                elif deadline is None:
                    wait = _POLL_SLICE
                else:
                    wait = max(0.0, min(_POLL_SLICE, deadline - time.monotonic()))
                try:
                    ready = self._selector.select(wait)
                except (ValueError, OSError) as exc:
                    if self._closed:
                        raise KeventError(errno.EBADF, "event queue is closed") from exc
                    raise
                with self._lock:
                    self._check_open()
                    events.extend(self._fd_events(ready, remaining))
            if events:
                return events
            if deadline is not None and time.monotonic() >= deadline:
                return []


def dispatch(
    kq: LiteKqueue,
    callback: Callable[[LiteKqueue, Kevent], object],
    max_workers: int | None = None,
) -> int:
    """Wait for events on ``kq`` and hand each to ``callback`` on a thread pool.

    Runs until ``kq`` is closed; returns the number of events dispatched.
    """
    count = 0
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        while True:
            try:
                events = kq.event(nevents=_DISPATCH_BATCH)
            except KeventError as exc:
                if exc.errno == errno.EBADF and kq.closed:
                    return count
                raise
            for kev in events:
                pool.submit(callback, kq, kev)
                count += 1