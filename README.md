# kqemu

`kqemu` models the kqueue/kevent event notification interface in Python.
It has two queues:

- `kqemu.kevent.Kqueue`, a queue built from kevents, knotes and per-type
  filters. Changes are applied from a change list, events are made pending
  with `Kqueue.post()`, and pending events are collected with
  `Kqueue.kevent()`.
- `kqemu.lite.LiteKqueue`, a smaller queue that watches read and write
  readiness of real file descriptors through `selectors`, and POSIX signals
  that are blocked and pending.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Modules

- `kqemu.events`: the `EventFilter` enumeration (`READ` = -1 down to
  `USER` = -10), the `EventFlag` flags (`ADD`, `DELETE`, `ENABLE`,
  `DISABLE`, `ONESHOT`, `CLEAR`, `RECEIPT`, `DISPATCH`, `ERROR`, `EOF`, ...),
  the `NOTE_*` and `VQ_*` constants, and the `Kevent` dataclass. The helpers
  `filter_name`, `flags_dump`, `fflags_dump` and `Kevent.dump()` render
  events for debugging, for example `flags_dump(1)` gives
  `"flags=0x0001 (EV_ADD)"` and an unknown filter is named `EVFILT_INVALID`.
- `kqemu.knote`: `Knote`, which holds one registered kevent, its pending
  state and a reference count (`retain()` / `release()`), and `KnoteTree`,
  which keeps knotes ordered and unique by ident.
- `kqemu.filter`: `Filter`, the base class for one event type, with the
  hooks `create`, `modify`, `delete`, `enable`, `disable` and `copyout`; and
  `FilterTable`, which maps filter numbers to registered filters. Looking up
  an out-of-range filter raises `OSError` with `EINVAL`, and one registered
  as `None` raises `OSError` with `ENOSYS`.
- `kqemu.kevent`: `Kqueue` and `KeventError` (a subclass of `OSError`), plus
  `MAX_KEVENT`, `KEVENT_FLAG_IMMEDIATE` and `KEVENT_FLAG_ERROR_EVENTS`.
- `kqemu.lite`: `LiteKqueue`, the filter numbers `EVFILT_READ` (0),
  `EVFILT_WRITE` (1), `EVFILT_VNODE` (2), `EVFILT_SIGNAL` (3) and
  `EVFILT_TIMER` (4), and `dispatch`.

## Using `Kqueue`

```python
from kqemu.events import EventFilter, EventFlag, Kevent, NOTE_TRIGGER
from kqemu.kevent import Kqueue

kq = Kqueue()
kq.kevent([Kevent(ident=7, filter=EventFilter.USER, flags=EventFlag.ADD)])

kq.post(Kevent(ident=7, filter=EventFilter.USER, fflags=NOTE_TRIGGER, data=3))
events = kq.kevent(nevents=8, timeout=0)
print(events[0].dump())
```

`Kqueue.kevent(changelist, nevents, timeout, flags)` applies the change
list, then waits up to `timeout` seconds (`None` waits until an event is
pending) and returns at most `nevents` events. A change carrying
`EV_RECEIPT`, or one that fails while there is room in `nevents`, is
reported in the result as a copy with `flags` set to `EV_ERROR` and `data`
holding the errno (0 for a receipt). A failure with no room left raises
`KeventError`. Changes fail for an unknown filter (`EINVAL`), for an ident
that was never added (`ENOENT`), and for `EV_DISPATCH` combined with
`EV_ONESHOT` (`EINVAL`).

Events are collected only from enabled knotes. After collection an
`EV_ONESHOT` knote is deleted, an `EV_DISPATCH` knote is disabled, and an
`EV_CLEAR` knote has its `data` and `fflags` reset.

By default every filter number except `EVFILT_AIO` and `EVFILT_NETDEV` is
registered with a plain `Filter`; pass a mapping of filter numbers to
`Filter` instances (or `None`) to `Kqueue(filters=...)` to choose others.

## Using `LiteKqueue`

`LiteKqueue` uses its own filter numbers from `kqemu.lite`, not those of
`EventFilter`. Each change must carry `EV_ADD` or `EV_DELETE`.

```python
import socket

from kqemu.events import EventFlag, Kevent
from kqemu.lite import EVFILT_WRITE, LiteKqueue

left, right = socket.socketpair()
with LiteKqueue() as kq:
    kq.event([Kevent(ident=right.fileno(), filter=EVFILT_WRITE, flags=EventFlag.ADD)])
    ready = kq.event(nevents=4, timeout=1.0)
left.close()
right.close()
```

`LiteKqueue.event()` returns at most `nevents` events (never more than
`EPEV_BUF_MAX`); an empty list means the wait timed out. A signal added with
`EVFILT_SIGNAL` is reported only if it is blocked in the waiting thread
(for example with `signal.pthread_sigmask`), so that it stays pending until
collected.

`dispatch(kq, callback, max_workers)` waits for events on a `LiteKqueue`
and calls `callback(kq, kevent)` for each on a thread pool. It runs until
the queue is closed and returns the number of events it dispatched.

## What it does not do

- `Kqueue` has no real event sources of its own: its filters fire only when
  `post()` is called, unless you supply `Filter` subclasses that watch
  something.
- `LiteKqueue` does not support the vnode or timer filters; adding them
  raises `KeventError` with `ENOSYS`. Signal watching needs a POSIX system.
- There is no command-line program.