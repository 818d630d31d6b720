"""Event filters, flags, note constants and the kevent record."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class EventFilter(enum.IntEnum):
    """System event filters; each is a small negative number."""

    READ = -1
    WRITE = -2
    AIO = -3
    VNODE = -4
    PROC = -5
    SIGNAL = -6
    TIMER = -7
    NETDEV = -8
    FS = -9
    USER = -10
    MACHPORT = -8


SYSCOUNT = 10


class EventFlag(enum.IntFlag):
    """Actions and flags carried in ``Kevent.flags``."""

    ADD = 0x0001
    DELETE = 0x0002
    ENABLE = 0x0004
    DISABLE = 0x0008
    ONESHOT = 0x0010
    CLEAR = 0x0020
    RECEIPT = 0x0040
    DISPATCH = 0x0080
    UDATA_SPECIFIC = 0x0100
    VANISHED = 0x0200
    FLAG1 = 0x2000
    ERROR = 0x4000
    EOF = 0x8000


EV_SYSFLAGS = 0xF000

# EVFILT_USER
NOTE_FFNOP = 0x00000000
NOTE_FFAND = 0x40000000
NOTE_FFOR = 0x80000000
NOTE_FFCOPY = 0xC0000000
NOTE_FFCTRLMASK = 0xC0000000
NOTE_FFLAGSMASK = 0x00FFFFFF
NOTE_TRIGGER = 0x01000000

# EVFILT_VNODE
NOTE_DELETE = 0x0001
NOTE_WRITE = 0x0002
NOTE_EXTEND = 0x0004
NOTE_ATTRIB = 0x0008
NOTE_LINK = 0x0010
NOTE_RENAME = 0x0020

# EVFILT_PROC
NOTE_EXIT = 0x80000000
NOTE_FORK = 0x40000000
NOTE_EXEC = 0x20000000
NOTE_PCTRLMASK = 0xF0000000
NOTE_PDATAMASK = 0x000FFFFF
NOTE_TRACK = 0x00000001
NOTE_TRACKERR = 0x00000002
NOTE_CHILD = 0x00000004

# EVFILT_NETDEV
NOTE_LINKUP = 0x0001
NOTE_LINKDOWN = 0x0002
NOTE_LINKINV = 0x0004

# EVFILT_FS
VQ_NOTRESP = 0x0001
VQ_NEEDAUTH = 0x0002
VQ_LOWDISK = 0x0004
VQ_MOUNT = 0x0008
VQ_UNMOUNT = 0x0010
VQ_DEAD = 0x0020
VQ_ASSIST = 0x0040
VQ_NOTRESPLOCK = 0x0080

_FILTER_NAMES = (
    "EVFILT_READ",
    "EVFILT_WRITE",
    "EVFILT_AIO",
    "EVFILT_VNODE",
    "EVFILT_PROC",
    "EVFILT_SIGNAL",
    "EVFILT_TIMER",
    "EVFILT_MACHPORT",
    "EVFILT_FS",
    "EVFILT_USER",
)

_FLAG_NAMES = (
    ("EV_ADD", EventFlag.ADD),
    ("EV_ENABLE", EventFlag.ENABLE),
    ("EV_DISABLE", EventFlag.DISABLE),
    ("EV_DELETE", EventFlag.DELETE),
    ("EV_ONESHOT", EventFlag.ONESHOT),
    ("EV_CLEAR", EventFlag.CLEAR),
    ("EV_EOF", EventFlag.EOF),
    ("EV_ERROR", EventFlag.ERROR),
    ("EV_DISPATCH", EventFlag.DISPATCH),
    ("EV_RECEIPT", EventFlag.RECEIPT),
)

_VNODE_NOTES = (
    ("NOTE_DELETE", NOTE_DELETE),
    ("NOTE_WRITE", NOTE_WRITE),
    ("NOTE_EXTEND", NOTE_EXTEND),
    ("NOTE_ATTRIB", NOTE_ATTRIB),
    ("NOTE_LINK", NOTE_LINK),
    ("NOTE_RENAME", NOTE_RENAME),
)

_USER_NOTES = (
    ("NOTE_FFNOP", NOTE_FFNOP),
    ("NOTE_FFAND", NOTE_FFAND),
    ("NOTE_FFOR", NOTE_FFOR),
    ("NOTE_FFCOPY", NOTE_FFCOPY),
    ("NOTE_TRIGGER", NOTE_TRIGGER),
)


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def filter_name(filt: int) -> str:
    """Return the symbolic name of a filter, or ``EVFILT_INVALID``."""
    index = ~int(filt)
    if 0 <= index < SYSCOUNT:
        return _FILTER_NAMES[index]
    return "EVFILT_INVALID"


def flags_dump(flags: int) -> str:
    """Describe a flags word, e.g. ``flags=0x0001 (EV_ADD)``."""
    flags = int(flags) & 0xFFFF
    text = "flags=0x%04x (" % flags
    text += "".join(f"{name} " for name, bit in _FLAG_NAMES if flags & bit)
    return text[:-1] + ")"


def fflags_dump(filt: int, fflags: int) -> str:
    """Describe the filter-specific flags of an event on ``filt``."""
    fflags = int(fflags) & 0xFFFFFFFF
    text = "fflags=0x%04x (" % fflags
    if filt == EventFilter.VNODE:
        names = _VNODE_NOTES
    elif filt == EventFilter.USER:
        names = _USER_NOTES
    else:
        names = None
    if names is None:
        text += " "
    else:
        text += "".join(f"{name} " for name, bit in names if fflags & bit)
    return text[:-1] + ")"


@dataclass
class Kevent:
    """One event: what is watched, how, and what was seen."""

    ident: int = 0
    filter: int = 0
    flags: int = 0
    fflags: int = 0
    data: int = 0
    udata: int = 0
    ext: tuple[int, int] = (0, 0)

    def dump(self) -> str:
        """Return a one-line human-readable description."""
        return "{ ident=%d, filter=%d (%s), %s, %s, data=%d, udata=%x }" % (
            _int32(self.ident),
            self.filter,
            filter_name(self.filter),
            flags_dump(self.flags),
            fflags_dump(self.filter, self.fflags),
            _int32(self.data),
            int(self.udata) & 0xFFFFFFFFFFFFFFFF,
        )