import errno

import pytest

from kqemu.events import EventFilter, EventFlag, Kevent
from kqemu.filter import Filter, FilterTable
from kqemu.knote import Knote


class FailingFilter(Filter):
    def _setup(self):
        raise OSError(errno.EIO, "cannot start")


class TrackingFilter(Filter):
    def __init__(self):
        super().__init__()
        self.torn_down = False

    def _teardown(self):
        self.torn_down = True


def _knote(ident):
    return Knote(kev=Kevent(ident=ident, filter=EventFilter.READ))


def test_register_and_lookup():
    table = FilterTable(kq="owner")
    filt = Filter()
    table.register(EventFilter.READ, filt)
    assert table.lookup(EventFilter.READ) is filt
    assert filt.ident == EventFilter.READ
    assert filt.kqueue == "owner"


@pytest.mark.parametrize("ident", [0, 1, -11])
def test_register_out_of_range(ident):
    table = FilterTable()
    with pytest.raises(OSError) as info:
        table.register(ident, Filter())
    assert info.value.errno == errno.EINVAL


@pytest.mark.parametrize("ident", [0, 3, -11])
def test_lookup_invalid_id(ident):
    with pytest.raises(OSError) as info:
        FilterTable().lookup(ident)
    assert info.value.errno == errno.EINVAL


def test_lookup_unimplemented():
    table = FilterTable()
    table.register(EventFilter.AIO, None)
    with pytest.raises(OSError) as info:
        table.lookup(EventFilter.AIO)
    assert info.value.errno == errno.ENOSYS


def test_register_all_success():
    table = FilterTable()
    read, write = Filter(), Filter()
    table.register_all({EventFilter.READ: read, EventFilter.WRITE: write})
    assert list(table) == [read, write]


def test_register_all_failure_unregisters_everything():
    table = FilterTable()
    read = TrackingFilter()
    with pytest.raises(OSError) as info:
        table.register_all({EventFilter.READ: read, EventFilter.WRITE: FailingFilter()})
    assert info.value.errno == errno.EIO
    assert read.torn_down is True
    assert list(table) == []


def test_unregister_all_tears_down():
    table = FilterTable()
    filt = TrackingFilter()
    table.register(EventFilter.TIMER, filt)
    table.unregister_all()
    assert filt.torn_down is True
    with pytest.raises(OSError) as info:
        table.lookup(EventFilter.TIMER)
    assert info.value.errno == errno.ENOSYS


def test_delete_knote():
    filt = Filter()
    kn = _knote(3)
    filt.knotes.insert(kn)
    filt.delete_knote(kn)
    assert filt.knotes.lookup(3) is None
    assert kn.deleted is True
    assert kn.ref == 0


def test_double_delete_raises():
    filt = Filter()
    kn = _knote(3)
    kn.retain()
    filt.knotes.insert(kn)
    filt.delete_knote(kn)
    with pytest.raises(OSError) as info:
        filt.delete_knote(kn)
    assert info.value.errno == errno.ENOENT


def test_delete_leaves_other_knote_with_same_ident():
    filt = Filter()
    stored, stray = _knote(8), _knote(8)
    filt.knotes.insert(stored)
    filt.delete_knote(stray)
    assert filt.knotes.lookup(8) is stored


def test_disable_knote_sets_flag():
    filt = Filter()
    kn = _knote(1)
    filt.disable_knote(kn)
    assert (int(kn.kev.flags) & int(EventFlag.DISABLE)) == int(EventFlag.DISABLE)


def test_disable_knote_twice_raises():
    filt = Filter()
    kn = _knote(1)
    filt.disable_knote(kn)
    with pytest.raises(ValueError):
        filt.disable_knote(kn)


def test_enable_clears_disable():
    filt = Filter()
    kn = _knote(1)
    filt.disable_knote(kn)
    filt.enable(kn)
    assert (int(kn.kev.flags) & int(EventFlag.DISABLE)) == 0


def test_modify_copies_fflags_and_data():
    filt = Filter()
    kn = _knote(1)
    filt.modify(kn, Kevent(fflags=4, data=9))
    assert (kn.kev.fflags, kn.kev.data) == (4, 9)


def test_copyout_returns_copy_and_clears_active():
    filt = Filter()
    kn = _knote(1)
    kn.active = True
    ev = filt.copyout(kn)
    assert ev == kn.kev
    assert ev is not kn.kev
    assert kn.active is False