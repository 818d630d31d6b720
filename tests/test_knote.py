import pytest

from kqemu.events import EventFilter, Kevent
from kqemu.knote import Knote, KnoteTree


class _Queue:
    def __init__(self):
        self.tofree = []


def _knote(ident):
    return Knote(kev=Kevent(ident=ident, filter=EventFilter.READ))


def test_new_knote_holds_one_reference():
    assert _knote(1).ref == 1


def test_retain_then_release():
    kn = _knote(1)
    assert kn.retain() == 2
    assert kn.release() is False
    assert kn.ref == 1
    assert kn.dropped is False


def test_release_last_reference_queues_for_free():
    queue = _Queue()
    kn = _knote(1)
    kn.kq = queue
    assert kn.release() is True
    assert queue.tofree == [kn]
    assert kn.dropped is True


def test_release_without_reference_raises():
    kn = _knote(1)
    kn.release()
    with pytest.raises(RuntimeError):
        kn.release()


def test_tree_insert_and_lookup():
    tree = KnoteTree()
    kn = _knote(4)
    assert tree.insert(kn) is None
    assert tree.lookup(4) is kn
    assert tree.lookup(5) is None
    assert len(tree) == 1


def test_tree_duplicate_returns_existing():
    tree = KnoteTree()
    first, second = _knote(9), _knote(9)
    tree.insert(first)
    assert tree.insert(second) is first
    assert tree.lookup(9) is first
    assert len(tree) == 1


def test_tree_remove_only_same_object():
    tree = KnoteTree()
    first, second = _knote(2), _knote(2)
    tree.insert(first)
    assert tree.remove(second) is False
    assert tree.lookup(2) is first
    assert tree.remove(first) is True
    assert tree.lookup(2) is None
    assert len(tree) == 0


def test_tree_iterates_in_ident_order():
    tree = KnoteTree()
    for ident in (5, 1, 3):
        tree.insert(_knote(ident))
    assert [kn.kev.ident for kn in tree] == [1, 3, 5]