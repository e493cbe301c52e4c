import pytest

from sshdb.errors import EmptyUndoStack
from sshdb.model import Host
from sshdb.undo import Created, Deleted, UndoStack


def test_pop_empty_raises():
    stack = UndoStack()
    with pytest.raises(EmptyUndoStack):
        stack.pop()


def test_stack_is_lifo():
    stack = UndoStack()
    stack.push(Created("a"))
    stack.push(Deleted(Host(name="b", host="b"), 0))

    assert isinstance(stack.pop(), Deleted)
    assert stack.pop() == Created("a")
    assert not stack


def test_oldest_entry_is_dropped_when_full():
    stack = UndoStack(limit=3)
    for name in "abcd":
        stack.push(Created(name))

    assert len(stack) == 3
    assert [entry.name for entry in stack.entries()] == ["b", "c", "d"]


def test_invalid_limit():
    with pytest.raises(ValueError):
        UndoStack(limit=0)
