"""
Reversible deltas over the host registry.

Each mutation of :class:`~sshdb.registry.HostRegistry` records one entry
describing how to take it back. Entries only carry what the inverse needs:
a name for insertions, the previous record (and its position) for removals
and edits.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Union

from sshdb.errors import EmptyUndoStack
from sshdb.model import Host

DEFAULT_UNDO_LIMIT = 50


@dataclass(frozen=True)
class Created:
    name: str

    def describe(self) -> str:
        return f"creation of {self.name}"


@dataclass(frozen=True)
class Deleted:
    record: Host
    index: int

    def describe(self) -> str:
        return f"deletion of {self.record.name}"


@dataclass(frozen=True)
class Edited:
    name: str
    previous: Host
    index: int
    # hosts whose bastion followed a name change
    referrers: List[str] = field(default_factory=list)

    def describe(self) -> str:
        return f"edit of {self.previous.name}"


@dataclass(frozen=True)
class Duplicated:
    new_name: str

    def describe(self) -> str:
        return f"duplicate {self.new_name}"


@dataclass(frozen=True)
class Renamed:
    old_name: str
    new_name: str
    referrers: List[str] = field(default_factory=list)

    def describe(self) -> str:
        return f"rename of {self.old_name} to {self.new_name}"


UndoEntry = Union[Created, Deleted, Edited, Duplicated, Renamed]


class UndoStack:
    """Bounded LIFO of undo entries. The oldest entry is dropped when full."""

    def __init__(self, limit: int = DEFAULT_UNDO_LIMIT):
        if limit < 1:
            raise ValueError("undo limit must be positive")
        self._entries: Deque[UndoEntry] = deque(maxlen=limit)

    @property
    def limit(self) -> int:
        return self._entries.maxlen

    def push(self, entry: UndoEntry) -> None:
        self._entries.append(entry)

    def pop(self) -> UndoEntry:
        if not self._entries:
            raise EmptyUndoStack()
        return self._entries.pop()

    def peek(self) -> UndoEntry:
        if not self._entries:
            raise EmptyUndoStack()
        return self._entries[-1]

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> List[UndoEntry]:
        """Oldest first."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)


__all__ = [
    "Created",
    "DEFAULT_UNDO_LIMIT",
    "Deleted",
    "Duplicated",
    "Edited",
    "Renamed",
    "UndoEntry",
    "UndoStack",
]
