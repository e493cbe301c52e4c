"""
Exception types raised by the sshdb engine.

Every error is recoverable at the level of a single user intent; the UI
reports them on its status line and keeps running.
"""

from __future__ import annotations

from typing import Sequence


class SshdbError(Exception):
    """Base class for all sshdb errors."""


class ValidationError(SshdbError):
    """A host record has invalid field values. The registry is unchanged."""


class ParseError(SshdbError):
    """A quick connect string could not be turned into a host."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class NotFound(SshdbError):
    """No host with the requested name exists."""

    def __init__(self, name: str):
        super().__init__(f"No host named '{name}'")
        self.name = name


class EmptyUndoStack(SshdbError):
    """Undo was requested but there is nothing to undo."""

    def __init__(self):
        super().__init__("Nothing to undo")


class CommandError(SshdbError):
    """The ssh command for a host cannot be built."""


class UnresolvedBastion(CommandError):
    def __init__(self, name: str):
        super().__init__(f"Bastion host '{name}' not found")
        self.name = name


class BastionCycle(CommandError):
    def __init__(self, chain: Sequence[str]):
        self.chain = list(chain)
        super().__init__("Circular bastion reference: " + " -> ".join(self.chain))


class LoadError(SshdbError):
    """The persisted file is unreadable. It has been left untouched."""

    def __init__(self, path, reason: str):
        super().__init__(f"Cannot load {path}: {reason}")
        self.path = path
        self.reason = reason


class PersistenceError(SshdbError):
    """Writing the persisted file failed; memory and disk have diverged."""

    def __init__(self, path, reason: str):
        super().__init__(f"Failed to save {path}: {reason}")
        self.path = path
        self.reason = reason


__all__ = [
    "SshdbError",
    "ValidationError",
    "ParseError",
    "NotFound",
    "EmptyUndoStack",
    "CommandError",
    "UnresolvedBastion",
    "BastionCycle",
    "LoadError",
    "PersistenceError",
]
