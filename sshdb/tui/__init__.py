"""
Terminal UI package for sshdb.

The Textual application lives in ``sshdb.tui.app``. It is imported lazily so
that ``python -m sshdb.tui.app`` does not import the module twice.
"""

from __future__ import annotations

from typing import Any

__all__ = ["main"]


def main(*args: Any, **kwargs: Any) -> Any:
    """Entry point used by the ``sshdb`` console script."""
    from .app import main as _app_main

    return _app_main(*args, **kwargs)
