"""
Read-only inspection of the local SSH authentication environment.

The command builder never looks at the process environment or the filesystem
directly. It receives an :class:`AuthEnvironment` made of two boolean
predicates: whether an SSH agent is reachable, and whether a given key file
exists. ``AuthEnvironment.detect()`` builds the real one; tests pass plain
lambdas instead.

API:
- get_agent_socket(environ=None) -> Optional[str]
- socket_exists(path) -> bool
- agent_available(environ=None) -> bool
- default_key_candidates() -> List[str]
- key_exists(path) -> bool
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from .platform_utils import expand_path, get_ssh_dir

logger = logging.getLogger(__name__)

DEFAULT_KEY_NAMES = ("id_ed25519", "id_rsa")


def get_agent_socket(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Return ``SSH_AUTH_SOCK`` when it is set to a non-empty value."""
    env = os.environ if environ is None else environ
    sock = (env.get("SSH_AUTH_SOCK") or "").strip()
    return sock or None


def socket_exists(path: Optional[str]) -> bool:
    """True when *path* exists on disk."""
    if not path:
        return False
    try:
        return Path(path).exists()
    except OSError:
        return False


def agent_available(environ: Optional[Mapping[str, str]] = None) -> bool:
    sock = get_agent_socket(environ)
    if not sock:
        return False
    if socket_exists(sock):
        return True
    logger.debug("SSH_AUTH_SOCK points at %s which does not exist", sock)
    return False


def default_key_candidates() -> List[str]:
    """Well known private keys, in the order ssh users expect them to be tried."""
    ssh_dir = get_ssh_dir()
    return [os.path.join(ssh_dir, name) for name in DEFAULT_KEY_NAMES]


def key_exists(path: str) -> bool:
    try:
        return os.path.isfile(expand_path(path))
    except OSError:
        return False


@dataclass(frozen=True)
class AuthEnvironment:
    """Environment predicates consumed by the identity resolution."""

    agent_available: bool = False
    key_exists: Callable[[str], bool] = key_exists
    fallback_keys: Optional[List[str]] = None

    def candidates(self) -> List[str]:
        if self.fallback_keys is not None:
            return list(self.fallback_keys)
        return default_key_candidates()

    @classmethod
    def detect(cls, environ: Optional[Mapping[str, str]] = None) -> "AuthEnvironment":
        return cls(agent_available=agent_available(environ))


__all__ = [
    "AuthEnvironment",
    "DEFAULT_KEY_NAMES",
    "agent_available",
    "default_key_candidates",
    "get_agent_socket",
    "key_exists",
    "socket_exists",
]
