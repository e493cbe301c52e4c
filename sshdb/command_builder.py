"""
Helpers for preparing SSH commands for a registry host.

The builder turns a :class:`~sshdb.model.Host` into the argv list for
``ssh`` plus a shell-quoted preview string. It only *describes* the command;
running it is left to the caller (the TUI suspends itself and hands the argv
to :mod:`subprocess`).

Construction order::

    ssh [-p PORT] [-i IDENTITY] [BASTION] [OPTIONS...] [user@]host [REMOTE COMMAND]
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from typing import List, Mapping, Optional

from sshdb.errors import BastionCycle, UnresolvedBastion
from sshdb.model import AGENT_SENTINEL, DEFAULT_PORT, Host
from sshdb.platform_utils import expand_path
from sshdb.ssh_agent_socket import AuthEnvironment

logger = logging.getLogger(__name__)

SSH_BINARY = "ssh"


@dataclass
class SSHCommand:
    """A fully formed ssh invocation."""

    argv: List[str]
    identity: Optional[str] = None
    dry_run: bool = False

    @property
    def display(self) -> str:
        return " ".join(shlex.quote(part) for part in self.argv)

    def __str__(self) -> str:
        return self.display


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def resolve_identity(
    host: Host,
    default_key: Optional[str],
    environment: AuthEnvironment,
) -> Optional[str]:
    """
    Return the identity file to pass with ``-i`` for *host*, or ``None``.

    First match wins:

    1. the host's own ``key_path`` (``"agent"`` means rely on the agent);
    2. the registry-wide ``default_key`` (same ``"agent"`` convention);
    3. a running SSH agent, which needs no flag;
    4. the first existing well known key (ed25519, then RSA).
    """
    key = _clean(host.key_path)
    if key == AGENT_SENTINEL:
        if not environment.agent_available:
            logger.warning("Host %s relies on the SSH agent but no agent was detected", host.name)
        return None
    if key:
        return expand_path(key)

    default = _clean(default_key)
    if default == AGENT_SENTINEL:
        return None
    if default:
        return expand_path(default)

    if environment.agent_available:
        return None

    for candidate in environment.candidates():
        if environment.key_exists(candidate):
            return expand_path(candidate)
    logger.debug("No identity found for %s; ssh will fall back to its own defaults", host.name)
    return None


def resolve_bastion_chain(host: Host, hosts: Mapping[str, Host]) -> List[Host]:
    """
    Return the jump hosts for *host*, outermost (first hop) first.

    Raises :class:`UnresolvedBastion` for a dangling reference and
    :class:`BastionCycle` when the chain loops.
    """
    visited = [host.name]
    hops: List[Host] = []
    current = host.bastion
    while current is not None:
        if current in visited:
            raise BastionCycle(visited + [current])
        hop = hosts.get(current)
        if hop is None:
            raise UnresolvedBastion(current)
        visited.append(current)
        hops.append(hop)
        current = hop.bastion
    hops.reverse()
    return hops


def _format_hop(hop: Host) -> str:
    address = hop.host
    if hop.port is not None and hop.port != DEFAULT_PORT:
        if ":" in address:
            address = f"[{address}]"
        address = f"{address}:{hop.port}"
    if hop.user:
        return f"{hop.user}@{address}"
    return address


def _has_flag(options: List[str], flag: str) -> bool:
    return any(opt == flag or (opt.startswith(flag) and len(opt) > len(flag)) for opt in options)


def _bastion_args(
    host: Host,
    hosts: Mapping[str, Host],
    default_key: Optional[str],
    environment: AuthEnvironment,
) -> List[str]:
    chain = resolve_bastion_chain(host, hosts)
    if not chain:
        return []

    plain = all(
        not hop.options and resolve_identity(hop, default_key, environment) is None
        for hop in chain
    )
    if plain:
        return ["-J", ",".join(_format_hop(hop) for hop in chain)]

    # Hops needing their own key or options are reached through a nested
    # ssh. ssh expands %-tokens in ProxyCommand, so the inner command's
    # tokens are escaped to survive one round of expansion. A hop only
    # forwards, so the bastion's own remote command is left out.
    jump = hosts[host.bastion].copy(remote_command=None)
    inner = build_ssh_command(jump, hosts, default_key=default_key, environment=environment)
    escaped = [part.replace("%", "%%") for part in inner.argv]
    proxy = " ".join(shlex.quote(part) for part in escaped + ["-W", "%h:%p"])
    return ["-o", f"ProxyCommand={proxy}"]


def build_ssh_command(
    host: Host,
    hosts: Mapping[str, Host],
    *,
    default_key: Optional[str] = None,
    environment: Optional[AuthEnvironment] = None,
    remote_command_override: Optional[str] = None,
    dry_run: bool = False,
) -> SSHCommand:
    """
    Return the :class:`SSHCommand` for connecting to *host*.

    Args:
        host: The host to connect to.
        hosts: Registry snapshot used to resolve bastion references.
        default_key: Registry-wide default identity (may be ``"agent"``).
        environment: Agent/key-file predicates; detected when omitted.
        remote_command_override: Replaces the host's stored remote command.
        dry_run: Recorded on the result for the caller; has no effect here.
    """
    if environment is None:
        environment = AuthEnvironment.detect()

    address = (host.host or "").strip()
    if not address:
        raise ValueError(f"Host '{host.name}' is missing a target address")

    options = list(host.options)
    cmd: List[str] = [SSH_BINARY]

    if host.port is not None and host.port != DEFAULT_PORT:
        if _has_flag(options, "-p"):
            logger.debug("Port for %s comes from its options", host.name)
        else:
            cmd.extend(["-p", str(host.port)])

    identity = resolve_identity(host, default_key, environment)
    if identity and _has_flag(options, "-i"):
        logger.debug("Identity for %s comes from its options", host.name)
        identity = None
    if identity:
        cmd.extend(["-i", identity])

    cmd.extend(_bastion_args(host, hosts, default_key, environment))
    cmd.extend(options)

    user = _clean(host.user)
    cmd.append(f"{user}@{address}" if user else address)

    remote = _clean(remote_command_override) or _clean(host.remote_command)
    if remote:
        cmd.append(remote)

    logger.debug("Built ssh command for %s: %s", host.name, cmd)
    return SSHCommand(argv=cmd, identity=identity, dry_run=dry_run)


__all__ = [
    "SSHCommand",
    "build_ssh_command",
    "resolve_bastion_chain",
    "resolve_identity",
]
