"""
Parsing of ad-hoc connection strings.

Quick connect accepts what a user would type at a shell prompt: ``host``,
``user@host``, ``user@host:port`` or a full ``ssh ...`` invocation with flags
and a trailing remote command. The result is a :class:`QuickConnectSpec`,
which :func:`resolve_quick_connect` then matches against the registry to
decide between reusing an existing host and inserting a new one.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple

from sshdb.errors import ParseError
from sshdb.model import Host, unique_name

logger = logging.getLogger(__name__)

# ssh(1) flags that consume the following argument
_FLAGS_WITH_ARGUMENT = set("BbcDEeFIiJLlmOoPpQRSWw")


@dataclass
class QuickConnectSpec:
    host: str
    user: Optional[str] = None
    port: Optional[int] = None
    key_path: Optional[str] = None
    bastion: Optional[str] = None
    options: List[str] = field(default_factory=list)
    remote_command: Optional[str] = None

    def to_host(self, name: str) -> Host:
        return Host(
            name=name,
            host=self.host,
            user=self.user,
            port=self.port,
            key_path=self.key_path,
            bastion=self.bastion,
            options=list(self.options),
            remote_command=self.remote_command,
        )


@dataclass
class QuickConnectMatch:
    host: Host
    existing: bool


def parse_port(value: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ParseError(f"invalid port value: {value!r}") from None
    if not 1 <= port <= 65535:
        raise ParseError(f"invalid port value: {value!r}")
    return port


def split_target(token: str) -> Tuple[Optional[str], str, Optional[int]]:
    """Split ``[user@]host[:port]`` into its parts. IPv6 ports need brackets."""
    if token.startswith("ssh://"):
        token = token[len("ssh://"):].rstrip("/")

    user: Optional[str] = None
    rest = token
    if "@" in token:
        user, _, rest = token.rpartition("@")
        user = user or None

    port: Optional[int] = None
    if rest.startswith("["):
        address, sep, tail = rest[1:].partition("]")
        if not sep:
            raise ParseError(f"unterminated IPv6 address in {token!r}")
        if tail:
            if not tail.startswith(":"):
                raise ParseError(f"unexpected text after address in {token!r}")
            port = parse_port(tail[1:])
        rest = address
    elif rest.count(":") == 1:
        rest, _, port_text = rest.partition(":")
        port = parse_port(port_text)

    if not rest:
        raise ParseError("no host token")
    return user, rest, port


def _tokenize(raw: str) -> List[str]:
    try:
        return shlex.split(raw)
    except ValueError as exc:
        raise ParseError(f"cannot split input: {exc}") from exc


def parse_quick_connect(raw: str) -> QuickConnectSpec:
    """Parse a quick connect string. Raises :class:`ParseError`."""
    if raw is None or not raw.strip():
        raise ParseError("empty input")

    tokens = _tokenize(raw.strip())
    if tokens and tokens[0] == "ssh":
        tokens = tokens[1:]
    if not tokens:
        raise ParseError("no host token")

    user: Optional[str] = None
    port: Optional[int] = None
    key_path: Optional[str] = None
    bastion: Optional[str] = None
    options: List[str] = []
    target: Optional[str] = None
    remote: List[str] = []

    i = 0
    end_of_options = False
    while i < len(tokens):
        token = tokens[i]

        if end_of_options or not token.startswith("-") or token == "-":
            if target is None:
                target = token
                end_of_options = False
                i += 1
                continue
            # everything from the first positional after the target is the remote command
            remote = tokens[i:]
            break

        if token == "--":
            end_of_options = True
            i += 1
            continue

        flag = token[1]
        if flag in _FLAGS_WITH_ARGUMENT:
            if len(token) > 2:
                value = token[2:]
            elif i + 1 < len(tokens):
                value = tokens[i + 1]
                i += 1
            else:
                raise ParseError(f"option {token} requires an argument")
            i += 1

            if flag == "p":
                port = parse_port(value)
            elif flag == "i":
                key_path = value
            elif flag == "J":
                bastion = value
            elif flag == "l":
                user = value
            else:
                options.extend([f"-{flag}", value])
            continue

        options.append(token)
        i += 1

    if target is None:
        raise ParseError("no host token")

    target_user, address, target_port = split_target(target)
    if target_user:
        user = target_user
    if target_port is not None and port is None:
        port = target_port

    spec = QuickConnectSpec(
        host=address,
        user=user,
        port=port,
        key_path=key_path,
        bastion=bastion,
        options=options,
        remote_command=" ".join(remote) if remote else None,
    )
    logger.debug("Parsed quick connect %r as %s", raw, spec)
    return spec


def find_matching_host(spec: QuickConnectSpec, hosts: Mapping[str, Host]) -> Optional[Host]:
    """Return the first host with the same ``(host, user, port)`` triple."""
    wanted_port = spec.port if spec.port is not None else 22
    for host in hosts.values():
        if host.host == spec.host and (host.user or None) == spec.user and host.effective_port == wanted_port:
            return host
    return None


def candidate_name(spec: QuickConnectSpec, taken) -> str:
    taken = set(taken)
    if spec.host not in taken:
        return spec.host
    if spec.user:
        labelled = f"{spec.user}@{spec.host}"
        if labelled not in taken:
            return labelled
        return unique_name(labelled, taken)
    return unique_name(spec.host, taken)


def resolve_quick_connect(spec: QuickConnectSpec, hosts: Mapping[str, Host]) -> QuickConnectMatch:
    """
    Reuse an existing host for *spec* or build a new candidate record.

    A ``-J`` value becomes the ``bastion`` reference when it names a stored
    host (or matches one by ``user@host``); otherwise it is kept verbatim in
    ``options`` so the jump still happens.
    """
    existing = find_matching_host(spec, hosts)
    if existing is not None:
        return QuickConnectMatch(host=existing.copy(), existing=True)

    candidate = spec.to_host(candidate_name(spec, hosts.keys()))
    return QuickConnectMatch(host=attach_jump(candidate, spec.bastion, hosts), existing=False)


def attach_jump(record: Host, jump: Optional[str], hosts: Mapping[str, Host]) -> Host:
    """Store a ``-J`` value on *record* as a bastion name or as a raw option."""
    record.bastion = None
    if jump is None:
        return record
    bastion_name = _bastion_name(jump, hosts)
    if bastion_name is None:
        record.options = ["-J", jump] + record.options
    else:
        record.bastion = bastion_name
    return record


def _bastion_name(value: str, hosts: Mapping[str, Host]) -> Optional[str]:
    if value in hosts:
        return value
    for host in hosts.values():
        if value in (host.display_label(), host.host):
            return host.name
    return None


__all__ = [
    "QuickConnectMatch",
    "QuickConnectSpec",
    "attach_jump",
    "candidate_name",
    "find_matching_host",
    "parse_quick_connect",
    "resolve_quick_connect",
    "split_target",
]
