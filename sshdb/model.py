"""
Host record model and field validation.

A :class:`Host` is one named entry of the registry. Validation is a pure
function over a candidate record and a snapshot of the registry; it raises
:class:`~sshdb.errors.ValidationError` for hard failures and returns a list of
soft warnings (such as a bastion that does not exist yet).
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sshdb.errors import ValidationError

DEFAULT_PORT = 22
AGENT_SENTINEL = "agent"


@dataclass
class Host:
    name: str
    host: str
    user: Optional[str] = None
    port: Optional[int] = None
    key_path: Optional[str] = None
    bastion: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    options: List[str] = field(default_factory=list)
    remote_command: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        self.tags = normalize_tags(self.tags)
        self.options = list(self.options or [])

    @property
    def effective_port(self) -> int:
        return self.port if self.port is not None else DEFAULT_PORT

    def display_label(self) -> str:
        if self.user:
            return f"{self.user}@{self.host}"
        return self.host

    def copy(self, **changes: Any) -> "Host":
        """Return an independent copy, optionally with some fields replaced."""
        # __post_init__ rebuilds the list fields
        return replace(self, **changes)

    # ------------------------------------------------------------ persistence
    def to_dict(self) -> Dict[str, Any]:
        """Return the persisted table for this host; ``name`` is the table key."""
        data: Dict[str, Any] = {"host": self.host}
        for key in ("user", "port", "key_path", "bastion"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.tags:
            data["tags"] = list(self.tags)
        if self.options:
            data["options"] = list(self.options)
        if self.remote_command is not None:
            data["remote_command"] = self.remote_command
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any]) -> "Host":
        """
        Build a host from a persisted table.

        Only the *shape* of the data is checked here. Out-of-range ports and
        dangling bastions are accepted so that a damaged file still loads.
        Raises ``ValueError`` when the shape is wrong.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"host '{name}' must be a table")
        if not isinstance(name, str) or not name:
            raise ValueError("host entry without a name")

        address = data.get("host", data.get("address"))
        if not isinstance(address, str):
            raise ValueError(f"host '{name}' is missing a 'host' string")

        port = data.get("port")
        if isinstance(port, str) and port.strip().isdigit():
            port = int(port.strip())
        if port is not None and (isinstance(port, bool) or not isinstance(port, int)):
            raise ValueError(f"host '{name}' has a non-integer port")

        return cls(
            name=name,
            host=address,
            user=_optional_str(data, "user", name),
            port=port,
            key_path=_optional_str(data, "key_path", name),
            bastion=_optional_str(data, "bastion", name),
            tags=_str_list(data, "tags", name),
            options=_str_list(data, "options", name),
            remote_command=_optional_str(data, "remote_command", name),
            description=_optional_str(data, "description", name),
        )


def _optional_str(data: Mapping[str, Any], key: str, name: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"host '{name}': '{key}' must be a string")
    return value


def _str_list(data: Mapping[str, Any], key: str, name: str) -> List[str]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"host '{name}': '{key}' must be a list of strings")
    return list(value)


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """De-duplicate tags while keeping their first-seen order."""
    seen: List[str] = []
    for tag in tags or []:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def parse_tags(text: str) -> List[str]:
    """Split the comma separated tag field of the host form."""
    return normalize_tags((text or "").split(","))


def parse_options(text: str) -> List[str]:
    """Split the options field of the host form using shell word rules."""
    try:
        return shlex.split(text or "")
    except ValueError as exc:
        raise ValidationError(f"Options cannot be parsed: {exc}") from exc


def unique_name(base: str, taken: Iterable[str]) -> str:
    """Return *base*, or the first ``base-N`` (N >= 2) not present in *taken*."""
    taken = set(taken)
    if base not in taken:
        return base
    i = 2
    while f"{base}-{i}" in taken:
        i += 1
    return f"{base}-{i}"


def validate(
    record: Host,
    hosts: Mapping[str, Host],
    *,
    previous_name: Optional[str] = None,
) -> List[str]:
    """
    Check *record* against the current registry snapshot *hosts*.

    ``previous_name`` is the identity of the record being edited, which is
    excluded from the uniqueness check. Returns soft warnings.
    """
    warnings: List[str] = []

    name = record.name or ""
    if not name.strip():
        raise ValidationError("Name cannot be empty")
    if name != name.strip():
        raise ValidationError("Name cannot start or end with whitespace")
    if name != previous_name and name in hosts:
        raise ValidationError(f"A host named '{name}' already exists")

    if not (record.host or "").strip():
        raise ValidationError("Host cannot be empty")

    if record.port is not None:
        if isinstance(record.port, bool) or not isinstance(record.port, int):
            raise ValidationError("Port must be a number")
        if not 1 <= record.port <= 65535:
            raise ValidationError("Port must be between 1 and 65535")

    if record.bastion is not None:
        if not record.bastion.strip():
            raise ValidationError("Bastion cannot be blank; leave it unset instead")
        if record.bastion == name:
            raise ValidationError(f"Host '{name}' cannot use itself as bastion")
        if record.bastion not in hosts or record.bastion == previous_name:
            warnings.append(f"Bastion '{record.bastion}' does not match any host")
        else:
            _check_bastion_loop(record, hosts, previous_name)

    return warnings


def _check_bastion_loop(record: Host, hosts: Mapping[str, Host], previous_name: Optional[str]) -> None:
    seen = [record.name]
    current = record.bastion
    while current is not None:
        if current in seen:
            raise ValidationError(f"Circular bastion reference detected involving '{current}'")
        # the edited record's old identity no longer exists
        hop = None if current == previous_name else hosts.get(current)
        if hop is None:
            return
        seen.append(current)
        current = hop.bastion


__all__ = [
    "AGENT_SENTINEL",
    "DEFAULT_PORT",
    "Host",
    "normalize_tags",
    "parse_options",
    "parse_tags",
    "unique_name",
    "validate",
]
