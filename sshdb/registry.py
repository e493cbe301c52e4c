"""
Registry Store for sshdb.

:class:`HostRegistry` owns the in-memory host mapping, records every mutation
on a bounded undo stack and persists the full registry after each change.
The UI keeps a handle to one registry and only ever receives copies of the
records it holds.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, NamedTuple, Optional

from .command_builder import SSHCommand, build_ssh_command
from .config_store import ConfigStore, RegistryDocument
from .errors import LoadError, NotFound, PersistenceError
from .model import Host, unique_name, validate
from .quick_connect import QuickConnectMatch, parse_quick_connect, resolve_quick_connect
from .search_utils import filter_hosts
from .ssh_agent_socket import AuthEnvironment
from .undo import (
    DEFAULT_UNDO_LIMIT,
    Created,
    Deleted,
    Duplicated,
    Edited,
    Renamed,
    UndoEntry,
    UndoStack,
)

logger = logging.getLogger(__name__)

COPY_SUFFIX = "-copy"


class QuickConnectResult(NamedTuple):
    host: Host
    created: bool
    # command typed after the target, if any
    remote_command: Optional[str] = None


class HostRegistry:
    """The authoritative host registry and its durable representation."""

    def __init__(
        self,
        store: Optional[ConfigStore] = None,
        *,
        environment: Optional[AuthEnvironment] = None,
        undo_limit: int = DEFAULT_UNDO_LIMIT,
    ):
        self.store = store or ConfigStore()
        self.environment = environment
        self._hosts: Dict[str, Host] = {}
        self._default_key: Optional[str] = None
        self._undo = UndoStack(undo_limit)
        # memory holds changes the file does not
        self.dirty = False
        # the file on disk could not be read; the next save keeps a copy of it
        self.recovering = False
        self.load_error: Optional[LoadError] = None

    # --------------------------------------------------------------- loading
    def load(self) -> List[Host]:
        """
        Load the registry from disk and return its hosts.

        A missing file is initialized with an empty registry. An unreadable
        file raises :class:`LoadError` and is left untouched; the registry is
        then empty in memory and only an explicit mutation or :meth:`save`
        writes a new file.
        """
        self._hosts = {}
        self._default_key = None
        self.dirty = False

        try:
            document = self.store.load()
        except LoadError as exc:
            self._enter_recovery(exc)
            raise

        if document is None:
            if self.store.backup_path.exists():
                exc = LoadError(
                    self.store.path,
                    f"file is missing but a backup exists at {self.store.backup_path}",
                )
                self._enter_recovery(exc)
                raise exc
            logger.info("No registry found at %s; creating an empty one", self.store.path)
            self.recovering = False
            self.load_error = None
            self._persist()
            return self.hosts

        self.recovering = False
        self.load_error = None
        self._default_key = document.default_key
        for host in document.hosts:
            self._hosts[host.name] = host
        logger.info("Loaded %d host(s) from %s", len(self._hosts), self.store.path)
        return self.hosts

    def reload(self) -> List[Host]:
        """Discard memory and undo history, then :meth:`load` again."""
        self._undo.clear()
        return self.load()

    def _enter_recovery(self, exc: LoadError) -> None:
        logger.warning("%s; starting with an empty registry", exc)
        self.recovering = True
        self.load_error = exc

    # ---------------------------------------------------------------- access
    @property
    def hosts(self) -> List[Host]:
        return [host.copy() for host in self._hosts.values()]

    def names(self) -> List[str]:
        return list(self._hosts)

    def get(self, name: str) -> Host:
        return self._require(name).copy()

    def search(self, query: str) -> List[Host]:
        return [host.copy() for host in filter_hosts(self._hosts.values(), query)]

    @property
    def default_key(self) -> Optional[str]:
        return self._default_key

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    def undo_entries(self) -> List[UndoEntry]:
        return self._undo.entries()

    def __len__(self) -> int:
        return len(self._hosts)

    def __contains__(self, name: object) -> bool:
        return name in self._hosts

    def __iter__(self) -> Iterator[Host]:
        return iter(self.hosts)

    # ------------------------------------------------------------- mutations
    def create(self, record: Host) -> List[str]:
        """Validate and insert *record*. Returns validation warnings."""
        record = record.copy()
        warnings = validate(record, self._hosts)
        self._hosts[record.name] = record
        self._undo.push(Created(record.name))
        logger.info("Added host %s", record.name)
        self._persist()
        return warnings

    def edit(self, name: str, new_record: Host) -> List[str]:
        """Replace host *name* with *new_record*, keeping its position.

        A new name also moves the bastion references of other hosts; undo
        reverts both in one step.
        """
        previous = self._require(name)
        record = new_record.copy()
        warnings = validate(record, self._hosts, previous_name=name)
        index = self._index_of(name)
        self._replace(name, record)
        referrers = self._retarget_bastions(name, record.name) if record.name != name else []
        self._undo.push(Edited(record.name, previous, index, referrers))
        logger.info("Updated host %s", record.name)
        self._persist()
        return warnings

    def delete(self, name: str) -> Host:
        """Remove host *name*. Confirmation is the caller's job."""
        self._require(name)
        index = self._index_of(name)
        record = self._hosts.pop(name)
        self._undo.push(Deleted(record, index))
        logger.info("Removed host %s", name)
        self._persist()
        return record.copy()

    def duplicate(self, name: str) -> str:
        """Clone host *name* as ``name-copy`` (``name-copy-2``, ...)."""
        source = self._require(name)
        new_name = unique_name(f"{name}{COPY_SUFFIX}", self._hosts)
        self._hosts[new_name] = source.copy(name=new_name)
        self._undo.push(Duplicated(new_name))
        logger.info("Duplicated host %s to %s", name, new_name)
        self._persist()
        return new_name

    def rename(self, old_name: str, new_name: str) -> List[str]:
        """Rename a host and point every bastion reference at the new name."""
        record = self._require(old_name)
        if new_name == old_name:
            return []
        renamed = record.copy(name=new_name)
        warnings = validate(renamed, self._hosts, previous_name=old_name)

        self._replace(old_name, renamed)
        referrers = self._retarget_bastions(old_name, new_name)
        self._undo.push(Renamed(old_name, new_name, referrers))
        logger.info("Renamed host %s to %s (%d reference(s) updated)", old_name, new_name, len(referrers))
        self._persist()
        return warnings

    def set_default_key(self, value: Optional[str]) -> None:
        """Change the registry-wide default identity. Not recorded for undo."""
        value = (value or "").strip() or None
        self._default_key = value
        self._persist()

    def undo(self) -> UndoEntry:
        """Revert the most recent mutation. Raises :class:`EmptyUndoStack`."""
        entry = self._undo.pop()
        if isinstance(entry, (Created, Duplicated)):
            name = entry.name if isinstance(entry, Created) else entry.new_name
            if self._hosts.pop(name, None) is None:
                logger.warning("Undo: host %s was already gone", name)
        elif isinstance(entry, Deleted):
            self._insert(entry.record, entry.index)
        elif isinstance(entry, Edited):
            self._replace(entry.name, entry.previous)
            self._restore_bastions(entry.referrers, entry.name, entry.previous.name)
        elif isinstance(entry, Renamed):
            current = self._hosts[entry.new_name]
            self._replace(entry.new_name, current.copy(name=entry.old_name))
            self._restore_bastions(entry.referrers, entry.new_name, entry.old_name)
        logger.info("Undid %s", entry.describe())
        self._persist()
        return entry

    def save(self) -> None:
        """Write the registry to disk now."""
        self._persist()

    # --------------------------------------------------------- quick connect
    def quick_connect(self, raw: str) -> QuickConnectResult:
        """
        Parse *raw* and return ``(host, created, remote_command)``.

        An existing host with the same address, user and port is reused;
        otherwise the parsed host is created (and can be undone). The
        remote command typed in *raw* is returned so the caller can pass it
        to :meth:`connect` as an override when a stored host was reused.
        """
        spec = parse_quick_connect(raw)
        match: QuickConnectMatch = resolve_quick_connect(spec, self._hosts)
        if match.existing:
            logger.info("Quick connect reuses host %s", match.host.name)
            return QuickConnectResult(match.host, False, spec.remote_command)
        for warning in self.create(match.host):
            logger.warning(warning)
        return QuickConnectResult(match.host.copy(), True, spec.remote_command)

    # --------------------------------------------------------------- connect
    def connect(
        self,
        name: str,
        remote_command_override: Optional[str] = None,
        dry_run: bool = False,
    ) -> SSHCommand:
        """Build the ssh command for host *name*. Never runs it."""
        host = self._require(name)
        environment = self.environment or AuthEnvironment.detect()
        return build_ssh_command(
            host,
            self._hosts,
            default_key=self._default_key,
            environment=environment,
            remote_command_override=remote_command_override,
            dry_run=dry_run,
        )

    # ---------------------------------------------------------------- helpers
    def _require(self, name: str) -> Host:
        try:
            return self._hosts[name]
        except KeyError:
            raise NotFound(name) from None

    def _index_of(self, name: str) -> int:
        return list(self._hosts).index(name)

    def _insert(self, record: Host, index: int) -> None:
        items = list(self._hosts.items())
        items.insert(min(index, len(items)), (record.name, record))
        self._hosts = dict(items)

    def _replace(self, name: str, record: Host) -> None:
        self._hosts = {
            (record.name if key == name else key): (record if key == name else value)
            for key, value in self._hosts.items()
        }

    def _retarget_bastions(self, old_name: str, new_name: str) -> List[str]:
        """Point bastion references at *new_name*. Returns the hosts changed."""
        referrers = []
        for host in self._hosts.values():
            if host.bastion == old_name and host.name != new_name:
                host.bastion = new_name
                referrers.append(host.name)
        return referrers

    def _restore_bastions(self, referrers: List[str], new_name: str, old_name: str) -> None:
        for name in referrers:
            host = self._hosts.get(name)
            if host is not None and host.bastion == new_name:
                host.bastion = old_name

    def _persist(self) -> None:
        document = RegistryDocument(default_key=self._default_key, hosts=list(self._hosts.values()))
        try:
            self.store.save(document, preserve_corrupt=self.recovering)
        except PersistenceError:
            self.dirty = True
            logger.error("Registry changes are only in memory; retry saving", exc_info=True)
            raise
        self.dirty = False
        if self.recovering:
            logger.info("Wrote a fresh registry to %s", self.store.path)
        self.recovering = False
        self.load_error = None


__all__ = ["HostRegistry", "QuickConnectResult"]
