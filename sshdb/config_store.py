"""
Durable storage of the host registry.

The registry lives in a single TOML document::

    version = 1
    default_key = "~/.ssh/id_ed25519"

    [hosts.prod-web]
    host = "52.14.33.10"
    user = "deploy"
    tags = ["web"]

Reading never writes. Saving writes a complete new document next to the
config file, keeps the previous version as ``config.toml.bak`` and then
atomically replaces the config file, so the path always holds a complete
document.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import tomli_w

from .errors import LoadError, PersistenceError
from .model import Host, unique_name
from .platform_utils import get_config_path

logger = logging.getLogger(__name__)

# Increment this whenever the file format changes
CONFIG_VERSION = 1
BACKUP_SUFFIX = ".bak"
CORRUPT_SUFFIX = ".corrupt"


@dataclass
class RegistryDocument:
    """In-memory form of the persisted file."""

    default_key: Optional[str] = None
    hosts: List[Host] = field(default_factory=list)
    version: int = CONFIG_VERSION

    def to_toml(self) -> str:
        data: Dict[str, Any] = {"version": self.version}
        if self.default_key is not None:
            data["default_key"] = self.default_key
        data["hosts"] = {host.name: host.to_dict() for host in self.hosts}
        return tomli_w.dumps(data)

    @classmethod
    def from_toml(cls, text: str) -> "RegistryDocument":
        """Parse *text*. Raises ``ValueError`` on syntax or structure errors."""
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ValueError(f"invalid TOML: {exc}") from exc

        version = data.get("version", CONFIG_VERSION)
        if isinstance(version, bool) or not isinstance(version, int):
            raise ValueError("'version' must be an integer")
        if version > CONFIG_VERSION:
            raise ValueError(f"file format version {version} is newer than supported ({CONFIG_VERSION})")

        default_key = data.get("default_key")
        if default_key is not None and not isinstance(default_key, str):
            raise ValueError("'default_key' must be a string")

        raw_hosts = data.get("hosts", {})
        hosts: List[Host] = []
        if isinstance(raw_hosts, dict):
            for name, entry in raw_hosts.items():
                hosts.append(Host.from_dict(name, entry))
        elif isinstance(raw_hosts, list):
            # older layout: [[hosts]] tables carrying their own name
            taken: List[str] = []
            for entry in raw_hosts:
                if not isinstance(entry, dict):
                    raise ValueError("every [[hosts]] entry must be a table")
                name = entry.get("name")
                if not isinstance(name, str) or not name:
                    raise ValueError("a [[hosts]] entry is missing its name")
                if name in taken:
                    renamed = unique_name(name, taken)
                    logger.warning("Duplicate host name %s in config; loaded as %s", name, renamed)
                    name = renamed
                taken.append(name)
                hosts.append(Host.from_dict(name, entry))
        else:
            raise ValueError("'hosts' must be a table of host tables")

        return cls(default_key=default_key, hosts=hosts, version=CONFIG_VERSION)


class ConfigStore:
    """Reads and writes the registry file at *path*."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else Path(get_config_path())

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + BACKUP_SUFFIX)

    @property
    def corrupt_path(self) -> Path:
        return self.path.with_name(self.path.name + CORRUPT_SUFFIX)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[RegistryDocument]:
        """
        Return the stored document, or ``None`` when the file does not exist.

        Raises :class:`LoadError` when the file cannot be read or parsed. The
        file is never modified here.
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise LoadError(self.path, str(exc)) from exc

        try:
            text = raw.decode("utf-8")
            document = RegistryDocument.from_toml(text)
        except (UnicodeDecodeError, ValueError) as exc:
            raise LoadError(self.path, str(exc)) from exc

        logger.debug("Loaded %d host(s) from %s", len(document.hosts), self.path)
        return document

    def save(self, document: RegistryDocument, *, preserve_corrupt: bool = False) -> None:
        """
        Persist *document*.

        The new content is fully written and synced to a temporary file in the
        same directory before anything else changes. The current file is then
        copied to the backup and the temporary file is moved over the config
        path with :func:`os.replace`. With ``preserve_corrupt`` the registry that failed to
        load (the unreadable file, or the backup of a missing one) is also kept
        as ``config.toml.corrupt``.

        Raises :class:`PersistenceError`.
        """
        try:
            text = document.to_toml()
        except (TypeError, ValueError) as exc:
            raise PersistenceError(self.path, f"cannot serialize registry: {exc}") from exc

        tmp_path: Optional[Path] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._write_temp(text.encode("utf-8"))
            if preserve_corrupt:
                self._preserve_previous()
            if self.path.exists():
                self._copy_atomic(self.path, self.backup_path)
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as exc:
            raise PersistenceError(self.path, str(exc)) from exc
        finally:
            if tmp_path is not None:
                try:
                    tmp_path.unlink()
                except OSError:
                    logger.debug("Could not remove temporary file %s", tmp_path, exc_info=True)

        logger.info("Saved %d host(s) to %s", len(document.hosts), self.path)

    # ------------------------------------------------------------------ helpers
    def _preserve_previous(self) -> None:
        """Keep the registry that could not be loaded as ``config.toml.corrupt``.

        That is the unreadable config file or, when the file is gone, the
        backup that would otherwise be overwritten by later saves.
        """
        if self.path.exists():
            source = self.path
        elif self.backup_path.exists():
            source = self.backup_path
        else:
            return
        self._copy_atomic(source, self.corrupt_path)
        logger.warning("Kept previous registry %s as %s", source, self.corrupt_path)

    def _write_temp(self, payload: bytes) -> Path:
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp")
        tmp_path = Path(tmp_name)
        try:
            os.fchmod(fd, stat.S_IRUSR | stat.S_IWUSR)
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        return tmp_path

    def _copy_atomic(self, source: Path, target: Path) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            shutil.copyfile(source, tmp_path)
            os.replace(tmp_path, target)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise


__all__ = [
    "BACKUP_SUFFIX",
    "CONFIG_VERSION",
    "CORRUPT_SUFFIX",
    "ConfigStore",
    "RegistryDocument",
]
