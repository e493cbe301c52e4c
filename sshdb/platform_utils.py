"""Platform-related utility functions."""

import logging
import os
from pathlib import Path

import platformdirs

APP_NAME = "sshdb"
CONFIG_FILENAME = "config.toml"

logger = logging.getLogger(__name__)


def _normalize_path(path: str) -> str:
    """Expand user references and return an absolute path."""
    return os.path.abspath(os.path.expanduser(path))


def get_config_dir() -> str:
    """Return the per-user configuration directory for sshdb."""
    return platformdirs.user_config_dir(APP_NAME, appauthor=False)


def get_config_path() -> str:
    """Return the path of the host registry file.

    The location can be overridden by setting the ``SSHDB_CONFIG``
    environment variable.
    """
    override = os.environ.get("SSHDB_CONFIG")
    if override:
        return _normalize_path(override)
    return os.path.join(get_config_dir(), CONFIG_FILENAME)


def get_ssh_dir() -> str:
    """Return the user's SSH directory.

    ``SSHDB_SSH_DIR`` overrides the default of ``~/.ssh``. When the home
    directory cannot be determined we fall back to ``Path.home`` and finally
    to the current working directory.
    """
    override = os.environ.get("SSHDB_SSH_DIR")
    if override:
        return _normalize_path(override)

    home_dir = os.path.expanduser("~")
    if not home_dir or home_dir == "~":
        try:
            home_dir = str(Path.home())
        except RuntimeError:
            home_dir = ""

    if not home_dir:
        logger.warning(
            "Unable to determine the user's home directory; "
            "falling back to the current working directory for SSH data."
        )
        home_dir = os.getcwd()

    return _normalize_path(os.path.join(home_dir, ".ssh"))


def expand_path(path: str) -> str:
    """Expand a leading ``~`` the way ssh does for identity files."""
    return os.path.expanduser(path) if path else path
