import os
import sys

import pytest

# Ensure project root is on sys.path
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from sshdb.config_store import ConfigStore  # noqa: E402
from sshdb.registry import HostRegistry  # noqa: E402
from sshdb.ssh_agent_socket import AuthEnvironment  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_paths(tmp_path, monkeypatch):
    """Keep every test away from the real config file and ~/.ssh."""
    monkeypatch.setenv("SSHDB_CONFIG", str(tmp_path / "config" / "config.toml"))
    monkeypatch.setenv("SSHDB_SSH_DIR", str(tmp_path / "ssh"))
    monkeypatch.delenv("SSH_AUTH_SOCK", raising=False)


@pytest.fixture
def no_agent():
    return AuthEnvironment(agent_available=False, key_exists=lambda path: False, fallback_keys=[])


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "db" / "config.toml"


@pytest.fixture
def registry(config_path, no_agent):
    reg = HostRegistry(ConfigStore(config_path), environment=no_agent)
    reg.load()
    return reg
