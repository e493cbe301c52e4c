"""sshdb: a keyboard-driven registry of SSH hosts and a session launcher."""

__version__ = "0.3.0"
