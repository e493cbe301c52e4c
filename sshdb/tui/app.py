from __future__ import annotations

import argparse
import logging
import subprocess
from typing import Callable, Dict, List, Optional, Sequence

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.screen import ModalScreen
from textual.timer import Timer
from textual.widgets import DataTable, Footer, Header, Input, Static

from sshdb import __version__
from sshdb.command_builder import SSHCommand
from sshdb.config_store import ConfigStore
from sshdb.errors import LoadError, PersistenceError, SshdbError
from sshdb.model import Host
from sshdb.registry import HostRegistry
from sshdb.search_utils import filter_hosts
from sshdb.tui.editor import HostEditSession

LOG = logging.getLogger(__name__)

HELP_ENTRIES = [
    ("↑/↓ or j/k", "Move selection"),
    ("Enter / c", "Connect to highlighted host"),
    ("!", "Connect and run a command"),
    (":", "Quick connect (user@host, ssh ...)"),
    ("a", "Add host"),
    ("e", "Edit host"),
    ("d", "Delete host"),
    ("y", "Duplicate host"),
    ("u", "Undo last change"),
    ("x", "Toggle dry-run"),
    ("r / F5", "Reload config from disk"),
    ("w", "Save config now"),
    ("/ or Ctrl+F", "Focus the filter"),
    ("Esc", "Return focus to the list"),
    ("q or Ctrl+C", "Quit"),
]


def run_command(command: SSHCommand) -> int:
    """Hand *command* to the operating system and wait for it to finish."""
    try:
        return subprocess.run(command.argv).returncode
    except FileNotFoundError:
        print("ssh executable was not found on PATH.")
    except OSError as exc:
        print(f"Connection failed: {exc}")
    return -1


class HostTable(DataTable):
    """Host list that emits a message when Enter is pressed."""

    BINDINGS = [
        Binding("enter", "connect_row", "Connect", show=False),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
    ]

    class ConnectRequested(Message):
        """Sent when the user activates the current row."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.cursor_type = "row"
        self.zebra_stripes = True

    def action_connect_row(self) -> None:
        self.post_message(self.ConnectRequested())


class HelpScreen(ModalScreen[None]):
    """Modal overlay listing keyboard shortcuts."""

    def compose(self) -> ComposeResult:
        lines = [f"[b]sshdb {__version__}[/b]", ""]
        lines.extend(f"  {keys:<14} {action}" for keys, action in HELP_ENTRIES)
        lines.extend(["", "Press Esc, q, or ? to close this help."])
        yield Static("\n".join(lines), id="help-panel")

    def on_key(self, event: events.Key) -> None:
        if event.key in {"escape", "q", "question_mark"}:
            event.stop()
            self.dismiss()


class PromptScreen(ModalScreen[Optional[str]]):
    """Single line prompt. Dismisses with the text, or ``None`` on Esc."""

    def __init__(self, title: str, *, placeholder: str = "", value: str = ""):
        super().__init__()
        self.title_text = title
        self.placeholder = placeholder
        self.initial_value = value

    def compose(self) -> ComposeResult:
        with Vertical(id="prompt-panel"):
            yield Static(self.title_text, classes="panel-title")
            yield Input(value=self.initial_value, placeholder=self.placeholder, id="prompt-input")

    def on_mount(self) -> None:
        self.query_one("#prompt-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.dismiss(event.value)

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            event.stop()
            self.dismiss(None)


class ConfirmScreen(ModalScreen[bool]):
    """Yes/no confirmation used before destructive actions."""

    def __init__(self, question: str):
        super().__init__()
        self.question = question

    def compose(self) -> ComposeResult:
        yield Static(f"{self.question}\n\n[b]y[/b] confirm   [b]n[/b]/Esc cancel", id="confirm-panel")

    def on_key(self, event: events.Key) -> None:
        event.stop()
        if event.key in {"y", "Y"}:
            self.dismiss(True)
        elif event.key in {"n", "N", "escape", "q"}:
            self.dismiss(False)


class DetailsPanel(Static):
    """Shows information about the selected host."""

    def show_empty(self, message: str = "Select a host to see details.") -> None:
        self.update(message)

    def show_host(self, host: Optional[Host], preview: str = "") -> None:
        if not host:
            self.show_empty()
            return

        lines = [
            f"[b]Name[/b]      {host.name}",
            f"[b]Target[/b]    {host.display_label()}",
            f"[b]Port[/b]      {host.effective_port}",
            f"[b]Key[/b]       {host.key_path or 'default'}",
        ]
        if host.bastion:
            lines.append(f"[b]Bastion[/b]   {host.bastion}")
        if host.tags:
            lines.append(f"[b]Tags[/b]      {', '.join(host.tags)}")
        if host.options:
            lines.append(f"[b]Options[/b]   {' '.join(host.options)}")
        if host.remote_command:
            lines.append(f"[b]Remote cmd[/b] {host.remote_command}")
        if host.description:
            lines.append("")
            lines.append(host.description)
        if preview:
            lines.append("")
            lines.append(f"[b]Command[/b]\n{preview}")

        self.update("\n".join(lines))


class StatusBar(Static):
    """Single-line status indicator."""

    def set_message(self, message: str, *, error: bool = False) -> None:
        self.set_class(error, "error")
        self.update(message or "")


class SshdbTuiApp(App[None]):
    """Textual-based interface for browsing and launching sshdb hosts."""

    TITLE = "sshdb"
    CSS = """
    Screen {
        layout: vertical;
    }

    HelpScreen, PromptScreen, ConfirmScreen {
        align: center middle;
    }

    #body {
        height: 1fr;
        padding: 1 2;
    }

    #list-panel, #details-panel {
        height: 1fr;
    }

    #details-panel {
        border: round $secondary;
        padding: 1;
    }

    #details {
        height: 1fr;
        overflow-y: auto;
    }

    #host-table {
        height: 1fr;
    }

    #status {
        height: 3;
        content-align: left middle;
        padding: 0 1;
        background: $boost;
    }

    #status.error {
        background: $error;
        color: $text;
    }

    .panel-title {
        text-style: bold;
        padding-bottom: 1;
    }

    #filter {
        margin-bottom: 1;
    }

    #help-panel, #prompt-panel, #confirm-panel {
        width: 70%;
        height: auto;
        background: $surface;
        border: round $secondary;
        padding: 2;
        content-align: left top;
    }
    """

    BINDINGS = [
        Binding("q", "quit_app", "Quit"),
        Binding("ctrl+c", "quit_app", "Quit", show=False),
        Binding("c", "connect", "Connect"),
        Binding("exclamation_mark", "connect_with_command", "Run cmd", show=False),
        Binding("colon", "quick_connect", "Quick"),
        Binding("a", "add", "Add"),
        Binding("e", "edit", "Edit"),
        Binding("d", "delete", "Delete"),
        Binding("y", "duplicate", "Duplicate", show=False),
        Binding("u", "undo", "Undo"),
        Binding("x", "toggle_dry_run", "Dry-run"),
        Binding("r", "reload", "Reload"),
        Binding("f5", "reload", "Reload", show=False),
        Binding("w", "save", "Save", show=False),
        Binding("slash", "focus_filter", "Filter"),
        Binding("ctrl+f", "focus_filter", "Filter", show=False),
        Binding("escape", "focus_list", "Focus list", show=False),
        Binding("question_mark", "show_help", "Help"),
    ]

    def __init__(self, registry: Optional[HostRegistry] = None, *, dry_run: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.registry = registry if registry is not None else HostRegistry()
        self.dry_run = dry_run
        self.filtered_hosts: List[Host] = []
        self.filter_text = ""
        self._selected_name: Optional[str] = None
        self._status_timer: Optional[Timer] = None
        self.last_command: Optional[SSHCommand] = None

    # --------------------------------------------------------------------- UI
    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="body"):
            with Vertical(id="list-panel"):
                yield Static("Hosts", classes="panel-title")
                yield Input(placeholder="Filter hosts…", id="filter")
                table = HostTable(id="host-table")
                table.add_columns("Name", "Host", "User", "Port", "Tags")
                yield table
            with Vertical(id="details-panel"):
                yield Static("Details", classes="panel-title")
                yield DetailsPanel(id="details")
        yield Footer()
        yield StatusBar(id="status")

    def on_mount(self) -> None:
        self.status_bar = self.query_one(StatusBar)
        self.details_panel = self.query_one(DetailsPanel)
        self.filter_input = self.query_one("#filter", Input)
        self.host_table = self.query_one(HostTable)
        self.host_table.focus()
        self.details_panel.show_empty()
        self._load_hosts(reload=False)

    # ---------------------------------------------------------------- bindings
    def action_quit_app(self) -> None:
        self.exit()

    def action_reload(self) -> None:
        self._load_hosts(reload=True)

    def action_connect(self) -> None:
        self._connect()

    def action_connect_with_command(self) -> None:
        host = self.get_selected_host()
        if not host:
            self.set_status("No host selected", error=True)
            return

        def _done(command: Optional[str]) -> None:
            if command and command.strip():
                self._connect(command.strip())

        self.push_screen(
            PromptScreen(f"Command to run on {host.name}", value=host.remote_command or ""),
            _done,
        )

    def action_quick_connect(self) -> None:
        self.push_screen(
            PromptScreen("Quick connect", placeholder="user@host:port or ssh -p 2222 user@host cmd"),
            self._quick_connect,
        )

    def action_add(self) -> None:
        session = HostEditSession(hosts=self._host_map())
        with self.suspend():
            record = session.run()
        if record is None:
            self.set_status("Add cancelled")
            return
        if self._mutate(self.registry.create, record, success=f"Added host {record.name}"):
            self._select(record.name)

    def action_edit(self) -> None:
        host = self.get_selected_host()
        if not host:
            self.set_status("No host selected", error=True)
            return

        session = HostEditSession(host, hosts=self._host_map())
        with self.suspend():
            record = session.run()
        if record is None:
            self.set_status("Edit cancelled")
            return
        if self._mutate(self.registry.edit, host.name, record, success=f"Updated host {record.name}"):
            self._select(record.name)

    def action_delete(self) -> None:
        host = self.get_selected_host()
        if not host:
            self.set_status("No host selected", error=True)
            return

        def _done(confirmed: Optional[bool]) -> None:
            if confirmed:
                self._mutate(self.registry.delete, host.name, success=f"Removed {host.name} (u to undo)")

        self.push_screen(ConfirmScreen(f"Delete host [b]{host.name}[/b]?"), _done)

    def action_duplicate(self) -> None:
        host = self.get_selected_host()
        if not host:
            self.set_status("No host selected", error=True)
            return
        try:
            new_name = self.registry.duplicate(host.name)
        except PersistenceError as exc:
            self._report_persistence(exc)
            return
        except SshdbError as exc:
            self.set_status(str(exc), error=True)
            return
        self._select(new_name)
        self.set_status(f"Duplicated host to {new_name}")

    def action_undo(self) -> None:
        try:
            entry = self.registry.undo()
        except PersistenceError as exc:
            self._report_persistence(exc)
            return
        except SshdbError as exc:
            self.set_status(str(exc))
            return
        self.apply_filter()
        self.set_status(f"Undid {entry.describe()}")

    def action_save(self) -> None:
        try:
            self.registry.save()
        except PersistenceError as exc:
            self.set_status(str(exc), error=True, persist=True)
            return
        self.set_status(f"Saved to {self.registry.store.path}")

    def action_toggle_dry_run(self) -> None:
        self.dry_run = not self.dry_run
        self.set_status(f"Dry-run {'on' if self.dry_run else 'off'}")
        self._refresh_details()

    def action_focus_filter(self) -> None:
        self.filter_input.focus()
        self.filter_input.cursor_position = len(self.filter_input.value)

    def action_focus_list(self) -> None:
        self.host_table.focus()

    def action_show_help(self) -> None:
        self.push_screen(HelpScreen())

    # ----------------------------------------------------------------- events
    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input is self.filter_input:
            self.filter_text = event.value
            self.apply_filter()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input is self.filter_input:
            self.host_table.focus()

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        if event.data_table is not self.host_table or event.row_key is None:
            return
        self._selected_name = event.row_key.value
        self._refresh_details()

    def on_host_table_connect_requested(self, event: HostTable.ConnectRequested) -> None:
        event.stop()
        self.call_later(self._connect)

    # ----------------------------------------------------------------- data ops
    def _load_hosts(self, *, reload: bool) -> None:
        try:
            if reload:
                self.registry.reload()
            else:
                self.registry.load()
        except LoadError as exc:
            LOG.warning("Failed to load hosts: %s", exc)
            self.apply_filter()
            self.set_status(f"{exc}. The file was left untouched.", error=True, persist=True)
            return
        except PersistenceError as exc:
            self.apply_filter()
            self._report_persistence(exc)
            return

        self.apply_filter(preserve_selection=reload)
        self.set_status(f"{'Reloaded' if reload else 'Loaded'} {len(self.registry)} host(s)")

    def _mutate(self, operation: Callable, *args, success: str) -> bool:
        try:
            result = operation(*args)
        except PersistenceError as exc:
            self._report_persistence(exc)
            return True
        except SshdbError as exc:
            self.set_status(str(exc), error=True, persist=True)
            return False

        warnings = result if isinstance(result, list) else []
        self.apply_filter()
        message = success
        if warnings:
            message += " (warning: " + "; ".join(warnings) + ")"
        self.set_status(message, error=False, persist=bool(warnings))
        return True

    def _report_persistence(self, exc: PersistenceError) -> None:
        self.apply_filter()
        self.set_status(f"{exc}. Changes are only in memory; press w to retry.", error=True, persist=True)

    def _connect(self, remote_command: Optional[str] = None) -> None:
        host = self.get_selected_host()
        if not host:
            self.set_status("No host selected", error=True)
            return
        self._launch(host.name, remote_command)

    def _quick_connect(self, raw: Optional[str]) -> None:
        if not raw or not raw.strip():
            return
        try:
            host, created, remote_command = self.registry.quick_connect(raw)
        except PersistenceError as exc:
            self._report_persistence(exc)
            return
        except SshdbError as exc:
            self.set_status(f"Quick connect failed: {exc}", error=True, persist=True)
            return

        self.filter_input.value = ""
        self.filter_text = ""
        self.apply_filter()
        self._select(host.name)
        if created:
            self.set_status(f"Added {host.name}")
        else:
            self.set_status("Quick connect using existing host")
        self._launch(host.name, remote_command)

    def _launch(self, name: str, remote_command: Optional[str]) -> None:
        try:
            command = self.registry.connect(name, remote_command, dry_run=self.dry_run)
        except (SshdbError, ValueError) as exc:
            LOG.warning("Failed to build SSH command for %s: %s", name, exc)
            self.set_status(f"Cannot connect: {exc}", error=True, persist=True)
            return

        self.last_command = command
        if command.dry_run:
            self.set_status(f"Dry-run: {command.display}", persist=True)
            return

        self.set_status(f"Connecting with: {command.display}", persist=True)
        with self.suspend():
            rc = run_command(command)
        if rc == 0:
            self.set_status("SSH session ended")
        else:
            self.set_status(f"SSH exited with code {rc}", error=True)

    def apply_filter(self, *, preserve_selection: bool = True) -> None:
        table = self.host_table
        self.filtered_hosts = filter_hosts(self.registry.hosts, self.filter_text)
        table.clear(columns=False)

        for host in self.filtered_hosts:
            table.add_row(
                host.name,
                host.host,
                host.user or "-",
                str(host.effective_port),
                ", ".join(host.tags),
                key=host.name,
            )

        names = [host.name for host in self.filtered_hosts]
        if names:
            target = self._selected_name if preserve_selection and self._selected_name in names else names[0]
            self._select(target)
        else:
            needle = (self.filter_text or "").strip()
            message = "No matches for current filter" if needle else "No hosts yet. Press a to add one or : to quick connect."
            self.details_panel.show_empty(message)
            self._selected_name = None

    def _select(self, name: str) -> None:
        names = [host.name for host in self.filtered_hosts]
        if name not in names:
            return
        self._selected_name = name
        self.host_table.move_cursor(row=names.index(name))
        self._refresh_details()

    def _refresh_details(self) -> None:
        host = self.get_selected_host()
        if not host:
            self.details_panel.show_empty()
            return
        try:
            preview = self.registry.connect(host.name, dry_run=True).display
        except (SshdbError, ValueError) as exc:
            preview = f"[red]{exc}[/red]"
        if self.dry_run:
            preview = f"(dry-run) {preview}"
        self.details_panel.show_host(host, preview)

    def _host_map(self) -> Dict[str, Host]:
        return {host.name: host for host in self.registry.hosts}

    def get_selected_host(self) -> Optional[Host]:
        if not self._selected_name:
            return None
        for host in self.filtered_hosts:
            if host.name == self._selected_name:
                return host
        return None

    # ----------------------------------------------------------------- status
    def set_status(self, message: str, *, error: bool = False, persist: bool = False) -> None:
        if not hasattr(self, "status_bar"):
            return
        if self._status_timer:
            self._status_timer.stop()
            self._status_timer = None
        self.status_bar.set_message(message, error=error)
        if not persist:
            self._status_timer = self.set_timer(6, self._clear_status, name="status-clear")

    def _clear_status(self) -> None:
        self.status_bar.set_message("")
        self._status_timer = None


def parse_args(argv: Optional[Sequence[str]] = None):
    parser = argparse.ArgumentParser(description="sshdb: keyboard-driven ssh launcher")
    parser.add_argument(
        "--config",
        default=None,
        help="Path of the host registry (default: per-user config dir, or $SSHDB_CONFIG)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Start with dry-run enabled: show commands instead of running them",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Python logging level (default: WARNING)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None):
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    registry = HostRegistry(ConfigStore(args.config))
    app = SshdbTuiApp(registry, dry_run=args.dry_run)
    try:
        app.run()
    except KeyboardInterrupt:
        pass
    return 0


__all__ = ["main", "SshdbTuiApp", "run_command"]
