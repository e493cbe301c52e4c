import asyncio
import subprocess

from sshdb.command_builder import SSHCommand
from sshdb.model import Host
from sshdb.tui import app as tui_app
from sshdb.tui.app import HostTable, SshdbTuiApp, parse_args, run_command


def _fail_run(*args, **kwargs):
    raise AssertionError("ssh must not be started in dry-run mode")


def test_parse_args_defaults():
    args = parse_args([])
    assert args.config is None
    assert args.dry_run is False
    assert args.log_level == "WARNING"


def test_run_command_reports_missing_binary(monkeypatch, capsys):
    def _missing(argv):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(subprocess, "run", _missing)
    assert run_command(SSHCommand(argv=["ssh", "web"])) == -1
    assert "not found" in capsys.readouterr().out


def test_app_lists_hosts_and_connects_in_dry_run(registry, monkeypatch):
    registry.create(Host(name="web", host="web.internal", user="deploy"))
    registry.create(Host(name="db", host="db.internal", port=5432))
    monkeypatch.setattr(tui_app, "run_command", _fail_run)

    async def scenario():
        app = SshdbTuiApp(registry, dry_run=True)
        async with app.run_test() as pilot:
            await pilot.pause()
            assert app.query_one(HostTable).row_count == 2

            await pilot.press("c")
            await pilot.pause()
            assert app.last_command.argv == ["ssh", "deploy@web.internal"]
            assert app.last_command.dry_run

            await pilot.press("x")
            assert app.dry_run is False

    asyncio.run(scenario())


def test_app_delete_confirm_and_undo(registry):
    registry.create(Host(name="web", host="web.internal"))
    registry.create(Host(name="db", host="db.internal"))

    async def scenario():
        app = SshdbTuiApp(registry, dry_run=True)
        async with app.run_test() as pilot:
            await pilot.pause()
            await pilot.press("d")
            await pilot.pause()
            await pilot.press("y")
            await pilot.pause()
            assert registry.names() == ["db"]
            assert app.query_one(HostTable).row_count == 1

            await pilot.press("u")
            await pilot.pause()
            assert registry.names() == ["web", "db"]

    asyncio.run(scenario())


def test_app_quick_connect_to_existing_host_runs_typed_command(registry, monkeypatch):
    registry.create(Host(name="srv", host="10.0.0.5", user="bob"))
    monkeypatch.setattr(tui_app, "run_command", _fail_run)

    async def scenario():
        app = SshdbTuiApp(registry, dry_run=True)
        async with app.run_test() as pilot:
            await pilot.pause()
            app._quick_connect("ssh bob@10.0.0.5 uptime")
            await pilot.pause()
            assert app.last_command.argv == ["ssh", "bob@10.0.0.5", "uptime"]
            assert registry.names() == ["srv"]

    asyncio.run(scenario())
