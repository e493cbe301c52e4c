import pytest

from sshdb.errors import ParseError
from sshdb.model import Host
from sshdb.quick_connect import parse_quick_connect, resolve_quick_connect, split_target


def test_user_at_host():
    spec = parse_quick_connect("alice@db1.internal")
    assert spec.host == "db1.internal"
    assert spec.user == "alice"
    assert spec.port is None
    assert spec.remote_command is None


def test_full_ssh_command():
    spec = parse_quick_connect("ssh -p 2222 -i /keys/id_ed25519 bob@10.0.0.5 uptime")
    assert spec.port == 2222
    assert spec.key_path == "/keys/id_ed25519"
    assert spec.user == "bob"
    assert spec.host == "10.0.0.5"
    assert spec.remote_command == "uptime"


def test_attached_flag_values_and_passthrough_options():
    spec = parse_quick_connect("ssh -p2200 -lroot -A -o StrictHostKeyChecking=no server -- tail -f /var/log/syslog")
    assert spec.port == 2200
    assert spec.user == "root"
    assert spec.options == ["-A", "-o", "StrictHostKeyChecking=no"]
    assert spec.remote_command == "tail -f /var/log/syslog"


def test_extra_user_at_host_tokens_fold_into_remote_command():
    spec = parse_quick_connect("a@b c@d echo hi")
    assert spec.user == "a"
    assert spec.host == "b"
    assert spec.remote_command == "c@d echo hi"


def test_host_with_port_suffix():
    assert split_target("deploy@web:2022") == ("deploy", "web", 2022)
    assert split_target("[fe80::1]:2222") == (None, "fe80::1", 2222)
    assert split_target("fe80::1") == (None, "fe80::1", None)
    assert split_target("ssh://ops@example.com:2200/") == ("ops", "example.com", 2200)


def test_explicit_port_flag_wins_over_suffix():
    spec = parse_quick_connect("ssh -p 2222 web:2200")
    assert spec.port == 2222


@pytest.mark.parametrize(
    "raw",
    ["", "   ", "ssh", "ssh -p", "ssh -p notaport host", "alice@", "web:99999", "ssh 'unterminated"],
)
def test_invalid_input_raises_parse_error(raw):
    with pytest.raises(ParseError):
        parse_quick_connect(raw)


def test_resolve_reuses_matching_host():
    hosts = {"db": Host(name="db", host="db1.internal", user="alice")}
    match = resolve_quick_connect(parse_quick_connect("alice@db1.internal:22"), hosts)
    assert match.existing
    assert match.host.name == "db"


def test_resolve_creates_unique_name():
    hosts = {"db1.internal": Host(name="db1.internal", host="db1.internal", user="root")}
    match = resolve_quick_connect(parse_quick_connect("alice@db1.internal"), hosts)
    assert not match.existing
    assert match.host.name == "alice@db1.internal"
    assert match.host.user == "alice"


def test_resolve_jump_to_known_host_becomes_bastion():
    hosts = {"jump": Host(name="jump", host="bastion.example.com", user="ops")}
    match = resolve_quick_connect(parse_quick_connect("ssh -J ops@bastion.example.com app"), hosts)
    assert match.host.bastion == "jump"
    assert match.host.options == []


def test_resolve_unknown_jump_is_kept_in_options():
    match = resolve_quick_connect(parse_quick_connect("ssh -J gw.example.com app"), {})
    assert match.host.bastion is None
    assert match.host.options == ["-J", "gw.example.com"]
