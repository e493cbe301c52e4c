from sshdb.model import Host
from sshdb.tui.editor import HostEditSession


class ScriptedInput:
    """Helper to feed deterministic answers into HostEditSession."""

    def __init__(self, responses):
        self._responses = list(responses)
        self.prompts = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self._responses:
            raise AssertionError(f"No scripted response left for prompt: {prompt}")
        return self._responses.pop(0)


def _make_host(**overrides):
    defaults = {
        "name": "web",
        "host": "web.internal",
        "user": "deploy",
        "port": 2222,
        "tags": ["prod"],
        "options": ["-o", "SetEnv=A=b c"],
    }
    defaults.update(overrides)
    return Host(**defaults)


def _quiet(*args, **kwargs):
    return None


def test_editor_updates_remote_command_without_touching_other_fields():
    host = _make_host()
    scripted = ScriptedInput(
        [
            "",  # name
            "",  # host
            "",  # user
            "",  # port
            "",  # key path
            "",  # bastion
            "",  # tags
            "",  # options
            "htop",  # remote command
            "",  # description
        ]
    )
    result = HostEditSession(host, input_func=scripted, print_func=_quiet).run()

    assert result == host.copy(remote_command="htop")
    assert not any("SSH command" in prompt for prompt in scripted.prompts)


def test_editor_can_clear_optional_fields():
    host = _make_host(key_path="~/.ssh/web")
    scripted = ScriptedInput(["", "", "-", "-", "-", "", "-", "-", "", ""])
    result = HostEditSession(host, input_func=scripted, print_func=_quiet).run()

    assert result.user is None
    assert result.port is None
    assert result.key_path is None
    assert result.tags == []
    assert result.options == []


def test_new_host_prefilled_from_ssh_command():
    scripted = ScriptedInput(
        [
            "ssh -p 2200 -i ~/.ssh/ops ops@10.0.0.9 uptime",
            "",  # name -> ops@10.0.0.9
            "",  # host
            "",  # user
            "",  # port
            "",  # key path
            "jump",  # bastion
            "ops, web",  # tags
            "",  # options
            "",  # remote command
            "Ops box",  # description
        ]
    )
    printed = []
    session = HostEditSession(
        hosts={"jump": Host(name="jump", host="jump")}, input_func=scripted, print_func=printed.append
    )

    result = session.run()

    assert result.name == "ops@10.0.0.9"
    assert result.host == "10.0.0.9"
    assert result.user == "ops"
    assert result.port == 2200
    assert result.key_path == "~/.ssh/ops"
    assert result.bastion == "jump"
    assert result.tags == ["ops", "web"]
    assert result.remote_command == "uptime"
    assert result.description == "Ops box"
    assert any("jump" in line for line in printed)


def test_required_fields_and_invalid_port_are_reprompted():
    scripted = ScriptedInput(
        [
            "",  # no ssh command
            "",  # name required
            "db",
            "db.internal",
            "",  # user
            "99999",  # invalid port
            "abc",  # invalid port
            "5432",
            "",  # key
            "",  # bastion
            "",  # tags
            "-o 'broken",  # unparsable options
            "-A",
            "",  # remote
            "",  # description
        ]
    )
    result = HostEditSession(input_func=scripted, print_func=_quiet).run()

    assert result == Host(name="db", host="db.internal", port=5432, options=["-A"])


def test_cancel_returns_none():
    def _interrupt(prompt):
        raise KeyboardInterrupt

    assert HostEditSession(_make_host(), input_func=_interrupt, print_func=_quiet).run() is None


def test_prefill_maps_jump_to_stored_host_or_keeps_option():
    hosts = {"gw": Host(name="gw", host="gw.example.com", user="ops")}

    def _prefill(command):
        answers = [command] + [""] * 10
        return HostEditSession(hosts=hosts, input_func=ScriptedInput(answers), print_func=_quiet).run()

    known = _prefill("ssh -J ops@gw.example.com app")
    assert known.bastion == "gw"
    assert known.options == []

    unknown = _prefill("ssh -J edge.example.com app")
    assert unknown.bastion is None
    assert unknown.options == ["-J", "edge.example.com"]
