import pytest

from sshdb.errors import ValidationError
from sshdb.model import Host, parse_options, parse_tags, unique_name, validate


def _hosts(*records):
    return {record.name: record for record in records}


def test_tags_are_deduplicated_in_order():
    host = Host(name="web", host="10.0.0.1", tags=["b", "a", "b", " a ", ""])
    assert host.tags == ["b", "a"]


def test_copy_is_independent():
    host = Host(name="web", host="10.0.0.1", tags=["x"], options=["-A"])
    clone = host.copy(name="web2")
    clone.tags.append("y")
    clone.options.append("-v")

    assert clone.name == "web2"
    assert host.tags == ["x"]
    assert host.options == ["-A"]


def test_effective_port_defaults_to_22():
    assert Host(name="a", host="h").effective_port == 22
    assert Host(name="a", host="h", port=2200).effective_port == 2200


def test_to_dict_omits_absent_fields():
    data = Host(name="web", host="10.0.0.1", user="deploy").to_dict()
    assert data == {"host": "10.0.0.1", "user": "deploy"}


def test_from_dict_accepts_out_of_range_port():
    host = Host.from_dict("web", {"host": "10.0.0.1", "port": 70000})
    assert host.port == 70000


def test_from_dict_rejects_wrong_shape():
    with pytest.raises(ValueError):
        Host.from_dict("web", {"user": "deploy"})
    with pytest.raises(ValueError):
        Host.from_dict("web", {"host": "h", "tags": "web"})


def test_parse_helpers():
    assert parse_tags("web, blue,,web") == ["web", "blue"]
    assert parse_options("-o 'ProxyCommand=nc %h %p' -A") == ["-o", "ProxyCommand=nc %h %p", "-A"]
    with pytest.raises(ValidationError):
        parse_options("-o 'unterminated")


def test_unique_name_appends_counter():
    assert unique_name("web", []) == "web"
    assert unique_name("web", ["web"]) == "web-2"
    assert unique_name("web", ["web", "web-2"]) == "web-3"


@pytest.mark.parametrize(
    "record",
    [
        Host(name="", host="h"),
        Host(name=" web", host="h"),
        Host(name="web", host="  "),
        Host(name="web", host="h", port=0),
        Host(name="web", host="h", port=65536),
        Host(name="web", host="h", bastion=""),
        Host(name="web", host="h", bastion="web"),
    ],
)
def test_validate_rejects_invalid_records(record):
    with pytest.raises(ValidationError):
        validate(record, {})


def test_validate_rejects_duplicate_name_but_not_self():
    existing = Host(name="web", host="h")
    with pytest.raises(ValidationError):
        validate(Host(name="web", host="other"), _hosts(existing))
    assert validate(Host(name="web", host="other"), _hosts(existing), previous_name="web") == []


def test_validate_warns_about_unknown_bastion():
    warnings = validate(Host(name="web", host="h", bastion="jump"), {})
    assert warnings and "jump" in warnings[0]


def test_validate_rejects_bastion_cycle():
    hosts = _hosts(Host(name="a", host="a", bastion="b"), Host(name="b", host="b"))
    with pytest.raises(ValidationError):
        validate(Host(name="b", host="b", bastion="a"), hosts, previous_name="b")


def test_validate_accepts_chain():
    hosts = _hosts(Host(name="jump1", host="j1"), Host(name="jump2", host="j2", bastion="jump1"))
    assert validate(Host(name="web", host="h", bastion="jump2"), hosts) == []
