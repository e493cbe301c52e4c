from sshdb.model import Host
from sshdb.search_utils import filter_hosts, host_matches


def make_host(name, address, **kwargs):
    return Host(name=name, host=address, **kwargs)


def test_matches_name():
    host = make_host("server1", "192.168.0.1")
    assert host_matches(host, "server")
    assert not host_matches(host, "other")


def test_matches_address_and_user():
    host = make_host("server2", "10.0.0.5", user="deploy")
    assert host_matches(host, "10.0")
    assert host_matches(host, "DEPLOY")


def test_matches_tags_and_description():
    host = make_host("db", "db.internal", tags=["postgres"], description="Primary database")
    assert host_matches(host, "postgres")
    assert host_matches(host, "primary")


def test_filter_puts_substring_matches_before_fuzzy():
    hosts = [
        make_host("prod-web", "52.14.33.10"),
        make_host("pw", "10.0.0.9"),
        make_host("staging", "10.0.0.7"),
    ]
    result = filter_hosts(hosts, "pw")
    assert [host.name for host in result] == ["pw", "prod-web"]


def test_empty_query_returns_everything_in_order():
    hosts = [make_host("b", "b"), make_host("a", "a")]
    assert filter_hosts(hosts, "  ") == hosts
