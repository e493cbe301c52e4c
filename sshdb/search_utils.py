from __future__ import annotations

from typing import Any, Iterable, List


def _haystack(host: Any) -> List[str]:
    fields = [
        getattr(host, "name", ""),
        getattr(host, "host", ""),
        getattr(host, "user", ""),
        getattr(host, "description", ""),
    ]
    fields.extend(getattr(host, "tags", None) or [])
    return [(field or "").lower() for field in fields]


def _is_subsequence(needle: str, text: str) -> bool:
    it = iter(text)
    return all(char in it for char in needle)


def host_matches(host: Any, query: str) -> bool:
    """Return True if host matches the search query.

    The search checks the host's name, address, user, description and tags
    in a case-insensitive manner.
    """
    if not query:
        return True
    text = query.strip().lower()
    return any(text in field for field in _haystack(host))


def filter_hosts(hosts: Iterable[Any], query: str) -> List[Any]:
    """Filter *hosts* for the browse view.

    Substring matches come first, followed by hosts whose name or
    ``user@host`` label contains the query letters in order (``pw`` finds
    ``prod-web``). Registry order is kept within each group.
    """
    hosts = list(hosts)
    text = (query or "").strip().lower()
    if not text:
        return hosts

    exact: List[Any] = []
    fuzzy: List[Any] = []
    for host in hosts:
        if host_matches(host, text):
            exact.append(host)
            continue
        label = f"{getattr(host, 'user', '') or ''}@{getattr(host, 'host', '')}".lower()
        if _is_subsequence(text, (getattr(host, "name", "") or "").lower()) or _is_subsequence(text, label):
            fuzzy.append(host)
    return exact + fuzzy


__all__ = ["filter_hosts", "host_matches"]
