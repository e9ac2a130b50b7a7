"""In-memory directory adapter for tests and local development."""

import re
from dataclasses import dataclass, field

from ldapmetrics.core.errors import AuthError, DialError, SearchError
from ldapmetrics.core.models import Entry

_OBJECT_CLASS_FILTER = re.compile(r"^\(objectClass=([^()]+)\)$", re.IGNORECASE)


@dataclass
class StoredEntry:
    """A directory entry held by InMemoryDirectory."""

    dn: str
    object_classes: tuple[str, ...]
    attributes: dict[str, str] = field(default_factory=dict)


def _in_subtree(dn: str, base_dn: str) -> bool:
    dn, base_dn = dn.lower(), base_dn.lower()
    return dn == base_dn or dn.endswith("," + base_dn)


def _matches(entry: StoredEntry, search_filter: str) -> bool:
    match = _OBJECT_CLASS_FILTER.match(search_filter)
    if match is None:
        raise SearchError(f"unsupported filter {search_filter!r}")
    wanted = match.group(1).lower()
    return wanted == "*" or wanted in (oc.lower() for oc in entry.object_classes)


class InMemoryConnection:
    """Connection to one InMemoryDirectory server."""

    def __init__(self, directory: "InMemoryDirectory", address: str) -> None:
        self._directory = directory
        self.address = address
        self.bound_as: str | None = None
        self.closed = False

    def bind(self, user: str, password: str) -> None:
        expected = self._directory.credentials.get(self.address)
        if expected is not None and expected != (user, password):
            raise AuthError(f"invalid credentials for {user!r}")
        self.bound_as = user

    def search(self, base_dn: str, search_filter: str, attribute: str) -> list[Entry]:
        if self.closed:
            raise SearchError("connection closed")
        if base_dn.lower() in self._directory.failing_bases:
            raise SearchError(f"no such object: {base_dn}")
        self._directory.searches.append((self.address, base_dn, search_filter))
        results = []
        for stored in self._directory.entries(self.address):
            if not _in_subtree(stored.dn, base_dn):
                continue
            if not _matches(stored, search_filter):
                continue
            selected = {
                name: value
                for name, value in stored.attributes.items()
                if name.lower() == attribute.lower()
            }
            results.append(Entry(dn=stored.dn, attributes=selected))
        return results

    def close(self) -> None:
        self.closed = True


class InMemoryDirectory:
    """In-memory implementation of DirectoryConnectorPort.

    Holds entries per server address and records every connection it
    hands out, so tests can assert that all of them were closed.

    Example:
        ```python
        directory = InMemoryDirectory()
        directory.add_entry(
            "ldap://localhost:389",
            "cn=Bind,cn=Operations,cn=Monitor",
            ("monitorOperation",),
            monitorOpCompleted="7",
        )
        ```
    """

    def __init__(self) -> None:
        self._servers: dict[str, list[StoredEntry]] = {}
        self.unreachable: set[str] = set()
        self.failing_bases: set[str] = set()
        self.credentials: dict[str, tuple[str, str]] = {}
        self.connections: list[InMemoryConnection] = []
        self.searches: list[tuple[str, str, str]] = []

    def add_entry(
        self,
        address: str,
        dn: str,
        object_classes: tuple[str, ...],
        **attributes: str,
    ) -> StoredEntry:
        entry = StoredEntry(dn=dn, object_classes=object_classes, attributes=attributes)
        self._servers.setdefault(address, []).append(entry)
        return entry

    def set_attribute(self, address: str, dn: str, name: str, value: str) -> None:
        for entry in self.entries(address):
            if entry.dn == dn:
                entry.attributes[name] = value
                return
        raise KeyError(dn)

    def entries(self, address: str) -> list[StoredEntry]:
        return self._servers.get(address, [])

    def fail_search(self, base_dn: str) -> None:
        self.failing_bases.add(base_dn.lower())

    def connect(self, address: str) -> InMemoryConnection:
        if address in self.unreachable:
            raise DialError(f"{address}: connection refused")
        conn = InMemoryConnection(self, address)
        self.connections.append(conn)
        return conn

    @property
    def open_connections(self) -> list[InMemoryConnection]:
        return [conn for conn in self.connections if not conn.closed]
