"""Unit tests for the ldap3 directory adapter."""

from typing import Any

import ldap3
import pytest
from ldap3.core.exceptions import LDAPSocketOpenError, LDAPSocketReceiveError

from ldapmetrics.adapters.directory.ldap import LdapConnection, LdapConnector
from ldapmetrics.core.errors import AuthError, DialError, SearchError

pytestmark = [pytest.mark.directory, pytest.mark.tier(1)]

SUCCESS = {"result": 0, "description": "success", "message": ""}


class StubLdap3Connection:
    """Stand-in for ldap3.Connection recording calls."""

    def __init__(
        self,
        result: dict[str, Any] | None = None,
        response: list[dict[str, Any]] | None = None,
        bind_ok: bool = True,
        error: Exception | None = None,
    ) -> None:
        self.result = result if result is not None else SUCCESS
        self.response = response or []
        self.bind_ok = bind_ok
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.unbound = 0

    def rebind(self, **kwargs: Any) -> bool:
        self.calls.append(("rebind", kwargs))
        if self.error is not None:
            raise self.error
        if not self.bind_ok:
            self.result = {"result": 49, "description": "invalidCredentials"}
        return self.bind_ok

    def search(self, **kwargs: Any) -> bool:
        self.calls.append(("search", kwargs))
        if self.error is not None:
            raise self.error
        return bool(self.response)

    def unbind(self) -> bool:
        self.unbound += 1
        return True


def _connection(stub: StubLdap3Connection) -> LdapConnection:
    return LdapConnection(stub)  # type: ignore[arg-type]


def _entry(dn: str, **raw: list[bytes]) -> dict[str, Any]:
    return {"type": "searchResEntry", "dn": dn, "raw_attributes": raw}


class TestLdapConnection:
    """Tests for LdapConnection."""

    def test_search_requests_single_attribute_over_subtree(self) -> None:
        stub = StubLdap3Connection()

        _connection(stub).search(
            "cn=Monitor", "(objectClass=monitoredObject)", "monitoredInfo"
        )

        name, kwargs = stub.calls[0]
        assert name == "search"
        assert kwargs["search_base"] == "cn=Monitor"
        assert kwargs["search_filter"] == "(objectClass=monitoredObject)"
        assert kwargs["search_scope"] == ldap3.SUBTREE
        assert kwargs["dereference_aliases"] == ldap3.DEREF_NEVER
        assert kwargs["attributes"] == ["monitoredInfo"]

    def test_search_converts_entries_using_first_value(self) -> None:
        stub = StubLdap3Connection(
            response=[
                _entry(
                    "dc=example,dc=org",
                    contextCSN=[b"20211001120000Z#1#001#0", b"20211001120000Z#1#002#0"],
                ),
                {"type": "searchResRef", "uri": ["ldap://other/"]},
                _entry("ou=people,dc=example,dc=org"),
            ]
        )

        entries = _connection(stub).search(
            "dc=example,dc=org", "(objectClass=*)", "contextCSN"
        )

        assert len(entries) == 2
        assert entries[0].get("contextCSN") == "20211001120000Z#1#001#0"
        assert entries[1].get("contextCSN") == ""

    def test_empty_result_is_not_an_error(self) -> None:
        conn = _connection(StubLdap3Connection())

        assert conn.search("cn=Monitor", "(objectClass=*)", "cn") == []

    def test_non_success_result_raises_search_error(self) -> None:
        stub = StubLdap3Connection(
            result={"result": 32, "description": "noSuchObject", "message": ""}
        )

        with pytest.raises(SearchError, match="noSuchObject"):
            _connection(stub).search("cn=Nope", "(objectClass=*)", "cn")

    def test_transport_error_during_search_raises_search_error(self) -> None:
        stub = StubLdap3Connection(error=LDAPSocketReceiveError("timed out"))

        with pytest.raises(SearchError, match="timed out"):
            _connection(stub).search("cn=Monitor", "(objectClass=*)", "cn")

    def test_bind_uses_simple_authentication(self) -> None:
        stub = StubLdap3Connection()

        _connection(stub).bind("cn=monitor", "secret")

        assert stub.calls == [
            (
                "rebind",
                {
                    "user": "cn=monitor",
                    "password": "secret",
                    "authentication": ldap3.SIMPLE,
                },
            )
        ]

    def test_rejected_bind_raises_auth_error(self) -> None:
        stub = StubLdap3Connection(bind_ok=False)

        with pytest.raises(AuthError, match="invalidCredentials"):
            _connection(stub).bind("cn=monitor", "wrong")

    def test_close_unbinds_once(self) -> None:
        stub = StubLdap3Connection()
        conn = _connection(stub)

        conn.close()
        conn.close()

        assert stub.unbound == 1


class TestLdapConnector:
    """Tests for LdapConnector."""

    def test_socket_failure_raises_dial_error(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def refuse(self: ldap3.Connection, *args: Any, **kwargs: Any) -> None:
            raise LDAPSocketOpenError("connection refused")

        monkeypatch.setattr(ldap3.Connection, "open", refuse)

        with pytest.raises(DialError, match="connection refused"):
            LdapConnector(timeout=1).connect("ldap://localhost:389")

    def test_connect_opens_connection(self, monkeypatch: pytest.MonkeyPatch) -> None:
        opened: list[ldap3.Connection] = []
        monkeypatch.setattr(
            ldap3.Connection, "open", lambda self, *args, **kwargs: opened.append(self)
        )

        conn = LdapConnector(timeout=1).connect("ldap://localhost:389")

        assert isinstance(conn, LdapConnection)
        assert len(opened) == 1
