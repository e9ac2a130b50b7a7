"""ldap3 adapter implementing the directory ports.

Translates ldap3 exceptions and non-success result codes into the
scraper's DialError, AuthError and SearchError.
"""

import logging

import ldap3
from ldap3.core.exceptions import LDAPException

from ldapmetrics.core.errors import AuthError, DialError, SearchError
from ldapmetrics.core.models import Entry

logger = logging.getLogger(__name__)

_RESULT_SUCCESS = 0


def _describe(result: dict | None) -> str:
    if not result:
        return "no result"
    parts = [str(result.get("description") or result.get("result"))]
    if result.get("message"):
        parts.append(str(result["message"]))
    return ": ".join(parts)


def _first_value(values: list[bytes] | bytes | str) -> str:
    if isinstance(values, list):
        if not values:
            return ""
        values = values[0]
    if isinstance(values, bytes):
        return values.decode("utf-8", errors="replace")
    return str(values)


def _to_entry(response: dict) -> Entry:
    raw = response.get("raw_attributes") or {}
    return Entry(
        dn=response.get("dn", ""),
        attributes={name: _first_value(values) for name, values in raw.items()},
    )


class LdapConnection:
    """An open ldap3 connection implementing DirectoryConnectionPort."""

    def __init__(self, conn: ldap3.Connection) -> None:
        self._conn = conn
        self._closed = False

    def bind(self, user: str, password: str) -> None:
        try:
            bound = self._conn.rebind(
                user=user, password=password, authentication=ldap3.SIMPLE
            )
        except LDAPException as exc:
            raise AuthError(str(exc)) from exc
        if not bound:
            raise AuthError(_describe(self._conn.result))

    def search(self, base_dn: str, search_filter: str, attribute: str) -> list[Entry]:
        try:
            self._conn.search(
                search_base=base_dn,
                search_filter=search_filter,
                search_scope=ldap3.SUBTREE,
                dereference_aliases=ldap3.DEREF_NEVER,
                attributes=[attribute],
            )
        except LDAPException as exc:
            raise SearchError(str(exc)) from exc
        result = self._conn.result
        if not result or result.get("result") != _RESULT_SUCCESS:
            raise SearchError(_describe(result))
        return [
            _to_entry(item)
            for item in self._conn.response or []
            if item.get("type") == "searchResEntry"
        ]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._conn.unbind()
        except LDAPException as exc:
            logger.debug("unbind failed", extra={"error": str(exc)})


class LdapConnector:
    """Opens ldap3 connections implementing DirectoryConnectorPort.

    Args:
        timeout: Connect and receive timeout in seconds.
    """

    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout

    def connect(self, address: str) -> LdapConnection:
        try:
            server = ldap3.Server(
                address, get_info=ldap3.NONE, connect_timeout=self._timeout
            )
            conn = ldap3.Connection(
                server,
                auto_bind=ldap3.AUTO_BIND_NONE,
                receive_timeout=self._timeout,
                read_only=True,
                auto_referrals=False,
                raise_exceptions=False,
            )
            conn.open()
        except LDAPException as exc:
            raise DialError(f"{address}: {exc}") from exc
        return LdapConnection(conn)
