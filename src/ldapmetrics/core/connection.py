"""Scoped directory sessions with guaranteed release."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from ldapmetrics.core.models import Entry
from ldapmetrics.core.ports import DirectoryConnectionPort, DirectoryConnectorPort

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Opens short-lived directory connections for one scrape cycle.

    Every connection handed out by session() is closed when the block
    exits, whether it completed, raised, or returned early.
    """

    def __init__(
        self,
        connector: DirectoryConnectorPort,
        user: str = "",
        password: str = "",
    ) -> None:
        self._connector = connector
        self._user = user
        self._password = password

    @property
    def has_credentials(self) -> bool:
        return bool(self._user and self._password)

    @contextmanager
    def session(
        self, address: str, always_bind: bool = False
    ) -> Iterator[DirectoryConnectionPort]:
        """Context manager yielding an open (and bound) connection.

        Args:
            address: Directory URL to dial.
            always_bind: Bind even when only one of user/password is set.
                By default bind happens only when both are non-empty.

        Raises:
            DialError: If the server cannot be reached.
            AuthError: If the bind is rejected.
        """
        conn = self._connector.connect(address)
        try:
            if self.has_credentials or (
                always_bind and (self._user or self._password)
            ):
                conn.bind(self._user, self._password)
            yield conn
        finally:
            conn.close()

    @staticmethod
    def search(
        conn: DirectoryConnectionPort,
        base_dn: str,
        search_filter: str,
        attribute: str,
    ) -> list[Entry]:
        """Run one whole-subtree search on an open connection."""
        entries = conn.search(base_dn, search_filter, attribute)
        logger.debug(
            "search returned %d entries",
            len(entries),
            extra={"base_dn": base_dn, "filter": search_filter},
        )
        return entries
