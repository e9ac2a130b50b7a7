"""Port interfaces for directory adapters.

These protocols define the contracts that directory adapters must implement.
The scrape engine depends only on these interfaces, not on a client library.
"""

from typing import Protocol, runtime_checkable

from ldapmetrics.core.models import Entry


@runtime_checkable
class DirectoryConnectionPort(Protocol):
    """Port for an open directory connection.

    Adapters implementing this protocol raise AuthError from bind() and
    SearchError from search().
    """

    def bind(self, user: str, password: str) -> None:
        """Authenticate with a simple bind."""
        ...

    def search(self, base_dn: str, search_filter: str, attribute: str) -> list[Entry]:
        """Run one whole-subtree search requesting a single attribute.

        Returns:
            Entries in server order. Empty list when nothing matched.
        """
        ...

    def close(self) -> None:
        """Release the connection. Must be safe to call more than once."""
        ...


@runtime_checkable
class DirectoryConnectorPort(Protocol):
    """Port for opening directory connections.

    Examples: LdapConnector, InMemoryDirectory.
    """

    def connect(self, address: str) -> DirectoryConnectionPort:
        """Open a connection to the given address.

        Raises:
            DialError: If the server cannot be reached.
        """
        ...
