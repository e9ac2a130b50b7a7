"""Directory adapters implementing core ports."""

from ldapmetrics.adapters.directory.in_memory import (
    InMemoryConnection,
    InMemoryDirectory,
)
from ldapmetrics.adapters.directory.ldap import LdapConnection, LdapConnector

__all__ = [
    "InMemoryConnection",
    "InMemoryDirectory",
    "LdapConnection",
    "LdapConnector",
]
