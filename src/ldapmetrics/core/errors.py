"""Exceptions raised while scraping the directory.

Adapters translate transport-level failures into these types, so the
scraper never handles client-library exceptions directly.
"""


class LdapMetricsError(Exception):
    """Base class for all scrape failures."""


class DialError(LdapMetricsError):
    """The directory server could not be reached."""


class AuthError(LdapMetricsError):
    """The simple bind was rejected."""


class SearchError(LdapMetricsError):
    """A subtree search failed to execute."""


class TokenParseError(LdapMetricsError):
    """A field of a replication token could not be decoded.

    Attributes:
        field: Name of the failing field ("layout", "gt", "count" or "mod").
        value: The raw field text.
    """

    def __init__(self, field: str, value: str, reason: str = "") -> None:
        self.field = field
        self.value = value
        message = f"unexpected {field} value {value!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class PrimaryCheckError(LdapMetricsError):
    """The replication delay check against the primary node failed."""
