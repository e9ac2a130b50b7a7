"""ldapmetrics - OpenLDAP cn=Monitor scraper publishing Prometheus gauges."""

from ldapmetrics.adapters.directory.in_memory import InMemoryDirectory
from ldapmetrics.config import ScraperConfig
from ldapmetrics.core.catalog import QueryCatalog
from ldapmetrics.core.errors import (
    AuthError,
    DialError,
    LdapMetricsError,
    PrimaryCheckError,
    SearchError,
    TokenParseError,
)
from ldapmetrics.core.metrics import MetricSink
from ldapmetrics.core.models import Entry, QueryDescriptor, ReplicationToken
from ldapmetrics.core.parsing import decode_replication_token
from ldapmetrics.core.scraper import ReplicationDelayChecker, Scraper

__version__ = "0.1.0"

__all__ = [
    "AuthError",
    "DialError",
    "Entry",
    "InMemoryDirectory",
    "LdapMetricsError",
    "MetricSink",
    "PrimaryCheckError",
    "QueryCatalog",
    "QueryDescriptor",
    "ReplicationDelayChecker",
    "ReplicationToken",
    "Scraper",
    "ScraperConfig",
    "SearchError",
    "TokenParseError",
    "decode_replication_token",
    "__version__",
]
