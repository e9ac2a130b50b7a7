"""Core domain models for directory monitoring data."""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Entry:
    """A single directory entry as returned by a subtree search.

    Attributes:
        dn: Distinguished name of the entry.
        attributes: Attribute name to (first) string value.
    """

    dn: str
    attributes: dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> str:
        """Return the value of an attribute, or "" when absent.

        Attribute names are matched case-insensitively, as directory
        servers do.
        """
        if name in self.attributes:
            return self.attributes[name]
        lowered = name.lower()
        for key, value in self.attributes.items():
            if key.lower() == lowered:
                return value
        return ""


@dataclass(frozen=True)
class ReplicationToken:
    """A decoded replication token (contextCSN value).

    Attributes:
        timestamp: Generalized time of the last change, in epoch seconds.
        count: Change sequence count.
        sid: Originating server identifier, verbatim.
        mod: Modifier identifier.
    """

    timestamp: float
    count: float
    sid: str
    mod: float


# Parser signature: (entries, descriptor, sink) -> None
Parser = Callable[[list[Entry], "QueryDescriptor", Any], None]


@dataclass(eq=False)
class QueryDescriptor:
    """One monitoring query of the catalog.

    Only ``cached_timestamp`` changes after startup; it holds the last
    timestamp decoded from a local replication token and is read by the
    primary delay check.
    """

    base_dn: str
    search_filter: str
    attribute: str
    metric: str
    parser: Parser
    cached_timestamp: float | None = None


class ScrapeResult(str, Enum):
    """Label values of the scrape outcome counter."""

    OK = "ok"
    FAIL = "fail"

    @classmethod
    def from_success(cls, success: bool) -> "ScrapeResult":
        return cls.OK if success else cls.FAIL


class SchedulerState(str, Enum):
    """Lifecycle states of the scrape loop."""

    IDLE = "idle"
    SCRAPING = "scraping"
    STOPPED = "stopped"
