"""The ordered catalog of monitoring queries run on every cycle."""

from collections.abc import Iterable, Iterator, Sequence

from ldapmetrics.core import metrics
from ldapmetrics.core.models import QueryDescriptor
from ldapmetrics.core.parsing import set_replication_value, set_value

BASE_DN = "cn=Monitor"
OPS_BASE_DN = "cn=Operations,cn=Monitor"

MONITOR_COUNTER_OBJECT = "monitorCounterObject"
MONITOR_COUNTER = "monitorCounter"

MONITORED_OBJECT = "monitoredObject"
MONITORED_INFO = "monitoredInfo"

MONITOR_OPERATION = "monitorOperation"
MONITOR_OP_COMPLETED = "monitorOpCompleted"

REPLICATION_ATTRIBUTE = "contextCSN"


def object_class(name: str) -> str:
    """Return an objectClass equality (or presence, for "*") filter."""
    return f"(objectClass={name})"


def static_queries() -> list[QueryDescriptor]:
    """Build fresh descriptors for the fixed monitor-subtree queries."""
    return [
        QueryDescriptor(
            base_dn=BASE_DN,
            search_filter=object_class(MONITORED_OBJECT),
            attribute=MONITORED_INFO,
            metric=metrics.MONITORED_OBJECT,
            parser=set_value,
        ),
        QueryDescriptor(
            base_dn=BASE_DN,
            search_filter=object_class(MONITOR_COUNTER_OBJECT),
            attribute=MONITOR_COUNTER,
            metric=metrics.MONITOR_COUNTER_OBJECT,
            parser=set_value,
        ),
        QueryDescriptor(
            base_dn=OPS_BASE_DN,
            search_filter=object_class(MONITOR_OPERATION),
            attribute=MONITOR_OP_COMPLETED,
            metric=metrics.MONITOR_OPERATION,
            parser=set_value,
        ),
    ]


def replication_query(base_dn: str) -> QueryDescriptor:
    """Build the contextCSN query for one replicated suffix."""
    return QueryDescriptor(
        base_dn=base_dn,
        search_filter=object_class("*"),
        attribute=REPLICATION_ATTRIBUTE,
        metric=metrics.MONITOR_REPLICATION,
        parser=set_replication_value,
    )


class QueryCatalog(Sequence[QueryDescriptor]):
    """Append-only, ordered collection of query descriptors.

    The static queries come first, followed by one replication query per
    configured peer. Replication queries are added exactly once; calling
    add_replication_queries() again is a no-op.
    """

    def __init__(self, queries: Iterable[QueryDescriptor] | None = None) -> None:
        self._queries: list[QueryDescriptor] = list(
            static_queries() if queries is None else queries
        )
        self._replication_added = False

    @classmethod
    def build(cls, sync: Iterable[str] = ()) -> "QueryCatalog":
        """Create the catalog from the static queries plus replication peers."""
        catalog = cls()
        catalog.add_replication_queries(sync)
        return catalog

    def add_replication_queries(self, sync: Iterable[str]) -> None:
        if self._replication_added:
            return
        self._replication_added = True
        self._queries.extend(replication_query(base_dn) for base_dn in sync)

    def replication_queries(self) -> list[QueryDescriptor]:
        return [q for q in self._queries if is_replication_query(q)]

    def __getitem__(self, index):  # type: ignore[override]
        return self._queries[index]

    def __iter__(self) -> Iterator[QueryDescriptor]:
        return iter(self._queries)

    def __len__(self) -> int:
        return len(self._queries)


def is_replication_query(query: QueryDescriptor) -> bool:
    return query.attribute == REPLICATION_ATTRIBUTE
