"""Labeled gauges and the scrape outcome counter.

All metrics live in an explicit prometheus_client registry owned by the
sink, so independent sinks (one per test, for instance) never collide.
"""

from collections.abc import Sequence

from prometheus_client import CollectorRegistry, Counter, Gauge

from ldapmetrics.core.models import ScrapeResult

SUBSYSTEM = "openldap"

MONITORED_OBJECT = "monitored_object"
MONITOR_COUNTER_OBJECT = "monitor_counter_object"
MONITOR_OPERATION = "monitor_operation"
MONITOR_REPLICATION = "monitor_replication"
SCRAPE = "scrape"

REPLICATION_KINDS = ("gt", "count", "mod", "delay")

_GAUGES: dict[str, tuple[str, tuple[str, ...]]] = {
    MONITORED_OBJECT: (
        "cn=Monitor (objectClass=monitoredObject) monitoredInfo",
        ("dn",),
    ),
    MONITOR_COUNTER_OBJECT: (
        "cn=Monitor (objectClass=monitorCounterObject) monitorCounter",
        ("dn",),
    ),
    MONITOR_OPERATION: (
        "cn=Operations,cn=Monitor (objectClass=monitorOperation) monitorOpCompleted",
        ("dn",),
    ),
    MONITOR_REPLICATION: (
        "cn=Monitor monitorReplication",
        ("id", "type"),
    ),
}


def full_name(metric: str) -> str:
    """Return the exposed name of a metric, e.g. "openldap_scrape"."""
    return f"{SUBSYSTEM}_{metric}"


class MetricSink:
    """Gauge vectors keyed by entry DN or by (server id, kind).

    Gauges are last-write-wins; labels of entries that disappear from the
    directory keep their last value until the process restarts.

    Example:
        ```python
        sink = MetricSink()
        sink.set_entry_value("monitor_operation", "cn=Bind,cn=Operations,cn=Monitor", 7)
        sink.record_scrape(True)
        ```
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Create and register every metric once.

        Args:
            registry: Registry to register with. A private registry is
                created when omitted.

        Raises:
            ValueError: If the registry already holds these metrics.
        """
        self.registry = registry if registry is not None else CollectorRegistry()
        self._gauges: dict[str, Gauge] = {
            name: Gauge(
                name,
                documentation,
                labelnames=labels,
                subsystem=SUBSYSTEM,
                registry=self.registry,
            )
            for name, (documentation, labels) in _GAUGES.items()
        }
        self._scrapes = Counter(
            SCRAPE,
            "successful vs unsuccessful ldap scrape attempts",
            labelnames=("result",),
            subsystem=SUBSYSTEM,
            registry=self.registry,
        )

    def set(self, metric: str, labels: Sequence[str], value: float) -> None:
        """Overwrite the point of a gauge identified by its label values.

        Raises:
            KeyError: If metric is not one of the published gauges.
        """
        self._gauges[metric].labels(*labels).set(value)

    def set_entry_value(self, metric: str, dn: str, value: float) -> None:
        self.set(metric, (dn,), value)

    def set_replication_value(self, sid: str, kind: str, value: float) -> None:
        if kind not in REPLICATION_KINDS:
            raise ValueError(f"unknown replication kind: {kind}")
        self.set(MONITOR_REPLICATION, (sid, kind), value)

    def record_scrape(self, success: bool) -> None:
        """Count one finished cycle under result="ok" or result="fail"."""
        self._scrapes.labels(ScrapeResult.from_success(success).value).inc()

    def value(self, metric: str, **labels: str) -> float | None:
        """Read back the current value of a point, or None when unset.

        The scrape counter is read with ``value("scrape", result="ok")``.
        """
        name = full_name(metric)
        if metric == SCRAPE:
            name = f"{name}_total"
        return self.registry.get_sample_value(name, labels)
