"""The scrape loop: one pass over the query catalog per timer tick."""

import asyncio
import logging
import math
from typing import Any

from ldapmetrics.config import ScraperConfig
from ldapmetrics.core.catalog import QueryCatalog, is_replication_query
from ldapmetrics.core.connection import ConnectionManager
from ldapmetrics.core.errors import (
    AuthError,
    DialError,
    PrimaryCheckError,
    SearchError,
    TokenParseError,
)
from ldapmetrics.core.metrics import MetricSink
from ldapmetrics.core.models import QueryDescriptor, SchedulerState
from ldapmetrics.core.parsing import decode_token_time
from ldapmetrics.core.ports import DirectoryConnectorPort

logger = logging.getLogger(__name__)


def _fields(**fields: Any) -> dict[str, Any]:
    return {"component": "scraper", **fields}


def next_deadline(previous: float, interval: float, now: float) -> float:
    """Return the next tick time on the grid previous + k * interval.

    Ticks that already passed while a cycle was running are dropped, so
    the result is always strictly later than now.
    """
    deadline = previous + interval
    if deadline <= now:
        skipped = math.floor((now - deadline) / interval) + 1
        deadline += skipped * interval
    return deadline


class ReplicationDelayChecker:
    """Compares local replication timestamps with the primary node.

    For a replication query, the primary is searched with the same base,
    filter and attribute; the delay published under (sid, "delay") is the
    primary's timestamp minus the timestamp cached from the local search.
    """

    def __init__(
        self,
        connections: ConnectionManager,
        primary_address: str,
        sink: MetricSink,
    ) -> None:
        self._connections = connections
        self._primary_address = primary_address
        self._sink = sink

    def check(self, query: QueryDescriptor) -> float | None:
        """Publish the replication delay for one query.

        Returns:
            The published delay, or None when nothing could be compared.

        Raises:
            PrimaryCheckError: On dial, bind, search or empty-result
                failures, or when the primary's timestamp is malformed.
        """
        try:
            with self._connections.session(
                self._primary_address, always_bind=True
            ) as conn:
                entries = self._connections.search(
                    conn, query.base_dn, query.search_filter, query.attribute
                )
        except DialError as exc:
            raise PrimaryCheckError(f"dial primary failed: {exc}") from exc
        except AuthError as exc:
            raise PrimaryCheckError(f"bind primary failed: {exc}") from exc
        except SearchError as exc:
            raise PrimaryCheckError(f"search primary failed: {exc}") from exc

        if not entries:
            raise PrimaryCheckError(
                f"primary returned no entries under {query.base_dn}"
            )

        # only the first entry is considered
        raw = entries[0].get(query.attribute)
        if not raw:
            return None
        try:
            primary_timestamp, sid = decode_token_time(raw)
        except TokenParseError as exc:
            raise PrimaryCheckError(f"primary time parse failed: {exc}") from exc

        if query.cached_timestamp is None:
            logger.warning(
                "no local replication timestamp to compare",
                extra=_fields(base_dn=query.base_dn, sid=sid),
            )
            return None

        delay = primary_timestamp - query.cached_timestamp
        self._sink.set_replication_value(sid, "delay", delay)
        return delay


class Scraper:
    """Timer-driven scrape engine.

    Example:
        ```python
        config = ScraperConfig(addr="ldap.example.org:389", interval=30)
        scraper = Scraper(config, LdapConnector())
        await scraper.start(cancel_event)
        ```
    """

    def __init__(
        self,
        config: ScraperConfig,
        connector: DirectoryConnectorPort,
        sink: MetricSink | None = None,
    ) -> None:
        """Build the catalog and metric sink for one scraper instance.

        Args:
            config: Validated scraper configuration.
            connector: Adapter used to open directory connections.
            sink: Metric sink to publish into (a private one when omitted).
        """
        config.validate()
        self.config = config
        self.sink = sink if sink is not None else MetricSink()
        self.catalog = QueryCatalog.build(config.sync)
        self.connections = ConnectionManager(connector, config.user, config.password)
        self.delay_checker: ReplicationDelayChecker | None = None
        if config.sync_time_delta:
            self.delay_checker = ReplicationDelayChecker(
                self.connections, config.primary_address, self.sink
            )
        self.state = SchedulerState.IDLE

    async def start(self, cancel: asyncio.Event) -> None:
        """Run one cycle per tick until cancel is set.

        Cancellation is only observed between cycles; a running cycle
        always completes first.
        """
        logger.info("starting monitor loop", extra=_fields(addr=self.config.address))
        loop = asyncio.get_running_loop()
        interval = self.config.interval
        deadline = loop.time() + interval
        while True:
            try:
                await asyncio.wait_for(
                    cancel.wait(), timeout=max(0.0, deadline - loop.time())
                )
            except asyncio.TimeoutError:
                pass
            else:
                break
            await asyncio.to_thread(self.run_once)
            deadline = next_deadline(deadline, interval, loop.time())
        self.state = SchedulerState.STOPPED
        logger.info("monitor loop stopped", extra=_fields())

    def run_once(self) -> bool:
        """Run a single cycle and record its outcome.

        Returns:
            True if the cycle succeeded.
        """
        self.state = SchedulerState.SCRAPING
        try:
            success = self.scrape()
        except Exception:
            logger.exception("scrape cycle crashed", extra=_fields())
            success = False
        finally:
            self.state = SchedulerState.IDLE
        self.sink.record_scrape(success)
        logger.debug("scrape cycle finished", extra=_fields(success=success))
        return success

    def scrape(self) -> bool:
        """Run every catalog query against the directory.

        Returns:
            False if dial or bind failed, any query failed, or the primary
            delay check failed; True otherwise.
        """
        address = self.config.address
        try:
            with self.connections.session(address) as conn:
                return self._scrape_catalog(conn)
        except DialError as exc:
            logger.error("dial failed", extra=_fields(addr=address, error=str(exc)))
            return False
        except AuthError as exc:
            logger.error("bind failed", extra=_fields(addr=address, error=str(exc)))
            return False

    def _scrape_catalog(self, conn) -> bool:
        ok = True
        for query in self.catalog:
            if not self._scrape_query(conn, query):
                ok = False
            if self.delay_checker is not None and is_replication_query(query):
                try:
                    self.delay_checker.check(query)
                except PrimaryCheckError as exc:
                    logger.error(
                        "query primary context error",
                        extra=_fields(
                            addr=self.config.primary_address,
                            base_dn=query.base_dn,
                            error=str(exc),
                        ),
                    )
                    return False
        return ok

    def _scrape_query(self, conn, query: QueryDescriptor) -> bool:
        try:
            entries = self.connections.search(
                conn, query.base_dn, query.search_filter, query.attribute
            )
        except SearchError as exc:
            logger.warning(
                "query failed",
                extra=_fields(
                    filter=query.search_filter, base_dn=query.base_dn, error=str(exc)
                ),
            )
            return False
        query.parser(entries, query, self.sink)
        return True
