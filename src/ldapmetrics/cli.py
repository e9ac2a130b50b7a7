"""Command line entry point: scrape loop plus metrics endpoint."""

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

import uvicorn
from prometheus_client import CollectorRegistry

from ldapmetrics import __version__
from ldapmetrics.adapters.directory.ldap import LdapConnector
from ldapmetrics.adapters.frameworks.asgi import create_asgi_app
from ldapmetrics.adapters.logging import configure_logging
from ldapmetrics.config import ScraperConfig
from ldapmetrics.core.metrics import MetricSink
from ldapmetrics.core.scraper import Scraper

logger = logging.getLogger(__name__)


def split_listen_address(value: str) -> tuple[str, int]:
    """Split "host:port" (host optional) into its parts.

    Raises:
        ValueError: If the port is missing or not a number.
    """
    host, sep, port = value.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid listen address {value!r}, expected [host]:port")
    return host.strip("[]") or "0.0.0.0", int(port)


def build_parser(defaults: ScraperConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ldapmetrics",
        description="Export OpenLDAP cn=Monitor counters as Prometheus metrics.",
    )
    parser.add_argument(
        "--promAddr", default=":9330", help="bind address for the metrics endpoint"
    )
    parser.add_argument(
        "--metrPath", default="/metrics", help="path of the metrics endpoint"
    )
    parser.add_argument(
        "--ldapNet", default=defaults.net, choices=("tcp", "tls", "unix")
    )
    parser.add_argument(
        "--ldapAddr", default=defaults.addr, help="address of the OpenLDAP server"
    )
    parser.add_argument("--ldapUser", default=defaults.user, help="bind DN")
    parser.add_argument("--ldapPass", default=defaults.password, help="bind password")
    parser.add_argument(
        "--interval",
        type=float,
        default=defaults.interval,
        help="scrape interval in seconds",
    )
    parser.add_argument(
        "--replicationObject",
        action="append",
        default=list(defaults.sync),
        help="base DN whose contextCSN is monitored (repeatable)",
    )
    parser.add_argument(
        "--ldapSyncTimeDelta",
        action="store_true",
        default=defaults.sync_time_delta,
        help="publish replication delay against the primary",
    )
    parser.add_argument(
        "--ldapSyncMasterAddr",
        default=defaults.sync_master_addr,
        help="address of the replication primary",
    )
    parser.add_argument("--timeout", type=float, default=defaults.timeout)
    parser.add_argument("--jsonLog", action="store_true", help="log as JSON lines")
    parser.add_argument("--logLevel", default="INFO")
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> ScraperConfig:
    return ScraperConfig(
        net=args.ldapNet,
        addr=args.ldapAddr,
        user=args.ldapUser,
        password=args.ldapPass,
        interval=args.interval,
        sync=tuple(args.replicationObject),
        sync_time_delta=args.ldapSyncTimeDelta,
        sync_master_addr=args.ldapSyncMasterAddr,
        timeout=args.timeout,
    )


async def serve(config: ScraperConfig, listen: str, metrics_path: str) -> None:
    """Run the scrape loop and the metrics endpoint until the server stops."""
    host, port = split_listen_address(listen)
    registry = CollectorRegistry()
    connector = LdapConnector(timeout=config.timeout)
    scraper = Scraper(config, connector, MetricSink(registry))
    server = uvicorn.Server(
        uvicorn.Config(
            create_asgi_app(registry, metrics_path),
            host=host,
            port=port,
            lifespan="off",
            log_config=None,
        )
    )
    cancel = asyncio.Event()
    loop_task = asyncio.create_task(scraper.start(cancel))
    logger.info("starting metrics endpoint", extra={"addr": f"{host}:{port}"})
    try:
        await server.serve()
    finally:
        cancel.set()
        await loop_task


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser(ScraperConfig.from_env())
    args = parser.parse_args(argv)
    config = config_from_args(args)
    try:
        config.validate()
        split_listen_address(args.promAddr)
    except ValueError as exc:
        parser.error(str(exc))
    configure_logging(args.logLevel, json_output=args.jsonLog)
    asyncio.run(serve(config, args.promAddr, args.metrPath))
    return 0


if __name__ == "__main__":
    sys.exit(main())
