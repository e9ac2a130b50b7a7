"""Shared test fixtures for all test modules."""

from collections.abc import Callable

import httpx
import pytest

from ldapmetrics.adapters.directory.in_memory import InMemoryDirectory
from ldapmetrics.config import ScraperConfig
from ldapmetrics.core.metrics import MetricSink

from tests.constants import LOCAL, LOCAL_CSN, SUFFIX


@pytest.fixture
def sink() -> MetricSink:
    """Provide a metric sink with its own private registry."""
    return MetricSink()


@pytest.fixture
def directory() -> InMemoryDirectory:
    """Provide an empty in-memory directory."""
    return InMemoryDirectory()


@pytest.fixture
def monitor_directory(directory: InMemoryDirectory) -> InMemoryDirectory:
    """In-memory directory populated with a small cn=Monitor subtree.

    Holds the cn=Monitor root (text info), one numeric monitored object, one
    counter object, two operations, and a replicated suffix carrying LOCAL_CSN.
    """
    directory.add_entry(
        LOCAL,
        "cn=Monitor",
        ("monitorServer", "monitoredObject"),
        monitoredInfo="OpenLDAP: slapd 2.4",
    )
    directory.add_entry(
        LOCAL,
        "cn=Max File Descriptors,cn=Connections,cn=Monitor",
        ("monitoredObject",),
        monitoredInfo="1024",
    )
    directory.add_entry(
        LOCAL,
        "cn=Total,cn=Connections,cn=Monitor",
        ("monitorCounterObject",),
        monitorCounter="1000",
    )
    directory.add_entry(
        LOCAL,
        "cn=Bind,cn=Operations,cn=Monitor",
        ("monitorOperation",),
        monitorOpCompleted="7",
    )
    directory.add_entry(
        LOCAL,
        "cn=Search,cn=Operations,cn=Monitor",
        ("monitorOperation",),
        monitorOpCompleted="42",
    )
    directory.add_entry(
        LOCAL,
        SUFFIX,
        ("dcObject", "organization"),
        contextCSN=LOCAL_CSN,
    )
    return directory


@pytest.fixture
def make_config() -> Callable[..., ScraperConfig]:
    """Factory fixture for scraper configs pointing at LOCAL.

    Usage:
        config = make_config(sync=(SUFFIX,), sync_time_delta=True)
    """

    def _make(**overrides: object) -> ScraperConfig:
        settings: dict[str, object] = {
            "net": "tcp",
            "addr": "localhost:389",
            "interval": 0.05,
        }
        settings.update(overrides)
        return ScraperConfig(**settings)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            app = create_asgi_app(registry)
            async with asgi_test_client(app) as client:
                response = await client.get("/metrics")
    """

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client
