"""Scraper configuration."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import quote

_SCHEMES = {"tcp": "ldap", "tls": "ldaps", "unix": "ldapi"}

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def render_address(net: str, addr: str) -> str:
    """Render a transport kind and address as a directory URL.

    Args:
        net: "tcp", "tls" or "unix".
        addr: host:port, or a socket path for "unix".

    Raises:
        ValueError: If net is not a known transport.
    """
    try:
        scheme = _SCHEMES[net]
    except KeyError:
        raise ValueError(
            f"unknown transport {net!r}, expected one of {sorted(_SCHEMES)}"
        ) from None
    if net == "unix":
        addr = quote(addr, safe="")
    return f"{scheme}://{addr}"


def _split_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(";") if item.strip())


@dataclass(frozen=True)
class ScraperConfig:
    """Settings for the scrape engine.

    Attributes:
        net: Transport kind of the directory server ("tcp", "tls", "unix").
        addr: Address of the directory server.
        user: Bind DN; bind is skipped unless user and password are set.
        password: Bind password.
        interval: Seconds between scrape cycles.
        sync: Base DNs whose contextCSN is monitored.
        sync_time_delta: Publish replication delay against the primary.
        sync_master_addr: Address of the primary (same transport as addr).
        timeout: Connect/receive timeout in seconds.
    """

    net: str = "tcp"
    addr: str = "localhost:389"
    user: str = ""
    password: str = ""
    interval: float = 30.0
    sync: tuple[str, ...] = ()
    sync_time_delta: bool = False
    sync_master_addr: str = ""
    timeout: float = 10.0

    @property
    def address(self) -> str:
        return render_address(self.net, self.addr)

    @property
    def primary_address(self) -> str:
        return render_address(self.net, self.sync_master_addr)

    def validate(self) -> None:
        """Check the configuration for contradictions.

        Raises:
            ValueError: On a non-positive interval or timeout, an unknown
                transport, or delay checking without a primary address.
        """
        if self.interval <= 0:
            raise ValueError(f"interval must be positive, got {self.interval}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        render_address(self.net, self.addr)
        if self.sync_time_delta and not self.sync_master_addr:
            raise ValueError("sync_time_delta requires sync_master_addr")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ScraperConfig":
        """Build a configuration from LDAP_* environment variables.

        Unset variables keep the dataclass defaults.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            net=env.get("LDAP_NET", defaults.net),
            addr=env.get("LDAP_ADDR", defaults.addr),
            user=env.get("LDAP_USER", defaults.user),
            password=env.get("LDAP_PASS", defaults.password),
            interval=float(env.get("INTERVAL", defaults.interval)),
            sync=_split_list(env.get("REPLICATION_OBJECT", "")),
            sync_time_delta=env.get("LDAP_SYNC_TIME_DELTA", "").lower() in _TRUE_VALUES,
            sync_master_addr=env.get(
                "LDAP_SYNC_MASTER_ADDR", defaults.sync_master_addr
            ),
            timeout=float(env.get("LDAP_TIMEOUT", defaults.timeout)),
        )
