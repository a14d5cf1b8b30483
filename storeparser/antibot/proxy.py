"""Proxy pool loaded once from a ``host:port`` list."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple

from storeparser.errors import ConfigError, EmptyPoolError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxyEndpoint:
    """Single HTTP proxy endpoint."""

    host: str
    port: int

    @classmethod
    def parse(cls, line: str) -> ProxyEndpoint:
        """Parse proxy from ``host:port`` format."""
        parts = line.strip().split(":")
        if len(parts) != 2:
            raise ConfigError(f"proxy entry must be host:port, got {line!r}")
        host, port = parts[0].strip(), parts[1].strip()
        if not host or not port.isdigit():
            raise ConfigError(f"proxy entry must be host:port, got {line!r}")
        port_number = int(port)
        if not 0 < port_number < 65536:
            raise ConfigError(f"proxy port out of range in {line!r}")
        return cls(host=host, port=port_number)

    @property
    def url(self) -> str:
        """Convert to httpx proxy URL format."""
        return f"http://{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class ProxyPool:
    """Read-only set of proxies; ``pick`` draws one uniformly at random."""

    def __init__(self, endpoints: Iterable[ProxyEndpoint] = ()) -> None:
        self._endpoints: Tuple[ProxyEndpoint, ...] = tuple(endpoints)

    @classmethod
    def load(cls, lines: Iterable[str]) -> ProxyPool:
        """Build a pool from ``host:port`` lines.

        Blank lines and ``#`` comments are ignored; any other malformed line
        fails the whole load.

        Raises
        ------
        ConfigError
            If a line is not ``host:port`` with a numeric port
        """
        endpoints = []
        for line_num, line in enumerate(lines, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                endpoints.append(ProxyEndpoint.parse(line))
            except ConfigError as exc:
                raise ConfigError(f"proxy list line {line_num}: {exc}") from exc
        return cls(endpoints)

    @classmethod
    def from_file(cls, path: str | Path) -> ProxyPool:
        """Load proxy pool from file; a missing file gives an empty pool."""
        path = Path(path)
        if not path.exists():
            LOGGER.warning("No proxy list found at %s, proxy pool is empty", path)
            return cls()
        with open(path, encoding="utf-8") as f:
            pool = cls.load(f)
        LOGGER.info("Loaded %d proxies from %s", len(pool), path)
        return pool

    def pick(self, rng: Optional[random.Random] = None) -> ProxyEndpoint:
        """Get random proxy.

        Raises
        ------
        EmptyPoolError
            If the pool has no endpoints
        """
        if not self._endpoints:
            raise EmptyPoolError("proxy requested but the proxy pool is empty")
        return (rng or random).choice(self._endpoints)

    def __len__(self) -> int:
        return len(self._endpoints)

    def __iter__(self) -> Iterator[ProxyEndpoint]:
        return iter(self._endpoints)

    def __contains__(self, endpoint: object) -> bool:
        return endpoint in self._endpoints
