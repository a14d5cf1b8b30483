"""Blocking HTTP fetcher with fixed-delay retries and optional proxying."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import httpx
from tenacity import RetryError

from storeparser.antibot import ProxyEndpoint, ProxyPool, RetryPolicy
from storeparser.errors import FetchFailedError, NonSuccessStatusError, TransportError

DEFAULT_TIMEOUT = 20.0
LOGGER = logging.getLogger(__name__)

# Failures raised before the request left the machine; not counted as sent.
_UNSENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.ProxyError)

# Requests that can never be sent as built; never counted, never retried.
_INVALID_REQUEST_ERRORS = (httpx.InvalidURL, httpx.UnsupportedProtocol, httpx.LocalProtocolError)

ClientFactory = Callable[[Optional[ProxyEndpoint]], httpx.Client]


@dataclass
class FetchResult:
    """Result of one fetch call (all of its attempts)."""

    url: str
    success: bool
    response: Optional[httpx.Response] = None
    requests: int = 0
    error: Optional[str] = None
    proxy_used: Optional[str] = None

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None

    def require(self) -> httpx.Response:
        """Return the successful response or raise ``FetchFailedError``."""
        if not self.success or self.response is None:
            raise FetchFailedError(self)
        return self.response


class ResilientFetcher:
    """GET with spoofed browser headers, a retry policy and optional proxy."""

    def __init__(
        self,
        policy: RetryPolicy,
        headers: Dict[str, str],
        *,
        proxy_pool: Optional[ProxyPool] = None,
        timeout: float = DEFAULT_TIMEOUT,
        client_factory: Optional[ClientFactory] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Initialize fetcher.

        Parameters
        ----------
        policy : RetryPolicy
            Attempt budget and pause between attempts
        headers : dict
            Headers attached to every attempt
        proxy_pool : ProxyPool, optional
            Pool used when a fetch asks for a proxy
        timeout : float
            Per-request timeout in seconds
        client_factory : callable, optional
            Builds the ``httpx.Client`` for one fetch call from the chosen proxy
        rng : random.Random, optional
            Source of randomness for proxy selection
        """
        self.policy = policy
        self.headers = dict(headers)
        self.proxy_pool = proxy_pool or ProxyPool()
        self.timeout = timeout
        self.client_factory = client_factory or self._default_client
        self.rng = rng

    def _default_client(self, proxy: Optional[ProxyEndpoint]) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            proxy=proxy.url if proxy else None,
        )

    def fetch(
        self,
        url: str,
        max_attempts: Optional[int] = None,
        use_proxy: bool = False,
    ) -> FetchResult:
        """Fetch ``url`` until a 200 arrives or the attempts run out.

        One proxy is chosen per call and reused by all of its attempts. When
        every attempt fails the result is unsuccessful but still carries the
        last response obtained, if any.
        A URL that cannot be requested at all (invalid, unsupported scheme)
        fails on the first attempt without counting a request.

        Raises
        ------
        EmptyPoolError
            If ``use_proxy`` is set and the pool is empty
        """
        proxy = self.proxy_pool.pick(self.rng) if use_proxy else None
        proxy_used = str(proxy) if proxy else None
        last_response: Optional[httpx.Response] = None
        sent = 0

        LOGGER.debug("Fetching %s (proxy=%s)", url, proxy_used or "direct")

        with self.client_factory(proxy) as client:
            try:
                for attempt in self.policy.retrying(max_attempts):
                    with attempt:
                        number = attempt.retry_state.attempt_number
                        try:
                            response = client.get(url, headers=self.headers)
                        except _INVALID_REQUEST_ERRORS:
                            raise
                        except _UNSENT_ERRORS as exc:
                            LOGGER.warning("Attempt %d for %s could not connect: %s", number, url, exc)
                            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
                        except httpx.TransportError as exc:
                            sent += 1
                            LOGGER.warning("Attempt %d for %s failed: %s", number, url, exc)
                            raise TransportError(f"{type(exc).__name__}: {exc}") from exc

                        sent += 1
                        last_response = response
                        if not self.policy.is_success(response.status_code):
                            LOGGER.warning(
                                "Attempt %d for %s returned HTTP %d",
                                number,
                                url,
                                response.status_code,
                            )
                            raise NonSuccessStatusError(response.status_code, url)
            except RetryError as exc:
                error = exc.last_attempt.exception()
                LOGGER.error("Giving up on %s after %d request(s): %s", url, sent, error)
                return FetchResult(
                    url=url,
                    success=False,
                    response=last_response,
                    requests=sent,
                    error=str(error),
                    proxy_used=proxy_used,
                )
            except _INVALID_REQUEST_ERRORS as exc:
                LOGGER.error("Cannot request %s: %s", url, exc)
                return FetchResult(
                    url=url,
                    success=False,
                    requests=sent,
                    error=f"{type(exc).__name__}: {exc}",
                    proxy_used=proxy_used,
                )

        LOGGER.debug("Fetched %s (status=%s, requests=%d)", url, last_response.status_code, sent)
        return FetchResult(
            url=url,
            success=True,
            response=last_response,
            requests=sent,
            proxy_used=proxy_used,
        )
