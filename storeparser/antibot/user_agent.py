"""User-agent pool and spoofed browser headers."""
from __future__ import annotations

import random
from typing import Dict, List, Optional

DEFAULT_ACCEPT = "application/json, text/plain, */*"
DEFAULT_ACCEPT_ENCODING = "gzip, deflate, br"
DEFAULT_ACCEPT_LANGUAGE = "uk-UA,uk;q=0.9,en-US;q=0.8,en;q=0.7"
DEFAULT_ORIGIN = "https://www.aboutyou.de"


class UserAgentPool:
    """Pool of realistic user-agent strings."""

    DESKTOP_USER_AGENTS: List[str] = [
        # Chrome on Windows
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
        # Chrome on macOS
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        # Chrome on Linux
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        # Firefox
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:124.0) Gecko/20100101 Firefox/124.0",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:124.0) Gecko/20100101 Firefox/124.0",
        # Safari on macOS
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    ]

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def get_desktop(self) -> str:
        """Get a random desktop user-agent."""
        return self._rng.choice(self.DESKTOP_USER_AGENTS)

    def resolve(self, configured: Optional[str]) -> str:
        """Return the configured agent, or a random desktop one when unset."""
        if configured and configured.strip():
            return configured.strip()
        return self.get_desktop()


def browser_headers(
    user_agent: str,
    *,
    origin: str = DEFAULT_ORIGIN,
    referer: Optional[str] = None,
    accept_language: str = DEFAULT_ACCEPT_LANGUAGE,
) -> Dict[str, str]:
    """Headers imitating a regular browser request from the storefront itself.

    Parameters
    ----------
    user_agent : str
        User-agent string sent with every attempt
    origin : str
        Value of the ``origin`` header
    referer : str, optional
        Value of the ``referer`` header (defaults to ``origin``)
    accept_language : str
        Value of the ``accept-language`` header

    Returns
    -------
    dict
        Lower-case header names mapped to values
    """
    return {
        "accept": DEFAULT_ACCEPT,
        "accept-encoding": DEFAULT_ACCEPT_ENCODING,
        "accept-language": accept_language,
        "origin": origin,
        "referer": referer or origin,
        "user-agent": user_agent,
    }
