"""Anti-bot helpers for storefront scraping.

- Proxy pool loaded from a ``host:port`` list
- User-agent pool and spoofed browser headers
- Fixed-delay retry policy
"""

from .proxy import ProxyEndpoint, ProxyPool
from .retry import RetryPolicy
from .user_agent import UserAgentPool, browser_headers

__all__ = [
    "ProxyEndpoint",
    "ProxyPool",
    "RetryPolicy",
    "UserAgentPool",
    "browser_headers",
]
