"""
Upstream Server Pool

Hands out one upstream host per in-flight download and takes it back when
the download settles. The most recently returned host is handed out first.
"""

import logging
from typing import List

logger = logging.getLogger(__name__)


class ServerPool:
    """Pool of interchangeable upstream hosts."""

    def __init__(self, servers: List[str]):
        if not servers:
            raise ValueError("ServerPool needs at least one server")
        self._known = list(servers)
        self._available = list(servers)
        self._fallbacks = 0  # fallback hand-outs not yet returned

    @property
    def size(self) -> int:
        """Number of known servers (not the number currently available)."""
        return len(self._known)

    @property
    def available(self) -> int:
        return len(self._available)

    def acquire(self) -> str:
        """
        Remove and return a server.

        If the pool is exhausted the first known server is returned as a
        fallback; this only happens if more fetches run than the pool holds.
        """
        if not self._available:
            logger.error("didn't expect to find 0 servers available")
            self._fallbacks += 1
            return self._known[0]
        return self._available.pop()

    def release(self, server: str):
        # Fallback hand-outs were never removed from the pool
        if self._fallbacks and server == self._known[0]:
            self._fallbacks -= 1
            return
        if len(self._available) >= len(self._known):
            logger.warning(f"Server pool already full, not returning {server}")
            return
        self._available.append(server)
