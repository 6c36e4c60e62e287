"""
User agent rotation for listing fetches.

Retries go out with a different desktop browser User-Agent string.
"""

from __future__ import annotations

from typing import List, Optional

DESKTOP_AGENTS: List[str] = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]


class UserAgentRotator:
    """
    Picks the User-Agent for each fetch attempt.

    Attempt 1 always uses the primary agent. Later attempts walk the
    browser pool in a fixed order when rotation is enabled, so a given
    attempt number always maps to the same agent.
    """

    def __init__(self, primary: str, *, rotate: bool = True, pool: Optional[List[str]] = None) -> None:
        self.primary = primary
        self.rotate = rotate
        self.pool = [agent for agent in (pool if pool is not None else DESKTOP_AGENTS) if agent != primary]

    def for_attempt(self, attempt: int) -> str:
        if attempt <= 1 or not self.rotate or not self.pool:
            return self.primary
        return self.pool[(attempt - 2) % len(self.pool)]
