"""
In-memory sliding-window rate limiter for the /api routes.

Each client key (the caller's IP address) may make at most `max_requests`
requests within any `window_seconds` span. Counters live in process memory,
so every worker enforces its own budget.
"""

import logging
import os
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
RATE_LIMIT_WINDOW_MS = int(os.getenv("RATE_LIMIT_WINDOW_MS", str(15 * 60 * 1000)))
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    retry_after: float


class RateLimiter:
    def __init__(
        self,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        window_seconds: float = RATE_LIMIT_WINDOW_MS / 1000,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock or time.monotonic
        self.windows: Dict[str, List[float]] = defaultdict(list)
        self.lock = threading.Lock()

    def check(self, key: str) -> RateLimitResult:
        """Record one request for `key` unless it is over budget."""
        now = self.clock()
        cutoff = now - self.window_seconds

        with self.lock:
            hits = [ts for ts in self.windows[key] if ts > cutoff]
            self.windows[key] = hits

            if len(hits) < self.max_requests:
                hits.append(now)
                return RateLimitResult(
                    allowed=True,
                    remaining=self.max_requests - len(hits),
                    limit=self.max_requests,
                    retry_after=0.0,
                )

            return RateLimitResult(
                allowed=False,
                remaining=0,
                limit=self.max_requests,
                retry_after=max(hits[0] + self.window_seconds - now, 0.0),
            )

    def reset(self, key: Optional[str] = None) -> None:
        with self.lock:
            if key is None:
                self.windows.clear()
            else:
                self.windows.pop(key, None)


def build_rate_limiter() -> Optional[RateLimiter]:
    if not RATE_LIMIT_ENABLED:
        logger.info("Rate limiting disabled")
        return None
    logger.info(
        f"Rate limiting /api: {RATE_LIMIT_MAX_REQUESTS} requests per {RATE_LIMIT_WINDOW_MS}ms"
    )
    return RateLimiter()
