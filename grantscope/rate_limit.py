"""
Fixed-window rate limiter for the /api routes.

Each client key (first X-Forwarded-For address plus request path) gets
``quota`` requests per ``window`` seconds. Stale entries are purged every
``purge_interval`` seconds. Limiter faults never block a request.
"""
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from flask import current_app, g, jsonify, request

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"


@dataclass
class RateLimitEntry:
    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: float = 0.0

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at * 1000)),
        }


def client_key(forwarded_for: Optional[str], path: str) -> str:
    ip = ""
    if forwarded_for:
        ip = forwarded_for.split(",")[0].strip()
    return f"{ip or ANONYMOUS}:{path}"


class RateLimiter:
    def __init__(
        self,
        quota: int = 10,
        window: float = 60,
        purge_interval: float = 5 * 60,
        prefix: str = "/api",
        clock: Callable[[], float] = time.time,
    ):
        self.quota = quota
        self.window = window
        self.purge_interval = purge_interval
        self.prefix = prefix
        self.clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._last_purge = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def admit(self, key: str, now: Optional[float] = None) -> RateLimitDecision:
        now = self.clock() if now is None else now
        if now - self._last_purge >= self.purge_interval:
            self.purge(now)

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = RateLimitEntry(count=0, window_start=now)
                self._entries[key] = entry
            if now - entry.window_start > self.window:
                entry.count = 0
                entry.window_start = now
            entry.count += 1
            count, window_start = entry.count, entry.window_start

        reset_at = window_start + self.window
        if count > self.quota:
            return RateLimitDecision(
                allowed=False,
                limit=self.quota,
                remaining=0,
                reset_at=reset_at,
                retry_after=max(reset_at - now, 0.0),
            )
        return RateLimitDecision(
            allowed=True,
            limit=self.quota,
            remaining=max(self.quota - count, 0),
            reset_at=reset_at,
        )

    def purge(self, now: Optional[float] = None) -> int:
        """Drop entries whose window has elapsed. Returns how many were removed."""
        now = self.clock() if now is None else now
        with self._lock:
            stale = [k for k, e in self._entries.items() if now - e.window_start > self.window]
            for k in stale:
                del self._entries[k]
            self._last_purge = now
        if stale:
            logger.debug("Purged %d rate limit entries", len(stale))
        return len(stale)

    def applies_to(self, path: str) -> bool:
        return (path or "").startswith(self.prefix)

    def init_app(self, app) -> None:
        app.extensions["rate_limiter"] = self
        app.before_request(_check_rate_limit)
        app.after_request(_add_rate_limit_headers)


def _check_rate_limit():
    limiter = current_app.extensions.get("rate_limiter")
    if limiter is None or not limiter.applies_to(request.path):
        return None
    try:
        key = client_key(request.headers.get("X-Forwarded-For"), request.path)
        decision = limiter.admit(key)
    except Exception:
        current_app.logger.exception("Rate limiter failed, admitting request")
        return None

    g.rate_limit = decision
    if decision.allowed:
        return None

    current_app.logger.warning(f"Rate limit exceeded for {key}")
    resp = jsonify({"error": "Too many requests, please try again later"})
    resp.status_code = 429
    resp.headers["Retry-After"] = str(math.ceil(decision.retry_after))
    return resp


def _add_rate_limit_headers(response):
    decision = g.pop("rate_limit", None)
    if decision is not None:
        for name, value in decision.headers().items():
            response.headers[name] = value
    return response
