"""
Fixed-window rate limiting per client IP and route.

Limits are configured per "METHOD:/path" prefix (see Settings.RATE_LIMITS);
the longest matching prefix wins, otherwise "default" applies. All requests
matching one configured prefix share a bucket, so PATCH /registrations/a and
PATCH /registrations/b count together.

The counter store is pluggable: in-process for a single worker, Redis
(INCR + EXPIRE) when several workers share the limits. A failing store lets
the request through.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import redis.asyncio as redis

from eventdesk.core.exceptions import RateLimited
from eventdesk.core.logging import get_logger
from eventdesk.core.metrics import rate_limit_rejections, rate_limit_store_errors

logger = get_logger(__name__)

DEFAULT_KEY = "default"


class RateLimitStore(Protocol):
    async def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        """Count one request in the current window. Returns (count, seconds until reset)."""
        ...


class InMemoryRateLimitStore:

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._windows: dict[str, tuple[float, int]] = {}

    async def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        now = self.clock()
        reset_at, count = self._windows.get(key, (0.0, 0))
        if reset_at <= now:
            self._purge(now)
            reset_at, count = now + window_seconds, 0
        count += 1
        self._windows[key] = (reset_at, count)
        return count, max(1, int(reset_at - now + 0.999))

    def _purge(self, now: float) -> None:
        expired = [k for k, (reset_at, _) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]


class RedisRateLimitStore:

    def __init__(self, client: redis.Redis, prefix: str = "ratelimit:"):
        self.client = client
        self.prefix = prefix

    async def hit(self, key: str, window_seconds: int) -> tuple[int, int]:
        name = self.prefix + key
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(name)
            pipe.ttl(name)
            count, ttl = await pipe.execute()
        if count == 1 or ttl < 0:
            await self.client.expire(name, window_seconds)
            ttl = window_seconds
        return int(count), int(ttl)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int


class RateLimiter:

    def __init__(self, store: RateLimitStore, limits: dict[str, int], window_seconds: int = 60):
        self.store = store
        self.limits = limits
        self.window_seconds = window_seconds
        # Longest prefix first
        self._routes = sorted(
            (k for k in limits if k != DEFAULT_KEY),
            key=len,
            reverse=True,
        )

    def route_key(self, method: str, path: str) -> str:
        candidate = f"{method.upper()}:{path.rstrip('/')}"
        for route in self._routes:
            if candidate == route or candidate.startswith(route + "/"):
                return route
        return DEFAULT_KEY

    def limit_for(self, route: str) -> int:
        return self.limits.get(route, self.limits.get(DEFAULT_KEY, 60))

    async def check(self, client_ip: str, method: str, path: str) -> RateLimitDecision:
        route = self.route_key(method, path)
        if route == DEFAULT_KEY:
            # Unconfigured routes are bucketed by their own method and path
            route_bucket = f"{method.upper()}:{path}"
        else:
            route_bucket = route
        limit = self.limit_for(route)

        try:
            count, reset_in = await self.store.hit(f"{client_ip}:{route_bucket}", self.window_seconds)
        except (redis.RedisError, OSError) as e:
            rate_limit_store_errors.inc()
            logger.warning("rate_limit_store_failed", error=str(e), route=route)
            return RateLimitDecision(allowed=True, limit=limit, remaining=limit, retry_after=0)

        if count > limit:
            return RateLimitDecision(allowed=False, limit=limit, remaining=0, retry_after=reset_in)
        return RateLimitDecision(allowed=True, limit=limit, remaining=limit - count, retry_after=0)

    async def enforce(self, client_ip: str, method: str, path: str) -> RateLimitDecision:
        decision = await self.check(client_ip, method, path)
        if not decision.allowed:
            route = self.route_key(method, path)
            rate_limit_rejections.labels(route=route).inc()
            logger.warning("rate_limited", client_ip=client_ip, route=route, retry_after=decision.retry_after)
            raise RateLimited(
                retry_after=decision.retry_after,
                details={"limit": decision.limit, "window_seconds": self.window_seconds},
            )
        return decision


def client_ip_from(headers, fallback: Optional[str]) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return fallback or "unknown"
