"""Per-client fixed-window rate limiting backed by Redis."""

from time import time

from fastapi import Request

from payroute.common.errors import RateLimitExceeded
from payroute.common.logging import logger
from payroute.common.metrics import rate_limited_total


class RateLimiter:
    """Counts requests per client address in fixed windows.

    Counters live in Redis under `ratelimit:<client>:<window>` and expire with
    the window, so no cleanup is needed.
    """

    def __init__(
        self,
        redis_client,
        max_requests: int,
        window_seconds: int,
        clock=time,
        service_name: str = "payroute",
    ) -> None:
        self.redis = redis_client
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self.service_name = service_name

    def _key(self, client: str) -> str:
        window = int(self.clock() // self.window_seconds)
        return f"ratelimit:{client}:{window}"

    async def hit(self, client: str) -> None:
        """Record one request and raise `RateLimitExceeded` past the limit."""

        key = self._key(client)
        try:
            count = await self.redis.incr(key)
            if count == 1:
                await self.redis.expire(key, self.window_seconds)
        except Exception as exc:
            # Fail open when Redis is unavailable.
            logger.warning("rate_limit_store_failed client=%s error=%s", client, exc)
            return
        if count > self.max_requests:
            rate_limited_total.labels(service=self.service_name).inc()
            logger.warning("rate_limit_exceeded client=%s count=%s", client, count)
            raise RateLimitExceeded()


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency applying the app's limiter to the caller address."""

    limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return
    client = request.client.host if request.client else "unknown"
    await limiter.hit(client)
