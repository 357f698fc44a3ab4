import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request

from exceptions import RateLimitError
from utils.logging import get_logger

logger = get_logger("rate_limiter")

AUTH_POLICY = "auth"
COMPRESSION_POLICY = "compression"


@dataclass(frozen=True)
class RatePolicy:
    """At most `max_requests` per fixed window of `window_seconds` per client."""

    name: str
    max_requests: int
    window_seconds: float
    message: str


def build_policies(settings) -> dict[str, RatePolicy]:
    return {
        AUTH_POLICY: RatePolicy(
            name=AUTH_POLICY,
            max_requests=settings.auth_rate_limit_max_requests,
            window_seconds=settings.auth_rate_limit_window_ms / 1000,
            message="Too many authentication attempts from this IP, please try again later.",
        ),
        COMPRESSION_POLICY: RatePolicy(
            name=COMPRESSION_POLICY,
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_ms / 1000,
            message="Too many compression requests from this IP, please try again later.",
        ),
    }


class InMemoryRateLimiter:
    """Fixed-window counters keyed by (policy, client address).

    State belongs to one application instance.
    """

    PRUNE_THRESHOLD = 10_000

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        # (policy, client) -> (window start, count, window length)
        self._windows: dict[tuple[str, str], tuple[float, int, float]] = {}
        self._next_prune = float("-inf")

    async def hit(self, policy: RatePolicy, client: str) -> tuple[int, float]:
        """Count one request. Returns (count in window, seconds until reset)."""
        now = self._clock()
        key = (policy.name, client)
        started, count, _ = self._windows.get(key, (now, 0, policy.window_seconds))
        if now - started >= policy.window_seconds:
            started, count = now, 0
        count += 1
        self._windows[key] = (started, count, policy.window_seconds)

        # At most one sweep per window length, however many clients are tracked
        if len(self._windows) > self.PRUNE_THRESHOLD and now >= self._next_prune:
            self._prune(now)
            self._next_prune = now + policy.window_seconds

        return count, policy.window_seconds - (now - started)

    def _prune(self, now: float) -> None:
        self._windows = {
            key: entry
            for key, entry in self._windows.items()
            if now - entry[0] < entry[2]
        }

    async def close(self) -> None:
        self._windows.clear()


class RedisRateLimiter:
    """Fixed-window counters in Redis, shared between instances.

    Uses INCR + EXPIRE on a key per (policy, client, window index).
    """

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._redis = None

    async def get_redis(self):
        """Get or create async Redis connection."""
        if self._redis is None:
            import redis.asyncio as aioredis

            self._redis = aioredis.from_url(self._redis_url, decode_responses=True)
        return self._redis

    async def hit(self, policy: RatePolicy, client: str) -> tuple[int, float]:
        r = await self.get_redis()
        now = time.time()
        window = int(now // policy.window_seconds)
        key = f"rate:{policy.name}:{client}:{window}"

        pipe = r.pipeline()
        pipe.incr(key)
        pipe.expire(key, int(policy.window_seconds) + 1)
        results = await pipe.execute()

        return int(results[0]), policy.window_seconds - (now % policy.window_seconds)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.close()
            self._redis = None


def create_rate_limiter(redis_url: str):
    if redis_url:
        return RedisRateLimiter(redis_url)
    return InMemoryRateLimiter()


async def check_rate_limit(limiter, policy: RatePolicy, client: str) -> None:
    """Count the request against the policy.

    Fails open if the limiter backend (Redis) is unavailable.

    Raises:
        RateLimitError: Limit exceeded (429).
    """
    if policy.max_requests <= 0:
        return  # Unlimited

    try:
        count, reset_in = await limiter.hit(policy, client)
    except Exception:
        logger.warning(
            "Rate limiter unavailable, allowing request",
            extra={"context": {"policy": policy.name}},
        )
        return

    if count > policy.max_requests:
        logger.info(
            "Rate limit exceeded",
            extra={"context": {"policy": policy.name, "client": client}},
        )
        raise RateLimitError(policy.message, retry_after=max(1, int(reset_in)))


def client_ip(request: Request) -> str:
    """Extract client IP from X-Forwarded-For or direct connection."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimit:
    """Route dependency enforcing one named policy.

    Usage: `dependencies=[Depends(RateLimit(AUTH_POLICY))]`.
    """

    def __init__(self, policy_name: str):
        self.policy_name = policy_name

    async def __call__(self, request: Request) -> None:
        state = request.app.state
        policy = state.rate_policies[self.policy_name]
        await check_rate_limit(state.rate_limiter, policy, client_ip(request))
