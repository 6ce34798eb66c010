"""Per-class fixed-window rate limiting.

Each request is classified into an endpoint class (``general``, ``write``,
``auth``, ``ai_generation``) with its own limit and window. The bucket key is
the caller's user id when a valid user token is presented, otherwise a hash of
the client address. Counters live in Redis when it is configured and in a
process-local table otherwise.
"""

from __future__ import annotations

import hashlib
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from tandem.auth.tokens import peek_user_id
from tandem.config import Settings, get_settings
from tandem.middleware.error_handler import error_body
from tandem.redis_client import get_redis, redis_available

# Paths exempt from rate limiting
_EXEMPT_PATHS = frozenset({"/health", "/ready"})

_WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
_AI_PREFIXES = ("suggest-", "generate-", "regenerate-", "assess-")


@dataclass(frozen=True)
class RateLimitRule:
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int


def rules_from_settings(settings: Settings) -> dict[str, RateLimitRule]:
    return {
        "general": RateLimitRule(settings.rate_limit_general, settings.rate_limit_general_window_seconds),
        "write": RateLimitRule(settings.rate_limit_write, settings.rate_limit_write_window_seconds),
        "auth": RateLimitRule(settings.rate_limit_auth, settings.rate_limit_auth_window_seconds),
        "ai_generation": RateLimitRule(
            settings.rate_limit_ai_generation, settings.rate_limit_ai_generation_window_seconds
        ),
    }


def classify_endpoint(method: str, path: str) -> str:
    """Map a request onto its endpoint class."""
    if path.rstrip("/") == "/api/admin/auth" and method == "POST":
        return "auth"
    if path.startswith("/api/admin/") and path.rsplit("/", 1)[-1].startswith(_AI_PREFIXES):
        return "ai_generation"
    if method in _WRITE_METHODS:
        return "write"
    return "general"


def client_address(request: Request) -> str:
    """Best-effort client address: first X-Forwarded-For hop, then X-Real-IP."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


def caller_key(request: Request) -> str:
    user_id = peek_user_id(request)
    if user_id:
        return f"user:{user_id}"
    digest = hashlib.sha256(client_address(request).encode()).hexdigest()[:16]
    return f"ip:{digest}"


class RateLimitStore:
    """Expiring counters, in Redis when available and in memory otherwise."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._memory: dict[str, tuple[int, float]] = {}
        self._clock = clock
        self._pruned_at = clock()

    def _prune(self, now: float) -> None:
        """Drop expired in-memory counters, at most once per second."""
        if now - self._pruned_at < 1:
            return
        self._pruned_at = now
        expired = [key for key, (_, expires_at) in self._memory.items() if expires_at <= now]
        for key in expired:
            del self._memory[key]

    async def incr(self, key: str, ttl_seconds: int) -> int:
        if redis_available():
            redis = get_redis()
            pipe = redis.pipeline()
            pipe.incr(key)
            pipe.expire(key, ttl_seconds + 1)
            results: list[Any] = await pipe.execute()
            return int(results[0])

        now = self._clock()
        self._prune(now)
        count, expires_at = self._memory.get(key, (0, 0.0))
        if expires_at <= now:
            count, expires_at = 0, now + ttl_seconds
        count += 1
        self._memory[key] = (count, expires_at)
        return count

    async def get(self, key: str) -> int:
        if redis_available():
            value = await get_redis().get(key)
            return int(value) if value else 0
        count, expires_at = self._memory.get(key, (0, 0.0))
        return count if expires_at > self._clock() else 0

    async def delete(self, key: str) -> None:
        if redis_available():
            await get_redis().delete(key)
            return
        self._memory.pop(key, None)

    async def hit(self, bucket: str, rule: RateLimitRule) -> RateDecision:
        now = time.time()
        window = int(now) // rule.window_seconds
        count = await self.incr(f"ratelimit:{bucket}:{window}", rule.window_seconds)
        retry_after = max(1, (window + 1) * rule.window_seconds - int(now))
        return RateDecision(
            allowed=count <= rule.limit,
            limit=rule.limit,
            remaining=max(0, rule.limit - count),
            retry_after=retry_after,
        )


def get_rate_limit_store(request: Request) -> RateLimitStore:
    store: RateLimitStore | None = getattr(request.app.state, "rate_limits", None)
    if store is None:
        store = RateLimitStore()
        request.app.state.rate_limits = store
    return store


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests per caller and endpoint class."""

    def __init__(self, app: Any, rules: dict[str, RateLimitRule] | None = None) -> None:  # noqa: ANN401
        super().__init__(app)
        self.rules = rules or rules_from_settings(get_settings())

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check rate limit, return 429 if exceeded."""
        if request.url.path in _EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        endpoint_class = classify_endpoint(request.method, request.url.path)
        rule = self.rules[endpoint_class]
        decision = await get_rate_limit_store(request).hit(f"{endpoint_class}:{caller_key(request)}", rule)

        if not decision.allowed:
            request.state.error_kind = "rate_limited"
            return JSONResponse(
                status_code=429,
                content=error_body("Rate limit exceeded. Try again later."),
                headers={
                    "Retry-After": str(decision.retry_after),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(decision.limit),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        return response
