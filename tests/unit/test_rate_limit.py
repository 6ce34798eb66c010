"""Unit tests for endpoint classification and the in-memory counter store."""

import pytest

from tandem.middleware.rate_limit import RateLimitRule, RateLimitStore, classify_endpoint


class TestClassifyEndpoint:
    def test_admin_login_is_auth(self):
        assert classify_endpoint("POST", "/api/admin/auth") == "auth"

    def test_admin_session_check_is_general(self):
        assert classify_endpoint("GET", "/api/admin/auth") == "general"

    def test_ai_routes(self):
        assert classify_endpoint("POST", "/api/admin/tandem/suggest-themes") == "ai_generation"
        assert classify_endpoint("POST", "/api/admin/tandem/regenerate-emoji-pair") == "ai_generation"
        assert classify_endpoint("POST", "/api/admin/cryptic/assess-difficulty") == "ai_generation"

    def test_writes(self):
        assert classify_endpoint("POST", "/api/puzzles/tandem/complete") == "write"
        assert classify_endpoint("DELETE", "/api/account/delete") == "write"

    def test_reads(self):
        assert classify_endpoint("GET", "/api/puzzles/tandem") == "general"


@pytest.mark.asyncio
class TestRateLimitStore:
    async def test_limit_enforced_within_window(self):
        store = RateLimitStore()
        rule = RateLimitRule(limit=2, window_seconds=60)
        first = await store.hit("user:u1:write", rule)
        second = await store.hit("user:u1:write", rule)
        third = await store.hit("user:u1:write", rule)
        assert first.allowed and second.allowed
        assert not third.allowed
        assert third.remaining == 0
        assert 1 <= third.retry_after <= 60

    async def test_buckets_are_independent(self):
        store = RateLimitStore()
        rule = RateLimitRule(limit=1, window_seconds=60)
        assert (await store.hit("user:a:write", rule)).allowed
        assert (await store.hit("user:b:write", rule)).allowed

    async def test_counter_get_and_delete(self):
        store = RateLimitStore()
        await store.incr("k", 60)
        await store.incr("k", 60)
        assert await store.get("k") == 2
        await store.delete("k")
        assert await store.get("k") == 0

    async def test_expired_counters_are_dropped(self):
        now = [1000.0]
        store = RateLimitStore(clock=lambda: now[0])
        for n in range(500):
            await store.incr(f"ratelimit:caller-{n}:1", 1)
        assert len(store._memory) == 500

        now[0] += 2.1
        await store.incr("ratelimit:late-caller:3", 1)
        assert list(store._memory) == ["ratelimit:late-caller:3"]
        assert await store.get("ratelimit:caller-0:1") == 0
