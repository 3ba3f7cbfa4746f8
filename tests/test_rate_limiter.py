"""
Tests for the fixed-window rate limiter.
"""

import asyncio
from types import SimpleNamespace

import pytest
import redis
from fastapi import HTTPException

from portal import rate_limiter


class BrokenRedis:
    def get(self, key):
        raise redis.ConnectionError("down")

    def ttl(self, key):
        raise redis.ConnectionError("down")

    def set(self, key, value, ex=None):
        raise redis.ConnectionError("down")


class FakeRedis:
    def __init__(self, count=None, ttl=-2):
        self.store = {}
        self.count = count
        self._ttl = ttl

    def get(self, key):
        return self.count

    def ttl(self, key):
        return self._ttl

    def set(self, key, value, ex=None):
        self.store[key] = (value, ex)


def _request(headers=None, host="10.0.0.1"):
    return SimpleNamespace(headers=headers or {}, client=SimpleNamespace(host=host))


class TestWindow:
    """Tests for counting requests in a window."""

    def test_allows_until_limit(self):
        results = [rate_limiter.hit("k", 3, 60)[0] for _ in range(4)]
        assert results == [True, True, True, False]

    def test_reports_seconds_until_reset(self):
        allowed, count, retry_after = rate_limiter.hit("k", 3, 60)
        assert (allowed, count) == (True, 1)
        assert 0 < retry_after <= 60

    def test_redis_errors_fail_open(self):
        assert rate_limiter.hit("k", 1, 60, BrokenRedis())[0] is True

    def test_window_resumes_from_redis(self):
        client = FakeRedis(count="5", ttl=30)
        allowed, count, _ = rate_limiter.hit("k", 5, 60, client)
        assert allowed is False
        assert count == 5

    def test_counts_are_mirrored_to_redis(self):
        client = FakeRedis()
        rate_limiter.hit("k", 5, 60, client)
        value, ex = client.store["k"]
        assert value == 1
        assert 0 < ex <= 60


class TestKeys:
    """Tests for building limiter keys."""

    def test_ip_scope_prefers_forwarded_header(self):
        request = _request({"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})
        assert rate_limiter.request_key(request, "sign", "ip") == "sign:ip:203.0.113.9"

    def test_user_scope_hashes_token(self):
        key = rate_limiter.request_key(_request({"Authorization": "Bearer abc"}), "upload", "user")
        assert key.startswith("upload:user:")
        assert "abc" not in key

    def test_user_scope_without_token_falls_back_to_ip(self):
        assert rate_limiter.request_key(_request(), "upload", "user") == "upload:ip:10.0.0.1"

    def test_unknown_scope_rejected(self):
        with pytest.raises(ValueError):
            rate_limiter.create_rate_limiter(1, 60, "x", scope="tenant")


class TestDependency:
    """Tests for the FastAPI dependency."""

    def test_raises_429_with_retry_after(self):
        enforce = rate_limiter.create_rate_limiter(1, 60, "sign")
        asyncio.run(enforce(_request()))
        with pytest.raises(HTTPException) as exc:
            asyncio.run(enforce(_request()))
        assert exc.value.status_code == 429
        assert int(exc.value.headers["Retry-After"]) > 0

    def test_separate_users_have_separate_budgets(self):
        enforce = rate_limiter.create_rate_limiter(1, 60, "send", scope="user")
        asyncio.run(enforce(_request({"Authorization": "Bearer one"})))
        asyncio.run(enforce(_request({"Authorization": "Bearer two"})))
