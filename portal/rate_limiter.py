"""
Fixed-window rate limiting for portal endpoints

Windows are counted in process memory and mirrored to Redis every few seconds
so API workers behind the same Redis share roughly one budget. Without
REDIS_URL the limiter is memory-only; Redis errors never block a request.

Limits are keyed by scope:
- "ip": anonymous endpoints (contract signing links)
- "user": authenticated endpoints, keyed by a hash of the bearer token
- "global": one shared budget per endpoint
"""

import hashlib
import logging
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request

from .config import REDIS_URL

logger = logging.getLogger(__name__)

KEY_SCOPES = ("ip", "user", "global")
REDIS_SYNC_SECONDS = 10
PRUNE_EVERY_SECONDS = 60

# {key: {"count": int, "reset_at": int, "synced_at": int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()
_redis: Optional[redis.Redis] = None
_last_prune = 0


def get_redis_client() -> Optional[redis.Redis]:
    """Lazily connect to Redis; None means memory-only mode"""
    global _redis
    if _redis is None and REDIS_URL:
        logger.info("🔄 Connecting rate limiter to Redis")
        _redis = redis.from_url(
            REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
    return _redis


def _prune(now: int) -> None:
    global _last_prune
    if now - _last_prune < PRUNE_EVERY_SECONDS:
        return
    stale = [key for key, window in memory_cache.items() if now >= window["reset_at"]]
    for key in stale:
        del memory_cache[key]
    _last_prune = now


def _load_window(key: str, window_seconds: int, now: int, client: Optional[redis.Redis]) -> dict:
    window = {"count": 0, "reset_at": now + window_seconds, "synced_at": 0}
    if client is None:
        return window
    try:
        count, ttl = client.get(key), client.ttl(key)
    except redis.RedisError as e:
        logger.warning(f"⚠️ Rate limit window for {key} not loaded from Redis: {e}")
        return window
    if count and ttl > 0:
        window = {"count": int(count), "reset_at": now + ttl, "synced_at": now}
    return window


def hit(key: str, limit: int, window_seconds: int, client: Optional[redis.Redis] = None) -> tuple[bool, int, int]:
    """
    Count one request against key.

    Returns (allowed, count, seconds_until_reset).
    """
    now = int(time.time())
    with cache_lock:
        _prune(now)
        window = memory_cache.get(key)
        if window is None:
            window = memory_cache[key] = _load_window(key, window_seconds, now, client)
        elif now >= window["reset_at"]:
            window.update(count=0, reset_at=now + window_seconds, synced_at=0)

        allowed = window["count"] < limit
        if allowed:
            window["count"] += 1

        if client is not None and now - window["synced_at"] >= REDIS_SYNC_SECONDS:
            try:
                client.set(key, window["count"], ex=max(1, window["reset_at"] - now))
                window["synced_at"] = now
            except redis.RedisError as e:
                logger.warning(f"⚠️ Rate limit window for {key} not synced to Redis: {e}")

        return allowed, window["count"], max(0, window["reset_at"] - now)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def request_key(request: Request, prefix: str, scope: str) -> str:
    if scope == "global":
        return f"{prefix}:global"
    if scope == "user":
        token = request.headers.get("Authorization", "")
        if token:
            return f"{prefix}:user:{hashlib.sha256(token.encode()).hexdigest()[:24]}"
    return f"{prefix}:ip:{client_ip(request)}"


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str, scope: str = "ip"):
    """
    Build a FastAPI dependency enforcing limit requests per window.

        rate_limit_sign = create_rate_limiter(10, 60, "contract_sign")

        @router.post("/sign")
        async def sign(..., _: None = Depends(rate_limit_sign)):
    """
    if scope not in KEY_SCOPES:
        raise ValueError(f"Unknown rate limit scope: {scope}")

    async def enforce(request: Request) -> None:
        key = request_key(request, key_prefix, scope)
        allowed, count, retry_after = hit(key, limit, window_seconds, get_redis_client())
        if not allowed:
            logger.warning(f"🚫 Rate limit hit for {key_prefix} ({count}/{limit} in {window_seconds}s)")
            raise HTTPException(
                status_code=429,
                detail={
                    "message": f"Too many requests. Limit is {limit} per {window_seconds} seconds.",
                    "retry_after": retry_after,
                },
                headers={"Retry-After": str(retry_after)},
            )

    return enforce
