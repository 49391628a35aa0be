"""
Fixed-window rate limiting for the public auth endpoints.

Counters live in process memory and are pushed to Redis every few seconds, so
several API workers converge on one count per client. When Redis cannot be
reached the limiter keeps working from memory and retries the connection later.
"""

import logging
import os
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request

from .auth import get_client_ip

logger = logging.getLogger(__name__)

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

REDIS_SYNC_SECONDS = 10
PRUNE_EVERY_SECONDS = 60
REDIS_RETRY_SECONDS = 60

_redis: Optional[redis.Redis] = None
_redis_down_until = 0.0

_windows: dict[str, "Window"] = {}
_windows_lock = Lock()
_last_prune = 0


class Window:
    __slots__ = ("count", "resets_at", "synced_at")

    def __init__(self, resets_at: int, count: int = 0, synced_at: int = 0):
        self.count = count
        self.resets_at = resets_at
        self.synced_at = synced_at


def get_redis_client() -> redis.Redis:
    """Connect (once) using REDIS_URL, or REDIS_HOST/PORT/PASSWORD/DB/SSL"""
    global _redis
    if _redis is not None:
        return _redis

    options = {
        "decode_responses": True,
        "socket_connect_timeout": 5,
        "socket_timeout": 5,
        "retry_on_timeout": True,
        "health_check_interval": 30,
    }
    url = os.getenv("REDIS_URL")
    if url:
        client = redis.from_url(url, **options)
    else:
        client = redis.Redis(
            host=os.getenv("REDIS_HOST", "localhost"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            password=os.getenv("REDIS_PASSWORD"),
            db=int(os.getenv("REDIS_DB", "0")),
            ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
            **options,
        )

    client.ping()
    _redis = client
    logger.info("✅ Redis connected for rate limiting")
    return _redis


def _shared_store() -> Optional[redis.Redis]:
    global _redis_down_until
    if time.time() < _redis_down_until:
        return None
    try:
        return get_redis_client()
    except Exception as e:
        logger.warning(f"⚠️ Redis unavailable, counting requests locally: {e}")
        _redis_down_until = time.time() + REDIS_RETRY_SECONDS
        return None


def _prune(now: int) -> None:
    global _last_prune
    if now - _last_prune < PRUNE_EVERY_SECONDS:
        return
    stale = [key for key, window in _windows.items() if now >= window.resets_at]
    for key in stale:
        del _windows[key]
    _last_prune = now


def _load_window(key: str, now: int, window_seconds: int, store: Optional[redis.Redis]) -> Window:
    window = Window(resets_at=now + window_seconds, synced_at=now)
    if store is None:
        return window
    try:
        count, ttl = store.get(key), store.ttl(key)
        if count and ttl > 0:
            window.count = int(count)
            window.resets_at = now + ttl
    except redis.RedisError as e:
        logger.warning(f"⚠️ Could not read rate window {key} from Redis: {e}")
    return window


def check_rate_limit(
    key: str, limit: int, window_seconds: int, store: Optional[redis.Redis] = None
) -> tuple[bool, int, int]:
    """Count one hit against `key`.

    Returns (allowed, hits in the current window, seconds until it resets).
    A rejected hit is not counted.
    """
    now = int(time.time())
    with _windows_lock:
        _prune(now)
        window = _windows.get(key)
        if window is None:
            window = _windows[key] = _load_window(key, now, window_seconds, store)
        elif now >= window.resets_at:
            window.count, window.resets_at, window.synced_at = 0, now + window_seconds, 0

        allowed = window.count < limit
        if allowed:
            window.count += 1

        if store is not None and now - window.synced_at >= REDIS_SYNC_SECONDS:
            try:
                store.set(key, window.count, ex=window_seconds)
                window.synced_at = now
            except redis.RedisError as e:
                logger.warning(f"⚠️ Could not push rate window {key} to Redis: {e}")

        return allowed, window.count, max(0, window.resets_at - now)


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit", per_ip: bool = True):
    """Build a FastAPI dependency allowing `limit` hits per `window_seconds`, keyed by client IP"""

    async def enforce(request: Request) -> None:
        if not RATE_LIMIT_ENABLED:
            return
        key = f"{key_prefix}:{get_client_ip(request) if per_ip else 'global'}"
        allowed, used, retry_after = check_rate_limit(key, limit, window_seconds, _shared_store())
        if not allowed:
            logger.warning(f"🚫 Rate limit hit for {key} ({used}/{limit})")
            raise HTTPException(
                status_code=429,
                detail={
                    "message": f"Too many requests. Try again in {retry_after} seconds.",
                    "retry_after": retry_after,
                    "limit": limit,
                    "window_seconds": window_seconds,
                },
                headers={"Retry-After": str(retry_after)},
            )
        request.state.rate_limit_remaining = limit - used

    return enforce
