"""
Redis-backed fixed-window rate limiting for sensitive auth endpoints
"""

import logging
import os
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

from . import config

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client
    Supports a REDIS_URL (managed Redis) or individual host settings
    """
    global redis_client

    if redis_client is None:
        redis_url = os.getenv("REDIS_URL")
        common = {
            "decode_responses": True,
            "socket_connect_timeout": 5,
            "socket_timeout": 5,
            "retry_on_timeout": True,
        }
        if redis_url:
            masked_url = redis_url.split("@")[-1] if "@" in redis_url else "****"
            logger.info(f"📡 Using Redis URL connection: {masked_url}")
            client = redis.from_url(redis_url, **common)
        else:
            redis_host = os.getenv("REDIS_HOST", "localhost")
            redis_port = int(os.getenv("REDIS_PORT", "6379"))
            logger.info(f"📡 Using Redis at {redis_host}:{redis_port}")
            client = redis.Redis(
                host=redis_host,
                port=redis_port,
                password=os.getenv("REDIS_PASSWORD"),
                db=int(os.getenv("REDIS_DB", "0")),
                ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
                **common,
            )
        try:
            client.ping()
        except Exception as e:
            logger.error(f"❌ Failed to connect to Redis: {e}")
            raise
        redis_client = client
        logger.info("✅ Redis connected successfully")

    return redis_client


def check_rate_limit(
    key: str, limit: int, window_seconds: int, client: redis.Redis
) -> tuple[bool, int, int]:
    """Count a hit in the current window

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    pipe = client.pipeline()
    pipe.incr(key)
    pipe.ttl(key)
    count, ttl = pipe.execute()

    # First hit in a window (or a key that lost its expiry) starts the window
    if ttl is None or ttl < 0:
        client.expire(key, window_seconds)
        ttl = window_seconds

    return int(count) <= limit, int(count), int(ttl)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit_dependency(
    request: Request,
    limit: int,
    window_seconds: int,
    key_prefix: str = "rate_limit",
):
    """
    FastAPI dependency for per-IP rate limiting

    Fails closed (503) when Redis is unreachable, unless rate limiting
    is disabled with RATE_LIMIT_ENABLED=false.
    """
    if not config.RATE_LIMIT_ENABLED:
        return

    key = f"{key_prefix}:{client_ip(request)}"
    try:
        is_allowed, current_count, ttl = check_rate_limit(
            key, limit, window_seconds, get_redis_client()
        )
    except Exception as e:
        logger.error(f"❌ Rate limiting error: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiting service temporarily unavailable",
        ) from e

    if not is_allowed:
        logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
        raise HTTPException(
            status_code=429,
            detail={
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after": ttl,
            },
            headers={"Retry-After": str(ttl)},
        )


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
    """
    Create a rate limiter dependency with specific parameters

    Example usage:
        rate_limit_login = create_rate_limiter(limit=10, window_seconds=300, key_prefix="login")

        @router.post("/login")
        async def login(data: LoginRequest, _: None = Depends(rate_limit_login)):
            ...
    """

    async def rate_limiter(request: Request):
        return await rate_limit_dependency(request, limit, window_seconds, key_prefix)

    return rate_limiter
