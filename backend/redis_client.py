"""
Redis-backed rate limiting for the public mutation endpoints.
"""
import logging
import os
from typing import Tuple

import redis
from fastapi import HTTPException, Request, Response, status

logger = logging.getLogger(__name__)


class RedisClient:
    """Wraps a redis.Redis connection; every call degrades to "allowed" when Redis is down."""

    def __init__(self, client=None):
        self.enabled = os.getenv("REDIS_ENABLED", "true").strip().lower() not in ("0", "false", "no", "off")
        self.redis_host = os.getenv("REDIS_HOST", "redis")
        redis_port_env = os.getenv("REDIS_SERVICE_PORT") or os.getenv("REDIS_PORT") or "6379"
        self.redis_port = int(str(redis_port_env).split(":")[-1])

        if client is not None:
            self.client = client
        elif not self.enabled:
            self.client = None
        else:
            # redis.Redis connects lazily, so this does not block startup
            self.client = redis.Redis(
                host=self.redis_host,
                port=self.redis_port,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2
            )

    def is_available(self) -> bool:
        if not self.client:
            return False
        try:
            self.client.ping()
            return True
        except Exception:
            return False

    def check_rate_limit(self, key: str, max_requests: int = 10, window: int = 60) -> Tuple[bool, int]:
        """
        Count one request against key.
        Returns (allowed, remaining requests in the window).
        """
        if not self.is_available():
            return True, max_requests

        try:
            current = self.client.incr(key)
            if current == 1:
                # first hit opens the window
                self.client.expire(key, window)

            remaining = max(0, max_requests - current)
            allowed = current <= max_requests

            return allowed, remaining
        except Exception as e:
            logger.warning(f"Rate limit check failed for {key}: {e}")
            return True, max_requests


redis_client = RedisClient()


def rate_limit(max_requests: int = 10, window: int = 60, key_prefix: str = "rate_limit"):
    """
    FastAPI dependency factory:

        @app.post("/orders", dependencies=[Depends(rate_limit(20, 60, "orders"))])
    """
    def dependency(request: Request, response: Response):
        client_host = request.client.host if request.client else "unknown"
        rate_key = f"{key_prefix}:{request.url.path}:{client_host}"

        allowed, remaining = redis_client.check_rate_limit(rate_key, max_requests, window)
        if not allowed:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Rate limit exceeded. Try again in {window} seconds."
            )

        response.headers["X-RateLimit-Limit"] = str(max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)

    return dependency
