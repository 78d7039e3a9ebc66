"""Simple in-memory rate limiting utilities."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict

from mobile_auth.core.exceptions import RateLimitExceededError


@dataclass
class _Bucket:
    reset_at: float
    count: int


@dataclass(frozen=True)
class RateLimitInfo:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
        }


def client_ip(request: Any) -> str:
    """Best-effort client address: first x-forwarded-for hop, x-real-ip, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    client = getattr(request, "client", None)
    return client.host if client else "unknown"


class InMemoryRateLimiter:
    """Fixed-window rate limiter suitable for single-node deployments."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buckets: Dict[str, _Bucket] = {}

    def check(self, key: str, limit: int, window_seconds: int) -> RateLimitInfo:
        now = time.time()

        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket.reset_at <= now:
                bucket = _Bucket(reset_at=now + window_seconds, count=0)
                self._buckets[key] = bucket

            if bucket.count >= limit:
                return RateLimitInfo(False, limit, 0, bucket.reset_at)

            bucket.count += 1
            return RateLimitInfo(True, limit, max(0, limit - bucket.count), bucket.reset_at)

    def enforce(self, request: Any, prefix: str, limit: int, window_seconds: int) -> RateLimitInfo:
        """
        Count a request against ``prefix`` for its client address

        Raises:
            RateLimitExceededError: carrying the rate limit headers
        """
        info = self.check(f"{prefix}:{client_ip(request)}", limit, window_seconds)
        if not info.allowed:
            raise RateLimitExceededError(headers=info.headers())
        return info

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


rate_limiter = InMemoryRateLimiter()
