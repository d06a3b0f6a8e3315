"""
Rate limiting middleware for API endpoints
"""
import time
from collections import deque
from fastapi import Request, HTTPException
from typing import Callable, Deque, Dict
import logging

from quiz_engine.config import settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    In-memory sliding-window rate limiter, per process

    Save-progress calls are frequent during a timed quiz, so limits are
    tracked per user rather than per IP whenever an identity is present.
    """

    def __init__(
        self,
        requests_per_minute: int = 60,
        requests_per_hour: int = 1000,
        clock: Callable[[], float] = time.monotonic
    ):
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self.clock = clock

        # Storage: {client_id: deque of request timestamps}
        self.minute_tracker: Dict[str, Deque[float]] = {}
        self.hour_tracker: Dict[str, Deque[float]] = {}

    def _get_client_id(self, request: Request) -> str:
        """Extract client identifier from request"""
        # Identity forwarded by the auth layer
        user_id = request.headers.get("x-user-id")
        if user_id:
            return f"user:{user_id}"

        # Fallback to IP address
        client_ip = request.client.host if request.client else "unknown"
        return f"ip:{client_ip}"

    def _prune(self, window: Deque[float], cutoff: float) -> int:
        """Drop timestamps older than cutoff, return what is left"""
        while window and window[0] <= cutoff:
            window.popleft()
        return len(window)

    def _cleanup_old_entries(self, tracker: Dict[str, Deque[float]], window_seconds: int, now: float):
        """Remove expired timestamps and forget clients with none left"""
        cutoff = now - window_seconds
        for client_id in list(tracker.keys()):
            if not self._prune(tracker[client_id], cutoff):
                del tracker[client_id]

    def _reject(self, client_id: str, limit: int, period: str, retry_after: int):
        logger.warning(f"Rate limit exceeded ({period}): {client_id}")
        raise HTTPException(
            status_code=429,
            detail={
                "error": "rate_limit_exceeded",
                "message": f"Too many requests. Limit: {limit} requests per {period}",
                "retry_after": retry_after
            }
        )

    async def check_rate_limit(self, request: Request) -> None:
        """
        Check if request exceeds rate limits

        Raises:
            HTTPException: 429 if rate limit exceeded
        """
        client_id = self._get_client_id(request)
        now = self.clock()

        # Cleanup old entries
        self._cleanup_old_entries(self.minute_tracker, 60, now)
        self._cleanup_old_entries(self.hour_tracker, 3600, now)

        minute_window = self.minute_tracker.get(client_id, ())
        hour_window = self.hour_tracker.get(client_id, ())

        if len(minute_window) >= self.requests_per_minute:
            self._reject(client_id, self.requests_per_minute, "minute", 60)

        if len(hour_window) >= self.requests_per_hour:
            self._reject(client_id, self.requests_per_hour, "hour", 3600)

        # Record this request
        self.minute_tracker.setdefault(client_id, deque()).append(now)
        self.hour_tracker.setdefault(client_id, deque()).append(now)

        logger.debug(
            f"Rate limit check passed: {client_id} "
            f"(minute: {len(self.minute_tracker[client_id])}, hour: {len(self.hour_tracker[client_id])})"
        )

    def reset(self) -> None:
        self.minute_tracker.clear()
        self.hour_tracker.clear()


# Global instance
rate_limiter = RateLimiter(
    requests_per_minute=settings.RATE_LIMIT_PER_MINUTE,
    requests_per_hour=settings.RATE_LIMIT_PER_HOUR
)
