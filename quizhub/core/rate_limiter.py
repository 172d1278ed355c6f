# quizhub/core/rate_limiter.py
from fastapi import Request
from typing import Callable, Dict, List
import time

from .config import settings
from .exceptions import QuizHubException

class RateLimitExceeded(QuizHubException):
    def __init__(self):
        super().__init__(status_code=429, detail="Too many submissions, please slow down")

class RateLimiter:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.requests: Dict[str, List[float]] = {}

    def check_rate_limit(self, key: str, max_requests: int = 60, window: int = 60):
        """Sliding window check, raises once `max_requests` were seen within `window` seconds"""
        now = self.clock()

        # Clean old requests and forget clients that went quiet
        self.evict_idle(now, window)
        recent = self.requests.setdefault(key, [])

        if len(recent) >= max_requests:
            raise RateLimitExceeded()

        recent.append(now)

    def evict_idle(self, now: float, window: int):
        for key in list(self.requests):
            recent = [req_time for req_time in self.requests[key] if now - req_time < window]
            if recent:
                self.requests[key] = recent
            else:
                del self.requests[key]

    def reset(self):
        self.requests.clear()

rate_limiter = RateLimiter()

async def submission_rate_limit(request: Request):
    """Dependency guarding quiz submissions per client and path"""
    client_ip = request.client.host if request.client else "unknown"
    rate_limiter.check_rate_limit(
        f"{client_ip}:{request.url.path}",
        max_requests=settings.submission_rate_limit,
        window=settings.submission_rate_window,
    )
