import time
from collections import defaultdict, deque
from typing import Deque, Dict

from fastapi import HTTPException, Request


class RateLimiter:
    """
    In-memory sliding window limiter keyed by client IP.
    Used as a FastAPI dependency: ``Depends(login_limiter)``.
    """

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.hits: Dict[str, Deque[float]] = defaultdict(deque)

    def _client_key(self, request: Request) -> str:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def check(self, key: str) -> None:
        now = time.monotonic()
        window = self.hits[key]
        while window and now - window[0] >= self.window_seconds:
            window.popleft()

        if len(window) >= self.max_requests:
            retry_after = int(self.window_seconds - (now - window[0])) + 1
            raise HTTPException(
                status_code=429,
                detail="Too many requests, please try again later.",
                headers={"Retry-After": str(retry_after)}
            )
        window.append(now)

    async def __call__(self, request: Request) -> None:
        self.check(self._client_key(request))

    def reset(self) -> None:
        self.hits.clear()


# Registry so all limiters can be cleared at once
_limiters = []


def create_limiter(max_requests: int, window_seconds: int) -> RateLimiter:
    limiter = RateLimiter(max_requests, window_seconds)
    _limiters.append(limiter)
    return limiter


def reset_all_limiters() -> int:
    for limiter in _limiters:
        limiter.reset()
    return len(_limiters)
