"""
Rate limiting for the FastAPI API.
"""

import time
from typing import Dict, List, Optional

import structlog
from fastapi import HTTPException, Request, status

from api.config import config

logger = structlog.get_logger(__name__)


class RateLimiter:
    """
    Sliding-window request limiter keyed by client address.

    State lives in process memory, so each worker process limits independently.
    """

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests: Dict[str, List[float]] = {}

    def _prune(self, client_id: str, now: float) -> List[float]:
        recent = [
            req_time for req_time in self.requests.get(client_id, [])
            if now - req_time < self.window_seconds
        ]
        if recent:
            self.requests[client_id] = recent
        else:
            self.requests.pop(client_id, None)
        return recent

    def check(self, client_id: str, now: Optional[float] = None) -> bool:
        """
        Record a request and report whether it is within the limit.

        Args:
            client_id: Client identifier (usually the remote address)
            now: Current time in seconds, for testing

        Returns:
            True if within limit, False if exceeded
        """
        now = time.time() if now is None else now
        recent = self._prune(client_id, now)

        if len(recent) < self.max_requests:
            recent.append(now)
            self.requests[client_id] = recent
            return True

        return False

    def get_info(self, client_id: str, now: Optional[float] = None) -> Dict:
        """
        Get rate limit information for a client.

        Returns:
            Dictionary with limit, remaining requests and reset time
        """
        now = time.time() if now is None else now
        recent = self._prune(client_id, now)
        reset_time = recent[0] + self.window_seconds if recent else now + self.window_seconds

        return {
            "rate_limit": self.max_requests,
            "requests_remaining": max(0, self.max_requests - len(recent)),
            "reset_time": reset_time
        }

    def get_headers(self, client_id: str, now: Optional[float] = None) -> Dict[str, str]:
        """Rate limit headers for a response."""
        rate_info = self.get_info(client_id, now)
        return {
            "X-RateLimit-Limit": str(rate_info["rate_limit"]),
            "X-RateLimit-Remaining": str(rate_info["requests_remaining"]),
            "X-RateLimit-Reset": str(int(rate_info["reset_time"]))
        }

    def reset(self) -> None:
        """Forget all tracked requests."""
        self.requests.clear()


rate_limiter = RateLimiter(config.rate_limit_requests, config.rate_limit_window_seconds)


def get_client_id(request: Request) -> str:
    """
    Identify the caller by socket address.

    The first X-Forwarded-For hop is used instead only when trust_forwarded_for is set.
    """
    forwarded = request.headers.get("x-forwarded-for") if config.trust_forwarded_for else None
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(request: Request) -> str:
    """
    Dependency that rejects callers over their request budget.

    Returns:
        The client identifier

    Raises:
        HTTPException: 429 if the rate limit is exceeded
    """
    client_id = get_client_id(request)

    if not rate_limiter.check(client_id):
        headers = rate_limiter.get_headers(client_id)
        headers["Retry-After"] = str(max(1, int(float(headers["X-RateLimit-Reset"]) - time.time())))
        logger.warning("Rate limit exceeded", client_id=client_id, path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests from this IP, please try again later",
            headers=headers
        )

    return client_id
