"""
Fixed window rate limiter for the Posts service.

Counting is delegated to the ``limits`` fixed window strategy over a
process-local ``memory://`` storage; this module adds the per-address
middleware, the 429 response and the ``X-RateLimit-*`` headers.
"""

import math
import time
from dataclasses import dataclass
from typing import Iterable, Optional, TYPE_CHECKING

from fastapi import Request
from fastapi.responses import JSONResponse
from limits import RateLimitItemPerSecond
from limits.storage import Storage, storage_from_string
from limits.strategies import FixedWindowRateLimiter as FixedWindowStrategy
from starlette.middleware.base import BaseHTTPMiddleware

from shared.logging import get_logger
from shared.errors import RateLimitError

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of counting one request against its client's budget."""
    allowed: bool
    limit: int
    remaining: int
    reset_in_seconds: int

    @property
    def retry_after(self) -> int:
        return self.reset_in_seconds


class FixedWindowRateLimiter:
    """Per-client request budget over fixed time windows.

    A client's window opens with its first request and lasts
    ``window_seconds``; when it lapses the count starts again from zero.
    Rejected requests still count.
    """

    def __init__(self, max_requests: int, window_seconds: int, storage: Optional[Storage] = None):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.limit = RateLimitItemPerSecond(max_requests, window_seconds, namespace="posts")
        self.storage = storage if storage is not None else storage_from_string("memory://")
        self._strategy = FixedWindowStrategy(self.storage)
        self.logger = get_logger("posts.rate_limiter")

    def check_rate_limit(self, client_id: str) -> RateLimitResult:
        """Count a request from ``client_id`` and decide whether it may proceed."""
        allowed = self._strategy.hit(self.limit, client_id)
        reset_time, remaining = self._strategy.get_window_stats(self.limit, client_id)

        result = RateLimitResult(
            allowed=allowed,
            limit=self.max_requests,
            remaining=remaining,
            reset_in_seconds=max(1, math.ceil(reset_time - time.time())),
        )

        if not allowed:
            self.logger.warning(
                "Rate limit exceeded",
                client_id=client_id,
                limit=self.max_requests,
                reset_in_seconds=result.reset_in_seconds
            )
        return result


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware for FastAPI.

    Sits outside the credential check, so over-limit traffic is rejected
    before credentials are looked at.
    """

    def __init__(
        self,
        app,
        rate_limiter: FixedWindowRateLimiter,
        *,
        headers_enabled: bool = True,
        trust_forwarded_for: bool = False,
        exempt_paths: Iterable[str] = (),
        metrics: Optional["MetricsCollector"] = None,
    ):
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.headers_enabled = headers_enabled
        self.trust_forwarded_for = trust_forwarded_for
        self.exempt_paths = frozenset(exempt_paths)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        client_id = self._get_client_id(request)
        result = self.rate_limiter.check_rate_limit(client_id)

        if not result.allowed:
            if self.metrics:
                self.metrics.record_rate_limit_rejection()
            exc = RateLimitError(retry_after=result.retry_after)
            response = JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response().model_dump(),
                headers=exc.headers
            )
        else:
            response = await call_next(request)

        if self.headers_enabled:
            self._set_rate_limit_headers(response, result)
        return response

    def _set_rate_limit_headers(self, response, result: RateLimitResult) -> None:
        """Propagate rate limiting metadata via standard headers."""
        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        response.headers["X-RateLimit-Reset"] = str(result.reset_in_seconds)

    def _get_client_id(self, request: Request) -> str:
        """Extract the caller address."""
        if self.trust_forwarded_for:
            forwarded_for = request.headers.get("X-Forwarded-For")
            if forwarded_for:
                first_hop = forwarded_for.split(",")[0].strip()
                if first_hop:
                    return first_hop

        return request.client.host if request.client else "unknown"
