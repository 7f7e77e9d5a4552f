"""HTTP middleware: request logging and rate limiting."""

import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .errors import rate_limited
from .schemas.common import error_response
from .services.rate_limit import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)


def client_ip(request: Request, trust_proxy: bool = False) -> str:
    """Peer address of the request.

    ``X-Forwarded-For`` is client controlled, so its first hop is only used
    when the app sits behind a proxy that overwrites it.
    """
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, trust_proxy: bool = False):
        super().__init__(app)
        self.trust_proxy = trust_proxy

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} "
            f"{duration_ms:.1f}ms ip={client_ip(request, self.trust_proxy)}"
        )
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects ``/api`` requests over the per-IP limit with a 429 envelope."""

    def __init__(
        self,
        app,
        limiter: SlidingWindowRateLimiter,
        path_prefix: str = "/api",
        trust_proxy: bool = False,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.path_prefix = path_prefix
        self.trust_proxy = trust_proxy

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.path_prefix) or request.method == "OPTIONS":
            return await call_next(request)

        key = client_ip(request, self.trust_proxy)
        allowed, retry_after = self.limiter.check(key)
        if not allowed:
            error = rate_limited()
            logger.warning(f"Rate limit exceeded: ip={key} path={request.url.path}")
            return JSONResponse(
                status_code=error.status_code,
                content=error_response(error.message),
                headers={"Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        if self.limiter.enabled:
            response.headers["RateLimit-Limit"] = str(self.limiter.max_requests)
            response.headers["RateLimit-Remaining"] = str(self.limiter.remaining(key))
        return response
