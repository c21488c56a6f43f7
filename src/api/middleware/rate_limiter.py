"""
Per-client rate limiting middleware.
Uses an in-memory sliding window counter per IP address, so a single
client cannot burn through the shared Lexware quota.
"""
import time
from typing import Callable, Dict, List, Tuple
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

# Paths that never count against the limit
EXEMPT_PATHS: Tuple[str, ...] = ("/health", "/docs", "/redoc", "/openapi.json")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory inbound rate limiter.
    Limits requests per client IP using a sliding window.
    """

    def __init__(
        self,
        app,
        requests_per_minute: int = 60,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.window_seconds = window_seconds
        self._clock = clock
        # IP -> request timestamps inside the window; idle IPs are dropped
        self._requests: Dict[str, List[float]] = {}
        self._last_sweep = clock()

    def _get_client_ip(self, request: Request) -> str:
        """Client IP, honouring reverse proxy headers."""
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip
        if request.client:
            return request.client.host
        return "unknown"

    def _recent_requests(self, ip: str, now: float) -> List[float]:
        """Drop timestamps older than the window and return the rest."""
        cutoff = now - self.window_seconds
        recent = [ts for ts in self._requests.get(ip, ()) if ts > cutoff]
        if recent:
            self._requests[ip] = recent
        else:
            self._requests.pop(ip, None)
        return recent

    def _sweep(self, now: float) -> None:
        """Forget clients without a request in the current window."""
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        cutoff = now - self.window_seconds
        for ip in [ip for ip, stamps in self._requests.items() if stamps[-1] <= cutoff]:
            del self._requests[ip]

    async def dispatch(self, request: Request, call_next):
        """Check the limit before the request reaches a route."""
        if request.url.path.startswith(EXEMPT_PATHS):
            return await call_next(request)

        ip = self._get_client_ip(request)
        now = self._clock()
        self._sweep(now)
        recent = self._recent_requests(ip, now)

        if len(recent) >= self.requests_per_minute:
            retry_after = max(1, int(recent[0] + self.window_seconds - now) + 1)
            return JSONResponse(
                status_code=429,
                content={
                    "ok": False,
                    "message": (
                        f"Zu viele Anfragen: maximal {self.requests_per_minute} "
                        f"pro Minute. Bitte in {retry_after} s erneut versuchen."
                    ),
                    "error_code": "RATE_LIMITED",
                    "retry_after": retry_after,
                },
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(self.requests_per_minute),
                    "X-RateLimit-Remaining": "0",
                },
            )

        recent.append(now)
        self._requests[ip] = recent

        response = await call_next(request)
        remaining = max(0, self.requests_per_minute - len(recent))
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(remaining)

        return response
