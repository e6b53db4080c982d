# app/x402/ratelimit.py
"""
Per-IP rate limiting by route class.

Each route class has its own sliding-window limiter:
- info: catalogue, health and network lookups
- capability: capability calls without a payment proof (challenge requests)
- payment: capability calls carrying an X-PAYMENT proof

Rate limiting runs before the payment gate, so challenge floods never reach
the facilitator.
"""
import logging
import math
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from app.core.config import Settings, settings

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 300

INFO_ROUTES = ("/capability", "/health", "/network", "/payments/recent")


@dataclass
class RateLimitWindow:
    """Request timestamps for a single IP within the sliding window."""
    requests: List[float] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)


class RateLimiter:
    """
    In-memory sliding window rate limiter.

    Thread-safe for concurrent access. Stale windows are dropped every few
    minutes so idle clients do not accumulate.
    """

    def __init__(self, limit: int, window_seconds: int = 60, name: str = "default"):
        self.limit = limit
        self.window_seconds = window_seconds
        self.name = name
        self._windows: Dict[str, RateLimitWindow] = defaultdict(RateLimitWindow)
        self._cleanup_lock = threading.Lock()
        self._last_cleanup = time.time()

    def hit(self, client_ip: str) -> Tuple[bool, int, int]:
        """
        Record a request and report whether it is over the limit.

        Returns:
            Tuple of (is_limited, requests_made, retry_after_seconds).
            retry_after_seconds is 0 when the request is allowed.
        """
        now = time.time()
        window_start = now - self.window_seconds

        self._maybe_cleanup(now)

        window = self._windows[client_ip or "unknown"]

        with window.lock:
            window.requests = [ts for ts in window.requests if ts > window_start]
            requests_in_window = len(window.requests)

            if requests_in_window >= self.limit:
                oldest = window.requests[0] if window.requests else now
                retry_after = max(1, math.ceil(oldest + self.window_seconds - now))
                logger.warning(
                    f"Rate limit exceeded ({self.name}) for {client_ip}: "
                    f"{requests_in_window}/{self.limit} requests in {self.window_seconds}s"
                )
                return (True, requests_in_window, retry_after)

            window.requests.append(now)
            return (False, requests_in_window + 1, 0)

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup < CLEANUP_INTERVAL_SECONDS:
            return

        with self._cleanup_lock:
            # Double-check after acquiring lock
            if now - self._last_cleanup < CLEANUP_INTERVAL_SECONDS:
                return

            self._last_cleanup = now
            window_start = now - self.window_seconds
            stale_ips = []

            for ip, window in list(self._windows.items()):
                with window.lock:
                    window.requests = [ts for ts in window.requests if ts > window_start]
                    if not window.requests:
                        stale_ips.append(ip)

            for ip in stale_ips:
                self._windows.pop(ip, None)

            if stale_ips:
                logger.debug(f"Cleaned up {len(stale_ips)} stale rate limit entries ({self.name})")


def build_rate_limiters(config: Optional[Settings] = None) -> Dict[str, RateLimiter]:
    config = config or settings
    window = config.RATE_LIMIT_WINDOW_SECONDS
    return {
        "info": RateLimiter(config.RATE_LIMIT_INFO, window, name="info"),
        "capability": RateLimiter(config.RATE_LIMIT_CAPABILITY, window, name="capability"),
        "payment": RateLimiter(config.RATE_LIMIT_PAYMENT, window, name="payment"),
    }


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP in the chain
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


def classify_route(request: Request) -> Optional[str]:
    path = request.url.path.rstrip("/") or "/"
    if request.method == "POST" and path.startswith("/capability/"):
        return "payment" if request.headers.get("X-PAYMENT") else "capability"
    if request.method == "GET" and path in INFO_ROUTES:
        return "info"
    return None


def get_rate_limit_headers(limit: int, requests_made: int, window_seconds: int) -> Dict[str, str]:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(max(0, limit - requests_made)),
        "X-RateLimit-Reset": str(window_seconds),
    }


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiters: Dict[str, RateLimiter]):
        super().__init__(app)
        self.limiters = limiters

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        route_class = classify_route(request)
        limiter = self.limiters.get(route_class) if route_class else None
        if limiter is None:
            return await call_next(request)

        client_ip = get_client_ip(request)
        is_limited, requests_made, retry_after = limiter.hit(client_ip)
        headers = get_rate_limit_headers(limiter.limit, requests_made, limiter.window_seconds)

        if is_limited:
            headers["Retry-After"] = str(retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "RATE_LIMITED",
                    "message": "Too many requests. Please wait before trying again.",
                    "retryAfter": retry_after,
                },
                headers=headers,
            )

        response = await call_next(request)
        for header, value in headers.items():
            response.headers[header] = value
        return response
