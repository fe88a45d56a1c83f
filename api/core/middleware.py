"""
HTTP middleware (plain ASGI).

- SecurityHeadersMiddleware: helmet-style response headers.
- RateLimitMiddleware: fixed-window request limit per client IP.
- RequestTimeoutMiddleware: answers 408 when a handler overruns its budget.

All three are plain ASGI callables so a timeout can cancel the inner app
without leaving a BaseHTTPMiddleware task group waiting on it.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from starlette.datastructures import MutableHeaders
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


SECURITY_HEADERS: dict[str, str] = {
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "cross-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}

RATE_LIMIT_MESSAGE = "Too many requests, please try again later"
TIMEOUT_MESSAGE = "Request timeout"


class SecurityHeadersMiddleware:
    def __init__(self, app: ASGIApp, headers: dict[str, str] | None = None) -> None:
        self.app = app
        self.headers = dict(SECURITY_HEADERS if headers is None else headers)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in self.headers.items():
                    headers.setdefault(name, value)
            await send(message)

        await self.app(scope, receive, send_with_headers)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after_s: int


class FixedWindowRateLimiter:
    """
    Counts hits per key inside fixed windows of `window_s` seconds.

    State is in-process only; every worker keeps its own counters.
    """

    def __init__(
        self,
        max_requests: int,
        window_s: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max(1, int(max_requests))
        self.window_s = max(0.001, float(window_s))
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._last_prune = clock()

    def _prune(self, now: float) -> None:
        if now - self._last_prune < self.window_s:
            return
        expired = [key for key, (started, _) in self._windows.items() if now - started >= self.window_s]
        for key in expired:
            del self._windows[key]
        self._last_prune = now

    def hit(self, key: str) -> RateLimitDecision:
        now = self._clock()
        self._prune(now)

        started, count = self._windows.get(key, (now, 0))
        if now - started >= self.window_s:
            started, count = now, 0
        count += 1
        self._windows[key] = (started, count)

        reset_after = max(0, math.ceil(self.window_s - (now - started)))
        return RateLimitDecision(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_after_s=reset_after,
        )

    def tracked_keys(self) -> int:
        return len(self._windows)


def _client_key(scope: Scope) -> str:
    client = scope.get("client")
    if client:
        return str(client[0])
    return "unknown"


class RateLimitMiddleware:
    def __init__(self, app: ASGIApp, limiter: FixedWindowRateLimiter) -> None:
        self.app = app
        self.limiter = limiter

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] == "OPTIONS":
            await self.app(scope, receive, send)
            return

        decision = self.limiter.hit(_client_key(scope))
        rate_headers = {
            "RateLimit-Limit": str(decision.limit),
            "RateLimit-Remaining": str(decision.remaining),
            "RateLimit-Reset": str(decision.reset_after_s),
        }

        if not decision.allowed:
            logger.warning("rate_limited client=%s path=%s", _client_key(scope), scope.get("path"))
            response = JSONResponse(
                {"error": RATE_LIMIT_MESSAGE},
                status_code=429,
                headers={**rate_headers, "Retry-After": str(decision.reset_after_s)},
            )
            await response(scope, receive, send)
            return

        async def send_with_rate_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in rate_headers.items():
                    headers[name] = value
            await send(message)

        await self.app(scope, receive, send_with_rate_headers)


class RequestTimeoutMiddleware:
    """
    Gives each non-OPTIONS request `timeout_s` seconds to start its response.

    On overrun the handler task is cancelled and, if nothing was sent yet, a
    408 is written. A response that already started is left alone, so a
    request never receives two responses.
    """

    def __init__(self, app: ASGIApp, timeout_s: float = 30.0) -> None:
        self.app = app
        self.timeout_s = timeout_s

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] == "OPTIONS" or self.timeout_s <= 0:
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_tracking_start(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await asyncio.wait_for(self.app(scope, receive, send_tracking_start), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            logger.error("request_timeout method=%s path=%s", scope["method"], scope.get("path"))
            if response_started:
                return
            response = JSONResponse({"error": TIMEOUT_MESSAGE}, status_code=408)
            await response(scope, receive, send)
