"""Tests for the plain-ASGI middleware."""

import asyncio

from core.middleware import FixedWindowRateLimiter, RequestTimeoutMiddleware, SecurityHeadersMiddleware


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _http_scope(method: str = "GET", path: str = "/api/track-search") -> dict:
    return {"type": "http", "method": method, "path": path, "headers": [], "query_string": b""}


async def _receive():
    return {"type": "http.request", "body": b"", "more_body": False}


class TestFixedWindowRateLimiter:
    def test_allows_up_to_the_limit(self):
        limiter = FixedWindowRateLimiter(3, 60, clock=FakeClock())

        decisions = [limiter.hit("10.0.0.1") for _ in range(4)]

        assert [d.allowed for d in decisions] == [True, True, True, False]
        assert [d.remaining for d in decisions] == [2, 1, 0, 0]

    def test_keys_are_independent(self):
        limiter = FixedWindowRateLimiter(1, 60, clock=FakeClock())

        assert limiter.hit("10.0.0.1").allowed
        assert limiter.hit("10.0.0.2").allowed
        assert not limiter.hit("10.0.0.1").allowed

    def test_window_resets(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(1, 60, clock=clock)
        limiter.hit("10.0.0.1")

        clock.now += 60
        decision = limiter.hit("10.0.0.1")

        assert decision.allowed
        assert decision.reset_after_s == 60

    def test_reset_counts_down(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(5, 60, clock=clock)
        limiter.hit("10.0.0.1")

        clock.now += 45.5
        assert limiter.hit("10.0.0.1").reset_after_s == 15

    def test_expired_windows_are_pruned(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(5, 60, clock=clock)
        for i in range(10):
            limiter.hit(f"10.0.0.{i}")
        assert limiter.tracked_keys() == 10

        clock.now += 61
        limiter.hit("10.0.1.1")

        assert limiter.tracked_keys() == 1


class TestRequestTimeoutMiddleware:
    async def test_slow_handler_gets_408(self):
        async def slow_app(scope, receive, send):
            await asyncio.sleep(5)

        sent = []

        async def send(message):
            sent.append(message)

        await RequestTimeoutMiddleware(slow_app, timeout_s=0.01)(_http_scope(), _receive, send)

        assert sent[0]["type"] == "http.response.start"
        assert sent[0]["status"] == 408
        assert b"Request timeout" in sent[1]["body"]

    async def test_started_response_is_not_replaced(self):
        async def streaming_app(scope, receive, send):
            await send({"type": "http.response.start", "status": 200, "headers": []})
            await asyncio.sleep(5)

        sent = []

        async def send(message):
            sent.append(message)

        await RequestTimeoutMiddleware(streaming_app, timeout_s=0.01)(_http_scope(), _receive, send)

        assert [m["status"] for m in sent if m["type"] == "http.response.start"] == [200]

    async def test_fast_handler_passes_through(self):
        async def fast_app(scope, receive, send):
            await send({"type": "http.response.start", "status": 201, "headers": []})
            await send({"type": "http.response.body", "body": b"ok"})

        sent = []

        async def send(message):
            sent.append(message)

        await RequestTimeoutMiddleware(fast_app, timeout_s=1)(_http_scope(), _receive, send)

        assert sent[0]["status"] == 201
        assert sent[1]["body"] == b"ok"

    async def test_options_is_exempt(self):
        async def slow_options(scope, receive, send):
            await asyncio.sleep(0.05)
            await send({"type": "http.response.start", "status": 200, "headers": []})

        sent = []

        async def send(message):
            sent.append(message)

        await RequestTimeoutMiddleware(slow_options, timeout_s=0.01)(_http_scope("OPTIONS"), _receive, send)

        assert sent[0]["status"] == 200


class TestSecurityHeadersMiddleware:
    async def test_does_not_override_handler_headers(self):
        async def app(scope, receive, send):
            await send(
                {
                    "type": "http.response.start",
                    "status": 200,
                    "headers": [(b"x-frame-options", b"DENY")],
                }
            )

        sent = []

        async def send(message):
            sent.append(message)

        await SecurityHeadersMiddleware(app)(_http_scope(), _receive, send)

        headers = dict(sent[0]["headers"])
        assert headers[b"x-frame-options"] == b"DENY"
        assert headers[b"x-content-type-options"] == b"nosniff"
