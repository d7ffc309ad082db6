"""Unit tests for the trade rate limiter and its middleware."""

import logging

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request

from src.pm_gateway.auth.jwt_handler import create_access_token
from src.pm_gateway.middleware.rate_limit import (
    FixedWindowLimiter,
    RateLimitMiddleware,
    client_identity,
)
from tests.fakes import DownRedis, FakeRedis


def _request(headers: dict[str, str], client: tuple[str, int] | None = ("10.0.0.9", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/v1/trades/bet",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    }
    return Request(scope)


class TestFixedWindowLimiter:
    async def test_allows_up_to_limit(self) -> None:
        redis = FakeRedis()
        limiter = FixedWindowLimiter(redis, limit=3, window_seconds=60)
        results = [await limiter.hit("user:alice", "trades", now=120.0) for _ in range(4)]
        assert [allowed for allowed, _ in results] == [True, True, True, False]
        assert redis.ttls == {"ratelimit:user:alice:trades:2": 60}

    async def test_new_window_resets(self) -> None:
        limiter = FixedWindowLimiter(FakeRedis(), limit=1, window_seconds=60)
        assert (await limiter.hit("user:alice", "trades", now=59.0))[0]
        assert not (await limiter.hit("user:alice", "trades", now=59.5))[0]
        assert (await limiter.hit("user:alice", "trades", now=60.0))[0]

    async def test_retry_after_counts_down_to_window_end(self) -> None:
        limiter = FixedWindowLimiter(FakeRedis(), limit=1, window_seconds=60)
        _, retry_after = await limiter.hit("ip:1.2.3.4", "trades", now=130.0)
        assert retry_after == 50

    async def test_identities_counted_separately(self) -> None:
        limiter = FixedWindowLimiter(FakeRedis(), limit=1, window_seconds=60)
        assert (await limiter.hit("user:alice", "trades", now=0.0))[0]
        assert (await limiter.hit("user:bob", "trades", now=0.0))[0]


class TestClientIdentity:
    def test_token_subject(self) -> None:
        token = create_access_token("alice")
        assert client_identity(_request({"Authorization": f"Bearer {token}"})) == "user:alice"

    def test_bad_token_falls_back_to_ip(self) -> None:
        assert client_identity(_request({"Authorization": "Bearer junk"})) == "ip:10.0.0.9"

    def test_bad_token_is_logged(self, caplog) -> None:
        with caplog.at_level(logging.DEBUG, logger="src.pm_gateway.middleware.rate_limit"):
            client_identity(_request({"Authorization": "Bearer junk"}))
        assert any("Bearer token rejected" in r.getMessage() for r in caplog.records)

    def test_forwarded_for_first_hop(self) -> None:
        request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
        assert client_identity(request) == "ip:203.0.113.7"

    def test_no_client(self) -> None:
        assert client_identity(_request({}, client=None)) == "ip:unknown"


def _app(redis, limit: int = 2) -> FastAPI:
    app = FastAPI()

    async def factory():
        return redis

    app.add_middleware(RateLimitMiddleware, limit=limit, redis_factory=factory)

    @app.post("/api/v1/trades/bet")
    async def bet() -> dict[str, str]:
        return {"ok": "yes"}

    @app.get("/api/v1/markets")
    async def markets() -> dict[str, str]:
        return {"ok": "yes"}

    return app


@pytest.fixture
def headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token('alice')}"}


class TestRateLimitMiddleware:
    async def test_rejects_over_limit_with_retry_after(self, headers) -> None:
        transport = ASGITransport(app=_app(FakeRedis(), limit=2))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            codes = [(await client.post("/api/v1/trades/bet", headers=headers)).status_code for _ in range(2)]
            blocked = await client.post("/api/v1/trades/bet", headers=headers)
        assert codes == [200, 200]
        assert blocked.status_code == 429
        assert blocked.json()["code"] == 9001
        assert 0 < int(blocked.headers["Retry-After"]) <= 60

    async def test_reads_are_not_limited(self) -> None:
        transport = ASGITransport(app=_app(FakeRedis(), limit=1))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            codes = [(await client.get("/api/v1/markets")).status_code for _ in range(3)]
        assert codes == [200, 200, 200]

    async def test_fails_open_when_redis_is_down(self, headers) -> None:
        transport = ASGITransport(app=_app(DownRedis(), limit=1))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            codes = [(await client.post("/api/v1/trades/bet", headers=headers)).status_code for _ in range(3)]
        assert codes == [200, 200, 200]
