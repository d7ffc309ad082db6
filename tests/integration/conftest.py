"""Integration-test fixtures.

The app runs in-process over ASGITransport against the in-memory store, with
the rate limiter's Redis swapped for a dict-backed fake. Every test gets a
fresh store.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.main import app
from src.pm_common import redis_client
from tests.factories import bearer
from tests.fakes import FakeRedis


@pytest_asyncio.fixture
async def client(app_store) -> AsyncClient:  # type: ignore[override]
    redis_client._redis_pool = FakeRedis()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    redis_client._redis_pool = None


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return bearer("root", roles=("admin",))


@pytest.fixture
def alice_headers() -> dict[str, str]:
    return bearer("alice")


@pytest.fixture
def bob_headers() -> dict[str, str]:
    return bearer("bob")


@pytest_asyncio.fixture
async def open_market(client: AsyncClient, admin_headers) -> str:
    """A fresh global market plus funded wallets for alice and bob."""
    resp = await client.post(
        "/api/v1/admin/markets",
        json={"question": "Will the library stay open past midnight?"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    for user_id in ("alice", "bob"):
        opened = await client.post("/api/v1/wallets", json={}, headers=bearer(user_id))
        assert opened.status_code == 200
    return resp.json()["data"]["id"]
