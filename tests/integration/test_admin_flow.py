"""Integration tests for the admin surface: lifecycle, settlement, refunds, stipend."""

from httpx import AsyncClient

from tests.factories import bearer


async def _bet(client: AsyncClient, headers, market_id: str, side: str, amount: float) -> dict:
    resp = await client.post(
        "/api/v1/trades/bet",
        json={"market_id": market_id, "side": side, "amount": amount},
        headers=headers,
    )
    assert resp.status_code == 200
    return resp.json()["data"]


async def _balance(client: AsyncClient, headers) -> float:
    return (await client.get("/api/v1/wallets/balance", headers=headers)).json()["data"]["balance"]


class TestCreateMarket:
    async def test_create_scoped_market_uses_scoped_b(self, client: AsyncClient, admin_headers) -> None:
        resp = await client.post(
            "/api/v1/admin/markets",
            json={"question": "Dorm trivia night winner is team A?", "scope_id": "dorm-7"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["b"] == 50.0
        assert data["scope_id"] == "dorm-7"

    async def test_create_with_initial_probability(self, client: AsyncClient, admin_headers) -> None:
        resp = await client.post(
            "/api/v1/admin/markets",
            json={"question": "Snow day this week?", "initial_probability": 0.8},
            headers=admin_headers,
        )
        assert abs(resp.json()["data"]["probability"] - 0.8) < 1e-6

    async def test_rejects_bad_b(self, client: AsyncClient, admin_headers) -> None:
        resp = await client.post(
            "/api/v1/admin/markets", json={"question": "Q?", "b": -5}, headers=admin_headers
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == 4001


class TestLockUnlock:
    async def test_round_trip(self, client: AsyncClient, open_market, admin_headers) -> None:
        locked = await client.post(f"/api/v1/admin/markets/{open_market}/lock", headers=admin_headers)
        assert locked.json()["data"]["status"] == "LOCKED"
        again = await client.post(f"/api/v1/admin/markets/{open_market}/lock", headers=admin_headers)
        assert again.status_code == 422
        assert again.json()["code"] == 3004
        unlocked = await client.post(f"/api/v1/admin/markets/{open_market}/unlock", headers=admin_headers)
        assert unlocked.json()["data"]["status"] == "OPEN"


class TestResolve:
    async def test_winner_paid_loser_not(
        self, client: AsyncClient, open_market, admin_headers, alice_headers, bob_headers
    ) -> None:
        yes = await _bet(client, alice_headers, open_market, "YES", 30)
        await _bet(client, bob_headers, open_market, "NO", 20)

        resp = await client.post(
            f"/api/v1/admin/markets/{open_market}/resolve",
            json={"resolution": "YES"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        report = resp.json()["data"]
        assert report["status"] == "RESOLVED"
        assert report["users_settled"] == 2
        assert abs(report["total_amount"] - round(yes["shares"], 2)) <= 0.01

        assert abs(await _balance(client, alice_headers) - (970 + yes["shares"])) <= 0.01
        assert await _balance(client, bob_headers) == 980.0

        market = (await client.get(f"/api/v1/markets/{open_market}", headers=alice_headers)).json()["data"]
        assert market["resolution"] == "YES"
        assert market["settlement_pending"] is False

        again = await client.post(
            f"/api/v1/admin/markets/{open_market}/resolve",
            json={"resolution": "NO"},
            headers=admin_headers,
        )
        assert again.status_code == 409
        assert again.json()["code"] == 3005

    async def test_trading_closed_after_resolve(
        self, client: AsyncClient, open_market, admin_headers, alice_headers
    ) -> None:
        await client.post(
            f"/api/v1/admin/markets/{open_market}/resolve",
            json={"resolution": "NO"},
            headers=admin_headers,
        )
        resp = await client.post(
            "/api/v1/trades/bet",
            json={"market_id": open_market, "side": "YES", "amount": 5},
            headers=alice_headers,
        )
        assert resp.json()["code"] == 3002


class TestCancel:
    async def test_net_contributions_refunded(
        self, client: AsyncClient, open_market, admin_headers, alice_headers, bob_headers
    ) -> None:
        await _bet(client, alice_headers, open_market, "YES", 40)
        await _bet(client, bob_headers, open_market, "NO", 15)

        resp = await client.post(
            f"/api/v1/admin/markets/{open_market}/cancel",
            json={"reason": "  Question was ambiguous  "},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["total_amount"] == 55.0
        assert await _balance(client, alice_headers) == 1000.0
        assert await _balance(client, bob_headers) == 1000.0

        market = (await client.get(f"/api/v1/markets/{open_market}", headers=alice_headers)).json()["data"]
        assert market["status"] == "CANCELLED"
        assert market["cancellation_reason"] == "Question was ambiguous"


class TestRefundEntry:
    async def test_refund_single_bet(
        self, client: AsyncClient, open_market, admin_headers, alice_headers
    ) -> None:
        bet = await _bet(client, alice_headers, open_market, "YES", 25)
        resp = await client.post(f"/api/v1/admin/ledger/{bet['entry_id']}/refund", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["amount"] == 25.0
        assert await _balance(client, alice_headers) == 1000.0

        positions = (await client.get("/api/v1/portfolio/positions", headers=alice_headers)).json()["data"]
        assert positions["total"] == 0

        twice = await client.post(f"/api/v1/admin/ledger/{bet['entry_id']}/refund", headers=admin_headers)
        assert twice.status_code == 422
        assert twice.json()["code"] == 5003

    async def test_unknown_entry(self, client: AsyncClient, admin_headers) -> None:
        resp = await client.post("/api/v1/admin/ledger/bet-missing/refund", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == 5002


class TestStipend:
    async def test_dry_run_then_real_run(self, client: AsyncClient, open_market, admin_headers) -> None:
        dry = await client.post("/api/v1/admin/stipend", json={"dry_run": True}, headers=admin_headers)
        assert dry.json()["data"]["injected_count"] == 2
        assert await _balance(client, bearer("alice")) == 1000.0

        real = await client.post("/api/v1/admin/stipend", json={}, headers=admin_headers)
        assert real.json()["data"]["injected_count"] == 2
        assert await _balance(client, bearer("alice")) == 1050.0

        rerun = await client.post("/api/v1/admin/stipend", json={}, headers=admin_headers)
        assert rerun.json()["data"]["injected_count"] == 0
