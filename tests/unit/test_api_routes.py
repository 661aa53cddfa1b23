"""HTTP-level tests: envelope, auth and error mapping through the FastAPI app."""

from collections.abc import AsyncGenerator

import pytest
from httpx import AsyncClient

from src.main import app
from src.st_common.database import get_db_session
from src.st_confirmation.api import router as confirmation_api
from src.st_gateway.auth.jwt_handler import create_access_token
from src.st_wallet.api import router as wallet_api
from src.st_wallet.application.service import WalletApplicationService
from tests.unit.fakes import FakeSession, World, make_order


def _auth(user_id: str, role: str = "artisan") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest.fixture
def wired(world: World, monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[World, None]:
    async def _session() -> AsyncGenerator[FakeSession, None]:
        yield world.session_factory()

    app.dependency_overrides[get_db_session] = _session
    monkeypatch.setattr(confirmation_api, "_service", world.confirmation_service())
    monkeypatch.setattr(
        wallet_api, "_service", WalletApplicationService(world.wallets, world.ledger)
    )
    yield world
    app.dependency_overrides.clear()


class TestHealth:
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestAuth:
    async def test_missing_token_is_401(self, client: AsyncClient, wired: World) -> None:
        resp = await client.get("/api/v1/wallet/balance")
        assert resp.status_code == 401

    async def test_garbage_token_is_401(self, client: AsyncClient, wired: World) -> None:
        resp = await client.get(
            "/api/v1/wallet/balance", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert resp.status_code == 401

    async def test_non_admin_cannot_trigger_sweep(self, client: AsyncClient, wired: World) -> None:
        resp = await client.post(
            "/api/v1/confirmations/auto-complete", headers=_auth("artisan-1")
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == 1006


class TestConfirmationRoutes:
    async def test_buyer_confirmation_credits_seller(
        self, client: AsyncClient, wired: World
    ) -> None:
        wired.orders.add(make_order(total_amount=10000))

        resp = await client.post(
            "/api/v1/confirmations/pickup/buyer/ord-1",
            json={"notes": "collected"},
            headers=_auth("patron-1", "patron"),
        )

        body = resp.json()
        assert resp.status_code == 200
        assert body["code"] == 0
        assert body["data"]["credited_cents"] == 9000
        assert body["data"]["payment_status"] == "paid"

        balance = await client.get("/api/v1/wallet/balance", headers=_auth("artisan-1"))
        assert balance.json()["data"]["balance_cents"] == 9000

    async def test_unknown_order_maps_to_404(self, client: AsyncClient, wired: World) -> None:
        resp = await client.post(
            "/api/v1/confirmations/pickup/artisan/missing", headers=_auth("artisan-1")
        )
        body = resp.json()
        assert resp.status_code == 404
        assert body["code"] == 3001
        assert body["data"] is None

    async def test_wrong_leg_maps_to_422(self, client: AsyncClient, wired: World) -> None:
        wired.orders.add(make_order(delivery_method="delivery"))
        resp = await client.post(
            "/api/v1/confirmations/pickup/artisan/ord-1", headers=_auth("artisan-1")
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == 3003

    async def test_stranger_cannot_read_status(self, client: AsyncClient, wired: World) -> None:
        wired.orders.add(make_order())
        resp = await client.get(
            "/api/v1/confirmations/status/ord-1", headers=_auth("someone-else")
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == 3002


class TestWalletRoutes:
    async def test_check_balance(self, client: AsyncClient, wired: World) -> None:
        wired.wallets.seed("artisan-1", 1500)
        resp = await client.get(
            "/api/v1/wallet/check-balance",
            params={"amount_cents": 2000},
            headers=_auth("artisan-1"),
        )
        data = resp.json()["data"]
        assert data["has_sufficient_balance"] is False
        assert data["shortfall_cents"] == 500

    async def test_overdraft_maps_to_422(self, client: AsyncClient, wired: World) -> None:
        wired.wallets.seed("artisan-1", 100)
        resp = await client.post(
            "/api/v1/wallet/deduct",
            json={"amount_cents": 500, "description": "supplies"},
            headers=_auth("artisan-1"),
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == 2001

    async def test_seller_cannot_post_payout_debit(
        self, client: AsyncClient, wired: World
    ) -> None:
        wired.wallets.seed("artisan-1", 5000)
        resp = await client.post(
            "/api/v1/wallet/deduct",
            json={"amount_cents": 3000, "type": "payout", "description": "cash out"},
            headers=_auth("artisan-1"),
        )
        assert resp.status_code == 422
        assert wired.wallets.wallets["artisan-1"].balance == 5000
        assert wired.wallets.wallets["artisan-1"].counters.total_payouts == 0
        assert [t.type for t in wired.wallets.transactions_for("artisan-1")] == ["adjustment"]

    async def test_fee_debit_allowed(self, client: AsyncClient, wired: World) -> None:
        wired.wallets.seed("artisan-1", 5000)
        resp = await client.post(
            "/api/v1/wallet/deduct",
            json={"amount_cents": 300, "type": "fee", "description": "listing fee"},
            headers=_auth("artisan-1"),
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["transaction"]["type"] == "fee"
        assert resp.json()["data"]["balance_cents"] == 4700
