"""Tests for st_admin — wallet activation, ledger verification, dispatch."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.st_admin.application.service import AdminService
from src.st_admin.domain.ledger_invariants import verify_wallet_ledgers
from src.st_common.errors import WalletNotFoundError
from src.st_common.identity import WalletOwnerId
from src.st_notification.application.dispatcher import DispatchResult
from tests.unit.fakes import FakeSession, World

OWNER = WalletOwnerId("artisan-1")


def _result(rows: list[SimpleNamespace]) -> MagicMock:
    result = MagicMock()
    result.fetchall.return_value = rows
    return result


class TestWalletActivation:
    async def test_deactivate_is_audited(self, world: World, db: FakeSession) -> None:
        world.wallets.seed(OWNER, 2500)
        svc = AdminService(world.wallets, world.audit)

        resp = await svc.set_wallet_active(db, OWNER, False, "admin-1", "Chargeback review")

        assert resp.is_active is False
        assert resp.balance_cents == 2500
        entry = world.audit.entries[0]
        assert entry.action == "wallet.deactivated"
        assert entry.before_value == {"is_active": True}
        assert entry.description == "Chargeback review"
        assert db.commits == 1

    async def test_reactivate(self, world: World, db: FakeSession) -> None:
        world.wallets.seed(OWNER, 0).is_active = False
        resp = await AdminService(world.wallets, world.audit).set_wallet_active(
            db, OWNER, True, "admin-1"
        )
        assert resp.is_active is True
        assert world.audit.actions() == ["wallet.activated"]

    async def test_unknown_wallet(self, world: World, db: FakeSession) -> None:
        with pytest.raises(WalletNotFoundError):
            await AdminService(world.wallets, world.audit).set_wallet_active(
                db, OWNER, False, "admin-1"
            )
        assert db.rollbacks == 1
        assert world.audit.entries == []


class TestVerifyLedgers:
    async def test_clean_ledger(self) -> None:
        db = AsyncMock()
        db.execute.side_effect = [_result([]), _result([])]
        assert await verify_wallet_ledgers(db) == []

    async def test_reports_drift_and_chain_break(self) -> None:
        db = AsyncMock()
        db.execute.side_effect = [
            _result([SimpleNamespace(owner_id="a-1", balance_cents=900, ledger_sum=1000)]),
            _result([
                SimpleNamespace(
                    owner_id="a-2",
                    id=7,
                    amount_cents=-100,
                    balance_before_cents=500,
                    balance_after_cents=400,
                    prev_after=450,
                )
            ]),
        ]

        violations = await verify_wallet_ledgers(db, limit=10)

        assert len(violations) == 2
        assert "balance 900 != ledger sum 1000" in violations[0]
        assert "transaction 7" in violations[1]
        assert "expected before=450" in violations[1]

    async def test_service_summarizes(self) -> None:
        count = MagicMock()
        count.scalar_one.return_value = 3
        db = AsyncMock()
        db.execute.side_effect = [count, _result([]), _result([])]

        resp = await AdminService(AsyncMock(), AsyncMock()).verify_ledgers(db)

        assert resp.ok is True
        assert resp.wallets_checked == 3
        assert resp.violations == []


class TestDispatchNotifications:
    async def test_returns_counts(self) -> None:
        dispatcher = AsyncMock()
        dispatcher.dispatch_once.return_value = DispatchResult(claimed=3, sent=2, failed=1)

        resp = await AdminService(AsyncMock(), AsyncMock(), dispatcher).dispatch_notifications()

        assert (resp.claimed, resp.sent, resp.failed) == (3, 2, 1)
