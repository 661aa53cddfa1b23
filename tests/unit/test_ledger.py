"""Tests for st_wallet.domain.ledger — balance and chain invariants.

Runs against the in-memory repository in tests.unit.fakes; every wallet must
satisfy, after any sequence of postings:
  balance == Σ amount
  tx[i].balance_after == tx[i].balance_before + tx[i].amount
  tx[i].balance_before == tx[i-1].balance_after
"""

import asyncio
from decimal import Decimal

import pytest

from src.st_common.enums import PaymentStatus, WalletTransactionType
from src.st_common.errors import (
    InsufficientBalanceError,
    InvalidAmountError,
    OrderNotFoundError,
    WalletInactiveError,
)
from src.st_common.identity import WalletOwnerId
from src.st_wallet.domain.ledger import revenue_key
from tests.unit.fakes import FakeSession, World, make_order

OWNER = WalletOwnerId("artisan-1")


def assert_ledger_consistent(world: World, owner: str) -> None:
    txs = world.wallets.transactions_for(owner)
    wallet = world.wallets.wallets[owner]
    assert wallet.balance == sum(t.amount for t in txs)
    assert wallet.balance >= 0
    previous_after = 0
    for t in txs:
        assert t.balance_after == t.balance_before + t.amount
        assert t.balance_before == previous_after
        previous_after = t.balance_after


class TestCreditDebit:
    async def test_credit_creates_wallet_lazily(self, world: World, db: FakeSession) -> None:
        posting = await world.ledger.credit_funds(
            db, OWNER, 2500, WalletTransactionType.TOP_UP, "Top up"
        )
        assert posting.wallet.balance == 2500
        assert posting.transaction.balance_before == 0
        assert posting.transaction.balance_after == 2500
        assert_ledger_consistent(world, OWNER)

    async def test_debit_appends_negative_amount(self, world: World, db: FakeSession) -> None:
        world.wallets.seed(OWNER, 5000)
        posting = await world.ledger.debit_funds(
            db, OWNER, 1200, WalletTransactionType.PURCHASE, "Supplies"
        )
        assert posting.transaction.amount == -1200
        assert posting.wallet.balance == 3800
        assert posting.wallet.counters.total_spent == 1200
        assert_ledger_consistent(world, OWNER)

    async def test_insufficient_balance_leaves_balance_unchanged(
        self, world: World, db: FakeSession
    ) -> None:
        world.wallets.seed(OWNER, 1000)
        with pytest.raises(InsufficientBalanceError) as exc:
            await world.ledger.debit_funds(
                db, OWNER, 1001, WalletTransactionType.PAYOUT, "Too much"
            )
        assert exc.value.available == 1000
        assert world.wallets.wallets[OWNER].balance == 1000
        assert len(world.wallets.transactions_for(OWNER)) == 1

    async def test_inactive_wallet_rejects_debit(self, world: World, db: FakeSession) -> None:
        world.wallets.seed(OWNER, 1000).is_active = False
        with pytest.raises(WalletInactiveError):
            await world.ledger.debit_funds(db, OWNER, 10, WalletTransactionType.PURCHASE, "x")

    async def test_inactive_wallet_still_accepts_credit(
        self, world: World, db: FakeSession
    ) -> None:
        world.wallets.seed(OWNER, 0).is_active = False
        posting = await world.ledger.credit_funds(
            db, OWNER, 10, WalletTransactionType.REFUND, "Refund"
        )
        assert posting.wallet.balance == 10

    @pytest.mark.parametrize("amount", [0, -5, 12.5])
    async def test_invalid_amount_raises(
        self, world: World, db: FakeSession, amount: object
    ) -> None:
        with pytest.raises(InvalidAmountError):
            await world.ledger.credit_funds(
                db, OWNER, amount, WalletTransactionType.TOP_UP, "bad"  # type: ignore[arg-type]
            )

    async def test_idempotency_key_replays(self, world: World, db: FakeSession) -> None:
        first = await world.ledger.credit_funds(
            db, OWNER, 700, WalletTransactionType.TOP_UP, "once", idempotency_key="k-1"
        )
        second = await world.ledger.credit_funds(
            db, OWNER, 700, WalletTransactionType.TOP_UP, "once", idempotency_key="k-1"
        )
        assert second.replayed is True
        assert second.transaction.id == first.transaction.id
        assert world.wallets.wallets[OWNER].balance == 700


class TestConcurrency:
    async def test_concurrent_credits_keep_chain(self, world: World) -> None:
        async def credit(i: int) -> None:
            db = FakeSession()
            await world.ledger.credit_funds(
                db, OWNER, 100 + i, WalletTransactionType.TOP_UP, f"credit {i}"
            )
            await db.commit()

        await asyncio.gather(*(credit(i) for i in range(20)))

        assert world.wallets.wallets[OWNER].balance == sum(100 + i for i in range(20))
        assert_ledger_consistent(world, OWNER)

    async def test_concurrent_debits_never_overdraw(self, world: World) -> None:
        world.wallets.seed(OWNER, 1000)
        outcomes: list[str] = []

        async def debit() -> None:
            db = FakeSession()
            try:
                await world.ledger.debit_funds(
                    db, OWNER, 300, WalletTransactionType.PURCHASE, "buy"
                )
                await db.commit()
                outcomes.append("ok")
            except InsufficientBalanceError:
                await db.rollback()
                outcomes.append("refused")

        await asyncio.gather(*(debit() for _ in range(5)))

        assert outcomes.count("ok") == 3
        assert outcomes.count("refused") == 2
        assert world.wallets.wallets[OWNER].balance == 100
        assert_ledger_consistent(world, OWNER)


class TestOrderRevenue:
    async def test_pickup_revenue(self, world: World, db: FakeSession) -> None:
        world.orders.add(make_order(total_amount=10000))
        posting = await world.ledger.credit_order_revenue(db, "ord-1")
        assert posting is not None
        assert posting.transaction.amount == 9000
        assert posting.transaction.type == "revenue"
        assert posting.transaction.idempotency_key == revenue_key("ord-1")
        assert posting.transaction.metadata["platform_fee"] == 1000
        assert posting.wallet.counters.total_earnings == 9000
        assert posting.wallet.counters.platform_fees == 1000

    async def test_revenue_credited_once(self, world: World, db: FakeSession) -> None:
        world.orders.add(make_order(total_amount=10000))
        await world.ledger.credit_order_revenue(db, "ord-1")
        again = await world.ledger.credit_order_revenue(db, "ord-1")
        assert again is not None and again.replayed is True
        assert len(world.wallets.transactions_for("artisan-1")) == 1
        assert world.wallets.wallets["artisan-1"].balance == 9000

    async def test_wallet_keyed_by_seller_user_id(self, world: World, db: FakeSession) -> None:
        order = world.orders.add(make_order(seller="user-42"))
        await world.ledger.credit_order_revenue(db, order.id)
        assert "user-42" in world.wallets.wallets
        assert order.artisan_profile_id not in world.wallets.wallets

    async def test_zero_net_writes_nothing(self, db: FakeSession) -> None:
        world = World(fee_rate=Decimal("1"))
        world.orders.add(make_order(total_amount=5000))
        assert await world.ledger.credit_order_revenue(db, "ord-1") is None
        assert world.wallets.transactions == []

    async def test_missing_order_raises(self, world: World, db: FakeSession) -> None:
        with pytest.raises(OrderNotFoundError):
            await world.ledger.credit_order_revenue(db, "nope")

    async def test_revenue_ignores_payment_status(self, world: World, db: FakeSession) -> None:
        world.orders.add(make_order(payment_status=PaymentStatus.HELD_IN_DISPUTE.value))
        posting = await world.ledger.credit_order_revenue(db, "ord-1")
        assert posting is not None and posting.transaction.amount == 9000
