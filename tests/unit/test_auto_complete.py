"""Tests for st_scheduler.auto_complete — deadline sweep."""

import asyncio
from datetime import datetime, timedelta

from src.st_common.datetime_utils import utc_now
from src.st_common.enums import ConfirmationState, DeliveryMethod
from src.st_confirmation.application.service import Caller
from tests.unit.fakes import FakeSession, World, make_order

SELLER_ID = "artisan-1"


async def _seller_confirmed(world: World, db: FakeSession, **order_kwargs: object) -> None:
    order = world.orders.add(make_order(**order_kwargs))  # type: ignore[arg-type]
    await world.confirmation_service().confirm_seller(
        db, order.id, SELLER_ID, order.leg.value
    )


def _after_deadline() -> datetime:
    return utc_now() + timedelta(days=30)


class TestSweep:
    async def test_personal_delivery_auto_completes(
        self, world: World, db: FakeSession
    ) -> None:
        # 100.00 products + 10.00 seller delivery, 10% fee → 100.00 credited.
        await _seller_confirmed(
            world,
            db,
            delivery_method=DeliveryMethod.PERSONAL_DELIVERY.value,
            total_amount=10000,
            delivery_fee=1000,
        )

        result = await world.sweeper().sweep(_after_deadline())

        assert (result.candidates, result.completed, result.skipped, result.failed) == (
            1, 1, 0, 0
        )
        conf = world.confirmations.confirmations["ord-1"]
        assert conf.state == ConfirmationState.AUTO_COMPLETED
        assert conf.auto_completed_at is not None
        order = world.orders.orders["ord-1"]
        assert order.payment_status == "paid"
        assert order.status == "delivered"
        assert world.wallets.wallets[SELLER_ID].balance == 10000

    async def test_not_due_before_deadline(self, world: World, db: FakeSession) -> None:
        await _seller_confirmed(world, db)
        result = await world.sweeper().sweep(utc_now())
        assert result.candidates == 0
        assert world.orders.orders["ord-1"].payment_status == "pending"

    async def test_disputed_order_skipped(self, world: World, db: FakeSession) -> None:
        await _seller_confirmed(world, db)
        await world.confirmation_service().report_dispute(
            db, "ord-1", Caller(user_id="patron-1"), "damaged", "Broken"
        )

        result = await world.sweeper().sweep(_after_deadline())

        assert result.completed == 0
        assert world.orders.orders["ord-1"].payment_status == "held_in_dispute"
        assert world.confirmations.confirmations["ord-1"].auto_completed_at is None
        assert world.wallets.transactions == []

    async def test_dispute_after_listing_is_rechecked(
        self, world: World, db: FakeSession
    ) -> None:
        await _seller_confirmed(world, db)
        sweeper = world.sweeper()
        now = _after_deadline()
        async with world.session_factory() as listing:
            assert await world.confirmations.list_due_order_ids(listing, now, 10) == ["ord-1"]
        await world.confirmation_service().report_dispute(
            db, "ord-1", Caller(user_id="patron-1"), "damaged", "Broken"
        )

        assert await sweeper._complete_one("ord-1", now) is False
        assert world.wallets.transactions == []

    async def test_buyer_confirmed_orders_ignored(self, world: World, db: FakeSession) -> None:
        await _seller_confirmed(world, db)
        await world.confirmation_service().confirm_buyer(
            db, "ord-1", Caller(user_id="patron-1"), "pickup"
        )

        result = await world.sweeper().sweep(_after_deadline())

        assert result.candidates == 0
        assert len(world.wallets.transactions) == 1

    async def test_overlapping_sweeps_credit_once(self, world: World, db: FakeSession) -> None:
        await _seller_confirmed(world, db)
        now = _after_deadline()

        first, second = await asyncio.gather(
            world.sweeper().sweep(now), world.sweeper().sweep(now)
        )

        assert first.completed + second.completed == 1
        assert len(world.wallets.transactions_for(SELLER_ID)) == 1

    async def test_failure_is_counted_and_left_for_retry(
        self, world: World, db: FakeSession
    ) -> None:
        await _seller_confirmed(world, db)

        async def broken_get(*args: object, **kwargs: object) -> None:
            raise RuntimeError("connection reset")

        world.orders.get_by_id = broken_get  # type: ignore[method-assign]

        result = await world.sweeper().sweep(_after_deadline())

        assert result.failed == 1
        assert world.confirmations.confirmations["ord-1"].auto_completed_at is None
