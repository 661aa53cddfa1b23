"""Tests for st_confirmation.domain.state_machine — pure transitions."""

from datetime import UTC, datetime, timedelta

import pytest

from src.st_common.enums import ConfirmationState
from src.st_common.errors import (
    AlreadyFinalizedError,
    InvalidTransitionError,
    OrderDisputedError,
)
from src.st_confirmation.domain import state_machine as sm

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _awaiting_buyer(hours: int = 48):
    return sm.confirm_seller(sm.new_confirmation("ord-1", "pickup"), T0, hours)


class TestSellerConfirm:
    def test_sets_deadline_from_window(self) -> None:
        c = _awaiting_buyer(48)
        assert c.state == ConfirmationState.AWAITING_BUYER
        assert c.artisan_confirmed.confirmed is True
        assert c.artisan_confirmed.confirmed_at == T0
        assert c.completion_deadline == T0 + timedelta(hours=48)

    def test_keeps_proof_and_notes(self) -> None:
        c = sm.confirm_seller(
            sm.new_confirmation("ord-1", "delivery"), T0, 48, "left at door", ("s3://p.jpg",)
        )
        assert c.delivery_proof == ("s3://p.jpg",)
        assert c.artisan_confirmed.notes == "left at door"

    def test_repeat_is_noop_and_keeps_deadline(self) -> None:
        first = _awaiting_buyer()
        again = sm.confirm_seller(first, T0 + timedelta(hours=5), 48)
        assert again is first
        assert again.completion_deadline == T0 + timedelta(hours=48)

    def test_after_completion_raises(self) -> None:
        done = sm.confirm_buyer(_awaiting_buyer(), T0)
        with pytest.raises(AlreadyFinalizedError):
            sm.confirm_seller(done, T0, 48)


class TestBuyerConfirm:
    def test_after_seller_completes(self) -> None:
        c = sm.confirm_buyer(_awaiting_buyer(), T0 + timedelta(hours=1))
        assert c.state == ConfirmationState.COMPLETED
        assert c.buyer_confirmed.confirmed is True

    def test_before_seller_completes(self) -> None:
        c = sm.confirm_buyer(sm.new_confirmation("ord-1", "pickup"), T0)
        assert c.state == ConfirmationState.COMPLETED
        assert c.artisan_confirmed.confirmed is False

    def test_twice_raises_already_finalized(self) -> None:
        done = sm.confirm_buyer(_awaiting_buyer(), T0)
        with pytest.raises(AlreadyFinalizedError):
            sm.confirm_buyer(done, T0)

    def test_disputed_raises(self) -> None:
        disputed = sm.mark_disputed(_awaiting_buyer())
        with pytest.raises(OrderDisputedError):
            sm.confirm_buyer(disputed, T0)


class TestAutoComplete:
    def test_due_after_deadline(self) -> None:
        c = _awaiting_buyer(48)
        assert sm.is_due(c, T0 + timedelta(hours=48)) is True
        assert sm.is_due(c, T0 + timedelta(hours=47)) is False

    def test_auto_complete_stamps_time(self) -> None:
        now = T0 + timedelta(hours=49)
        c = sm.auto_complete(_awaiting_buyer(48), now)
        assert c.state == ConfirmationState.AUTO_COMPLETED
        assert c.auto_completed_at == now
        assert sm.is_due(c, now) is False

    def test_before_deadline_raises(self) -> None:
        with pytest.raises(InvalidTransitionError):
            sm.auto_complete(_awaiting_buyer(48), T0 + timedelta(hours=1))

    def test_awaiting_seller_raises(self) -> None:
        with pytest.raises(InvalidTransitionError):
            sm.auto_complete(sm.new_confirmation("ord-1", "pickup"), T0)

    def test_disputed_not_due(self) -> None:
        disputed = sm.mark_disputed(_awaiting_buyer(48))
        assert sm.is_due(disputed, T0 + timedelta(days=30)) is False


class TestDispute:
    def test_from_awaiting_seller(self) -> None:
        c = sm.mark_disputed(sm.new_confirmation("ord-1", "pickup"))
        assert c.state == ConfirmationState.DISPUTED

    def test_from_completed_raises(self) -> None:
        done = sm.confirm_buyer(_awaiting_buyer(), T0)
        with pytest.raises(AlreadyFinalizedError):
            sm.mark_disputed(done)

    def test_twice_raises(self) -> None:
        disputed = sm.mark_disputed(_awaiting_buyer())
        with pytest.raises(OrderDisputedError):
            sm.mark_disputed(disputed)

    def test_release_completes(self) -> None:
        released = sm.release_dispute(sm.mark_disputed(_awaiting_buyer()))
        assert released.state == ConfirmationState.COMPLETED

    def test_release_without_dispute_raises(self) -> None:
        with pytest.raises(InvalidTransitionError):
            sm.release_dispute(_awaiting_buyer())


class TestTransitionTable:
    def test_terminal_states_have_no_edges(self) -> None:
        for (state, _action) in sm.TRANSITIONS:
            assert state not in (ConfirmationState.COMPLETED, ConfirmationState.AUTO_COMPLETED)
