"""Confirmation state machine — pure functions over FulfillmentConfirmation.

    AWAITING_SELLER ──seller──▶ AWAITING_BUYER ──buyer──▶ COMPLETED
          │  └───────────buyer──────────────────────────▶ COMPLETED
          │                     └──────deadline──────────▶ AUTO_COMPLETED
          └──dispute──▶ DISPUTED ◀──dispute── AWAITING_BUYER
                        DISPUTED ──release──▶ COMPLETED

Every legal move is listed in TRANSITIONS; anything else raises. Terminal
states reject further actions with AlreadyFinalizedError and a disputed leg
rejects everything but release with OrderDisputedError. A repeated seller
confirmation while awaiting the buyer returns the confirmation unchanged,
keeping the original deadline.
"""

import dataclasses
from datetime import datetime
from enum import Enum

from src.st_common.datetime_utils import add_hours
from src.st_common.enums import ConfirmationState
from src.st_common.errors import (
    AlreadyFinalizedError,
    InvalidTransitionError,
    OrderDisputedError,
)
from src.st_confirmation.domain.models import FulfillmentConfirmation, PartyConfirmation


class ConfirmationAction(str, Enum):
    SELLER_CONFIRM = "seller_confirm"
    BUYER_CONFIRM = "buyer_confirm"
    AUTO_COMPLETE = "auto_complete"
    REPORT_DISPUTE = "report_dispute"
    RELEASE_DISPUTE = "release_dispute"


_S = ConfirmationState
_A = ConfirmationAction

TRANSITIONS: dict[tuple[ConfirmationState, ConfirmationAction], ConfirmationState] = {
    (_S.AWAITING_SELLER, _A.SELLER_CONFIRM): _S.AWAITING_BUYER,
    (_S.AWAITING_SELLER, _A.BUYER_CONFIRM): _S.COMPLETED,
    (_S.AWAITING_SELLER, _A.REPORT_DISPUTE): _S.DISPUTED,
    (_S.AWAITING_BUYER, _A.SELLER_CONFIRM): _S.AWAITING_BUYER,
    (_S.AWAITING_BUYER, _A.BUYER_CONFIRM): _S.COMPLETED,
    (_S.AWAITING_BUYER, _A.AUTO_COMPLETE): _S.AUTO_COMPLETED,
    (_S.AWAITING_BUYER, _A.REPORT_DISPUTE): _S.DISPUTED,
    (_S.DISPUTED, _A.RELEASE_DISPUTE): _S.COMPLETED,
}


def next_state(
    confirmation: FulfillmentConfirmation, action: ConfirmationAction
) -> ConfirmationState:
    state = ConfirmationState(confirmation.state)
    target = TRANSITIONS.get((state, action))
    if target is not None:
        return target
    if confirmation.is_terminal:
        raise AlreadyFinalizedError(confirmation.order_id)
    if state == ConfirmationState.DISPUTED:
        raise OrderDisputedError(confirmation.order_id)
    raise InvalidTransitionError(state.value, action.value)


def new_confirmation(order_id: str, leg: str) -> FulfillmentConfirmation:
    return FulfillmentConfirmation(order_id=order_id, leg=leg)


def confirm_seller(
    confirmation: FulfillmentConfirmation,
    now: datetime,
    window_hours: int,
    notes: str | None = None,
    delivery_proof: tuple[str, ...] = (),
) -> FulfillmentConfirmation:
    target = next_state(confirmation, ConfirmationAction.SELLER_CONFIRM)
    if confirmation.state == ConfirmationState.AWAITING_BUYER:
        return confirmation
    return dataclasses.replace(
        confirmation,
        state=target,
        artisan_confirmed=PartyConfirmation(True, now, notes),
        delivery_proof=tuple(delivery_proof),
        completion_deadline=add_hours(now, window_hours),
    )


def confirm_buyer(
    confirmation: FulfillmentConfirmation, now: datetime, notes: str | None = None
) -> FulfillmentConfirmation:
    target = next_state(confirmation, ConfirmationAction.BUYER_CONFIRM)
    return dataclasses.replace(
        confirmation,
        state=target,
        buyer_confirmed=PartyConfirmation(True, now, notes),
    )


def is_due(confirmation: FulfillmentConfirmation, now: datetime) -> bool:
    return (
        confirmation.state == ConfirmationState.AWAITING_BUYER
        and confirmation.artisan_confirmed.confirmed
        and not confirmation.buyer_confirmed.confirmed
        and confirmation.auto_completed_at is None
        and confirmation.completion_deadline is not None
        and confirmation.completion_deadline <= now
    )


def auto_complete(
    confirmation: FulfillmentConfirmation, now: datetime
) -> FulfillmentConfirmation:
    target = next_state(confirmation, ConfirmationAction.AUTO_COMPLETE)
    if not is_due(confirmation, now):
        raise InvalidTransitionError(confirmation.state.value, "auto_complete before deadline")
    return dataclasses.replace(confirmation, state=target, auto_completed_at=now)


def mark_disputed(confirmation: FulfillmentConfirmation) -> FulfillmentConfirmation:
    target = next_state(confirmation, ConfirmationAction.REPORT_DISPUTE)
    return dataclasses.replace(confirmation, state=target)


def release_dispute(confirmation: FulfillmentConfirmation) -> FulfillmentConfirmation:
    target = next_state(confirmation, ConfirmationAction.RELEASE_DISPUTE)
    return dataclasses.replace(confirmation, state=target)
