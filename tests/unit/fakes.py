"""In-memory fakes implementing the repository Protocols.

FakeSession stands in for AsyncSession: it counts commits and rollbacks and
holds per-row asyncio locks taken by `for_update=True` reads until the
transaction ends, which is what SELECT ... FOR UPDATE gives the real code.
The fakes do not undo writes on rollback; tests only roll back after
failures that happen before anything was written.
"""

import asyncio
import copy
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from config.settings import settings
from src.st_admin.domain.audit import AuditEntry
from src.st_common.enums import (
    ConfirmationState,
    DeliveryMethod,
    OrderStatus,
    PaymentStatus,
)
from src.st_common.errors import ExternalProcessorError, PayoutInProgressError
from src.st_common.identity import SellerProfileId, WalletOwnerId
from src.st_confirmation.application.finalizer import OrderFinalizer
from src.st_confirmation.application.service import ConfirmationService
from src.st_confirmation.domain import state_machine
from src.st_confirmation.domain.models import FulfillmentConfirmation
from src.st_dispute.application.service import DisputeService
from src.st_dispute.domain.models import Dispute, DisputeFilters, DisputeStatistics, NewDispute
from src.st_notification.application.outbox import NotificationOutbox
from src.st_notification.domain.models import NotificationIntent, OutboxMessage
from src.st_order.domain.models import Order
from src.st_payout.application.service import PayoutService
from src.st_payout.domain.models import PayoutAttempt, ProcessorAccountStatus, ProcessorPayout
from src.st_scheduler.auto_complete import AutoCompletionSweeper
from src.st_wallet.domain.ledger import WalletLedger
from src.st_wallet.domain.models import (
    NewTransaction,
    PayoutSettings,
    Wallet,
    WalletCounters,
    WalletTransaction,
)
from src.st_wallet.infrastructure.fee_config import SettingsFeeConfig


def _v(x: Any) -> str:
    return str(getattr(x, "value", x))


class _Nested:
    async def __aenter__(self) -> "_Nested":
        return self

    async def __aexit__(self, *exc: object) -> bool:
        return False


class FakeSession:
    def __init__(self) -> None:
        self.commits = 0
        self.rollbacks = 0
        self._held: list[asyncio.Lock] = []

    async def hold(self, lock: asyncio.Lock) -> None:
        if lock in self._held:
            return
        await lock.acquire()
        self._held.append(lock)

    def _release(self) -> None:
        for lock in self._held:
            lock.release()
        self._held.clear()

    async def commit(self) -> None:
        self.commits += 1
        self._release()

    async def rollback(self) -> None:
        self.rollbacks += 1
        self._release()

    def begin_nested(self) -> _Nested:
        return _Nested()

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc: object) -> bool:
        self._release()
        return False


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


def make_order(
    order_id: str = "ord-1",
    delivery_method: str = DeliveryMethod.PICKUP.value,
    total_amount: int = 10000,
    delivery_fee: int = 0,
    payment_status: str = PaymentStatus.PENDING.value,
    seller: str = "artisan-1",
    patron: str | None = "patron-1",
    guest_email: str | None = None,
) -> Order:
    return Order(
        id=order_id,
        status="ready",
        payment_status=payment_status,
        delivery_method=delivery_method,
        total_amount=total_amount,
        delivery_fee=delivery_fee,
        currency="CAD",
        artisan_profile_id=SellerProfileId(f"profile-{seller}"),
        artisan_user_id=WalletOwnerId(seller),
        patron_user_id=patron,
        guest_email=guest_email,
    )


class InMemoryOrderRepository:
    def __init__(self) -> None:
        self.orders: dict[str, Order] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def add(self, order: Order) -> Order:
        self.orders[order.id] = order
        return order

    async def get_by_id(
        self, db: FakeSession, order_id: str, for_update: bool = False
    ) -> Order | None:
        if for_update:
            await db.hold(self._locks.setdefault(order_id, asyncio.Lock()))
        order = self.orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def mark_finalized(
        self, db: FakeSession, order_id: str, expected_payment_statuses: Any
    ) -> Order | None:
        order = self.orders.get(order_id)
        if order is None or order.payment_status not in {_v(s) for s in expected_payment_statuses}:
            return None
        order.payment_status = PaymentStatus.PAID.value
        order.status = (
            OrderStatus.PICKED_UP.value
            if order.delivery_method == DeliveryMethod.PICKUP
            else OrderStatus.DELIVERED.value
        )
        order.completed_at = datetime.now(UTC)
        return copy.deepcopy(order)

    async def set_payment_status(
        self, db: FakeSession, order_id: str, new_status: str, expected_payment_statuses: Any
    ) -> Order | None:
        order = self.orders.get(order_id)
        if order is None or order.payment_status not in {_v(s) for s in expected_payment_statuses}:
            return None
        order.payment_status = _v(new_status)
        return copy.deepcopy(order)


# ---------------------------------------------------------------------------
# Disputes
# ---------------------------------------------------------------------------


class InMemoryDisputeRepository:
    def __init__(self) -> None:
        self.disputes: dict[str, Dispute] = {}

    async def get(self, db: FakeSession, order_id: str, for_update: bool = False) -> Dispute | None:
        d = self.disputes.get(order_id)
        return copy.deepcopy(d) if d else None

    async def open_dispute(self, db: FakeSession, new: NewDispute) -> Dispute | None:
        if new.order_id in self.disputes:
            return None
        d = Dispute(
            order_id=new.order_id,
            is_disputed=True,
            dispute_type=new.dispute_type,
            reason=new.reason,
            reported_by=new.reported_by,
            reporter_id=new.reporter_id,
            details=new.details,
            reported_at=datetime.now(UTC),
            evidence=list(new.evidence),
        )
        self.disputes[new.order_id] = d
        return copy.deepcopy(d)

    async def update_status(
        self,
        db: FakeSession,
        order_id: str,
        expected_status: str,
        status: str,
        admin_notes: str | None,
        resolved_by: str | None,
    ) -> Dispute | None:
        d = self.disputes.get(order_id)
        if d is None or d.status != expected_status:
            return None
        d.status = status
        if admin_notes is not None:
            d.admin_notes = admin_notes
        if resolved_by is not None:
            d.resolved_by = resolved_by
            d.resolved_at = datetime.now(UTC)
        return copy.deepcopy(d)

    async def resolve(
        self,
        db: FakeSession,
        order_id: str,
        resolution: str,
        notes: str | None,
        admin_id: str,
        release_hold: bool,
    ) -> Dispute | None:
        d = self.disputes.get(order_id)
        if d is None or d.resolution is not None:
            return None
        d.resolution = resolution
        d.status = "resolved"
        d.resolution_notes = notes
        d.resolved_by = admin_id
        d.resolved_at = datetime.now(UTC)
        if release_hold:
            d.is_disputed = False
        return copy.deepcopy(d)

    async def add_evidence(
        self, db: FakeSession, order_id: str, evidence: dict[str, Any]
    ) -> Dispute | None:
        d = self.disputes.get(order_id)
        if d is None:
            return None
        d.evidence.append(evidence)
        return copy.deepcopy(d)

    async def list_disputes(
        self,
        db: FakeSession,
        filters: DisputeFilters,
        offset: int,
        limit: int,
        sort_by: str,
        descending: bool,
    ) -> tuple[list[Dispute], int]:
        items = [
            d for d in self.disputes.values()
            if filters.status is None or d.status == filters.status
        ]
        return [copy.deepcopy(d) for d in items[offset:offset + limit]], len(items)

    async def statistics(
        self, db: FakeSession, since: datetime, period_days: int
    ) -> DisputeStatistics:
        items = list(self.disputes.values())
        by_status: dict[str, int] = {}
        for d in items:
            by_status[d.status] = by_status.get(d.status, 0) + 1
        return DisputeStatistics(
            period_days=period_days,
            total=len(items),
            active=sum(1 for d in items if d.is_disputed),
            by_status=by_status,
            by_type={},
            by_reporter={},
            by_resolution={},
            average_resolution_days=None,
        )


# ---------------------------------------------------------------------------
# Confirmations
# ---------------------------------------------------------------------------


class InMemoryConfirmationRepository:
    def __init__(
        self, orders: InMemoryOrderRepository, disputes: InMemoryDisputeRepository
    ) -> None:
        self.confirmations: dict[str, FulfillmentConfirmation] = {}
        self._orders = orders
        self._disputes = disputes

    async def get(self, db: FakeSession, order_id: str) -> FulfillmentConfirmation | None:
        return self.confirmations.get(order_id)

    async def get_or_create(
        self, db: FakeSession, order_id: str, leg: str
    ) -> FulfillmentConfirmation:
        if order_id not in self.confirmations:
            self.confirmations[order_id] = state_machine.new_confirmation(order_id, _v(leg))
        return self.confirmations[order_id]

    async def save(
        self, db: FakeSession, confirmation: FulfillmentConfirmation
    ) -> FulfillmentConfirmation:
        self.confirmations[confirmation.order_id] = confirmation
        return confirmation

    async def list_due_order_ids(self, db: FakeSession, now: datetime, limit: int) -> list[str]:
        due = []
        for order_id, conf in self.confirmations.items():
            order = self._orders.orders.get(order_id)
            dispute = self._disputes.disputes.get(order_id)
            if (
                state_machine.is_due(conf, now)
                and order is not None
                and order.payment_status == PaymentStatus.PENDING
                and not (dispute is not None and dispute.is_disputed)
            ):
                due.append(order_id)
        return due[:limit]

    async def claim_auto_completion(
        self, db: FakeSession, confirmation: FulfillmentConfirmation
    ) -> bool:
        stored = self.confirmations.get(confirmation.order_id)
        if (
            stored is None
            or stored.auto_completed_at is not None
            or stored.state != ConfirmationState.AWAITING_BUYER
        ):
            return False
        self.confirmations[confirmation.order_id] = confirmation
        return True


# ---------------------------------------------------------------------------
# Wallets
# ---------------------------------------------------------------------------


class InMemoryWalletRepository:
    def __init__(self) -> None:
        self.wallets: dict[str, Wallet] = {}
        self.transactions: list[WalletTransaction] = []
        self._locks: dict[str, asyncio.Lock] = {}

    def seed(self, owner_id: str, balance: int = 0, **payout: Any) -> Wallet:
        """Create a wallet whose balance is backed by one opening transaction."""
        wallet = Wallet(
            id=f"w-{owner_id}",
            owner_id=WalletOwnerId(owner_id),
            balance=0,
            currency="CAD",
            payout_settings=PayoutSettings(
                minimum_payout=payout.pop("minimum_payout", settings.DEFAULT_MINIMUM_PAYOUT_CENTS),
                **payout,
            ),
        )
        self.wallets[owner_id] = wallet
        if balance:
            self.transactions.append(
                WalletTransaction(
                    id=len(self.transactions) + 1,
                    wallet_id=wallet.id,
                    owner_id=wallet.owner_id,
                    type="adjustment",
                    amount=balance,
                    currency="CAD",
                    balance_before=0,
                    balance_after=balance,
                )
            )
            wallet.balance = balance
        return wallet

    def _by_id(self, wallet_id: str) -> Wallet:
        return next(w for w in self.wallets.values() if w.id == wallet_id)

    def transactions_for(self, owner_id: str) -> list[WalletTransaction]:
        return [t for t in self.transactions if t.owner_id == owner_id]

    async def get_or_create(
        self, db: FakeSession, owner_id: WalletOwnerId, currency: str
    ) -> Wallet:
        if owner_id not in self.wallets:
            self.wallets[owner_id] = Wallet(
                id=f"w-{owner_id}",
                owner_id=owner_id,
                balance=0,
                currency=currency,
                payout_settings=PayoutSettings(
                    minimum_payout=settings.DEFAULT_MINIMUM_PAYOUT_CENTS
                ),
            )
        return copy.deepcopy(self.wallets[owner_id])

    async def get_by_owner(
        self, db: FakeSession, owner_id: WalletOwnerId, for_update: bool = False
    ) -> Wallet | None:
        if for_update:
            await db.hold(self._locks.setdefault(owner_id, asyncio.Lock()))
        await asyncio.sleep(0)
        wallet = self.wallets.get(owner_id)
        return copy.deepcopy(wallet) if wallet else None

    async def find_transaction_by_key(
        self, db: FakeSession, idempotency_key: str
    ) -> WalletTransaction | None:
        return next(
            (t for t in self.transactions if t.idempotency_key == idempotency_key), None
        )

    async def insert_transaction(
        self, db: FakeSession, new_tx: NewTransaction
    ) -> WalletTransaction:
        if new_tx.idempotency_key is not None:
            assert await self.find_transaction_by_key(db, new_tx.idempotency_key) is None
        assert new_tx.balance_after == new_tx.balance_before + new_tx.amount
        tx = WalletTransaction(
            id=len(self.transactions) + 1,
            wallet_id=new_tx.wallet_id,
            owner_id=new_tx.owner_id,
            type=new_tx.type,
            amount=new_tx.amount,
            currency=new_tx.currency,
            balance_before=new_tx.balance_before,
            balance_after=new_tx.balance_after,
            description=new_tx.description,
            reference_type=new_tx.reference_type,
            reference_id=new_tx.reference_id,
            metadata=dict(new_tx.metadata),
            idempotency_key=new_tx.idempotency_key,
            created_at=datetime.now(UTC),
        )
        self.transactions.append(tx)
        return tx

    async def apply_balance(
        self,
        db: FakeSession,
        wallet_id: str,
        expected_version: int,
        new_balance: int,
        deltas: WalletCounters,
    ) -> Wallet | None:
        await asyncio.sleep(0)
        wallet = self._by_id(wallet_id)
        if wallet.version != expected_version:
            return None
        assert new_balance >= 0
        wallet.balance = new_balance
        wallet.counters.total_earnings += deltas.total_earnings
        wallet.counters.total_spent += deltas.total_spent
        wallet.counters.total_payouts += deltas.total_payouts
        wallet.counters.platform_fees += deltas.platform_fees
        wallet.version += 1
        return copy.deepcopy(wallet)

    async def list_transactions(
        self,
        db: FakeSession,
        owner_id: WalletOwnerId,
        cursor_id: int | None,
        limit: int,
        tx_type: str | None,
    ) -> list[WalletTransaction]:
        rows = [
            t for t in reversed(self.transactions)
            if t.owner_id == owner_id
            and (cursor_id is None or t.id < cursor_id)
            and (tx_type is None or t.type == tx_type)
        ]
        return rows[:limit]

    async def sum_by_type(self, db: FakeSession, owner_id: WalletOwnerId) -> dict[str, int]:
        sums: dict[str, int] = {}
        for t in self.transactions_for(owner_id):
            sums[t.type] = sums.get(t.type, 0) + t.amount
        return sums

    async def set_active(
        self, db: FakeSession, owner_id: WalletOwnerId, is_active: bool
    ) -> Wallet | None:
        wallet = self.wallets.get(owner_id)
        if wallet is None:
            return None
        wallet.is_active = is_active
        return copy.deepcopy(wallet)

    async def update_payout_settings(
        self,
        db: FakeSession,
        owner_id: WalletOwnerId,
        enabled: bool,
        schedule: str,
        minimum_payout: int,
        next_payout_at: datetime | None,
    ) -> Wallet | None:
        wallet = self.wallets.get(owner_id)
        if wallet is None:
            return None
        wallet.payout_settings = replace(
            wallet.payout_settings,
            enabled=enabled,
            schedule=schedule,
            minimum_payout=minimum_payout,
            next_payout_at=next_payout_at,
        )
        return copy.deepcopy(wallet)

    async def record_payout_dates(
        self,
        db: FakeSession,
        owner_id: WalletOwnerId,
        last_payout_at: datetime,
        next_payout_at: datetime | None,
    ) -> Wallet | None:
        wallet = self.wallets.get(owner_id)
        if wallet is None:
            return None
        wallet.payout_settings.last_payout_at = last_payout_at
        wallet.payout_settings.next_payout_at = next_payout_at
        return copy.deepcopy(wallet)

    async def set_processor_account(
        self, db: FakeSession, owner_id: WalletOwnerId, account_id: str
    ) -> Wallet | None:
        wallet = self.wallets.get(owner_id)
        if wallet is None or wallet.processor_account_id is not None:
            return None
        wallet.processor_account_id = account_id
        return copy.deepcopy(wallet)

    async def list_due_for_payout(self, db: FakeSession, now: datetime, limit: int) -> list[Wallet]:
        due = [
            w for w in self.wallets.values()
            if w.payout_settings.enabled
            and w.is_active
            and w.processor_account_id is not None
            and w.payout_settings.next_payout_at is not None
            and w.payout_settings.next_payout_at <= now
            and w.balance >= w.payout_settings.minimum_payout
            and w.balance > 0
        ]
        return [copy.deepcopy(w) for w in due[:limit]]

    async def claim_scheduled_payout(
        self,
        db: FakeSession,
        owner_id: WalletOwnerId,
        expected_next: datetime,
        new_next: datetime,
    ) -> bool:
        wallet = self.wallets.get(owner_id)
        if wallet is None or wallet.payout_settings.next_payout_at != expected_next:
            return False
        wallet.payout_settings.next_payout_at = new_next
        return True


# ---------------------------------------------------------------------------
# Outbox
# ---------------------------------------------------------------------------


class InMemoryOutboxRepository:
    def __init__(self) -> None:
        self.messages: list[OutboxMessage] = []

    async def enqueue(self, db: FakeSession, intent: NotificationIntent) -> int:
        message = OutboxMessage(
            id=len(self.messages) + 1,
            notification_type=intent.notification_type,
            recipient=intent.recipient,
            payload=dict(intent.payload),
            status="pending",
        )
        self.messages.append(message)
        return message.id

    async def claim_pending(
        self, db: FakeSession, limit: int, max_attempts: int
    ) -> list[OutboxMessage]:
        return [
            m for m in self.messages if m.status == "pending" and m.attempts < max_attempts
        ][:limit]

    async def mark_sent(self, db: FakeSession, message_id: int) -> None:
        m = self.messages[message_id - 1]
        m.status = "sent"
        m.attempts += 1

    async def mark_failed(
        self, db: FakeSession, message_id: int, error: str, give_up: bool
    ) -> None:
        m = self.messages[message_id - 1]
        m.status = "failed" if give_up else "pending"
        m.attempts += 1
        m.last_error = error

    def of_type(self, notification_type: Any) -> list[OutboxMessage]:
        return [m for m in self.messages if m.notification_type == _v(notification_type)]


# ---------------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------------


class InMemoryPayoutAttemptRepository:
    def __init__(self) -> None:
        self.attempts: dict[str, PayoutAttempt] = {}

    def _transition(
        self, attempt_id: str, expected: set[str], **changes: Any
    ) -> PayoutAttempt | None:
        attempt = self.attempts.get(attempt_id)
        if attempt is None or attempt.status not in expected:
            return None
        for key, value in changes.items():
            setattr(attempt, key, value)
        return copy.deepcopy(attempt)

    async def create(
        self, db: FakeSession, owner_id: WalletOwnerId, amount: int, currency: str, mode: str
    ) -> PayoutAttempt:
        if any(a.owner_id == owner_id and a.in_flight for a in self.attempts.values()):
            raise PayoutInProgressError(owner_id)
        attempt = PayoutAttempt(
            id=f"att-{len(self.attempts) + 1}",
            owner_id=owner_id,
            amount=amount,
            currency=currency,
            mode=mode,
            created_at=datetime.now(UTC),
        )
        self.attempts[attempt.id] = attempt
        return copy.deepcopy(attempt)

    async def get(
        self, db: FakeSession, attempt_id: str, for_update: bool = False
    ) -> PayoutAttempt | None:
        attempt = self.attempts.get(attempt_id)
        return copy.deepcopy(attempt) if attempt else None

    async def mark_submitted(
        self, db: FakeSession, attempt_id: str, processor_payout_id: str
    ) -> PayoutAttempt | None:
        return self._transition(
            attempt_id, {"requested"}, status="submitted", processor_payout_id=processor_payout_id
        )

    async def mark_completed(
        self, db: FakeSession, attempt_id: str, transaction_id: int
    ) -> PayoutAttempt | None:
        return self._transition(
            attempt_id, {"submitted"}, status="completed", transaction_id=transaction_id
        )

    async def mark_failed(
        self, db: FakeSession, attempt_id: str, error: str
    ) -> PayoutAttempt | None:
        return self._transition(attempt_id, {"requested"}, status="failed", error=error)

    async def record_error(
        self, db: FakeSession, attempt_id: str, error: str
    ) -> PayoutAttempt | None:
        attempt = self.attempts.get(attempt_id)
        if attempt is None:
            return None
        return self._transition(
            attempt_id,
            {"requested", "submitted"},
            error=error,
            reconcile_attempts=attempt.reconcile_attempts + 1,
        )

    async def mark_needs_review(
        self, db: FakeSession, attempt_id: str, error: str
    ) -> PayoutAttempt | None:
        return self._transition(
            attempt_id, {"requested", "submitted"}, status="needs_review", error=error
        )

    async def list_for_owner(
        self, db: FakeSession, owner_id: WalletOwnerId, offset: int, limit: int
    ) -> tuple[list[PayoutAttempt], int]:
        rows = [a for a in reversed(list(self.attempts.values())) if a.owner_id == owner_id]
        return [copy.deepcopy(a) for a in rows[offset:offset + limit]], len(rows)

    async def list_stale(
        self, db: FakeSession, older_than: datetime, limit: int
    ) -> list[PayoutAttempt]:
        return [copy.deepcopy(a) for a in self.attempts.values() if a.in_flight][:limit]


class RecordingProcessor:
    """Payment processor double that records calls and can be told to fail."""

    def __init__(self, ready: bool = True) -> None:
        self.ready = ready
        self.payout_calls: list[dict[str, Any]] = []
        self.readiness_calls: list[str] = []
        self.fail_with: ExternalProcessorError | None = None

    async def create_account(self, owner_id: WalletOwnerId, identity: dict[str, Any]) -> str:
        return f"acct_{owner_id}"

    async def get_account_status(self, account_id: str) -> ProcessorAccountStatus:
        requirements = [] if self.ready else ["external_account"]
        return ProcessorAccountStatus(account_id, self.ready, requirements)

    async def is_ready_for_payouts(self, account_id: str) -> bool:
        self.readiness_calls.append(account_id)
        return self.ready

    async def create_payout(
        self,
        account_id: str,
        amount: int,
        currency: str,
        description: str,
        idempotency_key: str,
    ) -> ProcessorPayout:
        self.payout_calls.append(
            {"account_id": account_id, "amount": amount, "idempotency_key": idempotency_key}
        )
        if self.fail_with is not None:
            raise self.fail_with
        return ProcessorPayout(id=f"po_{idempotency_key}", status="pending")


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


class InMemoryAuditLog:
    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    async def record(
        self,
        db: FakeSession,
        actor_id: str,
        action: str,
        target_type: str,
        target_id: str,
        before_value: dict[str, Any],
        after_value: dict[str, Any],
        description: str | None = None,
    ) -> None:
        self.entries.append(
            AuditEntry(
                id=len(self.entries) + 1,
                actor_id=actor_id,
                action=action,
                target_type=target_type,
                target_id=target_id,
                before_value=before_value,
                after_value=after_value,
                description=description,
                created_at=datetime.now(UTC),
            )
        )

    async def list_for_target(
        self, db: FakeSession, target_type: str, target_id: str, limit: int
    ) -> list[AuditEntry]:
        rows = [
            e for e in reversed(self.entries)
            if e.target_type == target_type and e.target_id == target_id
        ]
        return rows[:limit]

    def actions(self) -> list[str]:
        return [e.action for e in self.entries]


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


@dataclass
class World:
    fee_rate: Decimal = Decimal("0.10")
    sessions: list[FakeSession] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.orders = InMemoryOrderRepository()
        self.disputes = InMemoryDisputeRepository()
        self.wallets = InMemoryWalletRepository()
        self.outbox_repo = InMemoryOutboxRepository()
        self.attempts = InMemoryPayoutAttemptRepository()
        self.audit = InMemoryAuditLog()
        self.processor = RecordingProcessor()
        self.confirmations = InMemoryConfirmationRepository(self.orders, self.disputes)
        self.ledger = WalletLedger(self.wallets, SettingsFeeConfig(self.fee_rate), self.orders)
        self.outbox = NotificationOutbox(self.outbox_repo)
        self.finalizer = OrderFinalizer(self.orders, self.ledger, self.outbox)

    def session_factory(self) -> FakeSession:
        session = FakeSession()
        self.sessions.append(session)
        return session

    def confirmation_service(self) -> ConfirmationService:
        return ConfirmationService(
            self.orders, self.confirmations, self.disputes, self.finalizer, self.outbox
        )

    def dispute_service(self) -> DisputeService:
        return DisputeService(
            self.orders, self.disputes, self.confirmations, self.audit, self.finalizer, self.outbox
        )

    def sweeper(self) -> AutoCompletionSweeper:
        return AutoCompletionSweeper(
            self.orders, self.confirmations, self.disputes, self.finalizer, self.session_factory
        )

    def payout_service(self, max_reconcile_attempts: int | None = None) -> PayoutService:
        return PayoutService(
            self.wallets,
            self.attempts,
            self.processor,
            self.ledger,
            self.outbox,
            self.session_factory,
            max_reconcile_attempts,
        )
