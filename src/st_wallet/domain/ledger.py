"""WalletLedger — every balance change is one append + one balance write.

Transaction ownership: the CALLER commits. Every method here runs inside the
caller's AsyncSession transaction so that a revenue credit can share a
transaction with order finalization, and a payout debit with the attempt
status change.

Posting steps (all in the caller's transaction):
  1. INSERT ... ON CONFLICT (owner_id) to create the wallet lazily
  2. SELECT ... FOR UPDATE on the wallet row (serializes writers per wallet)
  3. idempotency key lookup, now that concurrent writers are serialized
  4. INSERT the transaction with balance_before / balance_after
  5. UPDATE wallets SET balance = balance_after ... WHERE version = :version
"""

import logging
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.st_common.cents import validate_amount
from src.st_common.enums import WalletTransactionType
from src.st_common.errors import (
    InsufficientBalanceError,
    InternalError,
    InvalidAmountError,
    OrderNotFoundError,
    WalletInactiveError,
    WalletNotFoundError,
)
from src.st_common.identity import WalletOwnerId
from src.st_order.domain.repository import OrderRepositoryProtocol
from src.st_wallet.domain.models import LedgerPosting, NewTransaction, Wallet, WalletCounters
from src.st_wallet.domain.repository import WalletRepositoryProtocol
from src.st_wallet.domain.revenue import compute_revenue_split

logger = logging.getLogger(__name__)


class PlatformFeeConfigProtocol(Protocol):
    async def get_platform_fee_rate(self) -> Decimal: ...


def revenue_key(order_id: str) -> str:
    return f"revenue:{order_id}"


def payout_key(processor_payout_id: str) -> str:
    return f"payout:{processor_payout_id}"


def _counter_deltas(tx_type: str, amount: int, metadata: dict[str, Any]) -> WalletCounters:
    deltas = WalletCounters()
    if tx_type == WalletTransactionType.REVENUE:
        deltas.total_earnings = amount
        deltas.platform_fees = int(metadata.get("platform_fee", 0))
    elif tx_type == WalletTransactionType.PURCHASE:
        deltas.total_spent = -amount
    elif tx_type == WalletTransactionType.PAYOUT:
        deltas.total_payouts = -amount
    return deltas


class WalletLedger:
    def __init__(
        self,
        repo: WalletRepositoryProtocol,
        fee_config: PlatformFeeConfigProtocol,
        order_repo: OrderRepositoryProtocol,
    ) -> None:
        self._repo: WalletRepositoryProtocol = repo
        self._fee_config: PlatformFeeConfigProtocol = fee_config
        self._orders: OrderRepositoryProtocol = order_repo

    async def get_or_create_wallet(
        self, db: AsyncSession, owner_id: WalletOwnerId, currency: str | None = None
    ) -> Wallet:
        return await self._repo.get_or_create(
            db, owner_id, currency or settings.DEFAULT_CURRENCY
        )

    async def credit_funds(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        amount: int,
        tx_type: str,
        description: str,
        metadata: dict[str, Any] | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> LedgerPosting:
        _check_amount(amount)
        return await self._post(
            db, owner_id, amount, tx_type, description, metadata or {},
            reference_type, reference_id, idempotency_key,
        )

    async def debit_funds(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        amount: int,
        tx_type: str,
        description: str,
        metadata: dict[str, Any] | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        idempotency_key: str | None = None,
    ) -> LedgerPosting:
        """Append a negative transaction. InsufficientBalance leaves the balance untouched."""
        _check_amount(amount)
        return await self._post(
            db, owner_id, -amount, tx_type, description, metadata or {},
            reference_type, reference_id, idempotency_key,
        )

    async def credit_order_revenue(
        self, db: AsyncSession, order_id: str
    ) -> LedgerPosting | None:
        """Credit the seller's wallet with the order's net revenue, at most once per order.

        Returns None when the split nets to zero (nothing to record).
        """
        order = await self._orders.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)

        rate = await self._fee_config.get_platform_fee_rate()
        split = compute_revenue_split(
            order.total_amount, order.delivery_fee, order.delivery_method, rate
        )
        if split.net_amount <= 0:
            logger.warning(
                "Order %s nets %d cents after fees, no revenue recorded",
                order_id, split.net_amount,
            )
            return None

        posting = await self._post(
            db,
            order.artisan_user_id,
            split.net_amount,
            WalletTransactionType.REVENUE,
            f"Revenue from order {order_id}",
            {
                "order_id": order_id,
                "product_amount": split.product_amount,
                "delivery_fee": split.delivery_fee,
                "seller_delivery_fee": split.seller_delivery_fee,
                "platform_fee": split.platform_fee,
                "platform_fee_rate": str(rate),
                "net_amount": split.net_amount,
            },
            "order",
            order_id,
            revenue_key(order_id),
            currency=order.currency,
        )
        if not posting.replayed:
            logger.info(
                "Credited %d cents to %s for order %s (fee %d)",
                split.net_amount, order.artisan_user_id, order_id, split.platform_fee,
            )
        return posting

    async def _post(
        self,
        db: AsyncSession,
        owner_id: WalletOwnerId,
        amount: int,
        tx_type: str,
        description: str,
        metadata: dict[str, Any],
        reference_type: str | None,
        reference_id: str | None,
        idempotency_key: str | None,
        currency: str | None = None,
    ) -> LedgerPosting:
        await self._repo.get_or_create(db, owner_id, currency or settings.DEFAULT_CURRENCY)
        wallet = await self._repo.get_by_owner(db, owner_id, for_update=True)
        if wallet is None:
            raise WalletNotFoundError(owner_id)

        if idempotency_key is not None:
            existing = await self._repo.find_transaction_by_key(db, idempotency_key)
            if existing is not None:
                return LedgerPosting(wallet=wallet, transaction=existing, replayed=True)

        if amount < 0:
            if not wallet.is_active:
                raise WalletInactiveError(owner_id)
            if wallet.balance + amount < 0:
                raise InsufficientBalanceError(required=-amount, available=wallet.balance)

        tx_type_value = str(getattr(tx_type, "value", tx_type))
        balance_after = wallet.balance + amount
        tx = await self._repo.insert_transaction(
            db,
            NewTransaction(
                wallet_id=wallet.id,
                owner_id=owner_id,
                type=tx_type_value,
                amount=amount,
                currency=wallet.currency,
                balance_before=wallet.balance,
                balance_after=balance_after,
                description=description,
                reference_type=reference_type,
                reference_id=reference_id,
                metadata=metadata,
                idempotency_key=idempotency_key,
            ),
        )
        updated = await self._repo.apply_balance(
            db,
            wallet.id,
            wallet.version,
            balance_after,
            _counter_deltas(tx_type_value, amount, metadata),
        )
        if updated is None:
            # Unreachable while the row lock is held; surfaces a broken caller.
            raise InternalError(f"Wallet {wallet.id} changed while locked")
        return LedgerPosting(wallet=updated, transaction=tx)


def _check_amount(amount: int) -> None:
    try:
        validate_amount(amount)
    except ValueError as exc:
        raise InvalidAmountError(str(exc)) from None
