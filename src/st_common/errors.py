"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth
  2xxx: Wallet / ledger
  3xxx: Order / confirmation
  4xxx: Dispute
  5xxx: Payout / payment processor
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired token", 401)


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1006, "Admin role required", 403)


# --- 2xxx: Wallet ---

class InsufficientBalanceError(AppError):
    def __init__(
        self, required: int, available: int, code: int = 2001, message: str | None = None
    ) -> None:
        super().__init__(
            code,
            message
            or f"Insufficient balance: required {required} cents, available {available} cents",
            422,
        )
        self.required = required
        self.available = available


class WalletNotFoundError(AppError):
    def __init__(self, owner_id: str) -> None:
        super().__init__(2002, f"Wallet not found for owner {owner_id}", 404)


class WalletInactiveError(AppError):
    def __init__(self, owner_id: str) -> None:
        super().__init__(2003, f"Wallet is inactive for owner {owner_id}", 422)


class InvalidAmountError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2004, f"Invalid amount: {detail}", 422)


class BelowMinimumPayoutError(InsufficientBalanceError):
    """Automatic payout refused because the balance is under the wallet minimum."""

    def __init__(self, minimum: int, available: int) -> None:
        super().__init__(
            minimum,
            available,
            2005,
            f"Balance below minimum payout: minimum {minimum} cents, available {available} cents",
        )


# --- 3xxx: Order / confirmation ---

class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(3001, f"Order not found: {order_id}", 404)


class UnauthorizedOrderAccessError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(3002, f"Not a party to order {order_id}", 403)


class WrongDeliveryMethodError(AppError):
    def __init__(self, order_id: str, delivery_method: str, leg: str) -> None:
        super().__init__(
            3003,
            f"Order {order_id} uses {delivery_method}; {leg} confirmation does not apply",
            422,
        )


class AlreadyFinalizedError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(3004, f"Order {order_id} is already finalized", 409)


class OrderDisputedError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(3005, f"Order {order_id} is under dispute", 409)


class InvalidTransitionError(AppError):
    def __init__(self, state: str, action: str) -> None:
        super().__init__(3006, f"Cannot {action} from confirmation state {state}", 409)


# --- 4xxx: Dispute ---

class DisputeNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4001, f"Order {order_id} does not have a dispute", 404)


class InvalidResolutionError(AppError):
    def __init__(self, resolution: str) -> None:
        super().__init__(4002, f"Unrecognized dispute resolution: {resolution}", 422)


class InvalidDisputeTransitionError(AppError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            4003, f"Dispute status cannot change from {current} to {requested}", 409
        )


class AlreadyResolvedError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4004, f"Dispute for order {order_id} is already resolved", 409)


# --- 5xxx: Payout ---

class ProcessorAccountMissingError(AppError):
    def __init__(self, owner_id: str) -> None:
        super().__init__(5001, f"No payment processor account set up for {owner_id}", 422)


class ProcessorNotReadyError(AppError):
    def __init__(self, account_id: str) -> None:
        super().__init__(5002, f"Processor account {account_id} is not ready for payouts", 422)


class ExternalProcessorError(AppError):
    """Payment processor call failed. `retryable` tells the caller whether to retry."""

    def __init__(self, detail: str, retryable: bool = True) -> None:
        hint = "retry later" if retryable else "do not retry"
        super().__init__(5003, f"Payment processor error: {detail} ({hint})", 502)
        self.retryable = retryable


class PayoutInProgressError(AppError):
    def __init__(self, owner_id: str) -> None:
        super().__init__(5004, f"A payout is already in progress for {owner_id}", 409)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
