"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Identity
  2xxx: Wallet
  3xxx: Market
  4xxx: Trade / pricing
  5xxx: Position / settlement
  9xxx: System

Every error raised inside a store transaction aborts it; nothing is partially applied.
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


# --- 1xxx: Identity ---

class UnauthenticatedError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "You must be signed in", 401)


class NotEligibleError(AppError):
    def __init__(self, domain: str) -> None:
        super().__init__(1002, f"You must use an @{domain} email address", 403)


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Admin access required", 403)


# --- 2xxx: Wallet ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: float, available: float) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required:.2f}, available {available:.2f}",
            422,
        )


class WalletNotFoundError(AppError):
    def __init__(self, scope_id: str | None) -> None:
        if scope_id:
            message = f"No balance in scope {scope_id}. Join it before trading."
        else:
            message = "Wallet not found. Please log out and log back in."
        super().__init__(2002, message, 422)


class InvalidWalletStateError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2003, f"Wallet data is invalid: {detail}", 500)


# --- 3xxx: Market ---

class MarketNotFoundError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3001, f"Market not found: {market_id}", 404)


class MarketNotTradeableError(AppError):
    def __init__(self, market_id: str, status: str) -> None:
        super().__init__(
            3002, f"Market {market_id} is not open for trading (status={status})", 409
        )


class ScopeMismatchError(AppError):
    def __init__(self) -> None:
        super().__init__(3003, "Market scope mismatch. Refresh and try again.", 409)


class InvalidTransitionError(AppError):
    def __init__(self, market_id: str, current: str, target: str) -> None:
        super().__init__(
            3004, f"Market {market_id} cannot move from {current} to {target}", 422
        )


class MarketAlreadyTerminalError(AppError):
    def __init__(self, market_id: str, status: str) -> None:
        super().__init__(3005, f"Market {market_id} is already {status}", 409)


# --- 4xxx: Trade / pricing ---

class InvalidParameterError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Invalid parameter: {detail}", 422)


class ConvergenceFailureError(AppError):
    def __init__(self) -> None:
        super().__init__(
            4002,
            "Could not calculate shares for that amount. Please try a different amount.",
            422,
        )


class UnsafeSellBoundsError(AppError):
    def __init__(self) -> None:
        super().__init__(4003, "Sell amount exceeds safe pool bounds", 422)


class LiquidityExceededError(AppError):
    def __init__(self) -> None:
        super().__init__(
            4004,
            "Sell amount exceeds current market liquidity. Please try a smaller amount.",
            422,
        )


class InvalidPayoutError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4005, f"Invalid sell payout: {detail}", 422)


# --- 5xxx: Position / settlement ---

class InsufficientSharesError(AppError):
    def __init__(self, side: str, available: float) -> None:
        super().__init__(
            5001, f"Insufficient shares. You have {available:.2f} {side} shares.", 422
        )


class LedgerEntryNotFoundError(AppError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(5002, f"Ledger entry not found: {entry_id}", 404)


class EntryNotRefundableError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5003, f"Entry cannot be refunded: {detail}", 422)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class NumericFaultError(AppError):
    """A computed value came out NaN/Infinity. Always a bug, never coerced."""

    def __init__(self, label: str) -> None:
        super().__init__(9003, f"Invalid calculation: {label} is not finite", 500)


class StoreUnavailableError(AppError):
    def __init__(self, attempts: int) -> None:
        super().__init__(
            9004, f"Store busy: transaction failed after {attempts} attempts", 503
        )


class WriteConflictError(Exception):
    """Optimistic version check failed. Retried by the store, never surfaced."""
