"""Unified error codes and custom exceptions.

Error code ranges:
  2xxx: Ledger
  3xxx: Issuer / curve
  4xxx: Order queue / settlement
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

    @property
    def reason(self) -> str:
        """Short machine-readable name recorded as an order's failure reason."""
        return type(self).__name__.removesuffix("Error")


# --- 2xxx: Ledger ---

class InsufficientFundsError(AppError):
    def __init__(self, required: object, available: object) -> None:
        super().__init__(
            2001,
            f"Insufficient USDP balance: required {required}, available {available}",
            422,
        )


class InsufficientSharesError(AppError):
    def __init__(self, ticker: str, required: object, available: object) -> None:
        super().__init__(
            2003,
            f"Insufficient {ticker} PV balance: required {required}, available {available}",
            422,
        )

    @property
    def reason(self) -> str:
        # Reported under the same failure reason as currency shortfalls
        return "InsufficientFunds"


# --- 3xxx: Issuer / curve ---

class UnknownTickerError(AppError):
    def __init__(self, ticker: str) -> None:
        super().__init__(3001, f"Unknown ticker: {ticker}", 404)


class CurveError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3002, f"Curve rejected trade: {detail}", 422)


# --- 4xxx: Order queue / settlement ---

class ValidationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Invalid order: {detail}", 422)


class InvalidTransitionError(AppError):
    def __init__(self, order_id: str, current: str, target: str) -> None:
        super().__init__(
            4002, f"Order {order_id} cannot move from {current} to {target}", 409
        )


class ConcurrencyConflictError(AppError):
    def __init__(self, ticker: str, attempts: int) -> None:
        super().__init__(
            4003,
            f"Curve state for {ticker} changed concurrently; gave up after {attempts} attempts",
            409,
        )


class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4004, f"Order not found: {order_id}", 404)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class StoreUnavailableError(AppError):
    def __init__(self, detail: str = "Store unavailable") -> None:
        super().__init__(9003, f"Store unavailable: {detail}", 503)


class UnauthorizedError(AppError):
    def __init__(self) -> None:
        super().__init__(9004, "Unauthorized - service key required", 401)
