"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class OrderDirection(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.FAILED, OrderStatus.CANCELLED)


class TransactionStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class LedgerEntryType(str, Enum):
    # Payment subsystem
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    # Settlement (user side of a curve trade)
    TRADE_BUY = "TRADE_BUY"
    TRADE_SELL = "TRADE_SELL"
