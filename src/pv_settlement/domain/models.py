"""Settlement domain models — pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


@dataclass
class Transaction:
    """Immutable settlement record; one per settled order attempt."""

    order_id: str
    user_id: str
    ticker: str
    direction: str
    amount_usdp: Decimal  # USDP spent (buy) or received (sell)
    amount_pv: Decimal  # PV received (buy) or sold (sell)
    status: str  # completed / failed / refunded
    avg_price: Decimal | None = None
    start_price: Decimal | None = None
    end_price: Decimal | None = None
    failure_reason: str | None = None
    id: str | None = None  # assigned by the database
    created_at: datetime | None = None


@dataclass
class ProcessResult:
    success: bool
    order_id: str
    message: str
    transaction_id: str | None = None
    error: str | None = None


@dataclass
class BatchSummary:
    total: int = 0
    successful: int = 0
    failed: int = 0

    def add(self, result: ProcessResult) -> None:
        self.total += 1
        if result.success:
            self.successful += 1
        else:
            self.failed += 1


@dataclass
class BatchResult:
    results: list[ProcessResult] = field(default_factory=list)
    summary: BatchSummary = field(default_factory=BatchSummary)
