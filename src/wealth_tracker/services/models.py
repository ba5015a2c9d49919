"""
Service layer models - DTOs for service operations.

These models represent the results of service operations, not domain entities.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from wealth_tracker.domain.enums import RecurringFrequency, ResultSource


@dataclass
class ImportResult:
    """
    Result of importing a bank statement export.

    Counts are only meaningful when no fatal error occurred; advisory
    messages start with 'Warning:' and never change the counts.
    """
    imported: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Import is successful if at least one transaction is imported"""
        return self.imported > 0

    @property
    def partial_success(self) -> bool:
        """Some transactions imported but some failed"""
        return self.imported > 0 and bool(self.blocking_errors)

    @property
    def warnings(self) -> List[str]:
        return [e for e in self.errors if e.startswith("Warning:")]

    @property
    def blocking_errors(self) -> List[str]:
        return [e for e in self.errors if not e.startswith("Warning:")]

    def __str__(self) -> str:
        "Human-readable summary"
        lines = [
            f" ✅ New transactions: {self.imported}",
            f" ⏭️ Duplicates skipped: {self.skipped}",
        ]

        if self.errors:
            lines.append(f" ❌ Errors: {len(self.errors)}")

        return "\n".join(lines)

    def __post_init__(self):
        if self.imported < 0 or self.skipped < 0:
            raise ValueError(
                f"Counts cannot be negative: imported={self.imported}, skipped={self.skipped}"
            )


@dataclass
class InvestmentImportResult:
    """Result of importing a broker/exchange export"""
    positions: int = 0
    transactions: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.positions > 0 or self.transactions > 0

    def __str__(self) -> str:
        lines = [
            f" 📈 Positions: {self.positions}",
            f" 🧾 New transactions: {self.transactions}",
        ]

        if self.errors:
            lines.append(f" ❌ Errors: {len(self.errors)}")

        return "\n".join(lines)


@dataclass
class CalculatedPosition:
    """Position derived from a buy/sell ledger, before persistence"""
    symbol: str
    quantity: Decimal
    avg_buy_price: Decimal
    current_price: Decimal
    current_value: Decimal
    gain_loss: Decimal
    gain_loss_percent: Decimal

    @property
    def invested_amount(self) -> Decimal:
        return self.quantity * self.avg_buy_price


@dataclass
class PositionCalculation:
    positions: List[CalculatedPosition] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class CategorizationResult:
    """Category proposed by one pipeline stage for one transaction"""
    transaction_id: str
    category_id: str
    source: ResultSource
    confidence: float
    reasoning: Optional[str] = None


@dataclass
class PipelineStats:
    """Statistics of one categorization pipeline run"""
    total: int = 0
    rule_matches: int = 0
    bank_matches: int = 0
    ai_matches: int = 0
    transfer_matches: int = 0
    unmatched: int = 0
    applied: int = 0
    duration_seconds: float = 0.0
    estimated_cost: float = 0.0

    def __str__(self) -> str:
        return (
            f"{self.total} transactions: "
            f"{self.rule_matches} rules, {self.bank_matches} bank, "
            f"{self.ai_matches} AI, {self.transfer_matches} transfers, "
            f"{self.unmatched} unmatched ({self.duration_seconds:.2f}s)"
        )


@dataclass
class RecurringPattern:
    """A description seen at a regular interval with a stable amount"""
    description: str
    normalized_description: str
    amount: Decimal
    frequency: RecurringFrequency
    occurrence_count: int
    last_seen_at: date
    account_id: str
    category_id: Optional[str] = None
