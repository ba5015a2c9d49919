"""
Investment domain models: positions held at a broker and the
buy/sell ledger they can be derived from.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from wealth_tracker.domain.enums import InvestmentSourceType, InvestmentTransactionType
from wealth_tracker.domain.models import new_id

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass
class ParsedPosition:
    """Position row as read from a broker snapshot export"""
    symbol: str
    quantity: Decimal
    avg_buy_price: Decimal
    current_price: Decimal
    current_value: Decimal
    gain_loss: Decimal
    gain_loss_percent: Decimal
    isin: Optional[str] = None
    name: Optional[str] = None
    currency: str = "EUR"
    raw_category: Optional[str] = None
    mic: Optional[str] = None


@dataclass
class ParsedInvestmentTransaction:
    """Ledger row as read from an exchange history export"""
    date: date
    symbol: str
    type: InvestmentTransactionType
    quantity: Decimal
    price_per_unit: Decimal
    total_amount: Decimal
    fee: Decimal = ZERO
    currency: str = "EUR"
    transaction_id: Optional[str] = None
    payment_method: Optional[str] = None


@dataclass
class InvestmentSource:
    """A broker or exchange account whose exports we import"""
    name: str
    parser_key: str
    type: InvestmentSourceType
    last_sync_at: Optional[datetime] = None
    id: str = field(default_factory=new_id)

    def mark_synced(self, when: Optional[datetime] = None) -> None:
        self.last_sync_at = when or datetime.now()


@dataclass
class InvestmentPosition:
    source_id: str
    symbol: str
    quantity: Decimal
    avg_buy_price: Decimal
    current_price: Decimal
    current_value: Decimal
    gain_loss: Decimal
    gain_loss_percent: Decimal
    isin: Optional[str] = None
    currency: str = "EUR"
    last_updated: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=new_id)

    @classmethod
    def create(
        cls,
        source_id: str,
        symbol: str,
        quantity: Decimal,
        avg_buy_price: Decimal,
        current_price: Decimal,
        current_value: Decimal,
        gain_loss: Decimal,
        gain_loss_percent: Decimal,
        isin: Optional[str] = None,
        currency: str = "EUR",
    ) -> "InvestmentPosition":
        """
        Create a validated position.

        Raises:
            ValueError: If the symbol is empty or a quantity/price is negative
        """
        if not symbol or not symbol.strip():
            raise ValueError("Position symbol is required")
        if quantity < 0:
            raise ValueError("Quantity cannot be negative")
        if avg_buy_price < 0:
            raise ValueError("Average buy price cannot be negative")
        if current_price < 0:
            raise ValueError("Current price cannot be negative")

        return cls(
            source_id=source_id,
            symbol=symbol.strip(),
            quantity=quantity,
            avg_buy_price=avg_buy_price,
            current_price=current_price,
            current_value=current_value,
            gain_loss=gain_loss,
            gain_loss_percent=gain_loss_percent,
            isin=isin,
            currency=currency,
        )

    @classmethod
    def from_parsed(cls, source_id: str, parsed: ParsedPosition) -> "InvestmentPosition":
        return cls.create(
            source_id=source_id,
            symbol=parsed.symbol,
            quantity=parsed.quantity,
            avg_buy_price=parsed.avg_buy_price,
            current_price=parsed.current_price,
            current_value=parsed.current_value,
            gain_loss=parsed.gain_loss,
            gain_loss_percent=parsed.gain_loss_percent,
            isin=parsed.isin,
            currency=parsed.currency,
        )

    @property
    def invested_amount(self) -> Decimal:
        """Total invested amount (quantity * average buy price)"""
        return self.quantity * self.avg_buy_price

    def update_price(self, new_price: Decimal) -> None:
        """Apply a new market price and recompute value and gain/loss"""
        self.current_price = new_price
        self.current_value = self.quantity * new_price
        self.gain_loss = self.current_value - self.invested_amount
        invested = self.invested_amount
        self.gain_loss_percent = self.gain_loss / invested * HUNDRED if invested > 0 else ZERO
        self.last_updated = datetime.now()


@dataclass
class InvestmentTransaction:
    """Append-only ledger entry for a transaction-based source (crypto)"""
    source_id: str
    date: date
    symbol: str
    type: InvestmentTransactionType
    quantity: Decimal
    price_per_unit: Decimal
    total_amount: Decimal
    fee: Decimal = ZERO
    id: str = field(default_factory=new_id)

    @classmethod
    def create(
        cls,
        source_id: str,
        parsed: ParsedInvestmentTransaction,
    ) -> "InvestmentTransaction":
        """
        Create a validated ledger entry; the symbol is stored upper-cased.

        Raises:
            ValueError: If the symbol is empty, the quantity is not positive,
                or an amount is negative
        """
        if not parsed.symbol or not parsed.symbol.strip():
            raise ValueError("Symbol is required")
        if parsed.quantity <= 0:
            raise ValueError("Quantity must be positive")
        if parsed.price_per_unit < 0:
            raise ValueError("Price per unit cannot be negative")
        if parsed.total_amount < 0:
            raise ValueError("Total amount cannot be negative")
        if parsed.fee < 0:
            raise ValueError("Fee cannot be negative")

        return cls(
            source_id=source_id,
            date=parsed.date,
            symbol=parsed.symbol.strip().upper(),
            type=parsed.type,
            quantity=parsed.quantity,
            price_per_unit=parsed.price_per_unit,
            total_amount=parsed.total_amount,
            fee=parsed.fee,
        )
