import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List

from wealth_tracker.clients.prices import PriceService
from wealth_tracker.domain.enums import InvestmentTransactionType
from wealth_tracker.domain.investment import InvestmentPosition, InvestmentTransaction
from wealth_tracker.services.deduplication import round_money, round_quantity
from wealth_tracker.services.models import CalculatedPosition, PositionCalculation

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass
class _Holding:
    symbol: str
    quantity: Decimal = ZERO
    spent: Decimal = ZERO

    def buy(self, quantity: Decimal, cost: Decimal) -> None:
        self.quantity += quantity
        self.spent += cost

    def sell(self, quantity: Decimal) -> None:
        """Reduce the holding at the current average cost"""
        if self.quantity <= 0:
            return
        average = self.spent / self.quantity
        sold = min(quantity, self.quantity)
        self.quantity -= sold
        self.spent -= sold * average


class CostBasisCalculator:
    """
    Derives current positions from a buy/sell ledger.

    Running average cost:
        buy:  quantity += q, spent += total + fee
        sell: spent -= sold * (spent / quantity), quantity -= sold

    so a sell lowers the cost basis proportionally and leaves the average
    buy price unchanged. Prices for all remaining symbols are fetched in a
    single call; a price failure is reported as a warning and values are
    computed with a price of 0.
    """

    def __init__(self, price_service: PriceService, currency: str = "EUR"):
        self.price_service = price_service
        self.currency = currency

    def calculate(self, transactions: Iterable[InvestmentTransaction]) -> PositionCalculation:
        """
        Aggregate a ledger into positions.

        Args:
            transactions: Complete ledger of one source, in any order

        Returns:
            Positions with a strictly positive quantity, and warnings
        """
        holdings = [h for h in self._aggregate(transactions) if h.quantity > 0]
        if not holdings:
            return PositionCalculation()

        warnings: List[str] = []
        symbols = [h.symbol for h in holdings]

        try:
            prices = self.price_service.get_prices(symbols, self.currency)
        except Exception as e:
            logger.warning("Price lookup failed for %s: %s", symbols, e)
            warnings.append(f"Failed to fetch current prices: {e}")
            prices = {symbol: ZERO for symbol in symbols}

        positions = []
        for holding in holdings:
            price = Decimal(prices.get(holding.symbol, ZERO))
            if price == 0:
                warnings.append(f"No price found for {holding.symbol}")
            positions.append(self._to_position(holding, price))

        return PositionCalculation(positions=positions, warnings=warnings)

    def to_positions(self, source_id: str, calculation: PositionCalculation) -> List[InvestmentPosition]:
        """Turn calculated positions into position entities for a source"""
        return [
            InvestmentPosition.create(
                source_id=source_id,
                symbol=calc.symbol,
                quantity=calc.quantity,
                avg_buy_price=calc.avg_buy_price,
                current_price=calc.current_price,
                current_value=calc.current_value,
                gain_loss=calc.gain_loss,
                gain_loss_percent=calc.gain_loss_percent,
                currency=self.currency,
            )
            for calc in calculation.positions
        ]

    @staticmethod
    def _aggregate(transactions: Iterable[InvestmentTransaction]) -> List[_Holding]:
        holdings: Dict[str, _Holding] = {}

        for txn in sorted(transactions, key=lambda t: t.date):
            symbol = txn.symbol.upper()
            holding = holdings.setdefault(symbol, _Holding(symbol))

            if txn.type == InvestmentTransactionType.BUY:
                holding.buy(txn.quantity, txn.total_amount + txn.fee)
            else:
                holding.sell(txn.quantity)

        return list(holdings.values())

    @staticmethod
    def _to_position(holding: _Holding, price: Decimal) -> CalculatedPosition:
        avg_buy_price = holding.spent / holding.quantity
        current_value = holding.quantity * price
        invested = holding.quantity * avg_buy_price
        gain_loss = current_value - invested
        gain_loss_percent = gain_loss / invested * HUNDRED if invested > 0 else ZERO

        return CalculatedPosition(
            symbol=holding.symbol,
            quantity=round_quantity(holding.quantity),
            avg_buy_price=round_money(avg_buy_price),
            current_price=round_money(price),
            current_value=round_money(current_value),
            gain_loss=round_money(gain_loss),
            gain_loss_percent=round_money(gain_loss_percent),
        )
