from datetime import date
from decimal import Decimal

import pytest

from wealth_tracker.clients.prices import PriceService, PriceServiceError
from wealth_tracker.domain.enums import InvestmentTransactionType
from wealth_tracker.domain.investment import InvestmentTransaction
from wealth_tracker.services.cost_basis import CostBasisCalculator


def ledger_entry(symbol, txn_type, quantity, total, fee="0", day=1):
    quantity = Decimal(quantity)
    total = Decimal(total)
    return InvestmentTransaction(
        source_id="src-crypto",
        date=date(2025, 1, day),
        symbol=symbol,
        type=txn_type,
        quantity=quantity,
        price_per_unit=total / quantity,
        total_amount=total,
        fee=Decimal(fee),
    )


BUY = InvestmentTransactionType.BUY
SELL = InvestmentTransactionType.SELL


@pytest.fixture
def price_service(mocker):
    service = mocker.Mock(spec=PriceService)
    service.get_prices.return_value = {"BTC": Decimal("50000")}
    return service


@pytest.mark.unit
class TestCostBasisCalculator:

    def test_weighted_average_of_buys(self, price_service):
        # Arrange
        calculator = CostBasisCalculator(price_service)
        ledger = [
            ledger_entry("BTC", BUY, "0.1", "4000", day=1),
            ledger_entry("BTC", BUY, "0.05", "2100", day=2),
        ]

        # Act
        calculation = calculator.calculate(ledger)

        # Assert
        position, = calculation.positions
        assert position.quantity == Decimal("0.15")
        assert position.avg_buy_price == Decimal("40666.67")
        assert position.current_price == Decimal("50000.00")
        assert position.current_value == Decimal("7500.00")
        assert position.gain_loss == Decimal("1400.00")
        assert calculation.warnings == []
        price_service.get_prices.assert_called_once_with(["BTC"], "EUR")

    def test_fees_are_part_of_the_cost(self, price_service):
        calculation = CostBasisCalculator(price_service).calculate([
            ledger_entry("BTC", BUY, "0.1", "4000", fee="10"),
        ])

        assert calculation.positions[0].avg_buy_price == Decimal("40100.00")

    def test_sell_keeps_average_price(self, price_service):
        # Arrange
        ledger = [
            ledger_entry("BTC", BUY, "0.1", "4000", day=1),
            ledger_entry("BTC", BUY, "0.05", "2100", day=2),
            ledger_entry("BTC", SELL, "0.05", "2500", day=3),
        ]

        # Act
        position, = CostBasisCalculator(price_service).calculate(ledger).positions

        # Assert
        assert position.quantity == Decimal("0.1")
        assert position.avg_buy_price == Decimal("40666.67")

    def test_ledger_order_does_not_matter(self, price_service):
        ledger = [
            ledger_entry("BTC", SELL, "0.05", "2500", day=3),
            ledger_entry("BTC", BUY, "0.1", "4000", day=1),
        ]

        position, = CostBasisCalculator(price_service).calculate(ledger).positions

        assert position.quantity == Decimal("0.05")
        assert position.avg_buy_price == Decimal("40000.00")

    def test_fully_sold_symbol_has_no_position(self, price_service):
        # Arrange
        ledger = [
            ledger_entry("BTC", BUY, "0.1", "4000", day=1),
            ledger_entry("BTC", SELL, "0.1", "5000", day=2),
        ]

        # Act
        calculation = CostBasisCalculator(price_service).calculate(ledger)

        # Assert
        assert calculation.positions == []
        price_service.get_prices.assert_not_called()

    def test_price_failure_is_a_warning(self, price_service):
        # Arrange
        price_service.get_prices.side_effect = PriceServiceError("timeout")
        ledger = [ledger_entry("BTC", BUY, "0.1", "4000")]

        # Act
        calculation = CostBasisCalculator(price_service).calculate(ledger)

        # Assert
        position, = calculation.positions
        assert position.current_value == Decimal("0.00")
        assert position.avg_buy_price == Decimal("40000.00")
        assert any("Failed to fetch current prices" in w for w in calculation.warnings)

    def test_missing_price_is_reported(self, price_service):
        ledger = [
            ledger_entry("BTC", BUY, "0.1", "4000"),
            ledger_entry("ETH", BUY, "1", "2500"),
        ]

        calculation = CostBasisCalculator(price_service).calculate(ledger)

        assert [p.symbol for p in calculation.positions] == ["BTC", "ETH"]
        assert calculation.warnings == ["No price found for ETH"]

    def test_to_positions(self, price_service):
        # Arrange
        calculator = CostBasisCalculator(price_service)
        calculation = calculator.calculate([ledger_entry("BTC", BUY, "0.1", "4000")])

        # Act
        position, = calculator.to_positions("src-crypto", calculation)

        # Assert
        assert position.source_id == "src-crypto"
        assert position.symbol == "BTC"
        assert position.currency == "EUR"
        assert position.gain_loss_percent == Decimal("25.00")
