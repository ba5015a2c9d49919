from datetime import date
from decimal import Decimal

import pytest

from wealth_tracker.domain.enums import InvestmentSourceType, InvestmentTransactionType
from wealth_tracker.domain.investment import InvestmentSource, InvestmentTransaction
from wealth_tracker.repositories.base import InvestmentRepository, RepositoryError
from wealth_tracker.services.cost_basis import CostBasisCalculator
from wealth_tracker.services.import_investments import ImportInvestmentsService
from wealth_tracker.services.models import CalculatedPosition, PositionCalculation

BOURSE_DIRECT_ROW = {
    "Nom": "AIR LIQUIDE", "ISIN": "FR0000120073", "Cours": 172.5, "Devise": "EUR",
    "Variation Veille %": 0.4, "Quantité": 10, "PRU (EUR)": 150.0,
    "+/- value (EUR)": 225.0, "+/- value %": 15.0, "Valorisation (EUR)": 1725.0,
    "Réglement": "", "MIC": "XPAR", "Marché": "Euronext Paris",
}

BINANCE_ROWS = [
    {
        "Date(UTC+1)": "2025-01-10 14:30:00", "Method": "Card", "Spend Amount": "100 EUR",
        "Receive Amount": "0.0025 BTC", "Fee": "1.50 EUR", "Price": "40000 EUR",
        "Status": "Successful", "Transaction ID": "TX-1",
    },
    {
        "Date(UTC+1)": "2025-01-15 09:00:00", "Method": "Card", "Spend Amount": "50 EUR",
        "Receive Amount": "0.02 ETH", "Fee": "0.75 EUR", "Price": "2500 EUR",
        "Status": "Successful", "Transaction ID": "TX-2",
    },
]


@pytest.fixture
def repository(mocker):
    repo = mocker.Mock(spec=InvestmentRepository)
    repo.find_transactions_by_source_id.return_value = []
    repo.delete_positions_by_source_id.return_value = 0
    return repo


@pytest.fixture
def calculator(mocker):
    calc = mocker.Mock(spec=CostBasisCalculator)
    calc.calculate.return_value = PositionCalculation(positions=[
        CalculatedPosition(
            symbol="BTC", quantity=Decimal("0.0025"), avg_buy_price=Decimal("40600"),
            current_price=Decimal("50000"), current_value=Decimal("125"),
            gain_loss=Decimal("23.50"), gain_loss_percent=Decimal("23.15"),
        ),
    ])
    calc.to_positions.side_effect = lambda source_id, calculation: [
        mocker.Mock(source_id=source_id, symbol=p.symbol) for p in calculation.positions
    ]
    return calc


@pytest.fixture
def service(repository, calculator, default_parsers):
    return ImportInvestmentsService(repository, calculator)


def snapshot_source():
    return InvestmentSource(
        name="PEA Bourse Direct", parser_key="bourse_direct",
        type=InvestmentSourceType.PEA, id="src-pea",
    )


def crypto_source():
    return InvestmentSource(
        name="Binance", parser_key="binance",
        type=InvestmentSourceType.CRYPTO, id="src-crypto",
    )


@pytest.mark.unit
class TestSnapshotImport:

    def test_replaces_positions(self, service, repository, xlsx_builder):
        # Arrange
        repository.find_source_by_id.return_value = snapshot_source()
        content = xlsx_builder([BOURSE_DIRECT_ROW])

        # Act
        result = service.execute("src-pea", content)

        # Assert
        assert result.positions == 1
        assert result.transactions == 0
        assert result.errors == []
        repository.delete_positions_by_source_id.assert_called_once_with("src-pea")

        saved = repository.save_position.call_args[0][0]
        assert saved.source_id == "src-pea"
        assert saved.symbol == "AIR LIQUIDE"
        assert saved.quantity == Decimal("10")

    def test_marks_source_synced(self, service, repository, xlsx_builder):
        source = snapshot_source()
        repository.find_source_by_id.return_value = source

        service.execute("src-pea", xlsx_builder([BOURSE_DIRECT_ROW]))

        repository.save_source.assert_called_once_with(source)
        assert source.last_sync_at is not None

    def test_empty_snapshot_keeps_positions(self, service, repository, xlsx_builder):
        # Arrange
        repository.find_source_by_id.return_value = snapshot_source()
        row = dict(BOURSE_DIRECT_ROW, **{"Quantité": 0})

        # Act
        result = service.execute("src-pea", xlsx_builder([row]))

        # Assert
        assert result.errors == ["No positions found in file"]
        repository.delete_positions_by_source_id.assert_not_called()

    def test_unreadable_file(self, service, repository):
        repository.find_source_by_id.return_value = snapshot_source()

        result = service.execute("src-pea", b"not a spreadsheet")

        assert result.errors[0].startswith("Failed to parse file")
        repository.delete_positions_by_source_id.assert_not_called()


@pytest.mark.unit
class TestLedgerImport:

    def test_appends_transactions_and_recalculates(self, service, repository, calculator, xlsx_builder):
        # Arrange
        repository.find_source_by_id.return_value = crypto_source()

        # Act
        result = service.execute("src-crypto", xlsx_builder(BINANCE_ROWS))

        # Assert
        assert result.transactions == 2
        assert result.positions == 1
        assert repository.save_transaction.call_count == 2
        repository.delete_positions_by_source_id.assert_called_once_with("src-crypto")
        calculator.calculate.assert_called_once()

    def test_known_transactions_are_skipped(self, service, repository, xlsx_builder):
        # Arrange
        repository.find_source_by_id.return_value = crypto_source()
        repository.find_transactions_by_source_id.return_value = [
            InvestmentTransaction(
                source_id="src-crypto", date=date(2025, 1, 10), symbol="BTC",
                type=InvestmentTransactionType.BUY, quantity=Decimal("0.0025"),
                price_per_unit=Decimal("40000"), total_amount=Decimal("100"),
                fee=Decimal("1.50"),
            )
        ]

        # Act
        result = service.execute("src-crypto", xlsx_builder(BINANCE_ROWS))

        # Assert
        assert result.transactions == 1
        saved = repository.save_transaction.call_args[0][0]
        assert saved.symbol == "ETH"

    def test_calculation_warnings_are_reported(self, service, repository, calculator, xlsx_builder):
        repository.find_source_by_id.return_value = crypto_source()
        calculator.calculate.return_value = PositionCalculation(warnings=["No price found for BTC"])

        result = service.execute("src-crypto", xlsx_builder(BINANCE_ROWS))

        assert result.positions == 0
        assert "No price found for BTC" in result.errors

    def test_recalculation_failure_is_reported(self, service, repository, calculator):
        calculator.calculate.side_effect = RuntimeError("bad ledger")

        result = service.recalculate(crypto_source())

        assert result.errors == ["Failed to calculate crypto positions: bad ledger"]


@pytest.mark.unit
class TestImportErrors:

    def test_unknown_source(self, service, repository):
        repository.find_source_by_id.return_value = None

        result = service.execute("missing", b"")

        assert result.errors == ["Investment source not found"]

    def test_unknown_parser_key(self, service, repository):
        source = snapshot_source()
        source.parser_key = "degiro"
        repository.find_source_by_id.return_value = source

        result = service.execute("src-pea", b"")

        assert result.errors == ["Unknown parser key: degiro"]
        repository.save_source.assert_not_called()

    def test_source_lookup_failure(self, service, repository):
        repository.find_source_by_id.side_effect = RepositoryError("db locked")

        result = service.execute("src-pea", b"")

        assert result.errors == ["Failed to load investment source: db locked"]
        assert (result.positions, result.transactions) == (0, 0)

    def test_ledger_lookup_failure(self, service, repository, calculator, xlsx_builder):
        # Arrange
        repository.find_source_by_id.return_value = crypto_source()
        repository.find_transactions_by_source_id.side_effect = RepositoryError("db locked")

        # Act
        result = service.execute("src-crypto", xlsx_builder(BINANCE_ROWS))

        # Assert
        assert result.errors[0] == "Failed to load existing transactions: db locked"
        assert (result.positions, result.transactions) == (0, 0)
        repository.save_transaction.assert_not_called()
        repository.delete_positions_by_source_id.assert_not_called()
        calculator.calculate.assert_not_called()
