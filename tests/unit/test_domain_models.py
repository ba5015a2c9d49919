from datetime import date
from decimal import Decimal

import pytest

from wealth_tracker.domain.enums import (
    CategorySource,
    InvestmentSourceType,
    InvestmentTransactionType,
    MatchType,
    ResultSource,
    TransactionType,
)
from wealth_tracker.domain.errors import InvalidRuleError
from wealth_tracker.domain.investment import (
    InvestmentPosition,
    InvestmentTransaction,
    ParsedInvestmentTransaction,
)
from wealth_tracker.domain.models import (
    CategoryRule,
    DataSource,
    ParsedTransaction,
    Transaction,
    TransactionCategoryAssignment,
)


@pytest.mark.unit
class TestTransactionCreate:

    def test_debit_becomes_expense_with_positive_amount(self):
        # Arrange
        parsed = ParsedTransaction(date=date(2025, 1, 15), amount=Decimal("-45.50"),
                                   description="  CB CARREFOUR ", raw_category="Alimentation")

        # Act
        txn = Transaction.create("acc-1", parsed)

        # Assert
        assert txn.type == TransactionType.EXPENSE
        assert txn.amount == Decimal("45.50")
        assert txn.signed_amount == Decimal("-45.50")
        assert txn.description == "CB CARREFOUR"
        assert txn.bank_category == "Alimentation"
        assert txn.is_internal is False
        assert not txn.is_categorized

    def test_credit_becomes_income(self):
        parsed = ParsedTransaction(date=date(2025, 1, 20), amount=Decimal("500"), description="VIR")

        txn = Transaction.create("acc-1", parsed)

        assert txn.type == TransactionType.INCOME
        assert txn.signed_amount == Decimal("500")

    def test_empty_description_is_rejected(self):
        parsed = ParsedTransaction(date=date(2025, 1, 20), amount=Decimal("5"), description="  ")

        with pytest.raises(ValueError, match="Description is required"):
            Transaction.create("acc-1", parsed)

    def test_ids_are_unique(self):
        parsed = ParsedTransaction(date=date(2025, 1, 20), amount=Decimal("5"), description="X")

        assert Transaction.create("a", parsed).id != Transaction.create("a", parsed).id


@pytest.mark.unit
class TestOverwritePolicy:

    @pytest.mark.parametrize("current, incoming, allowed", [
        (CategorySource.MANUAL, CategorySource.MANUAL, False),
        (CategorySource.MANUAL, CategorySource.BANK, False),
        (CategorySource.MANUAL, CategorySource.AUTO, False),
        (CategorySource.BANK, CategorySource.MANUAL, True),
        (CategorySource.BANK, CategorySource.AUTO, False),
        (CategorySource.BANK, CategorySource.BANK, False),
        (CategorySource.AUTO, CategorySource.MANUAL, True),
        (CategorySource.AUTO, CategorySource.BANK, True),
        (CategorySource.AUTO, CategorySource.AUTO, False),
    ])
    def test_can_be_overwritten_by(self, current, incoming, allowed):
        assignment = TransactionCategoryAssignment.create("t-1", "cat-groceries", current)

        assert assignment.can_be_replaced_by(incoming) is allowed

    def test_result_sources_map_to_assignment_sources(self):
        assert ResultSource.RULE.category_source == CategorySource.AUTO
        assert ResultSource.AI.category_source == CategorySource.AUTO
        assert ResultSource.TRANSFER.category_source == CategorySource.AUTO
        assert ResultSource.BANK.category_source == CategorySource.BANK


@pytest.mark.unit
class TestCategoryAssignment:

    def test_default_confidence_per_source(self):
        assert TransactionCategoryAssignment.create("t", "cat-fees", CategorySource.AUTO).confidence == 0.8
        assert TransactionCategoryAssignment.create("t", "cat-fees", CategorySource.MANUAL).confidence == 1.0

    @pytest.mark.parametrize("confidence", [-0.1, 1.5])
    def test_confidence_out_of_range(self, confidence):
        with pytest.raises(ValueError):
            TransactionCategoryAssignment.create("t", "cat-fees", CategorySource.AUTO, confidence)


@pytest.mark.unit
class TestCategoryRule:

    def test_create_valid_rule(self):
        rule = CategoryRule.create("cat-groceries", " CARREFOUR ", MatchType.CONTAINS, priority=5)

        assert rule.pattern == "CARREFOUR"
        assert rule.priority == 5
        assert rule.is_active

    @pytest.mark.parametrize("pattern", ["", "   ", None])
    def test_empty_pattern_is_rejected(self, pattern):
        with pytest.raises(InvalidRuleError, match="Pattern cannot be empty"):
            CategoryRule.create("cat-groceries", pattern)

    def test_invalid_regex_is_rejected(self):
        with pytest.raises(InvalidRuleError, match="Invalid regex"):
            CategoryRule.create("cat-groceries", "CARREFOUR(", MatchType.REGEX)

    def test_update_revalidates(self):
        # Arrange
        rule = CategoryRule.create("cat-groceries", "CARREFOUR(", MatchType.CONTAINS)

        # Act / Assert
        with pytest.raises(InvalidRuleError):
            rule.update(match_type=MatchType.REGEX)

        assert rule.match_type == MatchType.CONTAINS

    def test_update_and_deactivate(self):
        rule = CategoryRule.create("cat-groceries", "CARREFOUR")

        rule.update(pattern="^CB CARREFOUR", match_type=MatchType.REGEX, priority=3)
        rule.deactivate()

        assert rule.pattern == "^CB CARREFOUR"
        assert rule.priority == 3
        assert not rule.is_active


@pytest.mark.unit
class TestSources:

    def test_mark_synced(self):
        source = DataSource(name="CE", parser_key="caisse_epargne")
        assert source.last_sync_at is None

        source.mark_synced()

        assert source.last_sync_at is not None

    def test_snapshot_types(self):
        assert InvestmentSourceType.PEA.is_snapshot
        assert InvestmentSourceType.ASSURANCE_VIE.is_snapshot
        assert not InvestmentSourceType.CRYPTO.is_snapshot


@pytest.mark.unit
class TestInvestmentEntities:

    def make_parsed(self, **overrides):
        values = dict(
            date=date(2025, 1, 10), symbol=" btc ", type=InvestmentTransactionType.BUY,
            quantity=Decimal("0.1"), price_per_unit=Decimal("40000"),
            total_amount=Decimal("4000"), fee=Decimal("10"),
        )
        values.update(overrides)
        return ParsedInvestmentTransaction(**values)

    def test_transaction_symbol_is_upper_cased(self):
        txn = InvestmentTransaction.create("src-1", self.make_parsed())

        assert txn.symbol == "BTC"

    @pytest.mark.parametrize("overrides", [
        {"symbol": ""},
        {"quantity": Decimal("0")},
        {"price_per_unit": Decimal("-1")},
        {"total_amount": Decimal("-1")},
        {"fee": Decimal("-1")},
    ])
    def test_invalid_transactions(self, overrides):
        with pytest.raises(ValueError):
            InvestmentTransaction.create("src-1", self.make_parsed(**overrides))

    def test_position_validation(self):
        with pytest.raises(ValueError, match="Quantity cannot be negative"):
            InvestmentPosition.create(
                source_id="src-1", symbol="BTC", quantity=Decimal("-1"),
                avg_buy_price=Decimal("0"), current_price=Decimal("0"),
                current_value=Decimal("0"), gain_loss=Decimal("0"),
                gain_loss_percent=Decimal("0"),
            )

    def test_position_update_price(self):
        # Arrange
        position = InvestmentPosition.create(
            source_id="src-1", symbol="BTC", quantity=Decimal("2"),
            avg_buy_price=Decimal("100"), current_price=Decimal("100"),
            current_value=Decimal("200"), gain_loss=Decimal("0"),
            gain_loss_percent=Decimal("0"),
        )

        # Act
        position.update_price(Decimal("150"))

        # Assert
        assert position.current_value == Decimal("300")
        assert position.gain_loss == Decimal("100")
        assert position.gain_loss_percent == Decimal("50")
