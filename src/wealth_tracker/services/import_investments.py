import logging
from typing import List, Type

from wealth_tracker.domain.enums import InvestmentSourceType
from wealth_tracker.domain.investment import InvestmentPosition, InvestmentSource, InvestmentTransaction
from wealth_tracker.parsers.base import InvestmentParser
from wealth_tracker.parsers.factory import InvestmentParserFactory
from wealth_tracker.repositories.base import InvestmentRepository
from wealth_tracker.services.cost_basis import CostBasisCalculator
from wealth_tracker.services.deduplication import (
    SignatureSet,
    parsed_investment_signature,
    persisted_investment_signature,
)
from wealth_tracker.services.models import InvestmentImportResult

logger = logging.getLogger(__name__)


class ImportInvestmentsService:
    """
    Imports a broker or exchange export into an investment source.

    Snapshot sources (PEA, CTO, assurance-vie) replace every position of
    the source with the parsed ones. Crypto sources append the new ledger
    entries and recompute positions from the complete ledger.
    """

    def __init__(
        self,
        investment_repository: InvestmentRepository,
        calculator: CostBasisCalculator,
        parser_factory: Type[InvestmentParserFactory] = InvestmentParserFactory,
    ):
        self.repository = investment_repository
        self.calculator = calculator
        self.parser_factory = parser_factory

    def execute(self, source_id: str, content: bytes) -> InvestmentImportResult:
        """
        Import an investment export.

        Args:
            source_id: Investment source the export belongs to
            content: Raw export content

        Returns:
            An InvestmentImportResult with position/transaction counts and errors
        """
        try:
            source = self.repository.find_source_by_id(source_id)
        except Exception as e:
            logger.error("Failed to load investment source %s: %s", source_id, e)
            return InvestmentImportResult(errors=[f"Failed to load investment source: {e}"])

        if source is None:
            return InvestmentImportResult(errors=["Investment source not found"])

        try:
            parser = self.parser_factory.create_parser(source.parser_key)
        except ValueError:
            return InvestmentImportResult(errors=[f"Unknown parser key: {source.parser_key}"])

        if source.type == InvestmentSourceType.CRYPTO:
            result = self._import_ledger(source, parser, content)
        else:
            result = self._import_snapshot(source, parser, content)

        source.mark_synced()
        try:
            self.repository.save_source(source)
        except Exception as e:
            logger.warning("Could not update sync time of %s: %s", source.id, e)
            result.errors.append(f"Warning: Failed to update sync timestamp: {e}")

        logger.info(
            "Investment import for %s: %d positions, %d new transactions",
            source.name, result.positions, result.transactions,
        )
        return result

    def recalculate(self, source: InvestmentSource) -> InvestmentImportResult:
        """
        Rebuild the positions of a ledger source from its stored transactions.

        Used after an import and to refresh prices.
        """
        errors: List[str] = []
        saved = 0

        try:
            transactions = self.repository.find_transactions_by_source_id(source.id)
            self.repository.delete_positions_by_source_id(source.id)

            calculation = self.calculator.calculate(transactions)
            errors.extend(calculation.warnings)

            for position in self.calculator.to_positions(source.id, calculation):
                self.repository.save_position(position)
                saved += 1
        except Exception as e:
            logger.exception("Position calculation failed for %s", source.id)
            errors.append(f"Failed to calculate crypto positions: {e}")

        return InvestmentImportResult(positions=saved, errors=errors)

    def _import_snapshot(
        self,
        source: InvestmentSource,
        parser: InvestmentParser,
        content: bytes,
    ) -> InvestmentImportResult:
        try:
            parsed_positions = parser.parse_positions(content)
        except Exception as e:
            logger.exception("Parser %s failed", source.parser_key)
            return InvestmentImportResult(errors=[f"Failed to parse file: {e}"])

        if not parsed_positions:
            return InvestmentImportResult(errors=["No positions found in file"])

        try:
            self.repository.delete_positions_by_source_id(source.id)
        except Exception as e:
            return InvestmentImportResult(errors=[f"Failed to clear existing positions: {e}"])

        errors: List[str] = []
        saved = 0

        for parsed in parsed_positions:
            try:
                position = InvestmentPosition.from_parsed(source.id, parsed)
            except ValueError as e:
                errors.append(f"Invalid position {parsed.symbol}: {e}")
                continue

            try:
                self.repository.save_position(position)
                saved += 1
            except Exception as e:
                errors.append(f"Failed to save position {parsed.symbol}: {e}")

        return InvestmentImportResult(positions=saved, errors=errors)

    def _import_ledger(
        self,
        source: InvestmentSource,
        parser: InvestmentParser,
        content: bytes,
    ) -> InvestmentImportResult:
        try:
            parsed_transactions = parser.parse_transactions(content)
        except Exception as e:
            logger.exception("Parser %s failed", source.parser_key)
            return InvestmentImportResult(errors=[f"Failed to parse file: {e}"])

        if not parsed_transactions:
            return InvestmentImportResult(errors=["No transactions found in file"])

        try:
            existing = self.repository.find_transactions_by_source_id(source.id)
        except Exception as e:
            logger.error("Failed to load ledger of %s: %s", source.id, e)
            return InvestmentImportResult(errors=[f"Failed to load existing transactions: {e}"])

        signatures = SignatureSet(persisted_investment_signature(txn) for txn in existing)

        errors: List[str] = []
        saved = 0

        for parsed in parsed_transactions:
            signature = parsed_investment_signature(parsed)
            if signature in signatures:
                continue

            try:
                transaction = InvestmentTransaction.create(source.id, parsed)
            except ValueError as e:
                errors.append(f"Invalid transaction: {e}")
                continue

            try:
                self.repository.save_transaction(transaction)
            except Exception as e:
                errors.append(f"Failed to save transaction: {e}")
                continue

            signatures.accept(signature)
            saved += 1

        positions = self.recalculate(source)

        return InvestmentImportResult(
            positions=positions.positions,
            transactions=saved,
            errors=errors + positions.errors,
        )
