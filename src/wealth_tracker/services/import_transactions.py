import logging
from typing import List, Optional, Tuple, Type

from wealth_tracker.domain.models import ParsedTransaction, Transaction
from wealth_tracker.parsers.base import Content
from wealth_tracker.parsers.factory import ParserFactory
from wealth_tracker.repositories.base import DataSourceRepository, TransactionRepository
from wealth_tracker.services.deduplication import (
    SignatureSet,
    parsed_signature,
    persisted_signature,
)
from wealth_tracker.services.models import ImportResult

logger = logging.getLogger(__name__)


class ImportTransactionsService:
    """
    Imports a bank export into the account linked to a data source.

    parse -> deduplicate -> persist -> mark synced. Fatal problems return
    a result with a single error and zero counts; invalid rows are reported
    and skipped; a failure to record the sync time is only a warning.
    """

    def __init__(
        self,
        data_source_repository: DataSourceRepository,
        transaction_repository: TransactionRepository,
        parser_factory: Type[ParserFactory] = ParserFactory,
        pipeline=None,
    ):
        self.data_source_repository = data_source_repository
        self.transaction_repository = transaction_repository
        self.parser_factory = parser_factory
        self.pipeline = pipeline

    def execute(
        self,
        data_source_id: str,
        content: Content,
        categorize: bool = False,
    ) -> ImportResult:
        """
        Import a statement export.

        Args:
            data_source_id: Data source the export belongs to
            content: Raw export content
            categorize: Run the categorization pipeline on the account afterwards

        Returns:
            An ImportResult with imported/skipped counts and error messages
        """
        try:
            data_source = self.data_source_repository.find_by_id(data_source_id)
        except Exception as e:
            logger.error("Failed to load data source %s: %s", data_source_id, e)
            return ImportResult(errors=[f"Failed to load data source: {e}"])

        if data_source is None:
            return ImportResult(errors=["Data source not found"])

        account_id = data_source.linked_account_id
        if not account_id:
            return ImportResult(
                errors=["Data source has no linked account. Please configure the linked account first."]
            )

        try:
            parser = self.parser_factory.create_parser(data_source.parser_key)
        except ValueError:
            return ImportResult(errors=[f"Unknown parser key: {data_source.parser_key}"])

        try:
            parsed_transactions = parser.parse(content)
        except Exception as e:
            logger.exception("Parser %s failed", data_source.parser_key)
            return ImportResult(errors=[f"Failed to parse CSV: {e}"])

        if not parsed_transactions:
            return ImportResult(errors=["No transactions found in CSV file"])

        errors: List[str] = []
        try:
            existing = self.transaction_repository.find_by_account_id(account_id)
        except Exception as e:
            logger.error("Failed to load transactions of %s: %s", account_id, e)
            return ImportResult(errors=[f"Failed to load existing transactions: {e}"])

        signatures = SignatureSet(persisted_signature(txn) for txn in existing)

        new_transactions, skipped = self._deduplicate(
            parsed_transactions, account_id, signatures, errors
        )

        if new_transactions:
            try:
                self.transaction_repository.save_many(new_transactions)
            except Exception as e:
                logger.error("Failed to save %d transactions: %s", len(new_transactions), e)
                return ImportResult(
                    imported=0,
                    skipped=skipped,
                    errors=errors + [f"Failed to save transactions: {e}"],
                )

        data_source.mark_synced()
        try:
            self.data_source_repository.save(data_source)
        except Exception as e:
            logger.warning("Could not update sync time of %s: %s", data_source.id, e)
            errors.append(f"Warning: Failed to update sync timestamp: {e}")

        logger.info(
            "Imported %d transactions into %s (%d duplicates skipped)",
            len(new_transactions), account_id, skipped,
        )

        if categorize and new_transactions and self.pipeline is not None:
            self._categorize(account_id)

        return ImportResult(imported=len(new_transactions), skipped=skipped, errors=errors)

    def _deduplicate(
        self,
        parsed_transactions: List[ParsedTransaction],
        account_id: str,
        signatures: SignatureSet,
        errors: List[str],
    ) -> Tuple[List[Transaction], int]:
        new_transactions = []
        skipped = 0

        for parsed in parsed_transactions:
            signature = parsed_signature(parsed)
            if signature in signatures:
                skipped += 1
                continue

            try:
                transaction = Transaction.create(account_id, parsed)
            except ValueError as e:
                errors.append(f"Failed to create transaction: {e}")
                continue

            signatures.accept(signature)
            new_transactions.append(transaction)

        return new_transactions, skipped

    def _categorize(self, account_id: Optional[str]) -> None:
        try:
            stats = self.pipeline.run(account_id=account_id)
            logger.info("Post-import categorization: %s", stats)
        except Exception:
            logger.exception("Post-import categorization failed for %s", account_id)
