import logging
import time
from typing import Callable, Dict, List, Optional

from wealth_tracker.categorization.ai_categorizer import AICategorizer
from wealth_tracker.categorization.bank_mapper import BankCategoryMapper
from wealth_tracker.categorization.rule_engine import RuleCache, RuleEngine
from wealth_tracker.categorization.transfer_detector import TransferDetector
from wealth_tracker.domain.models import Transaction, TransactionCategoryAssignment
from wealth_tracker.repositories.base import TransactionRepository
from wealth_tracker.services.models import CategorizationResult, PipelineStats

logger = logging.getLogger(__name__)


class CategorizationPipeline:
    """
    Categorizes every transaction that has no category yet.

    Stages, in order:
    1. Rule engine (user rules)          -> confidence 1.0
    2. Bank category mapping             -> confidence 0.7
    3. AI categorizer (if configured)    -> confidence capped at 0.95
    4. Transfer detector                 -> confidence 0.9

    Stages 2 and 3 only see what earlier stages left unmatched. The
    transfer detector sees every input transaction and its results
    replace earlier ones. A failing stage is logged and the run goes on.

    Results are written through the overwrite policy: an existing MANUAL
    assignment is never replaced.

    Usage:
        pipeline = CategorizationPipeline(
            transaction_repository=transactions,
            rule_cache=RuleCache(rules),
            bank_mapper=BankCategoryMapper(),
            ai_categorizer=AICategorizer(client=None),
            transfer_detector=TransferDetector(transactions, accounts),
        )
        stats = pipeline.run(account_id="...")
    """

    def __init__(
        self,
        transaction_repository: TransactionRepository,
        rule_cache: RuleCache,
        bank_mapper: BankCategoryMapper,
        ai_categorizer: AICategorizer,
        transfer_detector: TransferDetector,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.transaction_repository = transaction_repository
        self.rule_cache = rule_cache
        self.rule_engine = RuleEngine(rule_cache)
        self.bank_mapper = bank_mapper
        self.ai_categorizer = ai_categorizer
        self.transfer_detector = transfer_detector
        self._clock = clock

    def run(self, account_id: Optional[str] = None) -> PipelineStats:
        """
        Run every stage over the uncategorized transactions.

        Args:
            account_id: Only categorize transactions of this account

        Returns:
            Per-stage match counts, number applied and duration
        """
        started = self._clock()
        stats = PipelineStats()

        try:
            transactions = self.transaction_repository.find_uncategorized(account_id)
        except Exception:
            logger.exception("Failed to load uncategorized transactions")
            stats.duration_seconds = self._clock() - started
            return stats

        stats.total = len(transactions)

        if not transactions:
            stats.duration_seconds = self._clock() - started
            return stats

        logger.info("Processing %d uncategorized transactions", len(transactions))

        results: Dict[str, CategorizationResult] = {}

        rule_results = self._run_stage("Rule engine", self.rule_engine.apply, transactions)
        stats.rule_matches = self._collect(rule_results, results)

        bank_results = self._run_stage(
            "Bank mapping", self.bank_mapper.apply, self._remaining(transactions, results)
        )
        stats.bank_matches = self._collect(bank_results, results)

        remaining = self._remaining(transactions, results)
        if remaining and self.ai_categorizer.enabled:
            try:
                outcome = self.ai_categorizer.apply(remaining, self.rule_cache.get_rules())
                stats.ai_matches = self._collect(outcome.results, results)
                stats.estimated_cost = outcome.estimated_cost
                logger.info("AI: %d matches", stats.ai_matches)
            except Exception:
                logger.exception("AI categorization failed")

        transfer_results = self._run_stage("Transfers", self.transfer_detector.apply, transactions)
        stats.transfer_matches = len(transfer_results)
        for result in transfer_results:
            results[result.transaction_id] = result

        stats.applied = self._apply(results.values())
        stats.unmatched = len(transactions) - len(results)
        stats.duration_seconds = self._clock() - started

        logger.info("Pipeline completed: %s (%d applied)", stats, stats.applied)
        return stats

    @staticmethod
    def _run_stage(name: str, stage, transactions: List[Transaction]) -> List[CategorizationResult]:
        if not transactions:
            return []
        try:
            stage_results = stage(transactions)
        except Exception:
            logger.exception("%s failed", name)
            return []

        logger.info("%s: %d matches", name, len(stage_results))
        return stage_results

    @staticmethod
    def _collect(
        stage_results: List[CategorizationResult],
        results: Dict[str, CategorizationResult],
    ) -> int:
        """Keep the first result per transaction, return how many were new"""
        added = 0
        for result in stage_results:
            if result.transaction_id not in results:
                results[result.transaction_id] = result
                added += 1
        return added

    @staticmethod
    def _remaining(
        transactions: List[Transaction],
        results: Dict[str, CategorizationResult],
    ) -> List[Transaction]:
        return [txn for txn in transactions if txn.id not in results]

    def _apply(self, results) -> int:
        applied = 0

        for result in results:
            source = result.source.category_source
            try:
                existing = self.transaction_repository.get_assignment(result.transaction_id)
                if existing is not None and not existing.can_be_replaced_by(source):
                    logger.debug(
                        "Keeping %s assignment of %s", existing.source.value, result.transaction_id
                    )
                    continue

                assignment = TransactionCategoryAssignment.create(
                    transaction_id=result.transaction_id,
                    category_id=result.category_id,
                    source=source,
                    confidence=result.confidence,
                )
                self.transaction_repository.save_assignment(assignment)
                applied += 1
            except Exception as e:
                logger.error("Failed to apply category for %s: %s", result.transaction_id, e)

        return applied
