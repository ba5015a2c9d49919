import logging
import time
from typing import Callable, List, Optional

from wealth_tracker.categorization.base import CategorizationRule
from wealth_tracker.categorization.rules import build_chain
from wealth_tracker.domain.enums import ResultSource
from wealth_tracker.domain.models import CategoryRule, Transaction
from wealth_tracker.repositories.base import CategoryRuleRepository
from wealth_tracker.services.models import CategorizationResult

logger = logging.getLogger(__name__)

RULE_CONFIDENCE = 1.0


class RuleCache:
    """
    Active rules loaded from the repository, kept for `ttl_seconds`.

    Call `invalidate()` after adding or editing a rule so the next
    run sees it immediately.
    """

    def __init__(
        self,
        repository: CategoryRuleRepository,
        ttl_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.repository = repository
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._rules: Optional[List[CategoryRule]] = None
        self._chain: Optional[CategorizationRule] = None
        self.last_loaded_at: Optional[float] = None

    def _is_fresh(self) -> bool:
        if self._rules is None or self.last_loaded_at is None:
            return False
        return self._clock() - self.last_loaded_at < self.ttl_seconds

    def _load(self) -> None:
        rules = sorted(
            self.repository.get_active_rules(),
            key=lambda r: r.priority,
            reverse=True,
        )
        self._rules = rules
        self._chain = build_chain(rules)
        self.last_loaded_at = self._clock()
        logger.debug("Loaded %d active category rules", len(rules))

    def get_rules(self) -> List[CategoryRule]:
        """Active rules, highest priority first"""
        if not self._is_fresh():
            self._load()
        return list(self._rules)

    def get_chain(self) -> Optional[CategorizationRule]:
        """Head of the rule chain, or None when there are no active rules"""
        if not self._is_fresh():
            self._load()
        return self._chain

    def invalidate(self) -> None:
        self._rules = None
        self._chain = None
        self.last_loaded_at = None


class RuleEngine:
    """
    First stage of the pipeline: user-defined rules.

    Rules are tried highest priority first and the first match wins.
    Sorting is stable, so equal priorities keep the repository order.
    """

    def __init__(self, cache: RuleCache):
        self.cache = cache

    def apply(self, transactions: List[Transaction]) -> List[CategorizationResult]:
        """
        Categorize transactions with the active rules.

        Args:
            transactions: Transactions to categorize

        Returns:
            One result per matched transaction
        """
        chain = self.cache.get_chain()
        if chain is None:
            return []

        results = []
        for transaction in transactions:
            category_id = chain.categorize(transaction)
            if category_id is None:
                continue

            results.append(CategorizationResult(
                transaction_id=transaction.id,
                category_id=category_id,
                source=ResultSource.RULE,
                confidence=RULE_CONFIDENCE,
            ))

        return results
