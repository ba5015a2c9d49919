import logging
import unicodedata
from typing import Any, Dict, List, Optional

from wealth_tracker.categorization.categories import is_valid_category
from wealth_tracker.config.settings import ConfigLoader
from wealth_tracker.domain.enums import ResultSource
from wealth_tracker.domain.models import Transaction
from wealth_tracker.services.models import CategorizationResult

logger = logging.getLogger(__name__)

BANK_CONFIDENCE = 0.7
SEGMENT_SEPARATOR = ">"


def normalize_bank_category(label: str) -> str:
    """Lookup key for a bank label: accents stripped, trimmed, case folded"""
    decomposed = unicodedata.normalize("NFD", label)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.split()).casefold()


class BankCategoryMapper:
    """
    Second stage of the pipeline: the bank's own category label.

    Labels come from the export ("Alimentation > Supermarché"). For a
    hierarchical label the full label is looked up first, then the child
    segment, then the parent segment.

    Usage:
        # Production - loads bank_categories.json from ConfigLoader
        mapper = BankCategoryMapper()

        # Testing - inject custom config
        mapper = BankCategoryMapper(config={"mappings": {"Courses": "cat-groceries"}})
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        if config is None:
            config = ConfigLoader.load_bank_categories_config()

        self._mappings: Dict[str, str] = {}
        for label, category_id in config.get("mappings", {}).items():
            if not is_valid_category(category_id):
                logger.warning("Ignoring bank mapping %r -> unknown category %r", label, category_id)
                continue
            self._mappings[normalize_bank_category(label)] = category_id

    def lookup(self, bank_category: Optional[str]) -> Optional[str]:
        """
        Find the category id for a bank label.

        Returns:
            Category id, or None when no segment of the label is mapped
        """
        if not bank_category or not bank_category.strip():
            return None

        candidates = [bank_category]
        segments = [s.strip() for s in bank_category.split(SEGMENT_SEPARATOR) if s.strip()]
        if len(segments) > 1:
            candidates.extend(reversed(segments))

        for candidate in candidates:
            category_id = self._mappings.get(normalize_bank_category(candidate))
            if category_id:
                return category_id

        return None

    def apply(self, transactions: List[Transaction]) -> List[CategorizationResult]:
        results = []

        for transaction in transactions:
            category_id = self.lookup(transaction.bank_category)
            if category_id is None:
                continue

            results.append(CategorizationResult(
                transaction_id=transaction.id,
                category_id=category_id,
                source=ResultSource.BANK,
                confidence=BANK_CONFIDENCE,
            ))

        return results

    def __len__(self) -> int:
        return len(self._mappings)
