import re
import unicodedata
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Optional

from wealth_tracker.domain.models import Transaction

_WHITESPACE = re.compile(r"\s+")


@lru_cache(maxsize=4096)
def normalize_description(description: str) -> str:
    """
    Normalize a description for matching.

    Accents are stripped, text is upper-cased, trimmed and runs of
    whitespace collapse to a single space:
        "  Prélèvement   EDF " -> "PRELEVEMENT EDF"
    """
    decomposed = unicodedata.normalize("NFD", description or "")
    without_accents = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", without_accents.upper()).strip()


class CategorizationRule(ABC):
    """
    Abstract base class for all categorization rules.

    Implements Chain of Responsibility:
    - Each rule tries to categorize a transaction
    - If it can't it passes to the next rule
    - Rules are tried in priority order

    Usage:
        Create chain: highest priority first
        ```
        exact = ExactRule(rule_a)
        contains = ContainsRule(rule_b)

        exact.set_next(contains)

        category_id = exact.categorize(transaction)
        ```
    """

    def __init__(self):
        self._next_rule: Optional['CategorizationRule'] = None

    def set_next(self, rule: 'CategorizationRule') -> 'CategorizationRule':
        """
        Set the next rule in the chain.

        Args:
            rule: The next rule to try if this one doesn't match

        Returns:
            The rule that was set (for chaining)

        Example:
            `rule1.set_next(rule2).set_next(rule3)`
        """
        self._next_rule = rule
        return rule

    @property
    def next_rule(self) -> Optional['CategorizationRule']:
        return self._next_rule

    @abstractmethod
    def _matches(self, transaction: Transaction) -> bool:
        """
        Check if this rule matches the transaction.

        Subclasses implement their specific matching logic here.
        """
        pass

    @abstractmethod
    def _get_category(self, transaction: Transaction) -> str:
        """
        Get the category id for the transaction.

        Called only if _matches() returns True.
        """
        pass

    def categorize(self, transaction: Transaction) -> Optional[str]:
        """
        Attempt to categorize a transaction.

        Checks this rule, then each following rule in the chain; the
        first match wins.

        Args:
            transaction: Transaction to categorize.

        Returns:
            Category id, or None if no rule matched
        """
        rule: Optional[CategorizationRule] = self
        while rule is not None:
            if rule._matches(transaction):
                return rule._get_category(transaction)
            rule = rule._next_rule

        return None

    def __repr__(self):
        return f"{self.__class__.__name__}()"
