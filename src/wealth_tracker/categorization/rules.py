import logging
import re
from abc import abstractmethod
from typing import Dict, Iterable, Optional, Type

from wealth_tracker.categorization.base import CategorizationRule, normalize_description
from wealth_tracker.domain.enums import MatchType
from wealth_tracker.domain.models import CategoryRule, Transaction

logger = logging.getLogger(__name__)


class PatternRule(CategorizationRule):
    """
    Chain link built from a stored CategoryRule.

    Descriptions and patterns are both compared in normalized form, so
    "Prélèvement  edf" matches a rule written as "PRELEVEMENT EDF".
    A rule with a source only applies to transactions of that account.
    """

    def __init__(self, rule: CategoryRule):
        super().__init__()
        self.rule = rule
        self.normalized_pattern = normalize_description(rule.pattern)

    def _matches(self, transaction: Transaction) -> bool:
        if not self.rule.is_active:
            return False

        if self.rule.source and self.rule.source != transaction.account_id:
            return False

        return self._matches_description(normalize_description(transaction.description))

    @abstractmethod
    def _matches_description(self, description: str) -> bool:
        pass

    def _get_category(self, transaction: Transaction) -> str:
        return self.rule.category_id

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}('{self.rule.pattern}' -> {self.rule.category_id})"


class ExactRule(PatternRule):
    """Normalized description equals the normalized pattern"""

    def _matches_description(self, description: str) -> bool:
        return description == self.normalized_pattern


class StartsWithRule(PatternRule):

    def _matches_description(self, description: str) -> bool:
        return description.startswith(self.normalized_pattern)


class ContainsRule(PatternRule):

    def _matches_description(self, description: str) -> bool:
        return self.normalized_pattern in description


class RegexRule(PatternRule):
    """
    Case-insensitive regular expression searched in the normalized description.

    The raw pattern is used (not its normalized form) so that regex
    syntax such as \\d or character classes survives.

    Example:
        CategoryRule.create("cat-loan-payment", r"^ECH PRET \\d+", MatchType.REGEX)
    """

    def __init__(self, rule: CategoryRule):
        super().__init__(rule)
        try:
            self._compiled: Optional[re.Pattern] = re.compile(rule.pattern, re.IGNORECASE)
        except re.error as e:
            logger.warning(
                "Rule %s has an invalid regex %r (%s); it will not match until fixed",
                rule.id, rule.pattern, e,
            )
            self._compiled = None

    def _matches_description(self, description: str) -> bool:
        if self._compiled is None:
            return False
        return self._compiled.search(description) is not None


RULE_TYPES: Dict[MatchType, Type[PatternRule]] = {
    MatchType.EXACT: ExactRule,
    MatchType.STARTS_WITH: StartsWithRule,
    MatchType.CONTAINS: ContainsRule,
    MatchType.REGEX: RegexRule,
}


def build_rule(rule: CategoryRule) -> PatternRule:
    """Create the chain link matching a rule's match type"""
    return RULE_TYPES[rule.match_type](rule)


def build_chain(rules: Iterable[CategoryRule]) -> Optional[CategorizationRule]:
    """
    Link rules in the given order.

    Args:
        rules: Rules sorted by priority, highest first

    Returns:
        Head of the chain, or None when there are no rules
    """
    head: Optional[CategorizationRule] = None
    tail: Optional[CategorizationRule] = None

    for rule in rules:
        link = build_rule(rule)
        if tail is None:
            head = link
        else:
            tail.set_next(link)
        tail = link

    return head
