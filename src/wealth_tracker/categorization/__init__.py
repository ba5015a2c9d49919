"""
Transaction categorization.

Uncategorized transactions go through four stages: user rules, the
bank's own category label, an optional language model, and internal
transfer detection.

Quick Start:
    >>> from wealth_tracker.categorization import CategorizationPipeline
    >>>
    >>> stats = pipeline.run(account_id=account.id)
    >>> print(stats)
"""
from wealth_tracker.categorization.ai_categorizer import AICategorizer
from wealth_tracker.categorization.bank_mapper import BankCategoryMapper
from wealth_tracker.categorization.base import CategorizationRule, normalize_description
from wealth_tracker.categorization.pipeline import CategorizationPipeline
from wealth_tracker.categorization.recurring_detector import detect_recurring
from wealth_tracker.categorization.rule_engine import RuleCache, RuleEngine
from wealth_tracker.categorization.rules import (
    ContainsRule,
    ExactRule,
    RegexRule,
    StartsWithRule,
)
from wealth_tracker.categorization.transfer_detector import TransferDetector
from wealth_tracker.categorization import categories

__all__ = [
    "AICategorizer",
    "BankCategoryMapper",
    "CategorizationPipeline",
    "CategorizationRule",
    "ContainsRule",
    "ExactRule",
    "RegexRule",
    "RuleCache",
    "RuleEngine",
    "StartsWithRule",
    "TransferDetector",
    "categories",
    "detect_recurring",
    "normalize_description",
]
