import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from wealth_tracker.domain.enums import (
    AccountType,
    CategorySource,
    MatchType,
    TransactionType,
)
from wealth_tracker.domain.errors import InvalidRuleError


def new_id() -> str:
    """Generate an identifier for a new entity"""
    return str(uuid.uuid4())


@dataclass
class ParsedTransaction:
    """
    Raw transaction as read from a bank export, before persistence.

    The amount is signed: positive for credits, negative for debits.
    """
    date: date
    amount: Decimal
    description: str
    raw_category: Optional[str] = None
    balance: Optional[Decimal] = None
    value_date: Optional[date] = None
    reference: Optional[str] = None
    additional_info: Optional[str] = None


@dataclass
class TransactionCategoryAssignment:
    """Category given to a transaction, and who gave it"""
    transaction_id: str
    category_id: str
    source: CategorySource
    confidence: float
    assigned_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def create(
        cls,
        transaction_id: str,
        category_id: str,
        source: CategorySource,
        confidence: Optional[float] = None,
    ) -> "TransactionCategoryAssignment":
        """
        Build an assignment, using the source's default confidence when none is given.

        Raises:
            ValueError: If the category is empty or the confidence is out of [0, 1]
        """
        if not category_id:
            raise ValueError("Category ID is required")

        if confidence is None:
            confidence = source.default_confidence

        if not 0 <= confidence <= 1:
            raise ValueError(f"Confidence must be between 0 and 1, got {confidence}")

        return cls(
            transaction_id=transaction_id,
            category_id=category_id,
            source=source,
            confidence=confidence,
        )

    def can_be_replaced_by(self, source: CategorySource) -> bool:
        """Check the overwrite policy against an incoming assignment source"""
        return self.source.can_be_overwritten_by(source)


@dataclass
class Transaction:
    """Core domain model representing a single bank transaction"""
    account_id: str
    date: date
    description: str
    amount: Decimal
    type: TransactionType
    currency: str = "EUR"
    bank_category: Optional[str] = None
    is_internal: bool = False
    imported_at: datetime = field(default_factory=datetime.now)
    category: Optional[TransactionCategoryAssignment] = None
    id: str = field(default_factory=new_id)

    @classmethod
    def create(
        cls,
        account_id: str,
        parsed: ParsedTransaction,
        currency: str = "EUR",
    ) -> "Transaction":
        """
        Build a transaction from a parsed row.

        The type comes from the sign of the parsed amount and the stored
        amount is always the magnitude.

        Raises:
            ValueError: If the description is empty
        """
        description = (parsed.description or "").strip()
        if not description:
            raise ValueError("Description is required")

        txn_type = TransactionType.INCOME if parsed.amount >= 0 else TransactionType.EXPENSE

        return cls(
            account_id=account_id,
            date=parsed.date,
            description=description,
            amount=abs(parsed.amount),
            type=txn_type,
            currency=currency,
            bank_category=parsed.raw_category,
        )

    @property
    def signed_amount(self) -> Decimal:
        """Return amount with sign for net calculations"""
        return -self.amount if self.type == TransactionType.EXPENSE else self.amount

    @property
    def is_categorized(self) -> bool:
        return self.category is not None

    def __repr__(self):
        sign = "-" if self.type == TransactionType.EXPENSE else "+"
        return f"Transaction({self.date}, {self.description[:30]}, {sign}{self.amount} {self.currency})"


@dataclass
class Account:
    name: str
    type: AccountType
    currency: str = "EUR"
    id: str = field(default_factory=new_id)


@dataclass
class DataSource:
    """
    A bank export feed: which parser reads it and which account it fills.
    """
    name: str
    parser_key: str
    linked_account_id: Optional[str] = None
    last_sync_at: Optional[datetime] = None
    id: str = field(default_factory=new_id)

    def mark_synced(self, when: Optional[datetime] = None) -> None:
        self.last_sync_at = when or datetime.now()


@dataclass
class CategoryRule:
    """
    User-defined pattern that maps matching descriptions to a category.

    Rules are validated on creation and on every update, so a stored
    rule always has a usable pattern.
    """
    category_id: str
    pattern: str
    match_type: MatchType = MatchType.CONTAINS
    priority: int = 0
    source: Optional[str] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=new_id)

    @classmethod
    def create(
        cls,
        category_id: str,
        pattern: str,
        match_type: MatchType = MatchType.CONTAINS,
        priority: int = 0,
        source: Optional[str] = None,
    ) -> "CategoryRule":
        """
        Create a validated rule.

        Args:
            category_id: Category assigned when the rule matches
            pattern: Text or regular expression to look for
            match_type: How the pattern is compared
            priority: Higher priorities are checked first
            source: Optional account ID the rule is restricted to

        Raises:
            InvalidRuleError: If the pattern is empty or is not a valid regex
        """
        if not category_id:
            raise InvalidRuleError("Category ID is required")

        cls._validate_pattern(pattern, match_type)

        return cls(
            category_id=category_id,
            pattern=pattern.strip(),
            match_type=match_type,
            priority=priority,
            source=source,
        )

    def update(
        self,
        pattern: Optional[str] = None,
        match_type: Optional[MatchType] = None,
        priority: Optional[int] = None,
        category_id: Optional[str] = None,
    ) -> None:
        """Update the rule, re-validating the resulting pattern"""
        new_pattern = self.pattern if pattern is None else pattern
        new_match_type = self.match_type if match_type is None else match_type

        self._validate_pattern(new_pattern, new_match_type)

        if category_id is not None:
            if not category_id:
                raise InvalidRuleError("Category ID is required")
            self.category_id = category_id

        self.pattern = new_pattern.strip()
        self.match_type = new_match_type
        if priority is not None:
            self.priority = priority

    def activate(self) -> None:
        self.is_active = True

    def deactivate(self) -> None:
        self.is_active = False

    @staticmethod
    def _validate_pattern(pattern: Optional[str], match_type: MatchType) -> None:
        if not pattern or not pattern.strip():
            raise InvalidRuleError("Pattern cannot be empty")

        if match_type == MatchType.REGEX:
            try:
                re.compile(pattern, re.IGNORECASE)
            except re.error as e:
                raise InvalidRuleError(f"Invalid regex pattern '{pattern}': {e}") from e
