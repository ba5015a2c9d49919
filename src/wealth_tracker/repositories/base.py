from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, List, Optional

from wealth_tracker.domain.enums import InvestmentSourceType
from wealth_tracker.domain.investment import (
    InvestmentPosition,
    InvestmentSource,
    InvestmentTransaction,
)
from wealth_tracker.domain.models import (
    Account,
    CategoryRule,
    DataSource,
    Transaction,
    TransactionCategoryAssignment,
)


class RepositoryError(Exception):
    """Raised when the storage backend fails."""
    pass


class TransactionNotFoundError(RepositoryError):
    """Raised when a transaction cannot be found."""
    pass


class TransactionRepository(ABC):
    """
    Abstract repository for transaction persistence.

    The repository pattern abstracts the data access, making it easy
    to swap storage backends in the future.
    """

    @abstractmethod
    def save(self, transaction: Transaction) -> Transaction:
        """Insert or update a single transaction"""
        pass

    @abstractmethod
    def save_many(self, transactions: List[Transaction]) -> List[Transaction]:
        """
        Save multiple transactions in a single operation.

        Either every transaction is saved or none is.

        Args:
            transactions: List of transactions to save.

        Returns:
            List of saved transactions
        """
        pass

    @abstractmethod
    def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    def find_by_account_id(self, account_id: str) -> List[Transaction]:
        """Return the full history of an account, used for deduplication"""
        pass

    @abstractmethod
    def find_uncategorized(self, account_id: Optional[str] = None) -> List[Transaction]:
        """
        Return transactions without a category assignment.

        Args:
            account_id: Only return transactions of this account
        """
        pass

    @abstractmethod
    def find_in_date_range(
        self,
        start_date: date,
        end_date: date,
        exclude_account_ids: Iterable[str] = (),
        include_internal: bool = False,
    ) -> List[Transaction]:
        """
        Return transactions dated within [start_date, end_date].

        Args:
            start_date: First day included
            end_date: Last day included
            exclude_account_ids: Accounts to leave out
            include_internal: Whether transactions already flagged internal are returned
        """
        pass

    @abstractmethod
    def get_assignment(self, transaction_id: str) -> Optional[TransactionCategoryAssignment]:
        pass

    @abstractmethod
    def save_assignment(self, assignment: TransactionCategoryAssignment) -> None:
        """
        Insert or replace the category assignment of a transaction.

        The overwrite policy is enforced by the caller.

        Raises:
            TransactionNotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    def mark_internal(self, transaction_ids: Iterable[str]) -> int:
        """
        Flag transactions as internal transfers.

        Returns:
            Number of transactions updated
        """
        pass


class AccountRepository(ABC):

    @abstractmethod
    def find_by_id(self, account_id: str) -> Optional[Account]:
        pass

    @abstractmethod
    def find_all(self) -> List[Account]:
        pass

    @abstractmethod
    def save(self, account: Account) -> Account:
        pass


class DataSourceRepository(ABC):

    @abstractmethod
    def find_by_id(self, source_id: str) -> Optional[DataSource]:
        pass

    @abstractmethod
    def find_all(self) -> List[DataSource]:
        pass

    @abstractmethod
    def save(self, source: DataSource) -> DataSource:
        """Insert or update a data source (including its last sync time)"""
        pass


class InvestmentRepository(ABC):
    """Persistence for investment sources, their positions and their ledger"""

    @abstractmethod
    def find_source_by_id(self, source_id: str) -> Optional[InvestmentSource]:
        pass

    @abstractmethod
    def find_sources_by_type(self, source_type: InvestmentSourceType) -> List[InvestmentSource]:
        pass

    @abstractmethod
    def save_source(self, source: InvestmentSource) -> InvestmentSource:
        pass

    @abstractmethod
    def find_positions_by_source_id(self, source_id: str) -> List[InvestmentPosition]:
        pass

    @abstractmethod
    def delete_positions_by_source_id(self, source_id: str) -> int:
        """
        Delete every position of a source.

        Returns:
            Number of deleted positions
        """
        pass

    @abstractmethod
    def save_position(self, position: InvestmentPosition) -> InvestmentPosition:
        pass

    @abstractmethod
    def find_transactions_by_source_id(self, source_id: str) -> List[InvestmentTransaction]:
        """Return the full ledger of a source, oldest first"""
        pass

    @abstractmethod
    def save_transaction(self, transaction: InvestmentTransaction) -> InvestmentTransaction:
        pass


class CategoryRuleRepository(ABC):

    @abstractmethod
    def get_active_rules(self) -> List[CategoryRule]:
        """Return active rules, highest priority first"""
        pass

    @abstractmethod
    def find_all(self) -> List[CategoryRule]:
        pass

    @abstractmethod
    def save(self, rule: CategoryRule) -> CategoryRule:
        pass
