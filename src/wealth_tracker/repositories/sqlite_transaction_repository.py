import sqlite3
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from wealth_tracker.database.connection import DatabaseManager
from wealth_tracker.domain.enums import CategorySource, TransactionType
from wealth_tracker.domain.models import Transaction, TransactionCategoryAssignment
from wealth_tracker.repositories.base import (
    RepositoryError,
    TransactionNotFoundError,
    TransactionRepository,
)

SELECT_TRANSACTIONS = """
    SELECT t.*,
           c.category_id AS category_id,
           c.source AS category_source,
           c.confidence AS category_confidence,
           c.assigned_at AS "category_assigned_at [TIMESTAMP]"
    FROM transactions t
    LEFT JOIN transaction_categories c ON c.transaction_id = t.id
"""

UPSERT_TRANSACTION = """
    INSERT INTO transactions (
        id, account_id, date, description, amount, type,
        currency, bank_category, is_internal, imported_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        description = excluded.description,
        amount = excluded.amount,
        type = excluded.type,
        bank_category = excluded.bank_category,
        is_internal = excluded.is_internal
"""


class SQLiteTransactionRepository(TransactionRepository):
    """
    SQLite implementation of the TransactionRepository.

    Handles all database operations for transactions and their category
    assignments using raw SQL.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def save(self, transaction: Transaction) -> Transaction:
        """Save a single transaction."""
        try:
            with self.db.transaction() as conn:
                conn.execute(UPSERT_TRANSACTION, self._to_params(transaction))
        except sqlite3.Error as e:
            raise RepositoryError(f"Failed to save transaction {transaction.id}: {e}") from e

        return transaction

    def save_many(self, transactions: List[Transaction]) -> List[Transaction]:
        """Save multiple transactions in one database transaction"""
        try:
            with self.db.transaction() as conn:
                conn.executemany(
                    UPSERT_TRANSACTION,
                    [self._to_params(txn) for txn in transactions],
                )
        except sqlite3.Error as e:
            raise RepositoryError(f"Failed to save {len(transactions)} transactions: {e}") from e

        return transactions

    def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """Retrieve a transaction by ID, or None if it doesn't exist"""
        conn = self.db.get_connection()
        row = conn.execute(
            SELECT_TRANSACTIONS + " WHERE t.id = ?",
            (transaction_id,),
        ).fetchone()

        if row is None:
            return None

        return self._row_to_transaction(row)

    def find_by_account_id(self, account_id: str) -> List[Transaction]:
        conn = self.db.get_connection()
        rows = conn.execute(
            SELECT_TRANSACTIONS + " WHERE t.account_id = ? ORDER BY t.date",
            (account_id,),
        ).fetchall()

        return [self._row_to_transaction(row) for row in rows]

    def find_uncategorized(self, account_id: Optional[str] = None) -> List[Transaction]:
        query = SELECT_TRANSACTIONS + " WHERE c.transaction_id IS NULL"
        params = []

        if account_id:
            query += " AND t.account_id = ?"
            params.append(account_id)

        query += " ORDER BY t.date"

        conn = self.db.get_connection()
        rows = conn.execute(query, params).fetchall()

        return [self._row_to_transaction(row) for row in rows]

    def find_in_date_range(
        self,
        start_date: date,
        end_date: date,
        exclude_account_ids: Iterable[str] = (),
        include_internal: bool = False,
    ) -> List[Transaction]:
        query = SELECT_TRANSACTIONS + " WHERE t.date >= ? AND t.date <= ?"
        params: list = [start_date, end_date]

        excluded = list(exclude_account_ids)
        if excluded:
            placeholders = ", ".join("?" for _ in excluded)
            query += f" AND t.account_id NOT IN ({placeholders})"
            params.extend(excluded)

        if not include_internal:
            query += " AND t.is_internal = 0"

        query += " ORDER BY t.date"

        conn = self.db.get_connection()
        rows = conn.execute(query, params).fetchall()

        return [self._row_to_transaction(row) for row in rows]

    def get_assignment(self, transaction_id: str) -> Optional[TransactionCategoryAssignment]:
        conn = self.db.get_connection()
        row = conn.execute(
            "SELECT * FROM transaction_categories WHERE transaction_id = ?",
            (transaction_id,),
        ).fetchone()

        if row is None:
            return None

        return TransactionCategoryAssignment(
            transaction_id=row["transaction_id"],
            category_id=row["category_id"],
            source=CategorySource(row["source"]),
            confidence=row["confidence"],
            assigned_at=row["assigned_at"],
        )

    def save_assignment(self, assignment: TransactionCategoryAssignment) -> None:
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO transaction_categories (
                        transaction_id, category_id, source, confidence, assigned_at
                    ) VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(transaction_id) DO UPDATE SET
                        category_id = excluded.category_id,
                        source = excluded.source,
                        confidence = excluded.confidence,
                        assigned_at = excluded.assigned_at
                    """,
                    (
                        assignment.transaction_id,
                        assignment.category_id,
                        assignment.source.value,
                        assignment.confidence,
                        assignment.assigned_at,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise TransactionNotFoundError(
                f"Transaction with ID {assignment.transaction_id} not found"
            ) from e

    def mark_internal(self, transaction_ids: Iterable[str]) -> int:
        ids = list(transaction_ids)
        if not ids:
            return 0

        placeholders = ", ".join("?" for _ in ids)
        with self.db.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE transactions SET is_internal = 1 WHERE id IN ({placeholders})",
                ids,
            )
            return cursor.rowcount

    @staticmethod
    def _to_params(transaction: Transaction) -> tuple:
        return (
            transaction.id,
            transaction.account_id,
            transaction.date,
            transaction.description,
            str(transaction.amount), # Store as string for precision
            transaction.type.value,
            transaction.currency,
            transaction.bank_category,
            int(transaction.is_internal),
            transaction.imported_at,
        )

    def _row_to_transaction(self, row: sqlite3.Row) -> Transaction:
        """Convert database row to Transaction object."""
        category = None
        if row["category_id"] is not None:
            category = TransactionCategoryAssignment(
                transaction_id=row["id"],
                category_id=row["category_id"],
                source=CategorySource(row["category_source"]),
                confidence=row["category_confidence"],
                assigned_at=row["category_assigned_at"],
            )

        return Transaction(
            id=row["id"],
            account_id=row["account_id"],
            date=row["date"],
            description=row["description"],
            amount=Decimal(row["amount"]),
            type=TransactionType(row["type"]),
            currency=row["currency"],
            bank_category=row["bank_category"],
            is_internal=bool(row["is_internal"]),
            imported_at=row["imported_at"],
            category=category,
        )
