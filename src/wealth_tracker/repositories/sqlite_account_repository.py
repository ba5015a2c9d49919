import sqlite3
from typing import List, Optional

from wealth_tracker.database.connection import DatabaseManager
from wealth_tracker.domain.enums import AccountType
from wealth_tracker.domain.models import Account
from wealth_tracker.repositories.base import AccountRepository


class SQLiteAccountRepository(AccountRepository):
    """SQLite implementation of the AccountRepository."""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def find_by_id(self, account_id: str) -> Optional[Account]:
        conn = self.db.get_connection()
        row = conn.execute("SELECT * FROM accounts WHERE id = ?", (account_id,)).fetchone()
        return self._row_to_account(row) if row else None

    def find_all(self) -> List[Account]:
        conn = self.db.get_connection()
        rows = conn.execute("SELECT * FROM accounts ORDER BY name").fetchall()
        return [self._row_to_account(row) for row in rows]

    def save(self, account: Account) -> Account:
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO accounts (id, name, type, currency) VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    type = excluded.type,
                    currency = excluded.currency
                """,
                (account.id, account.name, account.type.value, account.currency),
            )
        return account

    def _row_to_account(self, row: sqlite3.Row) -> Account:
        return Account(
            id=row["id"],
            name=row["name"],
            type=AccountType(row["type"]),
            currency=row["currency"],
        )
