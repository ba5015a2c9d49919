import sqlite3
from decimal import Decimal
from typing import List, Optional

from wealth_tracker.database.connection import DatabaseManager
from wealth_tracker.domain.enums import InvestmentSourceType, InvestmentTransactionType
from wealth_tracker.domain.investment import (
    InvestmentPosition,
    InvestmentSource,
    InvestmentTransaction,
)
from wealth_tracker.repositories.base import InvestmentRepository


class SQLiteInvestmentRepository(InvestmentRepository):
    """
    SQLite implementation of the InvestmentRepository.

    Quantities and amounts are stored as strings for precision.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def find_source_by_id(self, source_id: str) -> Optional[InvestmentSource]:
        conn = self.db.get_connection()
        row = conn.execute(
            "SELECT * FROM investment_sources WHERE id = ?", (source_id,)
        ).fetchone()
        return self._row_to_source(row) if row else None

    def find_sources_by_type(self, source_type: InvestmentSourceType) -> List[InvestmentSource]:
        conn = self.db.get_connection()
        rows = conn.execute(
            "SELECT * FROM investment_sources WHERE type = ? ORDER BY name",
            (source_type.value,),
        ).fetchall()
        return [self._row_to_source(row) for row in rows]

    def save_source(self, source: InvestmentSource) -> InvestmentSource:
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO investment_sources (id, name, parser_key, type, last_sync_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    parser_key = excluded.parser_key,
                    type = excluded.type,
                    last_sync_at = excluded.last_sync_at
                """,
                (source.id, source.name, source.parser_key, source.type.value, source.last_sync_at),
            )
        return source

    def find_positions_by_source_id(self, source_id: str) -> List[InvestmentPosition]:
        conn = self.db.get_connection()
        rows = conn.execute(
            "SELECT * FROM investment_positions WHERE source_id = ? ORDER BY symbol",
            (source_id,),
        ).fetchall()
        return [self._row_to_position(row) for row in rows]

    def delete_positions_by_source_id(self, source_id: str) -> int:
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM investment_positions WHERE source_id = ?", (source_id,)
            )
            return cursor.rowcount

    def save_position(self, position: InvestmentPosition) -> InvestmentPosition:
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO investment_positions (
                    id, source_id, symbol, isin, quantity, avg_buy_price,
                    current_price, current_value, gain_loss, gain_loss_percent,
                    currency, last_updated
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    position.id,
                    position.source_id,
                    position.symbol,
                    position.isin,
                    str(position.quantity),
                    str(position.avg_buy_price),
                    str(position.current_price),
                    str(position.current_value),
                    str(position.gain_loss),
                    str(position.gain_loss_percent),
                    position.currency,
                    position.last_updated,
                ),
            )
        return position

    def find_transactions_by_source_id(self, source_id: str) -> List[InvestmentTransaction]:
        conn = self.db.get_connection()
        rows = conn.execute(
            "SELECT * FROM investment_transactions WHERE source_id = ? ORDER BY date",
            (source_id,),
        ).fetchall()
        return [self._row_to_transaction(row) for row in rows]

    def save_transaction(self, transaction: InvestmentTransaction) -> InvestmentTransaction:
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO investment_transactions (
                    id, source_id, date, symbol, type, quantity,
                    price_per_unit, total_amount, fee
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    transaction.id,
                    transaction.source_id,
                    transaction.date,
                    transaction.symbol,
                    transaction.type.value,
                    str(transaction.quantity),
                    str(transaction.price_per_unit),
                    str(transaction.total_amount),
                    str(transaction.fee),
                ),
            )
        return transaction

    def _row_to_source(self, row: sqlite3.Row) -> InvestmentSource:
        return InvestmentSource(
            id=row["id"],
            name=row["name"],
            parser_key=row["parser_key"],
            type=InvestmentSourceType(row["type"]),
            last_sync_at=row["last_sync_at"],
        )

    def _row_to_position(self, row: sqlite3.Row) -> InvestmentPosition:
        return InvestmentPosition(
            id=row["id"],
            source_id=row["source_id"],
            symbol=row["symbol"],
            isin=row["isin"],
            quantity=Decimal(row["quantity"]),
            avg_buy_price=Decimal(row["avg_buy_price"]),
            current_price=Decimal(row["current_price"]),
            current_value=Decimal(row["current_value"]),
            gain_loss=Decimal(row["gain_loss"]),
            gain_loss_percent=Decimal(row["gain_loss_percent"]),
            currency=row["currency"],
            last_updated=row["last_updated"],
        )

    def _row_to_transaction(self, row: sqlite3.Row) -> InvestmentTransaction:
        return InvestmentTransaction(
            id=row["id"],
            source_id=row["source_id"],
            date=row["date"],
            symbol=row["symbol"],
            type=InvestmentTransactionType(row["type"]),
            quantity=Decimal(row["quantity"]),
            price_per_unit=Decimal(row["price_per_unit"]),
            total_amount=Decimal(row["total_amount"]),
            fee=Decimal(row["fee"]),
        )
