import sqlite3
from typing import List, Optional

from wealth_tracker.database.connection import DatabaseManager
from wealth_tracker.domain.models import DataSource
from wealth_tracker.repositories.base import DataSourceRepository


class SQLiteDataSourceRepository(DataSourceRepository):
    """SQLite implementation of the DataSourceRepository."""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def find_by_id(self, source_id: str) -> Optional[DataSource]:
        conn = self.db.get_connection()
        row = conn.execute("SELECT * FROM data_sources WHERE id = ?", (source_id,)).fetchone()
        return self._row_to_source(row) if row else None

    def find_all(self) -> List[DataSource]:
        conn = self.db.get_connection()
        rows = conn.execute("SELECT * FROM data_sources ORDER BY name").fetchall()
        return [self._row_to_source(row) for row in rows]

    def save(self, source: DataSource) -> DataSource:
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO data_sources (id, name, parser_key, linked_account_id, last_sync_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    parser_key = excluded.parser_key,
                    linked_account_id = excluded.linked_account_id,
                    last_sync_at = excluded.last_sync_at
                """,
                (
                    source.id,
                    source.name,
                    source.parser_key,
                    source.linked_account_id,
                    source.last_sync_at,
                ),
            )
        return source

    def _row_to_source(self, row: sqlite3.Row) -> DataSource:
        return DataSource(
            id=row["id"],
            name=row["name"],
            parser_key=row["parser_key"],
            linked_account_id=row["linked_account_id"],
            last_sync_at=row["last_sync_at"],
        )
