import sqlite3
from typing import List

from wealth_tracker.database.connection import DatabaseManager
from wealth_tracker.domain.enums import MatchType
from wealth_tracker.domain.models import CategoryRule
from wealth_tracker.repositories.base import CategoryRuleRepository


class SQLiteCategoryRuleRepository(CategoryRuleRepository):
    """SQLite implementation of the CategoryRuleRepository."""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def get_active_rules(self) -> List[CategoryRule]:
        conn = self.db.get_connection()
        rows = conn.execute(
            """
            SELECT * FROM category_rules
            WHERE is_active = 1
            ORDER BY priority DESC, created_at
            """
        ).fetchall()
        return [self._row_to_rule(row) for row in rows]

    def find_all(self) -> List[CategoryRule]:
        conn = self.db.get_connection()
        rows = conn.execute(
            "SELECT * FROM category_rules ORDER BY priority DESC, created_at"
        ).fetchall()
        return [self._row_to_rule(row) for row in rows]

    def save(self, rule: CategoryRule) -> CategoryRule:
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO category_rules (
                    id, category_id, pattern, match_type, priority,
                    source, is_active, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    category_id = excluded.category_id,
                    pattern = excluded.pattern,
                    match_type = excluded.match_type,
                    priority = excluded.priority,
                    source = excluded.source,
                    is_active = excluded.is_active
                """,
                (
                    rule.id,
                    rule.category_id,
                    rule.pattern,
                    rule.match_type.value,
                    rule.priority,
                    rule.source,
                    int(rule.is_active),
                    rule.created_at,
                ),
            )
        return rule

    def _row_to_rule(self, row: sqlite3.Row) -> CategoryRule:
        return CategoryRule(
            id=row["id"],
            category_id=row["category_id"],
            pattern=row["pattern"],
            match_type=MatchType(row["match_type"]),
            priority=row["priority"],
            source=row["source"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
        )
