import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Generator, Optional, Tuple

logger = logging.getLogger(__name__)

Connection = sqlite3.Connection

SCHEMA_PATH = Path(__file__).parent / "schema.sql"
MEMORY = ":memory:"

# Dates are stored as ISO text; the implicit sqlite3 adapters are deprecated
sqlite3.register_adapter(date, lambda value: value.isoformat())
sqlite3.register_adapter(datetime, lambda value: value.isoformat(sep=" "))
sqlite3.register_converter("DATE", lambda raw: date.fromisoformat(raw.decode()))
sqlite3.register_converter("TIMESTAMP", lambda raw: datetime.fromisoformat(raw.decode()))


class DatabaseConfig:
    """
    Where the wealth database lives and how long a writer waits for a lock.

    Two imports running at the same time share the same file; the second
    writer waits up to `busy_timeout` seconds instead of failing at once.
    """

    def __init__(self, db_path: Path | str = "data/wealth.db", busy_timeout: float = 5.0):
        self.is_memory = str(db_path) == MEMORY
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        if not self.is_memory:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_settings(cls, settings) -> "DatabaseConfig":
        return cls(settings.database_path)

    @property
    def connection_string(self) -> str:
        """Return the database file path as a string"""
        if self.is_memory:
            return MEMORY
        return str(self.db_path.absolute())


def configure_connection(conn: Connection, config: DatabaseConfig) -> None:
    """
    Apply the settings every wealth tracker connection needs.

    Foreign keys are enforced so assignments and positions cannot outlive
    their transactions and sources. File databases use WAL so the CLI can
    read while an import writes.
    """
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute(f"PRAGMA busy_timeout = {int(config.busy_timeout * 1000)}")
    if not config.is_memory:
        conn.execute("PRAGMA journal_mode = WAL")

    conn.row_factory = sqlite3.Row


class DatabaseManager:
    """
    Owns the single SQLite connection shared by the repositories.

    Example:
        with DatabaseManager(DatabaseConfig("data/wealth.db")) as db:
            db.initialize_schema()
            with db.transaction() as conn:
                conn.execute("DELETE FROM investment_positions WHERE source_id = ?", (source_id,))
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._connection: Connection | None = None

    def get_connection(self) -> Connection:
        if self._connection is None:
            self._connection = self._create_connection()
        return self._connection

    def _create_connection(self) -> Connection:
        logger.debug("Opening database %s", self.config.connection_string)
        conn = sqlite3.connect(
            self.config.connection_string,
            detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
            timeout=self.config.busy_timeout,
            check_same_thread=False,
        )
        configure_connection(conn, self.config)
        return conn

    def close(self) -> None:
        if self._connection:
            self._connection.close()
            self._connection = None

    @contextmanager
    def transaction(self) -> Generator[Connection, None, None]:
        """
        Run a unit of work: commit when the block succeeds, roll back when it raises.

        Importing a statement saves every new row in one transaction, so a
        failure halfway leaves the account as it was.
        """
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def initialize_schema(self, schema_path: Path = SCHEMA_PATH) -> None:
        """Create all tables (idempotent)"""
        execute_schema(self.get_connection(), schema_path)

    def schema_version(self) -> Optional[Tuple[int, str]]:
        """
        Latest applied schema version.

        Returns:
            (version, description), or None when the schema was never applied
        """
        try:
            row = self.get_connection().execute(
                "SELECT version, description FROM schema_version ORDER BY version DESC LIMIT 1"
            ).fetchone()
        except sqlite3.OperationalError:
            return None
        return (row["version"], row["description"]) if row else None

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def execute_schema(conn: Connection, schema_path: Path) -> None:
    with open(schema_path, encoding="utf-8") as f:
        conn.executescript(f.read())
    conn.commit()
    logger.info("Applied schema %s", schema_path.name)
