import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from utils.errors import PersistenceError
from .schema import SCHEMA_SQL, INDEXES_SQL, SCHEMA_VERSION

CONFIG_DIR = Path.home() / ".tadoku"
DB_PATH = CONFIG_DIR / "tadoku.db"

logger = logging.getLogger(__name__)

def init_db():
    """Initialize the database by creating tables and indexes if they don't exist."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    with get_conn() as conn:
        conn.executescript(SCHEMA_SQL)
        conn.executescript(INDEXES_SQL)
        ensure_document_analyzed_at(conn)
        ensure_document_title(conn)
        ensure_association_position(conn)
        ensure_document_legacy_id(conn)
        ensure_schema_version(conn)
        conn.commit()

def ensure_document_analyzed_at(conn: sqlite3.Connection) -> None:
    """Ensure documents table has analyzed_at and mark documents that already have associations."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA table_info(documents)")
    columns = {row[1] for row in cursor.fetchall()}
    if "analyzed_at" not in columns:
        cursor.execute("ALTER TABLE documents ADD COLUMN analyzed_at TEXT")
        cursor.execute(
            """
            UPDATE documents SET analyzed_at = datetime('now')
            WHERE id IN (SELECT document_id FROM document_words)
               OR id IN (SELECT document_id FROM document_grammar)
            """
        )

def ensure_document_title(conn: sqlite3.Connection) -> None:
    """Ensure documents table has a title column for existing installs."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA table_info(documents)")
    columns = {row[1] for row in cursor.fetchall()}
    if "title" not in columns:
        cursor.execute("ALTER TABLE documents ADD COLUMN title TEXT NOT NULL DEFAULT ''")

def ensure_document_legacy_id(conn: sqlite3.Connection) -> None:
    """Ensure documents remember the id they had in an imported legacy export."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA table_info(documents)")
    columns = {row[1] for row in cursor.fetchall()}
    if "legacy_id" not in columns:
        cursor.execute("ALTER TABLE documents ADD COLUMN legacy_id TEXT")
    cursor.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_documents_legacy ON documents (legacy_id)"
    )

def ensure_association_position(conn: sqlite3.Connection) -> None:
    """Ensure association tables keep the order the analysis returned items in."""
    cursor = conn.cursor()
    for table in ("document_words", "document_grammar"):
        cursor.execute(f"PRAGMA table_info({table})")
        columns = {row[1] for row in cursor.fetchall()}
        if "position" not in columns:
            cursor.execute(f"ALTER TABLE {table} ADD COLUMN position INTEGER NOT NULL DEFAULT 0")

def get_schema_version(conn: sqlite3.Connection) -> int:
    """Read the SQLite schema version from PRAGMA user_version."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA user_version")
    row = cursor.fetchone()
    return int(row[0]) if row else 0

def set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    """Set the SQLite schema version via PRAGMA user_version."""
    conn.execute(f"PRAGMA user_version = {int(version)}")

def ensure_schema_version(conn: sqlite3.Connection) -> None:
    """Ensure the current schema version is written to the database."""
    current = get_schema_version(conn)
    if current != SCHEMA_VERSION:
        logger.info("Upgrading schema version %s -> %s", current, SCHEMA_VERSION)
        set_schema_version(conn, SCHEMA_VERSION)

@contextmanager
def get_conn(db_path: Optional[Path] = None):
    """Context manager for SQLite connection, using row_factory for dict-like rows."""
    conn = sqlite3.connect(db_path or DB_PATH, detect_types=sqlite3.PARSE_DECLTYPES, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()

@contextmanager
def transaction(db_path: Optional[Path] = None):
    """Run the block inside a single IMMEDIATE transaction.

    Everything written through the yielded connection commits together or not
    at all. Any sqlite3 error, including one raised while opening or committing,
    is re-raised as PersistenceError after the rollback.
    """
    try:
        with get_conn(db_path) as conn:
            conn.isolation_level = None
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
    except sqlite3.Error as exc:
        logger.error("Transaction rolled back: %s", exc)
        raise PersistenceError(str(exc)) from exc

def get_db():
    """FastAPI dependency that yields a DB connection and closes it afterwards."""
    with get_conn() as conn:
        yield conn
