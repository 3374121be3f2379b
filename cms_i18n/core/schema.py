"""
Database Schema Management Module

This module handles database initialization and schema validation.
For CRUD operations, see core/database.py
"""

import sqlite3
from typing import List

# Import database module to use DB_FILE and get_connection dynamically
# This ensures monkeypatching in tests works correctly
import cms_i18n.core.database as db
from cms_i18n.core.modules import ModuleConfig, list_module_configs
from cms_i18n.language_codes import SUPPORTED_TARGET_LANGUAGES, content_column, translated_at_column

DB_VERSION = 1  # Increment when schema changes

# ISO-8601 UTC with millisecond precision, parseable by datetime.fromisoformat
SQL_NOW = "strftime('%Y-%m-%dT%H:%M:%f', 'now') || '+00:00'"


def get_connection():
    """Get a database connection using the database module's DB_FILE."""
    return db.get_connection()


def get_db_version() -> int:
    """Get current database version."""
    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT version FROM db_version LIMIT 1")
            row = cursor.fetchone()
            return row[0] if row else 0
    except sqlite3.OperationalError:
        return 0


def set_db_version(version: int):
    """Set database version."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("CREATE TABLE IF NOT EXISTS db_version (version INTEGER)")
        cursor.execute("DELETE FROM db_version")
        cursor.execute("INSERT INTO db_version (version) VALUES (?)", (version,))
        conn.commit()


def _active_column_definition(config: ModuleConfig) -> List[str]:
    if not config.active_filter:
        return []
    column_type = "INTEGER" if isinstance(config.active_filter.value, bool) else "TEXT"
    return [f"{config.active_filter.field} {column_type}"]


def _language_column_definitions() -> List[str]:
    columns = []
    for language in SUPPORTED_TARGET_LANGUAGES:
        columns.append(f"{content_column(language)} TEXT")
        columns.append(f"{translated_at_column(language)} TEXT")
    return columns


def create_module_table(cursor: sqlite3.Cursor, config: ModuleConfig):
    """Create the content table and its updated_at trigger for one module."""
    table = config.storage_location
    columns = [
        "id TEXT PRIMARY KEY",
        *_active_column_definition(config),
        "source TEXT NOT NULL DEFAULT '{}'",
        f"created_at TEXT NOT NULL DEFAULT ({SQL_NOW})",
        f"updated_at TEXT DEFAULT ({SQL_NOW})",
        "translation_status TEXT NOT NULL DEFAULT 'not_translated'",
        *_language_column_definitions(),
    ]
    cursor.execute(f"CREATE TABLE IF NOT EXISTS {table} ({', '.join(columns)})")

    # Any write that leaves updated_at untouched gets a fresh stamp, including
    # translation patches. The staleness tolerance absorbs that bump.
    cursor.execute(f"""
        CREATE TRIGGER IF NOT EXISTS {table}_touch_updated_at
        AFTER UPDATE ON {table}
        FOR EACH ROW
        WHEN NEW.updated_at IS OLD.updated_at
        BEGIN
            UPDATE {table} SET updated_at = ({SQL_NOW}) WHERE id = NEW.id;
        END
    """)


def initialize_database():
    """Initializes the database and creates the tables."""
    from cms_i18n.logger import get_logger
    logger = get_logger(__name__)

    current_version = get_db_version()
    if current_version > DB_VERSION:
        logger.warning(
            f"Database version {current_version} is newer than supported version {DB_VERSION}"
        )

    with get_connection() as conn:
        cursor = conn.cursor()

        cursor.execute("""
        CREATE TABLE IF NOT EXISTS app_config (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """)

        cursor.execute("""
        CREATE TABLE IF NOT EXISTS translation_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            table_name TEXT NOT NULL,
            record_id TEXT NOT NULL,
            language_code TEXT NOT NULL,
            status TEXT NOT NULL,
            tokens_used INTEGER,
            error_message TEXT,
            created_at TEXT NOT NULL
        )
        """)

        for config in list_module_configs():
            create_module_table(cursor, config)

        ensure_database_indexes(cursor)
        conn.commit()

    if current_version < DB_VERSION:
        set_db_version(DB_VERSION)
        logger.info(f"Database schema set to version {DB_VERSION}")


def ensure_database_indexes(cursor: sqlite3.Cursor):
    """Create the indexes used by active-record listing and log lookups."""
    for config in list_module_configs():
        if config.active_filter:
            cursor.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{config.storage_location}_active "
                f"ON {config.storage_location} ({config.active_filter.field})"
            )
    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_translation_logs_record "
        "ON translation_logs (table_name, record_id)"
    )
