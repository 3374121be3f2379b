"""
Database CRUD Operations Module

This module is the storage collaborator for the translation core:
- Content records per module (list active, read, create, update)
- Translation patches (content blob + last-translated timestamp)
- Translation logs
- App Config

For schema management, see core/schema.py
"""

import json
import os
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List, Dict, Any

from cms_i18n.core.modules import ModuleConfig
from cms_i18n.language_codes import content_column, translated_at_column

DB_FILE = Path(os.environ.get("CMS_I18N_DB_FILE", Path(__file__).parent.parent.parent / "content.db"))


class StorageError(Exception):
    """Raised when the content store cannot be read or written."""


def get_connection():
    """Get a database connection."""
    return sqlite3.connect(DB_FILE)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialise a timestamp as ISO-8601 UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _encode_active_value(value: Any) -> Any:
    return int(value) if isinstance(value, bool) else value


# ============================================================
# Content Record Operations
# ============================================================

def list_active_records(config: ModuleConfig) -> List[Dict[str, Any]]:
    """
    List the live records of a module in insertion order.

    Raises:
        StorageError: If the table cannot be read.
    """
    query = f"SELECT * FROM {config.storage_location}"
    params: tuple = ()
    if config.active_filter:
        query += f" WHERE {config.active_filter.field} = ?"
        params = (_encode_active_value(config.active_filter.value),)
    query += " ORDER BY rowid"

    try:
        with get_connection() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]
    except sqlite3.Error as e:
        raise StorageError(f"Failed to list records from {config.storage_location}: {e}") from e


def get_record(config: ModuleConfig, record_id: str) -> Optional[Dict[str, Any]]:
    """Get one record row by ID."""
    try:
        with get_connection() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT * FROM {config.storage_location} WHERE id = ?", (record_id,)
            )
            row = cursor.fetchone()
            return dict(row) if row else None
    except sqlite3.Error as e:
        raise StorageError(f"Failed to read {config.storage_location}/{record_id}: {e}") from e


def get_translation_fields(config: ModuleConfig, record_id: str, language: str) -> Dict[str, Any]:
    """
    Read the translation-related fields of one record.

    Returns:
        Dict with 'content' (raw JSON text or None) and 'last_translated_at'

    Raises:
        StorageError: If the record is missing or cannot be read.
    """
    content_col = content_column(language)
    translated_col = translated_at_column(language)
    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {content_col}, {translated_col} FROM {config.storage_location} WHERE id = ?",
                (record_id,),
            )
            row = cursor.fetchone()
    except sqlite3.Error as e:
        raise StorageError(f"Failed to read translation of {config.storage_location}/{record_id}: {e}") from e

    if row is None:
        raise StorageError(f"Record {record_id} not found in {config.storage_location}")
    return {"content": row[0], "last_translated_at": row[1]}


def create_record(config: ModuleConfig, source: Dict[str, Any], active: Any = None,
                  record_id: Optional[str] = None, updated_at: Optional[datetime] = None) -> str:
    """
    Create a source-language record.

    Args:
        config: Module the record belongs to
        source: Source field values
        active: Value for the module's active-filter column (defaults to the live value)
        record_id: Optional explicit ID (a uuid4 hex is generated otherwise)
        updated_at: Optional explicit modification timestamp

    Returns:
        The record ID
    """
    record_id = record_id or uuid.uuid4().hex
    columns = ["id", "source", "updated_at"]
    values: List[Any] = [
        record_id,
        json.dumps(source, ensure_ascii=False),
        format_timestamp(updated_at or utc_now()),
    ]
    if config.active_filter:
        columns.append(config.active_filter.field)
        values.append(_encode_active_value(config.active_filter.value if active is None else active))

    placeholders = ", ".join("?" for _ in columns)
    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"INSERT INTO {config.storage_location} ({', '.join(columns)}) VALUES ({placeholders})",
                values,
            )
            conn.commit()
    except sqlite3.Error as e:
        raise StorageError(f"Failed to create record in {config.storage_location}: {e}") from e
    return record_id


def update_record(config: ModuleConfig, record_id: str, source: Dict[str, Any] = None,
                  active: Any = None, updated_at: Optional[datetime] = None) -> bool:
    """
    Edit a record's source fields and/or active flag.

    Source fields are merged into the stored values. Without an explicit
    updated_at the storage trigger stamps the modification time.

    Returns:
        True if a record was updated
    """
    current = get_record(config, record_id)
    if current is None:
        return False

    assignments: List[str] = []
    values: List[Any] = []
    if source is not None:
        merged = json.loads(current.get("source") or "{}")
        merged.update(source)
        assignments.append("source = ?")
        values.append(json.dumps(merged, ensure_ascii=False))
    if active is not None and config.active_filter:
        assignments.append(f"{config.active_filter.field} = ?")
        values.append(_encode_active_value(active))
    if updated_at is not None:
        assignments.append("updated_at = ?")
        values.append(format_timestamp(updated_at))
    if not assignments:
        return False

    values.append(record_id)
    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"UPDATE {config.storage_location} SET {', '.join(assignments)} WHERE id = ?",
                values,
            )
            conn.commit()
            return cursor.rowcount > 0
    except sqlite3.Error as e:
        raise StorageError(f"Failed to update {config.storage_location}/{record_id}: {e}") from e


def patch_translation(config: ModuleConfig, record_id: str, language: str,
                      content: Dict[str, Any], translated_at: Optional[datetime] = None) -> datetime:
    """
    Atomically write the translated blob and last-translated timestamp.

    Both columns change in one statement, so last_translated_at never
    describes a blob that was not written.

    Returns:
        The timestamp stored in last_translated_at_<language>

    Raises:
        StorageError: If the write fails or the record does not exist.
    """
    translated_at = translated_at or utc_now()
    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                UPDATE {config.storage_location}
                SET {content_column(language)} = ?,
                    {translated_at_column(language)} = ?,
                    translation_status = 'translated'
                WHERE id = ?
                """,
                (json.dumps(content, ensure_ascii=False), format_timestamp(translated_at), record_id),
            )
            if cursor.rowcount == 0:
                raise StorageError(f"Record {record_id} not found in {config.storage_location}")
            conn.commit()
    except sqlite3.Error as e:
        raise StorageError(f"Failed to save translation for {config.storage_location}/{record_id}: {e}") from e
    return translated_at


def get_latest_translated_at(config: ModuleConfig, language: str) -> Optional[str]:
    """Newest last_translated_at_<language> across the module's records."""
    column = translated_at_column(language)
    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {column} FROM {config.storage_location} "
                f"WHERE {column} IS NOT NULL ORDER BY {column} DESC LIMIT 1"
            )
            row = cursor.fetchone()
            return row[0] if row else None
    except sqlite3.Error as e:
        raise StorageError(f"Failed to read translation timestamps of {config.storage_location}: {e}") from e


# ============================================================
# Translation Log Operations
# ============================================================

def log_translation(table_name: str, record_id: str, language_code: str, status: str,
                    tokens_used: Optional[int] = None, error_message: Optional[str] = None) -> int:
    """Insert a translation log entry (status: started, completed or failed)."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO translation_logs
                (table_name, record_id, language_code, status, tokens_used, error_message, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (table_name, record_id, language_code, status, tokens_used, error_message,
              format_timestamp(utc_now())))
        conn.commit()
        return cursor.lastrowid


def get_translation_logs(table_name: str, record_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Get log entries for a table, optionally for one record, oldest first."""
    query = "SELECT * FROM translation_logs WHERE table_name = ?"
    params: List[Any] = [table_name]
    if record_id is not None:
        query += " AND record_id = ?"
        params.append(record_id)
    query += " ORDER BY id"
    with get_connection() as conn:
        conn.row_factory = sqlite3.Row
        cursor = conn.cursor()
        cursor.execute(query, params)
        return [dict(row) for row in cursor.fetchall()]


# ============================================================
# App Config Operations
# ============================================================

def get_app_config(key: str) -> Optional[str]:
    """Get app config value by key."""
    if not DB_FILE.exists():
        return None
    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM app_config WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row[0] if row else None
    except sqlite3.Error as e:
        raise StorageError(f"Failed to read app config '{key}': {e}") from e


def set_app_config(key: str, value: str):
    """Set app config value."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT OR REPLACE INTO app_config (key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
        """, (key, value))
        conn.commit()


def get_all_app_config() -> Dict[str, str]:
    """Get all app config as dictionary."""
    with get_connection() as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT key, value FROM app_config")
        return {row[0]: row[1] for row in cursor.fetchall()}
