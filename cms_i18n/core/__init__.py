"""
Core module - Content model, storage and analysis

This module provides:
- modules: Registry of translatable content modules
- database: CRUD operations for content records, logs and config
- schema: Database initialization
- records: Content record model and translation merging
- staleness: Pending-translation detection
- validation: Translation completeness diagnostics
"""

from cms_i18n.core.database import (
    DB_FILE,
    StorageError,
    get_connection,
    # Content record operations
    list_active_records,
    get_record,
    get_translation_fields,
    create_record,
    update_record,
    patch_translation,
    get_latest_translated_at,
    # Translation log operations
    log_translation,
    get_translation_logs,
    # App config operations
    get_app_config,
    set_app_config,
    get_all_app_config,
)

from cms_i18n.core.schema import (
    DB_VERSION,
    get_db_version,
    set_db_version,
    initialize_database,
)
