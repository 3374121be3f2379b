"""
Module Orchestrator

Runs one translation pass over a module for one target language:
- Load the module's active records
- Pick the work set (pending records, or every record when forcing)
- Translate each record, merge the result into its content blob and persist
- Aggregate per-record failures without aborting the batch
"""

import sqlite3
import time
from typing import Any, Callable, Dict, List, Optional

from cms_i18n.ai.exceptions import TranslationError
from cms_i18n.config import get_translation_settings, DEFAULT_STALENESS_TOLERANCE_MS
from cms_i18n.core import database as db
from cms_i18n.core.modules import ModuleConfig
from cms_i18n.core.records import (
    ContentRecord,
    MalformedContentError,
    collect_fields,
    decode_blob,
    merge_translated_content,
    record_from_row,
    validate_translated_fields,
)
from cms_i18n.core.staleness import compute_pending_set
from cms_i18n.language_codes import SOURCE_LANGUAGE, require_target_language
from cms_i18n.logger import get_logger
from cms_i18n.translation.result import TranslationRunResult

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int, str], None]


def load_active_records(config: ModuleConfig) -> List[ContentRecord]:
    """
    Load and decode a module's active records in storage order.

    Raises:
        StorageError: If the records cannot be read or decoded.
    """
    rows = db.list_active_records(config)
    try:
        return [record_from_row(config, row) for row in rows]
    except (KeyError, ValueError) as e:
        raise db.StorageError(f"Invalid record in {config.storage_location}: {e}") from e


class ModuleOrchestrator:
    """
    Translates the pending records of a module, one record at a time.

    Records are processed sequentially in load order. A failed record is
    reported in the result and stays pending for the next run; nothing is
    retried within a run.
    """

    def __init__(self, client, tolerance_ms: Optional[int] = None,
                 request_delay: Optional[float] = None, source_language: Optional[str] = None):
        """
        Args:
            client: Translation client exposing translate(fields, source_language, target_language)
            tolerance_ms: Staleness tolerance (defaults to configuration)
            request_delay: Pause in seconds between records (defaults to configuration)
            source_language: Source language code (defaults to configuration)
        """
        settings: Dict[str, Any] = {}
        if tolerance_ms is None or request_delay is None or source_language is None:
            settings = get_translation_settings()

        self.client = client
        self.tolerance_ms = (
            tolerance_ms if tolerance_ms is not None
            else int(settings.get('staleness_tolerance_ms', DEFAULT_STALENESS_TOLERANCE_MS))
        )
        self.request_delay = (
            request_delay if request_delay is not None
            else float(settings.get('request_delay_seconds', 0))
        )
        self.source_language = source_language or settings.get('source_language', SOURCE_LANGUAGE)

    def run(self, config: ModuleConfig, language: str, force_all: bool = False,
            progress_callback: Optional[ProgressCallback] = None) -> TranslationRunResult:
        """
        Translate a module into one language.

        Args:
            config: Module to translate
            language: Target language code
            force_all: Translate every active record, not only pending ones
            progress_callback: Called as (current, total, label) after each record

        Returns:
            TranslationRunResult for the run

        Raises:
            StorageError: If the active records cannot be loaded.
            UnsupportedLanguageError: If the language is not a target locale.
        """
        language = require_target_language(language)
        module = config.identifier.value

        records = load_active_records(config)
        work_set = list(records) if force_all else compute_pending_set(records, language, self.tolerance_ms)
        total = len(work_set)

        logger.info(
            f"Starting {module} translation to {language}: {total} of {len(records)} records"
            f"{' (force all)' if force_all else ''}"
        )

        if not work_set:
            logger.info(f"{module}/{language} is already up to date")
            return TranslationRunResult(
                success=True,
                translated_items=0,
                failed_items=0,
                module=module,
                language=language,
                total_items=len(records),
                skipped_items=len(records),
            )

        translated_items = 0
        errors: List[str] = []
        total_tokens = 0
        start_time = time.time()

        for index, record in enumerate(work_set, start=1):
            label = record.label(config)
            try:
                total_tokens += self._translate_record(config, record, language)
                translated_items += 1
                logger.debug(f"  [{index}/{total}] Translated {label}")
            except (TranslationError, db.StorageError, MalformedContentError) as e:
                errors.append(f"{label}: {e}")
                logger.warning(f"  [{index}/{total}] Failed to translate {label}: {e}")
                self._log_state(config, record.id, language, 'failed', error_message=str(e))
            except Exception as e:
                errors.append(f"{label}: unexpected error: {e}")
                logger.exception(f"  [{index}/{total}] Unexpected error translating {label}")
                self._log_state(config, record.id, language, 'failed', error_message=str(e))

            if progress_callback:
                progress_callback(index, total, label)

            if self.request_delay > 0 and index < total:
                time.sleep(self.request_delay)

        completed_at = db.utc_now()
        failed_items = len(errors)

        logger.info(
            "Translation of %s/%s finished in %.1f seconds (success=%d, failed=%d, tokens=%d)",
            module, language, time.time() - start_time, translated_items, failed_items, total_tokens,
        )

        return TranslationRunResult(
            success=failed_items == 0,
            translated_items=translated_items,
            failed_items=failed_items,
            errors=tuple(errors),
            last_translated_at=completed_at if translated_items > 0 else None,
            module=module,
            language=language,
            total_items=len(records),
            skipped_items=len(records) - total,
            total_tokens=total_tokens,
        )

    def _translate_record(self, config: ModuleConfig, record: ContentRecord, language: str) -> int:
        """Translate and persist one record. Returns the tokens used."""
        fields = collect_fields(record, config)
        self._log_state(config, record.id, language, 'started')

        tokens = 0
        translated: Dict[str, Any] = {}
        if fields:
            translated = self.client.translate(fields, self.source_language, language)
            tokens = self._last_tokens()
        translated = validate_translated_fields(config, translated)

        stored = db.get_translation_fields(config, record.id, language)
        try:
            existing = decode_blob(stored.get('content'))
        except MalformedContentError as e:
            logger.warning(f"Replacing malformed {language} content of {config.storage_location}/{record.id}: {e}")
            existing = None

        merged = merge_translated_content(existing, translated, record, config)
        db.patch_translation(config, record.id, language, merged, translated_at=db.utc_now())

        self._log_state(config, record.id, language, 'completed', tokens_used=tokens)
        return tokens

    def _last_tokens(self) -> int:
        get_usage = getattr(self.client, 'get_last_token_usage', None)
        if not callable(get_usage):
            return 0
        usage = get_usage() or {}
        total = usage.get('total_tokens')
        if total is None:
            total = usage.get('prompt_tokens', 0) + usage.get('completion_tokens', 0)
        return int(total or 0)

    def _log_state(self, config: ModuleConfig, record_id: str, language: str, status: str,
                   tokens_used: Optional[int] = None, error_message: Optional[str] = None):
        try:
            db.log_translation(config.storage_location, record_id, language, status,
                               tokens_used=tokens_used, error_message=error_message)
        except sqlite3.Error as e:
            logger.warning(f"Failed to write translation log for {config.storage_location}/{record_id}: {e}")
