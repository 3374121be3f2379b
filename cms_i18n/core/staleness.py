"""
Pending-translation detection.

A record needs (re)translation for a language when it has never been
translated into it, or when its source was modified after the last
translation by more than a tolerance window. Storage may bump updated_at
a moment after a translation is saved; the tolerance absorbs that.
"""

from datetime import timedelta
from typing import Iterable, List

from cms_i18n.config import DEFAULT_STALENESS_TOLERANCE_MS
from cms_i18n.core.records import UPDATED_AT_KEY, ContentRecord


def is_pending(record: ContentRecord, language: str,
               tolerance_ms: int = DEFAULT_STALENESS_TOLERANCE_MS) -> bool:
    """
    Check whether a record needs translation into a language.

    Examples:
        never translated            -> True
        translated, no updated_at   -> False
        updated 2s after translate  -> False (within 5s tolerance)
        updated 8s after translate  -> True
        unreadable updated_at       -> True
    """
    last_translated = record.last_translated_at.get(language)
    if last_translated is None or UPDATED_AT_KEY in record.content_errors:
        return True
    if record.updated_at is None:
        return False
    return record.updated_at > last_translated + timedelta(milliseconds=tolerance_ms)


def compute_pending_set(records: Iterable[ContentRecord], language: str,
                        tolerance_ms: int = DEFAULT_STALENESS_TOLERANCE_MS) -> List[ContentRecord]:
    """Filter records down to those pending translation, keeping their order."""
    return [record for record in records if is_pending(record, language, tolerance_ms)]
