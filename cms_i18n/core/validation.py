"""
Translation completeness diagnostics.

This module verifies translated content blobs against the shape of their
source records, independently of any translation run. It only reads:
running it twice on unchanged data gives identical findings.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

from cms_i18n.core import database as db
from cms_i18n.core.modules import ModuleConfig, ModuleIdentifier, get_module_config
from cms_i18n.core.records import UPDATED_AT_KEY, ContentRecord, record_from_row
from cms_i18n.language_codes import require_target_language, translated_at_column
from cms_i18n.logger import get_logger

logger = get_logger(__name__)

NO_TRANSLATION_ISSUE = "No translation available"


@dataclass(frozen=True)
class DiagnosticFinding:
    """Discrepancies between one record's source and its translation."""
    record_id: str
    title: str
    has_translation: bool
    missing_fields: Tuple[str, ...] = ()
    empty_or_mismatched_arrays: Tuple[str, ...] = ()
    issues: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "title": self.title,
            "has_translation": self.has_translation,
            "missing_fields": list(self.missing_fields),
            "empty_or_mismatched_arrays": list(self.empty_or_mismatched_arrays),
            "issues": list(self.issues),
        }


@dataclass(frozen=True)
class DiagnosticsSummary:
    total: int
    fully_translated: int
    partially_translated: int
    not_translated: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "fully_translated": self.fully_translated,
            "partially_translated": self.partially_translated,
            "not_translated": self.not_translated,
        }


@dataclass(frozen=True)
class DiagnosticsReport:
    module: str
    language: str
    findings: List[DiagnosticFinding] = field(default_factory=list)
    summary: DiagnosticsSummary = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "language": self.language,
            "findings": [finding.to_dict() for finding in self.findings],
            "summary": self.summary.to_dict() if self.summary else None,
        }


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def analyze(record: ContentRecord, config: ModuleConfig, language: str) -> DiagnosticFinding:
    """
    Compare a record's translated blob for one language with its source.

    Args:
        record: The content record
        config: The module the record belongs to
        language: Target language code

    Returns:
        DiagnosticFinding; ``issues`` is empty when the translation is complete
    """
    title = record.label(config)

    if language in record.content_errors:
        return DiagnosticFinding(
            record_id=record.id,
            title=title,
            has_translation=False,
            issues=(f"Malformed translation: {record.content_errors[language]}",),
        )

    translated = record.translated_content.get(language)
    if not translated:
        return DiagnosticFinding(
            record_id=record.id,
            title=title,
            has_translation=False,
            issues=(NO_TRANSLATION_ISSUE,),
        )

    missing: List[str] = []
    arrays: List[str] = []
    issues: List[str] = [
        f"Unreadable {column}: {record.content_errors[column]}"
        for column in (UPDATED_AT_KEY, translated_at_column(language))
        if column in record.content_errors
    ]

    for name in config.text_fields:
        if _is_blank(record.source.get(name)):
            continue
        if _is_blank(translated.get(name)):
            missing.append(name)
            issues.append(f"Missing: {name}")

    for name in config.array_field_names:
        source_items = record.source.get(name)
        if not isinstance(source_items, list) or not source_items:
            continue

        if name not in translated or translated[name] is None:
            missing.append(name)
            issues.append(f"Missing array: {name} ({len(source_items)} items in source)")
        elif not isinstance(translated[name], list):
            missing.append(name)
            issues.append(f"Invalid: {name} is not an array")
        elif not translated[name]:
            arrays.append(name)
            issues.append(f"Empty array: {name} ({len(source_items)} items in source)")
        elif len(translated[name]) != len(source_items):
            arrays.append(name)
            issues.append(
                f"Length mismatch: {name} "
                f"(source: {len(source_items)}, translated: {len(translated[name])})"
            )

    return DiagnosticFinding(
        record_id=record.id,
        title=title,
        has_translation=True,
        missing_fields=tuple(missing),
        empty_or_mismatched_arrays=tuple(arrays),
        issues=tuple(issues),
    )


def summarize(findings: List[DiagnosticFinding]) -> DiagnosticsSummary:
    """Classify findings into fully, partially and not translated."""
    fully = partially = not_translated = 0
    for finding in findings:
        if not finding.issues:
            fully += 1
        elif not finding.has_translation:
            not_translated += 1
        else:
            partially += 1
    return DiagnosticsSummary(
        total=len(findings),
        fully_translated=fully,
        partially_translated=partially,
        not_translated=not_translated,
    )


def run_diagnostics(module_id: Union[str, ModuleIdentifier], language: str) -> DiagnosticsReport:
    """
    Analyze every active record of a module for one language.

    Raises:
        UnknownModuleError: If the module is not registered.
        UnsupportedLanguageError: If the language is not a target locale.
        StorageError: If the records cannot be read.
    """
    config = get_module_config(module_id)
    language = require_target_language(language)

    rows = db.list_active_records(config)
    findings = [analyze(record_from_row(config, row), config, language) for row in rows]
    summary = summarize(findings)

    logger.info(
        f"Diagnostics for {config.identifier.value}/{language}: "
        f"{summary.fully_translated} complete, {summary.partially_translated} partial, "
        f"{summary.not_translated} untranslated of {summary.total}"
    )
    return DiagnosticsReport(
        module=config.identifier.value,
        language=language,
        findings=findings,
        summary=summary,
    )
