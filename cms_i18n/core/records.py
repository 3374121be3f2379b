"""
Content record model.

Rows coming out of the content tables are decoded once, at the storage
boundary, into immutable ContentRecord values. This module also builds the
payload sent to the translation client and merges translated values back
into the per-language content blob.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from cms_i18n.ai.exceptions import TranslationError
from cms_i18n.core.modules import ArrayField, ModuleConfig
from cms_i18n.language_codes import SUPPORTED_TARGET_LANGUAGES, content_column, translated_at_column

SOURCE_ERROR_KEY = "source"
UPDATED_AT_KEY = "updated_at"


class MalformedContentError(Exception):
    """Raised when a stored JSON blob cannot be decoded into an object."""


@dataclass(frozen=True)
class ContentRecord:
    id: str
    updated_at: Optional[datetime]
    last_translated_at: Dict[str, Optional[datetime]] = field(default_factory=dict)
    source: Dict[str, Any] = field(default_factory=dict)
    translated_content: Dict[str, Optional[Dict[str, Any]]] = field(default_factory=dict)
    # language, "source" or timestamp column -> decode error message
    content_errors: Dict[str, str] = field(default_factory=dict)
    active: bool = True

    def label(self, config: ModuleConfig) -> str:
        """Human-readable label: the title field value, or the id."""
        value = self.source.get(config.title_field)
        if isinstance(value, str) and value.strip():
            return value
        return self.id


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp into an aware UTC datetime.

    Accepts datetimes and ISO-8601 strings with or without offset (a trailing
    'Z' included). Naive values are taken as UTC. Empty values give None.

    Raises:
        ValueError: If a non-empty string is not a valid timestamp.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text.replace(" ", "T", 1))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def decode_blob(raw: Any) -> Optional[Dict[str, Any]]:
    """
    Decode a JSON object column. None/empty means no content.

    Raises:
        MalformedContentError: If the text is not a JSON object.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, dict):
        return raw
    try:
        decoded = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise MalformedContentError(f"invalid JSON ({e})") from e
    if not isinstance(decoded, dict):
        raise MalformedContentError(f"expected a JSON object, got {type(decoded).__name__}")
    return decoded


def _is_active(config: ModuleConfig, row: Dict[str, Any]) -> bool:
    if not config.active_filter:
        return True
    value = row.get(config.active_filter.field)
    expected = config.active_filter.value
    if isinstance(expected, bool):
        return bool(value) == expected
    return value == expected


def _parse_column(row: Dict[str, Any], column: str, errors: Dict[str, str]) -> Optional[datetime]:
    try:
        return parse_timestamp(row.get(column))
    except (TypeError, ValueError) as e:
        errors[column] = f"invalid timestamp: {e}"
        return None


def record_from_row(config: ModuleConfig, row: Dict[str, Any]) -> ContentRecord:
    """
    Build a ContentRecord from a raw table row.

    Undecodable blobs and timestamps never raise: the value is left empty and
    the problem is kept in content_errors under the language, "source" or
    the timestamp column name.
    """
    errors: Dict[str, str] = {}

    try:
        source = decode_blob(row.get("source")) or {}
    except MalformedContentError as e:
        source = {}
        errors[SOURCE_ERROR_KEY] = str(e)

    translated: Dict[str, Optional[Dict[str, Any]]] = {}
    translated_at: Dict[str, Optional[datetime]] = {}
    for language in SUPPORTED_TARGET_LANGUAGES:
        try:
            translated[language] = decode_blob(row.get(content_column(language)))
        except MalformedContentError as e:
            translated[language] = None
            errors[language] = str(e)
        translated_at[language] = _parse_column(row, translated_at_column(language), errors)

    updated_at = _parse_column(row, UPDATED_AT_KEY, errors)

    return ContentRecord(
        id=str(row["id"]),
        updated_at=updated_at,
        last_translated_at=translated_at,
        source=source,
        translated_content=translated,
        content_errors=errors,
        active=_is_active(config, row),
    )


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _reduce_array(array_field: ArrayField, items: List[Any]) -> List[Any]:
    if not array_field.sub_fields:
        return list(items)
    reduced = []
    for item in items:
        if isinstance(item, dict):
            reduced.append({key: item[key] for key in array_field.sub_fields if key in item})
        else:
            reduced.append(item)
    return reduced


def collect_fields(record: ContentRecord, config: ModuleConfig) -> Dict[str, Any]:
    """
    Build the field payload for the translation client.

    Non-empty text fields are sent as-is; non-empty arrays are reduced to the
    translatable sub-fields of each element.

    Raises:
        MalformedContentError: If the record's source could not be decoded.
    """
    if SOURCE_ERROR_KEY in record.content_errors:
        raise MalformedContentError(f"source content {record.content_errors[SOURCE_ERROR_KEY]}")

    fields: Dict[str, Any] = {}
    for name in config.text_fields:
        value = record.source.get(name)
        if _has_text(value):
            fields[name] = value

    for array_field in config.array_fields:
        items = record.source.get(array_field.name)
        if isinstance(items, list) and items:
            fields[array_field.name] = _reduce_array(array_field, items)

    return fields


def validate_translated_fields(config: ModuleConfig, values: Any) -> Dict[str, Any]:
    """
    Check the shape of the translation client's output.

    Missing keys are allowed and surface later in diagnostics.

    Raises:
        TranslationError: If the output is not an object or a configured
            field has the wrong type.
    """
    if not isinstance(values, dict):
        raise TranslationError(
            f"Translation result is not an object: {type(values).__name__}",
            code="invalid_response",
        )
    for name in config.text_fields:
        if name in values and values[name] is not None and not isinstance(values[name], str):
            raise TranslationError(
                f"Translated field '{name}' is not a string",
                code="invalid_response",
                details={"field": name},
            )
    for name in config.array_field_names:
        if name in values and not isinstance(values[name], list):
            raise TranslationError(
                f"Translated field '{name}' is not an array",
                code="invalid_response",
                details={"field": name},
            )
    return values


def _merge_array(array_field: ArrayField, source_items: Any, translated_items: List[Any]) -> List[Any]:
    if not array_field.sub_fields or not isinstance(source_items, list):
        return list(translated_items)
    merged = []
    for index, translated_item in enumerate(translated_items):
        source_item = source_items[index] if index < len(source_items) else None
        if isinstance(source_item, dict) and isinstance(translated_item, dict):
            merged.append({**source_item, **translated_item})
        else:
            merged.append(translated_item)
    return merged


def merge_translated_content(existing: Optional[Dict[str, Any]], translated: Dict[str, Any],
                             record: ContentRecord, config: ModuleConfig) -> Dict[str, Any]:
    """
    Merge translated values into a language's content blob.

    The module's configured fields are replaced: translated values are
    written, and fields that are empty in the source are dropped so a
    cleared source field does not keep its old translation. Every other key
    of the existing blob is kept. Array elements take their
    non-translatable keys from the matching source element.
    """
    merged = dict(existing or {})

    for name in config.text_fields:
        if name in translated:
            merged[name] = translated[name]
        elif not _has_text(record.source.get(name)):
            merged.pop(name, None)

    for array_field in config.array_fields:
        source_items = record.source.get(array_field.name)
        if array_field.name not in translated:
            if not isinstance(source_items, list) or not source_items:
                merged.pop(array_field.name, None)
        else:
            merged[array_field.name] = _merge_array(
                array_field, source_items, translated[array_field.name],
            )

    return merged
