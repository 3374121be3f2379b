"""
Language code mappings and utilities.

Content is authored in English and translated into a fixed set of target
locales. Each target locale owns two columns per content table:
``content_<code>`` and ``last_translated_at_<code>``.
"""

from typing import Dict, Optional

SOURCE_LANGUAGE = 'en'

# Target locales with their full names as used in translation prompts
SUPPORTED_TARGET_LANGUAGES = {
    'nl': 'Dutch (Netherlands)',
    'de': 'German (Germany)',
}

LANGUAGE_NAMES = {
    'en': 'English',
    **SUPPORTED_TARGET_LANGUAGES,
}


class UnsupportedLanguageError(ValueError):
    """Raised when a language is not one of the configured target locales."""


def get_language_name(code: str) -> Optional[str]:
    """
    Get the full language name from code.

    Examples:
        >>> get_language_name('nl')
        'Dutch (Netherlands)'
        >>> get_language_name('xx') is None
        True
    """
    return LANGUAGE_NAMES.get(code)


def normalize_language_code(code: str) -> str:
    """Lowercase and strip a language code, dropping any region suffix."""
    return code.strip().lower().replace('_', '-').split('-')[0]


def is_supported_target(code: str) -> bool:
    """Check whether a code names a supported target locale."""
    return isinstance(code, str) and normalize_language_code(code) in SUPPORTED_TARGET_LANGUAGES


def require_target_language(code: str) -> str:
    """
    Validate and normalise a target language code.

    Raises:
        UnsupportedLanguageError: If the code is not a supported target locale.
    """
    if not is_supported_target(code):
        raise UnsupportedLanguageError(
            f"Unsupported target language: {code!r} "
            f"(expected one of {', '.join(SUPPORTED_TARGET_LANGUAGES)})"
        )
    return normalize_language_code(code)


def content_column(language: str) -> str:
    """Name of the translated content column for a language."""
    return f"content_{language}"


def translated_at_column(language: str) -> str:
    """Name of the last-translated timestamp column for a language."""
    return f"last_translated_at_{language}"


def get_all_target_languages() -> Dict[str, str]:
    """Get all supported target languages."""
    return SUPPORTED_TARGET_LANGUAGES.copy()
