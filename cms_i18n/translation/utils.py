"""
Translation utility functions for JSON extraction from model output.

Models are asked for a bare JSON object but sometimes wrap it in a markdown
code block or surround it with prose; these helpers recover the object.
"""

import json
from typing import Dict, Optional


def strip_code_fences(text: str) -> str:
    """
    Remove a surrounding markdown code block, if any.

    Example:
        >>> strip_code_fences('```json\\n{"a": 1}\\n```')
        '{"a": 1}'
    """
    clean_text = text.strip()
    if not clean_text.startswith('```'):
        return clean_text

    lines = clean_text.split('\n')
    # Remove first line (```json or ```)
    if lines[0].startswith('```'):
        lines = lines[1:]
    if lines and lines[-1].strip() == '```':
        lines = lines[:-1]
    return '\n'.join(lines).strip()


def match_json_object(text: str) -> Optional[str]:
    """
    Extract the first balanced JSON object from mixed text.

    Braces inside string literals are ignored.
    """
    if not text:
        return None

    depth = 0
    start = -1
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue

        if char == '\\':
            escape_next = True
            continue

        if char == '"':
            in_string = not in_string
            continue

        if in_string:
            continue

        if char == '{':
            if depth == 0:
                start = i
            depth += 1
        elif char == '}' and depth:
            depth -= 1
            if depth == 0 and start >= 0:
                return text[start:i + 1]

    return None


def _load_object(text: str) -> Optional[Dict]:
    try:
        result = json.loads(text)
    except json.JSONDecodeError:
        return None
    return result if isinstance(result, dict) else None


def safe_parse_json_object(text: str) -> Optional[Dict]:
    """
    Safely parse a JSON object from potentially malformed text.

    Tries multiple strategies:
    1. Direct parse
    2. Remove markdown code blocks and parse
    3. Extract with brace matching and parse

    Returns:
        Parsed dict or None on failure
    """
    if not text:
        return None

    text = text.strip()

    result = _load_object(text)
    if result is not None:
        return result

    clean_text = strip_code_fences(text)
    if clean_text != text:
        result = _load_object(clean_text)
        if result is not None:
            return result

    extracted = match_json_object(text)
    if extracted:
        return _load_object(extracted)

    return None
