"""Settings management API routes."""

from __future__ import annotations

import copy
import re
from typing import Any, Dict

from flask import Blueprint, jsonify, request

import cms_i18n.config as config
from cms_i18n.config import (
    BUILTIN_PROVIDERS,
    BUILTIN_PROVIDER_DISPLAY_NAMES,
    PROVIDER_DEFAULTS,
    PROVIDER_NAME_PATTERN,
)
from cms_i18n.language_codes import SUPPORTED_TARGET_LANGUAGES
from cms_i18n.logger import get_logger, _clear_log_mode_cache

settings_bp = Blueprint("settings", __name__)
logger = get_logger(__name__)

TOP_LEVEL_KEYS = ["ai_provider", "log_mode", "translation"]
LOG_MODES = ["debug", "info", "off"]
MASKED_KEY = "********"


def mask_api_key(api_key: str) -> str:
    """Hide all but the last four characters of a configured key."""
    if not api_key or api_key == "YOUR_API_KEY_HERE":
        return api_key
    return MASKED_KEY + api_key[-4:]


def _masked_config(current: Dict[str, Any]) -> Dict[str, Any]:
    masked = copy.deepcopy(current)
    for value in masked.values():
        if isinstance(value, dict) and "api_key" in value:
            value["api_key"] = mask_api_key(value["api_key"])
    return masked


@settings_bp.get("")
def get_settings():
    """Return current system configuration with API keys masked."""
    current_config = config.load_config()
    logger.debug("Settings retrieved with defaults merged")

    return jsonify({
        "config": _masked_config(current_config),
        "meta": {
            "builtin_providers": [
                {"id": p, "name": BUILTIN_PROVIDER_DISPLAY_NAMES[p]}
                for p in BUILTIN_PROVIDERS
            ],
            "provider_defaults": PROVIDER_DEFAULTS,
            "provider_name_pattern": PROVIDER_NAME_PATTERN,
            "target_languages": SUPPORTED_TARGET_LANGUAGES,
            "log_modes": LOG_MODES,
        }
    })


@settings_bp.put("")
def update_settings():
    """Update system configuration."""
    data = request.get_json(silent=True)
    if not data or "config" not in data:
        return jsonify({"error": "Request body must contain a 'config' object"}), 400

    new_config = data["config"]
    validation_error = validate_config(new_config)
    if validation_error:
        return jsonify({"error": validation_error}), 400

    current_config = config.load_config()

    for key, value in new_config.items():
        if key in TOP_LEVEL_KEYS and key != "translation":
            current_config[key] = value
        elif key == "translation":
            current_config["translation"].update(value)
        elif isinstance(value, dict):
            provider_config = dict(value)
            # A masked key echoed back by a client keeps the stored key
            if str(provider_config.get("api_key", "")).startswith(MASKED_KEY):
                provider_config.pop("api_key")
            if isinstance(current_config.get(key), dict):
                current_config[key].update(provider_config)
            else:
                current_config[key] = {**PROVIDER_DEFAULTS, **provider_config}

    try:
        config.save_config(current_config)
    except Exception as e:
        logger.error(f"Failed to update settings: {e}")
        return jsonify({"error": "Failed to update settings"}), 500

    # Clear log mode cache to ensure new log mode takes effect
    _clear_log_mode_cache()
    logger.info("Settings updated successfully")

    return jsonify({"message": "Settings updated successfully", "config": _masked_config(current_config)})


def validate_provider_config(provider: str, provider_config: Any) -> str | None:
    if not isinstance(provider_config, dict):
        return f"{provider} config must be an object"

    api_url = provider_config.get("api_url")
    if api_url and not isinstance(api_url, str):
        return f"{provider} api_url must be a string"

    if "models" in provider_config:
        models = provider_config["models"]
        if not isinstance(models, list):
            return f"{provider} models must be an array"
        models = [m for m in models if m and isinstance(m, str)]
        if len(models) > 5:
            return f"{provider} can have at most 5 models"
        provider_config["models"] = models

    if "max_retries" in provider_config:
        retries = provider_config["max_retries"]
        if not isinstance(retries, int) or retries < 1:
            return f"{provider} max_retries must be at least 1"

    if "timeout" in provider_config:
        timeout = provider_config["timeout"]
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            return f"{provider} timeout must be a positive number"

    return None


def validate_translation_settings(settings: Any) -> str | None:
    if not isinstance(settings, dict):
        return "translation config must be an object"

    languages = settings.get("target_languages")
    if languages is not None:
        if not isinstance(languages, list) or not languages:
            return "target_languages must be a non-empty array"
        unsupported = [code for code in languages if code not in SUPPORTED_TARGET_LANGUAGES]
        if unsupported:
            return f"Unsupported target languages: {', '.join(map(str, unsupported))}"

    tolerance = settings.get("staleness_tolerance_ms")
    if tolerance is not None and (not isinstance(tolerance, int) or tolerance < 0):
        return "staleness_tolerance_ms must be a non-negative integer"

    delay = settings.get("request_delay_seconds")
    if delay is not None and (not isinstance(delay, (int, float)) or delay < 0):
        return "request_delay_seconds must be a non-negative number"

    return None


def validate_config(config_dict: Dict[str, Any]) -> str | None:
    """Validate configuration structure and return error message if invalid."""
    if not isinstance(config_dict, dict):
        return "Configuration must be an object"

    if "ai_provider" in config_dict:
        provider = config_dict["ai_provider"]
        if provider not in BUILTIN_PROVIDERS and not (
            isinstance(provider, str) and re.match(PROVIDER_NAME_PATTERN, provider)
        ):
            return f"Invalid AI provider name: {provider}. Only letters, numbers, hyphens, and underscores allowed."

    if "log_mode" in config_dict and config_dict["log_mode"] not in LOG_MODES:
        return f"log_mode must be one of: {', '.join(LOG_MODES)}"

    if "translation" in config_dict:
        error = validate_translation_settings(config_dict["translation"])
        if error:
            return error

    for key, value in config_dict.items():
        if key in TOP_LEVEL_KEYS:
            continue
        if key not in BUILTIN_PROVIDERS and not re.match(PROVIDER_NAME_PATTERN, key):
            return f"Invalid custom provider name: {key}. Only letters, numbers, hyphens, and underscores allowed."
        error = validate_provider_config(key, value)
        if error:
            return error

    return None
