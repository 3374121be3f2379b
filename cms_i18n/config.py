import copy
import json
import sqlite3
from pathlib import Path
from typing import Dict, Any

from cms_i18n.core import database as db
from cms_i18n.core.schema import initialize_database
from cms_i18n.logger import get_logger

logger = get_logger(__name__)

# Staleness configuration constants
# Storage triggers may stamp updated_at a few milliseconds after the
# orchestrator writes last_translated_at within the same save.
DEFAULT_STALENESS_TOLERANCE_MS = 5000
DEFAULT_REQUEST_DELAY_SECONDS = 1.0
DEFAULT_SOURCE_LANGUAGE = "en"
DEFAULT_SYSTEM_MESSAGE = "You are a professional translator. Return only valid JSON."

# Provider configuration constants
BUILTIN_PROVIDERS = ["huggingface", "openai", "deepseek"]

BUILTIN_PROVIDER_DISPLAY_NAMES = {
    "huggingface": "Hugging Face Router",
    "openai": "OpenAI",
    "deepseek": "DeepSeek",
}

PROVIDER_DEFAULTS = {
    "max_retries": 1,
    "timeout": 120,
    "temperature": 0.1,
    "max_tokens": 16000,
}

PROVIDER_NAME_PATTERN = r"^[a-zA-Z0-9_-]+$"

# Get base directory (project root)
BASE_DIR = Path(__file__).parent.parent

# Default prompts
DEFAULT_PROMPTS = {
    "content_translation_prompt": {
        "version": "1.0",
        "description": "System prompt for translating one content record as a JSON object",
        "prompt": """You are a professional translator. Translate this JSON from {source_language_name} to {target_language_name}.

CRITICAL RULES:
1. Keep ALL JSON keys EXACTLY as-is
2. Translate ONLY the string values
3. Keep technical terms in English: SAP, ERP, CRM, S/4HANA, Fiori, BTP, Ariba, API, etc.
4. Preserve ALL array items - do not skip any
5. Return ONLY valid, complete JSON with NO markdown, NO comments, NO extra text
6. Ensure ALL nested objects and arrays are fully translated

Return the complete translated JSON starting with {{ and ending with }}"""
    }
}

# Default configuration templates
DEFAULT_CONFIG = {
    "ai_provider": "huggingface",
    "huggingface": {
        "api_key": "YOUR_API_KEY_HERE",
        "models": ["openai/gpt-oss-20b:groq"],  # Up to 5 models, first is default
        "max_retries": 1,
        "timeout": 120,
        "temperature": 0.1,
        "max_tokens": 16000,
        "api_url": "https://router.huggingface.co/v1/chat/completions"
    },
    "openai": {
        "api_key": "YOUR_API_KEY_HERE",
        "models": ["gpt-4o-mini", "gpt-4o"],
        "max_retries": 1,
        "timeout": 120,
        "temperature": 0.1,
        "max_tokens": 16000,
        "api_url": "https://api.openai.com/v1/chat/completions"
    },
    "deepseek": {
        "api_key": "YOUR_API_KEY_HERE",
        "models": ["deepseek-chat"],
        "max_retries": 1,
        "timeout": 120,
        "temperature": 0.1,
        "max_tokens": 8000,
        "api_url": "https://api.deepseek.com/chat/completions"
    },
    "translation": {
        "source_language": DEFAULT_SOURCE_LANGUAGE,
        "target_languages": ["nl", "de"],
        "staleness_tolerance_ms": DEFAULT_STALENESS_TOLERANCE_MS,
        "request_delay_seconds": DEFAULT_REQUEST_DELAY_SECONDS,
    },
    "log_mode": "info"
}


def _merge_defaults(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Return defaults updated recursively with overrides."""
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_defaults(merged[key], value)
        else:
            merged[key] = value
    return merged


def initialize_app():
    """
    Initialize the application.
    This function is called on first run or when performing a factory reset.
    It creates the database and default configuration in database.
    """
    logger.info("Initializing application...")

    initialize_database()
    logger.info("Database initialized")

    existing_config = db.get_app_config('config')
    if not existing_config:
        logger.info("No config in database, initializing default config")
        save_config(DEFAULT_CONFIG)
    else:
        logger.debug("Config already exists in database")

    logger.info("Application initialization complete")


def load_config() -> Dict[str, Any]:
    """Load the configuration from database, filling gaps from the defaults."""
    try:
        config_json = db.get_app_config('config')
    except (db.StorageError, sqlite3.Error) as e:
        logger.warning(f"Failed to load config from database, using defaults: {e}")
        return copy.deepcopy(DEFAULT_CONFIG)

    if not config_json:
        logger.debug("No config in database, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        stored = json.loads(config_json)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse config from database: {e}")
        logger.warning("Using default configuration")
        return copy.deepcopy(DEFAULT_CONFIG)

    logger.debug("Configuration loaded from database")
    return _merge_defaults(DEFAULT_CONFIG, stored)


def save_config(config: Dict[str, Any]):
    """Save the configuration to database."""
    try:
        config_json = json.dumps(config, ensure_ascii=False)
        db.set_app_config('config', config_json)
        logger.info("Configuration saved to database")
    except Exception as e:
        logger.error(f"Failed to save config to database: {e}")
        raise


def get_translation_settings() -> Dict[str, Any]:
    """Return the 'translation' block of the configuration."""
    return load_config().get('translation', {})


def load_prompts() -> Dict[str, Any]:
    """Load the prompts from default configuration.

    Note: Prompts are hardcoded in the codebase and should not be saved to database.
    This function always returns the default prompts.
    """
    return copy.deepcopy(DEFAULT_PROMPTS)


def get_prompt(prompt_name: str = "content_translation_prompt") -> Dict[str, Any]:
    """Get a specific prompt by name."""
    prompts = load_prompts()
    return prompts.get(prompt_name, DEFAULT_PROMPTS["content_translation_prompt"])


def factory_reset():
    """
    Perform a factory reset.
    WARNING: This will delete all data and reset to defaults.
    """
    logger.warning("Performing factory reset...")

    if db.DB_FILE.exists():
        db.DB_FILE.unlink()
        logger.info("Database deleted")

    initialize_app()
    logger.info("Factory reset complete")
