"""
AI Translation Service Module

AIService is the translation client handed to the orchestrator: one call
translates the translatable fields of one record, sent as a JSON object.
Transport retries follow the provider's max_retries setting.

For the provider HTTP call, see ai/providers.py
"""

import json
import time
from typing import Dict, Any, Optional

import httpx

from cms_i18n.config import load_config, get_prompt, BUILTIN_PROVIDERS
from cms_i18n.logger import get_logger
from cms_i18n import language_codes as lc
from cms_i18n.ai.exceptions import TranslationError
from cms_i18n.ai.providers import call_chat_completion, provider_display_name

logger = get_logger(__name__)

# HTTP statuses that are worth another attempt, with the base backoff in seconds
RETRYABLE_STATUS_BACKOFF = {429: 30.0, 500: 1.0, 502: 1.0, 503: 1.0, 504: 1.0}
MAX_BACKOFF_SECONDS = 300.0

EMPTY_USAGE = {'prompt_tokens': 0, 'completion_tokens': 0, 'total_tokens': 0}


def validate_ai_config(provider_override: Optional[str] = None) -> None:
    """
    Check that the active (or given) provider has an API key and a model.

    Raises:
        TranslationError: code 'ai_config_missing', details name the provider
            and the missing field.
    """
    config = load_config()
    provider = provider_override or config.get('ai_provider', 'huggingface')
    provider_config = config.get(provider)

    if not isinstance(provider_config, dict) or not provider_config:
        kind = "AI provider" if provider in BUILTIN_PROVIDERS else "Custom AI provider"
        raise TranslationError(f"{kind} '{provider}' configuration not found",
                               code="ai_config_missing", details={"provider": provider})

    display = provider_display_name(provider)
    api_key = provider_config.get('api_key', '')
    if not api_key or api_key == "YOUR_API_KEY_HERE":
        raise TranslationError(f"{display} API key not configured. Please set it in Settings.",
                               code="ai_config_missing",
                               details={"provider": provider, "missing_field": "api_key"})

    models = provider_config.get('models')
    has_model = isinstance(models, list) and any(isinstance(m, str) and m for m in models)
    if not has_model and not provider_config.get('model'):
        raise TranslationError(f"{display} model not configured",
                               code="ai_config_missing",
                               details={"provider": provider, "missing_field": "models"})


class AIService:
    """Translation client backed by an OpenAI-compatible chat-completions provider."""

    def __init__(self, model_override: Optional[str] = None, provider_override: Optional[str] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.config = load_config()
        self.provider = provider_override or self.config.get('ai_provider', 'huggingface')
        self.model_override = model_override
        self.transport = transport
        self.last_usage: Dict[str, int] = dict(EMPTY_USAGE)
        self.total_tokens = 0
        logger.info(f"Initialized AI service with provider: {self.provider}"
                    + (f", model override: {model_override}" if model_override else ""))

    @property
    def provider_config(self) -> Dict[str, Any]:
        return self.config.get(self.provider) or {}

    def resolve_model(self, default_model: str = "") -> str:
        """Model override, else the first configured model, else the legacy 'model' key."""
        if self.model_override:
            return self.model_override
        models = self.provider_config.get('models')
        if isinstance(models, list) and models and models[0]:
            return models[0]
        return self.provider_config.get('model', default_model)

    def record_usage(self, usage: Optional[Dict[str, Any]]):
        """Store the token counts reported with the last response."""
        usage = usage or {}
        prompt = usage.get('prompt_tokens') or 0
        completion = usage.get('completion_tokens') or 0
        self.last_usage = {
            'prompt_tokens': prompt,
            'completion_tokens': completion,
            'total_tokens': usage.get('total_tokens') or prompt + completion,
        }
        self.total_tokens += self.last_usage['total_tokens']

    def get_last_token_usage(self) -> Dict[str, int]:
        return dict(self.last_usage)

    def build_system_prompt(self, source_language: str, target_language: str) -> str:
        template = get_prompt('content_translation_prompt')['prompt']
        return template.format(
            source_language_name=lc.get_language_name(source_language) or source_language,
            target_language_name=lc.get_language_name(target_language) or target_language,
        )

    def translate(self, fields: Dict[str, Any], source_language: str, target_language: str) -> Dict[str, Any]:
        """
        Translate a record's field values.

        Args:
            fields: Field name -> string or array of strings/objects
            source_language: Source language code
            target_language: Target language code

        Returns:
            Translated values with the same keys

        Raises:
            TranslationError: When the last allowed attempt fails.
        """
        if not fields:
            return {}

        system_prompt = self.build_system_prompt(source_language, target_language)
        user_message = json.dumps(fields, ensure_ascii=False)
        logger.debug(f"Translating {len(fields)} fields {source_language} -> {target_language}:\n{user_message}")

        attempts = max(1, int(self.provider_config.get('max_retries', 1)))
        attempt = 0
        while True:
            try:
                return self._attempt(system_prompt, user_message)
            except TranslationError as e:
                attempt += 1
                delay = self._retry_delay(e, attempt)
                if delay is None or attempt >= attempts:
                    logger.warning(f"Translation failed after {attempt} attempt(s): {e}")
                    raise
                logger.warning(f"  Attempt {attempt}/{attempts} failed: {e}. Retrying in {delay}s")
                time.sleep(delay)

    def _attempt(self, system_prompt: str, user_message: str) -> Dict[str, Any]:
        from cms_i18n.translation.utils import safe_parse_json_object

        response_text = call_chat_completion(self, system_prompt, user_message)
        logger.debug(f"  Output from AI:\n{response_text}")

        translated = safe_parse_json_object(response_text)
        if translated is None:
            raise TranslationError("Could not parse JSON object from AI response",
                                   code="invalid_response",
                                   details={"response_preview": response_text[:200]})
        return translated

    @staticmethod
    def _retry_delay(error: TranslationError, attempt: int) -> Optional[float]:
        """Seconds to wait before the next attempt, or None when retrying is pointless."""
        if error.code == "ai_config_missing":
            return None
        if error.code == "invalid_response":
            # a second sample often parses; a third rarely does
            return 1.0 if attempt == 1 else None
        if error.code == "api_timeout":
            return min(5.0 * 2 ** (attempt - 1), MAX_BACKOFF_SECONDS)

        status = (error.details or {}).get("status_code")
        if status is None:
            return min(2.0 ** (attempt - 1), MAX_BACKOFF_SECONDS)
        base = RETRYABLE_STATUS_BACKOFF.get(status)
        if base is None:
            return None
        return min(base * 2 ** (attempt - 1), MAX_BACKOFF_SECONDS)
