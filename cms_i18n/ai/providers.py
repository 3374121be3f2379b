"""
AI Provider API Implementations

Every supported provider speaks the OpenAI chat-completions format:
- Hugging Face router (default)
- OpenAI
- DeepSeek
- Custom providers (OpenAI-compatible, configured by name)

The call takes an AIService instance plus the system prompt and user message,
and returns the text response.
"""

from typing import Any, Dict

import httpx

from cms_i18n.logger import get_logger
from cms_i18n.ai.exceptions import TranslationError
from cms_i18n.config import BUILTIN_PROVIDER_DISPLAY_NAMES

logger = get_logger(__name__)

DEFAULT_API_URLS = {
    "huggingface": "https://router.huggingface.co/v1/chat/completions",
    "openai": "https://api.openai.com/v1/chat/completions",
    "deepseek": "https://api.deepseek.com/chat/completions",
}

DEFAULT_MODELS = {
    "huggingface": "openai/gpt-oss-20b:groq",
    "openai": "gpt-4o-mini",
    "deepseek": "deepseek-chat",
}


def get_httpx_timeout(timeout_config: Any) -> httpx.Timeout:
    """
    Convert timeout configuration to httpx.Timeout object.

    Args:
        timeout_config: Either a number (read timeout) or a dict with
            connect, write, read, pool keys
    """
    if isinstance(timeout_config, dict):
        return httpx.Timeout(
            connect=timeout_config.get('connect', 10.0),
            write=timeout_config.get('write', 60.0),
            read=timeout_config.get('read', 120.0),
            pool=timeout_config.get('pool', 10.0),
        )
    timeout_value = float(timeout_config) if timeout_config else 120.0
    return httpx.Timeout(connect=10.0, write=60.0, read=timeout_value, pool=10.0)


def provider_display_name(provider: str) -> str:
    return BUILTIN_PROVIDER_DISPLAY_NAMES.get(provider, f"Custom provider '{provider}'")


def handle_http_error(e: httpx.HTTPStatusError, provider: str):
    """Raise a TranslationError carrying the provider's error message."""
    status_code = e.response.status_code
    error_text = "Unknown error"

    try:
        error_json = e.response.json()
        if isinstance(error_json, dict) and "error" in error_json:
            error_detail = error_json["error"]
            if isinstance(error_detail, dict):
                error_text = error_detail.get("message", str(error_detail))
            else:
                error_text = str(error_detail)
    except ValueError:
        error_text = e.response.text[:500] or "No details"

    raise TranslationError(
        f"{provider} API error ({status_code}): {error_text}",
        code="api_error",
        details={"status_code": status_code},
    )


def call_chat_completion(service, system_prompt: str, user_message: str) -> str:
    """
    Send one chat-completions request for the service's provider.

    Returns:
        The assistant message content

    Raises:
        TranslationError: On missing configuration, HTTP errors, timeouts or
            responses without content.
    """
    provider = service.provider
    display = provider_display_name(provider)
    provider_config = service.config.get(provider, {})
    api_key = provider_config.get('api_key', '')
    model = service.resolve_model(DEFAULT_MODELS.get(provider, ''))
    api_url = provider_config.get('api_url') or DEFAULT_API_URLS.get(provider, '')
    timeout = provider_config.get('timeout', 120)

    if not api_key or api_key == "YOUR_API_KEY_HERE":
        raise TranslationError(f"{display} API key not configured", code="ai_config_missing",
                               details={"provider": provider, "missing_field": "api_key"})
    if not api_url:
        raise TranslationError(f"{display} API URL not configured", code="ai_config_missing",
                               details={"provider": provider, "missing_field": "api_url"})
    if not model:
        raise TranslationError(f"{display} model not configured", code="ai_config_missing",
                               details={"provider": provider, "missing_field": "models"})

    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json"
    }

    body = {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ],
        "temperature": provider_config.get('temperature', 0.1),
    }
    if provider_config.get('max_tokens'):
        body["max_tokens"] = provider_config['max_tokens']

    logger.debug(f"  Calling {display} API (model: {model}, url: {api_url})...")

    try:
        with httpx.Client(timeout=get_httpx_timeout(timeout), transport=service.transport) as client:
            response = client.post(api_url, headers=headers, json=body)
            response.raise_for_status()
            result = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"{display} API HTTP error: {e.response.status_code}")
        handle_http_error(e, display)
    except httpx.TimeoutException:
        raise TranslationError(f"{display} API request timeout", code="api_timeout")
    except httpx.HTTPError as e:
        raise TranslationError(f"{display} API call failed: {e}", code="api_error")
    except ValueError as e:
        raise TranslationError(f"{display} API returned invalid JSON: {e}", code="invalid_response")

    if not isinstance(result, dict):
        raise TranslationError(f"Unexpected {display} response format", code="invalid_response")

    service.record_usage(result.get('usage'))

    choices = result.get('choices') or []
    if choices:
        content = (choices[0].get('message') or {}).get('content') or ''
        if content:
            logger.debug(f"  Received {len(content)} chars from {display} (tokens: {service.last_usage})")
            return content

    raise TranslationError(f"No content in {display} response", code="invalid_response")
