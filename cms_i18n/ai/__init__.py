"""
AI Module

This module provides the AI translation client and related utilities.
"""

from cms_i18n.ai.exceptions import TranslationError
from cms_i18n.ai.service import AIService, validate_ai_config

__all__ = ['TranslationError', 'AIService', 'validate_ai_config']
