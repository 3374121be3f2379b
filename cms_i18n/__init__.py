"""
cms-i18n - translation synchronisation for structured website content.

Subpackages:
- core: module registry, storage, staleness detection and diagnostics
- ai: translation client backed by OpenAI-compatible chat completions
- translation: per-module orchestration and run coordination
- web: Flask API and background jobs
"""

__version__ = "1.0.0"
