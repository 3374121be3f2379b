"""
Translation module - Core translation functionality

This module provides:
- ModuleOrchestrator: One translation pass over a module
- TranslationCoordinator: Per-module run guard, status and diagnostics
- TranslationRunResult: Outcome of a run
- TranslationProgress: Progress tracking dataclass
"""

from cms_i18n.translation.progress import TranslationProgress
from cms_i18n.translation.result import TranslationRunResult
from cms_i18n.translation.orchestrator import ModuleOrchestrator, load_active_records
from cms_i18n.translation.coordinator import (
    ModuleBusyError,
    ModuleState,
    ModuleStatus,
    TranslationCoordinator,
)
