"""
Translation Coordinator

Caller-facing surface for running module translations and reading status:
- At most one run in flight per module (busy runs are refused, not queued)
- Per-module state derived from the last result and the in-flight flag
- Status and diagnostics recomputed from storage on every call
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union

from cms_i18n.config import get_translation_settings, DEFAULT_STALENESS_TOLERANCE_MS
from cms_i18n.core import database as db
from cms_i18n.core import validation
from cms_i18n.core.modules import ModuleIdentifier, get_module_config, list_module_configs
from cms_i18n.core.staleness import compute_pending_set
from cms_i18n.language_codes import UnsupportedLanguageError, require_target_language
from cms_i18n.logger import get_logger
from cms_i18n.translation.orchestrator import ModuleOrchestrator, ProgressCallback, load_active_records
from cms_i18n.translation.result import TranslationRunResult

logger = get_logger(__name__)


class ModuleBusyError(RuntimeError):
    """Raised when a module already has a translation run in flight."""

    def __init__(self, module: str):
        super().__init__(f"Translation already in progress for module '{module}'")
        self.module = module


class ModuleState(str, Enum):
    IDLE = "idle"
    TRANSLATING = "translating"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class ModuleStatus:
    module: str
    language: str
    state: ModuleState
    is_translating: bool
    last_translated_at: Optional[datetime]
    pending_count: int
    total_count: int
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "language": self.language,
            "state": self.state.value,
            "is_translating": self.is_translating,
            "last_translated_at": self.last_translated_at.isoformat() if self.last_translated_at else None,
            "pending_count": self.pending_count,
            "total_count": self.total_count,
            "error": self.error,
        }


class TranslationCoordinator:
    """Runs module translations with a per-module in-flight guard."""

    def __init__(self, client=None, tolerance_ms: Optional[int] = None,
                 request_delay: Optional[float] = None):
        self._client = client
        self.tolerance_ms = tolerance_ms
        self.request_delay = request_delay
        self._lock = threading.Lock()
        self._in_flight: Set[str] = set()
        # keyed by (module, language): last result and last hard failure
        self._results: Dict[tuple, TranslationRunResult] = {}
        self._failures: Dict[tuple, str] = {}

    @property
    def client(self):
        """Translation client, built from configuration on first use."""
        if self._client is None:
            from cms_i18n.ai.service import AIService
            self._client = AIService()
        return self._client

    @property
    def uses_ai_service(self) -> bool:
        """True when translations go through the configured AI provider."""
        from cms_i18n.ai.service import AIService
        return self._client is None or isinstance(self._client, AIService)

    def require_language(self, language: str) -> str:
        """
        Validate a target language against the supported and enabled locales.

        Raises:
            UnsupportedLanguageError: If the language cannot be translated into.
        """
        language = require_target_language(language)
        configured = get_translation_settings().get('target_languages')
        if configured and language not in configured:
            raise UnsupportedLanguageError(f"Target language '{language}' is not enabled")
        return language

    def _tolerance(self) -> int:
        if self.tolerance_ms is not None:
            return self.tolerance_ms
        return int(get_translation_settings().get('staleness_tolerance_ms', DEFAULT_STALENESS_TOLERANCE_MS))

    def is_translating(self, module_id: Union[str, ModuleIdentifier]) -> bool:
        module = get_module_config(module_id).identifier.value
        with self._lock:
            return module in self._in_flight

    def acquire(self, module: str):
        """
        Claim the in-flight slot of a module without blocking.

        Raises:
            ModuleBusyError: If a run for the module is already in flight.
        """
        with self._lock:
            if module in self._in_flight:
                raise ModuleBusyError(module)
            self._in_flight.add(module)

    def release(self, module: str):
        with self._lock:
            self._in_flight.discard(module)

    def run_module(self, module_id: Union[str, ModuleIdentifier], language: str, force_all: bool = False,
                   progress_callback: Optional[ProgressCallback] = None,
                   already_acquired: bool = False) -> TranslationRunResult:
        """
        Translate one module into one language.

        Args:
            module_id: Module identifier
            language: Target language code
            force_all: Translate every active record
            progress_callback: Called as (current, total, label) after each record
            already_acquired: The caller already holds the module's in-flight slot

        Raises:
            UnknownModuleError: If the module is not registered.
            UnsupportedLanguageError: If the language is not an enabled target.
            ModuleBusyError: If the module already has a run in flight.
            StorageError: If the module's records cannot be loaded.
        """
        config = get_module_config(module_id)
        module = config.identifier.value
        try:
            language = self.require_language(language)
        except UnsupportedLanguageError:
            if already_acquired:
                self.release(module)
            raise

        if not already_acquired:
            self.acquire(module)

        try:
            orchestrator = ModuleOrchestrator(
                self.client,
                tolerance_ms=self.tolerance_ms,
                request_delay=self.request_delay,
            )
            result = orchestrator.run(config, language, force_all=force_all,
                                      progress_callback=progress_callback)
        except Exception as e:
            with self._lock:
                self._failures[(module, language)] = str(e)
            logger.error(f"Translation run for {module}/{language} failed: {e}")
            raise
        else:
            with self._lock:
                self._results[(module, language)] = result
                self._failures.pop((module, language), None)
            return result
        finally:
            self.release(module)

    def last_result(self, module_id: Union[str, ModuleIdentifier], language: str) -> Optional[TranslationRunResult]:
        module = get_module_config(module_id).identifier.value
        with self._lock:
            return self._results.get((module, language))

    def _state(self, module: str, language: str, in_flight: bool) -> ModuleState:
        if in_flight:
            return ModuleState.TRANSLATING
        if (module, language) in self._failures:
            return ModuleState.ERROR
        result = self._results.get((module, language))
        if result is None:
            return ModuleState.IDLE
        return ModuleState.COMPLETED if result.success else ModuleState.ERROR

    def status(self, module_id: Union[str, ModuleIdentifier], language: str) -> ModuleStatus:
        """
        Current translation status of a module, recomputed from storage.

        Raises:
            StorageError: If the module's records cannot be read.
        """
        config = get_module_config(module_id)
        module = config.identifier.value
        language = self.require_language(language)

        records = load_active_records(config)
        pending = compute_pending_set(records, language, self._tolerance())

        with self._lock:
            in_flight = module in self._in_flight
            state = self._state(module, language, in_flight)
            result = self._results.get((module, language))
            error = self._failures.get((module, language))

        if error is None and result is not None and result.errors:
            error = "; ".join(result.errors)

        candidates = [record.last_translated_at.get(language) for record in records]
        if result is not None:
            candidates.append(result.last_translated_at)
        known = [value for value in candidates if value is not None]

        return ModuleStatus(
            module=module,
            language=language,
            state=state,
            is_translating=in_flight,
            last_translated_at=max(known) if known else None,
            pending_count=len(pending),
            total_count=len(records),
            error=error,
        )

    def all_statuses(self, language: str) -> List[ModuleStatus]:
        """Status of every module; a module whose records cannot be read reports the error."""
        language = self.require_language(language)
        statuses = []
        for config in list_module_configs():
            try:
                statuses.append(self.status(config.identifier, language))
            except db.StorageError as e:
                logger.error(f"Failed to read status of {config.identifier.value}: {e}")
                statuses.append(ModuleStatus(
                    module=config.identifier.value,
                    language=language,
                    state=ModuleState.ERROR,
                    is_translating=self.is_translating(config.identifier),
                    last_translated_at=None,
                    pending_count=0,
                    total_count=0,
                    error=str(e),
                ))
        return statuses

    def run_diagnostics(self, module_id: Union[str, ModuleIdentifier], language: str) -> validation.DiagnosticsReport:
        """Analyze a module's translations; never blocks on or alters a running translation."""
        language = self.require_language(language)
        return validation.run_diagnostics(module_id, language)
