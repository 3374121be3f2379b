"""
Asynchronous task helpers for long-running background jobs (module translation).
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, List, Optional

from cms_i18n.logger import get_logger
from cms_i18n import language_codes as lc
from cms_i18n.core.modules import get_module_config
from cms_i18n.translation.coordinator import TranslationCoordinator
from cms_i18n.translation.progress import TranslationProgress

logger = get_logger(__name__)


@dataclass
class JobState:
    """In-memory representation of an asynchronous job."""

    job_id: str
    module: str
    language: str
    force_all: bool = False
    state: str = "pending"  # pending|running|completed|failed; busy modules never get a job
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    progress: Dict[str, Any] = field(default_factory=dict)
    progress_history: List[Dict[str, Any]] = field(default_factory=list)
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    last_update: float = field(default_factory=time.time)

    @property
    def is_finished(self) -> bool:
        return self.state in ("completed", "failed")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_jobs: Dict[str, JobState] = {}
_jobs_lock = threading.Lock()
_job_events: Dict[str, threading.Event] = {}
JOB_RETENTION_SECONDS = 600  # finished jobs stay queryable for 10 minutes

_coordinator: Optional[TranslationCoordinator] = None
_coordinator_lock = threading.Lock()


def get_coordinator() -> TranslationCoordinator:
    """Process-wide coordinator shared by every request and job."""
    global _coordinator
    with _coordinator_lock:
        if _coordinator is None:
            _coordinator = TranslationCoordinator()
        return _coordinator


def create_translation_job(module_id: str, language: str, force_all: bool = False) -> JobState:
    """
    Create and launch an asynchronous translation job for a module.

    The module's in-flight slot is claimed before the thread starts, so a
    second request for the same module is refused immediately.

    Raises:
        UnknownModuleError: If the module is not registered.
        UnsupportedLanguageError: If the language is not an enabled target.
        ModuleBusyError: If the module already has a run in flight.
    """
    coordinator = get_coordinator()
    module = get_module_config(module_id).identifier.value
    language = coordinator.require_language(language)
    coordinator.acquire(module)

    job_id = uuid.uuid4().hex
    job_state = JobState(job_id=job_id, module=module, language=language, force_all=bool(force_all))

    with _jobs_lock:
        _purge_expired_locked()
        _jobs[job_id] = job_state
        _job_events[job_id] = threading.Event()

    thread = threading.Thread(
        target=_run_translation_job,
        args=(coordinator, job_state),
        name=f"translation-job-{job_id}",
        daemon=True,
    )
    try:
        thread.start()
    except RuntimeError:
        coordinator.release(module)
        with _jobs_lock:
            _forget_locked(job_id)
        raise

    logger.info(
        "Translation job %s started for %s/%s (force_all=%s)",
        job_id, module, language, job_state.force_all,
    )
    return job_state


def get_job(job_id: str) -> Optional[JobState]:
    """Fetch a job by ID while it is still retained."""
    with _jobs_lock:
        job = _jobs.get(job_id)
        if job is not None and _expired(job, time.time()):
            _forget_locked(job_id)
            return None
        return job


def get_latest_job(module_id: str) -> Optional[JobState]:
    """Most recently created retained job of a module, finished or not."""
    module = get_module_config(module_id).identifier.value
    now = time.time()
    with _jobs_lock:
        candidates = [job for job in _jobs.values() if job.module == module and not _expired(job, now)]
    return max(candidates, key=lambda j: j.created_at, default=None)


def wait_for_job(job_id: str, timeout: Optional[float] = None,
                 cancel_check: Optional[Callable[[], bool]] = None,
                 poll_interval: float = 0.1) -> Optional[JobState]:
    """
    Block until a job finishes, the timeout passes, or cancel_check() is true.

    Giving up the wait never stops the run: the job keeps translating the
    rest of its batch in the background.

    Returns:
        The job (check job.is_finished), or None if it is unknown
    """
    with _jobs_lock:
        event = _job_events.get(job_id)
        job = _jobs.get(job_id)
    if job is None:
        return None
    if event is None:
        return job

    deadline = time.time() + timeout if timeout is not None else None
    while not event.is_set():
        if cancel_check and cancel_check():
            logger.info("Stopped waiting for job %s; it continues in the background", job_id)
            break
        remaining = poll_interval
        if deadline is not None:
            remaining = min(poll_interval, deadline - time.time())
            if remaining <= 0:
                break
        event.wait(remaining)
    return job


def serialize_job(job: JobState) -> Dict[str, Any]:
    """Convert JobState into JSON-safe dict."""
    with _jobs_lock:
        payload = job.to_dict()
    payload["is_finished"] = job.is_finished
    return payload


def _run_translation_job(coordinator: TranslationCoordinator, job: JobState):
    """Worker function executed in a background thread."""
    with _jobs_lock:
        job.state = "running"
        job.started_at = time.time()
        job.last_update = job.started_at
    start_time = job.started_at
    language_name = lc.get_language_name(job.language) or job.language

    def on_progress(current: int, total: int, label: str):
        elapsed = time.time() - start_time
        remaining = (elapsed / current) * (total - current) if current else None
        progress = TranslationProgress(
            module=job.module,
            language=job.language,
            language_name=language_name,
            current_item=current,
            total_items=total,
            current_label=label,
            estimated_time_remaining=remaining,
        )
        with _jobs_lock:
            serialized = progress.to_dict()
            job.progress = serialized
            job.progress_history.append(serialized)
            job.last_update = time.time()

    try:
        result = coordinator.run_module(
            job.module,
            job.language,
            force_all=job.force_all,
            progress_callback=on_progress,
            already_acquired=True,
        )
        with _jobs_lock:
            job.result = result.to_dict()
            job.state = "completed" if result.success else "failed"
            if job.progress:
                job.progress = {**job.progress, "phase": job.state}
            job.finished_at = time.time()
            job.last_update = job.finished_at
        logger.info(
            "Translation job %s finished (success=%s, translated=%s, failed=%s)",
            job.job_id,
            result.success,
            result.translated_items,
            result.failed_items,
        )
    except Exception as exc:
        error_type = type(exc).__name__
        with _jobs_lock:
            job.state = "failed"
            job.error = f"{error_type}: {exc}"
            job.finished_at = time.time()
            job.last_update = job.finished_at
        logger.exception(
            "Translation job %s failed for %s/%s: %s: %s",
            job.job_id,
            job.module,
            job.language,
            error_type,
            exc,
        )
    finally:
        with _jobs_lock:
            event = _job_events.get(job.job_id)
        if event:
            event.set()


def _expired(job: JobState, now: float) -> bool:
    return bool(job.finished_at) and now - job.finished_at > JOB_RETENTION_SECONDS


def _forget_locked(job_id: str):
    _jobs.pop(job_id, None)
    _job_events.pop(job_id, None)


def _purge_expired_locked():
    """Drop finished jobs past the retention window (call with _jobs_lock held)."""
    now = time.time()
    for job_id in [job_id for job_id, job in _jobs.items() if _expired(job, now)]:
        _forget_locked(job_id)
