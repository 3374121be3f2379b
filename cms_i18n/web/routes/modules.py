"""Module translation, status and diagnostics API routes."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Blueprint, jsonify, request

from cms_i18n.ai.service import validate_ai_config, TranslationError
from cms_i18n.config import get_translation_settings
from cms_i18n.core import database as db
from cms_i18n.core.modules import UnknownModuleError, get_module_config, list_module_configs
from cms_i18n.language_codes import UnsupportedLanguageError, SUPPORTED_TARGET_LANGUAGES
from cms_i18n.logger import get_logger
from cms_i18n.translation.coordinator import ModuleBusyError
from cms_i18n.web.tasks import (
    create_translation_job,
    get_coordinator,
    get_job,
    get_latest_job,
    serialize_job,
    wait_for_job,
)

modules_bp = Blueprint("modules", __name__)
jobs_bp = Blueprint("jobs", __name__)
logger = get_logger(__name__)


def _requested_language(data: Optional[Dict[str, Any]] = None) -> str:
    """Language from the JSON body or query string, else the first enabled target."""
    language = (data or {}).get("language") or request.args.get("language")
    if language:
        return language
    configured = get_translation_settings().get("target_languages") or list(SUPPORTED_TARGET_LANGUAGES)
    return configured[0]


def _error(message: str, status: int, **extra):
    payload = {"error": message}
    payload.update(extra)
    return jsonify(payload), status


@modules_bp.get("")
def list_modules():
    """Return the module registry."""
    return jsonify({
        "modules": [config.to_dict() for config in list_module_configs()],
        "languages": get_translation_settings().get("target_languages", list(SUPPORTED_TARGET_LANGUAGES)),
    })


@modules_bp.get("/status")
def all_module_statuses():
    """Return the translation status of every module for one language."""
    try:
        statuses = get_coordinator().all_statuses(_requested_language())
    except UnsupportedLanguageError as e:
        return _error(str(e), 400)
    return jsonify({"statuses": [status.to_dict() for status in statuses]})


@modules_bp.get("/<module_id>/status")
def module_status(module_id: str):
    """Return the translation status of one module."""
    try:
        status = get_coordinator().status(module_id, _requested_language())
    except UnknownModuleError as e:
        return _error(str(e), 404)
    except UnsupportedLanguageError as e:
        return _error(str(e), 400)
    except db.StorageError as e:
        logger.error("Failed to read status of %s: %s", module_id, e)
        return _error(str(e), 500)

    payload = status.to_dict()
    latest = get_latest_job(module_id)
    payload["latest_job"] = serialize_job(latest) if latest else None
    return jsonify(payload)


@modules_bp.post("/<module_id>/translate")
def start_module_translation(module_id: str):
    """Start a translation run for a module; optionally wait for its result."""
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    force_all = data.get("force_all", False)
    wait = data.get("wait", False)
    timeout = data.get("timeout")

    for name, value in (("force_all", force_all), ("wait", wait)):
        if not isinstance(value, bool):
            return _error(f"{name} must be true or false", 400)

    try:
        get_module_config(module_id)
    except UnknownModuleError as e:
        return _error(str(e), 404)

    if timeout is not None:
        try:
            timeout = float(timeout)
        except (TypeError, ValueError):
            return _error("timeout must be a number of seconds", 400)

    if get_coordinator().uses_ai_service:
        try:
            validate_ai_config()
        except TranslationError as e:
            logger.warning("AI configuration validation failed: %s", e)
            return _error(str(e), 400, code=e.code or "ai_config_error", details=e.details)

    try:
        job = create_translation_job(module_id, _requested_language(data), force_all=force_all)
    except UnsupportedLanguageError as e:
        return _error(str(e), 400)
    except ModuleBusyError as e:
        logger.info("Refused translation of %s: already in progress", e.module)
        return _error(str(e), 409, code="module_busy")

    if wait:
        job = wait_for_job(job.job_id, timeout=timeout)
        if job.is_finished:
            return jsonify(serialize_job(job)), 200

    return jsonify(serialize_job(job)), 202


@modules_bp.get("/<module_id>/diagnostics")
def module_diagnostics(module_id: str):
    """Run diagnostics over a module's translated content."""
    try:
        report = get_coordinator().run_diagnostics(module_id, _requested_language())
    except UnknownModuleError as e:
        return _error(str(e), 404)
    except UnsupportedLanguageError as e:
        return _error(str(e), 400)
    except db.StorageError as e:
        logger.error("Diagnostics failed for %s: %s", module_id, e)
        return _error(str(e), 500)
    return jsonify(report.to_dict())


@jobs_bp.get("/<job_id>")
def job_status(job_id: str):
    """Return progress and result of a translation job."""
    job = get_job(job_id)
    if not job:
        return _error("Job not found", 404)
    return jsonify(serialize_job(job))
