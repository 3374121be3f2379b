import logging
import os
from pathlib import Path

LOG_DIR = Path(os.environ.get("CMS_I18N_LOG_DIR", Path(__file__).parent.parent / "logs"))
LOG_FILE = LOG_DIR / "app.log"

LOG_DIR.mkdir(parents=True, exist_ok=True)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
_DISABLED_LEVEL = logging.CRITICAL + 1

# Cache for log mode to avoid repeated config reads
_log_mode_cache = None


def _get_log_mode():
    """Get log mode from configuration."""
    global _log_mode_cache
    if _log_mode_cache is not None:
        return _log_mode_cache

    try:
        from cms_i18n.config import load_config
        config = load_config()
        log_mode = config.get('log_mode', 'info')
        _log_mode_cache = log_mode
        return log_mode
    except ImportError:
        # config is still being imported; use the default until the cache is cleared
        return 'info'


def _levels_for_mode(log_mode: str):
    """Return (logger_level, console_level) for a log mode."""
    if log_mode == 'debug':
        return logging.DEBUG, logging.DEBUG
    if log_mode == 'off':
        return _DISABLED_LEVEL, _DISABLED_LEVEL
    return logging.INFO, logging.INFO


def _apply_log_mode(logger: logging.Logger, log_mode: str) -> None:
    """Bring an already configured logger in line with the log mode."""
    logger_level, console_level = _levels_for_mode(log_mode)
    logger.setLevel(logger_level)

    has_file_handler = any(isinstance(h, logging.FileHandler) for h in logger.handlers)

    # Add FileHandler if needed (when switching from off to debug/info)
    if log_mode != 'off' and not has_file_handler:
        f_handler = logging.FileHandler(LOG_FILE)
        f_handler.setLevel(logging.DEBUG)
        f_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(f_handler)
    elif log_mode == 'off' and has_file_handler:
        handlers_to_remove = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        for handler in handlers_to_remove:
            handler.close()
            logger.removeHandler(handler)

    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(console_level)


def _clear_log_mode_cache():
    """Clear the log mode cache and update all existing loggers (call this when config is updated)."""
    global _log_mode_cache
    _log_mode_cache = None

    log_mode = _get_log_mode()

    # Only update loggers that have handlers (i.e., were created by get_logger)
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        if logger.handlers:
            _apply_log_mode(logger, log_mode)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    log_mode = _get_log_mode()

    # Prevent duplicate handlers if logger already configured
    if logger.handlers:
        _apply_log_mode(logger, log_mode)
        return logger

    logger_level, console_level = _levels_for_mode(log_mode)
    logger.setLevel(logger_level)

    # Console handler - the file handler is attached by _apply_log_mode
    c_handler = logging.StreamHandler()
    c_handler.setLevel(console_level)
    c_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(c_handler)

    _apply_log_mode(logger, log_mode)
    return logger
