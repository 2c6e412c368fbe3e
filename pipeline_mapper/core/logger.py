import json
import logging
import os
import sys
import threading
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone
from typing import Callable, Dict, Any, Optional, TYPE_CHECKING
from pathlib import Path

if TYPE_CHECKING:
    from ..infrastructure.config.settings import LoggingSettings

# One StructuredLogger per name; handlers live on the shared logging.Logger
_logger_cache: Dict[str, 'StructuredLogger'] = {}
_cache_lock = threading.RLock()


# --- Custom JSON Formatter ---

class CustomJsonEncoder(json.JSONEncoder):
    """JSON encoder that handles datetime, Enum and class objects in log payloads."""
    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if hasattr(obj, 'name') and hasattr(obj, 'value'):  # Enum-like
            return obj.value
        if isinstance(obj, (set, frozenset, tuple)):
            return list(obj)
        if isinstance(obj, type):
            return obj.__name__
        return super().default(obj)


class JsonFormatter(logging.Formatter):
    """Formats log records into a JSON string."""

    def _sanitize_dict(self, d: dict) -> dict:
        """Recursively sanitize dictionary keys and values."""
        sanitized = {}
        for k, v in d.items():
            str_key = str(k)
            if isinstance(v, dict):
                sanitized[str_key] = self._sanitize_dict(v)
            elif isinstance(v, (list, tuple)):
                sanitized[str_key] = [self._sanitize_dict(item) if isinstance(item, dict) else item for item in v]
            else:
                sanitized[str_key] = v
        return sanitized

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.msg, dict):
            message_dict = self._sanitize_dict(record.msg)
        else:
            message_dict = {"message": record.getMessage()}

        log_object = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "funcName": record.funcName,
            "lineno": record.lineno,
            **message_dict,
        }
        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_object, cls=CustomJsonEncoder)


class StructuredLogger:
    """
    Thin wrapper over ``logging.Logger`` that emits one JSON object per event.

    Events are identified by a dotted ``event_type`` (``graph_store.node_added``)
    and carry a flat ``data`` dictionary.
    """

    def __init__(self, name: str, config: 'LoggingSettings', filename: Optional[str] = None):
        self.logger = logging.getLogger(name)
        self.logger.propagate = False

        level = getattr(config, 'level', 'INFO')
        self.logger.setLevel(getattr(logging, str(getattr(level, 'value', level)).upper(), logging.INFO))

        structured = getattr(config, 'structured_logging', True)
        if getattr(config, 'console_enabled', True):
            self._ensure_handler(
                lambda h: type(h) is logging.StreamHandler and h.stream is sys.stdout,
                lambda: logging.StreamHandler(sys.stdout),
                structured
            )

        log_file = self._resolve_log_file(name, config, filename)
        if log_file:
            max_bytes = getattr(config, 'max_file_size_mb', 10) * 1024 * 1024
            backup_count = getattr(config, 'backup_count', 3)
            self._ensure_handler(
                lambda h: isinstance(h, RotatingFileHandler) and h.baseFilename == log_file,
                lambda: self._open_file_handler(log_file, max_bytes, backup_count),
                structured
            )

    @staticmethod
    def _resolve_log_file(name: str, config: Any, filename: Optional[str]) -> Optional[str]:
        """Absolute log file path, or None when file logging is off."""
        if not filename:
            if not getattr(config, 'file_enabled', False):
                return None
            filename = f"{name}.jsonl"
        return os.path.abspath(str(Path(getattr(config, 'log_dir', 'logs')) / filename))

    @staticmethod
    def _open_file_handler(log_file: str, max_bytes: int, backup_count: int) -> Optional[logging.Handler]:
        try:
            os.makedirs(os.path.dirname(log_file), exist_ok=True)
            return RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8')
        except OSError as e:
            # Report on stderr so a missing log file is never silent
            print(f"ERROR: Failed to create file handler for {log_file}: {e}", file=sys.stderr)
            return None

    def _ensure_handler(self, matches: Callable[[logging.Handler], bool],
                        build: Callable[[], Optional[logging.Handler]], structured: bool) -> None:
        """
        Attach a handler unless an equivalent one is already present.

        The underlying ``logging.Logger`` is process-wide, so configuring the
        same name twice must not duplicate output.
        """
        if any(matches(h) for h in self.logger.handlers):
            return

        handler = build()
        if handler is None:
            return
        if structured:
            handler.setFormatter(JsonFormatter())
        else:
            handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        self.logger.addHandler(handler)

    def _log(self, level: int, event_type: str, data: Dict[str, Any]):
        payload = {"event_type": event_type, "data": data}
        self.logger.log(level, payload)

    def info(self, event_type: str, data: Dict[str, Any] = None):
        self._log(logging.INFO, event_type, data or {})

    def warning(self, event_type: str, data: Dict[str, Any] = None):
        self._log(logging.WARNING, event_type, data or {})

    def error(self, event_type: str, data: Dict[str, Any] = None, exc_info=False):
        """
        Log an error event.

        Args:
            event_type: Type of error event
            data: Optional error context data
            exc_info: Include exception info (default: False)
        """
        payload = {"event_type": event_type, "data": data or {}}
        self.logger.error(payload, exc_info=exc_info)

    def debug(self, event_type: str, data: Dict[str, Any] = None):
        self._log(logging.DEBUG, event_type, data or {})


class _FallbackLoggingConfig:
    level = "INFO"
    console_enabled = True
    file_enabled = False
    structured_logging = True
    log_dir = "logs"
    max_file_size_mb = 10
    backup_count = 3


def get_logger(name: str) -> StructuredLogger:
    """
    Get a cached structured logger instance for the given name.

    The first call for a name reads logging settings from the working
    directory configuration; later calls return the cached instance so that
    handlers are never attached twice.

    Args:
        name: Logger name (typically __name__ of calling module)

    Returns:
        Cached StructuredLogger instance (one per name)
    """
    if name in _logger_cache:
        return _logger_cache[name]

    with _cache_lock:
        if name in _logger_cache:
            return _logger_cache[name]

        from ..infrastructure.config.config_loader import get_settings_from_working_directory
        try:
            settings = get_settings_from_working_directory()
            logger = StructuredLogger(name, settings.logging)
        except Exception as e:
            # A broken config must not take logging down with it
            print(f"WARNING: Failed to load config for logger '{name}': {e}", file=sys.stderr)
            logger = StructuredLogger(name, _FallbackLoggingConfig())

        _logger_cache[name] = logger
        return logger


def reset_logger_cache() -> None:
    """Drop cached loggers so the next get_logger() call re-reads settings."""
    with _cache_lock:
        _logger_cache.clear()
