"""Unified logging configuration for the bake entrypoints.

Library modules only ever call ``logging.getLogger(__name__)``; handlers,
formatting and contextual fields are installed once by the entrypoint
(``scripts/bake_profiles.py`` or an embedding tool) through
:func:`setup_logging`.

Public API:
    setup_logging(**cfg.logging_settings.to_setup_kwargs(), context={"app": "bake"})
    get_logger(name)
    push_context(profile="skin")
    pop_context(keys=["profile"])
    install_excepthook()

Format examples:
    Human: 2026-10-17T09:12:44.512Z | INFO     | app=bake profile=skin | Regenerated kernels
    JSON: {"t":"2026-10-17T09:12:44.512000+00:00","lvl":"INFO","profile":"skin","msg":"..."}

Context uses contextvars, so concurrent bakes in threads do not mix fields.
Idempotent: repeated setup_logging() calls replace the handlers installed
here instead of stacking them.
"""

import contextvars
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


_fields: contextvars.ContextVar = contextvars.ContextVar('diffusion_profile_log_fields', default={})

_installed_handlers: List[logging.Handler] = []

_LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
_RESET = '\033[0m'

_ROTATING_HANDLERS = {
    # mode: (handler class, rotate-dict key -> handler kwarg, defaults)
    'size': (
        logging.handlers.RotatingFileHandler,
        {'max_bytes': 'maxBytes', 'backup_count': 'backupCount'},
        {'maxBytes': 10_000_000, 'backupCount': 5},
    ),
    'time': (
        logging.handlers.TimedRotatingFileHandler,
        {'when': 'when', 'interval': 'interval', 'backup_count': 'backupCount'},
        {'when': 'D', 'interval': 1, 'backupCount': 7},
    ),
}


class ContextFormatter(logging.Formatter):
    """Formatter that appends the fields pushed with :func:`push_context`.

    Two modes: ``"human"`` (pipe-separated, optional ANSI colors) and
    ``"json"`` (one object per line).
    """

    MODES = ("human", "json")

    def __init__(
        self,
        fmt_mode: str = "human",
        use_color: bool = True,
        tz: str = "UTC"
    ):
        super().__init__()
        if fmt_mode not in self.MODES:
            raise ValueError(f"Unknown log format mode: {fmt_mode}. Use 'human' or 'json'.")
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()
        self.tz = tz

    def _timestamp(self, record: logging.LogRecord) -> datetime:
        tzinfo = timezone.utc if self.tz == "UTC" else None
        return datetime.fromtimestamp(record.created, tz=tzinfo)

    def format(self, record: logging.LogRecord) -> str:
        fields = _fields.get()
        ts = self._timestamp(record)
        if self.fmt_mode == "json":
            return self._as_json(record, ts, fields)
        return self._as_text(record, ts, fields)

    def _as_json(self, record: logging.LogRecord, ts: datetime, fields: dict) -> str:
        payload = {
            't': ts.isoformat(),
            'lvl': record.levelname,
            'name': record.name,
            'pid': os.getpid(),
            'msg': record.getMessage(),
            **fields,
        }
        if record.exc_info:
            payload['exc'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)

    def _as_text(self, record: logging.LogRecord, ts: datetime, fields: dict) -> str:
        level = f"{record.levelname:8s}"
        if self.use_color:
            level = _LEVEL_COLORS.get(record.levelname, '') + level + _RESET

        columns = [ts.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z', level]
        if fields:
            columns.append(' '.join(f"{k}={v}" for k, v in fields.items()))
        columns.append(record.getMessage())

        text = ' | '.join(columns)
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    rotate: Optional[Dict[str, Any]] = None,
    tz: str = "UTC",
    capture_warnings: bool = True,
    quiet_libs: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Configure the root logger (idempotent).

    Parameters
    ----------
    log_level : str
        "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL"
    log_file : str, optional
        Log file path; None disables file logging
    json : bool
        JSON lines instead of the human format, for console and file
    color : bool
        ANSI colors on the console when it is a TTY, default True
    to_stderr : bool
        Attach a console handler, default True
    rotate : dict, optional
        {"mode": "size", "max_bytes": ..., "backup_count": ...} or
        {"mode": "time", "when": "D", "interval": 1, "backup_count": ...}
    tz : str
        "UTC" (default) or "local"
    capture_warnings : bool
        Route ``warnings.warn`` (e.g. numpy RuntimeWarning) into logging
    quiet_libs : list[str], optional
        Logger names forced to WARNING
    context : dict, optional
        Initial contextual fields (e.g. {"app": "bake"})

    Returns
    -------
    dict
        {"handlers": [...]} for callers that want to inspect them

    Raises
    ------
    ValueError
        Unknown level or rotation mode
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    root = logging.getLogger()
    # Only handlers installed here are replaced; foreign ones (pytest, IDEs) stay.
    while _installed_handlers:
        stale = _installed_handlers.pop()
        root.removeHandler(stale)
        stale.close()
    root.setLevel(level)

    mode = "json" if json else "human"
    handlers: List[logging.Handler] = []
    if to_stderr:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ContextFormatter(mode, use_color=color and not json, tz=tz))
        handlers.append(console)
    if log_file:
        handlers.append(_create_file_handler(log_file, rotate, json, tz))

    for handler in handlers:
        root.addHandler(handler)
    _installed_handlers.extend(handlers)

    if context:
        push_context(**context)

    for name in quiet_libs or []:
        logging.getLogger(name).setLevel(logging.WARNING)

    if capture_warnings:
        logging.captureWarnings(True)
        logging.getLogger('py.warnings').setLevel(logging.WARNING)

    return {'handlers': handlers}


def _create_file_handler(
    log_file: str,
    rotate: Optional[Dict[str, Any]],
    json_format: bool,
    tz: str
) -> logging.Handler:
    """Plain file handler, or a rotating one when ``rotate`` is given."""
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    if not rotate:
        handler: logging.Handler = logging.FileHandler(log_path)
    else:
        mode = rotate.get('mode', 'size')
        if mode not in _ROTATING_HANDLERS:
            raise ValueError(f"Unknown rotation mode: {mode}. Use 'size' or 'time'.")
        cls, key_map, defaults = _ROTATING_HANDLERS[mode]
        kwargs = dict(defaults)
        kwargs.update({key_map[k]: v for k, v in rotate.items() if k in key_map})
        handler = cls(log_path, **kwargs)

    handler.setFormatter(ContextFormatter("json" if json_format else "human", use_color=False, tz=tz))
    return handler


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``."""
    return logging.getLogger(name)


def push_context(**kwargs) -> None:
    """Add contextual fields to every subsequent log record.

    Examples
    --------
    >>> push_context(app="bake")
    >>> push_context(profile="skin")
    >>> logger.info("Packed")  # → "... | app=bake profile=skin | Packed"
    """
    _fields.set({**_fields.get(), **kwargs})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Remove the given contextual fields, or all of them when ``keys`` is None."""
    if keys is None:
        _fields.set({})
        return
    _fields.set({k: v for k, v in _fields.get().items() if k not in keys})


def get_context() -> Dict[str, Any]:
    """Return a copy of the current contextual fields."""
    return dict(_fields.get())


def install_excepthook() -> None:
    """Log uncaught exceptions (except Ctrl+C) at CRITICAL before exit."""
    previous = sys.excepthook

    def _log_uncaught(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            previous(exc_type, exc_value, exc_tb)
            return
        logging.getLogger("diffusion_profile").critical(
            "Uncaught exception", exc_info=(exc_type, exc_value, exc_tb)
        )

    sys.excepthook = _log_uncaught


def shutdown() -> None:
    """Flush and close all handlers; call at the end of main()."""
    logging.shutdown()
