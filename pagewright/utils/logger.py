# pagewright/utils/logger.py
from __future__ import annotations

import html
import json
import logging
import os
import re
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from rich.console import Console
from rich.highlighter import NullHighlighter
from rich.logging import RichHandler

from pagewright.utils.config import get_settings, LogLevel


__all__ = [
    "get_logger",
    "set_log_level",
    "configure_from",
    "bind",
    "unbind",
    "log_with_context",
    "attach_file_logger",
    "detach_file_logger",
    "redact",
    "HtmlFormatter",
    "JsonFormatter",
]


# ------------- Internal state -------------

_config_lock = threading.Lock()
_configured = False
_global_extra: Dict[str, Any] = {}  # optional global context attached to every record

_SENSITIVE = re.compile(r"(password|passwd|login)", re.IGNORECASE)


# ------------- Formatters -------------

class JsonFormatter(logging.Formatter):
    """
    Minimal JSON formatter.
    Keeps message as `msg` (string) and merges record.extra if present.
    """

    default_time_format = "%Y-%m-%dT%H:%M:%S"

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(self.default_time_format),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)

        payload["thread"] = record.threadName
        payload["process"] = record.process

        return json.dumps(payload, ensure_ascii=False, default=str)


class HtmlFormatter(logging.Formatter):
    """
    One escaped <p> per record, for the replay index.html.
    Records flagged with `raw_html=True` (links to screenshots / DOM captures)
    are written unescaped.
    """

    def __init__(self, tag: str = "") -> None:
        super().__init__()
        self.tag = tag

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds")
        msg = record.getMessage()
        if not getattr(record, "raw_html", False):
            msg = html.escape(msg)
        tag = f" {html.escape(self.tag)}" if self.tag else ""
        return f"<p>{record.levelname[0]}, [{ts}{tag}] {record.levelname} -- {record.name}: {msg}</p>"


# ------------- Helpers -------------

_LEVEL_MAP = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL,
}


def _ensure_configured() -> None:
    """
    Configure the package logger once based on settings.
    Subsequent calls are no-ops.
    """
    global _configured
    if _configured:
        return

    with _config_lock:
        if _configured:
            return

        settings = get_settings()
        level = _LEVEL_MAP.get(settings.LOG_LEVEL, logging.WARNING)
        if settings.VERBOSE:
            level = min(level, logging.INFO)
        if settings.DEBUG_MODE:
            level = logging.DEBUG

        root = logging.getLogger("pagewright")
        root.setLevel(level)
        root.propagate = False
        for h in list(root.handlers):
            root.removeHandler(h)

        console = Console(stderr=True, force_jupyter=False, color_system="auto")
        rich_handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
            highlighter=None if settings.COLORIZED_OUTPUT else NullHighlighter(),
            omit_repeated_times=False,
        )
        rich_handler.setFormatter(logging.Formatter("%(message)s"))
        rich_handler.setLevel(level)
        root.addHandler(rich_handler)

        if settings.LOG_TO_FILE:
            settings.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=str(settings.LOG_FILE),
                maxBytes=5 * 1024 * 1024,  # 5MB per file
                backupCount=5,
                encoding="utf-8",
                delay=True,
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(JsonFormatter())
            root.addHandler(file_handler)

        logging.getLogger("playwright").setLevel(max(level, logging.WARNING))

        _configured = True


def get_logger(name: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Get a configured logger wrapped with a LoggerAdapter
    that injects `_global_extra` into every log record.
    Names outside the package are nested under "pagewright".
    """
    _ensure_configured()
    name = name or "pagewright"
    if name != "pagewright" and not name.startswith("pagewright."):
        name = f"pagewright.{name}"
    return logging.LoggerAdapter(logging.getLogger(name), extra={"extra": _global_extra})


def set_log_level(level: LogLevel | str | int) -> None:
    """Dynamically adjust log level at runtime."""
    _ensure_configured()
    if isinstance(level, int):
        py_level = level
    else:
        lvl = level if isinstance(level, str) else level.value
        py_level = getattr(logging, lvl.upper(), logging.INFO)
    root = logging.getLogger("pagewright")
    root.setLevel(py_level)
    for h in root.handlers:
        h.setLevel(py_level)


def configure_from(config) -> None:
    """
    Apply `global.verbose` / `global.debug` from an EnvConfig.
    Verbose turns on INFO, debug turns on DEBUG.
    """
    if config.get_default(False, "global", "debug"):
        set_log_level(logging.DEBUG)
        get_logger(__name__).debug("Debug level logging enabled.")
    elif config.get_default(False, "global", "verbose"):
        set_log_level(logging.INFO)
        get_logger(__name__).info("Verbose/info level logging enabled.")


def redact(text: Any) -> str:
    """Return `text` as a string, or a placeholder if it mentions credentials."""
    s = str(text)
    if _SENSITIVE.search(s):
        return "[redacted]"
    return s


def bind(**kwargs: Any) -> None:
    """
    Bind global context (e.g., run_id="20261019T120000Z", site="github.com").
    Will be attached to every subsequent log line (file JSON + console).
    """
    _global_extra.update(kwargs)


def unbind(*keys: str) -> None:
    """Remove keys from global context."""
    for k in keys:
        _global_extra.pop(k, None)


def log_with_context(logger: logging.LoggerAdapter, **kwargs: Any):
    """
    Return a new LoggerAdapter that merges additional context for a scoped section.
    Usage:
        log = get_logger(__name__)
        page_log = log_with_context(log, page="LoginPage")
        page_log.info("entering")
    """
    merged = dict(_global_extra)
    merged.update(kwargs)
    return logging.LoggerAdapter(logger.logger, extra={"extra": merged})


# ------------- Dynamic per-run file logging -------------

def attach_file_logger(
    path: os.PathLike | str,
    level: Optional[int] = None,
    formatter: Optional[logging.Formatter] = None,
    mode: str = "a",
) -> logging.Handler:
    """
    Attach a file handler at runtime (JSON by default; the replay log passes an
    HtmlFormatter). Returns the handler so the caller can detach it later.
    """
    _ensure_configured()
    root = logging.getLogger("pagewright")
    lvl = level if level is not None else root.level
    p = os.fspath(path)
    os.makedirs(os.path.dirname(p) or ".", exist_ok=True)
    if mode == "w":
        fh: logging.Handler = logging.FileHandler(filename=p, mode="w", encoding="utf-8")
    else:
        fh = RotatingFileHandler(filename=p, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8", delay=True)
    fh.setLevel(lvl)
    fh.setFormatter(formatter or JsonFormatter())
    root.addHandler(fh)
    return fh


def detach_file_logger(handler: logging.Handler) -> None:
    """Remove a previously attached handler returned by attach_file_logger."""
    logging.getLogger("pagewright").removeHandler(handler)
    handler.close()
