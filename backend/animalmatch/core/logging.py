"""Logging setup: structlog over stdlib logging, JSON in production."""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from structlog.types import EventDict

ExcInfo = tuple[type[BaseException] | None, BaseException | None, TracebackType | None]

TracebackFrame = dict[str, str | int | None]

ExceptionDetails = dict[str, None | str | list[TracebackFrame]]

APP_LOG_FILENAME = "animalmatch.json.log"
HTTP_LOG_FILENAME = "animalmatch.http.json.log"

# Loggers of the HTTP client used to talk to the payment facilitator
HTTP_CLIENT_LOGGERS = ("httpx", "httpcore", "httpcore.connection", "httpcore.http11")

UVICORN_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")


def _as_exc_info(value: Any) -> ExcInfo | None:
    """Normalize the forms structlog accepts for ``exc_info``."""
    if value is True:
        value = sys.exc_info()
    elif isinstance(value, BaseException):
        value = (type(value), value, value.__traceback__)

    if not isinstance(value, tuple) or value[0] is None:
        return None
    return value  # type: ignore[return-value]


def format_exception_for_json(exc_info: ExcInfo | None) -> ExceptionDetails:
    """Break an exception into JSON-friendly fields.

    Returns an empty dict when there is no exception. Otherwise the result
    carries the type, message and module of the exception and, when a
    traceback is attached, one entry per frame plus the rendered text.
    """
    if exc_info is None or exc_info[0] is None:
        return {}

    exc_type, exc_value, exc_tb = exc_info
    details: ExceptionDetails = {
        "exception_type": exc_type.__name__,
        "exception_message": str(exc_value) if exc_value is not None else None,
        "exception_module": exc_type.__module__,
    }
    if exc_tb is None:
        return details

    frames: list[TracebackFrame] = []
    for summary in traceback.extract_tb(exc_tb):
        frame: TracebackFrame = {
            "filename": summary.filename,
            "lineno": summary.lineno,
            "function": summary.name,
        }
        if summary.line:
            frame["source_line"] = summary.line
        frames.append(frame)

    details["traceback_frames"] = frames
    details["traceback_text"] = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
    return details


def exception_processor(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Replace exc_info with structured exception fields.

    Adds an ``exception`` dict and a one-line ``exception_summary`` so
    failures in the retrieval endpoint can be grepped in JSON logs.
    """
    exc_info = _as_exc_info(event_dict.pop("exc_info", None))
    details = format_exception_for_json(exc_info)
    if not details:
        return event_dict

    event_dict["exception"] = details
    if details["exception_message"]:
        event_dict["exception_summary"] = (
            f"{details['exception_type']}: {details['exception_message']}"
        )
    return event_dict


class JSONFormatter(logging.Formatter):
    """One JSON object per stdlib record (HTTP client logs)."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat().replace(
                "+00:00", "Z"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        trace_id = structlog.contextvars.get_contextvars().get("trace_id")
        if trace_id:
            entry["trace_id"] = trace_id
        if record.exc_info:
            entry["exception"] = format_exception_for_json(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


def _route_logger(name: str, handler: logging.Handler, level: int | None = None) -> None:
    """Send a stdlib logger exclusively to one handler."""
    target = logging.getLogger(name)
    if level is not None:
        target.setLevel(level)
    target.propagate = False
    for existing in target.handlers[:]:
        existing.close()
        target.removeHandler(existing)
    target.addHandler(handler)


def setup_logging(
    debug: bool = False,
    logs_dir: Path | None = None,
    level: str | None = None,
) -> None:
    """Setup structured logging with structlog.

    Configures:
    - Application logs: stdout (pretty in debug, JSON otherwise), or a JSON
      file when logs_dir is given
    - HTTP client logs (httpx/httpcore): separate JSON file at WARNING level
    - Uvicorn logs: always stdout

    Args:
        debug: Enable debug logging
        logs_dir: Optional directory for JSON log files
        level: Explicit level name, overriding the debug default
    """
    log_level = logging.getLevelName(level) if level else (logging.DEBUG if debug else logging.INFO)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)

    app_handlers: list[logging.Handler] = []
    app_file_handler: logging.Handler | None = None
    http_file_handler: logging.Handler | None = None

    if logs_dir:
        try:
            logs_dir.mkdir(parents=True, exist_ok=True)

            app_file_handler = logging.FileHandler(logs_dir / APP_LOG_FILENAME, encoding="utf-8")
            app_file_handler.setLevel(log_level)
            app_handlers.append(app_file_handler)

            http_file_handler = logging.FileHandler(logs_dir / HTTP_LOG_FILENAME, encoding="utf-8")
            http_file_handler.setLevel(logging.DEBUG)
            http_file_handler.setFormatter(JSONFormatter())
        except OSError as e:
            sys.stderr.write(f"Warning: Failed to setup file logging: {e}\n")

    if not app_file_handler:
        app_handlers.append(stdout_handler)

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=app_handlers,
        force=True,
    )

    # Uvicorn output is unstructured, keep it on stdout and out of the JSON file
    for name in UVICORN_LOGGERS:
        _route_logger(name, stdout_handler)

    if http_file_handler:
        for name in HTTP_CLIENT_LOGGERS:
            _route_logger(name, http_file_handler, logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        exception_processor,
        structlog.processors.format_exc_info,
    ]

    if debug and not app_file_handler:
        renderer: Any = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.getLogger().setLevel(log_level)

    logger = structlog.get_logger("animalmatch.logging")
    logger.info(
        "Logging configured",
        level=logging.getLevelName(log_level),
        debug=debug,
        app_log_file=str(logs_dir / APP_LOG_FILENAME) if app_file_handler and logs_dir else None,
        http_log_file=str(logs_dir / HTTP_LOG_FILENAME) if http_file_handler and logs_dir else None,
    )
