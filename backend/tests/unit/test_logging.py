"""Tests for logging functionality."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest
import structlog

from animalmatch.core.logging import (
    APP_LOG_FILENAME,
    HTTP_LOG_FILENAME,
    ExcInfo,
    JSONFormatter,
    exception_processor,
    format_exception_for_json,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    structlog.reset_defaults()
    for name in ("httpx", "httpcore", "uvicorn", "uvicorn.access", "uvicorn.error"):
        target = logging.getLogger(name)
        for handler in target.handlers[:]:
            handler.close()
            target.removeHandler(handler)
        target.propagate = True
    logging.basicConfig(handlers=[logging.NullHandler()], force=True)


def _read_json_lines(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text().splitlines() if line.startswith("{")]


def test_format_exception_for_json_with_exception() -> None:
    """Test format_exception_for_json with a real exception."""
    try:
        raise ValueError("Test error message")
    except ValueError:
        exc_info: ExcInfo = sys.exc_info()  # type: ignore[assignment]

    result = format_exception_for_json(exc_info)

    assert result["exception_type"] == "ValueError"
    assert result["exception_message"] == "Test error message"
    assert result["exception_module"] == "builtins"

    frames = result["traceback_frames"]
    assert isinstance(frames, list)
    assert frames[0]["function"] == "test_format_exception_for_json_with_exception"
    assert frames[0]["source_line"] == 'raise ValueError("Test error message")'
    assert "ValueError: Test error message" in result["traceback_text"]


def test_format_exception_for_json_with_none() -> None:
    assert format_exception_for_json(None) == {}
    assert format_exception_for_json((None, None, None)) == {}


class TestExceptionProcessor:
    """Test the structlog processor that structures exc_info."""

    def test_exc_info_true_uses_current_exception(self) -> None:
        try:
            raise KeyError("missing")
        except KeyError:
            event = exception_processor(None, "error", {"event": "boom", "exc_info": True})  # type: ignore[arg-type]

        assert "exc_info" not in event
        assert event["exception"]["exception_type"] == "KeyError"
        assert event["exception_summary"] == "KeyError: 'missing'"

    def test_exception_instance(self) -> None:
        error = RuntimeError("catalog exploded")

        event = exception_processor(None, "error", {"event": "boom", "exc_info": error})  # type: ignore[arg-type]

        assert event["exception_summary"] == "RuntimeError: catalog exploded"

    def test_no_exception(self) -> None:
        event = exception_processor(None, "info", {"event": "fine"})  # type: ignore[arg-type]

        assert event == {"event": "fine"}


def test_json_formatter() -> None:
    record = logging.LogRecord(
        name="httpx",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg="HTTP Request: %s",
        args=("POST https://facilitator.test/verify",),
        exc_info=None,
    )

    data = json.loads(JSONFormatter().format(record))

    assert data["level"] == "WARNING"
    assert data["logger"] == "httpx"
    assert data["message"] == "HTTP Request: POST https://facilitator.test/verify"
    assert data["timestamp"].endswith("Z")


def test_setup_logging_console_mode(capsys: pytest.CaptureFixture[str]) -> None:
    """Debug mode without a logs dir renders to stdout."""
    setup_logging(debug=True)

    structlog.get_logger("test.logger").info("Console message", key="value")

    assert "Console message" in capsys.readouterr().out


def test_setup_logging_json_to_stdout(capsys: pytest.CaptureFixture[str]) -> None:
    setup_logging(debug=False)

    try:
        raise ValueError("Test error")
    except ValueError:
        structlog.get_logger("test.logger").exception("An error occurred", extra="context")

    lines = [line for line in capsys.readouterr().out.splitlines() if line.startswith("{")]
    log_data = json.loads(lines[-1])

    assert log_data["event"] == "An error occurred"
    assert log_data["level"] == "error"
    assert log_data["extra"] == "context"
    assert log_data["exception"]["exception_type"] == "ValueError"
    assert log_data["exception_summary"] == "ValueError: Test error"


def test_setup_logging_writes_files(tmp_path: Path) -> None:
    logs_dir = tmp_path / "logs"

    setup_logging(debug=True, logs_dir=logs_dir)
    structlog.get_logger("test.logger").info("File message", animal="Ant")
    logging.getLogger("httpx").warning("facilitator slow")
    logging.getLogger("httpx").info("below threshold")

    app_lines = _read_json_lines(logs_dir / APP_LOG_FILENAME)
    assert any(line["event"] == "File message" and line["animal"] == "Ant" for line in app_lines)

    http_lines = _read_json_lines(logs_dir / HTTP_LOG_FILENAME)
    assert [line["message"] for line in http_lines] == ["facilitator slow"]


def test_setup_logging_explicit_level() -> None:
    setup_logging(debug=True, level="WARNING")

    assert logging.getLogger().level == logging.WARNING
