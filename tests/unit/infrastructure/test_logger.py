# tests/unit/infrastructure/test_logger.py
from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from appstore_reports.infrastructure.logging.logger import (
    _JsonFormatter,  # internal but importable
    clear_run_context,
    configure_root_logging,
    get_item_index,
    get_json_logger,
    get_run_id,
    set_run_context,
)


def _capture_log(record_msg: str, level: int = logging.INFO, **extra) -> dict:
    """Build a record with arbitrary extra attributes and return its JSON payload."""
    logger = logging.getLogger("test.logger")
    record = logger.makeRecord(
        name=logger.name,
        level=level,
        fn="test_logger",
        lno=123,
        msg=record_msg,
        args=(),
        exc_info=None,
        extra=extra or None,
    )
    return json.loads(_JsonFormatter().format(record))


def test_configure_root_logging_installs_json_handler_once(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Root logger gets one JSON handler and respects LOG_LEVEL."""
    monkeypatch.setenv("LOG_LEVEL", "debug")
    root = logging.getLogger()
    saved = root.handlers[:]
    saved_level = root.level
    root.handlers.clear()
    try:
        configure_root_logging()
        configure_root_logging()

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, _JsonFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

        configure_root_logging("warning")
        assert root.level == logging.WARNING
    finally:
        root.handlers[:] = saved
        root.setLevel(saved_level)
        for name in ("httpx", "httpcore"):
            logging.getLogger(name).setLevel(logging.NOTSET)


def test_json_formatter_basic_fields() -> None:
    payload = _capture_log("hello-world")

    assert payload["message"] == "hello-world"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert "ts" in payload
    assert "run_id" not in payload
    assert "item_index" not in payload


def test_json_formatter_merges_extra_fields() -> None:
    payload = _capture_log("appstore.resolve.stage", stage="report", candidates=2)

    assert payload["stage"] == "report"
    assert payload["candidates"] == 2


def test_run_context_enriches_every_line() -> None:
    set_run_context(run_id="run-1")
    set_run_context(item_index=0)

    payload = _capture_log("inside-run")
    assert payload["run_id"] == "run-1"
    assert payload["item_index"] == 0
    assert get_run_id() == "run-1"
    assert get_item_index() == 0

    # Item index moves on; run id is kept.
    set_run_context(item_index=3)
    assert _capture_log("next-item")["item_index"] == 3
    assert _capture_log("next-item")["run_id"] == "run-1"

    clear_run_context()
    assert "run_id" not in _capture_log("after-run")


def test_json_formatter_includes_exception_info(caplog: pytest.LogCaptureFixture) -> None:
    logger = get_json_logger("test.logger.exc")

    with caplog.at_level(logging.ERROR, logger="test.logger.exc"):
        try:
            raise ValueError("boom")
        except ValueError:
            logger.exception("failure")

    payload = json.loads(_JsonFormatter().format(caplog.records[-1]))
    assert payload["level"] == "ERROR"
    assert payload["exc_type"] == "ValueError"
    assert payload["exc_message"] == "boom"


def test_non_json_values_are_stringified() -> None:
    payload = _capture_log("odd-values", path=Path("/tmp/reports"))

    assert payload["path"] == "/tmp/reports"
