from __future__ import annotations

import json
import logging
import sys

import pytest

from planning_agent_orchestrator.orchestrator.logging import JsonFormatter, configure_logging


def _record(msg: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("planning.test", logging.INFO, __file__, 1, msg, None, None)
    record.__dict__.update(extra)
    return record


def test_json_formatter_includes_extra_fields() -> None:
    line = JsonFormatter().format(_record("Run started", run_id="r1", workflow_id="wf"))

    payload = json.loads(line)
    assert payload["message"] == "Run started"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "planning.test"
    assert payload["extra"] == {"run_id": "r1", "workflow_id": "wf"}


def test_json_formatter_renders_exceptions() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord(
            "planning.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
        )

    payload = json.loads(JsonFormatter().format(record))
    assert "RuntimeError: boom" in payload["exception"]
    assert "extra" not in payload


def test_configure_logging_replaces_handlers(monkeypatch: pytest.MonkeyPatch) -> None:
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)

    configure_logging("debug")
    configure_logging("warning")

    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JsonFormatter)
    assert root.level == logging.WARNING
    assert logging.getLogger("openai").level == logging.WARNING
