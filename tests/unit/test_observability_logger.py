# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from datetime import datetime, timezone
from typing import Any

import pytest

from observability import logger
from observability.metrics import timed


def test_log_event_emits_valid_jsonl(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """
    - log_event emits exactly one JSONL line
    - payload is preserved, with a ts_ms added when missing
    - output sink is patchable
    """
    captured: list[str] = []

    def fake_print(line: str) -> None:
        captured.append(line)

    # Patch the explicit output sink used by logger
    monkeypatch.setattr(logger, "_print", fake_print)
    monkeypatch.setattr(logger, "_enabled", True)

    payload: dict[str, Any] = {
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    assert len(captured) == 1

    decoded = json.loads(captured[0])
    assert isinstance(decoded.pop("ts_ms"), int)
    assert decoded == payload
    assert "ts_ms" not in payload


def test_caller_supplied_timestamp_is_kept(log_lines: list[str]) -> None:
    logger.log_event({"event_type": "TEST", "ts_ms": 5})

    assert json.loads(log_lines[0])["ts_ms"] == 5


def test_non_json_values_are_stringified(log_lines: list[str]) -> None:
    logger.log_event({"event_type": "TEST", "at": datetime(2025, 1, 15, tzinfo=timezone.utc)})

    assert json.loads(log_lines[0])["at"] == "2025-01-15 00:00:00+00:00"


def test_disabled_logger_writes_nothing(monkeypatch: pytest.MonkeyPatch, log_lines: list[str]) -> None:
    monkeypatch.setattr(logger, "_enabled", True)
    logger.configure(enabled=False)

    logger.log_event({"event_type": "TEST"})

    assert not log_lines


def test_timed_reports_outcome(log_lines: list[str]) -> None:
    with timed("calendar_free_busy", session_id="sess_1"):
        pass

    with pytest.raises(RuntimeError):
        with timed("calendar_free_busy", details={"calendars": 2}):
            raise RuntimeError("boom")

    ok, failed = (json.loads(line) for line in log_lines)
    assert ok["event_type"] == "METRIC_TIMER"
    assert ok["metric"] == "calendar_free_busy"
    assert ok["outcome"] == "ok"
    assert ok["session_id"] == "sess_1"
    assert failed["outcome"] == "error"
    assert failed["details"] == {"calendars": 2}
