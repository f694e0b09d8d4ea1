# tests/unit/tracking/test_unit_event_sink.py - v1
"""Tests for tracking/event_sink.py."""

from __future__ import annotations

import json
import logging

from shelfscan.tracking.event_sink import (
    EventSink,
    JsonlEventSink,
    LoggingEventSink,
    MemoryEventSink,
    safe_record,
)
from shelfscan.tracking.models import SinkEvent


class BrokenSink(EventSink):
    def record(self, event):
        raise OSError("disk full")


class TestSinks:
    def test_memory_named(self):
        sink = MemoryEventSink()
        sink.record(SinkEvent(name="a"))
        sink.record(SinkEvent(name="b"))
        assert [e.name for e in sink.named("b")] == ["b"]

    def test_jsonl_appends(self, tmp_path):
        path = tmp_path / "events" / "faults.jsonl"
        sink = JsonlEventSink(path)
        sink.record(SinkEvent(name="consistency_fault", level="error", data={"key": "1"}))
        sink.record(SinkEvent(name="misidentification_report"))
        lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
        assert [line["name"] for line in lines] == ["consistency_fault", "misidentification_report"]
        assert lines[0]["data"] == {"key": "1"}

    def test_logging_sink_level(self, caplog):
        with caplog.at_level(logging.INFO, logger="test.events"):
            LoggingEventSink("test.events").record(SinkEvent(name="tier_transient_error", level="warning"))
        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.data["name"] == "tier_transient_error"

    def test_safe_record_absorbs_failures(self):
        safe_record(BrokenSink(), SinkEvent(name="x"))
        safe_record(None, SinkEvent(name="x"))
