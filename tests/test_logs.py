from datetime import datetime, timezone

import pytest

from vibecop.models import Event
from vibecop.telemetry.logs import (
    Severity,
    event_to_log_record,
    severity_for,
    severity_text_for,
)


def test_event_to_log_record_verdict():
    evt = Event(
        tool="Bash",
        input="swift build",
        verdict="approve",
        reason="Routine build",
        latency_ms=312,
        timestamp="2026-05-06T10:00:00Z",
    )
    rec = event_to_log_record(evt)

    assert rec.severity is Severity.INFO
    assert rec.timestamp == datetime(2026, 5, 6, 10, 0, 0, tzinfo=timezone.utc)
    assert rec.attributes["vibecop.tool"] == "Bash"
    assert rec.attributes["vibecop.verdict"] == "approve"
    assert rec.attributes["vibecop.latency_ms"] == 312
    assert "vibecop.input" not in rec.attributes


def test_event_to_log_record_verdict_body():
    evt = Event(tool="Bash", verdict="approve", reason="Routine build")
    assert event_to_log_record(evt).body == "approve: Routine build"


def test_event_to_log_record_harness_and_hook_event():
    evt = Event(verdict="deny", reason="blocked", harness="claude", hook_event="PreToolUse")
    got = event_to_log_record(evt).attributes
    assert got["vibecop.harness"] == "claude"
    assert got["vibecop.hook_event"] == "PreToolUse"


def test_event_to_log_record_empty_harness_dropped():
    got = event_to_log_record(Event(verdict="approve")).attributes
    assert "vibecop.harness" not in got
    assert "vibecop.hook_event" not in got


def test_zero_latency_not_exported():
    got = event_to_log_record(Event(verdict="approve", tool="Bash")).attributes
    assert "vibecop.latency_ms" not in got


@pytest.mark.parametrize(
    "evt, want",
    [
        (Event(verdict="deny"), Severity.ERROR),
        (Event(verdict="escalate"), Severity.WARN),
        (Event(verdict="error"), Severity.WARN),
        (Event(verdict="approve"), Severity.INFO),
        (Event(level="error", message="oops"), Severity.ERROR),
        (Event(level="warn", message="suspended"), Severity.WARN),
        (Event(level="info", verdict="deny"), Severity.INFO),
    ],
    ids=[
        "deny verdict",
        "escalate verdict",
        "error verdict",
        "approve verdict",
        "explicit error level",
        "explicit warn level",
        "explicit info level overrides deny",
    ],
)
def test_event_to_log_record_severity(evt, want):
    assert event_to_log_record(evt).severity is want
    assert severity_for(evt) is want


@pytest.mark.parametrize(
    "evt, want",
    [
        (Event(verdict="deny"), "ERROR"),
        (Event(verdict="escalate"), "WARN"),
        (Event(verdict="approve"), "INFO"),
    ],
)
def test_severity_text(evt, want):
    assert severity_text_for(evt) == want
    assert event_to_log_record(evt).severity_text == want


def test_event_to_log_record_message_body():
    rec = event_to_log_record(Event(level="error", message="VibeCop suspended"))
    assert rec.body == "VibeCop suspended"


def test_no_message_no_verdict_has_no_body():
    assert event_to_log_record(Event(tool="Bash")).body is None


def test_unparseable_timestamp_falls_back_to_now():
    before = datetime.now(timezone.utc)
    rec = event_to_log_record(Event(verdict="approve", timestamp="not a time"))
    after = datetime.now(timezone.utc)
    assert before <= rec.timestamp <= after
    assert before <= rec.observed_timestamp <= after


def test_timestamp_with_offset_and_nanoseconds():
    rec = event_to_log_record(Event(timestamp="2026-05-06T12:00:00.123456789+02:00"))
    assert rec.timestamp == datetime(2026, 5, 6, 10, 0, 0, 123456, tzinfo=timezone.utc)