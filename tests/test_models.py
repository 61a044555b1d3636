from dataclasses import asdict

import pytest

from vibecop.models import (
    ConfigResponse,
    Event,
    PendingEntry,
    TelemetryConfig,
    config_response_from_dict,
    event_from_dict,
    pending_entry_from_dict,
)


def test_event_round_trip():
    evt = Event(
        tool="Bash",
        input="swift build",
        verdict="approve",
        reason="Routine build",
        latency_ms=312,
        timestamp="2026-05-06T10:00:00Z",
        level="info",
        message="hello",
        harness="claude",
        hook_event="PreToolUse",
    )
    assert event_from_dict(asdict(evt)) == evt


def test_event_missing_fields_are_zero_values():
    assert event_from_dict({}) == Event()


def test_event_unknown_keys_ignored():
    assert event_from_dict({"tool": "Bash", "extra": 1}) == Event(tool="Bash")


def test_event_null_values_are_skipped():
    assert event_from_dict({"tool": None, "verdict": "deny"}) == Event(verdict="deny")


def test_event_non_mapping_raises():
    with pytest.raises(TypeError):
        event_from_dict(["tool", "Bash"])


def test_event_wrong_string_type_raises():
    with pytest.raises(TypeError):
        event_from_dict({"tool": 5})


def test_event_bool_for_int_raises():
    with pytest.raises(TypeError):
        event_from_dict({"latency_ms": True})


def test_event_float_for_int_raises():
    with pytest.raises(TypeError):
        event_from_dict({"latency_ms": 1.5})


def test_pending_entry_round_trip():
    entry = PendingEntry(
        project_hash="1234567890abcdef",
        key="k1",
        tool="Bash",
        input="rm -rf /",
        verdict="escalate",
        reason="destructive",
        timestamp="2026-05-07T10:00:00Z",
    )
    assert pending_entry_from_dict(asdict(entry)) == entry


def test_pending_entry_non_mapping_raises():
    with pytest.raises(TypeError):
        pending_entry_from_dict("h1")


def test_config_response_round_trip():
    cfg = ConfigResponse(
        endpoint="http://localhost:11434",
        api_format="anthropic",
        model="test-model",
        timeout_ms=5000,
        audit_enabled=True,
    )
    assert config_response_from_dict(asdict(cfg)) == cfg


def test_config_response_bad_bool_raises():
    with pytest.raises(TypeError):
        config_response_from_dict({"audit_enabled": "yes"})


def test_telemetry_config_defaults_disabled():
    cfg = TelemetryConfig()
    assert cfg.enabled is False
    assert cfg.targets == ()