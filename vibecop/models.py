"""Data records exchanged with the vibecop daemon and telemetry configuration."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any, TypeVar

DEFAULT_SERVICE_NAME = "vibecopd"

_T = TypeVar("_T")


@dataclass(frozen=True)
class Event:
    """One event streamed by the daemon: a tool verdict, a log line, or both."""

    tool: str = ""
    input: str = ""
    verdict: str = ""
    reason: str = ""
    latency_ms: int = 0
    timestamp: str = ""
    level: str = ""
    message: str = ""
    harness: str = ""
    hook_event: str = ""


@dataclass(frozen=True)
class PendingEntry:
    """An escalation waiting for a human decision."""

    project_hash: str = ""
    key: str = ""
    tool: str = ""
    input: str = ""
    verdict: str = ""
    reason: str = ""
    timestamp: str = ""


@dataclass(frozen=True)
class ConfigResponse:
    """The daemon's effective configuration snapshot."""

    endpoint: str = ""
    api_format: str = ""
    model: str = ""
    timeout_ms: int = 0
    audit_enabled: bool = False


@dataclass(frozen=True)
class TelemetryTarget:
    """One OTLP collector that telemetry is exported to."""

    endpoint: str = ""
    protocol: str = ""
    insecure: bool = False


@dataclass(frozen=True)
class TelemetryConfig:
    """Telemetry settings: whether it is on, the service name and the targets."""

    enabled: bool = False
    service_name: str = ""
    targets: tuple[TelemetryTarget, ...] = ()


def _matches(value: Any, expected: type) -> bool:
    if expected is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, expected)


def _build(cls: type[_T], data: Any) -> _T:
    if not isinstance(data, Mapping):
        raise TypeError(
            f"{cls.__name__} data must be a mapping, not {type(data).__name__}"
        )
    values: dict[str, Any] = {}
    for f in fields(cls):  # type: ignore[arg-type]
        value = data.get(f.name)
        if value is None:
            continue
        expected = type(f.default)
        if not _matches(value, expected):
            raise TypeError(
                f"{cls.__name__}.{f.name}: expected {expected.__name__}, "
                f"got {type(value).__name__}"
            )
        values[f.name] = value
    return cls(**values)


def event_from_dict(data: Any) -> Event:
    """Build an Event from decoded JSON, ignoring unknown keys."""
    return _build(Event, data)


def pending_entry_from_dict(data: Any) -> PendingEntry:
    """Build a PendingEntry from decoded JSON, ignoring unknown keys."""
    return _build(PendingEntry, data)


def config_response_from_dict(data: Any) -> ConfigResponse:
    """Build a ConfigResponse from decoded JSON, ignoring unknown keys."""
    return _build(ConfigResponse, data)