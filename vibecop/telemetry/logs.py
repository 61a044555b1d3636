"""Conversion of daemon events into OpenTelemetry-style log records."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum

from vibecop.models import Event


class Severity(IntEnum):
    """Log severity numbers as defined by the OpenTelemetry log data model."""

    UNDEFINED = 0
    INFO = 9
    WARN = 13
    ERROR = 17


@dataclass
class LogRecord:
    """A single log record ready for export."""

    timestamp: datetime
    observed_timestamp: datetime
    severity: Severity
    severity_text: str
    body: str | None = None
    attributes: dict[str, str | int] = field(default_factory=dict)


_RFC3339 = re.compile(
    r"(\d{4}-\d{2}-\d{2})T(\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})"
)


def _parse_rfc3339(text: str) -> datetime | None:
    match = _RFC3339.fullmatch(text)
    if match is None:
        return None
    date, clock, fraction, zone = match.groups()
    micros = (fraction or "")[:6].ljust(6, "0")
    if zone == "Z":
        zone = "+00:00"
    try:
        return datetime.fromisoformat(f"{date}T{clock}.{micros}{zone}")
    except ValueError:
        return None


def severity_for(evt: Event) -> Severity:
    """An explicit level wins; otherwise the verdict decides the severity."""
    by_level = {"error": Severity.ERROR, "warn": Severity.WARN, "info": Severity.INFO}
    if evt.level in by_level:
        return by_level[evt.level]
    if evt.verdict == "deny":
        return Severity.ERROR
    if evt.verdict in ("escalate", "error"):
        return Severity.WARN
    return Severity.INFO


def severity_text_for(evt: Event) -> str:
    """The severity name shown alongside the number."""
    severity = severity_for(evt)
    if severity is Severity.ERROR:
        return "ERROR"
    if severity is Severity.WARN:
        return "WARN"
    return "INFO"


def event_to_log_record(evt: Event) -> LogRecord:
    """Convert a daemon event to a log record.

    The tool input is deliberately never exported: it routinely carries
    secrets and stays in the local audit log only.
    """
    now = datetime.now(timezone.utc)
    timestamp = _parse_rfc3339(evt.timestamp) or now

    if evt.message:
        body: str | None = evt.message
    elif evt.verdict:
        body = f"{evt.verdict}: {evt.reason}"
    else:
        body = None

    attributes: dict[str, str | int] = {}
    for key, value in (
        ("vibecop.tool", evt.tool),
        ("vibecop.verdict", evt.verdict),
        ("vibecop.reason", evt.reason),
        ("vibecop.harness", evt.harness),
        ("vibecop.hook_event", evt.hook_event),
    ):
        if value:
            attributes[key] = value
    if evt.latency_ms != 0:
        attributes["vibecop.latency_ms"] = evt.latency_ms

    return LogRecord(
        timestamp=timestamp,
        observed_timestamp=now,
        severity=severity_for(evt),
        severity_text=severity_text_for(evt),
        body=body,
        attributes=attributes,
    )