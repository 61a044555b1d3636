"""OTLP exporters and the per-target export pipelines built from configuration."""

from __future__ import annotations

import logging
import struct
import threading
import time
import urllib.request
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import grpc

from vibecop.models import TelemetryTarget
from vibecop.telemetry.logs import LogRecord
from vibecop.telemetry.metrics import Counter, Histogram
from vibecop.telemetry.spans import INSTRUMENTATION_NAME, Span, SpanKind, StatusCode

_log = logging.getLogger(__name__)

PROTOCOLS = ("grpc", "http")
SIGNALS = ("traces", "metrics", "logs")

_DEFAULT_ENDPOINTS = {"grpc": "localhost:4317", "http": "localhost:4318"}

_GRPC_METHODS = {
    "traces": "/opentelemetry.proto.collector.trace.v1.TraceService/Export",
    "metrics": "/opentelemetry.proto.collector.metrics.v1.MetricsService/Export",
    "logs": "/opentelemetry.proto.collector.logs.v1.LogsService/Export",
}

_SPAN_KINDS = {
    SpanKind.INTERNAL: 1,
    SpanKind.SERVER: 2,
    SpanKind.CLIENT: 3,
    SpanKind.PRODUCER: 4,
    SpanKind.CONSUMER: 5,
}
_STATUS_CODES = {StatusCode.UNSET: 0, StatusCode.OK: 1, StatusCode.ERROR: 2}

_CUMULATIVE = 2
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# --- protobuf wire encoding -------------------------------------------------


def _varint(value: int) -> bytes:
    value &= 0xFFFFFFFFFFFFFFFF
    out = bytearray()
    while True:
        low = value & 0x7F
        value >>= 7
        if value:
            out.append(low | 0x80)
        else:
            out.append(low)
            return bytes(out)


def _tag(number: int, wire: int) -> bytes:
    return _varint(number << 3 | wire)


def _len_field(number: int, data: bytes) -> bytes:
    return _tag(number, 2) + _varint(len(data)) + data


def _str_field(number: int, text: str) -> bytes:
    return _len_field(number, text.encode("utf-8")) if text else b""


def _varint_field(number: int, value: int) -> bytes:
    return _tag(number, 0) + _varint(value) if value else b""


def _fixed64_field(number: int, value: int) -> bytes:
    return _tag(number, 1) + struct.pack("<Q", value)


def _sfixed64_field(number: int, value: int) -> bytes:
    return _tag(number, 1) + struct.pack("<q", value)


def _double_field(number: int, value: float) -> bytes:
    return _tag(number, 1) + struct.pack("<d", value)


def _any_value(value: Any) -> bytes:
    if isinstance(value, bool):
        return _tag(2, 0) + _varint(int(value))
    if isinstance(value, int):
        return _tag(3, 0) + _varint(value)
    if isinstance(value, float):
        return _double_field(4, value)
    return _len_field(1, str(value).encode("utf-8"))


def _attributes(number: int, attributes: Mapping[str, Any]) -> bytes:
    return b"".join(
        _len_field(number, _str_field(1, key) + _len_field(2, _any_value(value)))
        for key, value in attributes.items()
    )


def _scope() -> bytes:
    return _str_field(1, INSTRUMENTATION_NAME)


def _wrap(resource: Mapping[str, Any], items: Iterable[bytes]) -> bytes:
    scoped = _len_field(1, _scope()) + b"".join(_len_field(2, i) for i in items)
    resourced = _len_field(1, _attributes(1, resource)) + _len_field(2, scoped)
    return _len_field(1, resourced)


def _unix_nanos(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    delta = moment - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1000


def _encode_span(span: Span) -> bytes:
    status = _str_field(2, span.status_description) + _varint_field(
        3, _STATUS_CODES[span.status_code]
    )
    parent = (
        _len_field(4, bytes.fromhex(span.parent_span_id)) if span.parent_span_id else b""
    )
    end = span.end_time_ns if span.end_time_ns is not None else span.start_time_ns
    return (
        _len_field(1, bytes.fromhex(span.trace_id))
        + _len_field(2, bytes.fromhex(span.span_id))
        + parent
        + _str_field(5, span.name)
        + _varint_field(6, _SPAN_KINDS[span.kind])
        + _fixed64_field(7, span.start_time_ns)
        + _fixed64_field(8, end)
        + _attributes(9, span.attributes)
        + _len_field(15, status)
    )


def _encode_log(record: LogRecord) -> bytes:
    body = _len_field(5, _any_value(record.body)) if record.body is not None else b""
    return (
        _fixed64_field(1, _unix_nanos(record.timestamp))
        + _varint_field(2, int(record.severity))
        + _str_field(3, record.severity_text)
        + body
        + _attributes(6, record.attributes)
        + _fixed64_field(11, _unix_nanos(record.observed_timestamp))
    )


def _encode_metric(instrument: Counter | Histogram, start_ns: int, now_ns: int) -> bytes:
    header = (
        _str_field(1, instrument.name)
        + _str_field(2, instrument.description)
        + _str_field(3, instrument.unit)
    )
    if isinstance(instrument, Counter):
        points = b"".join(
            _len_field(
                1,
                _attributes(7, point.attributes)
                + _fixed64_field(2, start_ns)
                + _fixed64_field(3, now_ns)
                + _sfixed64_field(6, point.value),
            )
            for point in instrument.collect()
        )
        data = points + _varint_field(2, _CUMULATIVE) + _varint_field(3, 1)
        return header + _len_field(7, data)
    if isinstance(instrument, Histogram):
        points = b"".join(
            _len_field(
                1,
                _attributes(9, point.attributes)
                + _fixed64_field(2, start_ns)
                + _fixed64_field(3, now_ns)
                + _fixed64_field(4, point.count)
                + _double_field(5, float(point.sum))
                + _len_field(6, b"".join(struct.pack("<Q", c) for c in point.bucket_counts))
                + _len_field(7, b"".join(struct.pack("<d", b) for b in point.boundaries))
                + _double_field(11, float(point.min))
                + _double_field(12, float(point.max)),
            )
            for point in instrument.collect()
        )
        return header + _len_field(9, points + _varint_field(2, _CUMULATIVE))
    raise TypeError(f"unsupported metric instrument: {type(instrument).__name__}")


# --- exporters --------------------------------------------------------------


class OtlpExporter:
    """Sends telemetry to one OTLP collector over gRPC or HTTP/protobuf."""

    def __init__(
        self,
        endpoint: str,
        protocol: str,
        insecure: bool = False,
        resource: Mapping[str, Any] | None = None,
        timeout: float = 10.0,
    ) -> None:
        proto = protocol.lower()
        if proto not in PROTOCOLS:
            raise ValueError(f"unknown protocol {protocol!r} (want grpc|http)")
        self.protocol = proto
        self.endpoint = endpoint or _DEFAULT_ENDPOINTS[proto]
        self.insecure = insecure
        self.resource: dict[str, Any] = dict(resource or {})
        self.timeout = timeout
        self.start_time_ns = time.time_ns()
        self._channel: grpc.Channel | None = None
        self._closed = False
        self._lock = threading.Lock()

    def encode(self, signal: str, payload: Iterable[Any]) -> bytes:
        """Encode a batch as an OTLP export request for the given signal."""
        if signal == "traces":
            return _wrap(self.resource, (_encode_span(s) for s in payload))
        if signal == "logs":
            return _wrap(self.resource, (_encode_log(r) for r in payload))
        if signal == "metrics":
            now = time.time_ns()
            return _wrap(
                self.resource,
                (_encode_metric(i, self.start_time_ns, now) for i in payload),
            )
        raise ValueError(f"unknown signal {signal!r} (want one of {', '.join(SIGNALS)})")

    def export(self, signal: str, payload: Iterable[Any]) -> None:
        """Send one batch of spans, log records or metric instruments."""
        if self._closed:
            raise RuntimeError("exporter is shut down")
        body = self.encode(signal, payload)
        if self.protocol == "grpc":
            self._export_grpc(signal, body)
        else:
            self._export_http(signal, body)

    def _export_http(self, signal: str, body: bytes) -> None:
        scheme = "http" if self.insecure else "https"
        request = urllib.request.Request(
            f"{scheme}://{self.endpoint}/v1/{signal}",
            data=body,
            method="POST",
            headers={"Content-Type": "application/x-protobuf"},
        )
        with urllib.request.urlopen(request, timeout=self.timeout) as response:
            response.read()

    def _export_grpc(self, signal: str, body: bytes) -> None:
        with self._lock:
            if self._channel is None:
                if self.insecure:
                    self._channel = grpc.insecure_channel(self.endpoint)
                else:
                    self._channel = grpc.secure_channel(
                        self.endpoint, grpc.ssl_channel_credentials()
                    )
            channel = self._channel
        call = channel.unary_unary(_GRPC_METHODS[signal])
        call(body, timeout=self.timeout)

    def shutdown(self) -> None:
        """Close the connection; later exports fail."""
        with self._lock:
            self._closed = True
            channel, self._channel = self._channel, None
        if channel is not None:
            channel.close()

    def __repr__(self) -> str:
        return f"OtlpExporter({self.endpoint!r}, {self.protocol!r})"


@dataclass
class Pipelines:
    """Exporters for each signal, gathered across all configured targets."""

    spans: list[OtlpExporter] = field(default_factory=list)
    metrics: list[OtlpExporter] = field(default_factory=list)
    logs: list[OtlpExporter] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.spans or self.metrics or self.logs)

    @property
    def exporters(self) -> list[OtlpExporter]:
        return [*self.spans, *self.metrics, *self.logs]


def build_per_target_pipelines(targets: Sequence[TelemetryTarget]) -> Pipelines:
    """Build exporters for every target; a failing target is logged and skipped."""
    pipelines = Pipelines()
    for index, target in enumerate(targets):
        proto = target.protocol.lower()
        if proto not in PROTOCOLS:
            _log.warning(
                "telemetry: target[%d] %r: unknown protocol %r (want grpc|http) — skipping",
                index,
                target.endpoint,
                target.protocol,
            )
            continue
        for signal, bucket in (
            ("span", pipelines.spans),
            ("metric", pipelines.metrics),
            ("log", pipelines.logs),
        ):
            try:
                bucket.append(OtlpExporter(target.endpoint, proto, target.insecure))
            except Exception as exc:  # one bad exporter must not stop its siblings
                _log.warning(
                    "telemetry: target[%d] %r: %s exporter: %s — skipping %ss",
                    index,
                    target.endpoint,
                    signal,
                    exc,
                    signal,
                )
    return pipelines