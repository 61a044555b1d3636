"""Lightweight tracing: spans for permission checks and evaluator calls."""

from __future__ import annotations

import secrets
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from types import TracebackType

INSTRUMENTATION_NAME = "vibecop"

_INVALID_TRACE_ID = "0" * 32
_INVALID_SPAN_ID = "0" * 16


class SpanKind(Enum):
    """The role a span plays in a trace."""

    INTERNAL = "internal"
    SERVER = "server"
    CLIENT = "client"
    PRODUCER = "producer"
    CONSUMER = "consumer"


class StatusCode(Enum):
    """Span outcome."""

    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


class Span:
    """A timed operation with attributes and a status."""

    def __init__(
        self,
        name: str,
        kind: SpanKind,
        attributes: Mapping[str, object],
        trace_id: str,
        span_id: str,
        parent_span_id: str | None,
        recording: bool,
        on_end: Callable[[Span], None],
    ) -> None:
        self.name = name
        self.kind = kind
        self.attributes: dict[str, object] = dict(attributes) if recording else {}
        self.trace_id = trace_id
        self.span_id = span_id
        self.parent_span_id = parent_span_id
        self.is_recording = recording
        self.status_code = StatusCode.UNSET
        self.status_description = ""
        self.start_time_ns = time.time_ns()
        self.end_time_ns: int | None = None
        self._on_end = on_end

    @property
    def is_valid(self) -> bool:
        """True when the span carries real trace and span identifiers."""
        return self.span_id != _INVALID_SPAN_ID

    @property
    def ended(self) -> bool:
        return self.end_time_ns is not None

    def set_attributes(self, attributes: Mapping[str, object]) -> None:
        """Add or replace attributes; ignored once ended or when not recording."""
        if self.is_recording and not self.ended:
            self.attributes.update(attributes)

    def set_status(self, code: StatusCode, description: str = "") -> None:
        """Set the outcome. OK is final; a description is kept only for ERROR."""
        if not self.is_recording or self.ended or code is StatusCode.UNSET:
            return
        if self.status_code is StatusCode.OK:
            return
        self.status_code = code
        self.status_description = description if code is StatusCode.ERROR else ""

    def end(self) -> None:
        """Finish the span. Calling it again has no effect."""
        if self.ended:
            return
        self.end_time_ns = time.time_ns()
        if self.is_recording:
            self._on_end(self)

    def __enter__(self) -> Span:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc is not None and self.status_code is StatusCode.UNSET:
            self.set_status(StatusCode.ERROR, str(exc))
        self.end()
        return False

    def __repr__(self) -> str:
        return f"Span(name={self.name!r}, span_id={self.span_id!r})"


class Tracer:
    """Creates spans and hands finished ones to its processors.

    A tracer built with ``recording=False`` is a no-op: its spans record
    nothing and are never passed on.
    """

    def __init__(
        self,
        name: str = INSTRUMENTATION_NAME,
        *,
        recording: bool = True,
        processors: Iterable[Callable[[Span], None]] = (),
        keep_ended: bool = True,
    ) -> None:
        self.name = name
        self.recording = recording
        self.processors = list(processors)
        self.keep_ended = keep_ended
        self.ended: list[Span] = []
        self._lock = threading.Lock()

    def start_span(
        self,
        name: str,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Mapping[str, object] | None = None,
        parent: Span | None = None,
    ) -> Span:
        """Open a span, as a child of ``parent`` when one is given."""
        parent_id = parent.span_id if parent is not None and parent.is_valid else None
        if self.recording:
            trace_id = parent.trace_id if parent_id else secrets.token_hex(16)
            span_id = secrets.token_hex(8)
        else:
            trace_id = parent.trace_id if parent_id else _INVALID_TRACE_ID
            span_id = _INVALID_SPAN_ID
        return Span(
            name=name,
            kind=kind,
            attributes=attributes or {},
            trace_id=trace_id,
            span_id=span_id,
            parent_span_id=parent_id,
            recording=self.recording,
            on_end=self._finish,
        )

    def _finish(self, span: Span) -> None:
        if self.keep_ended:
            with self._lock:
                self.ended.append(span)
        for processor in self.processors:
            processor(span)


NOOP_TRACER = Tracer(recording=False)


def start_permission_span(
    tracer: Tracer, tool: str, project_hash: str, harness: str = "", hook_event: str = ""
) -> Span:
    """Open the root span of one permission check. The caller must end it."""
    attributes: dict[str, object] = {
        "vibecop.tool": tool,
        "vibecop.project_hash": project_hash,
    }
    if harness:
        attributes["vibecop.harness"] = harness
    if hook_event:
        attributes["vibecop.hook_event"] = hook_event
    return tracer.start_span("permission.check", SpanKind.SERVER, attributes)


def start_evaluator_span(
    tracer: Tracer, parent: Span | None, model: str, api_format: str
) -> Span:
    """Open the child span that covers the evaluator call."""
    return tracer.start_span(
        "evaluator.llm_call",
        SpanKind.CLIENT,
        {"vibecop.model": model, "vibecop.api_format": api_format},
        parent,
    )