import threading
import urllib.error
from concurrent import futures
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import grpc
import pytest

from vibecop.models import Event, TelemetryTarget
from vibecop.telemetry.logs import event_to_log_record
from vibecop.telemetry.metrics import Metrics
from vibecop.telemetry.spans import Tracer, start_evaluator_span, start_permission_span
from vibecop.telemetry.target import OtlpExporter, build_per_target_pipelines


class _State:
    def __init__(self):
        self.requests = []
        self.status = 200
        self.endpoint = ""


@pytest.fixture
def collector():
    state = _State()

    class Handler(BaseHTTPRequestHandler):
        def do_POST(self):
            length = int(self.headers.get("Content-Length", 0))
            body = self.rfile.read(length)
            state.requests.append((self.path, self.headers.get("Content-Type"), body))
            self.send_response(state.status)
            self.send_header("Content-Length", "0")
            self.end_headers()

        def log_message(self, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    state.endpoint = f"127.0.0.1:{server.server_address[1]}"
    yield state
    server.shutdown()
    server.server_close()


@pytest.fixture
def grpc_collector():
    received = []

    def export(request, context):
        received.append(request)
        return b""

    handler = grpc.unary_unary_rpc_method_handler(export)
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=2))
    server.add_generic_rpc_handlers(
        (
            grpc.method_handlers_generic_handler(
                "opentelemetry.proto.collector.trace.v1.TraceService",
                {"Export": handler},
            ),
        )
    )
    port = server.add_insecure_port("127.0.0.1:0")
    server.start()
    yield f"127.0.0.1:{port}", received
    server.stop(None)


def test_partial_target_failure():
    targets = [
        TelemetryTarget(endpoint="bad.example:9999", protocol="carrier-pigeon", insecure=True),
        TelemetryTarget(endpoint="localhost:4318", protocol="http", insecure=True),
    ]
    pipelines = build_per_target_pipelines(targets)
    assert len(pipelines.spans) == 1
    assert len(pipelines.metrics) == 1
    assert len(pipelines.logs) == 1
    assert pipelines.spans[0].endpoint == "localhost:4318"


def test_protocol_is_case_insensitive():
    pipelines = build_per_target_pipelines(
        [TelemetryTarget(endpoint="localhost:4317", protocol="GRPC")]
    )
    assert [e.protocol for e in pipelines.exporters] == ["grpc", "grpc", "grpc"]


def test_all_unknown_targets_leave_pipelines_empty():
    pipelines = build_per_target_pipelines(
        [TelemetryTarget(endpoint="x:1", protocol="smoke-signal")]
    )
    assert pipelines.empty is True
    assert pipelines.exporters == []


def test_exporter_rejects_unknown_protocol():
    with pytest.raises(ValueError, match="unknown protocol"):
        OtlpExporter("localhost:4317", "carrier-pigeon")


@pytest.mark.parametrize("protocol, endpoint", [("grpc", "localhost:4317"), ("http", "localhost:4318")])
def test_exporter_default_endpoint(protocol, endpoint):
    assert OtlpExporter("", protocol).endpoint == endpoint


def test_export_unknown_signal():
    exporter = OtlpExporter("localhost:4318", "http", insecure=True)
    with pytest.raises(ValueError, match="unknown signal"):
        exporter.export("profiles", [])


def test_export_after_shutdown_fails():
    exporter = OtlpExporter("localhost:4318", "http", insecure=True)
    exporter.shutdown()
    with pytest.raises(RuntimeError):
        exporter.export("traces", [])


def test_http_export_traces(collector):
    exporter = OtlpExporter(
        collector.endpoint, "http", insecure=True, resource={"service.name": "svc-under-test"}
    )
    tracer = Tracer()
    span = start_permission_span(tracer, "Bash", "abcd1234", "claude", "PreToolUse")
    span.end()
    exporter.export("traces", [span])

    assert len(collector.requests) == 1
    path, content_type, body = collector.requests[0]
    assert path == "/v1/traces"
    assert content_type == "application/x-protobuf"
    assert b"permission.check" in body
    assert b"abcd1234" in body
    assert b"svc-under-test" in body
    assert bytes.fromhex(span.trace_id) in body


def test_http_export_logs_never_carries_input(collector):
    exporter = OtlpExporter(collector.endpoint, "http", insecure=True)
    evt = Event(
        tool="Bash",
        input="swift build",
        verdict="approve",
        reason="Routine build",
        latency_ms=312,
        timestamp="2026-05-06T10:00:00Z",
    )
    exporter.export("logs", [event_to_log_record(evt)])

    path, _, body = collector.requests[0]
    assert path == "/v1/logs"
    assert b"Routine build" in body
    assert b"vibecop.latency_ms" in body
    assert b"swift build" not in body


def test_http_export_metrics(collector):
    exporter = OtlpExporter(collector.endpoint, "http", insecure=True)
    metrics = Metrics()
    metrics.record_verdict("deny", "Bash", "claude")
    metrics.record_evaluator_latency(42, "deny", "claude")
    exporter.export("metrics", [metrics.verdicts, metrics.latency])

    path, _, body = collector.requests[0]
    assert path == "/v1/metrics"
    assert b"vibecop.verdicts_total" in body
    assert b"vibecop.evaluator_latency_ms" in body
    assert b"claude" in body


def test_http_error_status_raises(collector):
    collector.status = 500
    exporter = OtlpExporter(collector.endpoint, "http", insecure=True)
    with pytest.raises(urllib.error.HTTPError):
        exporter.export("logs", [])


def test_grpc_export_traces(grpc_collector):
    endpoint, received = grpc_collector
    exporter = OtlpExporter(endpoint, "grpc", insecure=True, timeout=5.0)
    tracer = Tracer()
    root = start_permission_span(tracer, "Bash", "abcd1234")
    child = start_evaluator_span(tracer, root, "test-model", "anthropic")
    child.end()
    root.end()
    try:
        exporter.export("traces", [child, root])
    finally:
        exporter.shutdown()

    assert len(received) == 1
    assert b"evaluator.llm_call" in received[0]
    assert b"test-model" in received[0]
    assert bytes.fromhex(root.span_id) in received[0]