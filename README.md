# vibecop

Tools that sit next to the vibecop permission daemon:

- **Terminal dashboard** (`vibecop.tui`): a live view of the daemon's
  activity feed, evaluator latency, effective configuration, log tail and
  the queue of pending escalations.
- **Telemetry building blocks** (`vibecop.telemetry`): spans for
  permission checks, verdict and latency metrics, log records made from
  daemon events, and OTLP exporters over gRPC or HTTP.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## The dashboard

Start the dashboard against a running daemon by giving the path of its
Unix socket:

```
vibecop-tui /path/to/daemon.sock
```

`vibecop-tui --help` shows the usage. If the daemon cannot be reached the
command prints the error and exits with status 1.

Keys, from anywhere:

| Key       | Action                         |
|-----------|--------------------------------|
| `q`       | quit                           |
| `?` / `h` | open help (any key closes it)  |
| `e`       | switch to the escalations page |
| `Esc`     | back to the activity page      |

On the activity page, `Tab` / `Shift-Tab` move focus between the activity,
config and log panes, `↑`/`↓` move the highlight (or scroll the other
panes), `←`/`→` scroll long entries sideways, `Enter` opens the detail
sheet for the highlighted event, `f` expands the focused pane to full
screen (`f` or `Esc` collapses it) and `r` refreshes the configuration.
On the detail sheet, `Esc`, `Enter` or `d` close it. On the escalations
page, `a` approves and `d` denies the selected entry (recorded for audit
only), and `R` refreshes the queue.

From Python, `vibecop.tui.app.run(socket_path)` does the same as the
command. `vibecop.tui.client.DaemonClient` is the socket client it uses:
`subscribe()` returns an iterator over `Event`s, and `fetch_config()`,
`fetch_pending()` and `complete_pending(project_hash, key, human_decision)`
each make one request; failures raise `DaemonError`. The text helpers in
`vibecop.tui.format` (`format_activity_cells`, `format_detail_content`,
`escalation_labels`, `LatencyStats` and others) are pure functions and can
be used on their own.

## Telemetry

The records exchanged with the daemon (`Event`, `PendingEntry`,
`ConfigResponse`) and the telemetry settings (`TelemetryConfig`,
`TelemetryTarget`) live in `vibecop.models`.

Spans, from `vibecop.telemetry.spans`:

```python
from vibecop.telemetry.spans import Tracer, StatusCode, start_permission_span, start_evaluator_span

tracer = Tracer()
span = start_permission_span(tracer, "Bash", "abcd1234", "claude", "PreToolUse")
child = start_evaluator_span(tracer, span, "some-model", "anthropic")
child.end()
span.set_attributes({"vibecop.verdict": "deny"})
span.set_status(StatusCode.ERROR, "blocked")
span.end()
finished = tracer.ended  # both spans, in the order they ended
```

Empty harness and hook-event values are left off the span. `NOOP_TRACER`
produces spans that record nothing.

Metrics, from `vibecop.telemetry.metrics`:

```python
from vibecop.telemetry.metrics import Metrics

metrics = Metrics()
metrics.record_verdict("deny", "Bash", "claude")
metrics.record_evaluator_latency(42, "deny", "claude")
snapshot = metrics.collect()  # {"vibecop.verdicts_total": [...], "vibecop.evaluator_latency_ms": [...]}
```

Log records, from `vibecop.telemetry.logs`: `event_to_log_record(evt)`
turns an `Event` into a `LogRecord` with a severity (an explicit level
wins; otherwise `deny` is ERROR, `escalate` and `error` are WARN, the rest
INFO), a body and `vibecop.*` attributes. The tool input is never put in
the record: it stays in the local audit log.

Export, from `vibecop.telemetry.target`: `build_per_target_pipelines(targets)`
builds an `OtlpExporter` per signal for every `TelemetryTarget`, skipping
(and logging) any target whose protocol is not `grpc` or `http`. Each
exporter sends one batch per call:

```python
from vibecop.models import TelemetryTarget
from vibecop.telemetry.target import build_per_target_pipelines

pipelines = build_per_target_pipelines(
    [TelemetryTarget(endpoint="localhost:4318", protocol="http", insecure=True)]
)
for exporter in pipelines.spans:
    exporter.export("traces", tracer.ended)
for exporter in pipelines.metrics:
    exporter.export("metrics", [metrics.verdicts, metrics.latency])
for exporter in pipelines.exporters:
    exporter.shutdown()
```

`export` raises when the collector cannot be reached; catching that is up
to the caller.

## What this package does not do

There is no telemetry provider that wires these pieces together. Nothing
reads `TelemetryConfig.enabled` or `TelemetryConfig.service_name`, nothing
exports spans, metrics or log records on its own, batches them or sends
them on a timer, and the exporters built by `build_per_target_pipelines`
carry no resource attributes. The caller decides when to call `export`.