"""Permission-check spans, verdict metrics, event log records and OTLP exporters."""