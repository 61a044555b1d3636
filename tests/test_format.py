import pytest

from vibecop.models import Event, PendingEntry
from vibecop.tui.format import (
    EMPTY_ESCALATIONS,
    MAX_LATENCY_SAMPLES,
    LatencyStats,
    empty_banner_for,
    empty_or_value,
    escalation_labels,
    find_pending_index,
    format_activity_cells,
    format_config_text,
    format_detail_content,
    format_latency_text,
    format_log_line,
    help_text,
    indent_block,
    max_of,
    min_of,
    short_project_hash,
    truncate,
    verdict_color,
    verdict_label,
)


def test_latency_stats():
    s = LatencyStats()
    assert s.count() == 0
    assert s.avg() == 0
    s.add(100)
    s.add(200)
    s.add(300)
    assert s.count() == 3
    assert s.avg() == 200
    assert s.min() == 100
    assert s.max() == 300


def test_latency_stats_window():
    s = LatencyStats()
    for i in range(100):
        s.add(i)
    assert s.count() == MAX_LATENCY_SAMPLES
    assert s.min() == 50
    assert s.max() == 99


def test_min_max():
    assert min_of([3, 1, 4, 1, 5]) == 1
    assert max_of([3, 1, 4, 1, 5]) == 5
    assert min_of([]) == 0
    assert max_of([]) == 0


def test_verdict_color():
    assert verdict_color("approve") == "green"
    assert verdict_color("deny") == "red"
    assert verdict_color("escalate") == "yellow"
    assert verdict_color("other") == "white"


@pytest.mark.parametrize(
    "verdict, label",
    [
        ("approve", "APPROVED"),
        ("deny", "DENIED"),
        ("escalate", "ESCALATED"),
        ("error", "ERROR"),
        ("unknown", "UNKNOWN"),
    ],
)
def test_verdict_label(verdict, label):
    assert verdict_label(verdict) == label


@pytest.mark.parametrize(
    "text, n, want",
    [
        ("", 5, ""),
        ("abc", 5, "abc"),
        ("abcdef", 6, "abcdef"),
        ("abcdef", 5, "ab..."),
        ("abcdefgh", 4, "a..."),
        ("abcdef", 2, "ab"),
    ],
)
def test_truncate(text, n, want):
    assert truncate(text, n) == want


def test_escalation_labels():
    p = PendingEntry(
        project_hash="1234567890abcdef",
        tool="Bash",
        input="rm -rf /",
        verdict="escalate",
        reason="destructive",
        timestamp="2026-05-07T10:00:00Z",
    )
    main, secondary = escalation_labels(p)
    assert "Bash" in main
    assert "rm -rf /" in main
    assert "ESCALATE" in secondary
    assert "proj:1234567890ab" in secondary
    assert "proj:1234567890abc" not in secondary
    assert "destructive" in secondary


def test_escalation_labels_truncates():
    long = "x" * 200
    p = PendingEntry(tool="Bash", input=long, verdict="escalate", reason=long)
    main, secondary = escalation_labels(p)
    assert long not in main
    assert long not in secondary
    assert "x" * 77 + "..." in main
    assert "x" * 97 + "..." in secondary


def test_short_project_hash():
    assert short_project_hash("abc") == "abc"
    assert short_project_hash("1234567890abcdef") == "1234567890ab"


def test_help_text_sections():
    got = help_text()
    for section in ("Global", "Activity page", "Escalations page"):
        assert section in got
    for key in ("q", "?", "e", "a", "d", "Tab"):
        assert f"[white]{key}[gray]" in got


def test_format_activity_cells_no_truncation():
    long_input = "x" * 200
    evt = Event(
        tool="Bash", input=long_input, verdict="approve", timestamp="2026-05-08T20:13:01Z"
    )
    ts, _, _, body, _ = format_activity_cells(evt)
    assert long_input in body
    assert "..." not in body
    assert ts == "20:13:01"


def test_format_activity_cells_with_reason():
    evt = Event(
        tool="Bash",
        input="rm -rf /etc/passwd",
        verdict="deny",
        reason="Critical system file",
        timestamp="2026-05-08T20:13:01Z",
    )
    _, verdict, tool, body, color = format_activity_cells(evt)
    assert body == "rm -rf /etc/passwd  · Critical system file"
    assert verdict == "DENIED"
    assert tool == "Bash"
    assert color == "red"


def test_format_activity_cells_defaults():
    evt = Event(reason="why", timestamp="short-but-long-stamp")
    ts, verdict, tool, body, color = format_activity_cells(evt)
    assert ts == "short-bu"
    assert tool == "-"
    assert body == "· why"
    assert verdict == ""
    assert color == "white"


def test_format_detail_content_renders_all_fields():
    evt = Event(
        tool="Bash",
        input="rm -rf /etc/passwd",
        verdict="deny",
        reason="Critical system file. Would brick the host.",
        latency_ms=345,
        timestamp="2026-05-08T20:13:01Z",
        level="warn",
        message="synthetic test message",
    )
    got = format_detail_content(evt)
    for want in (
        "2026-05-08T20:13:01Z",
        "Bash",
        "DENIED",
        "345 ms",
        "warn",
        "rm -rf /etc/passwd",
        "Critical system file",
        "synthetic test message",
        "Esc / Enter / d to close",
    ):
        assert want in got
    assert "  [yellow]Verdict:   [white] [red]DENIED[white]\n" in got


def test_format_detail_content_handles_empty_fields():
    evt = Event(tool="Read", input="/tmp/x", verdict="approve", timestamp="2026-05-08T20:13:01Z")
    got = format_detail_content(evt)
    assert "Reason:" not in got
    assert "Message:" not in got
    assert "Latency:" not in got
    assert "APPROVED" in got


def test_empty_or_value_and_indent_block():
    assert empty_or_value("") == "[gray](none)[white]"
    assert empty_or_value("x") == "x"
    assert indent_block("a\nb", "  ") == "  a\n  b"


def test_find_pending_index():
    pending = [
        PendingEntry(project_hash="h1", key="k1"),
        PendingEntry(project_hash="h2", key="k2"),
    ]
    assert find_pending_index(pending, "h2", "k2") == 1
    assert find_pending_index(pending, "h3", "k3") is None
    assert find_pending_index(pending, "", "k1") is None


def test_empty_banner_for():
    off = empty_banner_for(False, 0)
    assert "audit_enabled = false" in off
    on0 = empty_banner_for(True, 0)
    assert "audit_enabled" not in on0
    assert "no pending" in on0
    assert on0 == EMPTY_ESCALATIONS
    on3 = empty_banner_for(True, 3)
    assert "3 pending" in on3


def test_format_log_line():
    evt = Event(level="error", message="boom", timestamp="2026-05-08T20:13:01+02:00")
    assert format_log_line(evt) == "[red]ERROR[white] [gray]2026-05-08T20:13:01[white] boom"
    plain = Event(message="hi")
    assert format_log_line(plain) == "[white][white] [gray][white] hi"


def test_format_latency_text():
    s = LatencyStats()
    assert format_latency_text(s) is None
    s.add(100)
    s.add(300)
    assert format_latency_text(s) == (
        "[green]avg:[white] [green]200 ms[white]  (2 samples)\n"
        "[green]min:[white] 100 ms\n"
        "[green]max:[white] 300 ms"
    )


@pytest.mark.parametrize("sample, color", [(999, "green"), (1500, "yellow"), (3000, "red")])
def test_format_latency_text_colors(sample, color):
    s = LatencyStats()
    s.add(sample)
    assert f"[{color}]{sample} ms" in format_latency_text(s)


def test_format_config_text():
    got = format_config_text("http://localhost:8080", "anthropic", "m1", 5000, True)
    assert got == (
        "endpoint: [green]http://localhost:8080[white]\n"
        "format:   anthropic\n"
        "model:    [yellow]m1[white]\n"
        "timeout:  5000 ms\n"
        "audit:    true"
    )
    assert format_config_text("", "", "", 0, False).endswith("audit:    false")