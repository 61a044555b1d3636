"""Pure text formatting for the terminal UI: labels, colours, panels and stats."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable, Sequence

from vibecop.models import Event, PendingEntry

MAX_LATENCY_SAMPLES = 50
MAX_ACTIVITY_ITEMS = 200
MAX_LOG_LINES = 100

EMPTY_ESCALATIONS = "[gray](no pending escalations)"

_VERDICT_COLORS = {"approve": "green", "deny": "red", "escalate": "yellow"}
_VERDICT_LABELS = {
    "approve": "APPROVED",
    "deny": "DENIED",
    "escalate": "ESCALATED",
    "error": "ERROR",
}
_LEVEL_COLORS = {"error": "red", "warn": "yellow", "info": "green"}


class LatencyStats:
    """A thread-safe sliding window of the most recent latency samples."""

    def __init__(self, max_samples: int = MAX_LATENCY_SAMPLES) -> None:
        self._samples: deque[int] = deque(maxlen=max_samples)
        self._lock = threading.Lock()

    def add(self, ms: int) -> None:
        """Add a sample, dropping the oldest once the window is full."""
        with self._lock:
            self._samples.append(ms)

    def avg(self) -> float:
        """Mean of the samples, or 0 when there are none."""
        with self._lock:
            if not self._samples:
                return 0.0
            return sum(self._samples) / len(self._samples)

    def min(self) -> int:
        with self._lock:
            return min_of(self._samples)

    def max(self) -> int:
        with self._lock:
            return max_of(self._samples)

    def count(self) -> int:
        with self._lock:
            return len(self._samples)


def min_of(values: Iterable[int]) -> int:
    """Smallest value, or 0 for an empty collection."""
    return min(values, default=0)


def max_of(values: Iterable[int]) -> int:
    """Largest value, or 0 for an empty collection."""
    return max(values, default=0)


def verdict_color(verdict: str) -> str:
    """Colour name used for a verdict badge."""
    return _VERDICT_COLORS.get(verdict, "white")


def verdict_label(verdict: str) -> str:
    """Upper-case badge text for a verdict."""
    return _VERDICT_LABELS.get(verdict, verdict.upper())


def format_activity_cells(evt: Event) -> tuple[str, str, str, str, str]:
    """Return (time, verdict label, tool, body, verdict colour) for one activity row.

    The body holds the full input and reason; nothing is truncated.
    """
    ts = evt.timestamp
    i = ts.find("T")
    if i >= 0 and len(ts) >= i + 9:
        ts = ts[i + 1 : i + 9]
    elif len(ts) > 8:
        ts = ts[:8]

    tool = evt.tool or "-"

    body = evt.input
    if evt.reason:
        body = f"{body}  · {evt.reason}" if body else f"· {evt.reason}"

    return ts, verdict_label(evt.verdict), tool, body, verdict_color(evt.verdict)


def empty_or_value(value: str) -> str:
    """The value itself, or a grey placeholder when it is empty."""
    return value or "[gray](none)[white]"


def indent_block(text: str, prefix: str) -> str:
    """Prefix every line of text."""
    return "\n".join(prefix + line for line in text.split("\n"))


def format_detail_content(evt: Event) -> str:
    """Render every field of an event for the detail sheet."""

    def field(label: str, value: str) -> str:
        return f"  [yellow]{label + ':':<11}[white] {value}\n"

    parts = ["\n"]
    parts.append(field("Timestamp", empty_or_value(evt.timestamp)))
    parts.append(field("Tool", empty_or_value(evt.tool)))
    parts.append(
        f"  [yellow]{'Verdict:':<11}[white] "
        f"[{verdict_color(evt.verdict)}]{verdict_label(evt.verdict)}[white]\n"
    )
    if evt.latency_ms > 0:
        parts.append(field("Latency", f"{evt.latency_ms} ms"))
    if evt.level:
        parts.append(field("Level", evt.level))

    for title, value in (("Input", evt.input), ("Reason", evt.reason), ("Message", evt.message)):
        if value:
            parts.append(f"\n  [yellow]{title}:[white]\n")
            parts.append(indent_block(value, "    ") + "\n")

    parts.append("\n  [gray]── Esc / Enter / d to close ──[white]\n")
    return "".join(parts)


def help_text() -> str:
    """The keyboard shortcut reference shown on the help page."""
    return "\n".join(
        [
            "",
            "  [yellow]Global[white]",
            "    [white]q[gray]            quit",
            "    [white]?[gray] / [white]h[gray]        toggle this help",
            "    [white]e[gray]            switch to escalations",
            "    [white]Esc[gray]          back to activity",
            "",
            "  [yellow]Activity page[white]",
            "    [white]Tab[gray] / [white]Shift-Tab[gray]  cycle focus across panes (yellow border)",
            "    [white]↑/↓[gray]          move highlight (activity) / scroll (other panes)",
            "    [white]←/→[gray]          horizontal scroll of long entries",
            "    [white]Enter[gray]        open detail sheet for highlighted event",
            "    [white]f[gray]            expand focused pane to fullscreen"
            " ([white]Esc[gray] / [white]f[gray] to collapse)",
            "    [white]r[gray]            refresh config",
            "",
            "  [yellow]Escalations page[white]",
            "    [white]↑/↓[gray]          scroll pending list",
            "    [white]a[gray]            approve selected"
            " (audit only — agent already saw harness prompt)",
            "    [white]d[gray]            deny selected (audit only)",
            "    [white]R[gray]            refresh queue",
            "",
            "  [gray]Press any key to close help.",
        ]
    )


def empty_banner_for(audit_enabled: bool, count: int) -> str:
    """Banner for the escalations page: audit off, empty queue, or a count."""
    if not audit_enabled:
        return (
            "[yellow]audit_enabled = false[gray] — escalations are not retained; "
            "flip [white]audit_enabled[gray] in config.toml to use this queue"
        )
    if count == 0:
        return EMPTY_ESCALATIONS
    return f"[gray]{count} pending — [white]a[gray]:approve  [white]d[gray]:deny"


def short_project_hash(project_hash: str) -> str:
    """The first twelve characters of a project hash."""
    return project_hash[:12]


def truncate(text: str, n: int) -> str:
    """Cut text to n characters, ending in '...' when there is room for it."""
    if len(text) <= n:
        return text
    if n <= 3:
        return text[:n]
    return text[: n - 3] + "..."


def escalation_labels(entry: PendingEntry) -> tuple[str, str]:
    """Return the main and secondary lines for one pending escalation."""
    main = f"[yellow]{entry.tool}[white]: {truncate(entry.input, 80)}"
    secondary = (
        f"[gray]{entry.timestamp}  [blue]proj:{short_project_hash(entry.project_hash)}"
        f"[gray]  [yellow]{entry.verdict.upper()}[gray]  {truncate(entry.reason, 100)}"
    )
    return main, secondary


def find_pending_index(
    pending: Sequence[PendingEntry], project_hash: str, key: str
) -> int | None:
    """Position of the entry with this project hash and key, or None."""
    if not project_hash or not key:
        return None
    return next(
        (
            index
            for index, entry in enumerate(pending)
            if entry.project_hash == project_hash and entry.key == key
        ),
        None,
    )


def format_log_line(evt: Event) -> str:
    """One coloured line for the log pane."""
    color = _LEVEL_COLORS.get(evt.level, "white")
    ts = evt.timestamp[:19]
    return f"[{color}]{evt.level.upper()}[white] [gray]{ts}[white] {evt.message}"


def format_latency_text(stats: LatencyStats) -> str | None:
    """The latency panel text, or None when there are no samples yet."""
    count = stats.count()
    if count == 0:
        return None
    avg = stats.avg()
    if avg < 1000:
        color = "green"
    elif avg < 3000:
        color = "yellow"
    else:
        color = "red"
    return (
        f"[green]avg:[white] [{color}]{avg:.0f} ms[white]  ({count} samples)\n"
        f"[green]min:[white] {stats.min()} ms\n"
        f"[green]max:[white] {stats.max()} ms"
    )


def format_config_text(
    endpoint: str, api_format: str, model: str, timeout_ms: int, audit_enabled: bool
) -> str:
    """The config panel text."""
    audit = "true" if audit_enabled else "false"
    return (
        f"endpoint: [green]{endpoint}[white]\n"
        f"format:   {api_format}\n"
        f"model:    [yellow]{model}[white]\n"
        f"timeout:  {timeout_ms} ms\n"
        f"audit:    {audit}"
    )