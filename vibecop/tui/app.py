"""Interactive terminal dashboard for the vibecop daemon.

The App keeps all screen state (pages, focus, activity rows, escalation queue,
panel texts) as plain attributes guarded by one lock, so background threads
may update it freely while the curses loop redraws it on a short timer.
"""

from __future__ import annotations

import argparse
import curses
import locale
import re
import sys
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from enum import Enum

from vibecop.models import Event, PendingEntry
from vibecop.tui.client import DaemonClient, DaemonError
from vibecop.tui.format import (
    EMPTY_ESCALATIONS,
    MAX_ACTIVITY_ITEMS,
    MAX_LOG_LINES,
    LatencyStats,
    empty_banner_for,
    escalation_labels,
    find_pending_index,
    format_activity_cells,
    format_config_text,
    format_detail_content,
    format_latency_text,
    format_log_line,
    help_text,
)

REFRESH_DEBOUNCE = 0.25
WAITING_TEXT = "waiting for data..."
LOG_PLACEHOLDER = "[gray]idle  ([white]f[gray] to expand)[white]"
DEFAULT_PANES = ("activity", "config", "log")

ESC = "Esc"
ENTER = "Enter"
TAB = "Tab"
BACKTAB = "BackTab"
UP = "Up"
DOWN = "Down"
LEFT = "Left"
RIGHT = "Right"
PGUP = "PgUp"
PGDN = "PgDn"

_PAGE_STEP = 10


class Page(str, Enum):
    """The screens the dashboard can show."""

    ACTIVITY = "activity"
    ESCALATIONS = "escalations"
    HELP = "help"
    FULLSCREEN = "fullscreen"
    DETAIL = "detail"


_HINTS = {
    Page.ACTIVITY: "[white]q[gray]:quit  [white]e[gray]:escalations  [white]↑/↓[gray]:select  "
    "[white]Enter[gray]:detail  [white]Tab[gray]:next pane  [white]f[gray]:fullscreen  "
    "[white]r[gray]:refresh",
    Page.ESCALATIONS: "[white]q[gray]:quit  [white]a[gray]:approve  [white]d[gray]:deny  "
    "[white]R[gray]:refresh  [white]Esc[gray]:back",
    Page.HELP: "[gray]press any key to close help",
    Page.FULLSCREEN: "[white]q[gray]:quit  [white]Esc[gray] / [white]f[gray]:collapse",
    Page.DETAIL: "[white]q[gray]:quit  [white]↑/↓[gray]:scroll  "
    "[white]Esc[gray] / [white]Enter[gray] / [white]d[gray]:close",
}


def _start_thread(task: Callable[[], None]) -> None:
    threading.Thread(target=task, daemon=True).start()


class App:
    """State and key handling of the dashboard, plus its curses front end."""

    def __init__(
        self,
        client: DaemonClient,
        events: Iterable[Event] | None = None,
        *,
        spawn: Callable[[Callable[[], None]], None] = _start_thread,
        panes: Sequence[str] = DEFAULT_PANES,
    ) -> None:
        self.client = client
        self._events = events
        self._spawn = spawn
        self._lock = threading.RLock()

        self.current_page = Page.ACTIVITY
        self.prev_page: Page | None = None
        self.panes = tuple(panes)
        self.focus_index = 0
        self.fullscreen_pane: str | None = None
        self.stopped = False

        self.rows: list[Event] = []
        self.selected_row = 0
        self.row_offset = 0
        self.column_offset = 0

        self.log_lines: deque[str] = deque(maxlen=MAX_LOG_LINES)
        self.log_back = 0
        self.latency = LatencyStats()
        self.latency_text = WAITING_TEXT
        self.config_text = WAITING_TEXT
        self.config_scroll = 0
        self.events = 0

        self.pending: list[PendingEntry] = []
        self.escalation_index = 0
        self.escalation_banner = EMPTY_ESCALATIONS

        self.detail_text = ""
        self.detail_scroll = 0

        self._refreshing = False
        self._last_refresh: float | None = None

    # --- derived text -------------------------------------------------------

    @property
    def header_text(self) -> str:
        if self.events == 0:
            return "[green]vibecop[white] ● running  |  connect to TUI"
        return f"[green]vibecop[white] ● running  |  events: {self.events}"

    @property
    def log_text(self) -> str:
        if not self.log_lines:
            return LOG_PLACEHOLDER
        return "\n".join(self.log_lines)

    def status_text(self) -> str:
        """The status bar text for the current page."""
        hint = _HINTS.get(self.current_page, "[white]q[gray]:quit")
        label = self.current_page.value
        if self.current_page is Page.FULLSCREEN and self.focus_index < len(self.panes):
            label = f"fullscreen: {self.panes[self.focus_index]}"
        return f"[yellow]{label}[gray]   {hint}   [white]?[gray]:help"

    def _focused_pane(self) -> str | None:
        if self.current_page is Page.FULLSCREEN:
            return self.fullscreen_pane
        if self.current_page is Page.ACTIVITY and self.panes:
            return self.panes[self.focus_index]
        return None

    # --- keys ---------------------------------------------------------------

    def handle_key(self, key: str) -> bool:
        """Handle one key press; return whether anything consumed it."""
        with self._lock:
            if self._global_key(key):
                return True
            return self._page_key(key)

    def _global_key(self, key: str) -> bool:
        page = self.current_page
        if page is not Page.HELP and key in ("?", "h"):
            self.open_help()
            return True
        if key == "q":
            self.stopped = True
            return True
        if key == "e":
            self.switch_to(Page.ESCALATIONS)
            return True
        if key == "f" and page in (Page.ACTIVITY, Page.FULLSCREEN):
            self.toggle_fullscreen()
            return True
        if key == "r" and page is Page.ACTIVITY:
            self.refresh_config()
            return True
        if key == "R" and page is Page.ESCALATIONS:
            self.request_escalation_refresh(True)
            return True
        if key == ESC:
            if page in (Page.ESCALATIONS, Page.HELP):
                self.switch_to(Page.ACTIVITY)
                return True
            if page is Page.FULLSCREEN:
                self.toggle_fullscreen()
                return True
            if page is Page.DETAIL:
                self.close_detail()
                return True
        if page is Page.ACTIVITY and self.panes:
            if key == TAB:
                self.cycle_activity_focus(1)
                return True
            if key == BACKTAB:
                self.cycle_activity_focus(-1)
                return True
        return False

    def _page_key(self, key: str) -> bool:
        page = self.current_page
        if page is Page.HELP:
            self.close_help()
            return True
        if page is Page.DETAIL:
            if key in (ENTER, "d"):
                self.close_detail()
                return True
            step = {UP: -1, DOWN: 1, PGUP: -_PAGE_STEP, PGDN: _PAGE_STEP}.get(key)
            if step is None:
                return False
            limit = max(0, len(self.detail_text.split("\n")) - 1)
            self.detail_scroll = min(max(0, self.detail_scroll + step), limit)
            return True
        if page is Page.ESCALATIONS:
            if key == "a":
                self.complete_selected("approved")
                return True
            if key == "d":
                self.complete_selected("blocked")
                return True
            if key in (UP, DOWN) and self.pending:
                step = -1 if key == UP else 1
                self.escalation_index = (self.escalation_index + step) % len(self.pending)
                return True
            return False
        pane = self._focused_pane()
        if pane == "activity":
            return self._activity_key(key)
        if pane == "config":
            step = {UP: -1, DOWN: 1, PGUP: -_PAGE_STEP, PGDN: _PAGE_STEP}.get(key)
            if step is None:
                return False
            limit = max(0, len(self.config_text.split("\n")) - 1)
            self.config_scroll = min(max(0, self.config_scroll + step), limit)
            return True
        if pane == "log":
            step = {UP: 1, DOWN: -1, PGUP: _PAGE_STEP, PGDN: -_PAGE_STEP}.get(key)
            if step is None:
                return False
            limit = max(0, len(self.log_lines) - 1)
            self.log_back = min(max(0, self.log_back + step), limit)
            return True
        return False

    def _activity_key(self, key: str) -> bool:
        if key == ENTER:
            self.open_detail(self.selected_row)
            return True
        if key == LEFT:
            self.column_offset = max(0, self.column_offset - 1)
            return True
        if key == RIGHT:
            self.column_offset += 1
            return True
        step = {UP: -1, DOWN: 1, PGUP: -_PAGE_STEP, PGDN: _PAGE_STEP}.get(key)
        if step is None:
            return False
        if self.rows:
            self.selected_row = min(max(0, self.selected_row + step), len(self.rows) - 1)
        return True

    # --- navigation ---------------------------------------------------------

    def cycle_activity_focus(self, step: int) -> None:
        """Move focus between activity-page panes, wrapping at either end."""
        with self._lock:
            if not self.panes:
                return
            self.focus_index = (self.focus_index + step) % len(self.panes)

    def toggle_fullscreen(self) -> None:
        """Expand the focused pane to the whole page, or collapse it again."""
        with self._lock:
            if self.current_page is Page.FULLSCREEN:
                self.fullscreen_pane = None
                self.current_page = Page.ACTIVITY
                return
            if self.current_page is not Page.ACTIVITY or not self.panes:
                return
            self.fullscreen_pane = self.panes[self.focus_index]
            self.current_page = Page.FULLSCREEN

    def switch_to(self, page: Page) -> None:
        """Show another page; the escalations page refreshes its queue."""
        with self._lock:
            if page is self.current_page:
                return
            self.current_page = page
            if page is Page.ESCALATIONS:
                self.request_escalation_refresh(True)
            if page is Page.ACTIVITY:
                self.focus_index = 0

    def open_help(self) -> None:
        with self._lock:
            self.prev_page = self.current_page
            self.current_page = Page.HELP

    def close_help(self) -> None:
        with self._lock:
            self.current_page = self.prev_page or Page.ACTIVITY

    def open_detail(self, row: int) -> None:
        """Show every field of the activity row in the detail sheet."""
        with self._lock:
            if row < 0 or row >= len(self.rows):
                return
            self.detail_text = format_detail_content(self.rows[row])
            self.detail_scroll = 0
            self.current_page = Page.DETAIL

    def close_detail(self) -> None:
        with self._lock:
            self.current_page = Page.ACTIVITY

    # --- daemon events ------------------------------------------------------

    def handle_event(self, evt: Event) -> None:
        """Apply one streamed daemon event to the screen state."""
        with self._lock:
            self.events += 1
            if evt.level or evt.message:
                self.log_lines.append(format_log_line(evt))
                self.log_back = 0
            if evt.tool:
                self._add_activity(evt)
                if evt.latency_ms > 0:
                    self.latency.add(evt.latency_ms)
                text = format_latency_text(self.latency)
                if text is not None:
                    self.latency_text = text
                if evt.verdict in ("escalate", "error"):
                    self.request_escalation_refresh(False)

    def _add_activity(self, evt: Event) -> None:
        pinned = self._focused_pane() == "activity"
        self.rows.insert(0, evt)
        del self.rows[MAX_ACTIVITY_ITEMS:]
        if pinned:
            self.selected_row += 1
            self.row_offset += 1
        last = len(self.rows) - 1
        self.selected_row = min(self.selected_row, last)
        self.row_offset = min(self.row_offset, last)

    # --- escalations --------------------------------------------------------

    def rebuild_escalation_list(
        self, pending: Sequence[PendingEntry], audit_enabled: bool
    ) -> None:
        """Replace the queue, keeping the selection on the same entry if present."""
        with self._lock:
            prev_hash, prev_key = "", ""
            if 0 <= self.escalation_index < len(self.pending):
                previous = self.pending[self.escalation_index]
                prev_hash, prev_key = previous.project_hash, previous.key
            self.pending = list(pending)
            self.escalation_index = 0
            self.escalation_banner = empty_banner_for(audit_enabled, len(self.pending))
            if not self.pending:
                return
            found = find_pending_index(self.pending, prev_hash, prev_key)
            if found is not None:
                self.escalation_index = found

    def request_escalation_refresh(self, force: bool = False) -> bool:
        """Fetch the queue in the background unless one is running or debounced."""
        with self._lock:
            if self._refreshing:
                return False
            now = time.monotonic()
            if (
                not force
                and self._last_refresh is not None
                and now - self._last_refresh < REFRESH_DEBOUNCE
            ):
                return False
            self._refreshing = True
            if not force:
                self._last_refresh = now
        self._spawn(self._refresh_escalations)
        return True

    def _refresh_escalations(self) -> None:
        try:
            try:
                pending, audit_enabled = self.client.fetch_pending()
            except (DaemonError, OSError) as exc:
                with self._lock:
                    self.escalation_banner = f"[red]list_pending failed: {exc}[white]"
                return
            self.rebuild_escalation_list(pending, audit_enabled)
        finally:
            with self._lock:
                self._refreshing = False
                self._last_refresh = time.monotonic()

    def complete_selected(self, human_decision: str) -> None:
        """Resolve the highlighted escalation as "approved" or "blocked"."""
        with self._lock:
            if not 0 <= self.escalation_index < len(self.pending):
                return
            target = self.pending[self.escalation_index]

        def task() -> None:
            try:
                self.client.complete_pending(target.project_hash, target.key, human_decision)
            except (DaemonError, OSError) as exc:
                with self._lock:
                    self.escalation_banner = f"[red]complete_pending failed: {exc}[white]"
                return
            self.request_escalation_refresh(True)

        self._spawn(task)

    # --- configuration ------------------------------------------------------

    def refresh_config(self) -> None:
        """Show a refreshing notice and fetch the configuration in the background."""
        with self._lock:
            self.config_text = "[gray]refreshing...[white]"
        self._spawn(self._fetch_and_render_config)

    def _fetch_and_render_config(self) -> None:
        try:
            cfg = self.client.fetch_config()
        except (DaemonError, OSError) as exc:
            with self._lock:
                self.config_text = f"[red]get_config failed: {exc}[white]"
            return
        self.update_config(
            cfg.endpoint, cfg.api_format, cfg.model, cfg.timeout_ms, cfg.audit_enabled
        )

    def update_config(
        self, endpoint: str, api_format: str, model: str, timeout_ms: int, audit_enabled: bool
    ) -> None:
        with self._lock:
            self.config_text = format_config_text(
                endpoint, api_format, model, timeout_ms, audit_enabled
            )

    # --- lifecycle ----------------------------------------------------------

    def run(self) -> None:
        """Run the terminal UI until the user quits."""
        if self._events is not None:
            threading.Thread(target=self._read_events, name="vibecop-tui-events", daemon=True).start()
        self._spawn(self._fetch_and_render_config)
        locale.setlocale(locale.LC_ALL, "")
        curses.wrapper(self._loop)

    def _read_events(self) -> None:
        assert self._events is not None
        for evt in self._events:
            self.handle_event(evt)

    def close(self) -> None:
        """Disconnect from the daemon."""
        self.client.close()

    def _loop(self, scr: curses.window) -> None:
        try:
            curses.set_escdelay(25)
        except (AttributeError, curses.error):
            pass
        try:
            curses.curs_set(0)
        except curses.error:
            pass
        scr.keypad(True)
        scr.timeout(100)
        painter = _Painter(scr, _Palette())
        while not self.stopped:
            with self._lock:
                self._draw(painter)
            key = _key_name(scr.getch())
            if key is not None:
                self.handle_key(key)

    # --- drawing ------------------------------------------------------------

    def _draw(self, p: _Painter) -> None:
        p.scr.erase()
        height, width = p.scr.getmaxyx()
        if height < 10 or width < 30:
            p.plain(0, 0, width, "terminal too small")
            p.scr.refresh()
            return
        p.box(0, 0, 3, width, "", False)
        p.text(1, 2, width - 4, self.header_text)
        status = self.status_text()
        status_len = len(_strip(status))
        p.box(height - 3, 0, 3, width, "", False)
        p.text(height - 2, max(2, (width - status_len) // 2), width - 4, status)

        y, h = 3, height - 6
        page = self.current_page
        if page is Page.ACTIVITY:
            self._draw_activity_page(p, y, h, width)
        elif page is Page.FULLSCREEN and self.fullscreen_pane:
            self._draw_pane(p, self.fullscreen_pane, y, 0, h, width, True)
        elif page is Page.ESCALATIONS:
            self._draw_escalations(p, y, h, width)
        elif page is Page.HELP:
            p.box(y, 0, h, width, "help — keyboard shortcuts", True)
            p.lines(y + 1, 2, h - 2, width - 4, help_text().split("\n"))
        elif page is Page.DETAIL:
            p.box(y, 0, h, width, "activity detail", True)
            lines = self.detail_text.split("\n")[self.detail_scroll :]
            p.lines(y + 1, 2, h - 2, width - 4, lines)
        p.scr.refresh()

    def _draw_activity_page(self, p: _Painter, y: int, h: int, width: int) -> None:
        left = width * 3 // 5
        right = width - left
        focused = self._focused_pane()
        self._draw_pane(p, "activity", y, 0, h, left, focused == "activity")
        latency_h = min(5, h)
        log_h = min(3, max(0, h - latency_h))
        config_h = max(0, h - latency_h - log_h)
        self._draw_pane(p, "latency", y, left, latency_h, right, False)
        self._draw_pane(p, "config", y + latency_h, left, config_h, right, focused == "config")
        self._draw_pane(p, "log", y + latency_h + config_h, left, log_h, right, focused == "log")

    def _draw_pane(
        self, p: _Painter, name: str, y: int, x: int, h: int, w: int, focused: bool
    ) -> None:
        if h < 2 or w < 4:
            return
        p.box(y, x, h, w, name, focused)
        inner_h, inner_w = h - 2, w - 2
        if name == "activity":
            self._draw_activity_rows(p, y + 1, x + 1, inner_h, inner_w)
        elif name == "latency":
            p.lines(y + 1, x + 1, inner_h, inner_w, self.latency_text.split("\n"))
        elif name == "config":
            lines = self.config_text.split("\n")[self.config_scroll :]
            p.lines(y + 1, x + 1, inner_h, inner_w, lines)
        elif name == "log":
            lines = self.log_text.split("\n")
            end = len(lines) - self.log_back
            p.lines(y + 1, x + 1, inner_h, inner_w, lines[max(0, end - inner_h) : end])

    def _draw_activity_rows(self, p: _Painter, y: int, x: int, h: int, w: int) -> None:
        if h <= 0 or not self.rows:
            return
        if self.selected_row < self.row_offset:
            self.row_offset = self.selected_row
        elif self.selected_row >= self.row_offset + h:
            self.row_offset = self.selected_row - h + 1
        visible = self.rows[self.row_offset : self.row_offset + h]
        tool_w = min(20, max(len(evt.tool or "-") for evt in visible))
        for offset, evt in enumerate(visible):
            ts, verdict, tool, body, color = format_activity_cells(evt)
            extra = curses.A_REVERSE if self.row_offset + offset == self.selected_row else 0
            row_y = y + offset
            cx = p.plain(row_y, x, w, f"{ts:<8} ", "darkgray", extra)
            cx = p.plain(row_y, cx, x + w - cx, f"{verdict:<9} ", color, extra)
            cx = p.plain(row_y, cx, x + w - cx, f"{tool[:tool_w]:<{tool_w}} ", "yellow", extra)
            body = body.replace("\n", " ").replace("\t", " ")[self.column_offset :]
            p.plain(row_y, cx, x + w - cx, body, "white", extra)

    def _draw_escalations(self, p: _Painter, y: int, h: int, width: int) -> None:
        list_h = h - 1
        p.box(y, 0, list_h, width, "escalations — pending", True)
        slots = max(1, (list_h - 2) // 2)
        start = max(0, self.escalation_index - slots + 1)
        for slot, entry in enumerate(self.pending[start : start + slots]):
            main, secondary = escalation_labels(entry)
            extra = curses.A_REVERSE if start + slot == self.escalation_index else 0
            row_y = y + 1 + slot * 2
            p.text(row_y, 2, width - 4, main, extra=extra)
            p.text(row_y + 1, 2, width - 4, secondary)
        banner_len = len(_strip(self.escalation_banner))
        p.text(y + h - 1, max(0, (width - banner_len) // 2), width, self.escalation_banner)


# --- curses helpers -----------------------------------------------------------

_TAG = re.compile(r"\[(green|red|yellow|white|gray|blue|darkgray)\]")


def _strip(markup: str) -> str:
    return _TAG.sub("", markup)


def _segments(markup: str, color: str) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    pos = 0
    for match in _TAG.finditer(markup):
        if match.start() > pos:
            out.append((markup[pos : match.start()], color))
        color = match.group(1)
        pos = match.end()
    if pos < len(markup):
        out.append((markup[pos:], color))
    return out


class _Palette:
    def __init__(self) -> None:
        self._attrs: dict[str, int] = {}
        if curses.has_colors():
            curses.start_color()
            try:
                curses.use_default_colors()
                background = -1
            except curses.error:
                background = curses.COLOR_BLACK
            for number, (name, fg) in enumerate(
                (
                    ("green", curses.COLOR_GREEN),
                    ("red", curses.COLOR_RED),
                    ("yellow", curses.COLOR_YELLOW),
                    ("white", curses.COLOR_WHITE),
                    ("blue", curses.COLOR_BLUE),
                ),
                start=1,
            ):
                curses.init_pair(number, fg, background)
                self._attrs[name] = curses.color_pair(number)
        dim = self._attrs.get("white", 0) | curses.A_DIM
        self._attrs["gray"] = self._attrs["darkgray"] = dim

    def __getitem__(self, name: str) -> int:
        return self._attrs.get(name, 0)


class _Painter:
    def __init__(self, scr: curses.window, palette: _Palette) -> None:
        self.scr = scr
        self.palette = palette

    def plain(
        self, y: int, x: int, width: int, text: str, color: str = "white", extra: int = 0
    ) -> int:
        if width <= 0 or not text:
            return x
        piece = text[:width]
        try:
            self.scr.addstr(y, x, piece, self.palette[color] | extra)
        except curses.error:
            pass
        return x + len(piece)

    def text(
        self, y: int, x: int, width: int, markup: str, color: str = "white", extra: int = 0
    ) -> int:
        end = x + width
        for chunk, chunk_color in _segments(markup.replace("\t", " "), color):
            if x >= end:
                break
            x = self.plain(y, x, end - x, chunk, chunk_color, extra)
        return x

    def lines(self, y: int, x: int, height: int, width: int, lines: Sequence[str]) -> None:
        color = "white"
        for offset, line in enumerate(lines[: max(0, height)]):
            self.text(y + offset, x, width, line, color)

    def box(self, y: int, x: int, h: int, w: int, title: str, focused: bool) -> None:
        if h < 2 or w < 2:
            return
        color = "yellow" if focused else "white"
        horizontal = "─" * (w - 2)
        self.plain(y, x, w, f"┌{horizontal}┐", color)
        for row in range(1, h - 1):
            self.plain(y + row, x, 1, "│", color)
            self.plain(y + row, x + w - 1, 1, "│", color)
        self.plain(y + h - 1, x, w, f"└{horizontal}┘", color)
        if title:
            self.plain(y, x + 2, w - 4, f" {title} ", color)


_KEY_NAMES = {
    27: ESC,
    9: TAB,
    10: ENTER,
    13: ENTER,
    curses.KEY_ENTER: ENTER,
    curses.KEY_BTAB: BACKTAB,
    curses.KEY_UP: UP,
    curses.KEY_DOWN: DOWN,
    curses.KEY_LEFT: LEFT,
    curses.KEY_RIGHT: RIGHT,
    curses.KEY_PPAGE: PGUP,
    curses.KEY_NPAGE: PGDN,
}


def _key_name(code: int) -> str | None:
    if code in _KEY_NAMES:
        return _KEY_NAMES[code]
    if 32 <= code < 127:
        return chr(code)
    return None


# --- entry points -------------------------------------------------------------


def run(socket_path: str) -> None:
    """Connect to the daemon, subscribe to events and run the UI until quit."""
    client = DaemonClient(socket_path)
    events = client.subscribe()
    app = App(client, events=events)
    try:
        app.run()
    finally:
        app.close()


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="vibecop-tui", description="Terminal dashboard for the vibecop daemon."
    )
    parser.add_argument("socket", help="path of the daemon's Unix socket")
    args = parser.parse_args(argv)
    try:
        run(args.socket)
    except DaemonError as exc:
        print(f"vibecop: {exc}", file=sys.stderr)
        return 1
    return 0