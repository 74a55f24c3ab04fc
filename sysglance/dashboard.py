"""Interactive terminal dashboard: one tab and one panel per module.

The loop draws the current snapshot, waits for a key for at most the time
left until the next refresh, then refreshes once the interval has elapsed.
Colours, labels and borders all come from the theme in the config.

Keys:
    q / Esc           quit
    Tab / Right / l   next tab
    Shift+Tab / Left / h   previous tab
"""

from __future__ import annotations

import curses
import enum
import math
import textwrap
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from sysglance.config import AppConfig, BorderStyle, Color, parse_color
from sysglance.engine import Engine
from sysglance.errors import TuiError
from sysglance.logging_utils import muted_console
from sysglance.metrics import MetricData, Snapshot
from sysglance.render import display_value

# ── Constants ──────────────────────────────────────────────────────────────

BAR_FILL = "█"
BAR_EMPTY = "░"

HEADER_H = 3
FOOTER_H = 3
MIN_W = 40
MIN_H = 10

KEY_TAB = 9
KEY_ESC = 27
KEY_CTRL_C = 3  # raw mode delivers ^C as a key instead of SIGINT

QUIT_KEYS = frozenset({ord("q"), ord("Q"), KEY_ESC, KEY_CTRL_C})
NEXT_KEYS = frozenset({KEY_TAB, curses.KEY_RIGHT, ord("l")})
PREV_KEYS = frozenset({curses.KEY_BTAB, curses.KEY_LEFT, ord("h")})

GAUGE_KEYS: dict[str, str] = {
    "cpu": "cpu_usage_percent",
    "memory": "memory_usage_percent",
    "disk": "usage_percent",
}

# (top-left, top-right, bottom-left, bottom-right, horizontal, vertical)
BORDER_CHARS: dict[BorderStyle, tuple[str, str, str, str, str, str]] = {
    BorderStyle.PLAIN: ("┌", "┐", "└", "┘", "─", "│"),
    BorderStyle.ROUNDED: ("╭", "╮", "╰", "╯", "─", "│"),
}

# Approximate RGB of the 16 standard terminal colours, for hex fallback.
_ANSI_RGB: tuple[tuple[int, int, int], ...] = (
    (0, 0, 0), (205, 0, 0), (0, 205, 0), (205, 205, 0),
    (0, 0, 238), (205, 0, 205), (0, 205, 205), (229, 229, 229),
    (127, 127, 127), (255, 0, 0), (0, 255, 0), (255, 255, 0),
    (92, 92, 255), (255, 0, 255), (0, 255, 255), (255, 255, 255),
)


def nearest_palette_index(rgb: tuple[int, int, int]) -> int:
    r, g, b = rgb
    return min(
        range(len(_ANSI_RGB)),
        key=lambda i: (_ANSI_RGB[i][0] - r) ** 2
        + (_ANSI_RGB[i][1] - g) ** 2
        + (_ANSI_RGB[i][2] - b) ** 2,
    )


# ── State ──────────────────────────────────────────────────────────────────


class Phase(enum.Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    QUITTING = "quitting"


@dataclass
class DashboardState:
    """Everything the loop mutates; owned by the loop alone."""

    snapshot: Snapshot | None = None
    selected_tab: int = 0
    quit_requested: bool = False

    @property
    def tab_count(self) -> int:
        return len(self.snapshot.modules) if self.snapshot is not None else 0

    def set_snapshot(self, snapshot: Snapshot) -> None:
        self.snapshot = snapshot
        count = self.tab_count
        if count == 0:
            self.selected_tab = 0
        elif self.selected_tab >= count:
            self.selected_tab = count - 1

    def next_tab(self) -> None:
        count = self.tab_count
        if count:
            self.selected_tab = (self.selected_tab + 1) % count

    def prev_tab(self) -> None:
        count = self.tab_count
        if count:
            self.selected_tab = count - 1 if self.selected_tab == 0 else self.selected_tab - 1

    def handle_key(self, key: int) -> None:
        if key in QUIT_KEYS:
            self.quit_requested = True
        elif key in NEXT_KEYS:
            self.next_tab()
        elif key in PREV_KEYS:
            self.prev_tab()


# ── Colour pairs ───────────────────────────────────────────────────────────


class ColorResolver(Protocol):
    def attr(self, color: Color) -> int: ...


class ColorPairs:
    """Lazily allocates curses colour pairs for theme colours.

    Must be created after curses has been initialised.
    """

    def __init__(self) -> None:
        self.enabled = curses.has_colors()
        self._pairs: dict[int, int] = {}
        self._custom: dict[tuple[int, int, int], int] = {}
        self._next_pair = 1
        self._next_color = 16
        if self.enabled:
            curses.start_color()
            curses.use_default_colors()

    def _index(self, color: Color) -> int:
        if isinstance(color, tuple):
            if color in self._custom:
                return self._custom[color]
            if curses.can_change_color() and self._next_color < curses.COLORS:
                idx = self._next_color
                r, g, b = (c * 1000 // 255 for c in color)
                curses.init_color(idx, r, g, b)
                self._next_color += 1
                self._custom[color] = idx
                return idx
            color = nearest_palette_index(color)
        # 8-colour terminals: fold the bright variants onto the base colours.
        return color if color < curses.COLORS else color % 8

    def attr(self, color: Color) -> int:
        if not self.enabled:
            return 0
        idx = self._index(color)
        pair = self._pairs.get(idx)
        if pair is None:
            if self._next_pair >= curses.COLOR_PAIRS:
                return 0
            pair = self._next_pair
            curses.init_pair(pair, idx, -1)
            self._pairs[idx] = pair
            self._next_pair += 1
        return curses.color_pair(pair)


# ── Drawing primitives ─────────────────────────────────────────────────────


def _safe(win: Any, *args: Any) -> None:
    """addstr wrapper that swallows out-of-bounds errors."""
    try:
        win.addstr(*args)
    except curses.error:
        pass


def extract_gauge(module: str, data: MetricData) -> tuple[str, float] | None:
    """Gauge label and 0-1 ratio for modules exposing a usage percentage."""
    key = GAUGE_KEYS.get(module)
    if key is None:
        return None
    value = data.get(key)
    if not isinstance(value, float):
        return None
    ratio = value / 100.0 if math.isfinite(value) else 0.0
    return f"{module.upper()}: {value:.1f}%", min(max(ratio, 0.0), 1.0)


class FrameDrawer:
    """Lays out header tabs, module panels and the key legend."""

    def __init__(self, config: AppConfig, colors: ColorResolver) -> None:
        self.config = config
        self.colors = colors
        chrome = config.theme.chrome
        self.border_attr = colors.attr(parse_color(chrome.border))
        self.title_attr = colors.attr(parse_color(chrome.title))
        self.header_attr = colors.attr(parse_color(chrome.header))
        self.error_attr = colors.attr(parse_color(chrome.error))

    def _fg(self, module: str) -> int:
        return self.colors.attr(parse_color(self.config.theme.for_module(module).fg))

    def _accent(self, module: str) -> int:
        return self.colors.attr(parse_color(self.config.theme.for_module(module).accent))

    # ── Frame ──────────────────────────────────────────────────────────────

    def draw_frame(
        self,
        win: Any,
        y: int,
        x: int,
        h: int,
        w: int,
        attr: int,
        title: str = "",
        title_attr: int = 0,
    ) -> tuple[int, int, int, int] | None:
        """Draw a border (per theme) and return the inner (y, x, h, w)."""
        if h < 3 or w < 4:
            return None
        chars = BORDER_CHARS.get(self.config.tui.borders)
        if chars is not None:
            tl, tr, bl, br, hz, vt = chars
            _safe(win, y, x, tl + hz * (w - 2) + tr, attr)
            for row in range(y + 1, y + h - 1):
                _safe(win, row, x, vt, attr)
                _safe(win, row, x + w - 1, vt, attr)
            _safe(win, y + h - 1, x, bl + hz * (w - 2) + br, attr)
        if title and len(title) + 4 < w:
            _safe(win, y, x + 2, f" {title} ", title_attr | curses.A_BOLD)
        return y + 1, x + 1, h - 2, w - 2

    # ── Regions ────────────────────────────────────────────────────────────

    def draw(self, win: Any, state: DashboardState) -> None:
        win.erase()
        max_y, max_x = win.getmaxyx()
        if max_y < MIN_H or max_x < MIN_W:
            _safe(win, 0, 0, f"Terminal too small (need {MIN_W}x{MIN_H}+)")
            win.refresh()
            return

        footer_h = FOOTER_H if self.config.tui.show_help else 0
        self.draw_header(win, 0, 0, HEADER_H, max_x, state)
        self.draw_body(win, HEADER_H, 0, max_y - HEADER_H - footer_h, max_x, state)
        if footer_h:
            self.draw_footer(win, max_y - footer_h, 0, footer_h, max_x, state)
        win.refresh()

    def draw_header(self, win: Any, y: int, x: int, h: int, w: int, state: DashboardState) -> None:
        inner = self.draw_frame(win, y, x, h, w, self.header_attr, "sysglance", self.title_attr)
        if inner is None or state.snapshot is None:
            return
        iy, ix, _, iw = inner
        cx = ix + 1
        for i, (name, _) in enumerate(state.snapshot.modules):
            if i == state.selected_tab:
                text = f" [{name.upper()}] "
                attr = self._fg(name) | curses.A_BOLD | curses.A_UNDERLINE
            else:
                text = f"  {name.upper()}  "
                attr = self._fg(name)
            if cx + len(text) > ix + iw:
                break
            _safe(win, iy, cx, text, attr)
            cx += len(text)

    def draw_body(self, win: Any, y: int, x: int, h: int, w: int, state: DashboardState) -> None:
        snapshot = state.snapshot
        if snapshot is None or not snapshot.modules:
            _safe(win, y + 1, x + 2, "No module data available.", self.error_attr)
            return
        count = len(snapshot.modules)
        col_w = w // count
        for i, (name, data) in enumerate(snapshot.modules):
            px = x + i * col_w
            pw = w - px if i == count - 1 else col_w
            self.draw_panel(win, y, px, h, pw, name, data, i == state.selected_tab)

    def draw_panel(
        self,
        win: Any,
        y: int,
        x: int,
        h: int,
        w: int,
        name: str,
        data: MetricData,
        selected: bool,
    ) -> None:
        fg = self._fg(name)
        border = fg if selected else self.border_attr
        inner = self.draw_frame(win, y, x, h, w, border, self.config.theme.label(name), fg)
        if inner is None:
            return
        iy, ix, ih, iw = inner
        row = iy
        bottom = iy + ih

        gauge = extract_gauge(name, data)
        if gauge is not None and row < bottom:
            label, ratio = gauge
            self.draw_gauge(win, row, ix, iw, ratio, label, self._accent(name))
            row += 2

        for key, value in sorted(data.metrics.items(), key=lambda kv: kv[0]):
            if row >= bottom:
                break
            prefix = f"{key}: "
            lines = textwrap.wrap(prefix + display_value(value), width=max(1, iw)) or [prefix]
            for n, line in enumerate(lines):
                if row >= bottom:
                    break
                if n == 0 and line.startswith(prefix.rstrip()):
                    head = line[: len(prefix)]
                    _safe(win, row, ix, head, fg | curses.A_BOLD)
                    _safe(win, row, ix + len(head), line[len(head):])
                else:
                    _safe(win, row, ix, line)
                row += 1

    def draw_gauge(
        self, win: Any, y: int, x: int, width: int, ratio: float, label: str, attr: int
    ) -> None:
        """Render ``label ████░░░░`` on one line."""
        text = f"{label} "
        bar_w = width - len(text)
        if bar_w < 3:
            _safe(win, y, x, label[:width], attr | curses.A_BOLD)
            return
        filled = int(bar_w * ratio)
        _safe(win, y, x, text, attr | curses.A_BOLD)
        _safe(win, y, x + len(text), BAR_FILL * filled, attr)
        _safe(win, y, x + len(text) + filled, BAR_EMPTY * (bar_w - filled), self.border_attr)

    def draw_footer(self, win: Any, y: int, x: int, h: int, w: int, state: DashboardState) -> None:
        inner = self.draw_frame(win, y, x, h, w, self.border_attr)
        if inner is None:
            return
        iy, ix, _, iw = inner
        cx = ix + 1
        for key, desc in (("q", " quit  "), ("←/→", " switch tab  "), ("Tab", " next  ")):
            _safe(win, iy, cx, key, curses.A_BOLD)
            _safe(win, iy, cx + len(key), desc)
            cx += len(key) + len(desc)

        if state.snapshot is not None and state.snapshot.errors:
            failed = ", ".join(f"{name}: {msg}" for name, msg in state.snapshot.errors)
            room = ix + iw - cx - 1
            if room > 4:
                _safe(win, iy, cx, f"! {failed}"[:room], self.error_attr | curses.A_BOLD)


# ── Main loop ──────────────────────────────────────────────────────────────


class DashboardApp:
    """Refresh/input loop around an ``Engine``; see module docstring for keys."""

    def __init__(
        self,
        engine: Engine,
        config: AppConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.engine = engine
        self.config = config
        self.state = DashboardState()
        self.phase = Phase.INITIALIZING
        self.refresh_interval = config.tui_refresh_ms / 1000.0
        self._clock = clock
        self._last_refresh = 0.0

    def refresh(self) -> None:
        self.state.set_snapshot(self.engine.collect_once())
        self._last_refresh = self._clock()

    def remaining(self) -> float:
        """Seconds until the next scheduled refresh, never negative."""
        return max(0.0, self.refresh_interval - (self._clock() - self._last_refresh))

    def step(self, stdscr: Any, drawer: FrameDrawer) -> None:
        """One RUNNING iteration: draw, wait, handle input, maybe refresh."""
        drawer.draw(stdscr, self.state)
        stdscr.timeout(math.ceil(self.remaining() * 1000))
        key = stdscr.getch()
        if key == curses.KEY_RESIZE:
            stdscr.clear()
        elif key != -1:
            self.state.handle_key(key)

        if self.state.quit_requested:
            self.phase = Phase.QUITTING
            return
        if self._clock() - self._last_refresh >= self.refresh_interval:
            self.refresh()

    def run(self, stdscr: Any, drawer: FrameDrawer | None = None) -> None:
        """Drive the loop on an initialised curses screen until quit."""
        try:
            curses.raw()
            curses.set_escdelay(25)
            stdscr.keypad(True)
            try:
                curses.curs_set(0)
            except curses.error:
                pass  # terminal can't hide the cursor

            if drawer is None:
                drawer = FrameDrawer(self.config, ColorPairs())
            self.refresh()
            self.phase = Phase.RUNNING
            while self.phase is Phase.RUNNING:
                self.step(stdscr, drawer)
        finally:
            self.phase = Phase.QUITTING
            self._restore()

    def _restore(self) -> None:
        # curses.wrapper's endwin still resets the terminal if these fail.
        try:
            curses.noraw()
        except curses.error:
            pass
        try:
            curses.curs_set(1)
        except curses.error:
            pass


def run_dashboard(engine: Engine, config: AppConfig) -> None:
    """Run the dashboard on the real terminal; curses owns setup and teardown."""
    app = DashboardApp(engine, config)
    try:
        with muted_console():
            curses.wrapper(app.run)
    except curses.error as exc:
        raise TuiError(exc) from exc
