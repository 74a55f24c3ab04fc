"""Tests for the dashboard state machine, drawing and loop."""

from __future__ import annotations

import curses
import dataclasses
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from sysglance.config import AppConfig, BorderStyle
from sysglance.dashboard import (
    DashboardApp,
    DashboardState,
    FrameDrawer,
    Phase,
    _safe,
    extract_gauge,
    nearest_palette_index,
    run_dashboard,
)
from sysglance.engine import Engine
from sysglance.errors import TuiError
from sysglance.metrics import MetricData, Snapshot

TS = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _data(**metrics: object) -> MetricData:
    return MetricData(metrics=metrics, timestamp=TS)  # type: ignore[arg-type]


def _snapshot(*names: str, errors: tuple[tuple[str, str], ...] = ()) -> Snapshot:
    return Snapshot(modules=tuple((n, _data(value=1)) for n in names), errors=errors)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class FakeWindow:
    """Records addstr calls; getch replays queued keys, -1 lets time pass."""

    def __init__(self, size: tuple[int, int] = (24, 80), keys=(), clock=None) -> None:
        self.size = size
        self.keys = list(keys)
        self.clock = clock
        self.writes: list[tuple[int, int, str]] = []
        self.timeouts: list[int] = []
        self.cleared = 0

    def getmaxyx(self) -> tuple[int, int]:
        return self.size

    def addstr(self, y: int, x: int, text: str, attr: int = 0) -> None:
        self.writes.append((y, x, text))

    def erase(self) -> None:
        self.writes.clear()

    def clear(self) -> None:
        self.cleared += 1

    def refresh(self) -> None:
        pass

    def keypad(self, flag: bool) -> None:
        pass

    def timeout(self, ms: int) -> None:
        self.timeouts.append(ms)

    def getch(self) -> int:
        key = self.keys.pop(0) if self.keys else ord("q")
        if key == -1 and self.clock is not None:
            self.clock.now += self.timeouts[-1] / 1000.0
        return key

    def text(self) -> str:
        return "\n".join(t for _, _, t in self.writes)


class StubColors:
    def attr(self, color) -> int:
        return 0


def _config(**tui: object) -> AppConfig:
    cfg = AppConfig.default()
    return dataclasses.replace(cfg, tui=dataclasses.replace(cfg.tui, **tui))


def _engine(*snapshots: Snapshot) -> MagicMock:
    engine = MagicMock(spec=Engine)
    engine.collect_once.side_effect = list(snapshots)
    return engine


# ── State ──────────────────────────────────────────────────────────────────


class TestDashboardState:
    def test_next_wraps(self) -> None:
        state = DashboardState()
        state.set_snapshot(_snapshot("cpu", "memory", "disk"))
        for expected in (1, 2, 0):
            state.next_tab()
            assert state.selected_tab == expected

    def test_prev_wraps(self) -> None:
        state = DashboardState()
        state.set_snapshot(_snapshot("cpu", "memory", "disk"))
        state.prev_tab()
        assert state.selected_tab == 2
        state.prev_tab()
        assert state.selected_tab == 1

    def test_no_tabs_is_noop(self) -> None:
        state = DashboardState()
        state.next_tab()
        state.prev_tab()
        assert state.selected_tab == 0
        state.set_snapshot(Snapshot())
        state.next_tab()
        assert state.selected_tab == 0

    def test_shrinking_snapshot_clamps_selection(self) -> None:
        state = DashboardState()
        state.set_snapshot(_snapshot("cpu", "memory", "disk"))
        state.selected_tab = 2
        state.set_snapshot(_snapshot("cpu"))
        assert state.selected_tab == 0
        state.set_snapshot(Snapshot())
        assert state.selected_tab == 0

    @pytest.mark.parametrize("key", [ord("q"), ord("Q"), 27, 3])
    def test_quit_keys(self, key: int) -> None:
        state = DashboardState()
        state.handle_key(key)
        assert state.quit_requested

    @pytest.mark.parametrize(
        ("key", "expected"),
        [
            (9, 1),
            (curses.KEY_RIGHT, 1),
            (ord("l"), 1),
            (curses.KEY_BTAB, 2),
            (curses.KEY_LEFT, 2),
            (ord("h"), 2),
            (ord("x"), 0),
        ],
    )
    def test_navigation_keys(self, key: int, expected: int) -> None:
        state = DashboardState()
        state.set_snapshot(_snapshot("cpu", "memory", "disk"))
        state.handle_key(key)
        assert state.selected_tab == expected
        assert not state.quit_requested


# ── Helpers ────────────────────────────────────────────────────────────────


class TestExtractGauge:
    def test_cpu(self) -> None:
        assert extract_gauge("cpu", _data(cpu_usage_percent=50.0)) == ("CPU: 50.0%", 0.5)

    def test_clamped(self) -> None:
        assert extract_gauge("disk", _data(usage_percent=150.0)) == ("DISK: 150.0%", 1.0)

    def test_non_float_or_missing(self) -> None:
        assert extract_gauge("memory", _data(memory_usage_percent=50)) is None
        assert extract_gauge("memory", _data()) is None

    def test_module_without_gauge(self) -> None:
        assert extract_gauge("network", _data(usage_percent=10.0)) is None

    def test_nan(self) -> None:
        label, ratio = extract_gauge("cpu", _data(cpu_usage_percent=float("nan")))  # type: ignore[misc]
        assert ratio == 0.0
        assert label.startswith("CPU: ")


def test_nearest_palette_index() -> None:
    assert nearest_palette_index((250, 0, 0)) == 9
    assert nearest_palette_index((0, 0, 0)) == 0
    assert nearest_palette_index((0, 200, 200)) == 6


def test_safe_swallows_curses_error() -> None:
    win = MagicMock()
    win.addstr.side_effect = curses.error("out of bounds")
    _safe(win, 100, 100, "x")
    win.addstr.assert_called_once_with(100, 100, "x")


# ── Drawing ────────────────────────────────────────────────────────────────


class TestFrameDrawer:
    def _draw(self, state: DashboardState, config: AppConfig | None = None, size=(24, 80)) -> FakeWindow:
        win = FakeWindow(size=size)
        FrameDrawer(config or _config(), StubColors()).draw(win, state)
        return win

    def test_tabs_and_panels(self) -> None:
        state = DashboardState()
        state.set_snapshot(
            Snapshot(
                modules=(
                    ("cpu", _data(cpu_usage_percent=42.0, cpu_count=4)),
                    ("memory", _data(memory_usage_percent=10.0)),
                )
            )
        )
        text = self._draw(state).text()

        assert " [CPU] " in text
        assert "  MEMORY  " in text
        assert "sysglance" in text
        assert "CPU: 42.0%" in text
        assert "cpu_count: " in text
        # Panel titles come from the theme labels
        assert " Memory " in text

    def test_selected_tab_moves(self) -> None:
        state = DashboardState()
        state.set_snapshot(_snapshot("cpu", "memory"))
        state.next_tab()
        text = self._draw(state).text()
        assert " [MEMORY] " in text
        assert "  CPU  " in text

    def test_footer_legend(self) -> None:
        state = DashboardState()
        state.set_snapshot(_snapshot("cpu"))
        text = self._draw(state).text()
        assert " quit  " in text
        assert " switch tab  " in text

    def test_footer_hidden(self) -> None:
        state = DashboardState()
        state.set_snapshot(_snapshot("cpu"))
        text = self._draw(state, _config(show_help=False)).text()
        assert " quit  " not in text

    def test_collection_errors_in_footer(self) -> None:
        state = DashboardState()
        state.set_snapshot(_snapshot("cpu", errors=(("disk", "boom"),)))
        assert "! disk: boom" in self._draw(state).text()

    def test_empty_snapshot(self) -> None:
        state = DashboardState()
        state.set_snapshot(Snapshot())
        assert "No module data available." in self._draw(state).text()

    def test_terminal_too_small(self) -> None:
        state = DashboardState()
        state.set_snapshot(_snapshot("cpu"))
        win = self._draw(state, size=(8, 30))
        assert len(win.writes) == 1
        assert win.writes[0][2].startswith("Terminal too small")

    def test_border_styles(self) -> None:
        state = DashboardState()
        state.set_snapshot(_snapshot("cpu"))
        assert "╭" in self._draw(state).text()
        assert "┌" in self._draw(state, _config(borders=BorderStyle.PLAIN)).text()
        bare = self._draw(state, _config(borders=BorderStyle.NONE)).text()
        assert "╭" not in bare
        assert "┌" not in bare
        assert " [CPU] " in bare


# ── Loop ───────────────────────────────────────────────────────────────────


class TestDashboardLoop:
    def _app(self, engine: MagicMock, clock: FakeClock) -> DashboardApp:
        return DashboardApp(engine, _config(refresh_ms=1000), clock=clock)

    def test_timeout_triggers_refresh(self) -> None:
        clock = FakeClock()
        engine = _engine(_snapshot("cpu"), _snapshot("cpu", "memory"))
        app = self._app(engine, clock)
        app.refresh()

        win = FakeWindow(keys=[-1], clock=clock)
        app.step(win, FrameDrawer(app.config, StubColors()))

        assert win.timeouts == [1000]
        assert engine.collect_once.call_count == 2
        assert app.state.tab_count == 2

    def test_wait_shrinks_with_elapsed_time(self) -> None:
        clock = FakeClock()
        app = self._app(_engine(_snapshot("cpu")), clock)
        app.refresh()
        clock.now = 0.4
        assert app.remaining() == pytest.approx(0.6)
        clock.now = 5.0
        assert app.remaining() == 0.0

    def test_key_does_not_refresh_early(self) -> None:
        clock = FakeClock()
        engine = _engine(_snapshot("cpu", "memory"))
        app = self._app(engine, clock)
        app.refresh()

        app.step(FakeWindow(keys=[9], clock=clock), FrameDrawer(app.config, StubColors()))

        assert app.state.selected_tab == 1
        assert engine.collect_once.call_count == 1
        assert app.phase is not Phase.QUITTING

    def test_quit_key(self) -> None:
        clock = FakeClock()
        engine = _engine(_snapshot("cpu"))
        app = self._app(engine, clock)
        app.refresh()

        app.step(FakeWindow(keys=[ord("q")], clock=clock), FrameDrawer(app.config, StubColors()))

        assert app.phase is Phase.QUITTING
        assert engine.collect_once.call_count == 1

    def test_resize_clears(self) -> None:
        clock = FakeClock()
        app = self._app(_engine(_snapshot("cpu")), clock)
        app.refresh()
        win = FakeWindow(keys=[curses.KEY_RESIZE], clock=clock)
        app.step(win, FrameDrawer(app.config, StubColors()))
        assert win.cleared == 1
        assert app.phase is not Phase.QUITTING


@patch("sysglance.dashboard.curses.curs_set")
@patch("sysglance.dashboard.curses.noraw")
@patch("sysglance.dashboard.curses.set_escdelay")
@patch("sysglance.dashboard.curses.raw")
class TestDashboardRun:
    def test_restores_terminal_on_quit(
        self, mock_raw: MagicMock, mock_esc: MagicMock, mock_noraw: MagicMock, mock_curs: MagicMock
    ) -> None:
        clock = FakeClock()
        engine = MagicMock(spec=Engine)
        engine.collect_once.return_value = _snapshot("cpu")
        app = DashboardApp(engine, _config(), clock=clock)
        win = FakeWindow(keys=[-1, ord("x"), ord("q")], clock=clock)

        app.run(win, FrameDrawer(app.config, StubColors()))

        mock_raw.assert_called_once()
        mock_esc.assert_called_once_with(25)
        mock_noraw.assert_called_once()
        mock_curs.assert_any_call(0)
        mock_curs.assert_called_with(1)
        assert app.phase is Phase.QUITTING
        assert len(win.timeouts) == 3

    def test_restores_terminal_on_error(
        self, mock_raw: MagicMock, mock_esc: MagicMock, mock_noraw: MagicMock, mock_curs: MagicMock
    ) -> None:
        engine = MagicMock(spec=Engine)
        engine.collect_once.side_effect = RuntimeError("collector exploded")
        app = DashboardApp(engine, _config(), clock=FakeClock())

        with pytest.raises(RuntimeError):
            app.run(FakeWindow(), FrameDrawer(app.config, StubColors()))

        mock_noraw.assert_called_once()
        mock_curs.assert_called_with(1)
        assert app.phase is Phase.QUITTING

    def test_cursor_restored_when_noraw_fails(
        self, mock_raw: MagicMock, mock_esc: MagicMock, mock_noraw: MagicMock, mock_curs: MagicMock
    ) -> None:
        mock_noraw.side_effect = curses.error("noraw failed")
        engine = MagicMock(spec=Engine)
        engine.collect_once.return_value = _snapshot("cpu")
        app = DashboardApp(engine, _config(), clock=FakeClock())

        app.run(FakeWindow(keys=[ord("q")]), FrameDrawer(app.config, StubColors()))

        mock_noraw.assert_called_once()
        mock_curs.assert_called_with(1)
        assert app.phase is Phase.QUITTING


@patch("sysglance.dashboard.curses.wrapper", side_effect=curses.error("no terminal"))
def test_run_dashboard_wraps_curses_error(mock_wrapper: MagicMock) -> None:
    with pytest.raises(TuiError) as excinfo:
        run_dashboard(MagicMock(spec=Engine), AppConfig.default())
    assert excinfo.value.exit_code == 9
    assert "no terminal" in str(excinfo.value)
