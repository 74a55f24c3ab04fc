"""Command-line entry point: one-shot/watch printing and the dashboard.

Usage:
    sysglance                                  # print configured modules once
    sysglance print --module cpu,memory --output json
    sysglance print --watch
    sysglance tui --module cpu,disk
    sysglance config > ~/.config/sysglance/config.yaml
"""

from __future__ import annotations

import argparse
import logging
import os
import select
import sys
import termios
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, TextIO

from sysglance.config import AppConfig, dump_default_config, load_config
from sysglance.dashboard import run_dashboard
from sysglance.engine import Engine
from sysglance.errors import IoError, SysglanceError
from sysglance.logging_utils import configure_logging, resolve_log_level
from sysglance.render import OutputFormat, format_snapshot

log = logging.getLogger(__name__)

CLEAR_SCREEN = "\033[2J\033[H"


def _module_list(value: str) -> list[str]:
    return [m.strip() for m in value.split(",") if m.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sysglance",
        description="Sample host metrics and print them or show a live dashboard.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--no-config",
        action="store_true",
        help="Ignore config files and use built-in defaults",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    sub = parser.add_subparsers(dest="command")

    p_print = sub.add_parser("print", help="Print metrics as table, json or raw text")
    p_print.add_argument(
        "-m",
        "--module",
        type=_module_list,
        default=None,
        help="Comma-separated modules (cpu,memory,disk,network,process,system)",
    )
    p_print.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output format: json, table or raw",
    )
    p_print.add_argument(
        "-w",
        "--watch",
        action="store_true",
        help="Redraw every refresh interval until q or Esc",
    )

    p_tui = sub.add_parser("tui", help="Interactive dashboard")
    p_tui.add_argument(
        "-m",
        "--module",
        type=_module_list,
        default=None,
        help="Comma-separated modules (cpu,memory,disk,network,process,system)",
    )

    sub.add_parser("config", help="Print the default configuration as YAML")
    return parser


# ── Output ─────────────────────────────────────────────────────────────────


def _write(out: TextIO | None, text: str) -> None:
    out = out or sys.stdout
    try:
        out.write(text)
        out.flush()
    except OSError as e:
        raise IoError(e) from e


def run_print_once(
    engine: Engine, fmt: OutputFormat, show_units: bool, out: TextIO | None = None
) -> None:
    _write(out, format_snapshot(engine.collect_once(), fmt, show_units))


@contextmanager
def _cbreak_stdin() -> Iterator[int | None]:
    """Unbuffered, no-echo stdin for single-key reads; yields None off a tty."""
    if not sys.stdin.isatty():
        yield None
        return
    fd = sys.stdin.fileno()
    try:
        saved = termios.tcgetattr(fd)
        attrs = termios.tcgetattr(fd)
        attrs[3] &= ~(termios.ICANON | termios.ECHO)
        attrs[6][termios.VMIN] = 0
        attrs[6][termios.VTIME] = 0
        termios.tcsetattr(fd, termios.TCSANOW, attrs)
    except termios.error as e:
        raise IoError(e) from e
    try:
        yield fd
    finally:
        termios.tcsetattr(fd, termios.TCSANOW, saved)


def _wait_for_quit(fd: int | None, timeout: float) -> bool:
    """Block up to ``timeout`` seconds; True if q or Esc was pressed."""
    deadline = time.monotonic() + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        if fd is None:
            time.sleep(remaining)
            return False
        ready, _, _ = select.select([fd], [], [], remaining)
        if not ready:
            return False
        data = os.read(fd, 64)
        if not data:
            # stdin hit EOF; nothing more will arrive.
            time.sleep(max(0.0, deadline - time.monotonic()))
            return False
        # A lone ESC is the key; ESC followed by more bytes is an arrow etc.
        if data == b"\x1b" or data[:1] in (b"q", b"Q"):
            return True


def run_watch(
    engine: Engine,
    fmt: OutputFormat,
    refresh_ms: int,
    show_units: bool,
    out: TextIO | None = None,
) -> None:
    interval = refresh_ms / 1000.0
    with _cbreak_stdin() as fd:
        while True:
            snapshot = engine.collect_once()
            _write(out, CLEAR_SCREEN + format_snapshot(snapshot, fmt, show_units))
            if _wait_for_quit(fd, interval):
                return


# ── Dispatch ───────────────────────────────────────────────────────────────


def resolve_modules(cli_modules: list[str] | None, config: AppConfig) -> list[str]:
    if cli_modules is not None:
        return cli_modules
    return list(config.general.default_modules)


def run(args: argparse.Namespace) -> None:
    """Execute the parsed command; raises ``SysglanceError`` on fatal errors."""
    if args.command == "config":
        _write(None, dump_default_config())
        return

    config = AppConfig.default() if args.no_config else load_config(args.config)
    modules = resolve_modules(getattr(args, "module", None), config)
    engine = Engine(modules)
    log.debug("modules: %s", ", ".join(engine.module_names))

    if args.command == "tui":
        run_dashboard(engine, config)
        return

    if args.command == "print" and args.output is not None:
        fmt = OutputFormat.parse(args.output)
    else:
        fmt = OutputFormat.from_config(config.print.output)

    watch = args.command == "print" and (args.watch or config.print.watch)
    if watch:
        run_watch(engine, fmt, config.general.refresh_ms, config.print.show_units)
    else:
        run_print_once(engine, fmt, config.print.show_units)


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(resolve_log_level(args.verbose, args.log_level))
    try:
        run(args)
    except SysglanceError as e:
        print(f"error: {e}", file=sys.stderr)
        raise SystemExit(e.exit_code) from None
    except KeyboardInterrupt:
        raise SystemExit(130) from None


if __name__ == "__main__":
    main()
