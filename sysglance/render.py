"""Text rendering of metric data for ``print`` mode.

All functions here are pure: the same input always yields the same string.
"""

from __future__ import annotations

import enum
import json
import math
from typing import Any

from sysglance.errors import OutputError, UnknownFormatError
from sysglance.metrics import MetricData, MetricValue, Snapshot

MIN_KEY_WIDTH = 20
VALUE_RULE_WIDTH = 40

_UNITS = (
    (1024**3, "GB"),
    (1024**2, "MB"),
    (1024, "KB"),
)


class OutputFormat(enum.Enum):
    TABLE = "table"
    JSON = "json"
    RAW = "raw"

    @classmethod
    def parse(cls, text: str) -> "OutputFormat":
        try:
            return cls(text.strip().lower())
        except ValueError:
            raise UnknownFormatError(text) from None

    @classmethod
    def from_config(cls, text: str) -> "OutputFormat":
        """Lenient variant for config values: anything unknown means table."""
        try:
            return cls.parse(text)
        except UnknownFormatError:
            return cls.TABLE


# ── Value display ──────────────────────────────────────────────────────────


def format_scaled(value: int) -> str:
    """Integer with binary KB/MB/GB scaling once it reaches 1024."""
    magnitude = abs(value)
    for factor, unit in _UNITS:
        if magnitude >= factor:
            sign = "-" if value < 0 else ""
            return f"{sign}{magnitude / factor:.2f} {unit}"
    return str(value)


def display_value(value: MetricValue, show_units: bool = True) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return format_scaled(value) if show_units else str(value)
    if isinstance(value, float):
        return f"{value:.2f}"
    if isinstance(value, (list, tuple)):
        return ", ".join(display_value(v, show_units) for v in value)
    return str(value)


def to_json_value(value: MetricValue) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    return value


# ── Formats ────────────────────────────────────────────────────────────────


def _sorted_items(data: MetricData) -> list[tuple[str, MetricValue]]:
    return sorted(data.metrics.items(), key=lambda kv: kv[0])


def format_table(data: MetricData, show_units: bool = True) -> str:
    entries = _sorted_items(data)
    width = max([len(k) for k, _ in entries] + [MIN_KEY_WIDTH])
    rule_left = "─" * (width + 2)
    rule_right = "─" * VALUE_RULE_WIDTH

    lines = [f"{rule_left}┬{rule_right}"]
    for key, value in entries:
        lines.append(f" {key:<{width}} │ {display_value(value, show_units)}")
    lines.append(f"{rule_left}┴{rule_right}")
    return "\n".join(lines) + "\n"


def format_json(data: MetricData) -> str:
    payload = {
        "timestamp": data.timestamp.isoformat(),
        "metrics": {k: to_json_value(v) for k, v in data.metrics.items()},
    }
    try:
        return json.dumps(payload, indent=2, sort_keys=True, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise OutputError(exc) from exc


def format_raw(data: MetricData, show_units: bool = True) -> str:
    return "".join(
        f"{key}={display_value(value, show_units)}\n" for key, value in _sorted_items(data)
    )


def format_output(data: MetricData, fmt: OutputFormat, show_units: bool = True) -> str:
    if fmt is OutputFormat.JSON:
        return format_json(data)
    if fmt is OutputFormat.RAW:
        return format_raw(data, show_units)
    return format_table(data, show_units)


def format_snapshot(snapshot: Snapshot, fmt: OutputFormat, show_units: bool = True) -> str:
    parts: list[str] = []
    for name, data in snapshot.modules:
        parts.append(f"=== {name.upper()} ===\n")
        parts.append(format_output(data, fmt, show_units))
        parts.append("\n")
    return "".join(parts)
