"""Configuration loading for sysglance.

Loads settings from a YAML config file merged over built-in defaults.
Search order: explicit --config path → $XDG_CONFIG_HOME/sysglance/config.yaml
(~/.config/sysglance/config.yaml) → defaults only.
"""

from __future__ import annotations

import copy
import enum
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import yaml

from sysglance.errors import ConfigLoadError, ConfigParseError

MODULE_NAMES = ("cpu", "memory", "disk", "network", "process", "system")

DEFAULT_CONFIG: dict[str, Any] = {
    "general": {
        "refresh_ms": 1000,
        "default_modules": ["system", "cpu", "memory", "disk", "network", "process"],
    },
    "print": {
        "output": "table",
        "show_units": True,
        "watch": False,
    },
    "tui": {
        "refresh_ms": None,
        "borders": "rounded",
        "show_help": True,
    },
    "theme": {
        "cpu": {"label": "CPU", "fg": "cyan", "accent": "light_cyan"},
        "memory": {"label": "Memory", "fg": "green", "accent": "light_green"},
        "disk": {"label": "Disk", "fg": "yellow", "accent": "light_yellow"},
        "network": {"label": "Network", "fg": "magenta", "accent": "light_magenta"},
        "process": {"label": "Processes", "fg": "red", "accent": "light_red"},
        "system": {"label": "System", "fg": "blue", "accent": "light_blue"},
        "chrome": {"border": "gray", "title": "white", "header": "white", "error": "red"},
    },
}


def default_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "sysglance" / "config.yaml"


# ── Colours ────────────────────────────────────────────────────────────────

# Values are the 16 standard terminal colour indices (curses COLOR_* 0-7,
# bright variants 8-15).
PALETTE: dict[str, int] = {
    "black": 0,
    "red": 1,
    "green": 2,
    "yellow": 3,
    "blue": 4,
    "magenta": 5,
    "cyan": 6,
    "gray": 7,
    "grey": 7,
    "dark_gray": 8,
    "dark_grey": 8,
    "light_red": 9,
    "light_green": 10,
    "light_yellow": 11,
    "light_blue": 12,
    "light_magenta": 13,
    "light_cyan": 14,
    "white": 15,
}

# Either a palette index or an (r, g, b) triple from a #RRGGBB string.
Color = Union[int, tuple[int, int, int]]

_HEX_COLOR = re.compile(r"#[0-9a-f]{6}")


def parse_color(name: str) -> Color:
    """Resolve a colour name or ``#RRGGBB``; unknown input means white."""
    text = name.strip().lower()
    if text in PALETTE:
        return PALETTE[text]
    if _HEX_COLOR.fullmatch(text):
        return (int(text[1:3], 16), int(text[3:5], 16), int(text[5:7], 16))
    return PALETTE["white"]


# ── Typed config ───────────────────────────────────────────────────────────


class BorderStyle(enum.Enum):
    NONE = "none"
    PLAIN = "plain"
    ROUNDED = "rounded"


@dataclass(frozen=True)
class GeneralConfig:
    refresh_ms: int
    default_modules: tuple[str, ...]


@dataclass(frozen=True)
class PrintConfig:
    output: str
    show_units: bool
    watch: bool


@dataclass(frozen=True)
class TuiConfig:
    refresh_ms: int | None
    borders: BorderStyle
    show_help: bool


@dataclass(frozen=True)
class ModuleTheme:
    label: str
    fg: str
    accent: str


@dataclass(frozen=True)
class ChromeTheme:
    border: str
    title: str
    header: str
    error: str


@dataclass(frozen=True)
class ThemeConfig:
    modules: dict[str, ModuleTheme]
    chrome: ChromeTheme

    def for_module(self, name: str) -> ModuleTheme:
        return self.modules.get(name) or ModuleTheme(label="", fg="white", accent="gray")

    def label(self, name: str) -> str:
        return self.for_module(name).label or name.upper()


@dataclass(frozen=True)
class AppConfig:
    general: GeneralConfig
    print: PrintConfig
    tui: TuiConfig
    theme: ThemeConfig

    @property
    def tui_refresh_ms(self) -> int:
        if self.tui.refresh_ms is not None:
            return self.tui.refresh_ms
        return self.general.refresh_ms

    @classmethod
    def default(cls) -> "AppConfig":
        return build_config(copy.deepcopy(DEFAULT_CONFIG))


# ── Validation helpers ─────────────────────────────────────────────────────


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name)
    if not isinstance(value, dict):
        raise ConfigParseError(f"section '{name}' must be a mapping")
    return value


def _int(section: str, key: str, value: Any, *, optional: bool = False) -> int | None:
    if value is None and optional:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigParseError(f"{section}.{key} must be a positive integer, got {value!r}")
    return value


def _bool(section: str, key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigParseError(f"{section}.{key} must be true or false, got {value!r}")
    return value


def _str(section: str, key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigParseError(f"{section}.{key} must be a string, got {value!r}")
    return value


def _module_list(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(m.strip() for m in value.split(",") if m.strip())
    if not isinstance(value, list) or not all(isinstance(m, str) for m in value):
        raise ConfigParseError(f"general.default_modules must be a list of names, got {value!r}")
    return tuple(value)


def build_config(raw: dict[str, Any]) -> AppConfig:
    """Validate a merged config dict into an immutable ``AppConfig``."""
    general = _section(raw, "general")
    printing = _section(raw, "print")
    tui = _section(raw, "tui")
    theme = _section(raw, "theme")

    borders_raw = _str("tui", "borders", tui.get("borders"))
    try:
        borders = BorderStyle(borders_raw.lower())
    except ValueError:
        raise ConfigParseError(
            f"tui.borders must be one of none, plain, rounded; got {borders_raw!r}"
        ) from None

    modules: dict[str, ModuleTheme] = {}
    for name in MODULE_NAMES:
        entry = theme.get(name)
        if not isinstance(entry, dict):
            raise ConfigParseError(f"theme.{name} must be a mapping")
        modules[name] = ModuleTheme(
            label=_str(f"theme.{name}", "label", entry.get("label", "")),
            fg=_str(f"theme.{name}", "fg", entry.get("fg", "white")),
            accent=_str(f"theme.{name}", "accent", entry.get("accent", "gray")),
        )
    chrome = theme.get("chrome")
    if not isinstance(chrome, dict):
        raise ConfigParseError("theme.chrome must be a mapping")

    return AppConfig(
        general=GeneralConfig(
            refresh_ms=_int("general", "refresh_ms", general.get("refresh_ms")),  # type: ignore[arg-type]
            default_modules=_module_list(general.get("default_modules")),
        ),
        print=PrintConfig(
            output=_str("print", "output", printing.get("output")),
            show_units=_bool("print", "show_units", printing.get("show_units")),
            watch=_bool("print", "watch", printing.get("watch")),
        ),
        tui=TuiConfig(
            refresh_ms=_int("tui", "refresh_ms", tui.get("refresh_ms"), optional=True),
            borders=borders,
            show_help=_bool("tui", "show_help", tui.get("show_help")),
        ),
        theme=ThemeConfig(
            modules=modules,
            chrome=ChromeTheme(
                border=_str("theme.chrome", "border", chrome.get("border")),
                title=_str("theme.chrome", "title", chrome.get("title")),
                header=_str("theme.chrome", "header", chrome.get("header")),
                error=_str("theme.chrome", "error", chrome.get("error")),
            ),
        ),
    )


# ── Loading ────────────────────────────────────────────────────────────────


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base, recursing into nested dicts."""
    merged = dict(base)
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigLoadError(str(path), e) from e
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigParseError(e) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigParseError(f"{path}: top level must be a mapping")
    return data


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration, merging user YAML over defaults.

    Args:
        path: Explicit config file path (from --config). If None, tries the
              default location and falls back to built-in defaults.

    Raises:
        ConfigLoadError: If an explicit path doesn't exist or can't be read.
        ConfigParseError: If the file isn't valid YAML or has ill-typed values.
    """
    if path is not None:
        if not path.is_file():
            raise ConfigLoadError(str(path), "config file not found")
        user_config = _read_yaml(path)
    else:
        default_path = default_config_path()
        user_config = _read_yaml(default_path) if default_path.is_file() else {}

    return build_config(_deep_merge(copy.deepcopy(DEFAULT_CONFIG), user_config))


def dump_default_config() -> str:
    """Return the default configuration as a YAML string."""
    header = (
        "# sysglance configuration\n"
        f"# Place this file at {default_config_path()}\n\n"
    )
    return header + yaml.safe_dump(DEFAULT_CONFIG, sort_keys=False, default_flow_style=False)
