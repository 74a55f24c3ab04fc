"""Error taxonomy for sysglance.

Every fatal error carries the process exit code it maps to; ``cli.main``
prints ``error: <message>`` and exits with that code.
"""

from __future__ import annotations


class SysglanceError(Exception):
    """Base class for all sysglance errors."""

    exit_code: int = 1


class UnknownModuleError(SysglanceError):
    exit_code = 3

    def __init__(self, module: str) -> None:
        super().__init__(f"unknown module: {module}")
        self.module = module


class UnknownFormatError(SysglanceError):
    exit_code = 4

    def __init__(self, fmt: str) -> None:
        super().__init__(f"unknown output format: {fmt}")
        self.format = fmt


class ConfigLoadError(SysglanceError):
    exit_code = 5

    def __init__(self, path: str, reason: object) -> None:
        super().__init__(f"failed to load config from {path}: {reason}")
        self.path = path


class ConfigParseError(SysglanceError):
    exit_code = 6

    def __init__(self, reason: object) -> None:
        super().__init__(f"failed to parse config: {reason}")


class IoError(SysglanceError):
    exit_code = 7

    def __init__(self, reason: object) -> None:
        super().__init__(f"I/O error: {reason}")


class OutputError(SysglanceError):
    exit_code = 8

    def __init__(self, reason: object) -> None:
        super().__init__(f"output formatting error: {reason}")


class TuiError(SysglanceError):
    exit_code = 9

    def __init__(self, reason: object) -> None:
        super().__init__(f"TUI error: {reason}")


class CollectorError(SysglanceError):
    """A single module failed to collect; recoverable at the engine level."""

    exit_code = 10

    def __init__(self, module: str, cause: BaseException | str) -> None:
        super().__init__(f"failed to collect {module} metrics: {cause}")
        self.module = module
        self.cause = cause
