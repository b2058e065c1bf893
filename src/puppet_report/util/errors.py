from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    OK = 0
    LOAD_ERROR = 1
    CONFIG_ERROR = 2


class ReportError(Exception):
    """Base error for report analysis."""


class ConfigError(ReportError):
    """Raised for configuration or argument issues."""


class ReportLoadError(ReportError):
    """Raised when a report file cannot be read or decoded."""

    def __init__(self, path: object, reason: str) -> None:
        super().__init__(f"Cannot load report {path}: {reason}")
        self.path = path
        self.reason = reason


class ReportFormatError(ReportError):
    """Raised when a report is too old for a requested feature."""

    def __init__(self, report_format: int, required: int, feature: str) -> None:
        super().__init__(
            f"Report too old: format {report_format} does not support {feature} (needs {required})"
        )
        self.report_format = report_format
        self.required = required
        self.feature = feature


class ResourceParseError(ReportError):
    """Raised for resource identifiers that are not of the form Type[title]."""

    def __init__(self, resource_id: str) -> None:
        super().__init__(f"Cannot parse type {resource_id}")
        self.resource_id = resource_id


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, ConfigError):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, (ReportLoadError, ReportError, OSError)):
        return int(ExitCode.LOAD_ERROR)
    return 1
