from __future__ import annotations

import json
import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_STANDARD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}

# Report context attached by the loader, ranking and batch code, in display order.
CONTEXT_KEYS = ("source", "path", "resource", "metric", "pattern", "error")


@dataclass(frozen=True)
class LogConfig:
    level: str = "WARNING"
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> LogConfig:
        """Settings for runs where the full configuration could not be built."""
        json_env = (os.getenv("PUPPET_REPORT_JSON_LOGS") or "").lower()
        return cls(
            level=os.getenv("PUPPET_REPORT_LOG_LEVEL") or "WARNING",
            json_logs=json_env in ("1", "true", "yes"),
        )


def record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS and v is not None}


class JsonFormatter(logging.Formatter):
    """One JSON object per record; extras that cannot be serialized are left out."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": _utc_timestamp(record, millis=True),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key, value in record_extras(record).items():
            if _serializable(value):
                payload[key] = value
        return json.dumps(payload, sort_keys=True)


class PlainFormatter(logging.Formatter):
    """
    ``<ts> LEVEL logger: [step:phase] message (duration_ms=N) key=value ...``

    Only the report context keys are appended, so a skipped file or a dropped
    metric row can be traced back to its report without switching to JSON logs.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        extras = record_extras(record)
        message = record.getMessage()
        step = extras.get("step")
        phase = extras.get("phase")
        if step or phase:
            message = f"[{step or 'unknown'}:{phase or 'unknown'}] {message}"
        if "duration_ms" in extras:
            message = f"{message} (duration_ms={extras['duration_ms']})"
        context = " ".join(f"{key}={extras[key]}" for key in CONTEXT_KEYS if key in extras)
        if context:
            message = f"{message} {context}"
        line = f"{_utc_timestamp(record)} {record.levelname} {record.name}: {message}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class StderrHandler(logging.StreamHandler):
    """StreamHandler that writes to whatever sys.stderr is at emit time."""

    def __init__(self) -> None:
        logging.Handler.__init__(self)

    @property
    def stream(self):  # type: ignore[override]
        return sys.stderr


def _utc_timestamp(record: logging.LogRecord, millis: bool = False) -> str:
    stamp = time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created))
    if millis:
        stamp = f"{stamp}.{int(record.msecs):03d}"
    return f"{stamp}Z"


def _serializable(value: Any) -> bool:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


def _level_from_str(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.WARNING


def setup_logging(config: Optional[LogConfig] = None) -> None:
    """
    Install a single stderr handler on the root logger.

    Calling it again replaces the handler, so the last configuration wins and
    handlers never stack up across repeated runs in one process.
    """
    config = config or LogConfig.from_env()
    handler = StderrHandler()
    handler.setFormatter(JsonFormatter() if config.json_logs else PlainFormatter())

    root = logging.getLogger()
    root.setLevel(_level_from_str(config.level))
    root.handlers = [handler]


def logging_configured() -> bool:
    return any(isinstance(h, StderrHandler) for h in logging.getLogger().handlers)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
