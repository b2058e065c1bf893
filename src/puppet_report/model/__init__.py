from __future__ import annotations

from .loader import decode_report, load_report, split_resource_id
from .schema import (
    Event,
    LogEntry,
    Metric,
    MetricValue,
    RankedEntry,
    Report,
    ResourceStatus,
    RunDigest,
)

__all__ = [
    "Event",
    "LogEntry",
    "Metric",
    "MetricValue",
    "RankedEntry",
    "Report",
    "ResourceStatus",
    "RunDigest",
    "decode_report",
    "load_report",
    "split_resource_id",
]
