from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Event:
    message: str = ""
    status: str = ""
    property: Optional[str] = None


@dataclass(frozen=True)
class LogEntry:
    level: str = ""
    message: str = ""
    source: str = ""
    time: str = ""

    def to_report(self) -> str:
        return f"{self.time} {self.source} ({self.level}): {self.message}"


@dataclass(frozen=True)
class MetricValue:
    category: str
    label: str
    value: float


@dataclass(frozen=True)
class Metric:
    name: str
    label: str
    values: Tuple[MetricValue, ...] = ()


@dataclass(frozen=True)
class ResourceStatus:
    resource_type: str
    title: str
    # None when the resource was not evaluated (skipped, noop, old reports)
    evaluation_time: Optional[float] = None
    failed: bool = False
    changed: bool = False
    skipped: bool = False
    events: Tuple[Event, ...] = ()


@dataclass(frozen=True)
class Report:
    host: str = ""
    environment: str = ""
    time: str = ""
    kind: str = ""
    puppet_version: str = ""
    report_format: int = 0
    configuration_version: str = ""
    transaction_uuid: Optional[str] = None
    status: str = ""
    logs: Tuple[LogEntry, ...] = ()
    metrics: Dict[str, Metric] = field(default_factory=dict)
    resource_statuses: Dict[str, ResourceStatus] = field(default_factory=dict)


@dataclass(frozen=True)
class RankedEntry:
    evaluation_time: float
    resource_name: str
    source_file: str = ""


@dataclass(frozen=True)
class RunDigest:
    start_time: str
    status: str
    configuration_version: str
    total_time: Optional[float] = None
    failed_resources: Dict[str, List[str]] = field(default_factory=dict)
