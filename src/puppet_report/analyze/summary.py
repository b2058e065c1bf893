from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..logging import get_logger
from ..model.schema import Report
from ..util.errors import ResourceParseError
from .accessor import resources, resources_of_type

LOG = get_logger(__name__)

_TYPE_PREFIX_RE = re.compile(r"^(.+?)\[")
_FILE_RE = re.compile(r"^File\[(.+)\]$", re.DOTALL)

BYTE_UNITS = ("B", "KB", "MB", "GB", "TB")
METRIC_PADDING = 6


@dataclass(frozen=True)
class TypeSummary:
    counts: Dict[str, int]
    parse_errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class MetricGroup:
    name: str
    label: str
    rows: List[Tuple[str, float]]


@dataclass(frozen=True)
class MetricTable:
    padding: int
    groups: List[MetricGroup]


def resource_type_of(resource_id: str) -> str:
    m = _TYPE_PREFIX_RE.match(resource_id)
    if not m:
        raise ResourceParseError(resource_id)
    return m.group(1)


def summary_by_type(report: Report) -> TypeSummary:
    counts: Dict[str, int] = {}
    errors: List[str] = []
    for resource_id in resources(report):
        try:
            rtype = resource_type_of(resource_id)
        except ResourceParseError as e:
            LOG.error(str(e))
            errors.append(resource_id)
            continue
        counts[rtype] = counts.get(rtype, 0) + 1
    ordered = dict(sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))
    return TypeSummary(counts=ordered, parse_errors=errors)


def metric_table(report: Report) -> MetricTable:
    """
    Metric groups ordered by label, each with its rows ordered by value (largest first).
    ``padding`` is the longest sub-label in the whole report plus a fixed margin,
    so every group lines up in one column.
    """
    groups: List[MetricGroup] = []
    longest = 0
    for name, metric in sorted(report.metrics.items(), key=lambda kv: kv[1].label):
        rows = [(v.label, v.value) for v in metric.values]
        rows.sort(key=lambda row: row[1], reverse=True)
        for label, _ in rows:
            longest = max(longest, len(label))
        groups.append(MetricGroup(name=name, label=metric.label, rows=rows))
    return MetricTable(padding=longest + METRIC_PADDING, groups=groups)


def metric_value(report: Report, label: str, sublabel: str) -> Optional[float]:
    for metric in report.metrics.values():
        if metric.label != label:
            continue
        for v in metric.values:
            if v.label == sublabel:
                return v.value
    return None


def metric_exceeds(report: Report, label: str, sublabel: str, threshold: float) -> bool:
    """True when the metric ``label``/``sublabel`` is present and its integer part exceeds ``threshold``."""
    value = metric_value(report, label, sublabel)
    if value is None:
        return False
    return int(value) > threshold


def _is_plain_readable_file(path: str) -> bool:
    p = Path(path)
    if not p.is_absolute():
        return False
    if p.is_symlink():
        return False
    return p.is_file() and os.access(p, os.R_OK)


def files_summary(report: Report, n: int) -> List[Tuple[str, int]]:
    """
    Largest managed files, checked against the local filesystem.
    Only ``File[/absolute/path]`` resources that exist here as readable regular
    files (not symlinks) are considered.
    """
    files: Dict[str, int] = {}
    for resource_id in resources_of_type(report, "File"):
        m = _FILE_RE.match(resource_id)
        if not m:
            continue
        path = m.group(1)
        if not _is_plain_readable_file(path):
            continue
        try:
            files[path] = os.path.getsize(path)
        except OSError as e:
            LOG.debug("Cannot stat managed file", extra={"path": path, "error": str(e)})
    ordered = sorted(files.items(), key=lambda kv: kv[1], reverse=True)
    return ordered[: max(n, 0)]


def bytes_to_human(size: float) -> str:
    """
    Format a byte count with the largest fitting binary unit, capped at TB.
    Values below one byte render as ``0 B``.
    """
    if size < 1:
        return "0 B"
    exponent = 0
    while exponent < len(BYTE_UNITS) - 1 and size >= 1024 ** (exponent + 1):
        exponent += 1
    return "%.2f%s" % (size / 1024**exponent, BYTE_UNITS[exponent])
