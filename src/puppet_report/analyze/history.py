from __future__ import annotations

from typing import Dict, Iterable, List

from ..model.schema import Report, RunDigest


def digest_report(report: Report) -> RunDigest:
    total_time = None
    time_metric = report.metrics.get("time")
    if time_metric is not None:
        for v in time_metric.values:
            if v.category == "total":
                total_time = v.value

    failed: Dict[str, List[str]] = {}
    if report.status == "failed":
        for name, status in report.resource_statuses.items():
            if not status.failed:
                continue
            for event in status.events:
                failed.setdefault(name, []).append(event.message)

    return RunDigest(
        start_time=report.time,
        status=report.status,
        configuration_version=report.configuration_version,
        total_time=total_time,
        failed_resources=failed,
    )


def organize_digests(digests: Iterable[RunDigest]) -> Dict[str, Dict[str, RunDigest]]:
    """Group runs by configuration version, then by start time."""
    out: Dict[str, Dict[str, RunDigest]] = {}
    for d in digests:
        out.setdefault(d.configuration_version, {})[d.start_time] = d
    return out
