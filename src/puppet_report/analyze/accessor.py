from __future__ import annotations

from typing import Dict, List, Tuple

from ..model.schema import Report, ResourceStatus


def resources(report: Report) -> Dict[str, ResourceStatus]:
    return report.resource_statuses


def resources_by_eval_time(report: Report) -> List[Tuple[str, ResourceStatus]]:
    """
    Timed resources sorted ascending by evaluation time.
    Resources without timing data are left out; sorting is stable so equal
    times keep report order.
    """
    timed = [(name, r) for name, r in resources(report).items() if r.evaluation_time is not None]
    return sorted(timed, key=lambda item: item[1].evaluation_time)  # type: ignore[arg-type,return-value]


def resources_of_type(report: Report, resource_type: str) -> Dict[str, ResourceStatus]:
    return {name: r for name, r in resources(report).items() if r.resource_type == resource_type}
