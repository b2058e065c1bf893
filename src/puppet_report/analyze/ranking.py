from __future__ import annotations

from typing import Iterable, List, Sequence, Set

from ..logging import get_logger
from ..model.loader import split_resource_id
from ..model.schema import RankedEntry, Report
from ..util.errors import ReportFormatError
from .accessor import resources_by_eval_time

LOG = get_logger(__name__)

# Per-resource evaluation_time first appears in report format 4.
MIN_TIMING_REPORT_FORMAT = 4

FILTER_MODES = ("substring", "exact")


def supports_timing(report: Report) -> bool:
    return report.report_format >= MIN_TIMING_REPORT_FORMAT


def require_timing(report: Report) -> None:
    if not supports_timing(report):
        raise ReportFormatError(report.report_format, MIN_TIMING_REPORT_FORMAT, "per-resource timing")


def matches_type_filter(resource_id: str, type_filter: Sequence[str], mode: str = "substring") -> bool:
    """
    Decide whether a resource passes the slow-resource type filter.

    ``substring`` matches when any filter string occurs anywhere in the
    identifier, so ``Package`` also matches ``Exec[install Package foo]``.
    ``exact`` compares the ``Type`` part of ``Type[title]`` with each filter.
    An empty filter accepts everything.
    """
    if not type_filter:
        return True
    if mode == "exact":
        parts = split_resource_id(resource_id)
        return parts is not None and parts[0] in type_filter
    if mode != "substring":
        raise ValueError(f"Unknown filter mode: {mode}")
    return any(f in resource_id for f in type_filter)


def slow_resources(
    report: Report,
    n: int,
    source_label: str = "",
    type_filter: Sequence[str] = (),
    filter_mode: str = "substring",
) -> List[RankedEntry]:
    """
    Return up to ``n`` of the slowest resources in ``report``, slowest first.

    The top ``n`` is taken before filtering, so a filter can shorten the
    result below ``n``. Reports older than format 4 carry no per-resource
    timing and yield an empty list.
    """
    try:
        require_timing(report)
    except ReportFormatError as e:
        LOG.warning(str(e), extra={"source": source_label})
        return []

    timed = resources_by_eval_time(report)
    number = min(max(n, 0), len(timed))
    if number == 0:
        return []

    out: List[RankedEntry] = []
    for name, status in reversed(timed[-number:]):
        if not matches_type_filter(name, type_filter, filter_mode):
            continue
        out.append(
            RankedEntry(
                evaluation_time=float(status.evaluation_time),  # type: ignore[arg-type]
                resource_name=name,
                source_file=source_label,
            )
        )
    return out


def merge_and_truncate(
    entry_lists: Iterable[Sequence[RankedEntry]],
    n: int,
    unique_by_name: bool = False,
) -> List[RankedEntry]:
    """
    Merge ranked lists from many reports into one global top ``n``.
    Equal times keep the order in which the lists were supplied.
    With ``unique_by_name`` only the slowest occurrence of each resource is kept.
    """
    merged: List[RankedEntry] = []
    for entries in entry_lists:
        merged.extend(entries)
    merged.sort(key=lambda e: e.evaluation_time, reverse=True)

    if unique_by_name:
        seen: Set[str] = set()
        unique: List[RankedEntry] = []
        for entry in merged:
            if entry.resource_name in seen:
                continue
            seen.add(entry.resource_name)
            unique.append(entry)
        merged = unique

    if n <= 0:
        return []
    return merged[:n]
