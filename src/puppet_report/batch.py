from __future__ import annotations

import glob
import logging
from dataclasses import dataclass, field
from pathlib import Path
from time import perf_counter
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .analyze.ranking import merge_and_truncate, slow_resources
from .logging import get_logger
from .model.loader import load_report
from .model.schema import RankedEntry, Report
from .util.errors import ReportLoadError
from .util.rich_progress import BatchProgress

LOG = get_logger(__name__)

# Leading placeholder in --report that stands for the Puppet report directory.
REPORT_DIR_PLACEHOLDER = "RDIR/"
REPORT_SUFFIXES = (".yaml", ".yml", ".json")


@dataclass(frozen=True)
class FileFailure:
    path: Path
    error: str


@dataclass
class BatchResult:
    entries: List[RankedEntry] = field(default_factory=list)
    processed: List[Path] = field(default_factory=list)
    failures: List[FileFailure] = field(default_factory=list)


class _StepTimers:
    def __init__(self) -> None:
        self._starts: Dict[str, float] = {}

    def start(self, key: str) -> None:
        self._starts[key] = perf_counter()

    def finish(self, key: str) -> Optional[int]:
        started = self._starts.pop(key, None)
        if started is None:
            return None
        return int((perf_counter() - started) * 1000)


def _log_event(
    logger: Any,
    level: int,
    message: str,
    *,
    step: str,
    phase: str,
    timers: Optional[_StepTimers] = None,
    **extra: Any,
) -> None:
    duration_ms = None
    if timers is not None:
        if phase == "start":
            timers.start(step)
        elif phase in {"complete", "error"}:
            duration_ms = timers.finish(step)
    payload: Dict[str, Any] = {"step": step, "phase": phase, "event": f"{step}.{phase}"}
    if duration_ms is not None:
        payload["duration_ms"] = duration_ms
    payload.update(extra)
    logger.log(level, message, extra=payload)


def resolve_report_pattern(report: str, report_dir: Union[str, Path]) -> str:
    """
    Expand the ``RDIR/`` placeholder into the Puppet report directory.

    ``RDIR/web01/*.yaml`` becomes ``<report_dir>/web01/*.yaml``. Only the first
    placeholder is replaced; values without it are returned unchanged.
    """
    if REPORT_DIR_PLACEHOLDER not in report:
        return report
    base = str(report_dir).rstrip("/") + "/"
    return (base + report).replace(REPORT_DIR_PLACEHOLDER, "", 1)


def discover_reports(pattern: str) -> List[Path]:
    """
    List report files for a directory or glob pattern, sorted by path.
    A directory contributes every .yaml/.yml/.json file beneath it.
    """
    root = Path(pattern)
    if root.is_dir():
        candidates: Iterable[Path] = (p for p in root.rglob("*") if p.suffix.lower() in REPORT_SUFFIXES)
    else:
        candidates = (Path(p) for p in glob.glob(pattern, recursive=True))
    return sorted(p for p in candidates if p.is_file())


def iter_reports(
    paths: Sequence[Path],
    *,
    failures: Optional[List[FileFailure]] = None,
    progress: Optional[BatchProgress] = None,
) -> Iterator[Tuple[Path, Report]]:
    """
    Load reports one at a time. Files that fail to load are logged, recorded
    in ``failures`` and skipped.
    """
    for path in paths:
        LOG.debug("Processing %s", path)
        try:
            report = load_report(path)
        except ReportLoadError as e:
            LOG.error("Skipping unreadable report", extra={"path": str(path), "error": e.reason})
            if failures is not None:
                failures.append(FileFailure(path=path, error=e.reason))
            if progress is not None:
                progress.advance(path, failed=True)
            continue
        yield path, report
        if progress is not None:
            progress.advance(path)


def run_batch(
    paths: Sequence[Path],
    *,
    count: int,
    type_filter: Sequence[str] = (),
    filter_mode: str = "substring",
    unique: bool = False,
    on_report: Optional[Callable[[Path, Report], None]] = None,
    progress: Optional[BatchProgress] = None,
) -> BatchResult:
    """
    Rank the slowest resources across many reports.

    Each report contributes its own top ``count`` (tagged with its path); the
    lists are merged once at the end into a global top ``count``.
    """
    timers = _StepTimers()
    result = BatchResult()
    _log_event(LOG, logging.INFO, "Batch scan started", step="batch", phase="start", timers=timers, files=len(paths))
    if progress is not None:
        progress.start_scan(len(paths))

    per_file: List[List[RankedEntry]] = []
    for path, report in iter_reports(paths, failures=result.failures, progress=progress):
        result.processed.append(path)
        if on_report is not None:
            on_report(path, report)
        per_file.append(slow_resources(report, count, str(path), type_filter, filter_mode))

    result.entries = merge_and_truncate(per_file, count, unique_by_name=unique)
    _log_event(
        LOG,
        logging.INFO,
        "Batch scan complete",
        step="batch",
        phase="complete",
        timers=timers,
        processed=len(result.processed),
        failed=len(result.failures),
        entries=len(result.entries),
    )
    return result
