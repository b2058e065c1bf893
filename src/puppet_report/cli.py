from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console

from .analyze.history import digest_report
from .analyze.ranking import slow_resources, supports_timing
from .analyze.summary import files_summary, metric_exceeds, summary_by_type
from .batch import FileFailure, discover_reports, iter_reports, resolve_report_pattern, run_batch
from .config import ReportConfig, dump_config, load_report_config
from .logging import LogConfig, get_logger, logging_configured, setup_logging
from .model.loader import load_report
from .model.schema import Report, RunDigest
from .render import (
    make_console,
    render_combined_slow_resources,
    render_files,
    render_history,
    render_logs,
    render_metrics,
    render_report_summary,
    render_slow_resources,
    render_summary_by_type,
    render_too_old,
)
from .util.errors import ExitCode, ReportLoadError, as_exit_code
from .util.rich_progress import BatchProgress

LOG = get_logger(__name__)


def _discover(cfg: ReportConfig) -> List[Path]:
    pattern = resolve_report_pattern(cfg.report, cfg.report_dir)
    paths = discover_reports(pattern)
    if not paths:
        raise ReportLoadError(pattern, "no report files matched")
    LOG.info("Discovered reports", extra={"pattern": pattern, "files": len(paths)})
    return paths


def _report_failures(failures: List[FileFailure]) -> None:
    if failures:
        print(f"Skipped {len(failures)} unreadable report(s)", file=sys.stderr)


def cmd_single(cfg: ReportConfig, console: Console) -> int:
    report = load_report(cfg.report)

    render_report_summary(console, report, cfg.report, show_logs=cfg.logs)
    render_metrics(console, report)
    if metric_exceeds(report, cfg.metric_label, cfg.metric_sublabel, cfg.metric_value):
        render_summary_by_type(console, summary_by_type(report))
        render_slow_resources(console, report, slow_resources(report, cfg.count, cfg.report))
    if cfg.print_files:
        render_files(console, files_summary(report, cfg.count))
    if cfg.logs:
        render_logs(console, report)
    return int(ExitCode.OK)


def cmd_combi(cfg: ReportConfig, console: Console) -> int:
    paths = _discover(cfg)

    def _on_report(path: Path, report: Report) -> None:
        if cfg.file_print_summary:
            render_report_summary(console, report, str(path), show_logs=cfg.logs)
        render_metrics(console, report, str(path))
        if not supports_timing(report):
            render_too_old(console, report)

    with BatchProgress(enabled=cfg.progress) as progress:
        result = run_batch(
            paths,
            count=cfg.count,
            type_filter=cfg.slow_filter,
            filter_mode=cfg.filter_mode,
            unique=cfg.unique,
            on_report=_on_report,
            progress=progress,
        )
    render_combined_slow_resources(console, result.entries)
    _report_failures(result.failures)
    return int(ExitCode.OK)


def cmd_history(cfg: ReportConfig, console: Console) -> int:
    paths = _discover(cfg)
    failures: List[FileFailure] = []
    digests: List[RunDigest] = []
    with BatchProgress(enabled=cfg.progress) as progress:
        progress.start_scan(len(paths))
        for _, report in iter_reports(paths, failures=failures, progress=progress):
            digests.append(digest_report(report))
    render_history(console, digests, cfg.expected_versions)
    _report_failures(failures)
    return int(ExitCode.OK)


def run(cfg: ReportConfig, console: Optional[Console] = None) -> int:
    console = console or make_console(color=cfg.color)
    if cfg.report_type == "single":
        return cmd_single(cfg, console)
    if cfg.report_type == "combi":
        return cmd_combi(cfg, console)
    return cmd_history(cfg, console)


def main(argv: Optional[List[str]] = None) -> None:
    try:
        cfg = load_report_config(argv=argv)
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))
        LOG.debug("Effective configuration", extra={"config": dump_config(cfg)})
        sys.exit(run(cfg))
    except SystemExit:
        raise
    except BrokenPipeError:
        # Common when users pipe to `head` or similar tools.
        sys.exit(0)
    except Exception as e:
        if not logging_configured():
            setup_logging(LogConfig.from_env())
        LOG.error("Execution failed: %s", e, extra={"error": str(e)})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
