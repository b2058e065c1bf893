from __future__ import annotations

import sys
from typing import IO, Dict, Optional, Sequence, Tuple

from rich.console import Console
from rich.text import Text

from .analyze.history import organize_digests
from .analyze.ranking import supports_timing
from .analyze.summary import TypeSummary, bytes_to_human, metric_table
from .model.schema import RankedEntry, Report, RunDigest


def make_console(*, color: bool, file: Optional[IO[str]] = None) -> Console:
    """
    Console for report text. Markup and emoji codes stay off so resource
    names such as ``Package[nginx]`` print verbatim.
    """
    return Console(
        file=file or sys.stdout,
        force_terminal=color,
        no_color=not color,
        markup=False,
        emoji=False,
        highlight=False,
        soft_wrap=True,
    )


def _line(console: Console, text: str = "") -> None:
    console.print(text)


def _heading(console: Console, text: str) -> None:
    console.print(Text(text, style="bold"))


def render_report_summary(console: Console, report: Report, report_file: str, *, show_logs: bool = False) -> None:
    console.print(
        Text.assemble(
            ("Report for ", "bold"),
            (report.host, "bold underline"),
            (" in environment ", "bold"),
            (report.environment, "bold underline"),
            (" at ", "bold"),
            (report.time, "bold underline"),
        )
    )
    _line(console)
    rows = [
        ("Report File", report_file),
        ("Report Kind", report.kind),
        ("Puppet Version", report.puppet_version),
        ("Report Format", str(report.report_format)),
        ("Configuration Version", report.configuration_version),
    ]
    if report.transaction_uuid:
        rows.append(("UUID", report.transaction_uuid))
    rows.append(("Log Lines", f"{len(report.logs)} {'' if show_logs else '(show with --logs)'}".rstrip()))
    for label, value in rows:
        _line(console, f"{label:>24}: {value}")
    _line(console)


def _format_value(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def render_metrics(console: Console, report: Report, report_file: str = "") -> None:
    table = metric_table(report)
    _heading(console, "Report Metrics:")
    if report_file:
        _line(console, report_file)
    _line(console)
    for group in table.groups:
        _line(console, f"   {group.label}:")
        for label, value in group.rows:
            _line(console, f"{label:>{table.padding}}: {_format_value(value)}")
        _line(console)


def render_summary_by_type(console: Console, summary: TypeSummary) -> None:
    _heading(console, "Resources by resource type:")
    _line(console)
    for rtype, count in summary.counts.items():
        _line(console, f"   {count:4d} {rtype}")
    _line(console)


def render_too_old(console: Console, report: Report) -> None:
    console.print(Text(f"   Cannot print slow resources for report versions {report.report_format}", style="red"))
    _line(console)


def render_slow_resources(console: Console, report: Report, entries: Sequence[RankedEntry]) -> None:
    if not supports_timing(report):
        render_too_old(console, report)
        return
    _heading(console, f"Slowest {len(entries)} resources by evaluation time:")
    _line(console)
    for entry in entries:
        _line(console, f"   {entry.evaluation_time:7.2f} {entry.resource_name}")
    _line(console)


def render_combined_slow_resources(console: Console, entries: Sequence[RankedEntry]) -> None:
    _heading(console, f"Slowest {len(entries)} resources by evaluation time:")
    for entry in entries:
        _line(console, f"   {entry.evaluation_time:7.3f} {entry.resource_name} {entry.source_file}")


def render_files(console: Console, files: Sequence[Tuple[str, int]]) -> None:
    console.print(
        Text.assemble(
            (f"{len(files)} largest managed files", "bold"),
            " (only those with full path as resource name that are readable)",
        )
    )
    _line(console)
    for path, size in files:
        _line(console, f"   {bytes_to_human(size):>9} {path}")
    _line(console)


def render_logs(console: Console, report: Report) -> None:
    _heading(console, f"{len(report.logs)} Log lines:")
    _line(console)
    for log in report.logs:
        _line(console, f"   {log.to_report()}")
    _line(console)


def _render_runs(console: Console, runs: Dict[str, RunDigest]) -> None:
    for start_time in sorted(runs):
        run = runs[start_time]
        took = _format_value(run.total_time) if run.total_time is not None else "unknown"
        _line(console, f"  Started at {start_time}, took {took}, result {run.status}")
        if run.status == "failed":
            for name, messages in run.failed_resources.items():
                _line(console, f"    {name}: {messages}")


def render_history(
    console: Console,
    digests: Sequence[RunDigest],
    expected_versions: Sequence[str] = (),
) -> None:
    grouped = organize_digests(digests)
    for version in expected_versions:
        _heading(console, f"For run type: {version}")
        runs = grouped.get(version)
        if not runs:
            console.print(Text(f"  Did not find expected report: {version}", style="yellow"))
            continue
        if len(runs) != 1:
            console.print(Text(f"Expected 1 run, found {len(runs)}", style="yellow"))
        _render_runs(console, runs)

    for version in sorted(set(grouped) - set(expected_versions)):
        runs = grouped[version]
        _heading(console, f"Found {len(runs)} report(s) for version {version}")
        _render_runs(console, runs)
