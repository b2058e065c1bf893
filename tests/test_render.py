from __future__ import annotations

import io
from pathlib import Path

from puppet_report.analyze.ranking import slow_resources
from puppet_report.analyze.summary import summary_by_type
from puppet_report.model.loader import load_report
from puppet_report.model.schema import RankedEntry, Report
from puppet_report.render import (
    make_console,
    render_combined_slow_resources,
    render_files,
    render_logs,
    render_metrics,
    render_report_summary,
    render_slow_resources,
    render_summary_by_type,
)

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def _capture():
    buf = io.StringIO()
    return buf, make_console(color=False, file=buf)


def test_report_summary_block() -> None:
    report = load_report(FIXTURES / "last_run_report.yaml")
    buf, console = _capture()
    render_report_summary(console, report, "last_run_report.yaml")
    out = buf.getvalue()

    assert "Report for web01.example.com in environment production at 2024-03-05T10:15:02.123456789+00:00" in out
    assert f"{'Report Format':>24}: 10" in out
    assert f"{'UUID':>24}: 5d3c1a2e-8f7b-4c1d-9a6e-0b2f4e6d8c10" in out
    assert f"{'Log Lines':>24}: 2 (show with --logs)" in out
    # no escape codes without color
    assert "\x1b[" not in out


def test_metrics_are_aligned_on_longest_sublabel() -> None:
    report = load_report(FIXTURES / "last_run_report.yaml")
    buf, console = _capture()
    render_metrics(console, report, "r.yaml")
    lines = buf.getvalue().splitlines()

    assert lines[0] == "Report Metrics:"
    assert lines[1] == "r.yaml"
    padding = len("Config retrieval") + 6
    time_idx = lines.index("   Time:")
    assert lines[time_idx + 1] == f"{'Total':>{padding}}: 42.18"
    assert lines[time_idx + 2] == f"{'Package':>{padding}}: 31.52"
    assert f"{'Total':>{padding}}: 6" in lines


def test_summary_by_type_block() -> None:
    report = load_report(FIXTURES / "last_run_report.yaml")
    buf, console = _capture()
    render_summary_by_type(console, summary_by_type(report))
    out = buf.getvalue()
    assert "Resources by resource type:" in out
    assert "      2 File" in out
    assert "      2 Package" in out
    assert "      1 Exec" in out


def test_slow_resources_block_keeps_brackets() -> None:
    report = load_report(FIXTURES / "last_run_report.yaml")
    buf, console = _capture()
    render_slow_resources(console, report, slow_resources(report, 2))
    out = buf.getvalue()
    assert "Slowest 2 resources by evaluation time:" in out
    assert "     28.90 Package[nginx]" in out
    assert "      2.62 Package[curl]" in out


def test_slow_resources_too_old_report() -> None:
    report = Report(report_format=3)
    buf, console = _capture()
    render_slow_resources(console, report, [])
    assert "Cannot print slow resources for report versions 3" in buf.getvalue()


def test_combined_slow_resources_block() -> None:
    buf, console = _capture()
    render_combined_slow_resources(console, [RankedEntry(12.3456, "Exec[apt-get update]", "/r/web01.yaml")])
    out = buf.getvalue()
    assert "Slowest 1 resources by evaluation time:" in out
    assert "    12.346 Exec[apt-get update] /r/web01.yaml" in out


def test_files_block() -> None:
    buf, console = _capture()
    render_files(console, [("/etc/big", 1536), ("/etc/empty", 0)])
    out = buf.getvalue()
    assert "2 largest managed files (only those with full path as resource name that are readable)" in out
    assert f"   {'1.50KB':>9} /etc/big" in out
    assert f"   {'0 B':>9} /etc/empty" in out


def test_logs_block() -> None:
    report = load_report(FIXTURES / "last_run_report.yaml")
    buf, console = _capture()
    render_logs(console, report)
    out = buf.getvalue()
    assert "2 Log lines:" in out
    assert "   2024-03-05T10:15:30.004Z /Stage[main]/Nginx/Package[nginx]/ensure (notice): " in out

