from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from rich.console import Console

from puppet_report.batch import discover_reports, iter_reports, resolve_report_pattern, run_batch
from puppet_report.model.schema import Report
from puppet_report.util.rich_progress import BatchProgress


def _write_report(path: Path, times: Dict[str, Optional[float]], report_format: int = 10) -> Path:
    data = {
        "host": path.stem,
        "report_format": report_format,
        "configuration_version": "1",
        "status": "unchanged",
        "resource_statuses": {
            name: {"resource_type": name.split("[")[0], "evaluation_time": t} for name, t in times.items()
        },
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".json":
        path.write_text(json.dumps(data), encoding="utf-8")
    else:
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_resolve_report_pattern_expands_placeholder() -> None:
    assert resolve_report_pattern("RDIR/web01/*.yaml", "/var/reports") == "/var/reports/web01/*.yaml"
    assert resolve_report_pattern("RDIR/web01/*.yaml", "/var/reports/") == "/var/reports/web01/*.yaml"


def test_resolve_report_pattern_passthrough() -> None:
    assert resolve_report_pattern("/tmp/reports/*.yaml", "/var/reports") == "/tmp/reports/*.yaml"


def test_discover_reports_directory(tmp_path: Path) -> None:
    a = _write_report(tmp_path / "web01" / "a.yaml", {"Package[a]": 1.0})
    b = _write_report(tmp_path / "web02" / "b.json", {"Package[b]": 1.0})
    (tmp_path / "notes.txt").write_text("not a report", encoding="utf-8")

    assert discover_reports(str(tmp_path)) == sorted([a, b])


def test_discover_reports_glob(tmp_path: Path) -> None:
    a = _write_report(tmp_path / "web01" / "a.yaml", {"Package[a]": 1.0})
    _write_report(tmp_path / "web01" / "b.json", {"Package[b]": 1.0})
    (tmp_path / "web01" / "sub.yaml").mkdir()

    assert discover_reports(str(tmp_path / "*" / "*.yaml")) == [a]
    assert discover_reports(str(tmp_path / "missing" / "*.yaml")) == []


def test_iter_reports_skips_unreadable_files(tmp_path: Path) -> None:
    good = _write_report(tmp_path / "good.yaml", {"Package[a]": 1.0})
    bad = tmp_path / "bad.yaml"
    bad.write_text("resource_statuses: [unclosed\n", encoding="utf-8")

    failures: List = []
    loaded = list(iter_reports([bad, good], failures=failures))
    assert [p for p, _ in loaded] == [good]
    assert [f.path for f in failures] == [bad]


def test_run_batch_merges_global_top_n(tmp_path: Path) -> None:
    r1 = _write_report(tmp_path / "r1.yaml", {"Package[a]": 9.0, "File[b]": 5.0, "Exec[z]": 0.5})
    r2 = _write_report(tmp_path / "r2.yaml", {"Package[a]": 7.0, "File[c]": 3.0})

    result = run_batch([r1, r2], count=3)
    assert [(e.evaluation_time, e.resource_name, e.source_file) for e in result.entries] == [
        (9.0, "Package[a]", str(r1)),
        (7.0, "Package[a]", str(r2)),
        (5.0, "File[b]", str(r1)),
    ]
    assert result.processed == [r1, r2]
    assert result.failures == []


def test_run_batch_unique_and_filter(tmp_path: Path) -> None:
    r1 = _write_report(tmp_path / "r1.yaml", {"Package[a]": 9.0, "File[b]": 5.0})
    r2 = _write_report(tmp_path / "r2.yaml", {"Package[a]": 7.0, "Package[c]": 3.0})

    result = run_batch([r1, r2], count=10, type_filter=["Package"], unique=True)
    assert [(e.evaluation_time, e.resource_name) for e in result.entries] == [
        (9.0, "Package[a]"),
        (3.0, "Package[c]"),
    ]


def test_run_batch_continues_after_bad_file_and_old_report(tmp_path: Path) -> None:
    old = _write_report(tmp_path / "old.yaml", {"Package[old]": 99.0}, report_format=3)
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    good = _write_report(tmp_path / "good.yaml", {"Package[a]": 2.0})

    seen: List[str] = []

    def _on_report(path: Path, report: Report) -> None:
        seen.append(report.host)

    result = run_batch([old, bad, good], count=5, on_report=_on_report)
    assert [e.resource_name for e in result.entries] == ["Package[a]"]
    assert seen == ["old", "good"]
    assert [f.path for f in result.failures] == [bad]
    assert result.processed == [old, good]


def test_run_batch_with_progress_bar(tmp_path: Path) -> None:
    r1 = _write_report(tmp_path / "r1.yaml", {"Package[a]": 1.0})
    bad = tmp_path / "bad.yaml"
    bad.write_text("[", encoding="utf-8")

    console = Console(file=io.StringIO(), force_terminal=False)
    with BatchProgress(enabled=True, console=console) as progress:
        result = run_batch([r1, bad], count=5, progress=progress)
    assert [e.resource_name for e in result.entries] == ["Package[a]"]
    assert len(result.failures) == 1
