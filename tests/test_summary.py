from __future__ import annotations

import os
from pathlib import Path

import pytest

from puppet_report.analyze.summary import (
    bytes_to_human,
    files_summary,
    metric_exceeds,
    metric_table,
    summary_by_type,
)
from puppet_report.model.schema import Metric, MetricValue, Report, ResourceStatus


def _status(rtype: str, title: str) -> ResourceStatus:
    return ResourceStatus(resource_type=rtype, title=title, evaluation_time=0.1)


def test_summary_by_type_counts_descending() -> None:
    report = Report(
        resource_statuses={
            "File[c]": _status("File", "c"),
            "Package[a]": _status("Package", "a"),
            "Package[b]": _status("Package", "b"),
        }
    )
    summary = summary_by_type(report)
    assert summary.counts == {"Package": 2, "File": 1}
    assert list(summary.counts) == ["Package", "File"]
    assert summary.parse_errors == []


def test_summary_by_type_records_parse_errors(caplog: pytest.LogCaptureFixture) -> None:
    report = Report(
        resource_statuses={
            "Package[a]": _status("Package", "a"),
            "malformed": _status("", "malformed"),
        }
    )
    with caplog.at_level("ERROR"):
        summary = summary_by_type(report)
    assert summary.counts == {"Package": 1}
    assert summary.parse_errors == ["malformed"]
    assert "Cannot parse type malformed" in caplog.text


def test_metric_table_orders_groups_and_values() -> None:
    report = Report(
        metrics={
            "time": Metric(
                name="time",
                label="Time",
                values=(
                    MetricValue("file", "File", 1.5),
                    MetricValue("total", "Total", 42.0),
                    MetricValue("config_retrieval", "Config retrieval", 7.6),
                ),
            ),
            "events": Metric(name="events", label="Events", values=(MetricValue("total", "Total", 3),)),
        }
    )
    table = metric_table(report)
    assert [g.label for g in table.groups] == ["Events", "Time"]
    assert table.groups[1].rows == [("Total", 42.0), ("Config retrieval", 7.6), ("File", 1.5)]
    assert table.padding == len("Config retrieval") + 6
    # stable for identical input
    assert metric_table(report) == table


def test_metric_table_empty_report() -> None:
    table = metric_table(Report())
    assert table.groups == []
    assert table.padding == 6


def test_metric_exceeds_uses_integer_part() -> None:
    report = Report(
        metrics={"time": Metric(name="time", label="Time", values=(MetricValue("total", "Total", 20.9),))}
    )
    assert metric_exceeds(report, "Time", "Total", 20) is False
    assert metric_exceeds(report, "Time", "Total", 19) is True
    assert metric_exceeds(report, "Time", "Missing", 0) is False
    assert metric_exceeds(report, "Resources", "Total", 0) is False


def test_files_summary_checks_live_filesystem(tmp_path: Path) -> None:
    big = tmp_path / "big.bin"
    big.write_bytes(b"x" * 4096)
    small = tmp_path / "small.txt"
    small.write_bytes(b"x" * 10)
    link = tmp_path / "link.txt"
    os.symlink(big, link)
    directory = tmp_path / "dir"
    directory.mkdir()

    statuses = {
        f"File[{big}]": _status("File", str(big)),
        f"File[{small}]": _status("File", str(small)),
        f"File[{link}]": _status("File", str(link)),
        f"File[{directory}]": _status("File", str(directory)),
        f"File[{tmp_path / 'gone.txt'}]": _status("File", str(tmp_path / "gone.txt")),
        "File[relative/path.txt]": _status("File", "relative/path.txt"),
        f"Package[{big}]": _status("Package", str(big)),
    }
    report = Report(resource_statuses=statuses)

    assert files_summary(report, 10) == [(str(big), 4096), (str(small), 10)]
    assert files_summary(report, 1) == [(str(big), 4096)]


@pytest.mark.parametrize(
    "size,expected",
    [
        (0, "0 B"),
        (0.5, "0 B"),
        (1, "1.00B"),
        (1023, "1023.00B"),
        (1024, "1.00KB"),
        (1536, "1.50KB"),
        (1048576, "1.00MB"),
        (1073741824, "1.00GB"),
        (1099511627776, "1.00TB"),
        (5_000_000_000_000_000, "4547.47TB"),
    ],
)
def test_bytes_to_human(size: float, expected: str) -> None:
    assert bytes_to_human(size) == expected


def test_bytes_to_human_is_monotonic_within_unit() -> None:
    previous = 0.0
    for size in range(1024, 1024 * 1024, 4099):
        text = bytes_to_human(size)
        assert text.endswith("KB")
        value = float(text[:-2])
        assert value >= previous
        previous = value
