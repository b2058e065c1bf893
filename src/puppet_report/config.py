from __future__ import annotations

import argparse
import json
import os
import sys
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .analyze.ranking import FILTER_MODES
from .util.errors import ConfigError

# --------
# Defaults
# --------
DEFAULT_REPORT = "/opt/puppetlabs/puppet/cache/state/last_run_report.yaml"
DEFAULT_REPORT_DIR = "/opt/puppetlabs/puppet/cache/reports"
DEFAULT_COUNT = 20
DEFAULT_METRIC_LABEL = "Time"
DEFAULT_METRIC_SUBLABEL = "Total"
DEFAULT_METRIC_VALUE = 20.0
REPORT_TYPES = ("single", "combi", "history")
ALLOWED_CONFIG_KEYS = {
    "report",
    "report_dir",
    "count",
    "color",
    "logs",
    "metric_label",
    "metric_sublabel",
    "metric_value",
    "report_type",
    "slow_filter",
    "filter_mode",
    "unique",
    "debug",
    "file_print_summary",
    "print_files",
    "expected_versions",
    "progress",
    "log_level",
    "json_logs",
}
BOOL_CONFIG_KEYS = {"color", "logs", "unique", "debug", "file_print_summary", "print_files", "progress", "json_logs"}
INT_CONFIG_KEYS = {"count"}
FLOAT_CONFIG_KEYS = {"metric_value"}
LIST_CONFIG_KEYS = {"slow_filter", "expected_versions"}
STR_CONFIG_KEYS = {"report", "report_dir", "metric_label", "metric_sublabel", "report_type", "filter_mode", "log_level"}


@dataclass(frozen=True)
class ReportConfig:
    # Input
    report: str = DEFAULT_REPORT
    report_dir: Path = Path(DEFAULT_REPORT_DIR)
    report_type: str = "single"  # single|combi|history

    # Output
    count: int = DEFAULT_COUNT
    color: bool = False
    logs: bool = False
    print_files: bool = False
    file_print_summary: bool = False
    progress: bool = False

    # Metric high pass filter (single mode)
    metric_label: str = DEFAULT_METRIC_LABEL
    metric_sublabel: str = DEFAULT_METRIC_SUBLABEL
    metric_value: float = DEFAULT_METRIC_VALUE

    # Slow resource ranking (combi mode)
    slow_filter: Tuple[str, ...] = ()
    filter_mode: str = "substring"  # substring|exact
    unique: bool = False

    # History mode
    expected_versions: Tuple[str, ...] = ()

    # Diagnostics
    debug: bool = False
    log_level: str = "WARNING"
    json_logs: bool = False


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    return raw


def _env_bool(name: str) -> Optional[bool]:
    raw = _env_str(name)
    if raw is None:
        return None
    return raw.lower() in {"1", "true", "yes", "on"}


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ConfigError(f"Config field '{key}' must be a boolean")


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value)
        except ValueError:
            pass
    raise ConfigError(f"Config field '{key}' must be an integer")


def _coerce_float(key: str, value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            pass
    raise ConfigError(f"Config field '{key}' must be a number")


def _coerce_list(key: str, value: Any) -> List[str]:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return [v.strip() for v in value if v.strip()]
    raise ConfigError(f"Config field '{key}' must be a list of strings or comma-separated string")


def _normalize_config_file(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Unknown config keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS:
            continue
        if value is None:
            continue
        if key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in INT_CONFIG_KEYS:
            normalized[key] = _coerce_int(key, value)
        elif key in FLOAT_CONFIG_KEYS:
            normalized[key] = _coerce_float(key, value)
        elif key in LIST_CONFIG_KEYS:
            normalized[key] = _coerce_list(key, value)
        elif key in STR_CONFIG_KEYS:
            if isinstance(value, str):
                normalized[key] = value
            else:
                raise ConfigError(f"Config field '{key}' must be a string")
    return normalized


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge: values in b override a.
    """
    merged = dict(a)
    merged.update(b)
    return merged


def _csv(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="puppet-report",
        description="Summarize Puppet run reports: metrics, slow resources, managed files and logs",
    )
    parser.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
    parser.add_argument(
        "--report",
        default=None,
        help="Report file; in combi/history mode a directory or glob (RDIR/ expands to --report-dir)",
    )
    parser.add_argument("--report-dir", type=Path, default=None, help=f"Puppet report directory (default {DEFAULT_REPORT_DIR})")
    parser.add_argument(
        "--report-type",
        default=None,
        choices=list(REPORT_TYPES),
        help="Type of report (default: single)",
    )
    parser.add_argument("--count", type=int, default=None, help=f"Number of resources to show (default {DEFAULT_COUNT})")
    parser.add_argument(
        "--color",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Colorize the report (default: when stdout is a terminal)",
    )
    parser.add_argument("--logs", action=argparse.BooleanOptionalAction, default=None, help="Show log lines")
    parser.add_argument("--metric-label", default=None, help=f"Metric group label to test (default {DEFAULT_METRIC_LABEL})")
    parser.add_argument(
        "--metric-sublabel", default=None, help=f"Metric sub label to test (default {DEFAULT_METRIC_SUBLABEL})"
    )
    parser.add_argument(
        "--metric-value",
        type=float,
        default=None,
        help=f"Metric value high pass filter for the slow resource sections (default {DEFAULT_METRIC_VALUE:g})",
    )
    parser.add_argument(
        "--slow-filter",
        type=_csv,
        default=None,
        help="Comma-separated resource types kept in the combi slow report",
    )
    parser.add_argument(
        "--filter-mode",
        default=None,
        choices=list(FILTER_MODES),
        help="How --slow-filter matches: substring of the resource name or exact type (default: substring)",
    )
    parser.add_argument(
        "--unique",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Keep only the slowest occurrence of each resource (combi mode)",
    )
    parser.add_argument(
        "--file-print-summary",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Print each report's summary in combi mode",
    )
    parser.add_argument(
        "--print-files", action=argparse.BooleanOptionalAction, default=None, help="Print largest managed files"
    )
    parser.add_argument(
        "--expected-versions",
        type=_csv,
        default=None,
        help="Comma-separated configuration versions expected exactly once (history mode)",
    )
    parser.add_argument(
        "--progress", action=argparse.BooleanOptionalAction, default=None, help="Show a progress bar while scanning"
    )
    parser.add_argument("--debug", action=argparse.BooleanOptionalAction, default=None, help="Enable debug output")
    parser.add_argument("--log-level", default=None, help="Log level (WARNING, INFO, DEBUG, ...)")
    parser.add_argument(
        "--json-logs",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable JSON logs",
    )
    return parser


def load_report_config(
    args: Optional[argparse.Namespace] = None,
    argv: Optional[List[str]] = None,
) -> ReportConfig:
    """
    Build ReportConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.
    """
    ns = args if args is not None else build_parser().parse_args(argv)

    # defaults
    base: Dict[str, Any] = {
        "report": DEFAULT_REPORT,
        "report_dir": DEFAULT_REPORT_DIR,
        "report_type": "single",
        "count": DEFAULT_COUNT,
        "color": sys.stdout.isatty(),
        "logs": False,
        "print_files": False,
        "file_print_summary": False,
        "progress": False,
        "metric_label": DEFAULT_METRIC_LABEL,
        "metric_sublabel": DEFAULT_METRIC_SUBLABEL,
        "metric_value": DEFAULT_METRIC_VALUE,
        "slow_filter": [],
        "filter_mode": "substring",
        "unique": False,
        "expected_versions": [],
        "debug": False,
        "log_level": "WARNING",
        "json_logs": False,
    }

    # config file
    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize_config_file(_parse_config_file(Path(ns.config)))

    # env
    env_count = _env_str("PUPPET_REPORT_COUNT")
    env_filter = _env_str("PUPPET_REPORT_SLOW_FILTER")
    env_cfg: Dict[str, Any] = _compact_dict(
        {
            "report": _env_str("PUPPET_REPORT_REPORT"),
            "report_dir": _env_str("PUPPET_REPORT_REPORT_DIR"),
            "report_type": _env_str("PUPPET_REPORT_TYPE"),
            "count": _coerce_int("PUPPET_REPORT_COUNT", env_count) if env_count else None,
            "color": _env_bool("PUPPET_REPORT_COLOR"),
            "slow_filter": _csv(env_filter) if env_filter else None,
            "debug": _env_bool("PUPPET_REPORT_DEBUG"),
            "log_level": _env_str("PUPPET_REPORT_LOG_LEVEL"),
            "json_logs": _env_bool("PUPPET_REPORT_JSON_LOGS"),
        }
    )

    # CLI
    cli_cfg: Dict[str, Any] = _compact_dict({key: getattr(ns, key, None) for key in ALLOWED_CONFIG_KEYS})

    merged = _merge_dicts(base, _merge_dicts(file_cfg, _merge_dicts(env_cfg, cli_cfg)))

    report_type = str(merged["report_type"]).lower()
    if report_type not in REPORT_TYPES:
        raise ConfigError(f"report_type must be one of: {', '.join(REPORT_TYPES)}")
    filter_mode = str(merged["filter_mode"]).lower()
    if filter_mode not in FILTER_MODES:
        raise ConfigError(f"filter_mode must be one of: {', '.join(FILTER_MODES)}")
    count = int(merged["count"])
    if count < 1:
        raise ConfigError("count must be a positive integer")

    report = str(merged["report"])
    # A directory can only be analyzed as a batch
    if report_type == "single" and Path(report).is_dir():
        report_type = "combi"

    debug = bool(merged["debug"])
    log_level = "DEBUG" if debug else str(merged.get("log_level") or "WARNING").upper()

    return ReportConfig(
        report=report,
        report_dir=Path(merged["report_dir"]),
        report_type=report_type,
        count=count,
        color=bool(merged["color"]),
        logs=bool(merged["logs"]),
        print_files=bool(merged["print_files"]),
        file_print_summary=bool(merged["file_print_summary"]),
        progress=bool(merged["progress"]),
        metric_label=str(merged["metric_label"]),
        metric_sublabel=str(merged["metric_sublabel"]),
        metric_value=float(merged["metric_value"]),
        slow_filter=tuple(merged["slow_filter"] or ()),
        filter_mode=filter_mode,
        unique=bool(merged["unique"]),
        expected_versions=tuple(merged["expected_versions"] or ()),
        debug=debug,
        log_level=log_level,
        json_logs=bool(merged["json_logs"]),
    )


def dump_config(cfg: ReportConfig) -> Dict[str, Any]:
    return {
        "report": cfg.report,
        "report_dir": str(cfg.report_dir),
        "report_type": cfg.report_type,
        "count": cfg.count,
        "color": cfg.color,
        "logs": cfg.logs,
        "print_files": cfg.print_files,
        "file_print_summary": cfg.file_print_summary,
        "progress": cfg.progress,
        "metric_label": cfg.metric_label,
        "metric_sublabel": cfg.metric_sublabel,
        "metric_value": cfg.metric_value,
        "slow_filter": list(cfg.slow_filter),
        "filter_mode": cfg.filter_mode,
        "unique": cfg.unique,
        "expected_versions": list(cfg.expected_versions),
        "debug": cfg.debug,
        "log_level": cfg.log_level,
        "json_logs": cfg.json_logs,
    }
