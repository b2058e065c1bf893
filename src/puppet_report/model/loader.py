from __future__ import annotations

import json
import math
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from ..logging import get_logger
from ..util.errors import ReportLoadError
from .schema import Event, LogEntry, Metric, MetricValue, Report, ResourceStatus

LOG = get_logger(__name__)

RESOURCE_ID_RE = re.compile(r"^(.+?)\[(.*)\]$", re.DOTALL)


class ReportLoader(yaml.SafeLoader):
    """
    SafeLoader that accepts the Ruby tags Puppet writes into its YAML reports
    (``!ruby/object:Puppet::Transaction::Report``, ``!ruby/sym notice``, ...).
    Tagged nodes are decoded as the plain mapping, sequence or scalar they wrap.
    """


def _construct_ruby_node(loader: yaml.SafeLoader, tag_suffix: str, node: yaml.Node) -> Any:
    if isinstance(node, yaml.MappingNode):
        return loader.construct_mapping(node, deep=True)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node, deep=True)
    return loader.construct_scalar(node)


ReportLoader.add_multi_constructor("!ruby/", _construct_ruby_node)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ReportLoadError(path, str(e)) from e


def _parse_text(path: Path, text: str) -> Any:
    if path.suffix.lower() == ".json":
        try:
            return json.loads(text)
        except ValueError as e:
            raise ReportLoadError(path, f"invalid JSON: {e}") from e
    try:
        return yaml.load(text, Loader=ReportLoader)  # noqa: S506 - SafeLoader subclass
    except yaml.YAMLError as yaml_err:
        # JSON reports saved without a .json suffix
        try:
            return json.loads(text)
        except ValueError:
            raise ReportLoadError(path, f"invalid YAML: {yaml_err}") from yaml_err


def load_report(path: Union[str, Path]) -> Report:
    """
    Read a Puppet run report (YAML or JSON) and decode it into a Report.
    Raises ReportLoadError when the file cannot be read or is not a report mapping.
    """
    p = Path(path)
    data = _parse_text(p, _read_text(p))
    if not isinstance(data, Mapping):
        raise ReportLoadError(p, "top-level value is not a mapping")
    return decode_report(data, source=str(p))


def _str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return bool(value)


def _int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _float_or_none(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def split_resource_id(resource_id: str) -> Optional[Tuple[str, str]]:
    """Split ``Type[title]`` into its parts, or None when it has another shape."""
    m = RESOURCE_ID_RE.match(resource_id)
    if not m:
        return None
    return m.group(1), m.group(2)


def _decode_events(raw: Any) -> Tuple[Event, ...]:
    if not isinstance(raw, list):
        return ()
    events: List[Event] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        prop = item.get("property")
        events.append(
            Event(
                message=_str(item.get("message")),
                status=_str(item.get("status")),
                property=_str(prop) if prop is not None else None,
            )
        )
    return tuple(events)


def _decode_resource_status(resource_id: str, raw: Mapping[str, Any], source: str) -> ResourceStatus:
    parts = split_resource_id(resource_id)
    resource_type = _str(raw.get("resource_type")) or (parts[0] if parts else "")
    title = _str(raw.get("title")) or (parts[1] if parts else resource_id)

    raw_time = raw.get("evaluation_time")
    evaluation_time = _float_or_none(raw_time)
    if raw_time is not None and evaluation_time is None:
        LOG.warning(
            "Ignoring non-numeric evaluation time",
            extra={"resource": resource_id, "value": _str(raw_time), "source": source},
        )

    return ResourceStatus(
        resource_type=resource_type,
        title=title,
        evaluation_time=evaluation_time,
        failed=_bool(raw.get("failed")),
        changed=_bool(raw.get("changed")),
        skipped=_bool(raw.get("skipped")),
        events=_decode_events(raw.get("events")),
    )


def _decode_resource_statuses(raw: Any, source: str) -> Dict[str, ResourceStatus]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        LOG.warning("resource_statuses is not a mapping; ignoring", extra={"source": source})
        return {}
    out: Dict[str, ResourceStatus] = {}
    for resource_id, status in raw.items():
        rid = _str(resource_id)
        if not isinstance(status, Mapping):
            LOG.warning("Ignoring malformed resource status", extra={"resource": rid, "source": source})
            continue
        out[rid] = _decode_resource_status(rid, status, source)
    return out


def _decode_metric_values(name: str, raw: Any, source: str) -> Tuple[MetricValue, ...]:
    if not isinstance(raw, list):
        return ()
    values: List[MetricValue] = []
    for row in raw:
        if isinstance(row, (list, tuple)) and len(row) == 3:
            value = _float_or_none(row[2])
            if value is not None:
                values.append(MetricValue(category=_str(row[0]), label=_str(row[1]), value=value))
                continue
        LOG.warning("Ignoring malformed metric value", extra={"metric": name, "row": repr(row), "source": source})
    return tuple(values)


def _decode_metrics(raw: Any, source: str) -> Dict[str, Metric]:
    if not isinstance(raw, Mapping):
        return {}
    out: Dict[str, Metric] = {}
    for key, metric in raw.items():
        name = _str(key)
        if not isinstance(metric, Mapping):
            LOG.warning("Ignoring malformed metric", extra={"metric": name, "source": source})
            continue
        out[name] = Metric(
            name=_str(metric.get("name"), name),
            label=_str(metric.get("label"), name.capitalize()),
            values=_decode_metric_values(name, metric.get("values"), source),
        )
    return out


def _decode_logs(raw: Any) -> Tuple[LogEntry, ...]:
    if not isinstance(raw, list):
        return ()
    logs: List[LogEntry] = []
    for item in raw:
        if isinstance(item, Mapping):
            logs.append(
                LogEntry(
                    level=_str(item.get("level")),
                    message=_str(item.get("message")),
                    source=_str(item.get("source")),
                    time=_str(item.get("time")),
                )
            )
        elif item is not None:
            logs.append(LogEntry(message=_str(item)))
    return tuple(logs)


def decode_report(data: Mapping[str, Any], source: str = "") -> Report:
    uuid = data.get("transaction_uuid")
    return Report(
        host=_str(data.get("host")),
        environment=_str(data.get("environment")),
        time=_str(data.get("time")),
        kind=_str(data.get("kind")),
        puppet_version=_str(data.get("puppet_version")),
        report_format=_int(data.get("report_format")),
        configuration_version=_str(data.get("configuration_version")),
        transaction_uuid=_str(uuid) if uuid is not None else None,
        status=_str(data.get("status")),
        logs=_decode_logs(data.get("logs")),
        metrics=_decode_metrics(data.get("metrics"), source),
        resource_statuses=_decode_resource_statuses(data.get("resource_statuses"), source),
    )
