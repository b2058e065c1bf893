from __future__ import annotations

from .accessor import resources, resources_by_eval_time, resources_of_type
from .history import digest_report, organize_digests
from .ranking import merge_and_truncate, slow_resources, supports_timing
from .summary import bytes_to_human, files_summary, metric_exceeds, metric_table, summary_by_type

__all__ = [
    "bytes_to_human",
    "digest_report",
    "files_summary",
    "merge_and_truncate",
    "metric_exceeds",
    "metric_table",
    "organize_digests",
    "resources",
    "resources_by_eval_time",
    "resources_of_type",
    "slow_resources",
    "summary_by_type",
    "supports_timing",
]
