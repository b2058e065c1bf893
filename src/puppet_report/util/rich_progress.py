from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn


def _short_name(path: Path, max_len: int = 48) -> str:
    text = str(path)
    if len(text) <= max_len:
        return text
    return "..." + text[-(max_len - 3) :]


class BatchProgress:
    def __init__(self, *, enabled: bool, console: Optional[Console] = None) -> None:
        self._enabled = bool(enabled)
        self._console = console or Console(stderr=True)
        self._progress: Optional[Progress] = None
        self._task: Optional[Any] = None
        self._failed = 0
        self._started = False
        if self._enabled:
            self._progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TextColumn("{task.fields[current]}", justify="left"),
                TimeElapsedColumn(),
                console=self._console,
                transient=True,
            )

    def __enter__(self) -> BatchProgress:
        if self._enabled and self._progress and not self._started:
            self._progress.start()
            self._started = True
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        if self._enabled and self._progress and self._started:
            self._progress.stop()
            self._started = False

    def start_scan(self, total: int) -> None:
        if not self._enabled or not self._progress:
            return
        self._task = self._progress.add_task("Reports", total=total, current="")

    def advance(self, path: Path, *, failed: bool = False) -> None:
        if not self._enabled or not self._progress or self._task is None:
            return
        if failed:
            self._failed += 1
        current = _short_name(path)
        if self._failed:
            current = f"{current} ({self._failed} skipped)"
        self._progress.update(self._task, advance=1, current=current)
