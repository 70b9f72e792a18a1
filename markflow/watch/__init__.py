"""Watch subsystem: reprocess Markdown files as they change."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path

from markflow.core.content import Target
from markflow.core.pipeline import Pipeline, ProcessResult
from markflow.output.writer import OutputSink
from markflow.watch.debounce import DebounceQueue
from markflow.watch.watcher import ChangeWatcher

logger = logging.getLogger(__name__)


def watch_pipeline(
    pipeline: Pipeline,
    root: str | Path,
    targets: Iterable[str | Target],
    sink: OutputSink | None = None,
    *,
    on_result: Callable[[ProcessResult], None] | None = None,
    ignore_dirs: Iterable[str] = (),
) -> ChangeWatcher:
    """Build a ChangeWatcher that runs ``pipeline`` on every settled change.

    Targets are resolved up front, so an unknown identifier raises here
    instead of on the first event. The returned watcher is not started.
    """
    resolved = pipeline.registry.resolve(targets)
    general = pipeline.config.general

    def submit(path: Path) -> None:
        result = pipeline.process(path, resolved, sink)
        if result.ok:
            logger.info("rebuilt %s", path)
        else:
            logger.error("rebuild of %s failed at %s", path, result.failed_stage)
        if on_result is not None:
            on_result(result)

    return ChangeWatcher(
        root,
        submit,
        debounce_seconds=general.debounce_seconds,
        extensions=general.watch_extensions,
        max_workers=general.max_workers,
        ignore_dirs=ignore_dirs,
    )


__all__ = [
    "ChangeWatcher",
    "DebounceQueue",
    "watch_pipeline",
]
