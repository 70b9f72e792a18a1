"""Directory watcher that resubmits changed Markdown files after a quiet period."""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from contextlib import suppress
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from markflow.errors import WatchError
from markflow.watch.debounce import DebounceQueue

logger = logging.getLogger(__name__)

_IGNORE_PARTS = {".git", "node_modules", "__pycache__"}

# Upper bound on how long the dispatcher sleeps before re-checking the root.
_ROOT_CHECK_INTERVAL = 1.0
_CHANNEL_SIZE = 1024
_PUT_TIMEOUT = 0.1

_STOP = object()
_WAKE = object()


class _ChangeHandler(FileSystemEventHandler):
    """Turns watchdog events into (path, timestamp) items on the channel."""

    def __init__(self, watcher: ChangeWatcher) -> None:
        super().__init__()
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher._offer(os.fsdecode(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher._offer(os.fsdecode(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._watcher._offer(os.fsdecode(event.dest_path))
        elif Path(os.fsdecode(event.src_path)) == self._watcher.root:
            self._watcher._wake()

    def on_deleted(self, event: FileSystemEvent) -> None:
        if event.is_directory and Path(os.fsdecode(event.src_path)) == self._watcher.root:
            self._watcher._wake()


class ChangeWatcher:
    """Watches ``root`` recursively and calls ``submit(path)`` once per quiet period.

    Filesystem events flow through a bounded channel to a single dispatcher
    thread, which owns the debounce bookkeeping and hands due paths to a
    bounded worker pool. Distinct paths run concurrently; the same path never
    runs twice at once.

    If the watched directory disappears the session ends: ``error`` is set to
    a WatchError and ``wait`` raises it. There is no retry.
    """

    def __init__(
        self,
        root: str | Path,
        submit: Callable[[Path], object],
        debounce_seconds: float = 2.0,
        extensions: Iterable[str] = (".md", ".markdown"),
        max_workers: int = 4,
        ignore_dirs: Iterable[str] = (),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.root = Path(root).resolve()
        self.submit = submit
        self.extensions = {
            ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions
        }
        self.max_workers = max_workers
        self._ignore = _IGNORE_PARTS | set(ignore_dirs)
        self._clock = clock
        self._jobs = DebounceQueue(debounce_seconds)
        self._channel: queue.Queue = queue.Queue(maxsize=_CHANNEL_SIZE)
        self._stopping = threading.Event()
        self._finished = threading.Event()
        self._error: WatchError | None = None
        self._observer: Observer | None = None
        self._dispatcher: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None

    @property
    def error(self) -> WatchError | None:
        return self._error

    @property
    def running(self) -> bool:
        return self._observer is not None and not self._finished.is_set()

    def start(self) -> None:
        """Begin watching. Raises WatchError if the root is not a directory."""
        if self._observer is not None:
            return
        if not self.root.is_dir():
            raise WatchError(f"cannot watch {self.root}: not a directory")

        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="markflow-watch"
        )
        self._dispatcher = threading.Thread(
            target=self._dispatch, name="markflow-dispatch", daemon=True
        )
        self._dispatcher.start()

        observer = Observer()
        observer.schedule(_ChangeHandler(self), str(self.root), recursive=True)
        try:
            observer.start()
        except OSError as exc:
            self.stop()
            raise WatchError(f"cannot watch {self.root}: {exc}") from exc
        self._observer = observer
        logger.info("Watching %s for changes", self.root)

    def stop(self) -> None:
        """Stop observing, let running jobs finish, then stop the dispatcher."""
        self._stopping.set()
        if self._observer is not None:
            self._observer.stop()
            with suppress(RuntimeError):
                self._observer.join(timeout=5)
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        if self._dispatcher is not None:
            while self._dispatcher.is_alive():
                try:
                    self._channel.put(_STOP, timeout=_PUT_TIMEOUT)
                    break
                except queue.Full:
                    continue
            self._dispatcher.join(timeout=5)
            self._dispatcher = None
        if self._observer is not None:
            logger.info("Stopped watching %s", self.root)
        self._observer = None
        self._executor = None
        self._finished.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the session ends. Re-raises a fatal WatchError.

        Returns False if ``timeout`` elapsed first.
        """
        finished = self._finished.wait(timeout)
        if self._error is not None:
            raise self._error
        return finished

    # -- event intake (observer thread) -----------------------------------------

    def _offer(self, path: str) -> None:
        if not self._accepts(path):
            return
        item = (path, self._clock())
        # Once the session has ended nothing drains the channel.
        while not self._finished.is_set():
            try:
                self._channel.put(item, timeout=_PUT_TIMEOUT)
                return
            except queue.Full:
                continue

    def _wake(self) -> None:
        with suppress(queue.Full):
            self._channel.put_nowait(_WAKE)

    def _accepts(self, path: str) -> bool:
        p = Path(path)
        if p.suffix.lower() not in self.extensions:
            return False
        try:
            parts = p.relative_to(self.root).parts
        except ValueError:
            parts = p.parts
        return not any(part in self._ignore for part in parts[:-1])

    # -- dispatcher thread -------------------------------------------------------

    def _dispatch(self) -> None:
        while True:
            try:
                item = self._channel.get(timeout=self._poll_timeout())
            except queue.Empty:
                item = None

            if item is _STOP:
                return
            if isinstance(item, tuple):
                path, ts = item
                self._jobs.touch(path, ts)
                logger.debug("change queued: %s", path)

            if not self._stopping.is_set() and not self.root.is_dir():
                self._fail(WatchError(f"watched directory {self.root} is no longer available"))
                return
            if self._stopping.is_set():
                continue

            for path in self._jobs.due(self._clock()):
                self._jobs.start(path)
                try:
                    self._executor.submit(self._run_job, path)
                except RuntimeError:
                    # Pool already shut down by stop().
                    self._jobs.finish(path)

    def _poll_timeout(self) -> float:
        deadline = self._jobs.next_deadline()
        if deadline is None:
            return _ROOT_CHECK_INTERVAL
        return max(0.0, min(deadline - self._clock(), _ROOT_CHECK_INTERVAL))

    def _run_job(self, path: str) -> None:
        try:
            self.submit(Path(path))
        except Exception:
            logger.exception("Processing failed for %s", path)
        finally:
            self._jobs.finish(path)
            self._wake()

    def _fail(self, exc: WatchError) -> None:
        logger.error("%s", exc)
        self._error = exc
        self._finished.set()
