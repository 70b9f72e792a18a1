"""Integration tests for the change watcher with a real watchdog observer."""

from __future__ import annotations

import shutil
import threading
import time
from pathlib import Path

import pytest

from markflow.config.models import GeneralConfig, MarkflowConfig, OutputConfig
from markflow.core.pipeline import Pipeline
from markflow.errors import UnknownTargetError, WatchError
from markflow.output import HtmlFileWriter
from markflow.watch import ChangeWatcher, watch_pipeline

DEBOUNCE = 0.3


# ── Helpers ──────────────────────────────────────────────────────────


class _Recorder:
    def __init__(self) -> None:
        self.paths: list[Path] = []
        self._lock = threading.Lock()

    def __call__(self, path: Path) -> None:
        with self._lock:
            self.paths.append(path)

    def count(self) -> int:
        with self._lock:
            return len(self.paths)


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


@pytest.fixture
def watched(tmp_path: Path) -> Path:
    root = tmp_path / "docs"
    root.mkdir()
    return root


@pytest.fixture
def recorder():
    return _Recorder()


@pytest.fixture
def watcher(watched, recorder):
    w = ChangeWatcher(watched, recorder, debounce_seconds=DEBOUNCE)
    w.start()
    # Let the observer settle before generating events.
    time.sleep(0.2)
    yield w
    w.stop()


# ── ChangeWatcher ────────────────────────────────────────────────────


class TestChangeWatcher:
    def test_burst_of_writes_submits_once(self, watcher, watched, recorder):
        target = watched / "post.md"
        for i in range(5):
            target.write_text(f"# v{i}\n")
            time.sleep(0.02)

        assert _wait_for(lambda: recorder.count() >= 1)
        time.sleep(DEBOUNCE * 4)
        assert recorder.count() == 1
        assert recorder.paths[0].name == "post.md"

    def test_separated_writes_submit_twice(self, watcher, watched, recorder):
        target = watched / "post.md"
        target.write_text("# one\n")
        assert _wait_for(lambda: recorder.count() == 1)
        time.sleep(DEBOUNCE * 2)

        target.write_text("# two\n")
        assert _wait_for(lambda: recorder.count() == 2)

    def test_other_extensions_ignored(self, watcher, watched, recorder):
        (watched / "notes.txt").write_text("x")
        (watched / "image.png").write_bytes(b"\x89PNG")
        time.sleep(DEBOUNCE * 4)
        assert recorder.count() == 0

    def test_ignored_directories(self, watcher, watched, recorder):
        hidden = watched / "node_modules"
        hidden.mkdir()
        (hidden / "readme.md").write_text("# dep\n")
        time.sleep(DEBOUNCE * 4)
        assert recorder.count() == 0

    def test_nested_files_are_watched(self, watcher, watched, recorder):
        sub = watched / "drafts"
        sub.mkdir()
        (sub / "idea.markdown").write_text("# idea\n")
        assert _wait_for(lambda: recorder.count() >= 1)
        assert recorder.paths[0].name == "idea.markdown"

    def test_distinct_files_each_submitted(self, watcher, watched, recorder):
        (watched / "a.md").write_text("a")
        (watched / "b.md").write_text("b")
        assert _wait_for(lambda: recorder.count() >= 2)
        assert {p.name for p in recorder.paths} == {"a.md", "b.md"}

    def test_submit_errors_do_not_stop_the_session(self, watched):
        calls = _Recorder()

        def flaky(path: Path) -> None:
            calls(path)
            raise RuntimeError("processing failed")

        w = ChangeWatcher(watched, flaky, debounce_seconds=DEBOUNCE)
        w.start()
        try:
            time.sleep(0.2)
            (watched / "a.md").write_text("a")
            assert _wait_for(lambda: calls.count() == 1)
            time.sleep(DEBOUNCE * 2)
            (watched / "a.md").write_text("b")
            assert _wait_for(lambda: calls.count() == 2)
            assert w.error is None
        finally:
            w.stop()


class TestWatchErrors:
    def test_missing_root_raises_on_start(self, tmp_path, recorder):
        w = ChangeWatcher(tmp_path / "absent", recorder)
        with pytest.raises(WatchError):
            w.start()

    def test_removed_root_ends_session(self, watched, recorder):
        w = ChangeWatcher(watched, recorder, debounce_seconds=DEBOUNCE)
        w.start()
        try:
            time.sleep(0.2)
            shutil.rmtree(watched)
            with pytest.raises(WatchError, match="no longer available"):
                w.wait(timeout=5)
            assert isinstance(w.error, WatchError)
        finally:
            w.stop()

    def test_events_after_failure_never_block(self, watched, recorder, monkeypatch):
        monkeypatch.setattr("markflow.watch.watcher._CHANNEL_SIZE", 4)
        w = ChangeWatcher(watched, recorder, debounce_seconds=DEBOUNCE)
        w.start()
        try:
            time.sleep(0.2)
            shutil.rmtree(watched)
            with pytest.raises(WatchError):
                w.wait(timeout=5)

            def flood():
                for i in range(20):
                    w._offer(str(watched / f"late{i}.md"))

            t = threading.Thread(target=flood, daemon=True)
            t.start()
            t.join(timeout=3)
            assert not t.is_alive()
        finally:
            stopper = threading.Thread(target=w.stop, daemon=True)
            stopper.start()
            stopper.join(timeout=10)
        assert not stopper.is_alive()

    def test_wait_times_out_while_running(self, watcher):
        assert watcher.wait(timeout=0.1) is False

    def test_stop_ends_wait(self, watched, recorder):
        w = ChangeWatcher(watched, recorder, debounce_seconds=DEBOUNCE)
        w.start()
        w.stop()
        assert w.wait(timeout=1) is True


# ── watch_pipeline ───────────────────────────────────────────────────


class TestWatchPipeline:
    def test_changed_file_is_rebuilt(self, watched, tmp_path):
        out = tmp_path / "out"
        cfg = MarkflowConfig(
            general=GeneralConfig(debounce_seconds=DEBOUNCE),
            output=OutputConfig(output_dir=str(out), backup_enabled=False),
        )
        pipeline = Pipeline(cfg)
        results = []
        w = watch_pipeline(
            pipeline, watched, ["zhihu"], HtmlFileWriter(cfg.output), on_result=results.append
        )
        w.start()
        try:
            time.sleep(0.2)
            (watched / "post.md").write_text("# Watched Post\n\nbody\n", encoding="utf-8")
            expected = out / "zhihu" / "Watched Post_zhihu.html"
            assert _wait_for(expected.exists)
            assert _wait_for(lambda: len(results) == 1)
            assert results[0].ok
        finally:
            w.stop()

    def test_unknown_target_raises_before_watching(self, watched):
        with pytest.raises(UnknownTargetError):
            watch_pipeline(Pipeline(), watched, ["medium"])
