"""Tests for the debounce queue driven by an explicit clock."""

import pytest

from markflow.watch.debounce import DebounceQueue


class TestCoalescing:
    def test_burst_within_window_yields_one_submission(self):
        q = DebounceQueue(window=2.0)
        for t in (0.0, 0.5, 1.0, 1.9, 3.0):
            q.touch("a.md", t)
            assert q.due(t) == []
        assert q.due(4.9) == []
        assert q.due(5.0) == ["a.md"]
        assert q.due(100.0) == []

    def test_events_separated_by_window_yield_two_submissions(self):
        q = DebounceQueue(window=2.0)
        submissions = []
        q.touch("a.md", 0.0)
        submissions += q.due(2.5)
        q.touch("a.md", 5.0)
        submissions += q.due(7.5)
        assert submissions == ["a.md", "a.md"]

    def test_latest_timestamp_wins(self):
        q = DebounceQueue(window=1.0)
        q.touch("a.md", 0.0)
        q.touch("a.md", 10.0)
        assert q.next_deadline() == 11.0
        assert len(q) == 1

    def test_distinct_paths_are_independent(self):
        q = DebounceQueue(window=1.0)
        q.touch("a.md", 0.0)
        q.touch("b.md", 0.5)
        assert q.due(1.0) == ["a.md"]
        assert q.due(1.5) == ["b.md"]

    def test_due_is_ordered_oldest_first(self):
        q = DebounceQueue(window=1.0)
        q.touch("late.md", 0.3)
        q.touch("early.md", 0.1)
        assert q.due(5.0) == ["early.md", "late.md"]


class TestInFlight:
    def test_event_during_run_waits_for_completion(self):
        q = DebounceQueue(window=1.0)
        q.touch("a.md", 0.0)
        assert q.due(1.0) == ["a.md"]
        q.start("a.md")

        q.touch("a.md", 1.5)
        assert q.due(10.0) == []
        assert q.next_deadline() is None
        assert "a.md" in q

        q.finish("a.md")
        assert q.next_deadline() == 2.5
        assert q.due(10.0) == ["a.md"]

    def test_other_paths_not_blocked(self):
        q = DebounceQueue(window=1.0)
        q.start("a.md")
        q.touch("a.md", 0.0)
        q.touch("b.md", 0.0)
        assert q.due(1.0) == ["b.md"]
        assert q.in_flight == {"a.md"}


class TestEdges:
    def test_empty(self):
        q = DebounceQueue(window=1.0)
        assert q.due(0.0) == []
        assert q.next_deadline() is None

    def test_negative_window_rejected(self):
        with pytest.raises(ValueError):
            DebounceQueue(window=-1)
