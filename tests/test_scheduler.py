"""
Tests for repeating tasks.
"""

import threading

import pytest

from storefront.services.scheduler import RepeatingTask, Scheduler


class TestRepeatingTask:
    """Tests for RepeatingTask."""

    def test_invalid_interval(self) -> None:
        with pytest.raises(ValueError):
            RepeatingTask("bad", lambda: None, 0)

    def test_run_immediately(self) -> None:
        ran = threading.Event()
        task = RepeatingTask("now", ran.set, 3600, run_immediately=True).start()
        try:
            assert ran.wait(5)
        finally:
            task.cancel()
        assert not task.is_running

    def test_repeats(self) -> None:
        calls = []
        done = threading.Event()

        def tick():
            calls.append(1)
            if len(calls) >= 3:
                done.set()

        task = RepeatingTask("fast", tick, 0.01).start()
        try:
            assert done.wait(5)
        finally:
            task.cancel()

    def test_exceptions_do_not_stop_task(self) -> None:
        done = threading.Event()
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            done.set()

        task = RepeatingTask("flaky", flaky, 0.01).start()
        try:
            assert done.wait(5)
        finally:
            task.cancel()

    def test_cancel_from_own_thread(self) -> None:
        holder = {}
        finished = threading.Event()

        def self_cancel():
            holder["task"].cancel()
            finished.set()

        holder["task"] = RepeatingTask("self", self_cancel, 3600, run_immediately=True)
        holder["task"].start()
        assert finished.wait(5)
        assert not holder["task"].is_running

    def test_double_start(self) -> None:
        task = RepeatingTask("once", lambda: None, 3600).start()
        try:
            with pytest.raises(RuntimeError):
                task.start()
        finally:
            task.cancel()


class TestScheduler:
    """Tests for the named task registry."""

    def test_schedule_and_cancel(self) -> None:
        scheduler = Scheduler()
        scheduler.schedule("a", lambda: None, 3600)
        assert scheduler.is_scheduled("a")
        assert scheduler.cancel("a")
        assert not scheduler.is_scheduled("a")
        assert not scheduler.cancel("a")

    def test_schedule_replaces_same_name(self) -> None:
        scheduler = Scheduler()
        first = scheduler.schedule("a", lambda: None, 3600)
        second = scheduler.schedule("a", lambda: None, 3600)
        try:
            assert not first.is_running
            assert second.is_running
            assert scheduler.task_names == ["a"]
        finally:
            scheduler.cancel_all()

    def test_cancel_all(self) -> None:
        scheduler = Scheduler()
        scheduler.schedule("a", lambda: None, 3600)
        scheduler.schedule("b", lambda: None, 3600)
        assert scheduler.cancel_all() == 2
        assert scheduler.task_names == []
