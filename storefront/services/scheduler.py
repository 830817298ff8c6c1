"""
Cancellable repeating tasks.

Used for the hourly FX refresh and the one-minute session expiry check.
Each task runs on its own daemon thread and stops as soon as it is cancelled.
"""

import logging
import threading
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class RepeatingTask:
    """
    Calls a function every ``interval_seconds`` until cancelled.

    Exceptions from the function are logged and do not stop the task.
    """

    def __init__(
        self,
        name: str,
        func: Callable[[], object],
        interval_seconds: float,
        run_immediately: bool = False,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"Invalid interval for task {name}: {interval_seconds}")
        self.name = name
        self.func = func
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self.run_count = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def start(self) -> "RepeatingTask":
        if self._thread is not None:
            raise RuntimeError(f"Task {self.name} already started")
        self._thread = threading.Thread(target=self._run, name=f"task-{self.name}", daemon=True)
        self._thread.start()
        logger.debug(f"Started task {self.name} (every {self.interval_seconds}s)")
        return self

    def _run(self) -> None:
        if self.run_immediately:
            self._tick()
        while not self._stop.wait(self.interval_seconds):
            self._tick()

    def _tick(self) -> None:
        if self._stop.is_set():
            return
        try:
            self.func()
        except Exception as e:
            logger.exception(f"Task {self.name} failed: {e}")
        finally:
            self.run_count += 1

    def cancel(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the task and wait for the worker thread to exit."""
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.debug(f"Cancelled task {self.name}")


class Scheduler:
    """Named registry of repeating tasks owned by one lifecycle."""

    def __init__(self) -> None:
        self._tasks: Dict[str, RepeatingTask] = {}
        self._lock = threading.Lock()

    def schedule(
        self,
        name: str,
        func: Callable[[], object],
        interval_seconds: float,
        run_immediately: bool = False,
    ) -> RepeatingTask:
        """Start a task, replacing any task already registered under ``name``."""
        self.cancel(name)
        task = RepeatingTask(name, func, interval_seconds, run_immediately=run_immediately)
        with self._lock:
            self._tasks[name] = task
        return task.start()

    def cancel(self, name: str) -> bool:
        with self._lock:
            task = self._tasks.pop(name, None)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_all(self) -> int:
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for task in tasks:
            task.cancel()
        return len(tasks)

    def is_scheduled(self, name: str) -> bool:
        with self._lock:
            task = self._tasks.get(name)
        return task is not None and task.is_running

    @property
    def task_names(self) -> list[str]:
        with self._lock:
            return list(self._tasks)
