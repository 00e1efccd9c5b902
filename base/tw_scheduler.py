import logging
import threading
from typing import Callable

logger = logging.getLogger("TagWatch Scheduler")


class IntervalTimer:
    """
    Cancellable repeating timer.

    Every `interval_seconds` the action is dispatched on its own daemon thread,
    so a slow action never delays the next tick and ticks may overlap.
    """

    def __init__(self, interval_seconds: float, action: Callable[[], None], name: str = "tagwatch-timer"):
        if interval_seconds <= 0:
            raise ValueError(f"Interval must be positive, got {interval_seconds}.")
        self.interval_seconds = interval_seconds
        self.action = action
        self.name = name
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._ticks = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self) -> "IntervalTimer":
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._cancelled.set()

    def _run(self) -> None:
        while not self._cancelled.wait(self.interval_seconds):
            self._ticks += 1
            worker = threading.Thread(target=self.action, name=f"{self.name}-tick-{self._ticks}", daemon=True)
            try:
                worker.start()
            except RuntimeError as e:
                logger.error(f"Could not dispatch tick {self._ticks}: {e}")
