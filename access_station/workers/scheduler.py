# =======================================================================================
# access_station/workers/scheduler.py - Serialized Timer Facility
# =======================================================================================
import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ScheduledTask:
    """Handle returned by TaskScheduler; cancel() is idempotent."""

    def __init__(self, fn: Callable[[], None], interval: Optional[float] = None):
        self.fn = fn
        self.interval = interval
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class TaskScheduler:
    """
    One daemon thread running due callbacks one at a time.

    Callbacks never overlap each other, which is what the enrollment
    timers rely on. A slow callback delays the ones behind it.
    """

    def __init__(self, name: str = "station-scheduler", clock: Callable[[], float] = time.monotonic):
        self._name = name
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: List[Tuple[float, int, ScheduledTask]] = []
        self._seq = itertools.count()
        self._thread: Optional[threading.Thread] = None
        self._running = False

    # ------------------------------------------------------------------
    # Start / Stop
    # ------------------------------------------------------------------
    def start(self) -> None:
        with self._cond:
            if self._running:
                return
            self._running = True
            self._thread = threading.Thread(target=self._run_loop, name=self._name, daemon=True)
            self._thread.start()

    def shutdown(self, wait: bool = True) -> None:
        with self._cond:
            self._running = False
            for _, _, task in self._queue:
                task.cancel()
            self._queue.clear()
            self._cond.notify_all()
        thread = self._thread
        if wait and thread and thread is not threading.current_thread():
            thread.join(timeout=2)
        self._thread = None

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    def schedule(self, delay: float, fn: Callable[[], None]) -> ScheduledTask:
        """Run fn once after delay seconds."""
        task = ScheduledTask(fn)
        self._push(self._clock() + max(0.0, delay), task)
        return task

    def schedule_periodic(
        self, interval: float, fn: Callable[[], None], initial_delay: Optional[float] = None
    ) -> ScheduledTask:
        """Run fn every interval seconds (fixed rate) until cancelled."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        task = ScheduledTask(fn, interval=interval)
        first = interval if initial_delay is None else max(0.0, initial_delay)
        self._push(self._clock() + first, task)
        return task

    def _push(self, due: float, task: ScheduledTask) -> None:
        self.start()
        with self._cond:
            heapq.heappush(self._queue, (due, next(self._seq), task))
            self._cond.notify()

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def _run_loop(self) -> None:
        while True:
            with self._cond:
                while self._running:
                    if not self._queue:
                        self._cond.wait()
                        continue
                    due, _, task = self._queue[0]
                    wait = due - self._clock()
                    if wait > 0:
                        self._cond.wait(timeout=wait)
                        continue
                    heapq.heappop(self._queue)
                    if task.cancelled:
                        continue
                    if task.interval is not None:
                        heapq.heappush(self._queue, (due + task.interval, next(self._seq), task))
                    break
                else:
                    return

            try:
                task.fn()
            except Exception:
                logger.exception("[scheduler] task %r failed", task.fn)
