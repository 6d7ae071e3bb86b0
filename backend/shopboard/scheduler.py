from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class RepeatingTask:
    """Run ``action`` every ``interval`` seconds on a daemon thread.

    The task has an explicit lifecycle: nothing runs until ``start`` and
    ``stop`` joins the thread. An exception raised by ``action`` is logged and
    the loop carries on with the next period.
    """

    def __init__(self, name: str, interval: float, action: Callable[[], None]):
        self.name = name
        self.interval = interval
        self.action = action
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()
        logger.info(f"{self.name} started (interval {self.interval}s)")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        with self._lock:
            thread = self._thread
            self._stop_event.set()
            self._thread = None
        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join(timeout)
        logger.info(f"{self.name} stopped")

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.action()
            except Exception as exc:
                logger.error(f"{self.name} iteration failed: {exc}", exc_info=True)


class DeferredTasks:
    """Keyed one-shot timers.

    At most one pending action exists per key. ``run_pending`` fires every
    pending action immediately in the calling thread, which is what shutdown
    does so an accepted request is never dropped.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._pending: Dict[str, tuple[threading.Timer, Callable[[], None]]] = {}

    def schedule(self, key: str, delay: float, action: Callable[[], None]) -> bool:
        with self._lock:
            if key in self._pending:
                return False
            timer = threading.Timer(delay, self._fire, args=(key,))
            timer.daemon = True
            self._pending[key] = (timer, action)
            timer.start()
        return True

    def cancel(self, key: str) -> bool:
        with self._lock:
            entry = self._pending.pop(key, None)
        if entry is None:
            return False
        entry[0].cancel()
        return True

    def is_pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def pending(self) -> List[str]:
        with self._lock:
            return list(self._pending)

    def run_pending(self) -> int:
        with self._lock:
            entries = list(self._pending.items())
            self._pending.clear()
        for key, (timer, action) in entries:
            timer.cancel()
            self._execute(key, action)
        return len(entries)

    def _fire(self, key: str) -> None:
        with self._lock:
            entry = self._pending.pop(key, None)
        if entry is not None:
            self._execute(key, entry[1])

    def _execute(self, key: str, action: Callable[[], None]) -> None:
        try:
            action()
        except Exception as exc:
            logger.error(f"Deferred task {key} failed: {exc}", exc_info=True)
