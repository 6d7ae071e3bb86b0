from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from .accrual import AccrualEngine
from .config import Settings
from .scheduler import DeferredTasks

logger = logging.getLogger(__name__)


class RuntimeState:
    """Process-wide services shared by the request handlers.

    Owns the accrual engine and the deferred completion timers, and the
    session factory both of them open their own sessions with.
    """

    def __init__(self, base_settings: Settings, session_factory: Callable[[], Session]):
        self._lock = RLock()
        self._session_factory = session_factory
        self.accrual_enabled: bool = base_settings.accrual_enabled
        self.completion_delay_seconds: float = base_settings.completion_delay_seconds
        self.accrual = AccrualEngine(self.open_session, interval=base_settings.tick_interval_seconds)
        self.completions = DeferredTasks()

    @property
    def session_factory(self) -> Callable[[], Session]:
        with self._lock:
            return self._session_factory

    @session_factory.setter
    def session_factory(self, factory: Callable[[], Session]) -> None:
        with self._lock:
            self._session_factory = factory

    def open_session(self) -> Session:
        return self.session_factory()

    def startup(self) -> None:
        if self.accrual_enabled:
            self.accrual.start()
        else:
            logger.info("Accrual engine disabled by configuration")

    def shutdown(self) -> None:
        self.accrual.stop()
        flushed = self.completions.run_pending()
        if flushed:
            logger.info(f"Executed {flushed} pending job completion(s) on shutdown")

    def snapshot(self) -> Dict[str, Any]:
        last_tick = self.accrual.last_tick_at
        return {
            "running": self.accrual.running,
            "ticks": self.accrual.tick_count,
            "last_tick_at": last_tick.isoformat() if last_tick else None,
            "interval_seconds": self.accrual.interval,
            "pending_completions": len(self.completions.pending()),
        }
