"""Periodic time accrual for jobs.

Every tick stands for exactly one second of wall time, whatever the real
elapsed time was. Active techs add their seconds to the job's pooled
``time_spent`` (clamped to the quote), a running diagnostic adds one second
to ``diagnostic_time`` (unclamped).
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol

from sqlalchemy.orm import Session

from .models import Job, utcnow
from .scheduler import RepeatingTask
from .store import JobStore

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600
TICK_SECONDS = 1


_GRID_TOLERANCE = 1e-6


def advance_hours(hours: float, seconds: int) -> float:
    """Add whole seconds to an hour counter.

    Counters sitting on the one-second grid stay exactly on it, so N ticks
    always add up to exactly N/3600 hours instead of accumulating float error.
    """
    total = hours * SECONDS_PER_HOUR + seconds
    nearest = round(total)
    if abs(total - nearest) < _GRID_TOLERANCE:
        total = nearest
    return total / SECONDS_PER_HOUR


@dataclass(frozen=True)
class AccrualUpdate:
    job_id: str
    time_spent: Optional[float] = None
    diagnostic_time: Optional[float] = None

    @property
    def has_changes(self) -> bool:
        return self.time_spent is not None or self.diagnostic_time is not None

    def values(self) -> Dict[str, float]:
        values: Dict[str, float] = {}
        if self.time_spent is not None:
            values["time_spent"] = self.time_spent
        if self.diagnostic_time is not None:
            values["diagnostic_time"] = self.diagnostic_time
        return values


def compute_accrual(job: Job, seconds: int = TICK_SECONDS) -> AccrualUpdate:
    time_spent: Optional[float] = None
    diagnostic_time: Optional[float] = None

    active = job.active_tech_count
    current = job.time_spent or 0.0
    # A quote lowered below the accrued time pulls time_spent down to it.
    if active > 0:
        time_spent = min(advance_hours(current, active * seconds), job.quoted_hours)

    if job.diagnostic_running:
        diagnostic_time = advance_hours(job.diagnostic_time or 0.0, seconds)

    return AccrualUpdate(job_id=job.id, time_spent=time_spent, diagnostic_time=diagnostic_time)


class AccrualStore(Protocol):
    def list_jobs(self) -> List[Job]: ...

    def save_accrual(self, job_id: str, values: Dict[str, float]) -> bool: ...


@dataclass
class TickReport:
    scanned: int = 0
    updated: int = 0
    failed: int = 0


class AccrualEngine:
    """Scans every job once per tick and writes back accrued time."""

    def __init__(self, session_factory: Callable[[], Session], interval: float = 1.0):
        self.session_factory = session_factory
        self._task = RepeatingTask("accrual-engine", interval, self.tick)
        self._lock = threading.Lock()
        self.tick_count = 0
        self.last_tick_at: Optional[dt.datetime] = None

    @property
    def running(self) -> bool:
        return self._task.running

    @property
    def interval(self) -> float:
        return self._task.interval

    def start(self) -> None:
        self._task.start()

    def stop(self) -> None:
        self._task.stop()

    def tick(self) -> TickReport:
        session = self.session_factory()
        try:
            return self.accrue_all(JobStore(session))
        finally:
            session.close()

    def accrue_all(self, store: AccrualStore) -> TickReport:
        report = TickReport()
        try:
            jobs = store.list_jobs()
        except Exception as exc:
            logger.warning(f"Skipping accrual tick, jobs could not be read: {exc}")
            return self._finish(report)

        updates: List[AccrualUpdate] = []
        for job in jobs:
            report.scanned += 1
            try:
                update = compute_accrual(job)
            except Exception:
                report.failed += 1
                logger.warning(f"Accrual skipped for job {getattr(job, 'id', '?')}", exc_info=True)
                continue
            if update.has_changes:
                updates.append(update)

        for update in updates:
            try:
                if store.save_accrual(update.job_id, update.values()):
                    report.updated += 1
                else:
                    logger.debug(f"Job {update.job_id} vanished before its accrual was written")
            except Exception:
                report.failed += 1
                logger.warning(f"Accrual write failed for job {update.job_id}", exc_info=True)
        return self._finish(report)

    def _finish(self, report: TickReport) -> TickReport:
        with self._lock:
            self.tick_count += 1
            self.last_tick_at = utcnow()
        return report
