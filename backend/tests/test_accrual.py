from __future__ import annotations

import datetime as dt
from typing import Dict, List

import pytest

from shopboard.accrual import AccrualEngine, advance_hours, compute_accrual
from shopboard.errors import StorageError
from shopboard.models import Job, Tech


def _job(
    job_id: str = "job-1",
    quoted_hours: float = 1.0,
    time_spent: float = 0.0,
    working: int = 0,
    idle: int = 0,
    diagnostic_running: bool = False,
    diagnostic_time: float = 0.0,
) -> Job:
    job = Job(
        id=job_id,
        title=f"Job {job_id}",
        quoted_hours=quoted_hours,
        time_spent=time_spent,
        diagnostic_time=diagnostic_time,
        diagnostic_running=diagnostic_running,
        sort_index=0,
    )
    techs = [Tech(id=f"{job_id}-w{i}", name=f"Worker {i}", is_working=True) for i in range(working)]
    techs += [Tech(id=f"{job_id}-i{i}", name=f"Idle {i}", is_working=False) for i in range(idle)]
    job.techs = techs
    return job


class FakeStore:
    def __init__(self, jobs: List[Job]):
        self.jobs = jobs
        self.writes: List[str] = []
        self.fail_writes_for: set[str] = set()

    def list_jobs(self) -> List[Job]:
        return list(self.jobs)

    def save_accrual(self, job_id: str, values: Dict[str, float]) -> bool:
        if job_id in self.fail_writes_for:
            raise StorageError()
        for job in self.jobs:
            if job.id == job_id:
                for key, value in values.items():
                    setattr(job, key, value)
                self.writes.append(job_id)
                return True
        return False


class BrokenJob:
    id = "broken"

    @property
    def active_tech_count(self) -> int:
        raise RuntimeError("corrupt row")


@pytest.fixture()
def accrual_engine() -> AccrualEngine:
    return AccrualEngine(session_factory=lambda: None)


def _run(engine: AccrualEngine, store: FakeStore, ticks: int) -> None:
    for _ in range(ticks):
        engine.accrue_all(store)


def test_advance_hours_snaps_to_whole_seconds():
    assert advance_hours(0.0, 1) == 1 / 3600
    assert advance_hours(1 / 3600, 3599) == 1.0
    assert advance_hours(2.5, 0) == 2.5


@pytest.mark.parametrize("active", [1, 2, 3, 5])
def test_tick_adds_one_second_per_active_tech(active: int):
    job = _job(quoted_hours=10.0, time_spent=0.5, working=active, idle=2)
    update = compute_accrual(job)
    assert update.time_spent == pytest.approx(min(0.5 + active / 3600, 10.0))
    assert update.diagnostic_time is None


def test_tick_clamps_to_quoted_hours():
    job = _job(quoted_hours=1.0, time_spent=1.0 - 1 / 3600, working=4)
    update = compute_accrual(job)
    assert update.time_spent == 1.0


def test_tick_clamps_down_to_a_reduced_quote():
    job = _job(quoted_hours=0.25, time_spent=0.5, working=1)
    update = compute_accrual(job)
    assert update.time_spent == 0.25
    assert update.values() == {"time_spent": 0.25}


def test_idle_job_produces_no_write(accrual_engine: AccrualEngine):
    store = FakeStore([_job(idle=3)])
    report = accrual_engine.accrue_all(store)
    assert store.writes == []
    assert report.scanned == 1
    assert report.updated == 0


def test_diagnostic_accrues_unclamped():
    job = _job(quoted_hours=0.5, diagnostic_running=True, diagnostic_time=10.0)
    update = compute_accrual(job)
    assert update.diagnostic_time == pytest.approx(10.0 + 1 / 3600)
    assert update.values() == {"diagnostic_time": update.diagnostic_time}


def test_single_tech_reaches_quote_and_stops(accrual_engine: AccrualEngine):
    job = _job(quoted_hours=1.0, working=1)
    store = FakeStore([job])
    _run(accrual_engine, store, 3600)
    assert job.time_spent == 1.0
    _run(accrual_engine, store, 100)
    assert job.time_spent == 1.0


def test_two_techs_pool_into_one_counter(accrual_engine: AccrualEngine):
    job = _job(quoted_hours=5.0, working=2)
    store = FakeStore([job])
    _run(accrual_engine, store, 1800)
    assert job.time_spent == min(1800 * 2 / 3600, 5.0)


def test_diagnostic_runs_four_hours_exactly(accrual_engine: AccrualEngine):
    job = _job(quoted_hours=5.0, diagnostic_running=True)
    store = FakeStore([job])
    _run(accrual_engine, store, 14400)
    assert job.diagnostic_time == 4.0
    assert job.time_spent == 0.0


def test_time_spent_is_monotonic_and_bounded(accrual_engine: AccrualEngine):
    job = _job(quoted_hours=0.01, working=3)
    store = FakeStore([job])
    previous = job.time_spent
    for _ in range(30):
        accrual_engine.accrue_all(store)
        assert previous <= job.time_spent <= job.quoted_hours
        previous = job.time_spent
    assert job.time_spent == 0.01


def test_failing_job_does_not_stop_the_scan(accrual_engine: AccrualEngine):
    first = _job("a", quoted_hours=2.0, working=1)
    second = _job("b", quoted_hours=2.0, working=1)
    third = _job("c", quoted_hours=2.0, diagnostic_running=True)
    store = FakeStore([first, BrokenJob(), second, third])
    store.fail_writes_for.add("b")

    report = accrual_engine.accrue_all(store)

    assert report.scanned == 4
    assert report.failed == 2
    assert report.updated == 2
    assert first.time_spent == pytest.approx(1 / 3600)
    assert second.time_spent == 0.0
    assert third.diagnostic_time == pytest.approx(1 / 3600)


def test_unreadable_store_skips_the_tick(accrual_engine: AccrualEngine):
    class UnreadableStore(FakeStore):
        def list_jobs(self) -> List[Job]:
            raise StorageError()

    report = accrual_engine.accrue_all(UnreadableStore([]))
    assert report.scanned == 0
    assert accrual_engine.tick_count == 1
    assert accrual_engine.last_tick_at is not None


def test_vanished_job_is_not_counted_as_update(accrual_engine: AccrualEngine):
    class ForgetfulStore(FakeStore):
        def save_accrual(self, job_id: str, values: Dict[str, float]) -> bool:
            return False

    report = accrual_engine.accrue_all(ForgetfulStore([_job(working=1)]))
    assert report.updated == 0
    assert report.failed == 0


def test_toggling_tech_twice_restores_state():
    tech = Tech(name="Sam", is_working=False, start_time=None)
    now = dt.datetime(2024, 5, 1, 8, 0, tzinfo=dt.timezone.utc)
    assert tech.toggle(now) is True
    assert tech.start_time == now
    assert tech.toggle(now) is False
    assert tech.start_time is None


def test_toggle_diagnostic_flips_flag():
    job = _job(diagnostic_running=False)
    assert job.toggle_diagnostic() is True
    assert job.toggle_diagnostic() is False
    assert job.diagnostic.is_running is False
