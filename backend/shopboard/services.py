from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .errors import ValidationError
from .models import Job, Tech, utcnow
from .state import RuntimeState
from .store import JobStore

logger = logging.getLogger(__name__)


def _normalize_title(value: Optional[str]) -> str:
    title = (value or "").strip()
    if not title:
        raise ValidationError("Title must not be empty")
    return title


def _normalize_quoted_hours(value: Any) -> float:
    try:
        hours = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Quoted hours must be a number") from exc
    if not hours > 0:
        raise ValidationError("Quoted hours must be greater than zero")
    return hours


def _compact_ranks(jobs: List[Job]) -> None:
    for position, job in enumerate(jobs):
        if job.sort_index != position:
            job.sort_index = position


def list_jobs(store: JobStore) -> List[Job]:
    return store.list_jobs()


def get_job(store: JobStore, job_id: str) -> Job:
    return store.require_job(job_id)


def create_job(store: JobStore, title: str, quoted_hours: float) -> Job:
    job = Job(
        title=_normalize_title(title),
        quoted_hours=_normalize_quoted_hours(quoted_hours),
        time_spent=0.0,
        diagnostic_time=0.0,
        diagnostic_running=False,
        sort_index=store.count_jobs(),
    )
    store.add(job)
    store.commit()
    store.refresh(job)
    logger.info(f"Created job {job.id} ({job.title}, {job.quoted_hours}h)")
    return job


def update_job(store: JobStore, job_id: str, changes: Dict[str, Any]) -> Job:
    job = store.require_job(job_id)
    if "title" in changes and changes["title"] is not None:
        job.title = _normalize_title(changes["title"])
    if "quoted_hours" in changes and changes["quoted_hours"] is not None:
        job.quoted_hours = _normalize_quoted_hours(changes["quoted_hours"])
    store.commit()
    store.refresh(job)
    return job


def delete_job(store: JobStore, job_id: str, state: Optional[RuntimeState] = None) -> List[Job]:
    if state is not None:
        state.completions.cancel(job_id)
    job = store.get_job(job_id)
    if job is None:
        logger.debug(f"Delete requested for unknown job {job_id}; nothing to do")
        return store.list_jobs()
    store.delete(job)
    store.commit()
    remaining = store.list_jobs()
    _compact_ranks(remaining)
    store.commit()
    logger.info(f"Deleted job {job_id}")
    return store.list_jobs()


def complete_job(store: JobStore, state: RuntimeState, job_id: str) -> Job:
    job = store.require_job(job_id)

    def _finish() -> None:
        session = state.open_session()
        try:
            delete_job(JobStore(session), job_id)
        finally:
            session.close()

    if state.completions.schedule(job_id, state.completion_delay_seconds, _finish):
        logger.info(f"Job {job_id} completed; removal in {state.completion_delay_seconds}s")
    return job


def add_tech(store: JobStore, job_id: str, name: str) -> Job:
    job = store.require_job(job_id)
    tech_name = (name or "").strip()
    if not tech_name:
        raise ValidationError("Tech name must not be empty")
    job.techs.append(Tech(name=tech_name, is_working=False, start_time=None, position=len(job.techs)))
    store.commit()
    store.refresh(job)
    return job


def toggle_tech(store: JobStore, job_id: str, tech_id: str) -> Job:
    job = store.require_job(job_id)
    tech = store.require_tech(job, tech_id)
    tech.toggle(utcnow())
    store.commit()
    store.refresh(job)
    return job


def toggle_diagnostic(store: JobStore, job_id: str) -> Job:
    job = store.require_job(job_id)
    job.toggle_diagnostic()
    store.commit()
    store.refresh(job)
    return job


def reorder_jobs(store: JobStore, ordered_ids: List[str]) -> List[Job]:
    if len(set(ordered_ids)) != len(ordered_ids):
        raise ValidationError("The order must contain unique job ids")
    jobs = store.list_jobs()
    jobs_by_id = {job.id: job for job in jobs}
    listed = [jobs_by_id[job_id] for job_id in ordered_ids if job_id in jobs_by_id]
    listed_ids = {job.id for job in listed}
    unlisted = [job for job in jobs if job.id not in listed_ids]
    unknown = [job_id for job_id in ordered_ids if job_id not in jobs_by_id]
    if unknown or unlisted:
        logger.warning(
            f"Reorder list does not match the job set (unknown: {len(unknown)}, missing: {len(unlisted)})"
        )
    _compact_ranks(listed + unlisted)
    store.commit()
    return store.list_jobs()
