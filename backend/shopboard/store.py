from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .errors import NotFoundError, StorageError
from .models import Job, Tech

logger = logging.getLogger(__name__)


class JobStore:
    """Persistent job/tech storage behind a small explicit interface.

    Wraps one SQLAlchemy session. Both the request handlers and the accrual
    engine go through this class; any SQLAlchemy failure is rolled back,
    logged and re-raised as ``StorageError``.
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception(f"Storage failure while trying to {action}")
            raise StorageError() from exc

    def list_jobs(self) -> List[Job]:
        with self._guard("list jobs"):
            result = self.session.execute(
                select(Job)
                .options(selectinload(Job.techs))
                .order_by(Job.sort_index, Job.created_at)
            )
            return list(result.scalars().all())

    def count_jobs(self) -> int:
        with self._guard("count jobs"):
            return self.session.execute(select(func.count(Job.id))).scalar_one()

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._guard(f"load job {job_id}"):
            return self.session.get(Job, job_id)

    def require_job(self, job_id: str) -> Job:
        job = self.get_job(job_id)
        if job is None:
            raise NotFoundError("Job not found")
        return job

    def require_tech(self, job: Job, tech_id: str) -> Tech:
        for tech in job.techs:
            if tech.id == tech_id:
                return tech
        raise NotFoundError("Tech not found")

    def add(self, instance) -> None:
        with self._guard("add record"):
            self.session.add(instance)

    def delete(self, job: Job) -> None:
        with self._guard(f"delete job {job.id}"):
            self.session.delete(job)

    def commit(self) -> None:
        with self._guard("commit changes"):
            self.session.commit()

    def refresh(self, instance) -> None:
        with self._guard("refresh record"):
            self.session.refresh(instance)

    def save_accrual(self, job_id: str, values: Dict[str, float]) -> bool:
        """Write accrual counters for one job and commit.

        Only the given columns are touched so concurrent toggles and quote
        edits on the same row survive. ``time_spent`` is clamped against the
        quote stored at write time, not the one read at the start of the tick.
        Returns False when the job vanished.
        """
        columns: Dict[str, object] = dict(values)
        if "time_spent" in columns:
            columns["time_spent"] = func.min(columns["time_spent"], Job.quoted_hours)
        with self._guard(f"save accrual for job {job_id}"):
            result = self.session.execute(
                update(Job)
                .where(Job.id == job_id)
                .values(**columns)
                .execution_options(synchronize_session=False)
            )
            self.session.commit()
        return result.rowcount > 0
