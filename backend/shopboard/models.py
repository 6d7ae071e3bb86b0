from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


UTC = dt.timezone.utc


def utcnow() -> dt.datetime:
    return dt.datetime.now(UTC)


def new_identifier() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class DiagnosticState:
    time: float
    is_running: bool


class Job(Base):
    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True, default=new_identifier)
    title = Column(String(200), nullable=False)
    quoted_hours = Column(Float, nullable=False)
    time_spent = Column(Float, nullable=False, default=0.0)  # hours
    diagnostic_time = Column(Float, nullable=False, default=0.0)  # hours
    diagnostic_running = Column(Boolean, nullable=False, default=False)
    sort_index = Column(Integer, nullable=False, default=0, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    techs = relationship(
        "Tech",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="Tech.position",
    )

    @property
    def diagnostic(self) -> DiagnosticState:
        return DiagnosticState(time=self.diagnostic_time or 0.0, is_running=bool(self.diagnostic_running))

    @property
    def active_tech_count(self) -> int:
        return sum(1 for tech in self.techs if tech.is_working)

    def toggle_diagnostic(self) -> bool:
        self.diagnostic_running = not self.diagnostic_running
        return self.diagnostic_running

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, title={self.title}, order={self.sort_index})>"


class Tech(Base):
    __tablename__ = "techs"

    id = Column(String(36), primary_key=True, default=new_identifier)
    job_id = Column(String(36), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    is_working = Column(Boolean, nullable=False, default=False)
    start_time = Column(DateTime(timezone=True), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    job = relationship("Job", back_populates="techs")

    def toggle(self, now: dt.datetime) -> bool:
        self.is_working = not self.is_working
        self.start_time = now if self.is_working else None
        return self.is_working
