from __future__ import annotations

import datetime as dt
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_serializer


def _serialize_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


class TechResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    name: str
    is_working: bool
    start_time: Optional[dt.datetime]

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "isWorking": self.is_working,
            "startTime": _serialize_datetime(self.start_time) if self.start_time else None,
        }


class DiagnosticResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    time: float
    is_running: bool

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {"time": self.time, "isRunning": self.is_running}


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    title: str
    quoted_hours: float
    time_spent: float
    diagnostic: DiagnosticResponse
    techs: List[TechResponse] = Field(default_factory=list)
    sort_index: int

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "quotedHours": self.quoted_hours,
            "timeSpent": self.time_spent,
            "diagnostic": self.diagnostic._serialize(),
            "techs": [tech._serialize() for tech in self.techs],
            "order": self.sort_index,
        }


class JobCreateRequest(BaseModel):
    # Only shape is checked here; value rules live in the services and answer 400.
    model_config = ConfigDict(populate_by_name=True)
    title: str
    quoted_hours: float = Field(alias="quotedHours")


class JobUpdateRequest(BaseModel):
    # Clients may send back a whole job; engine-owned fields are ignored.
    model_config = ConfigDict(populate_by_name=True, extra="ignore")
    title: Optional[str] = None
    quoted_hours: Optional[float] = Field(default=None, alias="quotedHours")


class TechCreateRequest(BaseModel):
    name: str


class JobReference(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str


class JobReorderRequest(BaseModel):
    jobs: List[Union[str, JobReference]]

    @property
    def job_ids(self) -> List[str]:
        return [entry if isinstance(entry, str) else entry.id for entry in self.jobs]


class AccrualStatusResponse(BaseModel):
    running: bool
    ticks: int
    last_tick_at: Optional[str]
    interval_seconds: float
    pending_completions: int


class HealthResponse(BaseModel):
    status: str
    accrual: AccrualStatusResponse
