from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from . import models
from .config import settings
from .database import SessionLocal, engine, get_db
from .schemas import (
    HealthResponse,
    JobCreateRequest,
    JobReorderRequest,
    JobResponse,
    JobUpdateRequest,
    TechCreateRequest,
)
from .services import (
    add_tech,
    complete_job,
    create_job,
    delete_job,
    get_job,
    list_jobs,
    reorder_jobs,
    toggle_diagnostic,
    toggle_tech,
    update_job,
)
from .state import RuntimeState
from .store import JobStore


models.Base.metadata.create_all(bind=engine)

runtime_state = RuntimeState(settings, SessionLocal)


@asynccontextmanager
async def lifespan(app: FastAPI):
    state: RuntimeState = app.state.runtime_state
    state.startup()
    yield
    state.shutdown()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.state.runtime_state = runtime_state
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


def get_store(db: Session = Depends(get_db)) -> JobStore:
    return JobStore(db)


@app.get("/healthz", response_model=HealthResponse)
def healthz(request: Request) -> HealthResponse:
    state: RuntimeState = request.app.state.runtime_state
    return HealthResponse(status="ok", accrual=state.snapshot())


@app.get("/api/jobs", response_model=list[JobResponse])
def jobs_list(store: JobStore = Depends(get_store)) -> list[JobResponse]:
    return list_jobs(store)


@app.post("/api/jobs", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
def jobs_create(payload: JobCreateRequest, store: JobStore = Depends(get_store)) -> JobResponse:
    return create_job(store, payload.title, payload.quoted_hours)


@app.post("/api/jobs/reorder", response_model=list[JobResponse])
def jobs_reorder(payload: JobReorderRequest, store: JobStore = Depends(get_store)) -> list[JobResponse]:
    return reorder_jobs(store, payload.job_ids)


@app.get("/api/jobs/{job_id}", response_model=JobResponse)
def jobs_get(job_id: str, store: JobStore = Depends(get_store)) -> JobResponse:
    return get_job(store, job_id)


@app.put("/api/jobs/{job_id}", response_model=JobResponse)
def jobs_update(
    job_id: str,
    payload: JobUpdateRequest,
    store: JobStore = Depends(get_store),
) -> JobResponse:
    changes = payload.model_dump(exclude_unset=True)
    return update_job(store, job_id, changes)


@app.delete("/api/jobs/{job_id}", response_model=list[JobResponse])
def jobs_delete(job_id: str, request: Request, store: JobStore = Depends(get_store)) -> list[JobResponse]:
    state: RuntimeState = request.app.state.runtime_state
    return delete_job(store, job_id, state)


@app.post("/api/jobs/{job_id}/complete", response_model=JobResponse, status_code=status.HTTP_202_ACCEPTED)
def jobs_complete(job_id: str, request: Request, store: JobStore = Depends(get_store)) -> JobResponse:
    state: RuntimeState = request.app.state.runtime_state
    return complete_job(store, state, job_id)


@app.post("/api/jobs/{job_id}/techs", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
def techs_add(
    job_id: str,
    payload: TechCreateRequest,
    store: JobStore = Depends(get_store),
) -> JobResponse:
    return add_tech(store, job_id, payload.name)


@app.put("/api/jobs/{job_id}/techs/{tech_id}/toggle", response_model=JobResponse)
def techs_toggle(job_id: str, tech_id: str, store: JobStore = Depends(get_store)) -> JobResponse:
    return toggle_tech(store, job_id, tech_id)


@app.put("/api/jobs/{job_id}/diagnostic/toggle", response_model=JobResponse)
def diagnostic_toggle(job_id: str, store: JobStore = Depends(get_store)) -> JobResponse:
    return toggle_diagnostic(store, job_id)
