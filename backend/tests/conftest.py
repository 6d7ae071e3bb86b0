from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Generator

_TMP_ROOT = tempfile.mkdtemp(prefix="shopboard-tests-")
os.environ.setdefault("SB_SQLITE_PATH", str(Path(_TMP_ROOT) / "shopboard.db"))
os.environ.setdefault("SB_ACCRUAL_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from shopboard import models
from shopboard.config import settings
from shopboard.database import get_db
from shopboard.main import app
from shopboard.state import RuntimeState
from shopboard.store import JobStore


@pytest.fixture(scope="session")
def temp_db_path() -> Generator[Path, None, None]:
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "test.db"
        yield path


@pytest.fixture(scope="session")
def engine(temp_db_path: Path):
    url = f"sqlite:///{temp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False}, future=True)
    models.Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionTesting = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(scope="function")
def store(session: Session) -> JobStore:
    return JobStore(session)


@pytest.fixture(scope="function")
def runtime_state(session: Session, monkeypatch) -> Generator[RuntimeState, None, None]:
    monkeypatch.setattr(settings, "accrual_enabled", False)
    monkeypatch.setattr(settings, "completion_delay_seconds", 3600.0)
    state = RuntimeState(settings, lambda: session)
    yield state
    state.completions.run_pending()


@pytest.fixture(scope="function")
def client(session: Session, monkeypatch) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield session
        finally:
            session.close()

    state: RuntimeState = app.state.runtime_state
    monkeypatch.setattr(state, "accrual_enabled", False)
    monkeypatch.setattr(state, "completion_delay_seconds", 3600.0)
    monkeypatch.setattr(state, "session_factory", lambda: session)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
