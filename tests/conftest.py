from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from buildplan.db.base import Base
from buildplan.db.dependencies import get_db_session
import buildplan.models.entities  # noqa: F401
from buildplan.main import create_app

API = "/api/v1"


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_project(client: TestClient, *, code: str = "PRJ-1", **overrides: object) -> dict[str, object]:
    body: dict[str, object] = {"code": code, "name": f"Project {code}"}
    body.update(overrides)
    response = client.post(f"{API}/projects", json=body)
    assert response.status_code == 201
    return response.json()


def add_unit(client: TestClient, project_id: str, code: str) -> dict[str, object]:
    response = client.post(f"{API}/projects/{project_id}/units", json={"code": code, "name": f"Unit {code}"})
    assert response.status_code == 201
    return response.json()
