from typing import Generator
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.api.v1 import pdf_jobs
from app.db.base import Base
from app.main import app
from app.models.pdf_job import PdfJobStatus
from app.services.audit_source import audit_source
from app.services.job_store import JobStore
from app.tasks import enhancement_tasks

AI_CONTENT = {
    "executiveSummary": "Narrative",
    "recommendations": ["Do the thing"],
    "technicalExplanations": {},
}


@pytest.fixture
def client(db_session, raw_audit) -> Generator[TestClient, None, None]:
    app.dependency_overrides[pdf_jobs.get_db] = lambda: db_session
    audit_source.register("audit-1", raw_audit, tenant_settings={"companyName": "Agency"})
    with patch.object(pdf_jobs.run_enhancement_job, "delay") as delay:
        with TestClient(app) as c:
            c.delay = delay
            yield c
    app.dependency_overrides.clear()
    audit_source.clear()


@pytest.fixture
def eager_client(
    celery_app_fixture, tmp_path, raw_audit, monkeypatch
) -> Generator[TestClient, None, None]:
    """API and inline Celery worker sharing one file-backed database."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'jobs.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    monkeypatch.setattr(enhancement_tasks, "SessionLocal", session_factory)
    app.dependency_overrides[pdf_jobs.get_db] = get_db
    audit_source.register("audit-1", raw_audit)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    audit_source.clear()
    engine.dispose()

@pytest.fixture
def store(db_session):
    return JobStore(db_session)


def _completed_job(store, parameters, content):
    job = store.create("audit-1", "session-1", parameters)
    store.update_status(job.id, PdfJobStatus.PROCESSING)
    return store.complete(job.id, content)


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_create_job_enqueues_worker(client):
    res = client.post(
        "/api/v1/pdf/jobs",
        json={"auditId": "audit-1", "sessionId": "s1", "parameters": {"useAiContent": True}},
    )

    assert res.status_code == 200
    job_id = res.json()["jobId"]
    client.delay.assert_called_once_with(job_id)

    status = client.get(f"/api/v1/pdf/jobs/{job_id}").json()
    assert status == {"id": job_id, "auditId": "audit-1", "status": "pending", "progress": 0}


def test_second_job_for_active_session_is_rejected(client):
    body = {"auditId": "audit-1", "sessionId": "s1", "parameters": {}}
    assert client.post("/api/v1/pdf/jobs", json=body).status_code == 200

    res = client.post("/api/v1/pdf/jobs", json=body)

    assert res.status_code == 409
    assert res.json()["error"]["type"] == "JobAlreadyActiveError"
    assert client.delay.call_count == 1


def test_create_job_for_unknown_audit(client):
    res = client.post(
        "/api/v1/pdf/jobs", json={"auditId": "nope", "sessionId": "s1", "parameters": {}}
    )
    assert res.status_code == 404


def test_create_job_when_worker_is_down(client, store):
    client.delay.side_effect = ConnectionError("broker down")

    res = client.post(
        "/api/v1/pdf/jobs", json={"auditId": "audit-1", "sessionId": "s1", "parameters": {}}
    )

    assert res.status_code == 500
    assert store.active_for_session("s1") is None


def test_unknown_job(client):
    assert client.get("/api/v1/pdf/jobs/missing").status_code == 404
    assert client.get("/api/v1/pdf/jobs/missing/download").status_code == 404


def test_download_before_completion_is_rejected(client, store):
    job = store.create("audit-1", "s1", {})

    res = client.get(f"/api/v1/pdf/jobs/{job.id}/download")

    assert res.status_code == 400
    assert res.json()["error"]["category"] == "download"


def test_download_completed_job_without_ai_fields(client, store):
    job = _completed_job(store, {"useAiContent": True}, {"executiveSummary": ""})

    res = client.get(f"/api/v1/pdf/jobs/{job.id}/download")

    assert res.status_code == 409
    assert res.json()["error"]["type"] == "IncompleteJobContentError"


def test_download_completed_job(client, store):
    job = _completed_job(
        store, {"useAiContent": True, "template": 2, "clientInfo": {"name": "Jane"}}, AI_CONTENT
    )

    res = client.get(f"/api/v1/pdf/jobs/{job.id}/download")

    assert res.status_code == 200
    assert res.headers["content-type"] == "application/pdf"
    disposition = res.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="example-shop-')
    assert disposition.endswith('.pdf"')
    assert res.content.startswith(b"%PDF")


def test_completed_status_repeats_content(client, store):
    job = _completed_job(store, {"useAiContent": True}, AI_CONTENT)

    first = client.get(f"/api/v1/pdf/jobs/{job.id}").json()
    second = client.get(f"/api/v1/pdf/jobs/{job.id}").json()

    assert first == second
    assert first["status"] == "completed"
    assert first["progress"] == 100
    assert first["content"] == AI_CONTENT


def test_eager_worker_runs_job_to_completion(eager_client):
    res = eager_client.post(
        "/api/v1/pdf/jobs",
        json={"auditId": "audit-1", "sessionId": "s1", "parameters": {"useAiContent": False}},
    )

    assert res.status_code == 200
    job_id = res.json()["jobId"]

    status = eager_client.get(f"/api/v1/pdf/jobs/{job_id}").json()
    assert status["status"] == "completed"
    assert status["progress"] == 100
    assert "errorMessage" not in status

    download = eager_client.get(f"/api/v1/pdf/jobs/{job_id}/download")
    assert download.status_code == 200
    assert download.content.startswith(b"%PDF")
