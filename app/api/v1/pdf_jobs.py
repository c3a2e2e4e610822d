"""
Job API for PDF enhancement jobs.

Create a job for an audit, poll its status, and download the finished PDF
once the job has completed.
"""

from typing import Any, Dict, Generator, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.pdf_job import PdfJobStatus
from app.reports.document import RenderOptions
from app.reports.snapshot import EnhancementContent
from app.services import metrics, report_service
from app.services.audit_source import AuditSource, get_audit_source
from app.services.job_store import JobStore
from app.tasks.enhancement_tasks import run_enhancement_job
from app.utils.error_handler import (
    EnhancementJobError,
    ErrorSeverity,
    IncompleteJobContentError,
    JobAlreadyActiveError,
    JobNotCompletedError,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/pdf/jobs", tags=["pdf-jobs"])


class CreateJobRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    audit_id: str = Field(alias="auditId", min_length=1)
    session_id: str = Field(alias="sessionId", min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)


class CreateJobResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")


class JobStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    audit_id: str = Field(alias="auditId")
    status: str
    progress: int
    content: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = Field(default=None, alias="errorMessage")


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_job_store(db: Session = Depends(get_db)) -> JobStore:
    return JobStore(db)


@router.post("", response_model=CreateJobResponse, response_model_by_alias=True)
def create_job(
    request: CreateJobRequest,
    store: JobStore = Depends(get_job_store),
    source: AuditSource = Depends(get_audit_source),
) -> CreateJobResponse:
    """
    Create an enhancement job; at most one active job per session.

    Declared sync so FastAPI runs it in the threadpool: with eager Celery the
    worker executes inside ``delay()`` and needs a thread without a running
    event loop.
    """
    source.get_snapshot(request.audit_id)

    active = store.active_for_session(request.session_id)
    if active is not None:
        metrics.ENHANCEMENT_JOBS_TOTAL.labels(event="rejected").inc()
        raise JobAlreadyActiveError(request.session_id, active.id)

    job = store.create(request.audit_id, request.session_id, request.parameters)

    try:
        run_enhancement_job.delay(job.id)
    except Exception as e:
        store.fail(job.id, "The report worker is unavailable")
        raise EnhancementJobError(
            f"Failed to enqueue job {job.id}: {e}",
            job_id=job.id,
            severity=ErrorSeverity.HIGH,
            user_message="The report worker is unavailable. Please try again later.",
        ) from e

    return CreateJobResponse(job_id=job.id)


@router.get(
    "/{job_id}",
    response_model=JobStatusResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def get_job(job_id: str, store: JobStore = Depends(get_job_store)) -> JobStatusResponse:
    """Current status, progress and (once completed) content of a job."""
    job = store.get_or_raise(job_id)
    return JobStatusResponse(**job.to_status_dict())


@router.get("/{job_id}/download")
def download_job(
    job_id: str,
    store: JobStore = Depends(get_job_store),
    source: AuditSource = Depends(get_audit_source),
) -> Response:
    """
    Render and stream the PDF of a completed job.

    400 when the job is not completed, 404 when unknown, 409 when the job
    completed without the content it was asked to produce.
    """
    job = store.get_or_raise(job_id)
    status = PdfJobStatus(job.status)
    if status != PdfJobStatus.COMPLETED:
        raise JobNotCompletedError(job_id, status.value)

    parameters = dict(job.parameters or {})
    content = EnhancementContent.from_dict(job.content)
    if content is None:
        raise IncompleteJobContentError(job_id, ["content"])
    if parameters.get("useAiContent"):
        missing = content.missing_fields()
        if missing:
            raise IncompleteJobContentError(job_id, missing)

    snapshot = source.get_snapshot(job.audit_id)
    if parameters.get("useAiContent"):
        snapshot = snapshot.with_enhancement(content)

    theme = report_service.resolve_job_theme(
        parameters, source.get_tenant_settings(job.audit_id)
    )
    _, _, pdf_bytes = report_service.build_report(
        snapshot, theme, RenderOptions.from_parameters(parameters)
    )

    filename = report_service.report_filename(snapshot.project_name)
    logger.info("Serving job download", job_id=job_id, filename=filename)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
