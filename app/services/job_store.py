"""
Persistence for enhancement jobs.

The store owns every status write so the job lifecycle stays monotonic:
pending -> processing -> completed | failed. Terminal jobs never change
again and progress never goes backwards.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.pdf_job import ACTIVE_STATUSES, PdfJob, PdfJobStatus
from app.services import metrics
from app.utils.error_handler import InvalidJobTransitionError, JobNotFoundError
from app.utils.logger import get_logger

logger = get_logger(__name__)

_ALLOWED_TRANSITIONS = {
    PdfJobStatus.PENDING: {
        PdfJobStatus.PENDING,
        PdfJobStatus.PROCESSING,
        PdfJobStatus.FAILED,
    },
    PdfJobStatus.PROCESSING: {
        PdfJobStatus.PROCESSING,
        PdfJobStatus.COMPLETED,
        PdfJobStatus.FAILED,
    },
    PdfJobStatus.COMPLETED: set(),
    PdfJobStatus.FAILED: set(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStore:
    """Database-backed job registry."""

    def __init__(self, db: Session, ttl_days: Optional[int] = None):
        self.db = db
        self.ttl_days = ttl_days if ttl_days is not None else settings.ENHANCEMENT_JOB_TTL_DAYS

    def create(
        self, audit_id: str, session_id: str, parameters: Optional[Mapping[str, Any]] = None
    ) -> PdfJob:
        job = PdfJob(
            audit_id=audit_id,
            session_id=session_id,
            status=PdfJobStatus.PENDING,
            progress=0,
            parameters=dict(parameters or {}),
            expires_at=_utcnow() + timedelta(days=self.ttl_days),
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)

        metrics.ENHANCEMENT_JOBS_TOTAL.labels(event="created").inc()
        logger.info(
            "Enhancement job created",
            job_id=job.id,
            audit_id=audit_id,
            session_id=session_id,
        )
        return job

    def get(self, job_id: str) -> Optional[PdfJob]:
        return self.db.query(PdfJob).filter(PdfJob.id == job_id).first()

    def get_or_raise(self, job_id: str) -> PdfJob:
        job = self.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def active_for_session(self, session_id: str) -> Optional[PdfJob]:
        """Newest non-terminal, unexpired job of a session, if any."""
        return (
            self.db.query(PdfJob)
            .filter(
                PdfJob.session_id == session_id,
                PdfJob.status.in_(ACTIVE_STATUSES),
                PdfJob.expires_at > _utcnow(),
            )
            .order_by(PdfJob.created_at.desc())
            .first()
        )

    def update_status(
        self,
        job_id: str,
        status: PdfJobStatus,
        progress: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> PdfJob:
        """
        Move a job to ``status``.

        Raises:
            JobNotFoundError: unknown job id
            InvalidJobTransitionError: the move would leave a terminal state
                or go backwards
        """
        job = self.get_or_raise(job_id)
        current = PdfJobStatus(job.status)
        status = PdfJobStatus(status)

        if status not in _ALLOWED_TRANSITIONS[current]:
            raise InvalidJobTransitionError(job_id, current.value, status.value)

        job.status = status
        if progress is not None:
            job.progress = max(job.progress or 0, min(100, max(0, int(progress))))
        if error_message is not None:
            job.error_message = error_message
        if status.is_terminal:
            job.completed_at = _utcnow()

        self.db.commit()
        self.db.refresh(job)
        logger.debug(
            "Job status updated", job_id=job_id, status=status.value, progress=job.progress
        )
        return job

    def complete(self, job_id: str, content: Dict[str, Any]) -> PdfJob:
        job = self.get_or_raise(job_id)
        if PdfJobStatus(job.status) != PdfJobStatus.PROCESSING:
            raise InvalidJobTransitionError(
                job_id, PdfJobStatus(job.status).value, PdfJobStatus.COMPLETED.value
            )
        job.content = content
        job = self.update_status(job_id, PdfJobStatus.COMPLETED, progress=100)
        metrics.ENHANCEMENT_JOBS_TOTAL.labels(event="completed").inc()
        logger.info("Enhancement job completed", job_id=job_id)
        return job

    def fail(self, job_id: str, message: str) -> PdfJob:
        job = self.update_status(job_id, PdfJobStatus.FAILED, error_message=message)
        metrics.ENHANCEMENT_JOBS_TOTAL.labels(event="failed").inc()
        logger.warning("Enhancement job failed", job_id=job_id, error_message=message)
        return job
