"""
Celery tasks for enhancement jobs.

``run_enhancement_job`` walks one job through its lifecycle: processing,
audit load, optional AI narrative, then completed or failed. Jobs are not
retried automatically; a failed job needs a new submission.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog

from app.core.celery_app import celery_app
from app.core.config import settings
from app.db.session import SessionLocal
from app.models.pdf_job import PdfJobStatus
from app.reports.snapshot import EnhancementContent
from app.services.audit_source import AuditSource, get_audit_source
from app.services.job_store import JobStore
from app.services.narrative_generator import NarrativeGenerator, fallback_content
from app.utils.error_handler import ReportEngineError, error_handler
from app.utils.logger import add_job_context, get_logger

logger = get_logger(__name__)

# Progress checkpoints reported to pollers
PROGRESS_STARTED = 10
PROGRESS_LOADING = 20
PROGRESS_LOADED = 30
PROGRESS_GENERATING = 50
PROGRESS_GENERATED = 70
PROGRESS_FINALIZING = 90


@celery_app.task(bind=True, acks_late=True, soft_time_limit=600, time_limit=660)
def run_enhancement_job(self, job_id: str) -> Dict[str, Any]:
    """
    Execute an enhancement job.

    Args:
        job_id: ID of the PdfJob row to process

    Returns:
        Dict with the job id and its final status
    """
    db = SessionLocal()
    try:
        return asyncio.run(process_job(JobStore(db), job_id))
    finally:
        db.close()


async def process_job(
    store: JobStore,
    job_id: str,
    source: Optional[AuditSource] = None,
    generator: Optional[NarrativeGenerator] = None,
) -> Dict[str, Any]:
    """
    Async implementation of the enhancement task.

    Every failure ends with the job marked failed and a user-facing message;
    nothing is re-raised to Celery.
    """
    source = source or get_audit_source()
    job = store.get_or_raise(job_id)

    with structlog.contextvars.bound_contextvars(**add_job_context(job_id, job.audit_id)):
        try:
            store.update_status(job_id, PdfJobStatus.PROCESSING, progress=PROGRESS_STARTED)
            logger.info("Enhancement job started")

            store.update_status(job_id, PdfJobStatus.PROCESSING, progress=PROGRESS_LOADING)
            snapshot = source.get_snapshot(job.audit_id)
            store.update_status(job_id, PdfJobStatus.PROCESSING, progress=PROGRESS_LOADED)

            parameters = dict(job.parameters or {})
            content = EnhancementContent(
                generated_at=datetime.now(timezone.utc).isoformat()
            )

            if parameters.get("useAiContent"):
                store.update_status(
                    job_id, PdfJobStatus.PROCESSING, progress=PROGRESS_GENERATING
                )
                content = await _generate(store, job_id, snapshot, parameters, generator)
                store.update_status(
                    job_id, PdfJobStatus.PROCESSING, progress=PROGRESS_GENERATED
                )

            store.update_status(job_id, PdfJobStatus.PROCESSING, progress=PROGRESS_FINALIZING)
            store.complete(job_id, content.to_dict())
            logger.info("Enhancement job finished", is_fallback=content.is_fallback)
            return {"job_id": job_id, "status": PdfJobStatus.COMPLETED.value}

        except Exception as e:
            error_context = error_handler.handle_error(e, {"job_id": job_id})
            message = (
                error_context.user_message
                if isinstance(e, ReportEngineError)
                else f"Report enhancement failed: {e}"
            )
            store.db.rollback()
            current = store.get(job_id)
            if current is not None and not current.is_terminal:
                store.fail(job_id, message)
            return {"job_id": job_id, "status": PdfJobStatus.FAILED.value, "error": message}


async def _generate(store, job_id, snapshot, parameters, generator) -> EnhancementContent:
    generator = generator or NarrativeGenerator()
    try:
        sections = parameters.get("sections")
        return await generator.generate(
            snapshot, sections if isinstance(sections, list) else None
        )
    except Exception as e:
        if not settings.ENHANCEMENT_FALLBACK_ON_ERROR:
            raise
        logger.warning("AI generation failed, using fallback content", error=str(e))
        store.update_status(
            job_id,
            PdfJobStatus.PROCESSING,
            progress=PROGRESS_GENERATED,
            error_message=f"AI content generation failed: {e}",
        )
        return fallback_content(snapshot)
