"""
Client side of the asynchronous enhancement pipeline.

``EnhancementJobClient`` drives one session's enhancement jobs against the Job
API: submit, poll on an interval until a terminal state, merge completed
content into a new snapshot and download the finished PDF.

A session has at most one active job. Only the most recently submitted job
may merge; results from superseded or cancelled jobs are discarded. Nothing
is retried automatically: a failed job needs a new submission.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Set, Union

import httpx

from app.core.config import settings
from app.models.pdf_job import PdfJobStatus
from app.reports.snapshot import AuditSnapshot, EnhancementContent
from app.services import metrics
from app.utils.error_handler import (
    IncompleteJobContentError,
    JobAlreadyActiveError,
    JobFailedError,
    JobNotCompletedError,
    JobNotFoundError,
    JobPollError,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)

PDF_MAGIC = b"%PDF"


@dataclass(frozen=True)
class JobStatus:
    """Snapshot of a job as reported by the Job API."""

    job_id: str
    status: str
    progress: int = 0
    content: Optional[EnhancementContent] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (PdfJobStatus.COMPLETED.value, PdfJobStatus.FAILED.value)

    @property
    def is_completed(self) -> bool:
        return self.status == PdfJobStatus.COMPLETED.value

    @property
    def is_failed(self) -> bool:
        return self.status == PdfJobStatus.FAILED.value

    @classmethod
    def from_dict(cls, job_id: str, data: Mapping[str, Any]) -> "JobStatus":
        return cls(
            job_id=str(data.get("id") or job_id),
            status=str(data.get("status") or PdfJobStatus.PENDING.value),
            progress=int(data.get("progress") or 0),
            content=EnhancementContent.from_dict(data.get("content")),
            error_message=data.get("errorMessage") or data.get("error_message"),
        )


class JobTransport(Protocol):
    """Request/response boundary to the Job API."""

    async def create_job(
        self, audit_id: str, session_id: str, parameters: Mapping[str, Any]
    ) -> str: ...

    async def get_job(self, job_id: str) -> Mapping[str, Any]: ...

    async def download_job(self, job_id: str) -> bytes: ...


class HttpJobTransport:
    """``JobTransport`` over HTTP with httpx."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.JOB_API_BASE_URL,
            timeout=timeout or settings.JOB_HTTP_TIMEOUT_SECONDS,
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return response.text

    async def create_job(
        self, audit_id: str, session_id: str, parameters: Mapping[str, Any]
    ) -> str:
        response = await self._client.post(
            "/pdf/jobs",
            json={
                "auditId": audit_id,
                "sessionId": session_id,
                "parameters": dict(parameters),
            },
        )
        if response.status_code == 409:
            raise JobAlreadyActiveError(session_id, self._error_message(response))
        response.raise_for_status()
        return str(response.json()["jobId"])

    async def get_job(self, job_id: str) -> Mapping[str, Any]:
        response = await self._client.get(f"/pdf/jobs/{job_id}")
        if response.status_code == 404:
            raise JobNotFoundError(job_id)
        response.raise_for_status()
        return response.json()

    async def download_job(self, job_id: str) -> bytes:
        response = await self._client.get(f"/pdf/jobs/{job_id}/download")
        if response.status_code == 404:
            raise JobNotFoundError(job_id)
        if response.status_code == 400:
            raise JobNotCompletedError(job_id, self._error_message(response))
        if response.status_code == 409:
            raise IncompleteJobContentError(job_id, ["content"])
        response.raise_for_status()
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()


UpdateCallback = Callable[[JobStatus], Union[None, Awaitable[None]]]


class EnhancementJobClient:
    """
    One session's view of its enhancement jobs.

    Args:
        transport: Job API transport
        session_id: Session identifier sent with every submission
        parameters: Default submission parameters; ``useAiContent`` is the
            AI augmentation flag reverted on failure
    """

    def __init__(
        self,
        transport: JobTransport,
        session_id: str,
        parameters: Optional[Mapping[str, Any]] = None,
    ):
        self.transport = transport
        self.session_id = session_id
        self.parameters: Dict[str, Any] = dict(parameters or {})
        self.last_error: Optional[str] = None

        self._current_job_id: Optional[str] = None
        self._active = False
        self._statuses: Dict[str, JobStatus] = {}
        self._job_parameters: Dict[str, Dict[str, Any]] = {}
        self._cancelled: Set[str] = set()
        self._wakeups: Dict[str, asyncio.Event] = {}

    @property
    def current_job_id(self) -> Optional[str]:
        return self._current_job_id

    @property
    def has_active_job(self) -> bool:
        return self._active

    @property
    def use_ai_content(self) -> bool:
        return bool(self.parameters.get("useAiContent", False))

    def is_stale(self, job_id: str) -> bool:
        """True when ``job_id`` was superseded by a newer submission or cancelled."""
        return job_id != self._current_job_id or job_id in self._cancelled

    async def submit(
        self, audit_id: str, parameters: Optional[Mapping[str, Any]] = None
    ) -> str:
        """
        Submit a new enhancement job for ``audit_id``.

        Raises:
            JobAlreadyActiveError: this session's current job is not terminal;
                no request is sent
        """
        if self._active:
            metrics.ENHANCEMENT_JOBS_TOTAL.labels(event="rejected").inc()
            raise JobAlreadyActiveError(self.session_id, self._current_job_id or "pending")

        submission = dict(self.parameters)
        submission.update(parameters or {})

        # Claim the slot before the first await so rapid double submits fail fast.
        self._active = True
        try:
            job_id = await self.transport.create_job(audit_id, self.session_id, submission)
        except Exception:
            self._active = False
            raise

        previous = self._current_job_id
        if previous is not None:
            self.cancel(previous)

        self._current_job_id = job_id
        self._job_parameters[job_id] = submission
        self.parameters = submission
        self.last_error = None

        logger.info(
            "Enhancement job submitted",
            job_id=job_id,
            audit_id=audit_id,
            session_id=self.session_id,
            superseded=previous,
        )
        return job_id

    async def poll(self, job_id: str) -> JobStatus:
        """
        Fetch the job's status once.

        Raises:
            JobNotFoundError: the Job API does not know ``job_id``
            JobPollError: the request failed; cached state is unchanged and
                the caller may poll again
        """
        try:
            data = await self.transport.get_job(job_id)
            status = JobStatus.from_dict(job_id, data)
        except JobNotFoundError:
            raise
        except Exception as e:
            logger.warning("Job poll failed", job_id=job_id, error=str(e))
            raise JobPollError(job_id, str(e)) from e

        self._statuses[job_id] = status
        if job_id == self._current_job_id and status.is_terminal:
            self._active = False
        return status

    def cancel(self, job_id: Optional[str] = None) -> None:
        """
        Stop polling ``job_id`` (default: current job) and discard its merge.

        Cancelling does not stop the job on the server, so the session stays
        blocked for new submissions until a ``poll()`` sees the job terminal.
        """
        job_id = job_id or self._current_job_id
        if job_id is None:
            return
        self._cancelled.add(job_id)
        wakeup = self._wakeups.get(job_id)
        if wakeup is not None:
            wakeup.set()
        logger.info("Enhancement job polling cancelled", job_id=job_id)

    async def poll_until_complete(
        self,
        job_id: str,
        interval: Optional[float] = None,
        on_update: Optional[UpdateCallback] = None,
    ) -> Optional[JobStatus]:
        """
        Poll every ``interval`` seconds until the job is terminal.

        Transient poll errors are logged and polling continues. A failed job
        is passed to ``handle_failure``.

        Returns:
            The terminal status, or None when the job was cancelled or
            superseded before finishing
        """
        interval = interval if interval is not None else settings.ENHANCEMENT_POLL_INTERVAL_SECONDS
        wakeup = self._wakeups.setdefault(job_id, asyncio.Event())

        try:
            while not self.is_stale(job_id):
                try:
                    status = await self.poll(job_id)
                except JobPollError:
                    status = None

                if self.is_stale(job_id):
                    break

                if status is not None:
                    if on_update is not None:
                        result = on_update(status)
                        if asyncio.iscoroutine(result):
                            await result
                    if status.is_terminal:
                        if status.is_failed:
                            self.handle_failure(status)
                        return status

                try:
                    await asyncio.wait_for(wakeup.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            self._cancelled.add(job_id)
            raise
        finally:
            self._wakeups.pop(job_id, None)

        logger.info("Stopped polling stale job", job_id=job_id)
        return None

    def merge(self, job_id: str, snapshot: AuditSnapshot) -> AuditSnapshot:
        """
        Return a new snapshot carrying ``job_id``'s content.

        The input snapshot is never modified. Returns it unchanged when the
        job is stale or cancelled, not completed, or has no content.
        """
        if self.is_stale(job_id):
            metrics.STALE_MERGES_TOTAL.inc()
            logger.info(
                "Discarding merge from stale job",
                job_id=job_id,
                current_job_id=self._current_job_id,
            )
            return snapshot

        status = self._statuses.get(job_id)
        if status is None or not status.is_completed or status.content is None:
            logger.debug("Nothing to merge", job_id=job_id)
            return snapshot

        return snapshot.with_enhancement(status.content)

    def handle_failure(self, status: JobStatus) -> str:
        """
        Record a failed job: revert AI augmentation and keep the message.

        Returns:
            The user-visible error message
        """
        message = status.error_message or "Report enhancement failed"
        self.parameters["useAiContent"] = False
        if status.job_id == self._current_job_id:
            self._active = False
        self.last_error = message
        logger.warning(
            "Enhancement job failed, AI content disabled",
            job_id=status.job_id,
            error_message=message,
        )
        return message

    async def download(self, job_id: str) -> bytes:
        """
        Download the finished PDF of a completed job.

        Raises:
            JobNotFoundError: unknown job
            JobNotCompletedError: job is not completed
            IncompleteJobContentError: completed job lacks its content, or
                the artifact is not a PDF
        """
        status = self._statuses.get(job_id)
        if status is None or not status.is_terminal:
            status = await self.poll(job_id)

        if status.is_failed:
            raise JobFailedError(job_id, status.error_message)
        if not status.is_completed:
            raise JobNotCompletedError(job_id, status.status)

        requested_ai = bool(self._job_parameters.get(job_id, self.parameters).get("useAiContent"))
        if status.content is None:
            raise IncompleteJobContentError(job_id, ["content"])
        if requested_ai:
            missing = status.content.missing_fields()
            if missing:
                raise IncompleteJobContentError(job_id, missing)

        data = await self.transport.download_job(job_id)
        if not data or not data.startswith(PDF_MAGIC):
            raise IncompleteJobContentError(job_id, ["document"])

        logger.info("Enhancement job downloaded", job_id=job_id, size_bytes=len(data))
        return data
