"""
Enhancement job model.

One row per PDF/enhancement job. A job moves pending -> processing ->
completed or failed; completed and failed are terminal.
"""

from enum import Enum
from typing import Any, Dict

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text
from sqlalchemy import Enum as SQLEnum

from app.db.base_class import Base


class PdfJobStatus(str, Enum):
    """Status of an enhancement job"""

    PENDING = "pending"  # Created, waiting for a worker
    PROCESSING = "processing"  # Worker is generating content
    COMPLETED = "completed"  # Content is ready
    FAILED = "failed"  # Worker gave up; needs a new submission

    @property
    def is_terminal(self) -> bool:
        return self in (PdfJobStatus.COMPLETED, PdfJobStatus.FAILED)


ACTIVE_STATUSES = (PdfJobStatus.PENDING, PdfJobStatus.PROCESSING)


class PdfJob(Base):
    """
    Enhancement job record.

    ``parameters`` holds the submission (template, useAiContent, clientInfo,
    customColors, customLogo, customNotes, sections). ``content`` holds the
    generated narrative once the job completes.
    """

    audit_id = Column(String, nullable=False, index=True)
    session_id = Column(String, nullable=False)

    status = Column(
        SQLEnum(PdfJobStatus),
        nullable=False,
        default=PdfJobStatus.PENDING,
    )
    progress = Column(Integer, nullable=False, default=0)

    parameters = Column(JSON, nullable=False, default=dict)
    content = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)

    expires_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_pdf_job_session_status", "session_id", "status"),)

    @property
    def is_terminal(self) -> bool:
        return PdfJobStatus(self.status).is_terminal

    def to_status_dict(self) -> Dict[str, Any]:
        """Job API representation."""
        data: Dict[str, Any] = {
            "id": self.id,
            "auditId": self.audit_id,
            "status": PdfJobStatus(self.status).value,
            "progress": self.progress or 0,
        }
        if self.content is not None:
            data["content"] = self.content
        if self.error_message:
            data["errorMessage"] = self.error_message
        return data

    def __repr__(self):
        return f"<PdfJob(id='{self.id}', status='{self.status}', progress={self.progress})>"
