from .pdf_job import ACTIVE_STATUSES, PdfJob, PdfJobStatus

__all__ = ["PdfJob", "PdfJobStatus", "ACTIVE_STATUSES"]
