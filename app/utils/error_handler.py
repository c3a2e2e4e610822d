"""
Error handling for the report engine and the enhancement pipeline.

This module provides the exception hierarchy, error categorization and the
FastAPI glue that turns engine errors into user-facing JSON responses.

The categories follow how errors propagate:
- data shape and configuration errors are recovered where they occur and only
  logged (see ``app.reports.snapshot`` and ``app.reports.theme``)
- job and download errors interrupt the user-initiated action and are raised
  as subclasses of ``EnhancementJobError``
"""

import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from app.services import metrics
from app.utils.logger import add_request_context, get_logger

logger = get_logger(__name__)


class ErrorSeverity(str, Enum):
    """Error severity levels for categorization and alerting"""

    LOW = "low"  # Minor issues, logging only
    MEDIUM = "medium"  # Important issues, monitoring alerts
    HIGH = "high"  # Critical issues, immediate attention
    CRITICAL = "critical"  # System-threatening issues, emergency response


class ErrorCategory(str, Enum):
    """Error categories for systematic handling"""

    DATA_SHAPE = "data_shape"  # Missing/malformed snapshot fields
    CONFIGURATION = "configuration"  # Invalid colors, unknown section keys
    JOB = "job"  # Worker failure, timeout, inconsistent content
    DOWNLOAD = "download"  # Non-terminal or unknown job on download
    NETWORK = "network"  # Transport failures talking to the job API
    RENDERING = "rendering"  # PDF output failures
    SYSTEM = "system"  # Everything else


class ErrorContext:
    """Container for error context information"""

    def __init__(
        self,
        error: Exception,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        user_message: Optional[str] = None,
        technical_details: Optional[Dict[str, Any]] = None,
        job_id: Optional[str] = None,
        recovery_suggestions: Optional[list] = None,
    ):
        self.error = error
        self.severity = severity
        self.category = category
        self.user_message = user_message or self._generate_user_message()
        self.technical_details = technical_details or {}
        self.job_id = job_id
        self.recovery_suggestions = recovery_suggestions or []
        self.timestamp = datetime.now(timezone.utc)
        self.error_id = f"err_{uuid.uuid4().hex[:12]}"

    def _generate_user_message(self) -> str:
        """Generate user-friendly error message based on error type"""
        user_message = getattr(self.error, "user_message", None)
        if user_message:
            return user_message

        user_messages = {
            "JobAlreadyActiveError": "A report enhancement is already running. Wait for it to finish before starting another.",
            "JobPollError": "Could not reach the report service. Status will refresh on the next check.",
            "JobFailedError": "AI enhancement failed. The standard report is still available.",
            "JobNotFoundError": "The requested report job does not exist.",
            "JobNotCompletedError": "The report is not ready yet.",
            "IncompleteJobContentError": "The enhanced report is incomplete. Please generate it again.",
            "InvalidJobTransitionError": "The report job is already finished.",
            "AuditNotFoundError": "The audit could not be found.",
            "NarrativeGenerationError": "AI content generation failed. Submit a new job to try again.",
        }

        return user_messages.get(
            type(self.error).__name__,
            "An unexpected error occurred. Please try again or contact support.",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert error context to dictionary for logging/serialization"""
        return {
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
            "error_type": type(self.error).__name__,
            "error_message": str(self.error),
            "severity": self.severity.value,
            "category": self.category.value,
            "user_message": self.user_message,
            "technical_details": self.technical_details,
            "job_id": self.job_id,
            "recovery_suggestions": self.recovery_suggestions,
            "traceback": traceback.format_exc()
            if self.severity in [ErrorSeverity.HIGH, ErrorSeverity.CRITICAL]
            else None,
        }


# === Custom Exception Classes ===


class ReportEngineError(Exception):
    """Base exception for report engine errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        technical_details: Optional[Dict[str, Any]] = None,
        recovery_suggestions: Optional[list] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.severity = severity
        self.category = category
        self.technical_details = technical_details or {}
        self.recovery_suggestions = recovery_suggestions or []
        self.user_message = user_message


class AuditNotFoundError(ReportEngineError):
    """Raised when the audit collaborator has no snapshot for an id"""

    status_code = 404

    def __init__(self, audit_id: str, **kwargs):
        super().__init__(
            f"Audit not found: {audit_id}",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.DATA_SHAPE,
            technical_details={"audit_id": audit_id},
            **kwargs,
        )
        self.audit_id = audit_id


class EnhancementJobError(ReportEngineError):
    """Base class for enhancement job errors"""

    def __init__(self, message: str, job_id: Optional[str] = None, **kwargs):
        kwargs.setdefault("category", ErrorCategory.JOB)
        super().__init__(message, **kwargs)
        self.job_id = job_id


class JobAlreadyActiveError(EnhancementJobError):
    """Raised when a session submits while its previous job is still running"""

    status_code = 409

    def __init__(self, session_id: str, active_job_id: str, **kwargs):
        super().__init__(
            f"Session {session_id} already has an active job: {active_job_id}",
            job_id=active_job_id,
            severity=ErrorSeverity.LOW,
            technical_details={"session_id": session_id},
            recovery_suggestions=["Wait for the running job to finish"],
            **kwargs,
        )
        self.session_id = session_id


class JobPollError(EnhancementJobError):
    """Raised when a status request fails in transit; job state is untouched"""

    status_code = 502

    def __init__(self, job_id: str, reason: str, **kwargs):
        super().__init__(
            f"Polling job {job_id} failed: {reason}",
            job_id=job_id,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.NETWORK,
            recovery_suggestions=["Poll again on the next interval"],
            **kwargs,
        )


class JobFailedError(EnhancementJobError):
    """Raised when the worker reports a failed job"""

    status_code = 500

    def __init__(self, job_id: str, error_message: Optional[str] = None, **kwargs):
        super().__init__(
            f"Enhancement job {job_id} failed: {error_message or 'unknown error'}",
            job_id=job_id,
            severity=ErrorSeverity.MEDIUM,
            recovery_suggestions=["Submit a new enhancement job"],
            **kwargs,
        )
        self.error_message = error_message


class JobNotFoundError(EnhancementJobError):
    """Raised when a job id is unknown"""

    status_code = 404

    def __init__(self, job_id: str, **kwargs):
        super().__init__(
            f"Job not found: {job_id}",
            job_id=job_id,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.DOWNLOAD,
            **kwargs,
        )


class JobNotCompletedError(EnhancementJobError):
    """Raised when downloading a job that has not reached completed"""

    status_code = 400

    def __init__(self, job_id: str, status: str, **kwargs):
        super().__init__(
            f"Job {job_id} is {status}, not completed",
            job_id=job_id,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.DOWNLOAD,
            technical_details={"status": status},
            **kwargs,
        )
        self.status = status


class IncompleteJobContentError(EnhancementJobError):
    """Raised when a completed job lacks the content it should carry"""

    status_code = 409

    def __init__(self, job_id: str, missing_fields: list, **kwargs):
        super().__init__(
            f"Completed job {job_id} is missing content fields: {', '.join(missing_fields)}",
            job_id=job_id,
            severity=ErrorSeverity.MEDIUM,
            technical_details={"missing_fields": missing_fields},
            recovery_suggestions=["Submit a new enhancement job"],
            **kwargs,
        )
        self.missing_fields = missing_fields


class InvalidJobTransitionError(EnhancementJobError):
    """Raised when a job update would move it backwards or out of a terminal state"""

    status_code = 409

    def __init__(self, job_id: str, current: str, requested: str, **kwargs):
        super().__init__(
            f"Job {job_id} cannot move from {current} to {requested}",
            job_id=job_id,
            severity=ErrorSeverity.LOW,
            technical_details={"current": current, "requested": requested},
            **kwargs,
        )


class NarrativeGenerationError(EnhancementJobError):
    """Raised when AI narrative generation fails inside the worker"""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            recovery_suggestions=["Check LLM credentials", "Submit a new job"],
            **kwargs,
        )


# === Error Handler Class ===


class ErrorHandler:
    """Centralized error categorization and logging"""

    def __init__(self):
        self._error_counts: Dict[str, int] = {}

    def handle_error(
        self, error: Exception, context: Optional[Dict[str, Any]] = None
    ) -> ErrorContext:
        """
        Handle an error with appropriate categorization, logging, and metrics.

        Args:
            error: The exception that occurred
            context: Additional context information

        Returns:
            ErrorContext with detailed error information
        """
        context = context or {}
        error_context = self._categorize_error(error, context)
        self._log_error(error_context)
        self._record_error_metrics(error_context)
        return error_context

    def _categorize_error(
        self, error: Exception, context: Dict[str, Any]
    ) -> ErrorContext:
        """Categorize error and determine severity"""
        if isinstance(error, ReportEngineError):
            return ErrorContext(
                error=error,
                severity=error.severity,
                category=error.category,
                user_message=error.user_message,
                technical_details={**error.technical_details, **context},
                job_id=getattr(error, "job_id", None) or context.get("job_id"),
                recovery_suggestions=list(error.recovery_suggestions),
            )

        error_mappings = {
            ConnectionError: (ErrorSeverity.MEDIUM, ErrorCategory.NETWORK),
            TimeoutError: (ErrorSeverity.MEDIUM, ErrorCategory.NETWORK),
            ValueError: (ErrorSeverity.LOW, ErrorCategory.DATA_SHAPE),
            KeyError: (ErrorSeverity.LOW, ErrorCategory.DATA_SHAPE),
        }

        severity, category = error_mappings.get(
            type(error), (ErrorSeverity.MEDIUM, ErrorCategory.SYSTEM)
        )

        return ErrorContext(
            error=error,
            severity=severity,
            category=category,
            job_id=context.get("job_id"),
            technical_details=context,
        )

    def _log_error(self, error_context: ErrorContext):
        """Log error with appropriate level and context"""
        log_data = {
            "error_id": error_context.error_id,
            "error_type": type(error_context.error).__name__,
            "error_message": str(error_context.error),
            "category": error_context.category.value,
            "severity": error_context.severity.value,
            "job_id": error_context.job_id,
        }

        if error_context.severity == ErrorSeverity.CRITICAL:
            logger.critical(error_context.user_message, **log_data, exc_info=True)
        elif error_context.severity == ErrorSeverity.HIGH:
            logger.error(error_context.user_message, **log_data, exc_info=True)
        elif error_context.severity == ErrorSeverity.MEDIUM:
            logger.warning(error_context.user_message, **log_data)
        else:
            logger.info(error_context.user_message, **log_data)

    def _record_error_metrics(self, error_context: ErrorContext):
        """Record error metrics for monitoring"""
        metrics.ERRORS_TOTAL.labels(
            category=error_context.category.value,
            severity=error_context.severity.value,
        ).inc()

        error_key = (
            f"{type(error_context.error).__name__}:{error_context.category.value}"
        )
        self._error_counts[error_key] = self._error_counts.get(error_key, 0) + 1

        if self._error_counts[error_key] > 5:
            logger.warning(
                "High frequency error detected",
                error_key=error_key,
                count=self._error_counts[error_key],
                error_id=error_context.error_id,
            )


# === Global Error Handler Instance ===

error_handler = ErrorHandler()


# === Utility Functions ===


def _status_code_for(error: Exception, error_context: ErrorContext) -> int:
    if isinstance(error, ReportEngineError):
        return error.status_code

    status_code_map = {
        ErrorSeverity.LOW: 400,
        ErrorSeverity.MEDIUM: 500,
        ErrorSeverity.HIGH: 500,
        ErrorSeverity.CRITICAL: 503,
    }
    return status_code_map.get(error_context.severity, 500)


def create_error_response(
    error: Exception, context: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """Create standardized error response for APIs"""

    error_context = error_handler.handle_error(error, context)

    return JSONResponse(
        status_code=_status_code_for(error, error_context),
        content={
            "error": {
                "id": error_context.error_id,
                "type": type(error).__name__,
                "message": error_context.user_message,
                "category": error_context.category.value,
                "severity": error_context.severity.value,
                "recovery_suggestions": error_context.recovery_suggestions,
                "timestamp": error_context.timestamp.isoformat(),
            }
        },
    )


async def report_engine_exception_handler(
    request: Request, exc: ReportEngineError
) -> JSONResponse:
    """FastAPI exception handler for ``ReportEngineError`` and subclasses."""
    return create_error_response(exc, add_request_context(request))
