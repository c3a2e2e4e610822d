"""
Tests for the error handling system.

This module tests:
- Custom exception classes and their HTTP status codes
- Error categorization and severity
- User-facing messages and the JSON error envelope
"""

import json
from datetime import datetime
from unittest.mock import Mock

import pytest

from app.utils.error_handler import (
    AuditNotFoundError,
    ErrorCategory,
    ErrorContext,
    ErrorHandler,
    ErrorSeverity,
    IncompleteJobContentError,
    JobAlreadyActiveError,
    JobNotCompletedError,
    JobNotFoundError,
    JobPollError,
    NarrativeGenerationError,
    create_error_response,
    report_engine_exception_handler,
)


class TestErrorContext:
    """Test cases for ErrorContext class"""

    def test_error_context_creation(self):
        error = ValueError("Test error")
        context = ErrorContext(
            error=error,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.RENDERING,
            job_id="job_123",
        )

        assert context.error == error
        assert context.severity == ErrorSeverity.HIGH
        assert context.category == ErrorCategory.RENDERING
        assert context.job_id == "job_123"
        assert context.error_id.startswith("err_")
        assert isinstance(context.timestamp, datetime)

    def test_user_message_by_error_type(self):
        context = ErrorContext(error=JobNotFoundError("job-1"))
        assert context.user_message == "The requested report job does not exist."

        generic = ErrorContext(error=RuntimeError("boom"))
        assert generic.user_message.startswith("An unexpected error occurred")

    def test_explicit_user_message_wins(self):
        error = NarrativeGenerationError("quota", user_message="Try again tomorrow")
        assert ErrorContext(error=error).user_message == "Try again tomorrow"

    def test_to_dict(self):
        data = ErrorContext(error=KeyError("x"), job_id="job-1").to_dict()

        assert data["error_type"] == "KeyError"
        assert data["job_id"] == "job-1"
        assert data["traceback"] is None


class TestExceptions:
    """Test cases for the exception hierarchy"""

    @pytest.mark.parametrize(
        "error,status_code,category",
        [
            (AuditNotFoundError("a1"), 404, ErrorCategory.DATA_SHAPE),
            (JobAlreadyActiveError("s1", "job-1"), 409, ErrorCategory.JOB),
            (JobPollError("job-1", "timeout"), 502, ErrorCategory.NETWORK),
            (JobNotFoundError("job-1"), 404, ErrorCategory.DOWNLOAD),
            (JobNotCompletedError("job-1", "processing"), 400, ErrorCategory.DOWNLOAD),
            (IncompleteJobContentError("job-1", ["content"]), 409, ErrorCategory.JOB),
        ],
    )
    def test_status_codes_and_categories(self, error, status_code, category):
        assert error.status_code == status_code
        assert error.category == category

    def test_job_errors_carry_job_id(self):
        error = IncompleteJobContentError("job-7", ["executiveSummary"])
        assert error.job_id == "job-7"
        assert error.missing_fields == ["executiveSummary"]
        assert "executiveSummary" in str(error)


class TestErrorHandler:
    """Test cases for ErrorHandler"""

    def test_engine_errors_keep_their_classification(self):
        handler = ErrorHandler()

        context = handler.handle_error(JobPollError("job-1", "reset"), {"attempt": 2})

        assert context.category == ErrorCategory.NETWORK
        assert context.severity == ErrorSeverity.LOW
        assert context.job_id == "job-1"
        assert context.technical_details["attempt"] == 2

    @pytest.mark.parametrize(
        "error,category",
        [
            (ConnectionError("down"), ErrorCategory.NETWORK),
            (ValueError("bad"), ErrorCategory.DATA_SHAPE),
            (RuntimeError("?"), ErrorCategory.SYSTEM),
        ],
    )
    def test_builtin_errors_are_categorized(self, error, category):
        assert ErrorHandler().handle_error(error).category == category

    def test_repeated_errors_are_counted(self):
        handler = ErrorHandler()
        for _ in range(3):
            handler.handle_error(JobNotFoundError("job-1"))

        assert handler._error_counts["JobNotFoundError:download"] == 3


class TestErrorResponses:
    """Test cases for the JSON error envelope"""

    def test_create_error_response(self):
        response = create_error_response(JobNotCompletedError("job-1", "pending"))

        assert response.status_code == 400
        body = json.loads(response.body)
        assert body["error"]["type"] == "JobNotCompletedError"
        assert body["error"]["message"] == "The report is not ready yet."
        assert body["error"]["category"] == "download"

    def test_non_engine_error_status_from_severity(self):
        assert create_error_response(ValueError("bad")).status_code == 400
        assert create_error_response(RuntimeError("bad")).status_code == 500

    @pytest.mark.asyncio
    async def test_fastapi_exception_handler(self):
        request = Mock()
        request.url = "http://testserver/api/v1/pdf/jobs/x"
        request.method = "GET"

        response = await report_engine_exception_handler(request, JobNotFoundError("x"))

        assert response.status_code == 404
        assert json.loads(response.body)["error"]["recovery_suggestions"] == []
