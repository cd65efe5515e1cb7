"""Test error models."""

from datetime import datetime, timezone

from gengate.models.decision import RejectionReason
from gengate.models.error import ErrorCode, ErrorResponse


class TestErrorCode:
    """Test error code enum."""

    def test_should_cover_every_rejection_reason(self):
        """Test each rejection reason maps to an error code."""
        for reason in RejectionReason:
            assert ErrorCode(reason.value).value == reason.value

    def test_should_be_string_enum(self):
        """Test error codes are string enums."""
        assert ErrorCode.JOB_NOT_FOUND == "job_not_found"


class TestErrorResponse:
    """Test error response model."""

    def test_should_create_rejection(self):
        """Test rejection carries remediation hints."""
        reset_at = datetime(2024, 1, 1, 12, 1, tzinfo=timezone.utc)
        error = ErrorResponse.rejection(
            ErrorCode.RATE_LIMITED, "Rate limit exceeded", reset_at=reset_at, retry_after=42
        )

        assert error.error_code == ErrorCode.RATE_LIMITED
        assert error.reset_at == reset_at
        assert error.retry_after == 42
        assert error.categories == []

    def test_should_create_job_not_found(self):
        """Test job not found factory."""
        error = ErrorResponse.job_not_found("abc")

        assert error.error_code == ErrorCode.JOB_NOT_FOUND
        assert "abc" in error.detail

    def test_should_create_internal_error(self):
        """Test internal error default detail."""
        assert ErrorResponse.internal_error().detail == "Internal server error"

    def test_should_serialize_timestamp(self):
        """Test JSON dump includes timestamp."""
        data = ErrorResponse.invalid_transition("done").model_dump(mode="json")

        assert data["error_code"] == "invalid_transition"
        assert "timestamp" in data
