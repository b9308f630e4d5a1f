# tests/unit/test_exceptions.py

import json

import pytest

from photo_archiver.exceptions import (
    AccessDeniedError,
    ArchiveBuildError,
    ArchiveUploadError,
    AuthorizationError,
    CatalogWriteError,
    ConfigurationError,
    EventNotFoundError,
    InvalidRequestError,
    MemoryLimitError,
    MissingIdentityError,
    NonRetryableError,
    ObjectNotFoundError,
    PhotoArchiverError,
    PhotoListingError,
    ProcessingError,
    RetryableError,
    StorageError,
    StorageTimeoutError,
    ThrottlingError,
    ValidationError,
    get_error_context,
    is_retryable_error,
)


class TestPhotoArchiverError:
    """Test the base PhotoArchiverError class."""

    def test_basic_initialization(self):
        error = PhotoArchiverError("Test message")
        assert str(error) == "Test message"
        assert error.message == "Test message"
        assert error.error_code == "PhotoArchiverError"
        assert error.context == {}
        assert error.correlation_id is None

    def test_context_is_copied(self):
        context = {"key": "value"}
        error = PhotoArchiverError("Test message", context=context)
        context["key"] = "changed"
        assert error.context == {"key": "value"}

    def test_to_dict(self):
        error = PhotoArchiverError(
            "Test message",
            error_code="TEST_CODE",
            context={"key": "value"},
            correlation_id="test-123",
        )
        assert error.to_dict() == {
            "error_type": "PhotoArchiverError",
            "error_code": "TEST_CODE",
            "message": "Test message",
            "context": {"key": "value"},
            "correlation_id": "test-123",
            "retryable": False,
        }


class TestStorageErrors:
    def test_object_not_found_error(self):
        error = ObjectNotFoundError("photos", "uploads/p1.jpg", context={"aws_error_code": "NoSuchKey"})
        assert "s3://photos/uploads/p1.jpg" in str(error)
        assert error.error_code == "S3_OBJECT_NOT_FOUND"
        assert error.context == {
            "bucket": "photos",
            "key": "uploads/p1.jpg",
            "aws_error_code": "NoSuchKey",
        }
        assert isinstance(error, StorageError)
        assert isinstance(error, NonRetryableError)

    def test_access_denied_error(self):
        error = AccessDeniedError("s3://photos/k")
        assert error.error_code == "ACCESS_DENIED"
        assert not is_retryable_error(error)

    def test_throttling_error(self):
        error = ThrottlingError("Query")
        assert "throttled" in str(error)
        assert error.context["operation"] == "Query"
        assert is_retryable_error(error)

    def test_timeout_error_code_can_be_overridden(self):
        error = StorageTimeoutError(
            "GetObject", error_code="STORAGE_READ_TIMEOUT", context={"resource": "r"}
        )
        assert error.error_code == "STORAGE_READ_TIMEOUT"
        assert error.context == {"resource": "r", "operation": "GetObject"}
        assert StorageTimeoutError("GetObject").error_code == "STORAGE_TIMEOUT"


class TestRequestErrors:
    def test_invalid_request_error(self):
        error = InvalidRequestError("bad body")
        assert error.error_code == "INVALID_REQUEST"
        assert isinstance(error, ValidationError)
        assert InvalidRequestError("x", error_code="INVALID_JSON").error_code == "INVALID_JSON"

    def test_missing_identity_error(self):
        error = MissingIdentityError("x-user-id")
        assert error.error_code == "MISSING_IDENTITY"
        assert error.context == {"header": "x-user-id"}

    def test_authorization_error(self):
        error = AuthorizationError(event_id="e1", user_id="u1")
        assert error.error_code == "FORBIDDEN"
        assert error.context == {"event_id": "e1", "user_id": "u1"}
        assert isinstance(error, NonRetryableError)

    def test_event_not_found_error(self):
        assert EventNotFoundError("e1").error_code == "EVENT_NOT_FOUND"


class TestProcessingErrors:
    @pytest.mark.parametrize(
        "error, code",
        [
            (ArchiveBuildError("bad central directory"), "ARCHIVE_BUILD_FAILED"),
            (MemoryLimitError("building archive"), "MEMORY_LIMIT_EXCEEDED"),
            (ArchiveUploadError("denied"), "ARCHIVE_UPLOAD_FAILED"),
            (CatalogWriteError("table gone"), "CATALOG_WRITE_FAILED"),
        ],
    )
    def test_group_level_errors(self, error, code):
        assert error.error_code == code
        assert isinstance(error, ProcessingError)
        assert isinstance(error, RetryableError)

    def test_extra_context_is_merged(self):
        error = ArchiveBuildError("oops", context={"chunk_index": 3})
        assert error.context == {"reason": "oops", "chunk_index": 3}

    def test_photo_listing_error(self):
        error = PhotoListingError("e1", context={"cause": {"error_code": "THROTTLING"}})
        assert error.context["event_id"] == "e1"
        assert error.context["cause"] == {"error_code": "THROTTLING"}


class TestUtilities:
    def test_configuration_error(self):
        error = ConfigurationError("missing var")
        assert error.error_code == "CONFIGURATION_ERROR"
        assert not is_retryable_error(error)

    def test_is_retryable_error_for_foreign_exceptions(self):
        assert not is_retryable_error(ValueError("x"))

    def test_get_error_context_for_service_error_is_json_serializable(self):
        context = get_error_context(ArchiveUploadError("denied", context={"key": "k"}))
        assert context["retryable"] is True
        json.dumps(context)

    def test_get_error_context_for_foreign_exception(self):
        assert get_error_context(KeyError("missing")) == {
            "error_type": "KeyError",
            "message": "'missing'",
            "retryable": False,
        }
