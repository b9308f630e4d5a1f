# src/photo_archiver/exceptions.py

"""
Shared custom exceptions for the Photo Archiver service.

Centralizing exception definitions in a separate module prevents circular
import errors between other modules that need to raise or catch them.

Exception Hierarchy:
- PhotoArchiverError (base)
  - RetryableError (can be retried)
    - ThrottlingError
    - StorageTimeoutError
    - ArchiveBuildError
    - MemoryLimitError
    - ArchiveUploadError
    - CatalogWriteError
    - PhotoListingError
  - NonRetryableError (should not be retried)
    - ValidationError
      - InvalidRequestError
    - MissingIdentityError
    - AuthorizationError
    - EventNotFoundError
    - ObjectNotFoundError
    - AccessDeniedError
    - ConfigurationError
"""

from typing import Any, Dict, Optional


class PhotoArchiverError(Exception):
    """Base exception for all Photo Archiver service errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = dict(context) if context else {}
        self.correlation_id = correlation_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "correlation_id": self.correlation_id,
            "retryable": isinstance(self, RetryableError),
        }


class RetryableError(PhotoArchiverError):
    """Base class for errors that can be retried."""

    pass


class NonRetryableError(PhotoArchiverError):
    """Base class for errors that should not be retried."""

    pass


# === Storage Errors (S3 and DynamoDB) ===


class StorageError(PhotoArchiverError):
    """Base class for remote storage errors."""

    pass


class ObjectNotFoundError(StorageError, NonRetryableError):
    """Raised when a requested S3 object does not exist."""

    def __init__(self, bucket: str, key: str, **kwargs):
        message = f"S3 object not found: s3://{bucket}/{key}"
        context = {"bucket": bucket, "key": key}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(
            message, error_code="S3_OBJECT_NOT_FOUND", context=context, **kwargs
        )


class AccessDeniedError(StorageError, NonRetryableError):
    """Raised when access is denied to a remote resource."""

    def __init__(self, resource: str, **kwargs):
        message = f"Access denied to remote resource: {resource}"
        context = {"resource": resource}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(
            message, error_code="ACCESS_DENIED", context=context, **kwargs
        )


class ThrottlingError(StorageError, RetryableError):
    """Raised when remote storage operations are being throttled."""

    def __init__(self, operation: str, **kwargs):
        message = f"Storage operation throttled: {operation}"
        context = {"operation": operation}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(message, error_code="THROTTLING", context=context, **kwargs)


class StorageTimeoutError(StorageError, RetryableError):
    """Raised when remote storage operations time out or cannot connect."""

    def __init__(self, operation: str, **kwargs):
        message = f"Storage operation timed out: {operation}"
        context = {}
        if "context" in kwargs:
            context.update(kwargs.pop("context") or {})
        context.update({"operation": operation})
        kwargs.setdefault("error_code", "STORAGE_TIMEOUT")
        super().__init__(message, context=context, **kwargs)


# === Request and Authorization Errors ===


class ValidationError(NonRetryableError):
    """Base class for validation errors."""

    pass


class InvalidRequestError(ValidationError):
    """Raised when the request payload is malformed or incomplete."""

    def __init__(self, message: str, **kwargs):
        if "error_code" not in kwargs:
            kwargs["error_code"] = "INVALID_REQUEST"
        super().__init__(message, **kwargs)


class MissingIdentityError(NonRetryableError):
    """Raised when the caller's identity header is absent."""

    def __init__(self, header: str, **kwargs):
        message = f"Missing caller identity header: {header}"
        super().__init__(
            message,
            error_code="MISSING_IDENTITY",
            context={"header": header},
            **kwargs,
        )


class AuthorizationError(NonRetryableError):
    """Raised when the caller does not own the requested event."""

    def __init__(self, event_id: str, user_id: str, **kwargs):
        message = f"User {user_id} does not own event {event_id}"
        context = {"event_id": event_id, "user_id": user_id}
        super().__init__(message, error_code="FORBIDDEN", context=context, **kwargs)


class EventNotFoundError(NonRetryableError):
    """Raised when the requested event does not exist."""

    def __init__(self, event_id: str, **kwargs):
        message = f"Event not found: {event_id}"
        super().__init__(
            message,
            error_code="EVENT_NOT_FOUND",
            context={"event_id": event_id},
            **kwargs,
        )


# === Processing Errors ===


class ProcessingError(PhotoArchiverError):
    """Base class for errors raised while producing one archive."""

    pass


class ArchiveBuildError(ProcessingError, RetryableError):
    """Raised when the ZIP container itself cannot be assembled or finalized."""

    def __init__(self, reason: str, **kwargs):
        message = f"Archive creation failed: {reason}"
        context = {"reason": reason}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(
            message, error_code="ARCHIVE_BUILD_FAILED", context=context, **kwargs
        )


class MemoryLimitError(ProcessingError, RetryableError):
    """Raised when memory limit is exceeded."""

    def __init__(self, operation: str, **kwargs):
        message = f"Memory limit exceeded during: {operation}"
        context = {"operation": operation}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(
            message, error_code="MEMORY_LIMIT_EXCEEDED", context=context, **kwargs
        )


class ArchiveUploadError(ProcessingError, RetryableError):
    """Raised when a finished archive could not be uploaded."""

    def __init__(self, reason: str, **kwargs):
        message = f"Archive upload failed: {reason}"
        context = {"reason": reason}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(
            message, error_code="ARCHIVE_UPLOAD_FAILED", context=context, **kwargs
        )


class CatalogWriteError(ProcessingError, RetryableError):
    """Raised when the catalog entry for an uploaded archive cannot be written."""

    def __init__(self, reason: str, **kwargs):
        message = f"Catalog write failed: {reason}"
        context = {"reason": reason}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(
            message, error_code="CATALOG_WRITE_FAILED", context=context, **kwargs
        )


class PhotoListingError(RetryableError):
    """Raised when the photo listing for an event cannot be retrieved at all."""

    def __init__(self, event_id: str, **kwargs):
        message = f"Unable to list photos for event {event_id}"
        context = {"event_id": event_id}
        context.update(kwargs.pop("context", None) or {})
        super().__init__(
            message, error_code="PHOTO_LISTING_FAILED", context=context, **kwargs
        )


# === Configuration Errors ===


class ConfigurationError(NonRetryableError):
    """Raised when there's an error in the application configuration."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="CONFIGURATION_ERROR", **kwargs)


# === Utility Functions ===


def is_retryable_error(error: Exception) -> bool:
    """Check if an error is retryable."""
    return isinstance(error, RetryableError)


def get_error_context(error: Exception) -> Dict[str, Any]:
    """Extract error context for logging."""
    if isinstance(error, PhotoArchiverError):
        return error.to_dict()
    else:
        return {
            "error_type": error.__class__.__name__,
            "message": str(error),
            "retryable": False,
        }
