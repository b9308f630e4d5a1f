"""
Shared fixtures for unit tests.
"""

from __future__ import annotations

import os
import types
import uuid
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

# photo_archiver.app reads its configuration and builds its AWS clients at
# import time, so the environment has to be in place before collection.
_TEST_ENV = {
    "SERVICE_NAME": "photo-archiver-test",
    "ENVIRONMENT": "test",
    "PHOTO_BUCKET_NAME": "test-photo-bucket",
    "ARCHIVE_BUCKET_NAME": "test-archive-bucket",
    "EVENTS_TABLE_NAME": "test-events",
    "PHOTOS_TABLE_NAME": "test-photos",
    "ARCHIVES_TABLE_NAME": "test-archives",
    "AWS_DEFAULT_REGION": "eu-west-1",
    "POWERTOOLS_TRACE_DISABLED": "true",
    "POWERTOOLS_METRICS_NAMESPACE": "PhotoArchiverTest",
}
for _name, _value in _TEST_ENV.items():
    os.environ.setdefault(_name, _value)


@pytest.fixture
def make_photo():
    """Factory for PhotoRecord instances shaped like photos-table items."""
    from photo_archiver.schemas import PhotoRecord

    def _make(photo_id: str, size_mb=1, **overrides) -> PhotoRecord:
        item = {
            "id": photo_id,
            "file_id": f"file-{photo_id}",
            "size_mb": size_mb,
            "file_type": "jpg",
            "event_id": "event-1",
            "created_at": "2024-06-01T12:30:00+00:00",
        }
        item.update(overrides)
        return PhotoRecord.model_validate(item)

    return _make


@pytest.fixture
def photo_item():
    """A raw DynamoDB item for a photo, as returned by the boto3 resource API."""
    return {
        "id": "p1",
        "file_id": "uploads/p1.jpg",
        "size_mb": Decimal("2.5"),
        "file_type": "image/jpeg",
        "event_id": "event-1",
        "created_at": "2024-06-01T12:30:00Z",
        "uploaded_by": "someone",
    }


@pytest.fixture
def app_config():
    """A real AppConfig with small, test-friendly limits."""
    from photo_archiver.config import AppConfig

    return AppConfig(
        service_name="photo-archiver-test",
        environment="test",
        photo_bucket="test-photo-bucket",
        archive_bucket="test-archive-bucket",
        events_table="test-events",
        photos_table="test-photos",
        archives_table="test-archives",
        photos_event_index="event_id-created_at-index",
        size_budget_mb=2048,
        page_size=100,
        log_level="INFO",
        kms_key_id=None,
        archive_name_max_length=64,
        presigned_url_ttl_seconds=3600,
        timeout_guard_threshold_seconds=10,
        delete_orphaned_archives=True,
    )


@pytest.fixture
def lambda_context():
    """A *very* small stand-in for the LambdaContext object."""
    return types.SimpleNamespace(
        function_name="photo-archiver",
        memory_limit_in_mb=1024,
        aws_request_id="req-" + uuid.uuid4().hex,
        invoked_function_arn="arn:aws:lambda:eu-west-1:000000000000:function:photo-archiver",
        get_remaining_time_in_millis=lambda: 300_000,
    )


@pytest.fixture
def mock_s3_client() -> MagicMock:
    """A MagicMock standing in for our S3Client wrapper."""
    return MagicMock()
