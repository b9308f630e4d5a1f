# src/photo_archiver/clients.py

"""
Client wrappers for interacting with AWS services (S3 and DynamoDB).

These classes provide a clean, abstracted interface over raw boto3 clients and
tables, so the pipeline only ever sees our own record types and exception
hierarchy. botocore errors are translated here and nowhere else.
"""

import io
import logging
from typing import TYPE_CHECKING, Any, Iterator, NoReturn

from boto3.dynamodb.conditions import Key
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from .exceptions import (
    AccessDeniedError,
    EventNotFoundError,
    ObjectNotFoundError,
    StorageError,
    StorageTimeoutError,
    ThrottlingError,
)
from .models import AccessGrant, CatalogEntry
from .schemas import EventRecord, PhotoRecord

if TYPE_CHECKING:
    from mypy_boto3_dynamodb.service_resource import Table
    from mypy_boto3_s3.client import S3Client as S3ClientType

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404", "ResourceNotFoundException"}
_ACCESS_DENIED_CODES = {"AccessDenied", "AccessDeniedException", "403"}
_THROTTLING_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "SlowDown",
    "ProvisionedThroughputExceededException",
}
_TIMEOUT_CODES = {"RequestTimeout", "RequestTimeoutException"}


def _raise_translated(
    error: Exception,
    operation: str,
    resource: str,
    bucket: str | None = None,
    key: str | None = None,
) -> NoReturn:
    """
    Map a botocore exception onto our exception hierarchy and raise it.

    Any exception that is not a known botocore error is re-raised untouched.
    """
    if isinstance(error, ClientError):
        error_code = error.response.get("Error", {}).get("Code", "Unknown")
        error_message = error.response.get("Error", {}).get("Message", str(error))
        context = {
            "operation": operation,
            "aws_error_code": error_code,
            "aws_error_message": error_message,
        }

        if error_code in _NOT_FOUND_CODES and bucket is not None and key is not None:
            raise ObjectNotFoundError(bucket=bucket, key=key, context=context) from error
        elif error_code in _ACCESS_DENIED_CODES:
            raise AccessDeniedError(resource, context=context) from error
        elif error_code in _THROTTLING_CODES:
            raise ThrottlingError(operation, context={**context, "resource": resource}) from error
        elif error_code in _TIMEOUT_CODES:
            raise StorageTimeoutError(
                operation, context={**context, "resource": resource}
            ) from error
        else:
            raise StorageError(
                f"{operation} failed for {resource}: {error_message}",
                error_code="STORAGE_CLIENT_ERROR",
                context={**context, "resource": resource},
            ) from error
    elif isinstance(error, (ReadTimeoutError, ConnectTimeoutError)):
        raise StorageTimeoutError(
            operation,
            error_code="STORAGE_READ_TIMEOUT",
            context={"resource": resource, "timeout_error": str(error)},
        ) from error
    elif isinstance(error, EndpointConnectionError):
        raise StorageTimeoutError(
            operation,
            error_code="STORAGE_CONNECTION_ERROR",
            context={"resource": resource, "connection_error": str(error)},
        ) from error
    raise error


_BOTOCORE_ERRORS = (
    ClientError,
    ReadTimeoutError,
    ConnectTimeoutError,
    EndpointConnectionError,
)


class S3Client:
    """
    A wrapper for S3 client operations: photo downloads and archive uploads.
    """

    def __init__(self, s3_client: "S3ClientType", kms_key_id: str | None = None):
        """
        Initializes the S3Client.

        Args:
            s3_client: A typed boto3 S3 client.
            kms_key_id: Optional KMS key ID for server-side encryption of archives.
        """
        self._client = s3_client
        self._kms_key_id = kms_key_id
        if self._kms_key_id:
            logger.debug(
                "S3Client initialized with SSE-KMS enabled.",
                extra={"kms_key_id": self._kms_key_id},
            )

    def download_blob(self, bucket: str, key: str) -> bytes:
        """
        Downloads an S3 object fully into memory.
        Raises specific storage exceptions based on the error type.
        """
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
            body = response["Body"]
            try:
                return body.read()
            finally:
                body.close()
        except _BOTOCORE_ERRORS as e:
            _raise_translated(e, "GetObject", f"s3://{bucket}/{key}", bucket, key)

    def upload_archive(
        self,
        bucket: str,
        key: str,
        data: bytes,
        filename: str,
        content_hash: str,
        grant: AccessGrant,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Uploads a finished ZIP archive via a managed upload and returns its key."""
        object_metadata = {
            "content-sha256": content_hash,
            "owner-id": grant.owner_id,
            "permissions": ",".join(grant.actions),
        }
        object_metadata.update(metadata or {})
        extra_args: dict[str, Any] = {
            "Metadata": object_metadata,
            "ContentType": "application/zip",
            "ContentDisposition": f'attachment; filename="{filename}"',
        }
        if self._kms_key_id:
            extra_args.update(
                {"ServerSideEncryption": "aws:kms", "SSEKMSKeyId": self._kms_key_id}
            )
        logger.info(
            "Uploading archive",
            extra={
                "bucket": bucket,
                "key": key,
                "size_bytes": len(data),
                "kms_enabled": bool(self._kms_key_id),
            },
        )

        try:
            self._client.upload_fileobj(
                Fileobj=io.BytesIO(data), Bucket=bucket, Key=key, ExtraArgs=extra_args
            )
        except _BOTOCORE_ERRORS as e:
            _raise_translated(e, "PutObject", f"s3://{bucket}/{key}", bucket, key)

        logger.debug(
            "Upload (PUT) completed successfully",
            extra={"bucket": bucket, "key": key},
        )
        return key

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self._client.delete_object(Bucket=bucket, Key=key)
        except _BOTOCORE_ERRORS as e:
            _raise_translated(e, "DeleteObject", f"s3://{bucket}/{key}", bucket, key)

    def generate_download_url(
        self, bucket: str, key: str, filename: str, expires_in: int
    ) -> str:
        """Presigned GET URL that downloads the archive under *filename*."""
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={
                    "Bucket": bucket,
                    "Key": key,
                    "ResponseContentDisposition": f'attachment; filename="{filename}"',
                },
                ExpiresIn=expires_in,
            )
        except _BOTOCORE_ERRORS as e:
            _raise_translated(e, "GeneratePresignedUrl", f"s3://{bucket}/{key}")


class EventStore:
    """Read access to the events table, used for ownership checks."""

    def __init__(self, table: "Table"):
        self._table = table

    def get_event(self, event_id: str) -> EventRecord:
        try:
            response = self._table.get_item(Key={"id": event_id})
        except _BOTOCORE_ERRORS as e:
            _raise_translated(e, "GetItem", f"{self._table.name}/{event_id}")

        item = response.get("Item")
        if not item:
            raise EventNotFoundError(event_id)
        return EventRecord.model_validate(item)


class PhotoStore:
    """
    Paginated read access to the photos table.

    Photos are listed through a GSI keyed on ``event_id`` and sorted by
    ``created_at`` so that the listing order is stable between invocations.
    """

    def __init__(self, table: "Table", index_name: str):
        self._table = table
        self._index_name = index_name

    def list_photos(self, event_id: str, page_size: int) -> Iterator[PhotoRecord]:
        """
        Yields every photo of *event_id*, one page of *page_size* items at a
        time. A short page or a missing ``LastEvaluatedKey`` ends the listing.
        """
        query_kwargs: dict[str, Any] = {
            "IndexName": self._index_name,
            "KeyConditionExpression": Key("event_id").eq(event_id),
            "Limit": page_size,
        }
        page_number = 0
        while True:
            page_number += 1
            try:
                response = self._table.query(**query_kwargs)
            except _BOTOCORE_ERRORS as e:
                _raise_translated(e, "Query", f"{self._table.name}/{self._index_name}")

            items = response.get("Items", [])
            logger.debug(
                f"Fetched photo page {page_number}.",
                extra={"event_id": event_id, "items": len(items)},
            )
            for item in items:
                yield PhotoRecord.model_validate(item)

            last_key = response.get("LastEvaluatedKey")
            if len(items) < page_size or not last_key:
                return
            query_kwargs["ExclusiveStartKey"] = last_key


class ArchiveCatalog:
    """Write access to the archives table."""

    def __init__(self, table: "Table"):
        self._table = table

    def create_entry(self, entry: CatalogEntry) -> str:
        try:
            self._table.put_item(
                Item=entry.to_item(),
                ConditionExpression="attribute_not_exists(id)",
            )
        except _BOTOCORE_ERRORS as e:
            _raise_translated(e, "PutItem", f"{self._table.name}/{entry.id}")

        logger.debug(
            "Catalog entry created",
            extra={"entry_id": entry.id, "file_id": entry.archive.file_id},
        )
        return entry.id
