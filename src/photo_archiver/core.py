# src/photo_archiver/core.py

"""
Core business logic for building and publishing photo archives.

This module contains the two per-group steps of the Photo Archiver pipeline:

- `build_zip_archive` pulls every photo of a group from storage, one at a
  time, and appends it as a stored (uncompressed) entry of an in-memory ZIP.
  Photos are already compressed, so no deflate pass is attempted. A photo
  that cannot be fetched or appended is recorded and skipped; only problems
  with the container itself abort the group.
- `upload_and_record` uploads a finished archive to the archive bucket and
  writes its catalog entry. Both steps must succeed for the group to count.

Group size is bounded by the partitioner, which is what bounds the memory
held by the archive buffer here.
"""

import hashlib
import io
import logging
import uuid
import zipfile
from datetime import datetime, timezone
from typing import Callable

from .clients import ArchiveCatalog, S3Client
from .config import AppConfig
from .exceptions import (
    ArchiveBuildError,
    ArchiveUploadError,
    CatalogWriteError,
    MemoryLimitError,
    PhotoArchiverError,
    get_error_context,
)
from .models import AccessGrant, ArchiveResult, CatalogEntry, FailureRecord, PhotoGroup
from .schemas import PhotoRecord
from .security import normalize_extension, sanitize_archive_name, sanitize_path_component

logger = logging.getLogger(__name__)

FetchFn = Callable[[str], bytes]
NameFn = Callable[[PhotoRecord], str]

# Earliest and latest timestamps representable in a ZIP entry header.
_ZIP_MIN_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_ZIP_MAX_YEAR = 2107


# --- Helpers ---
def entry_name_for(photo: PhotoRecord) -> str:
    """
    ZIP entry name for a photo: ``photo_<id>.<ext>``.

    The id keeps names unique within an event. A photo whose id has nothing
    usable left after sanitization gets a random name instead.
    """
    stem = sanitize_path_component(photo.id) or uuid.uuid4().hex[:12]
    return f"photo_{stem}.{normalize_extension(photo.file_type)}"


def _zip_date_time(photo: PhotoRecord) -> tuple[int, int, int, int, int, int]:
    ts = photo.created_at
    if ts is None:
        return _ZIP_MIN_DATE_TIME
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    if not 1980 <= ts.year <= _ZIP_MAX_YEAR:
        return _ZIP_MIN_DATE_TIME
    return (ts.year, ts.month, ts.day, ts.hour, ts.minute, ts.second)


def _unique_entry_name(name: str, used: set[str]) -> str:
    if name not in used:
        return name
    stem, dot, extension = name.rpartition(".")
    if not dot:
        stem, extension = name, ""
    counter = 2
    while True:
        candidate = f"{stem}_{counter}{dot}{extension}"
        if candidate not in used:
            return candidate
        counter += 1


def archive_filename(
    display_name: str | None, ordinal: int, total_groups: int, max_length: int = 64
) -> str:
    """
    Filename for the archive of group *ordinal* out of *total_groups*.

    A single archive is named after the event alone; multi-part results carry
    a ``_part_<n>`` suffix so that no two archives of one run collide.
    """
    base = sanitize_archive_name(display_name, max_length=max_length)
    if total_groups > 1:
        return f"{base}_part_{ordinal}.zip"
    return f"{base}.zip"


# --- Streaming Archive Builder ---
def build_zip_archive(
    group: PhotoGroup,
    fetch: FetchFn,
    name_of: NameFn = entry_name_for,
) -> tuple[bytes, int, list[FailureRecord]]:
    """
    Stream every photo of *group* into a ZIP container held in memory.

    Returns the finished archive bytes, the number of photos appended and a
    FailureRecord for every photo that was skipped. Raises ArchiveBuildError
    or MemoryLimitError when the container itself cannot be produced.
    """
    buffer = io.BytesIO()
    failures: list[FailureRecord] = []
    used_names: set[str] = set()
    success_count = 0

    try:
        with zipfile.ZipFile(
            buffer, mode="w", compression=zipfile.ZIP_STORED, allowZip64=True
        ) as archive:
            logger.debug(
                f"Starting archive for chunk {group.ordinal} with {group.count} photos."
            )

            for index, photo in enumerate(group.photos, start=1):
                try:
                    data = fetch(photo.file_id)

                    entry_name = _unique_entry_name(name_of(photo), used_names)
                    info = zipfile.ZipInfo(entry_name, date_time=_zip_date_time(photo))
                    info.compress_type = zipfile.ZIP_STORED
                    info.external_attr = 0o644 << 16
                    archive.writestr(info, data)

                    used_names.add(entry_name)
                    success_count += 1
                    logger.debug(
                        f"[{index}/{group.count}] Added {entry_name}",
                        extra={"photo_id": photo.id, "size_bytes": len(data)},
                    )

                except PhotoArchiverError as e:
                    logger.warning(
                        f"Failed to fetch photo. Skipping: {e}",
                        extra={"photo_id": photo.id, "file_id": photo.file_id},
                    )
                    failures.append(FailureRecord(photo_id=photo.id, error=e.message))
                except MemoryError as e:
                    raise MemoryLimitError(
                        "building archive",
                        context={"photo_id": photo.id, "chunk_index": group.ordinal},
                    ) from e
                except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
                    raise ArchiveBuildError(
                        "Failed to add photo to archive",
                        context={"photo_id": photo.id, "chunk_index": group.ordinal},
                    ) from e
                except Exception as e:
                    logger.exception(
                        "Unexpected error adding photo. Skipping.",
                        extra={"photo_id": photo.id, "file_id": photo.file_id},
                    )
                    failures.append(
                        FailureRecord(photo_id=photo.id, error=f"{type(e).__name__}: {e}")
                    )

    except (ArchiveBuildError, MemoryLimitError):
        raise
    except MemoryError as e:
        raise MemoryLimitError(
            "finalizing archive", context={"chunk_index": group.ordinal}
        ) from e
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError) as e:
        raise ArchiveBuildError(
            f"Failed to finalize archive: {e}",
            context={"chunk_index": group.ordinal},
        ) from e

    archive_bytes = buffer.getvalue()
    buffer.close()
    logger.info(
        f"Finished archive for chunk {group.ordinal}. Added {success_count} photos.",
        extra={
            "chunk_index": group.ordinal,
            "size_bytes": len(archive_bytes),
            "failed_count": len(failures),
        },
    )
    return archive_bytes, success_count, failures


# --- Upload & Catalog Recorder ---
def _delete_orphaned_archive(s3_client: S3Client, bucket: str, key: str) -> None:
    try:
        s3_client.delete_object(bucket, key)
        logger.info(
            "Deleted archive left without a catalog entry",
            extra={"bucket": bucket, "key": key},
        )
    except PhotoArchiverError as e:
        logger.error(
            f"Could not delete orphaned archive: {e}",
            extra={"bucket": bucket, "key": key, "error": get_error_context(e)},
        )


def upload_and_record(
    archive_bytes: bytes,
    filename: str,
    group: PhotoGroup,
    total_groups: int,
    owner_id: str,
    event_id: str,
    photo_count: int,
    s3_client: S3Client,
    catalog: ArchiveCatalog,
    config: AppConfig,
) -> CatalogEntry:
    """
    Uploads a finished archive and creates its catalog entry.

    Both steps are required: an upload failure raises ArchiveUploadError and a
    catalog failure raises CatalogWriteError, after a best-effort delete of the
    uploaded object when ``delete_orphaned_archives`` is enabled.
    """
    sha256_hash = hashlib.sha256(archive_bytes).hexdigest()
    grant = AccessGrant(owner_id=owner_id)
    scope = sanitize_path_component(event_id) or "event"
    object_key = f"{scope}/{uuid.uuid4().hex}-part-{group.ordinal}.zip"

    try:
        file_id = s3_client.upload_archive(
            bucket=config.archive_bucket,
            key=object_key,
            data=archive_bytes,
            filename=filename,
            content_hash=sha256_hash,
            grant=grant,
            metadata={"event-id": event_id, "chunk-index": str(group.ordinal)},
        )
    except Exception as e:
        raise ArchiveUploadError(
            f"Failed to upload archive to S3: {e}",
            context={
                "key": object_key,
                "chunk_index": group.ordinal,
                "cause": get_error_context(e),
            },
        ) from e

    entry = CatalogEntry(
        id=str(uuid.uuid4()),
        event_id=event_id,
        owner_id=owner_id,
        archive=ArchiveResult(
            file_id=file_id,
            filename=filename,
            size_bytes=len(archive_bytes),
            photo_count=photo_count,
            ordinal=group.ordinal,
            total_groups=total_groups,
            sha256=sha256_hash,
        ),
        permissions=grant.permissions(),
        created_at=datetime.now(timezone.utc),
    )

    try:
        catalog.create_entry(entry)
    except Exception as e:
        if config.delete_orphaned_archives:
            _delete_orphaned_archive(s3_client, config.archive_bucket, file_id)
        raise CatalogWriteError(
            f"Failed to record archive {file_id}: {e}",
            context={
                "file_id": file_id,
                "chunk_index": group.ordinal,
                "cause": get_error_context(e),
            },
        ) from e

    try:
        entry.download_url = s3_client.generate_download_url(
            config.archive_bucket,
            file_id,
            filename,
            expires_in=config.presigned_url_ttl_seconds,
        )
    except PhotoArchiverError as e:
        logger.warning(
            f"Could not presign download URL: {e}",
            extra={"file_id": file_id, "entry_id": entry.id},
        )

    logger.info(
        "Successfully recorded archive",
        extra={
            "entry_id": entry.id,
            "file_id": file_id,
            "archive_filename": filename,
            "hash": sha256_hash,
            "photo_count": photo_count,
            "chunk_index": group.ordinal,
        },
    )
    return entry
