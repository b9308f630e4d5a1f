# src/photo_archiver/models.py

"""
Internal result types passed between the partitioner, the archive builder,
the recorder and the pipeline coordinator.

Inputs coming from DynamoDB or the request body are validated with Pydantic
in ``schemas.py``; everything in here is produced by our own code and kept as
plain dataclasses.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime

from .schemas import PhotoRecord

BYTES_PER_MB = 1_048_576


class PipelineState(str, enum.Enum):
    START = "START"
    PARTITIONED = "PARTITIONED"
    PROCESSING_GROUP = "PROCESSING_GROUP"
    DONE = "DONE"
    FAILED = "FAILED"


class PipelineStatus(str, enum.Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    NO_CONTENT = "no_content"


@dataclass(frozen=True, slots=True)
class PhotoGroup:
    """One size-bounded batch of photos destined for a single archive."""

    ordinal: int
    photos: tuple[PhotoRecord, ...]

    @property
    def size_mb(self) -> float:
        return sum(photo.size_mb for photo in self.photos)

    @property
    def count(self) -> int:
        return len(self.photos)

    @property
    def photo_ids(self) -> list[str]:
        return [photo.id for photo in self.photos]


@dataclass(frozen=True, slots=True)
class FailureRecord:
    photo_id: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"photoId": self.photo_id, "error": self.error}


@dataclass(frozen=True, slots=True)
class GroupFailure:
    """A whole archive that could not be built, uploaded or recorded."""

    ordinal: int
    photo_ids: tuple[str, ...]
    error: str
    error_code: str

    def to_dict(self) -> dict:
        return {
            "chunkIndex": self.ordinal,
            "photoIds": list(self.photo_ids),
            "error": self.error,
            "errorCode": self.error_code,
        }


@dataclass(frozen=True, slots=True)
class AccessGrant:
    """Rights on an archive and its catalog entry, scoped to a single user."""

    owner_id: str
    actions: tuple[str, ...] = ("read", "update", "delete")

    def permissions(self) -> list[str]:
        return [f'{action}("user:{self.owner_id}")' for action in self.actions]


@dataclass(frozen=True, slots=True)
class ArchiveResult:
    file_id: str
    filename: str
    size_bytes: int
    photo_count: int
    ordinal: int
    total_groups: int
    sha256: str

    @property
    def size_mb(self) -> float:
        return round(self.size_bytes / BYTES_PER_MB, 2)


@dataclass(slots=True)
class CatalogEntry:
    id: str
    event_id: str
    owner_id: str
    archive: ArchiveResult
    permissions: list[str]
    created_at: datetime
    status: str = "ready"
    # Presigned URLs expire, so this is returned to the caller but never stored.
    download_url: str | None = None

    def to_item(self) -> dict:
        """DynamoDB item for the archives table (integers only, no floats)."""
        return {
            "id": self.id,
            "event_id": self.event_id,
            "user_id": self.owner_id,
            "file_id": self.archive.file_id,
            "filename": self.archive.filename,
            "size_bytes": self.archive.size_bytes,
            "photo_count": self.archive.photo_count,
            "chunk_index": self.archive.ordinal,
            "total_chunks": self.archive.total_groups,
            "content_sha256": self.archive.sha256,
            "status": self.status,
            "permissions": list(self.permissions),
            "created_at": self.created_at.isoformat(),
        }

    def to_dict(self) -> dict:
        return {
            "entryId": self.id,
            "fileId": self.archive.file_id,
            "filename": self.archive.filename,
            "sizeBytes": self.archive.size_bytes,
            "sizeMb": self.archive.size_mb,
            "photoCount": self.archive.photo_count,
            "chunkIndex": self.archive.ordinal,
            "totalChunks": self.archive.total_groups,
            "downloadUrl": self.download_url,
        }


@dataclass(slots=True)
class PipelineSummary:
    event_id: str
    status: PipelineStatus
    total_photos: int = 0
    archived_count: int = 0
    total_chunks: int = 0
    entries: list[CatalogEntry] = field(default_factory=list)
    failures: list[FailureRecord] = field(default_factory=list)
    group_failures: list[GroupFailure] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return self.total_photos - self.archived_count

    @property
    def catalog_entry_ids(self) -> list[str]:
        return [entry.id for entry in self.entries]

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "eventId": self.event_id,
            "totalChunks": self.total_chunks,
            "totalPhotos": self.total_photos,
            "archivedCount": self.archived_count,
            "failedCount": self.failed_count,
            "catalogEntryIds": self.catalog_entry_ids,
            "archives": [entry.to_dict() for entry in self.entries],
            "failures": [failure.to_dict() for failure in self.failures],
            "groupFailures": [failure.to_dict() for failure in self.group_failures],
        }
