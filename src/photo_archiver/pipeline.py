# src/photo_archiver/pipeline.py

"""
High-level orchestrator for the Photo Archiver service.

One call to `ArchivePipeline.run` takes an event from ownership check to a
finished summary:

    START -> PARTITIONED -> PROCESSING_GROUP* -> DONE
    START -> FAILED  (missing event, ownership mismatch, listing failure)

Groups are processed strictly one after the other. A photo that cannot be
archived never stops its group, and a group that cannot be delivered never
stops the run; both show up in the summary instead.
"""

import logging

import pydantic
from aws_lambda_powertools.utilities.typing import LambdaContext

from .clients import ArchiveCatalog, EventStore, PhotoStore, S3Client
from .config import AppConfig
from .core import archive_filename, build_zip_archive, upload_and_record
from .exceptions import (
    ArchiveBuildError,
    ArchiveUploadError,
    AuthorizationError,
    CatalogWriteError,
    MemoryLimitError,
    PhotoArchiverError,
    PhotoListingError,
    get_error_context,
)
from .models import (
    FailureRecord,
    GroupFailure,
    PhotoGroup,
    PipelineState,
    PipelineStatus,
    PipelineSummary,
)
from .partitioning import partition
from .schemas import EventRecord, PhotoRecord

logger = logging.getLogger(__name__)

_GROUP_ERRORS = (ArchiveBuildError, MemoryLimitError, ArchiveUploadError, CatalogWriteError)


class ArchivePipeline:
    """Builds, uploads and catalogs the archives of one event per run."""

    def __init__(
        self,
        s3_client: S3Client,
        event_store: EventStore,
        photo_store: PhotoStore,
        catalog: ArchiveCatalog,
        config: AppConfig,
    ):
        self._s3 = s3_client
        self._events = event_store
        self._photos = photo_store
        self._catalog = catalog
        self._config = config

    def run(
        self,
        event_id: str,
        user_id: str,
        photo_ids: list[str] | None = None,
        context: LambdaContext | None = None,
    ) -> PipelineSummary:
        """
        Archives the photos of *event_id* on behalf of *user_id*.

        Raises EventNotFoundError, AuthorizationError or PhotoListingError
        before any archive work starts. Everything after partitioning is
        reported through the returned summary.
        """
        self._enter(PipelineState.START, event_id)
        try:
            event = self._verify_ownership(event_id, user_id)
            photos = self._list_photos(event_id, photo_ids)
        except PhotoArchiverError as e:
            self._enter(PipelineState.FAILED, event_id, error=get_error_context(e))
            raise

        if not photos:
            logger.info("No photos to archive.", extra={"event_id": event_id})
            self._enter(PipelineState.DONE, event_id)
            return PipelineSummary(event_id=event_id, status=PipelineStatus.NO_CONTENT)

        groups = partition(photos, self._config.size_budget_mb)
        self._enter(PipelineState.PARTITIONED, event_id, total_chunks=len(groups))

        summary = PipelineSummary(
            event_id=event_id,
            status=PipelineStatus.COMPLETED,
            total_photos=len(photos),
            total_chunks=len(groups),
        )

        for position, group in enumerate(groups):
            if self._deadline_reached(context):
                self._abandon_unstarted(groups[position:], summary)
                break
            self._enter(
                PipelineState.PROCESSING_GROUP, event_id, chunk_index=group.ordinal
            )
            self._process_group(group, len(groups), event, user_id, summary)

        summary.status = self._final_status(summary)
        self._enter(PipelineState.DONE, event_id)
        logger.info(
            "Archive run finished",
            extra={
                "event_id": event_id,
                "status": summary.status.value,
                "total_photos": summary.total_photos,
                "archived_count": summary.archived_count,
                "failed_count": summary.failed_count,
                "archives_created": len(summary.entries),
                "group_failures": len(summary.group_failures),
            },
        )
        return summary

    # --- Steps ---
    def _verify_ownership(self, event_id: str, user_id: str) -> EventRecord:
        event = self._events.get_event(event_id)
        if not user_id or event.user_id != user_id:
            logger.warning(
                "Ownership mismatch",
                extra={"event_id": event_id, "event_owner": event.user_id, "user_id": user_id},
            )
            raise AuthorizationError(event_id=event_id, user_id=user_id)
        logger.debug("Ownership verified", extra={"event_id": event_id, "user_id": user_id})
        return event

    def _list_photos(
        self, event_id: str, photo_ids: list[str] | None
    ) -> list[PhotoRecord]:
        try:
            photos = list(self._photos.list_photos(event_id, self._config.page_size))
        except (PhotoArchiverError, pydantic.ValidationError) as e:
            raise PhotoListingError(
                event_id, context={"cause": get_error_context(e)}
            ) from e

        if photo_ids is not None:
            wanted = set(photo_ids)
            selected = [photo for photo in photos if photo.id in wanted]
            ignored = len(wanted) - len(selected)
            if ignored:
                logger.warning(
                    f"Ignoring {ignored} requested photo ids that are not part of the event.",
                    extra={"event_id": event_id},
                )
            photos = selected

        logger.info(
            f"Fetched {len(photos)} photo records",
            extra={
                "event_id": event_id,
                "total_size_mb": round(sum(p.size_mb for p in photos), 2),
            },
        )
        return photos

    def _fetch_photo(self, file_id: str) -> bytes:
        return self._s3.download_blob(self._config.photo_bucket, file_id)

    def _process_group(
        self,
        group: PhotoGroup,
        total_groups: int,
        event: EventRecord,
        owner_id: str,
        summary: PipelineSummary,
    ) -> None:
        member_failures: list[FailureRecord] = []
        try:
            archive_bytes, success_count, member_failures = build_zip_archive(
                group, fetch=self._fetch_photo
            )
            summary.failures.extend(member_failures)

            if success_count == 0:
                logger.warning(
                    "No photo of this chunk could be archived; nothing uploaded.",
                    extra={"chunk_index": group.ordinal, "photo_count": group.count},
                )
                return

            filename = archive_filename(
                event.name,
                group.ordinal,
                total_groups,
                max_length=self._config.archive_name_max_length,
            )
            entry = upload_and_record(
                archive_bytes,
                filename,
                group,
                total_groups,
                owner_id=owner_id,
                event_id=event.id,
                photo_count=success_count,
                s3_client=self._s3,
                catalog=self._catalog,
                config=self._config,
            )
            del archive_bytes

            summary.entries.append(entry)
            summary.archived_count += success_count

        except _GROUP_ERRORS as e:
            logger.error(
                f"Chunk {group.ordinal} could not be delivered: {e}",
                extra={"chunk_index": group.ordinal, "error": get_error_context(e)},
            )
            already_failed = {failure.photo_id for failure in member_failures}
            summary.failures.extend(
                FailureRecord(
                    photo_id=photo.id,
                    error=f"Chunk {group.ordinal} not delivered: {e.message}",
                )
                for photo in group.photos
                if photo.id not in already_failed
            )
            summary.group_failures.append(
                GroupFailure(
                    ordinal=group.ordinal,
                    photo_ids=tuple(group.photo_ids),
                    error=e.message,
                    error_code=e.error_code,
                )
            )

    def _deadline_reached(self, context: LambdaContext | None) -> bool:
        if context is None:
            return False
        remaining_ms = context.get_remaining_time_in_millis()
        if remaining_ms < self._config.timeout_guard_threshold_ms:
            logger.warning(
                "Timeout threshold reached. No further archives will be started.",
                extra={"remaining_ms": remaining_ms},
            )
            return True
        return False

    @staticmethod
    def _abandon_unstarted(groups: list[PhotoGroup], summary: PipelineSummary) -> None:
        for group in groups:
            summary.failures.extend(
                FailureRecord(
                    photo_id=photo.id,
                    error=f"Chunk {group.ordinal} not started: time limit reached",
                )
                for photo in group.photos
            )

    @staticmethod
    def _final_status(summary: PipelineSummary) -> PipelineStatus:
        if not summary.failures:
            return PipelineStatus.COMPLETED
        if summary.entries:
            return PipelineStatus.PARTIAL
        return PipelineStatus.FAILED

    @staticmethod
    def _enter(state: PipelineState, event_id: str, **details) -> None:
        logger.debug(
            f"Pipeline state: {state.value}",
            extra={"event_id": event_id, "state": state.value, **details},
        )
