# tests/unit/test_schemas.py

from datetime import datetime, timezone
from decimal import Decimal

import pydantic
import pytest

from photo_archiver.schemas import ArchiveRequest, EventRecord, PhotoRecord


class TestPhotoRecord:
    """Test suite for the PhotoRecord Pydantic model."""

    def test_dynamodb_item_is_parsed(self, photo_item):
        photo = PhotoRecord.model_validate(photo_item)

        assert photo.id == "p1"
        assert photo.file_id == "uploads/p1.jpg"
        assert photo.size_mb == 2.5
        assert photo.file_type == "image/jpeg"
        assert photo.event_id == "event-1"
        assert photo.created_at == datetime(2024, 6, 1, 12, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize("raw_size", [None, "", "unknown", -3, Decimal("0")])
    def test_unknown_size_counts_as_zero(self, photo_item, raw_size):
        photo = PhotoRecord.model_validate(dict(photo_item, size_mb=raw_size))

        assert photo.size_mb == 0.0

    def test_missing_size_counts_as_zero(self, photo_item):
        item = dict(photo_item)
        del item["size_mb"]

        assert PhotoRecord.model_validate(item).size_mb == 0.0

    def test_numeric_ids_are_stringified(self, photo_item):
        photo = PhotoRecord.model_validate(dict(photo_item, id=Decimal("42")))

        assert photo.id == "42"

    def test_record_is_immutable(self, photo_item):
        photo = PhotoRecord.model_validate(photo_item)

        with pytest.raises(pydantic.ValidationError):
            photo.size_mb = 10

    @pytest.mark.parametrize("missing", ["id", "file_id", "event_id"])
    def test_missing_required_field(self, photo_item, missing):
        item = dict(photo_item)
        del item[missing]

        with pytest.raises(pydantic.ValidationError) as exc_info:
            PhotoRecord.model_validate(item)

        assert (missing,) in [e["loc"] for e in exc_info.value.errors()]


class TestEventRecord:
    def test_owner_is_stripped(self):
        event = EventRecord.model_validate({"id": "e", "user_id": "  u1 "})

        assert event.user_id == "u1"
        assert event.name is None

    def test_missing_owner_is_empty(self):
        assert EventRecord.model_validate({"id": "e", "user_id": None}).user_id == ""


class TestArchiveRequest:
    def test_aliases_are_accepted(self):
        request = ArchiveRequest.model_validate(
            {"eventId": " event-1 ", "photoIds": ["a", "b"]}
        )

        assert request.event_id == "event-1"
        assert request.photo_ids == ["a", "b"]

    def test_photo_ids_are_optional(self):
        assert ArchiveRequest.model_validate({"eventId": "event-1"}).photo_ids is None

    @pytest.mark.parametrize(
        "payload, expected_loc",
        [
            ({}, ("eventId",)),
            ({"eventId": ""}, ("eventId",)),
            ({"eventId": "e", "photoIds": []}, ("photoIds",)),
            ({"eventId": "e", "photoIds": "a"}, ("photoIds",)),
        ],
    )
    def test_invalid_payloads(self, payload, expected_loc):
        with pytest.raises(pydantic.ValidationError) as exc_info:
            ArchiveRequest.model_validate(payload)

        assert expected_loc in [e["loc"] for e in exc_info.value.errors()]
