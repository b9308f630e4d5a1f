# In src/photo_archiver/schemas.py

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Runtime Validation (using Pydantic) ---


class PhotoRecord(BaseModel):
    """
    One photo as stored in the photos table. Read-only to the archiver.

    DynamoDB hands numbers back as ``Decimal`` and omits attributes that were
    never written, so ``size_mb`` is lenient: missing, null or unparseable
    sizes count as zero.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str = Field(..., min_length=1)
    file_id: str = Field(..., min_length=1)
    size_mb: float = Field(0.0, ge=0)
    file_type: str | None = None
    event_id: str
    created_at: datetime | None = None

    @field_validator("size_mb", mode="before")
    @classmethod
    def coerce_unknown_size(cls, value: Any) -> float:
        if value is None or value == "":
            return 0.0
        if isinstance(value, Decimal):
            value = float(value)
        try:
            size = float(value)
        except (TypeError, ValueError):
            return 0.0
        return size if size > 0 else 0.0

    @field_validator("id", "file_id", "event_id", mode="before")
    @classmethod
    def stringify_identifier(cls, value: Any) -> Any:
        if isinstance(value, (int, Decimal)):
            return str(value)
        return value


class EventRecord(BaseModel):
    """The owning event of a set of photos."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., min_length=1)
    user_id: str = ""
    name: str | None = None

    @field_validator("user_id", mode="before")
    @classmethod
    def normalize_owner(cls, value: Any) -> str:
        return str(value or "").strip()


class ArchiveRequest(BaseModel):
    """
    Pydantic model for the JSON body of an archive request.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    event_id: str = Field(..., alias="eventId", min_length=1)
    photo_ids: list[str] | None = Field(None, alias="photoIds")

    @field_validator("photo_ids")
    @classmethod
    def reject_empty_selection(cls, value: list[str] | None) -> list[str] | None:
        if value is not None and not value:
            raise ValueError("photoIds must not be empty when provided")
        return value
