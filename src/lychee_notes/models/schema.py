"""Data models for Lychee Notes."""

import datetime
from datetime import timezone
from typing import List, Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current time with UTC timezone info attached.
    """
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: Optional[datetime.datetime]) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    SQLite hands DateTime columns back without tzinfo, so every value read
    from the database goes through here.

    Args:
        dt_value: A datetime that may or may not have timezone info.

    Returns:
        The same datetime with UTC timezone if it was naive, otherwise unchanged.
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


class Tag(BaseModel):
    """A tag as stored: its identifier and its unique, case-sensitive name."""

    id: int = Field(..., description="Identifier assigned on first use of the name")
    name: str = Field(..., description="Tag name")

    model_config = {"frozen": True}

    def __str__(self) -> str:
        """Return string representation of tag."""
        return self.name


class NoteWithTags(BaseModel):
    """A note together with the names of its current tags."""

    id: int = Field(..., description="Identifier assigned by the store")
    content: str = Field(..., description="Content of the note")
    created_at: datetime.datetime = Field(
        ..., description="When the note was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        ..., description="When the content or tag set last changed (UTC)"
    )
    tags: List[str] = Field(
        default_factory=list, description="Tag names, alphabetical"
    )

    model_config = {"frozen": True}
