"""Data models for textoc."""

import datetime
import hashlib
import re
import uuid
from datetime import timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from textoc.exceptions import ErrorCode, ValidationError

# Generated ids are UUID4 strings; anything else that reaches the file
# mirror must still be a single safe path component.
SAFE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_\-]+$")


def validate_safe_path_component(value: str, field_name: str = "value") -> str:
    """Validate that a value is safe to use as a filesystem path component.

    Raises:
        ValidationError: If the value is empty or contains unsafe characters
    """
    if not value:
        raise ValidationError(f"{field_name} cannot be empty", field=field_name)
    if ".." in value or "/" in value or "\\" in value:
        raise ValidationError(
            f"{field_name} cannot contain path separators or '..'",
            field=field_name,
            value=value,
            code=ErrorCode.PATH_TRAVERSAL_DETECTED,
        )
    if not SAFE_ID_PATTERN.match(value):
        raise ValidationError(
            f"{field_name} contains invalid characters",
            field=field_name,
            value=value,
        )
    return value


def normalize_name(value: Optional[str], field_name: str = "name") -> str:
    """Strip a user supplied name and reject it when nothing is left."""
    name = (value or "").strip()
    if not name:
        raise ValidationError(
            f"{field_name} cannot be empty", field=field_name, code=ErrorCode.EMPTY_NAME
        )
    return name


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: Optional[datetime.datetime]) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    SQLite drops tzinfo on the way in, so everything read back from the
    store passes through here.
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


def generate_id() -> str:
    """Generate a new entity identifier."""
    return str(uuid.uuid4())


def compute_content_hash(title: str, content: str) -> str:
    """SHA-256 fingerprint of a note's title and body.

    Stored on the note row and in the mirror file header so the two
    representations can be compared without diffing bodies.
    """
    digest = hashlib.sha256()
    digest.update(title.encode("utf-8"))
    digest.update(b"\x00")
    digest.update(content.encode("utf-8"))
    return digest.hexdigest()


class FocusRegion(str, Enum):
    """Logical UI pane currently receiving keyboard input."""

    NOTEBOOKS = "notebooks"
    TAGS = "tags"
    NOTES = "notes"
    EDITOR = "editor"
    NONE = "none"


class CreateRequest(str, Enum):
    """Pending creation prompt raised by a keyboard command."""

    NOTE = "note"
    NOTEBOOK = "notebook"
    SUB_NOTEBOOK = "sub-notebook"
    TAG = "tag"


class Notebook(BaseModel):
    """A named, hierarchical container for notes."""

    id: str = Field(default_factory=generate_id, description="Unique ID of the notebook")
    name: str = Field(..., description="Display name")
    parent_id: Optional[str] = Field(default=None, description="Parent notebook ID")
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("parent_id")
    @classmethod
    def validate_parent_id(cls, v: Optional[str], info) -> Optional[str]:
        """A notebook can never be its own parent."""
        if v is not None and v == info.data.get("id"):
            raise ValueError("Notebook cannot be its own parent")
        return v


class Note(BaseModel):
    """A note: title, raw markdown body and an optional notebook."""

    id: str = Field(default_factory=generate_id, description="Unique ID of the note")
    title: str = Field(default="", description="Title of the note")
    content: str = Field(default="", description="Raw text body")
    notebook_id: Optional[str] = Field(
        default=None, description="Owning notebook; None means unfiled"
    )
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)
    content_hash: Optional[str] = Field(
        default=None, description="Fingerprint used to detect mirror drift"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @property
    def is_unfiled(self) -> bool:
        return self.notebook_id is None

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on title or content."""
        needle = query.lower()
        return needle in self.title.lower() or needle in self.content.lower()


class Tag(BaseModel):
    """A label attachable to many notes."""

    id: str = Field(default_factory=generate_id, description="Unique ID of the tag")
    name: str = Field(..., description="Tag name (unique, case-sensitive)")

    model_config = {"validate_assignment": True, "frozen": True}

    def __str__(self) -> str:
        return self.name


class NoteTag(BaseModel):
    """Association row between a note and a tag."""

    note_id: str
    tag_id: str

    model_config = {"frozen": True}


class NoteFileMetadata(BaseModel):
    """Frontmatter header written at the top of every mirrored note file."""

    id: str
    title: str
    created_at: datetime.datetime
    updated_at: datetime.datetime
    notebook: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    hash: Optional[str] = None

    model_config = {"extra": "ignore"}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate that the ID is safe for filesystem use."""
        return validate_safe_path_component(v, "Note ID")

    @field_validator("created_at", "updated_at")
    @classmethod
    def validate_timestamps(cls, v: datetime.datetime) -> datetime.datetime:
        return ensure_timezone_aware(v)


class SyncResult(BaseModel):
    """Outcome of a sync run. Sync reports failures instead of raising."""

    success: bool
    error: Optional[str] = None
    committed: bool = False
    pulled: bool = False
    pushed: bool = False
    mirrored: int = 0
