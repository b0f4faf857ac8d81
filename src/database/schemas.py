"""
Schemas for image metadata documents.
This module defines the record models shared by every store engine and the
JSON schema used to validate documents before they are written.
"""

from typing import Dict, Any
from datetime import datetime, timezone
import posixpath

import jsonschema
from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_PUBLIC_PREFIX = "/uploads"


def public_path(filename: str, prefix: str = DEFAULT_PUBLIC_PREFIX) -> str:
    """Build the public relative path of a stored image.

    This is the only place the path rule lives, so a record's `path`
    can always be derived from its `filename`.
    """
    return f"{prefix.rstrip('/')}/{filename}"


def truncate_millis(moment: datetime) -> datetime:
    """Drop sub-millisecond precision, which MongoDB does not keep."""
    return moment.replace(microsecond=moment.microsecond - moment.microsecond % 1000)


def utcnow_millis() -> datetime:
    return truncate_millis(datetime.now(timezone.utc))


class StorageDescriptor(BaseModel):
    """A stored blob as handed from the upload intake to the metadata store"""
    filename: str = Field(..., min_length=1, description="Storage-assigned unique file name")
    path: str = Field(..., description="Public relative path of the file")

    model_config = ConfigDict(frozen=True)


class ImageRecord(BaseModel):
    """Schema for an image metadata record"""
    id: str = Field(..., description="Identifier assigned by the store")
    filename: str = Field(..., min_length=1, description="Storage-assigned unique file name")
    path: str = Field(..., description="Public relative path of the file")
    uploaded_at: datetime = Field(..., alias="uploadedAt", description="Creation timestamp, sole sort key")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @model_validator(mode="after")
    def path_follows_filename(self) -> "ImageRecord":
        if posixpath.basename(self.path) != self.filename:
            raise ValueError(f"path {self.path!r} does not point at {self.filename!r}")
        return self


IMAGE_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "filename": {"type": "string", "minLength": 1, "pattern": r"^[^/\\]+$"},
        "path": {"type": "string", "pattern": r"^/"},
        "uploadedAt": {"type": "string", "format": "date-time"},
        "batchId": {"type": "string"}
    },
    "required": ["filename", "path", "uploadedAt"],
    "additionalProperties": False
}


def validate_image_document(document: Dict[str, Any]) -> None:
    """Validate an image document against the schema.

    `uploadedAt` may be a datetime (native Mongo form) or an ISO string
    (the form kept in SQLite).
    """
    candidate = dict(document)
    if isinstance(candidate.get("uploadedAt"), datetime):
        candidate["uploadedAt"] = candidate["uploadedAt"].isoformat()
    jsonschema.validate(candidate, IMAGE_JSON_SCHEMA, format_checker=jsonschema.FormatChecker())
    if posixpath.basename(candidate["path"]) != candidate["filename"]:
        raise jsonschema.ValidationError(
            f"path {candidate['path']!r} is not derived from filename {candidate['filename']!r}"
        )
