"""Pydantic models for Azure DevOps work item data.

The payload models map to the Azure DevOps Work Item Tracking REST API 7.1.
API Reference: https://learn.microsoft.com/rest/api/azure/devops/wit

The domain models (``WorkItem`` and friends) are the assembled, normalised
record that the rest of the tool consumes.
"""

import random
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ATTACHED_FILE_RELATION = "AttachedFile"
UNKNOWN_USER_NAME = "Unknown"
UNKNOWN_USER_EMAIL = "unknown@example.com"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _random_local_id() -> int:
    return random.getrandbits(32)


class User(BaseModel):
    """Person referenced by a work item or comment."""

    display_name: str = Field(..., description="Human readable name")
    email: str = Field("", description="Address-like identifier (best effort)")
    url: str = Field("", description="Profile URL or mailto link")

    @classmethod
    def unknown(cls) -> "User":
        """Sentinel user for missing identity fields."""
        return cls(display_name=UNKNOWN_USER_NAME, email=UNKNOWN_USER_EMAIL, url="")


class ImageReference(BaseModel):
    """Inline image downloaded from rich text and stored under a placeholder."""

    placeholder: str = Field(..., description="Local name, e.g. image001.png")
    original_url: str = Field(..., description="Source URL found in the text")
    local_path: str = Field(..., description="Where the image was written")
    width: int | None = Field(None, description="Reserved, never populated")
    height: int | None = Field(None, description="Reserved, never populated")
    alt_text: str | None = Field(None, description="alt attribute of the img tag")


class Attachment(BaseModel):
    """File attached to a work item through an ``AttachedFile`` relation."""

    id: int = Field(
        default_factory=_random_local_id,
        description="Locally generated identifier (not provided by the server)",
    )
    filename: str = Field(..., description="Original attachment filename")
    url: str = Field(..., description="Download URL of the attachment")
    local_path: str = Field(..., description="Where the attachment was written")
    content_type: str = Field(
        "application/octet-stream", description="Declared MIME type"
    )
    size: int = Field(0, description="Size in bytes")
    created_date: datetime = Field(
        default_factory=_utcnow, description="Time of download if unknown"
    )


class Comment(BaseModel):
    """Discussion comment on a work item."""

    id: int = Field(..., description="Comment identifier")
    author: User = Field(..., description="Comment author")
    created_date: datetime = Field(..., description="Creation timestamp")
    updated_date: datetime | None = Field(None, description="Last edit timestamp")
    text: str = Field("", description="Raw (HTML) comment text")
    images: list[ImageReference] = Field(
        default_factory=list, description="Images downloaded from this comment"
    )


class WorkItem(BaseModel):
    """Fully assembled work item.

    ``comments``, ``attachments`` and ``images`` start empty and are filled in
    by the assembler.
    """

    id: int
    title: str = ""
    description: str = Field("", description="Raw (HTML) description")
    acceptance_criteria: list[str] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    images: list[ImageReference] = Field(default_factory=list)
    created_date: datetime = Field(default_factory=_utcnow)
    updated_date: datetime = Field(default_factory=_utcnow)
    created_by: User = Field(default_factory=User.unknown)
    assigned_to: User | None = None
    state: str = ""
    work_item_type: str = ""
    area_path: str = ""
    iteration_path: str = ""


# Raw API payloads


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


class RelationAttributes(BaseModel):
    """``attributes`` object of a work item relation."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str | None = None
    comment: str | None = None
    authorized_date: str | None = Field(None, alias="authorizedDate")

    @field_validator("name", "comment", "authorized_date", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str | None:
        return _str_or_none(value)


class RelationPayload(BaseModel):
    """Link from a work item to another resource."""

    model_config = ConfigDict(extra="ignore")

    rel: str = ""
    url: str = ""
    attributes: RelationAttributes | None = None

    @field_validator("rel", "url", mode="before")
    @classmethod
    def _coerce_link(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @field_validator("attributes", mode="before")
    @classmethod
    def _coerce_attributes(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    @property
    def is_attachment(self) -> bool:
        return self.rel == ATTACHED_FILE_RELATION


class WorkItemPayload(BaseModel):
    """Work item as returned by ``GET _apis/wit/workitems/{id}``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int
    revision: int | None = Field(None, alias="rev")
    fields: dict[str, Any] = Field(default_factory=dict)
    relations: list[RelationPayload] | None = None
    url: str = ""

    @field_validator("relations", mode="before")
    @classmethod
    def _drop_malformed_relations(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return None
        return [
            relation
            for relation in value
            if isinstance(relation, (dict, RelationPayload))
        ]


class CommentPayload(BaseModel):
    """Entry of the comments endpoint ``value`` array."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int
    version: int | None = None
    text: str | None = None
    created_date: str | None = Field(None, alias="createdDate")
    updated_date: str | None = Field(None, alias="updatedDate")
    author: dict[str, Any] = Field(default_factory=dict)

    @field_validator("created_date", "updated_date", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> str | None:
        return _str_or_none(value)

    @field_validator("author", mode="before")
    @classmethod
    def _coerce_author(cls, value: Any) -> dict[str, Any]:
        return value if isinstance(value, dict) else {}
