"""Data models for ClipShare."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Expiration = Literal["5m", "1h", "24h", "first"]
EXPIRATION_CODES = ("5m", "1h", "24h", "first")
DEFAULT_EXPIRATION = "1h"


class Clip(BaseModel):
    """Stored clip payload.

    The id is the store key and is not part of the record. Field aliases keep
    the JSON layout (``isPublic``, ``createdAt``) readable by older deployments.
    """

    model_config = ConfigDict(populate_by_name=True)

    text: str
    is_public: bool = Field(default=False, alias="isPublic")
    expiration: Expiration = "1h"
    created_at: int = Field(alias="createdAt")

    @field_validator("expiration", mode="before")
    @classmethod
    def _known_expiration(cls, value):
        # Older records may carry codes outside the supported set
        return value if value in EXPIRATION_CODES else DEFAULT_EXPIRATION

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class FeedEntry(BaseModel):
    """Pointer from the public feed to a public clip."""

    id: str
    preview: str
    timestamp: int


class FeedItem(BaseModel):
    """Feed entry as shown to a reader, with a relative timestamp label."""

    id: str
    preview: str
    timestamp: str


class ClipSummary(BaseModel):
    """Admin listing row."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    is_public: bool = Field(alias="isPublic")
    expiration: str
    preview: str
    created_at: int = Field(alias="createdAt")


class ClipResult(BaseModel):
    """Outcome of a clip operation."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    status: str = "ok"
    phrase_id: Optional[str] = Field(default=None, alias="phraseId")
    text: Optional[str] = None

    @property
    def not_found(self) -> bool:
        return self.status == "not_found"

    def to_response(self):
        """Render as the JSON-friendly dict returned to callers."""
        return self.model_dump(by_alias=True, exclude_none=True)
