"""Domain models for community and official posts."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from wanda.domain.identity.models import Department, Establishment

# Author of content ingested from official external sources.
SYSTEM_OFFICIAL_ID = UUID("00000000-0000-0000-0000-000000000000")


class PostStatus(str, Enum):
    PENDING = "pending"  # waiting for peer validation
    PUBLISHED = "published"
    SUSPECT = "suspect"  # flagged as potentially false
    ARCHIVED = "archived"  # withdrawn from the public surface


class PostCategory(str, Enum):
    INFO = "info"
    ALERT = "alert"
    EVENT = "event"
    OFFICIAL = "official"


class PostSource(str, Enum):
    COMMUNITY = "community"
    EXTERNAL_OFFICIAL = "external_official"


class VisibilityScope(BaseModel):
    """Audience of a post. Both fields empty means the whole university."""

    establishment: Optional[Establishment] = None
    department: Optional[Department] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_university_wide(self) -> bool:
        return self.establishment is None and self.department is None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Post(BaseModel):
    """A post revision. ``version`` is the row token used for optimistic writes."""

    id: UUID = Field(default_factory=uuid4)
    author_id: UUID
    title: str
    content: str
    category: PostCategory
    status: PostStatus = PostStatus.PENDING
    created_at: datetime = Field(default_factory=_utcnow)
    source: PostSource = PostSource.COMMUNITY
    external_id: Optional[str] = None
    origin_name: Optional[str] = None
    visibility: VisibilityScope = Field(default_factory=VisibilityScope)
    version: int = 1

    model_config = ConfigDict(frozen=True)

    def with_status(self, status: PostStatus) -> "Post":
        return self.model_copy(update={"status": status})


__all__ = [
    "Post",
    "PostCategory",
    "PostSource",
    "PostStatus",
    "SYSTEM_OFFICIAL_ID",
    "VisibilityScope",
]
