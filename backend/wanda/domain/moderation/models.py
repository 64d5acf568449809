"""Report records for the moderation workflow."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class ReportReason(str, Enum):
    SPAM = "spam"
    FAKE_NEWS = "fake_news"
    HARASSMENT = "harassment"
    INAPPROPRIATE_CONTENT = "inappropriate_content"
    WRONG_CATEGORY = "wrong_category"


class ReportStatus(str, Enum):
    PENDING = "pending"
    VALIDATED = "validated"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ReportStatus.PENDING


class Report(BaseModel):
    """A member's report against a post; at most one per (reporter, post)."""

    id: UUID = Field(default_factory=uuid4)
    reporter_id: UUID
    post_id: UUID
    reason: ReportReason
    details: Optional[str] = None
    status: ReportStatus = ReportStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)

    def with_status(self, status: ReportStatus) -> "Report":
        return self.model_copy(update={"status": status})


__all__ = ["Report", "ReportReason", "ReportStatus"]
