"""Peer validation records."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class ValidationType(str, Enum):
    CONFIRM = "confirm"  # the information is true
    REFUTE = "refute"  # the information is false


class Validation(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    post_id: UUID
    validator_id: UUID
    type: ValidationType
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


__all__ = ["Validation", "ValidationType"]
