"""Ingestion of announcements published by official university sources."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol, Sequence

from pydantic import BaseModel, ConfigDict

from wanda.core.errors import ActionResult, ExternalIntegrationError, InboundPersistenceError
from wanda.core.locking import KeyLocks, external_key
from wanda.core.repositories import Stores
from wanda.domain.identity.models import Establishment
from wanda.domain.posts.models import (
    SYSTEM_OFFICIAL_ID,
    Post,
    PostCategory,
    PostSource,
    PostStatus,
    VisibilityScope,
)
from wanda.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class ExternalInboundPost(BaseModel):
    external_id: str
    title: Optional[str] = None
    content: str
    published_at: datetime
    raw_url: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class ExternalInformationProvider(Protocol):
    """A feed of official announcements (page, RSS feed, scraper)."""

    source_name: str
    # None targets the whole university.
    target_establishment: Optional[Establishment]

    async def fetch_latest_posts(self) -> Sequence[ExternalInboundPost]:
        ...


@dataclass
class SyncSummary:
    created: dict[str, int] = field(default_factory=dict)
    skipped: dict[str, int] = field(default_factory=dict)

    def record(self, source: str, result: str) -> None:
        bucket = self.created if result == "created" else self.skipped
        bucket[source] = bucket.get(source, 0) + 1

    @property
    def total_created(self) -> int:
        return sum(self.created.values())

    @property
    def total_skipped(self) -> int:
        return sum(self.skipped.values())


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def official_post(provider: ExternalInformationProvider, item: ExternalInboundPost) -> Post:
    return Post(
        author_id=SYSTEM_OFFICIAL_ID,
        title=item.title or f"Official notice: {provider.source_name}",
        content=item.content,
        category=PostCategory.OFFICIAL,
        status=PostStatus.PUBLISHED,
        created_at=_as_utc(item.published_at),
        source=PostSource.EXTERNAL_OFFICIAL,
        external_id=item.external_id,
        origin_name=provider.source_name,
        visibility=VisibilityScope(establishment=provider.target_establishment),
    )


@dataclass
class InboundSyncService:
    providers: Sequence[ExternalInformationProvider]
    stores: Stores
    locks: KeyLocks

    async def sync_all_sources(self) -> ActionResult[SyncSummary]:
        """Pull every provider once and store the items not seen before.

        The first failure stops the run; items saved before it stay saved.
        """

        summary = SyncSummary()
        try:
            for provider in self.providers:
                items = await provider.fetch_latest_posts()
                for item in items:
                    result = await self._ingest(provider, item)
                    summary.record(provider.source_name, result)
                    obs_metrics.INBOUND_SYNC_ITEMS_TOTAL.labels(source=provider.source_name, result=result).inc()
        except Exception as exc:
            logger.error("inbound sync failed", extra={"error": repr(exc)})
            return ActionResult.failure(ExternalIntegrationError("external source synchronisation failed", exc))
        logger.info(
            "inbound sync finished",
            extra={"items_created": summary.total_created, "items_skipped": summary.total_skipped},
        )
        return ActionResult.success(summary)

    async def _ingest(self, provider: ExternalInformationProvider, item: ExternalInboundPost) -> str:
        async with self.locks.hold(external_key(item.external_id)):
            if await self.stores.posts.exists_by_external_id(item.external_id):
                return "skipped"
            post = official_post(provider, item)
            try:
                async with self.stores.transactions.atomic():
                    await self.stores.posts.save_post(post)
            except Exception as exc:
                raise InboundPersistenceError(f"could not store external post {item.external_id}", exc) from exc
        obs_metrics.POSTS_CREATED_TOTAL.labels(status=post.status.value, source=post.source.value).inc()
        return "created"


__all__ = [
    "ExternalInboundPost",
    "ExternalInformationProvider",
    "InboundSyncService",
    "SyncSummary",
    "official_post",
]
