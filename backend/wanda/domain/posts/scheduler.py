"""APScheduler wrapper running the official source sync periodically."""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from wanda.domain.posts.sync import InboundSyncService, SyncSummary

logger = logging.getLogger(__name__)

JOB_ID = "wanda.inbound_sync"


class InboundSyncScheduler:
    def __init__(self, service: InboundSyncService, *, interval_minutes: int = 15) -> None:
        self.service = service
        self.interval_minutes = interval_minutes
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        trigger = IntervalTrigger(minutes=self.interval_minutes)
        self._scheduler.add_job(self.run_once, trigger=trigger, id=JOB_ID, replace_existing=True)
        self._scheduler.start()
        self._started = True

    def shutdown(self) -> None:
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False

    @property
    def running(self) -> bool:
        return self._started

    async def run_once(self) -> SyncSummary | None:
        result = await self.service.sync_all_sources()
        if not result.ok:
            assert result.error is not None
            cause = getattr(result.error, "cause", None)
            logger.error(
                "scheduled inbound sync failed",
                extra={"detail": result.error.detail, "cause": repr(cause) if cause is not None else None},
            )
            return None
        return result.value


__all__ = ["InboundSyncScheduler", "JOB_ID"]
