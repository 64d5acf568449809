"""In-memory reference stores used in tests and developer environments.

All four stores share one ``InMemoryDatabase``; ``InMemoryTransactionManager``
records an undo entry for every write made inside ``atomic()`` and replays them
in reverse when the block fails or is cancelled. A row another task has
overwritten since is left as that task committed it.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, Callable, Optional, Sequence
from uuid import UUID

from wanda.core.errors import DoubleValidation, DuplicateReport, StaleWriteError, UserAlreadyExists
from wanda.core.repositories import Stores
from wanda.domain.identity.models import User
from wanda.domain.moderation.models import Report, ReportStatus
from wanda.domain.posts.models import Post, PostStatus
from wanda.domain.validation.models import Validation, ValidationType

_MISSING = object()


class _Journal:
    def __init__(self, database: "InMemoryDatabase") -> None:
        self.database = database
        self.undo: list[Callable[[], None]] = []

    def rollback(self) -> None:
        while self.undo:
            self.undo.pop()()


_ACTIVE_JOURNAL: ContextVar[Optional[_Journal]] = ContextVar("wanda_memory_journal", default=None)


class InMemoryDatabase:
    """Tables shared by the in-memory stores.

    ``interleave`` makes every store call yield to the event loop first so
    concurrent tasks actually interleave between reads and writes.
    """

    def __init__(self, *, interleave: bool = False) -> None:
        self.interleave = interleave
        self.users: dict[UUID, User] = {}
        self.posts: dict[UUID, Post] = {}
        self.reports: dict[UUID, Report] = {}
        self.validations: dict[UUID, Validation] = {}

    async def checkpoint(self) -> None:
        if self.interleave:
            await asyncio.sleep(0)

    def write(self, table: dict[UUID, Any], key: UUID, value: Any) -> None:
        self._record(table, key, value)
        table[key] = value

    def remove(self, table: dict[UUID, Any], key: UUID) -> None:
        if key not in table:
            return
        self._record(table, key, _MISSING)
        del table[key]

    def _record(self, table: dict[UUID, Any], key: UUID, written: Any) -> None:
        journal = _ACTIVE_JOURNAL.get()
        if journal is None or journal.database is not self:
            return
        previous = table.get(key, _MISSING)

        def _undo() -> None:
            # Only revert a row that still holds this block's write.
            if table.get(key, _MISSING) is not written:
                return
            if previous is _MISSING:
                table.pop(key, None)
            else:
                table[key] = previous

        journal.undo.append(_undo)

    def stores(self) -> Stores:
        return Stores(
            users=InMemoryUserDirectory(self),
            posts=InMemoryPostStore(self),
            reports=InMemoryReportStore(self),
            validations=InMemoryValidationStore(self),
            transactions=InMemoryTransactionManager(self),
        )


class InMemoryTransactionManager:
    def __init__(self, database: InMemoryDatabase) -> None:
        self.database = database

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        outer = _ACTIVE_JOURNAL.get()
        if outer is not None and outer.database is self.database:
            yield
            return
        journal = _Journal(self.database)
        token = _ACTIVE_JOURNAL.set(journal)
        try:
            yield
        except BaseException:
            journal.rollback()
            raise
        finally:
            _ACTIVE_JOURNAL.reset(token)


class InMemoryUserDirectory:
    def __init__(self, database: InMemoryDatabase) -> None:
        self.db = database

    async def find_user(self, user_id: UUID, *, for_update: bool = False) -> User | None:
        await self.db.checkpoint()
        return self.db.users.get(user_id)

    async def find_by_matricule(self, matricule: str) -> User | None:
        await self.db.checkpoint()
        for user in self.db.users.values():
            if user.matricule == matricule:
                return user
        return None

    async def save_user(self, user: User) -> User:
        await self.db.checkpoint()
        for existing in self.db.users.values():
            if existing.matricule == user.matricule and existing.id != user.id:
                raise UserAlreadyExists(user.matricule)
        self.db.write(self.db.users, user.id, user)
        return user


class InMemoryPostStore:
    def __init__(self, database: InMemoryDatabase) -> None:
        self.db = database

    async def find_post(self, post_id: UUID, *, for_update: bool = False) -> Post | None:
        await self.db.checkpoint()
        return self.db.posts.get(post_id)

    async def save_post(self, post: Post) -> Post:
        await self.db.checkpoint()
        stored = self.db.posts.get(post.id)
        if stored is None:
            self.db.write(self.db.posts, post.id, post)
            return post
        if stored.version != post.version:
            raise StaleWriteError(post.id, post.version)
        saved = post.model_copy(update={"version": post.version + 1})
        self.db.write(self.db.posts, post.id, saved)
        return saved

    async def delete_post(self, post_id: UUID) -> None:
        await self.db.checkpoint()
        self.db.remove(self.db.posts, post_id)
        for vote_id in [vote.id for vote in self.db.validations.values() if vote.post_id == post_id]:
            self.db.remove(self.db.validations, vote_id)

    async def set_status(self, post_id: UUID, status: PostStatus) -> None:
        await self.db.checkpoint()
        stored = self.db.posts.get(post_id)
        if stored is None:
            return
        updated = stored.model_copy(update={"status": status, "version": stored.version + 1})
        self.db.write(self.db.posts, post_id, updated)

    async def exists_by_external_id(self, external_id: str) -> bool:
        await self.db.checkpoint()
        return any(post.external_id == external_id for post in self.db.posts.values())

    async def list_published(self) -> Sequence[Post]:
        await self.db.checkpoint()
        published = [post for post in self.db.posts.values() if post.status is PostStatus.PUBLISHED]
        return sorted(published, key=lambda post: post.created_at, reverse=True)


class InMemoryReportStore:
    def __init__(self, database: InMemoryDatabase) -> None:
        self.db = database

    async def find_report(self, report_id: UUID) -> Report | None:
        await self.db.checkpoint()
        return self.db.reports.get(report_id)

    async def save_report(self, report: Report) -> Report:
        await self.db.checkpoint()
        for existing in self.db.reports.values():
            if (
                existing.id != report.id
                and existing.reporter_id == report.reporter_id
                and existing.post_id == report.post_id
            ):
                raise DuplicateReport(report.reporter_id, report.post_id)
        self.db.write(self.db.reports, report.id, report)
        return report

    async def set_report_status(self, report_id: UUID, status: ReportStatus) -> None:
        await self.db.checkpoint()
        stored = self.db.reports.get(report_id)
        if stored is None:
            return
        self.db.write(self.db.reports, report_id, stored.with_status(status))

    async def count_reports_for_post(self, post_id: UUID) -> int:
        await self.db.checkpoint()
        return sum(1 for report in self.db.reports.values() if report.post_id == post_id)

    async def exists_report(self, reporter_id: UUID, post_id: UUID) -> bool:
        await self.db.checkpoint()
        return any(
            report.reporter_id == reporter_id and report.post_id == post_id for report in self.db.reports.values()
        )

    async def list_pending_reports(self) -> Sequence[Report]:
        await self.db.checkpoint()
        pending = [report for report in self.db.reports.values() if report.status is ReportStatus.PENDING]
        return sorted(pending, key=lambda report: report.created_at)


class InMemoryValidationStore:
    def __init__(self, database: InMemoryDatabase) -> None:
        self.db = database

    async def save_validation(self, validation: Validation) -> Validation:
        await self.db.checkpoint()
        for existing in self.db.validations.values():
            if existing.validator_id == validation.validator_id and existing.post_id == validation.post_id:
                raise DoubleValidation(validation.validator_id, validation.post_id)
        self.db.write(self.db.validations, validation.id, validation)
        return validation

    async def has_voted(self, user_id: UUID, post_id: UUID) -> bool:
        await self.db.checkpoint()
        return any(
            vote.validator_id == user_id and vote.post_id == post_id for vote in self.db.validations.values()
        )

    async def count_by_type(self, post_id: UUID, vote_type: ValidationType) -> int:
        await self.db.checkpoint()
        return sum(1 for vote in self.db.validations.values() if vote.post_id == post_id and vote.type is vote_type)

    async def list_for_post(self, post_id: UUID) -> Sequence[Validation]:
        await self.db.checkpoint()
        return sorted(
            (vote for vote in self.db.validations.values() if vote.post_id == post_id),
            key=lambda vote: vote.created_at,
        )


__all__ = [
    "InMemoryDatabase",
    "InMemoryPostStore",
    "InMemoryReportStore",
    "InMemoryTransactionManager",
    "InMemoryUserDirectory",
    "InMemoryValidationStore",
]
