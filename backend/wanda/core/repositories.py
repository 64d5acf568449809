"""Storage contracts consumed by the trust and moderation engines.

The engines never implement these; reference implementations live in
``wanda.infra.memory`` (tests, local development) and
``wanda.infra.postgres_repo`` (asyncpg).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncContextManager, Protocol, Sequence
from uuid import UUID

from wanda.domain.identity.models import User
from wanda.domain.moderation.models import Report, ReportStatus
from wanda.domain.posts.models import Post, PostStatus
from wanda.domain.validation.models import Validation, ValidationType


class UserDirectory(Protocol):
    async def find_user(self, user_id: UUID, *, for_update: bool = False) -> User | None:
        ...

    async def find_by_matricule(self, matricule: str) -> User | None:
        ...

    async def save_user(self, user: User) -> User:
        ...


class PostStore(Protocol):
    async def find_post(self, post_id: UUID, *, for_update: bool = False) -> Post | None:
        ...

    async def save_post(self, post: Post) -> Post:
        """Insert, or replace when the stored version matches ``post.version``.

        The returned revision carries the next version. A version mismatch
        raises ``StaleWriteError``.
        """
        ...

    async def delete_post(self, post_id: UUID) -> None:
        ...

    async def set_status(self, post_id: UUID, status: PostStatus) -> None:
        """Unconditional status write used by moderator and quarantine actions."""
        ...

    async def exists_by_external_id(self, external_id: str) -> bool:
        ...

    async def list_published(self) -> Sequence[Post]:
        ...


class ReportStore(Protocol):
    async def find_report(self, report_id: UUID) -> Report | None:
        ...

    async def save_report(self, report: Report) -> Report:
        ...

    async def set_report_status(self, report_id: UUID, status: ReportStatus) -> None:
        ...

    async def count_reports_for_post(self, post_id: UUID) -> int:
        ...

    async def exists_report(self, reporter_id: UUID, post_id: UUID) -> bool:
        ...

    async def list_pending_reports(self) -> Sequence[Report]:
        ...


class ValidationStore(Protocol):
    async def save_validation(self, validation: Validation) -> Validation:
        ...

    async def has_voted(self, user_id: UUID, post_id: UUID) -> bool:
        ...

    async def count_by_type(self, post_id: UUID, vote_type: ValidationType) -> int:
        ...

    async def list_for_post(self, post_id: UUID) -> Sequence[Validation]:
        ...


class TransactionManager(Protocol):
    def atomic(self) -> AsyncContextManager[None]:
        """Unit of work spanning every store bound to this manager.

        Writes made inside the block commit together when it exits normally and
        are rolled back when it raises, including ``asyncio.CancelledError``.
        Nested blocks join the outermost one.
        """
        ...


@dataclass(frozen=True)
class Stores:
    """Dependency set the engines are built from."""

    users: UserDirectory
    posts: PostStore
    reports: ReportStore
    validations: ValidationStore
    transactions: TransactionManager


__all__ = [
    "PostStore",
    "ReportStore",
    "Stores",
    "TransactionManager",
    "UserDirectory",
    "ValidationStore",
]
