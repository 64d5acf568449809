"""PostgreSQL-backed stores for users, posts, reports and validations."""

from __future__ import annotations

from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, Iterator, Optional, Sequence
from uuid import UUID

import asyncpg

from wanda.core.errors import DoubleValidation, DuplicateReport, StaleWriteError, StoreError, UserAlreadyExists
from wanda.core.repositories import Stores
from wanda.domain.identity.models import Department, Role, User
from wanda.domain.identity.trust import TrustScore
from wanda.domain.moderation.models import Report, ReportReason, ReportStatus
from wanda.domain.posts.models import Post, PostCategory, PostSource, PostStatus, VisibilityScope
from wanda.domain.validation.models import Validation, ValidationType

USER_MATRICULE_KEY = "wanda_user_matricule_key"
REPORT_UNIQUE_KEY = "wanda_report_reporter_post_key"
VALIDATION_UNIQUE_KEY = "wanda_validation_validator_post_key"

# (pool, connection) of the innermost open atomic() block.
_BOUND: ContextVar[Optional[tuple[asyncpg.Pool, asyncpg.Connection]]] = ContextVar(
	"wanda_pg_connection", default=None
)


class PostgresTransactionManager:
	def __init__(self, pool: asyncpg.Pool) -> None:
		self.pool = pool

	@asynccontextmanager
	async def atomic(self) -> AsyncIterator[None]:
		bound = _BOUND.get()
		if bound is not None and bound[0] is self.pool:
			yield
			return
		async with self.pool.acquire() as conn:
			async with conn.transaction():
				token = _BOUND.set((self.pool, conn))
				try:
					yield
				finally:
					_BOUND.reset(token)


class _PostgresStore:
	def __init__(self, pool: asyncpg.Pool) -> None:
		self.pool = pool

	def _executor(self) -> Any:
		bound = _BOUND.get()
		if bound is not None and bound[0] is self.pool:
			return bound[1]
		return self.pool

	async def _fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
		with _translate_errors():
			return await self._executor().fetchrow(query, *args)

	async def _fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
		with _translate_errors():
			return await self._executor().fetch(query, *args)

	async def _fetchval(self, query: str, *args: Any) -> Any:
		with _translate_errors():
			return await self._executor().fetchval(query, *args)

	async def _execute(self, query: str, *args: Any) -> str:
		with _translate_errors():
			return await self._executor().execute(query, *args)


class _UniqueViolation(StoreError):
	def __init__(self, constraint: str | None) -> None:
		super().__init__(constraint)
		self.constraint = constraint


@contextmanager
def _translate_errors() -> Iterator[None]:
	try:
		yield
	except asyncpg.UniqueViolationError as exc:
		raise _UniqueViolation(getattr(exc, "constraint_name", None)) from exc
	except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
		raise StoreError(f"postgres store call failed: {exc}") from exc


class PostgresUserDirectory(_PostgresStore):
	_COLUMNS = "id, matricule, full_name, department, level, role, trust_score"

	async def find_user(self, user_id: UUID, *, for_update: bool = False) -> User | None:
		query = f"SELECT {self._COLUMNS} FROM wanda_user WHERE id = $1"
		if for_update:
			query += " FOR UPDATE"
		record = await self._fetchrow(query, user_id)
		return _user_from_record(record) if record else None

	async def find_by_matricule(self, matricule: str) -> User | None:
		record = await self._fetchrow(f"SELECT {self._COLUMNS} FROM wanda_user WHERE matricule = $1", matricule)
		return _user_from_record(record) if record else None

	async def save_user(self, user: User) -> User:
		query = """
		INSERT INTO wanda_user (id, matricule, full_name, department, level, role, trust_score)
		VALUES ($1, $2, $3, $4, $5, $6, $7)
		ON CONFLICT (id) DO UPDATE SET
			matricule = EXCLUDED.matricule,
			full_name = EXCLUDED.full_name,
			department = EXCLUDED.department,
			level = EXCLUDED.level,
			role = EXCLUDED.role,
			trust_score = EXCLUDED.trust_score,
			updated_at = now()
		"""
		try:
			await self._execute(
				query,
				user.id,
				user.matricule,
				user.full_name,
				user.department.value,
				user.level,
				user.role.value,
				user.trust_score.value,
			)
		except _UniqueViolation as exc:
			if exc.constraint == USER_MATRICULE_KEY:
				raise UserAlreadyExists(user.matricule) from exc
			raise StoreError(f"user {user.id} conflicts on {exc.constraint}") from exc
		return user


class PostgresPostStore(_PostgresStore):
	_COLUMNS = (
		"id, author_id, title, content, category, status, created_at, source, external_id, origin_name, "
		"visibility_establishment, visibility_department, version"
	)

	async def find_post(self, post_id: UUID, *, for_update: bool = False) -> Post | None:
		query = f"SELECT {self._COLUMNS} FROM wanda_post WHERE id = $1"
		if for_update:
			query += " FOR UPDATE"
		record = await self._fetchrow(query, post_id)
		return _post_from_record(record) if record else None

	async def save_post(self, post: Post) -> Post:
		update = """
		UPDATE wanda_post
		SET title = $3, content = $4, category = $5, status = $6, visibility_establishment = $7,
			visibility_department = $8, version = version + 1
		WHERE id = $1 AND version = $2
		RETURNING version
		"""
		version = await self._fetchval(
			update,
			post.id,
			post.version,
			post.title,
			post.content,
			post.category.value,
			post.status.value,
			_enum_value(post.visibility.establishment),
			_enum_value(post.visibility.department),
		)
		if version is not None:
			return post.model_copy(update={"version": version})
		if await self._fetchval("SELECT 1 FROM wanda_post WHERE id = $1", post.id):
			raise StaleWriteError(post.id, post.version)
		insert = f"""
		INSERT INTO wanda_post ({self._COLUMNS})
		VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
		"""
		try:
			await self._execute(
				insert,
				post.id,
				post.author_id,
				post.title,
				post.content,
				post.category.value,
				post.status.value,
				post.created_at,
				post.source.value,
				post.external_id,
				post.origin_name,
				_enum_value(post.visibility.establishment),
				_enum_value(post.visibility.department),
				post.version,
			)
		except _UniqueViolation as exc:
			raise StoreError(f"post {post.id} conflicts on {exc.constraint}") from exc
		return post

	async def delete_post(self, post_id: UUID) -> None:
		await self._execute("DELETE FROM wanda_post WHERE id = $1", post_id)

	async def set_status(self, post_id: UUID, status: PostStatus) -> None:
		await self._execute(
			"UPDATE wanda_post SET status = $2, version = version + 1 WHERE id = $1",
			post_id,
			status.value,
		)

	async def exists_by_external_id(self, external_id: str) -> bool:
		found = await self._fetchval("SELECT 1 FROM wanda_post WHERE external_id = $1", external_id)
		return found is not None

	async def list_published(self) -> Sequence[Post]:
		records = await self._fetch(
			f"SELECT {self._COLUMNS} FROM wanda_post WHERE status = $1 ORDER BY created_at DESC",
			PostStatus.PUBLISHED.value,
		)
		return [_post_from_record(record) for record in records]


class PostgresReportStore(_PostgresStore):
	_COLUMNS = "id, reporter_id, post_id, reason, details, status, created_at"

	async def find_report(self, report_id: UUID) -> Report | None:
		record = await self._fetchrow(f"SELECT {self._COLUMNS} FROM wanda_report WHERE id = $1", report_id)
		return _report_from_record(record) if record else None

	async def save_report(self, report: Report) -> Report:
		query = f"""
		INSERT INTO wanda_report ({self._COLUMNS})
		VALUES ($1, $2, $3, $4, $5, $6, $7)
		"""
		try:
			await self._execute(
				query,
				report.id,
				report.reporter_id,
				report.post_id,
				report.reason.value,
				report.details,
				report.status.value,
				report.created_at,
			)
		except _UniqueViolation as exc:
			if exc.constraint == REPORT_UNIQUE_KEY:
				raise DuplicateReport(report.reporter_id, report.post_id) from exc
			raise StoreError(f"report {report.id} conflicts on {exc.constraint}") from exc
		return report

	async def set_report_status(self, report_id: UUID, status: ReportStatus) -> None:
		await self._execute(
			"UPDATE wanda_report SET status = $2, resolved_at = now() WHERE id = $1",
			report_id,
			status.value,
		)

	async def count_reports_for_post(self, post_id: UUID) -> int:
		count = await self._fetchval("SELECT count(*) FROM wanda_report WHERE post_id = $1", post_id)
		return int(count or 0)

	async def exists_report(self, reporter_id: UUID, post_id: UUID) -> bool:
		found = await self._fetchval(
			"SELECT 1 FROM wanda_report WHERE reporter_id = $1 AND post_id = $2",
			reporter_id,
			post_id,
		)
		return found is not None

	async def list_pending_reports(self) -> Sequence[Report]:
		records = await self._fetch(
			f"SELECT {self._COLUMNS} FROM wanda_report WHERE status = $1 ORDER BY created_at ASC",
			ReportStatus.PENDING.value,
		)
		return [_report_from_record(record) for record in records]


class PostgresValidationStore(_PostgresStore):
	_COLUMNS = "id, post_id, validator_id, type, created_at"

	async def save_validation(self, validation: Validation) -> Validation:
		query = f"INSERT INTO wanda_validation ({self._COLUMNS}) VALUES ($1, $2, $3, $4, $5)"
		try:
			await self._execute(
				query,
				validation.id,
				validation.post_id,
				validation.validator_id,
				validation.type.value,
				validation.created_at,
			)
		except _UniqueViolation as exc:
			if exc.constraint == VALIDATION_UNIQUE_KEY:
				raise DoubleValidation(validation.validator_id, validation.post_id) from exc
			raise StoreError(f"validation {validation.id} conflicts on {exc.constraint}") from exc
		return validation

	async def has_voted(self, user_id: UUID, post_id: UUID) -> bool:
		found = await self._fetchval(
			"SELECT 1 FROM wanda_validation WHERE validator_id = $1 AND post_id = $2",
			user_id,
			post_id,
		)
		return found is not None

	async def count_by_type(self, post_id: UUID, vote_type: ValidationType) -> int:
		count = await self._fetchval(
			"SELECT count(*) FROM wanda_validation WHERE post_id = $1 AND type = $2",
			post_id,
			vote_type.value,
		)
		return int(count or 0)

	async def list_for_post(self, post_id: UUID) -> Sequence[Validation]:
		records = await self._fetch(
			f"SELECT {self._COLUMNS} FROM wanda_validation WHERE post_id = $1 ORDER BY created_at ASC",
			post_id,
		)
		return [_validation_from_record(record) for record in records]


def postgres_stores(pool: asyncpg.Pool) -> Stores:
	return Stores(
		users=PostgresUserDirectory(pool),
		posts=PostgresPostStore(pool),
		reports=PostgresReportStore(pool),
		validations=PostgresValidationStore(pool),
		transactions=PostgresTransactionManager(pool),
	)


def _enum_value(member: Any) -> Optional[str]:
	return member.value if member is not None else None


def _user_from_record(record: asyncpg.Record) -> User:
	return User(
		id=record["id"],
		matricule=record["matricule"],
		full_name=record["full_name"],
		department=Department(record["department"]),
		level=record["level"],
		role=Role(record["role"]),
		trust_score=TrustScore(int(record["trust_score"])),
	)


def _post_from_record(record: asyncpg.Record) -> Post:
	establishment = record["visibility_establishment"]
	department = record["visibility_department"]
	return Post(
		id=record["id"],
		author_id=record["author_id"],
		title=record["title"],
		content=record["content"],
		category=PostCategory(record["category"]),
		status=PostStatus(record["status"]),
		created_at=record["created_at"],
		source=PostSource(record["source"]),
		external_id=record["external_id"],
		origin_name=record["origin_name"],
		visibility=VisibilityScope(
			establishment=establishment,
			department=Department(department) if department else None,
		),
		version=int(record["version"]),
	)


def _report_from_record(record: asyncpg.Record) -> Report:
	return Report(
		id=record["id"],
		reporter_id=record["reporter_id"],
		post_id=record["post_id"],
		reason=ReportReason(record["reason"]),
		details=record["details"],
		status=ReportStatus(record["status"]),
		created_at=record["created_at"],
	)


def _validation_from_record(record: asyncpg.Record) -> Validation:
	return Validation(
		id=record["id"],
		post_id=record["post_id"],
		validator_id=record["validator_id"],
		type=ValidationType(record["type"]),
		created_at=record["created_at"],
	)


__all__ = [
	"PostgresPostStore",
	"PostgresReportStore",
	"PostgresTransactionManager",
	"PostgresUserDirectory",
	"PostgresValidationStore",
	"postgres_stores",
]
