"""Lightweight service container shared by the trust and moderation engines."""

from __future__ import annotations

from typing import Optional, Sequence

import asyncpg

from wanda.core.locking import KeyLocks, LocalKeyLocks, RedisKeyLocks
from wanda.core.repositories import Stores
from wanda.domain.identity.service import UserService
from wanda.domain.moderation.engine import ModerationEngine
from wanda.domain.posts.admission import AdmissionPolicy, PostService
from wanda.domain.posts.scheduler import InboundSyncScheduler
from wanda.domain.posts.sync import ExternalInformationProvider, InboundSyncService
from wanda.domain.validation.engine import ValidationEngine
from wanda.infra.memory import InMemoryDatabase
from wanda.infra.postgres_repo import postgres_stores
from wanda.infra.redis import RedisProxy, redis_client
from wanda.settings import settings

_database: InMemoryDatabase = InMemoryDatabase()
_stores: Stores = _database.stores()
_locks: KeyLocks = LocalKeyLocks()
_policy: AdmissionPolicy = AdmissionPolicy()
_providers: tuple[ExternalInformationProvider, ...] = ()
_user_service: UserService
_post_service: PostService
_validation_engine: ValidationEngine
_moderation_engine: ModerationEngine
_inbound_sync: InboundSyncService
_scheduler: Optional[InboundSyncScheduler] = None


def _rebuild() -> None:
	global _user_service, _post_service, _validation_engine, _moderation_engine, _inbound_sync, _scheduler
	_user_service = UserService(users=_stores.users, transactions=_stores.transactions, locks=_locks)
	_post_service = PostService(stores=_stores, policy=_policy)
	_validation_engine = ValidationEngine(
		stores=_stores,
		locks=_locks,
		users=_user_service,
		publication_threshold=settings.publication_threshold,
		suspicion_threshold=settings.suspicion_threshold,
	)
	_moderation_engine = ModerationEngine(
		stores=_stores,
		locks=_locks,
		users=_user_service,
		quarantine_threshold=settings.auto_quarantine_threshold,
	)
	_inbound_sync = InboundSyncService(providers=_providers, stores=_stores, locks=_locks)
	if _scheduler is not None:
		_scheduler.shutdown()
	_scheduler = None


_rebuild()


def configure(
	*,
	stores: Optional[Stores] = None,
	locks: Optional[KeyLocks] = None,
	policy: Optional[AdmissionPolicy] = None,
	providers: Optional[Sequence[ExternalInformationProvider]] = None,
) -> None:
	"""Swap collaborators and rebuild every engine on top of them."""
	global _stores, _locks, _policy, _providers
	if stores is not None:
		_stores = stores
	if locks is not None:
		_locks = locks
	if policy is not None:
		_policy = policy
	if providers is not None:
		_providers = tuple(providers)
	_rebuild()


def configure_postgres(pool: asyncpg.Pool, redis: Optional[RedisProxy] = None) -> None:
	locks: KeyLocks
	if settings.lock_backend == "redis":
		locks = RedisKeyLocks(
			redis or redis_client,
			timeout=settings.lock_timeout_seconds,
			blocking_timeout=settings.lock_blocking_timeout_seconds,
		)
	else:
		locks = LocalKeyLocks()
	configure(stores=postgres_stores(pool), locks=locks)


def reset_memory() -> InMemoryDatabase:
	"""Back the container with a fresh in-memory database (tests, local runs)."""
	global _database
	_database = InMemoryDatabase()
	configure(stores=_database.stores(), locks=LocalKeyLocks())
	return _database


def get_stores() -> Stores:
	return _stores


def get_locks() -> KeyLocks:
	return _locks


def get_user_service() -> UserService:
	return _user_service


def get_post_service() -> PostService:
	return _post_service


def get_validation_engine() -> ValidationEngine:
	return _validation_engine


def get_moderation_engine() -> ModerationEngine:
	return _moderation_engine


def get_inbound_sync_service() -> InboundSyncService:
	return _inbound_sync


def get_inbound_sync_scheduler() -> InboundSyncScheduler:
	global _scheduler
	if _scheduler is None:
		_scheduler = InboundSyncScheduler(_inbound_sync, interval_minutes=settings.inbound_sync_interval_minutes)
	return _scheduler


__all__ = [
	"configure",
	"configure_postgres",
	"get_inbound_sync_scheduler",
	"get_inbound_sync_service",
	"get_locks",
	"get_moderation_engine",
	"get_post_service",
	"get_stores",
	"get_user_service",
	"get_validation_engine",
	"reset_memory",
]
