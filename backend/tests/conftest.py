import sys
from pathlib import Path
from typing import Optional

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from wanda.core.locking import LocalKeyLocks
from wanda.core.repositories import Stores
from wanda.domain.identity.models import Department, Role, User
from wanda.domain.identity.service import UserService
from wanda.domain.identity.trust import TrustScore
from wanda.domain.moderation.engine import ModerationEngine
from wanda.domain.posts.admission import PostService
from wanda.domain.posts.models import Post, PostCategory, PostStatus, VisibilityScope
from wanda.domain.validation.engine import ValidationEngine
from wanda.infra.memory import InMemoryDatabase


@pytest_asyncio.fixture
async def fake_redis():
	from wanda.infra.redis import redis_client

	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	redis_client.set_client(client)
	try:
		yield client
	finally:
		redis_client.set_client(original)
		await client.flushall()


@pytest.fixture
def database() -> InMemoryDatabase:
	return InMemoryDatabase()


@pytest.fixture
def stores(database: InMemoryDatabase) -> Stores:
	return database.stores()


@pytest.fixture
def locks() -> LocalKeyLocks:
	return LocalKeyLocks()


@pytest.fixture
def user_service(stores: Stores, locks: LocalKeyLocks) -> UserService:
	return UserService(users=stores.users, transactions=stores.transactions, locks=locks)


@pytest.fixture
def post_service(stores: Stores) -> PostService:
	return PostService(stores=stores)


@pytest.fixture
def validation_engine(stores: Stores, locks: LocalKeyLocks, user_service: UserService) -> ValidationEngine:
	return ValidationEngine(stores=stores, locks=locks, users=user_service)


@pytest.fixture
def moderation_engine(stores: Stores, locks: LocalKeyLocks, user_service: UserService) -> ModerationEngine:
	return ModerationEngine(stores=stores, locks=locks, users=user_service)


def add_user(
	database: InMemoryDatabase,
	*,
	role: Role = Role.STUDENT,
	trust: int = 50,
	department: Department = Department.COMPUTER_SCIENCE,
	matricule: Optional[str] = None,
) -> User:
	user = User(
		matricule=matricule or f"M{len(database.users) + 1:05d}",
		full_name=f"Member {len(database.users) + 1}",
		department=department,
		level="L2",
		role=role,
		trust_score=TrustScore(trust),
	)
	database.users[user.id] = user
	return user


def add_post(
	database: InMemoryDatabase,
	author: User,
	*,
	status: PostStatus = PostStatus.PENDING,
	category: PostCategory = PostCategory.INFO,
) -> Post:
	post = Post(
		author_id=author.id,
		title="Exam room changed",
		content="The algebra exam moves to amphi B.",
		category=category,
		status=status,
		visibility=VisibilityScope(department=author.department),
	)
	database.posts[post.id] = post
	return post


@pytest.fixture
def make_user(database: InMemoryDatabase):
	def _make(**kwargs) -> User:
		return add_user(database, **kwargs)

	return _make


@pytest.fixture
def make_post(database: InMemoryDatabase):
	def _make(author: User, **kwargs) -> Post:
		return add_post(database, author, **kwargs)

	return _make
