import asyncio

import pytest

from wanda.core.locking import LockTimeout, RedisKeyLocks
from wanda.infra.redis import redis_client


@pytest.mark.asyncio
async def test_redis_lock_serialises_holders(fake_redis):
	locks = RedisKeyLocks(redis_client, timeout=5, blocking_timeout=2)
	order: list[str] = []

	async def _worker(name: str) -> None:
		async with locks.hold("post:42"):
			order.append(f"{name}:in")
			await asyncio.sleep(0.01)
			order.append(f"{name}:out")

	await asyncio.gather(_worker("a"), _worker("b"))

	assert order in (["a:in", "a:out", "b:in", "b:out"], ["b:in", "b:out", "a:in", "a:out"])
	assert await fake_redis.exists("wanda:lock:post:42") == 0


@pytest.mark.asyncio
async def test_redis_lock_times_out_when_held(fake_redis):
	locks = RedisKeyLocks(redis_client, timeout=5, blocking_timeout=0.05)
	await fake_redis.set("wanda:lock:post:7", "someone-else")

	with pytest.raises(LockTimeout) as excinfo:
		async with locks.hold("post:7"):
			pass

	assert excinfo.value.key == "post:7"


@pytest.mark.asyncio
async def test_redis_lock_uses_namespace(fake_redis):
	locks = RedisKeyLocks(redis_client, namespace="test:", timeout=5, blocking_timeout=1)

	async with locks.hold("user:1"):
		assert await fake_redis.exists("test:user:1") == 1

	assert await fake_redis.exists("test:user:1") == 0
