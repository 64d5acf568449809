"""AsyncPG pool management for the trust and moderation core."""

from __future__ import annotations

from importlib import resources
from typing import Optional

import asyncpg

from wanda.settings import settings

_pool: Optional[asyncpg.pool.Pool] = None


async def init_pool() -> asyncpg.pool.Pool:
	global _pool
	if _pool is None:
		_pool = await asyncpg.create_pool(
			dsn=settings.postgres_url,
			min_size=settings.postgres_min_pool_size,
			max_size=settings.postgres_max_pool_size,
		)
	return _pool


def set_pool(pool: Optional[asyncpg.pool.Pool]) -> None:
	global _pool
	_pool = pool


async def get_pool() -> asyncpg.pool.Pool:
	if _pool is None:
		await init_pool()
	assert _pool is not None
	return _pool


async def close_pool() -> None:
	global _pool
	if _pool is not None:
		await _pool.close()
		_pool = None


async def apply_schema(pool: Optional[asyncpg.pool.Pool] = None) -> None:
	"""Create the reference tables if they do not exist yet."""
	target = pool or await get_pool()
	ddl = resources.files("wanda.infra").joinpath("schema.sql").read_text(encoding="utf-8")
	async with target.acquire() as conn:
		await conn.execute(ddl)
