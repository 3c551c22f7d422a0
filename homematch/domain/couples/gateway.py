"""Data-access gateway for household interactions.

`CouplesGateway` is the contract the couples components depend on;
`PostgresCouplesGateway` fulfils it with asyncpg, calling the household
stored procedures by name and reading interaction rows directly. Driver and
network failures surface as `GatewayError`; rows come back as plain dicts
and are validated by the caller.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Protocol

import asyncpg

from homematch.domain.couples.exceptions import GatewayError
from homematch.domain.couples.models import ACTIVITY_RPC, DISPUTE_REACTIONS, MUTUAL_LIKES_RPC
from homematch.infra.postgres import get_pool

Row = dict[str, Any]

_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)


class CouplesGateway(Protocol):
	async def household_for_user(self, user_id: str) -> Optional[str]:
		...

	async def mutual_likes_rpc(self, household_id: str) -> list[Row]:
		...

	async def activity_rpc(self, household_id: str, limit: int, offset: int) -> list[Row]:
		...

	async def household_likes(self, household_id: str) -> list[Row]:
		...

	async def count_household_likes(self, household_id: str) -> int:
		...

	async def recent_interaction_times(self, household_id: str, limit: int) -> list[datetime]:
		...

	async def other_likers(self, household_id: str, property_id: str, exclude_user_id: str) -> list[str]:
		...

	async def replace_interaction(self, user_id: str, property_id: str, interaction_type: str) -> Optional[Row]:
		...

	async def household_members(self, household_id: str) -> list[Row]:
		...

	async def household_interactions_with_properties(self, household_id: str) -> list[Row]:
		...

	async def resolved_property_ids(self, household_id: str) -> set[str]:
		...

	async def upsert_resolution(
		self,
		household_id: str,
		property_id: str,
		resolution_type: str,
		resolved_by: str,
	) -> datetime:
		...


_MUTUAL_LIKES_SQL = f"SELECT * FROM {MUTUAL_LIKES_RPC}($1)"
_ACTIVITY_SQL = f"SELECT * FROM {ACTIVITY_RPC}($1, $2, $3)"

_HOUSEHOLD_LIKES_SQL = """
SELECT property_id, user_id, created_at
FROM user_property_interactions
WHERE household_id = $1
  AND interaction_type = 'like'
"""

_COUNT_LIKES_SQL = """
SELECT COUNT(*)
FROM user_property_interactions
WHERE household_id = $1
  AND interaction_type = 'like'
"""

_RECENT_TIMES_SQL = """
SELECT created_at
FROM user_property_interactions
WHERE household_id = $1
ORDER BY created_at DESC
LIMIT $2
"""

_OTHER_LIKERS_SQL = """
SELECT user_id
FROM user_property_interactions
WHERE household_id = $1
  AND property_id = $2
  AND interaction_type = 'like'
  AND user_id <> $3
ORDER BY created_at ASC
"""

_DELETE_INTERACTION_SQL = """
DELETE FROM user_property_interactions
WHERE user_id = $1 AND property_id = $2
"""

_INSERT_INTERACTION_SQL = """
INSERT INTO user_property_interactions (user_id, property_id, interaction_type, household_id)
VALUES ($1, $2, $3, (SELECT household_id FROM user_profiles WHERE id = $1))
RETURNING id, user_id, property_id, interaction_type, created_at, household_id
"""

_MEMBERS_SQL = """
SELECT id, display_name, email
FROM user_profiles
WHERE household_id = $1
"""

_INTERACTIONS_WITH_PROPERTIES_SQL = """
SELECT i.id, i.user_id, i.property_id, i.interaction_type, i.created_at, i.score_data,
	p.address, p.price, p.bedrooms, p.bathrooms, p.square_feet, p.images, p.listing_status
FROM user_property_interactions i
LEFT JOIN properties p ON p.id = i.property_id
WHERE i.household_id = $1
  AND i.interaction_type = ANY($2::text[])
ORDER BY i.created_at DESC
"""

_RESOLVED_SQL = """
SELECT property_id
FROM household_property_resolutions
WHERE household_id = $1
"""

_UPSERT_RESOLUTION_SQL = """
INSERT INTO household_property_resolutions
	(household_id, property_id, resolution_type, resolved_by, resolved_at, updated_at)
VALUES ($1, $2, $3, $4, NOW(), NOW())
ON CONFLICT (household_id, property_id)
DO UPDATE SET resolution_type = EXCLUDED.resolution_type,
	resolved_by = EXCLUDED.resolved_by,
	resolved_at = EXCLUDED.resolved_at,
	updated_at = EXCLUDED.updated_at
RETURNING resolved_at
"""


class PostgresCouplesGateway:
	"""asyncpg-backed gateway over `user_profiles` and `user_property_interactions`."""

	def __init__(self, pool_factory: Callable[[], Awaitable[Any]] = get_pool) -> None:
		self._pool_factory = pool_factory

	@asynccontextmanager
	async def _connection(self, operation: str) -> AsyncIterator[asyncpg.Connection]:
		try:
			pool = await self._pool_factory()
			async with pool.acquire() as conn:
				yield conn
		except _DRIVER_ERRORS as exc:
			raise GatewayError(operation, exc) from exc

	async def _fetch(self, operation: str, query: str, *args: Any) -> list[Row]:
		async with self._connection(operation) as conn:
			rows = await conn.fetch(query, *args)
		return [dict(row) for row in rows or []]

	async def household_for_user(self, user_id: str) -> Optional[str]:
		async with self._connection("household_for_user") as conn:
			household_id = await conn.fetchval("SELECT household_id FROM user_profiles WHERE id = $1", user_id)
		return str(household_id) if household_id else None

	async def mutual_likes_rpc(self, household_id: str) -> list[Row]:
		return await self._fetch(MUTUAL_LIKES_RPC, _MUTUAL_LIKES_SQL, household_id)

	async def activity_rpc(self, household_id: str, limit: int, offset: int) -> list[Row]:
		return await self._fetch(ACTIVITY_RPC, _ACTIVITY_SQL, household_id, limit, offset)

	async def household_likes(self, household_id: str) -> list[Row]:
		return await self._fetch("household_likes", _HOUSEHOLD_LIKES_SQL, household_id)

	async def count_household_likes(self, household_id: str) -> int:
		async with self._connection("count_household_likes") as conn:
			count = await conn.fetchval(_COUNT_LIKES_SQL, household_id)
		return int(count or 0)

	async def recent_interaction_times(self, household_id: str, limit: int) -> list[datetime]:
		rows = await self._fetch("recent_interaction_times", _RECENT_TIMES_SQL, household_id, limit)
		return [row["created_at"] for row in rows if row.get("created_at") is not None]

	async def other_likers(self, household_id: str, property_id: str, exclude_user_id: str) -> list[str]:
		rows = await self._fetch("other_likers", _OTHER_LIKERS_SQL, household_id, property_id, exclude_user_id)
		return [str(row["user_id"]) for row in rows]

	async def replace_interaction(self, user_id: str, property_id: str, interaction_type: str) -> Optional[Row]:
		async with self._connection("replace_interaction") as conn:
			async with conn.transaction():
				await conn.execute(_DELETE_INTERACTION_SQL, user_id, property_id)
				record = await conn.fetchrow(_INSERT_INTERACTION_SQL, user_id, property_id, interaction_type)
		return dict(record) if record else None

	async def household_members(self, household_id: str) -> list[Row]:
		return await self._fetch("household_members", _MEMBERS_SQL, household_id)

	async def household_interactions_with_properties(self, household_id: str) -> list[Row]:
		return await self._fetch(
			"household_interactions_with_properties",
			_INTERACTIONS_WITH_PROPERTIES_SQL,
			household_id,
			sorted(DISPUTE_REACTIONS),
		)

	async def resolved_property_ids(self, household_id: str) -> set[str]:
		rows = await self._fetch("resolved_property_ids", _RESOLVED_SQL, household_id)
		return {str(row["property_id"]) for row in rows if row.get("property_id")}

	async def upsert_resolution(
		self,
		household_id: str,
		property_id: str,
		resolution_type: str,
		resolved_by: str,
	) -> datetime:
		async with self._connection("upsert_resolution") as conn:
			return await conn.fetchval(_UPSERT_RESOLUTION_SQL, household_id, property_id, resolution_type, resolved_by)
