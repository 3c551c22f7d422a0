import itertools
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

from homematch.domain.couples import sockets as couples_sockets
from homematch.domain.couples.cache import CouplesCache
from homematch.domain.couples.exceptions import GatewayError
from homematch.domain.couples.service import CouplesService, set_service
from homematch.infra import postgres
from homematch.infra.redis import redis_client, set_redis_client
from homematch.main import app
from homematch.settings import settings

T0 = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def at(minutes: int = 0, *, days: int = 0) -> datetime:
	return T0 + timedelta(days=days, minutes=minutes)


class FakeGateway:
	"""In-memory stand-in for the Postgres gateway.

	Stored procedures are emulated from the interaction rows unless a test
	overrides their raw output. Every call is counted, and any operation listed
	in `failing` raises `GatewayError`.
	"""

	def __init__(self) -> None:
		self.profiles: dict[str, dict[str, Any]] = {}
		self.interactions: list[dict[str, Any]] = []
		self.properties: dict[str, dict[str, Any]] = {}
		self.resolutions: dict[tuple[str, str], dict[str, Any]] = {}
		self.failing: set[str] = set()
		self.calls: Counter[str] = Counter()
		self.mutual_rows: Optional[list[dict[str, Any]]] = None
		self.activity_rows: Optional[list[dict[str, Any]]] = None
		self._ids = itertools.count(1)

	# test helpers

	def add_member(self, user_id: str, household_id: Optional[str], *, display_name: Optional[str] = None, email: Optional[str] = None) -> None:
		self.profiles[user_id] = {
			"id": user_id,
			"household_id": household_id,
			"display_name": display_name,
			"email": email,
		}

	def add_property(self, property_id: str, **details: Any) -> None:
		self.properties[property_id] = details

	def add_interaction(
		self,
		user_id: str,
		property_id: str,
		interaction_type: str = "like",
		created_at: Optional[datetime] = None,
		**extra: Any,
	) -> dict[str, Any]:
		row = {
			"id": f"i-{next(self._ids)}",
			"user_id": user_id,
			"property_id": property_id,
			"interaction_type": interaction_type,
			"created_at": created_at or T0,
			"household_id": self.profiles.get(user_id, {}).get("household_id"),
			"score_data": extra.pop("score_data", None),
		}
		row.update(extra)
		self.interactions.append(row)
		return row

	def _enter(self, operation: str) -> None:
		self.calls[operation] += 1
		if operation in self.failing:
			raise GatewayError(operation, RuntimeError("boom"))

	def _household_rows(self, household_id: str, *types: str) -> list[dict[str, Any]]:
		return [
			row
			for row in self.interactions
			if row["household_id"] == household_id and (not types or row["interaction_type"] in types)
		]

	# gateway protocol

	async def household_for_user(self, user_id: str) -> Optional[str]:
		self._enter("household_for_user")
		return self.profiles.get(user_id, {}).get("household_id")

	async def mutual_likes_rpc(self, household_id: str) -> list[dict[str, Any]]:
		self._enter("get_household_mutual_likes")
		if self.mutual_rows is not None:
			return list(self.mutual_rows)
		grouped: dict[str, list[dict[str, Any]]] = {}
		for row in self._household_rows(household_id, "like"):
			grouped.setdefault(row["property_id"], []).append(row)
		result = []
		for property_id, rows in grouped.items():
			users = sorted({row["user_id"] for row in rows})
			if len(users) < 2:
				continue
			result.append(
				{
					"property_id": property_id,
					# bigint counts come back from the procedure as text
					"liked_by_count": str(len(users)),
					"first_liked_at": min(row["created_at"] for row in rows),
					"last_liked_at": max(row["created_at"] for row in rows),
					"user_ids": users,
				}
			)
		return result

	async def activity_rpc(self, household_id: str, limit: int, offset: int) -> list[dict[str, Any]]:
		self._enter("get_household_activity_enhanced")
		if self.activity_rows is not None:
			return list(self.activity_rows)
		rows = sorted(self._household_rows(household_id), key=lambda r: r["created_at"], reverse=True)
		result = []
		for row in rows[offset:offset + limit]:
			details = self.properties.get(row["property_id"], {})
			result.append(
				{
					"id": row["id"],
					"user_id": row["user_id"],
					"property_id": row["property_id"],
					"interaction_type": row["interaction_type"],
					"created_at": row["created_at"],
					"user_display_name": self.profiles.get(row["user_id"], {}).get("display_name"),
					"property_address": details.get("address"),
					"property_price": details.get("price"),
					"property_bedrooms": details.get("bedrooms"),
					"property_bathrooms": details.get("bathrooms"),
					"property_images": details.get("images"),
				}
			)
		return result

	async def household_likes(self, household_id: str) -> list[dict[str, Any]]:
		self._enter("household_likes")
		return [
			{"property_id": row["property_id"], "user_id": row["user_id"], "created_at": row["created_at"]}
			for row in self._household_rows(household_id, "like")
		]

	async def count_household_likes(self, household_id: str) -> int:
		self._enter("count_household_likes")
		return len(self._household_rows(household_id, "like"))

	async def recent_interaction_times(self, household_id: str, limit: int) -> list[datetime]:
		self._enter("recent_interaction_times")
		times = sorted((row["created_at"] for row in self._household_rows(household_id)), reverse=True)
		return times[:limit]

	async def other_likers(self, household_id: str, property_id: str, exclude_user_id: str) -> list[str]:
		self._enter("other_likers")
		rows = sorted(
			(
				row
				for row in self._household_rows(household_id, "like")
				if row["property_id"] == property_id and row["user_id"] != exclude_user_id
			),
			key=lambda r: r["created_at"],
		)
		return [row["user_id"] for row in rows]

	async def replace_interaction(self, user_id: str, property_id: str, interaction_type: str) -> Optional[dict[str, Any]]:
		self._enter("replace_interaction")
		self.interactions = [
			row for row in self.interactions if not (row["user_id"] == user_id and row["property_id"] == property_id)
		]
		row = self.add_interaction(user_id, property_id, interaction_type, datetime.now(timezone.utc))
		return {key: row[key] for key in ("id", "user_id", "property_id", "interaction_type", "created_at", "household_id")}

	async def household_members(self, household_id: str) -> list[dict[str, Any]]:
		self._enter("household_members")
		return [
			{"id": p["id"], "display_name": p["display_name"], "email": p["email"]}
			for p in self.profiles.values()
			if p["household_id"] == household_id
		]

	async def household_interactions_with_properties(self, household_id: str) -> list[dict[str, Any]]:
		self._enter("household_interactions_with_properties")
		rows = sorted(
			self._household_rows(household_id, "like", "dislike", "skip"),
			key=lambda r: r["created_at"],
			reverse=True,
		)
		joined = []
		for row in rows:
			details = self.properties.get(row["property_id"], {})
			joined.append(
				{
					**row,
					"address": details.get("address"),
					"price": details.get("price"),
					"bedrooms": details.get("bedrooms"),
					"bathrooms": details.get("bathrooms"),
					"square_feet": details.get("square_feet"),
					"images": details.get("images"),
					"listing_status": details.get("listing_status"),
				}
			)
		return joined

	async def resolved_property_ids(self, household_id: str) -> set[str]:
		self._enter("resolved_property_ids")
		return {prop for (household, prop) in self.resolutions if household == household_id}

	async def upsert_resolution(self, household_id: str, property_id: str, resolution_type: str, resolved_by: str) -> datetime:
		self._enter("upsert_resolution")
		resolved_at = datetime.now(timezone.utc)
		self.resolutions[(household_id, property_id)] = {
			"resolution_type": resolution_type,
			"resolved_by": resolved_by,
			"resolved_at": resolved_at,
		}
		return resolved_at


class FakeClock:
	def __init__(self) -> None:
		self.now = 1000.0

	def __call__(self) -> float:
		return self.now

	def advance(self, seconds: float) -> None:
		self.now += seconds


class RecordingNamespace:
	namespace = "/couples"

	def __init__(self) -> None:
		self.emitted: list[tuple[str, dict, str]] = []

	async def emit(self, event: str, payload: dict, room: str | None = None) -> None:
		self.emitted.append((event, payload, room))


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""API tests authenticate via the X-User-Id header, which is only accepted in dev mode."""
	original_env = settings.environment
	original_cache = settings.couples_cache_enabled
	settings.environment = "dev"
	settings.couples_cache_enabled = True
	try:
		yield
	finally:
		settings.environment = original_env
		settings.couples_cache_enabled = original_cache


@pytest.fixture(autouse=True)
def socket_namespace(monkeypatch):
	namespace = RecordingNamespace()
	monkeypatch.setattr(couples_sockets, "_namespace", namespace)
	return namespace


@pytest.fixture
def gateway() -> FakeGateway:
	return FakeGateway()


@pytest.fixture
def clock() -> FakeClock:
	return FakeClock()


@pytest.fixture
def cache(clock) -> CouplesCache:
	return CouplesCache(settings, timer=clock)


@pytest.fixture
def couples(gateway, cache):
	service = CouplesService(gateway, cache, config=settings)
	set_service(service)
	try:
		yield service
	finally:
		set_service(None)


@pytest.fixture
def household(gateway) -> FakeGateway:
	"""Household h-1 with members alice, bob and carol; dave has no household."""
	gateway.add_member("alice", "h-1", display_name="Alice", email="alice@example.com")
	gateway.add_member("bob", "h-1", display_name="Bob", email="bob@example.com")
	gateway.add_member("carol", "h-1", display_name=None, email="carol@example.com")
	gateway.add_member("dave", None)
	return gateway


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
