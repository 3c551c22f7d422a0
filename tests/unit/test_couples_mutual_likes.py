import pytest

from conftest import at
from homematch.domain.couples.mutual_likes import aggregate_likes
from homematch.domain.couples.results import FetchStatus
from homematch.domain.couples.schemas import LikeRow

MUTUAL_RPC = "get_household_mutual_likes"


def _key(likes):
	return {(like.property_id, like.liked_by_count, frozenset(like.user_ids)) for like in likes}


def test_aggregate_likes_groups_by_distinct_user():
	rows = [
		LikeRow(property_id="p1", user_id="alice", created_at=at(5)),
		LikeRow(property_id="p1", user_id="bob", created_at=at(1)),
		LikeRow(property_id="p1", user_id="alice", created_at=at(9)),
		LikeRow(property_id="p2", user_id="alice", created_at=at(2)),
	]

	result = aggregate_likes(rows)

	assert len(result) == 1
	like = result[0]
	assert like.property_id == "p1"
	assert like.liked_by_count == 2
	assert like.user_ids == ["alice", "bob"]
	assert like.first_liked_at == at(1)
	assert like.last_liked_at == at(9)


def test_aggregate_likes_ignores_duplicate_likes_from_one_user():
	rows = [
		LikeRow(property_id="p1", user_id="alice", created_at=at(1)),
		LikeRow(property_id="p1", user_id="alice", created_at=at(2)),
	]
	assert aggregate_likes(rows) == []


@pytest.mark.asyncio
async def test_mutual_likes_from_stored_procedure(couples, household):
	household.add_interaction("alice", "p1", "like", at(1))
	household.add_interaction("bob", "p1", "like", at(2))

	result = await couples.mutual_likes.fetch("alice")

	assert result.status is FetchStatus.OK
	assert result.source == "rpc"
	assert len(result.value) == 1
	like = result.value[0]
	assert like.property_id == "p1"
	assert like.liked_by_count == 2
	assert set(like.user_ids) == {"alice", "bob"}
	assert like.first_liked_at == at(1)
	assert like.last_liked_at == at(2)


@pytest.mark.asyncio
async def test_fallback_matches_stored_procedure(couples, household):
	household.add_interaction("alice", "p1", "like", at(1))
	household.add_interaction("bob", "p1", "like", at(2))
	household.add_interaction("carol", "p1", "like", at(3))
	household.add_interaction("alice", "p2", "like", at(4))
	household.add_interaction("bob", "p3", "like", at(5))
	household.add_interaction("carol", "p3", "like", at(6))
	household.add_interaction("alice", "p3", "dislike", at(7))

	via_rpc = await couples.mutual_likes.for_household("h-1")
	couples.clear_household_cache("h-1")
	household.failing.add(MUTUAL_RPC)
	via_fallback = await couples.mutual_likes.for_household("h-1")

	assert via_rpc.source == "rpc"
	assert via_fallback.source == "fallback"
	assert _key(via_rpc.value) == _key(via_fallback.value)
	assert {like.property_id: (like.first_liked_at, like.last_liked_at) for like in via_rpc.value} == {
		like.property_id: (like.first_liked_at, like.last_liked_at) for like in via_fallback.value
	}


@pytest.mark.asyncio
async def test_fallback_does_not_count_duplicate_likes(couples, household):
	household.failing.add(MUTUAL_RPC)
	household.add_interaction("alice", "p1", "like", at(1))
	household.add_interaction("alice", "p1", "like", at(2))

	assert await couples.get_mutual_likes("alice") == []


@pytest.mark.asyncio
async def test_fallback_result_is_not_cached(couples, household):
	household.add_interaction("alice", "p1", "like", at(1))
	household.add_interaction("bob", "p1", "like", at(2))
	household.failing.add(MUTUAL_RPC)

	first = await couples.mutual_likes.for_household("h-1")
	household.failing.clear()
	second = await couples.mutual_likes.for_household("h-1")

	assert first.source == "fallback"
	assert second.source == "rpc"
	assert household.calls[MUTUAL_RPC] == 2


@pytest.mark.asyncio
async def test_second_read_is_served_from_cache(couples, household):
	household.add_interaction("alice", "p1", "like", at(1))
	household.add_interaction("bob", "p1", "like", at(2))

	first = await couples.get_mutual_likes("alice")
	second = await couples.get_mutual_likes("bob")

	assert first == second
	assert household.calls[MUTUAL_RPC] == 1


@pytest.mark.asyncio
async def test_cache_disabled_always_hits_gateway(gateway, household):
	from homematch.domain.couples.cache import CouplesCache
	from homematch.domain.couples.service import CouplesService

	service = CouplesService(gateway, CouplesCache(enabled=False))
	await service.get_mutual_likes("alice")
	await service.get_mutual_likes("alice")

	assert gateway.calls[MUTUAL_RPC] == 2


@pytest.mark.asyncio
async def test_gateway_error_when_fallback_also_fails(couples, household):
	household.failing.update({MUTUAL_RPC, "household_likes"})

	result = await couples.mutual_likes.fetch("alice")

	assert result.status is FetchStatus.GATEWAY_ERROR
	assert await couples.get_mutual_likes("alice") == []


@pytest.mark.asyncio
async def test_unexpected_error_degrades_to_empty(couples, household, monkeypatch):
	async def _explode(_household_id):
		raise RuntimeError("unexpected")

	monkeypatch.setattr(household, "mutual_likes_rpc", _explode)

	result = await couples.mutual_likes.fetch("alice")

	assert result.status is FetchStatus.FAILED
	assert await couples.get_mutual_likes("alice") == []


@pytest.mark.asyncio
async def test_procedure_rows_are_coerced_and_malformed_rows_dropped(couples, household):
	household.mutual_rows = [
		{"property_id": "p1", "liked_by_count": "2", "first_liked_at": at(1), "last_liked_at": at(2), "user_ids": None},
		{"property_id": "p2", "liked_by_count": 1, "first_liked_at": at(1), "last_liked_at": at(2)},
		{"liked_by_count": 3, "first_liked_at": at(1), "last_liked_at": at(2)},
	]

	result = await couples.get_mutual_likes("alice")

	assert [like.property_id for like in result] == ["p1"]
	assert result[0].liked_by_count == 2
	assert result[0].user_ids == []


@pytest.mark.asyncio
async def test_no_household_skips_gateway(couples, household):
	result = await couples.mutual_likes.fetch("dave")

	assert result.status is FetchStatus.NO_HOUSEHOLD
	assert household.calls[MUTUAL_RPC] == 0
