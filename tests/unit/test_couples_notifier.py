import pytest

from conftest import at
from homematch.domain.couples import events
from homematch.domain.couples.results import FetchStatus
from homematch.settings import settings


@pytest.mark.asyncio
async def test_check_finds_earliest_partner_like(couples, household):
	household.add_interaction("carol", "p1", "like", at(5))
	household.add_interaction("alice", "p1", "like", at(1))

	result = await couples.check_potential_mutual_like("bob", "p1")

	assert result.would_be_mutual is True
	assert result.partner_user_id == "alice"


@pytest.mark.asyncio
async def test_check_ignores_own_and_negative_reactions(couples, household):
	household.add_interaction("bob", "p1", "like", at(1))
	household.add_interaction("alice", "p1", "dislike", at(2))

	result = await couples.check_potential_mutual_like("bob", "p1")

	assert result.would_be_mutual is False
	assert result.partner_user_id is None


@pytest.mark.asyncio
async def test_check_gateway_error_is_not_mutual(couples, household):
	household.failing.add("other_likers")

	result = await couples.notifier.check_potential_mutual_like("bob", "p1")

	assert result.status is FetchStatus.GATEWAY_ERROR
	assert (await couples.check_potential_mutual_like("bob", "p1")).would_be_mutual is False


@pytest.mark.asyncio
async def test_notify_invalidates_household_caches(couples, cache, household):
	household.add_interaction("alice", "p1", "like", at(1))
	household.add_interaction("bob", "p1", "like", at(2))
	await couples.get_mutual_likes("alice")
	await couples.get_household_activity("alice")
	await couples.get_household_stats("alice")

	await couples.notify_interaction("carol", "p9", "view")

	assert cache.get_mutual("h-1") is None
	assert cache.get_activity("h-1", 20, 0) is None
	assert cache.get_stats("h-1") is None
	assert household.calls["other_likers"] == 0


@pytest.mark.asyncio
async def test_mutual_like_notifies_partner_and_appends_event(couples, household, socket_namespace, fake_redis):
	household.add_interaction("alice", "p1", "like", at(1))
	household.add_interaction("bob", "p1", "like", at(2))

	result = await couples.notifier.notify_interaction("bob", "p1", "like")

	assert result.value.would_be_mutual is True
	assert ("couples:mutual_like", {"property_id": "p1", "partner_user_id": "bob"}, "user:alice") in socket_namespace.emitted
	assert (
		"couples:activity",
		{"user_id": "bob", "property_id": "p1", "interaction_type": "like"},
		"household:h-1",
	) in socket_namespace.emitted
	entries = await fake_redis.xrange(settings.couples_events_stream)
	assert len(entries) == 1
	_, fields = entries[0]
	assert fields["event"] == "mutual_like.created"
	assert fields["household_id"] == "h-1"
	assert fields["partner_user_id"] == "alice"


@pytest.mark.asyncio
async def test_like_without_partner_only_broadcasts_activity(couples, household, socket_namespace, fake_redis):
	await couples.notify_interaction("alice", "p1", "like")

	assert [event for event, _, _ in socket_namespace.emitted] == ["couples:activity"]
	assert await fake_redis.xrange(settings.couples_events_stream) == []


@pytest.mark.asyncio
async def test_notify_survives_delivery_failures(couples, household, socket_namespace, monkeypatch):
	household.add_interaction("alice", "p1", "like", at(1))

	async def _fail(*_args, **_kwargs):
		raise ConnectionError("down")

	monkeypatch.setattr(socket_namespace, "emit", _fail)
	monkeypatch.setattr(events, "log_couples_event", _fail)

	result = await couples.notifier.notify_interaction("bob", "p1", "like")

	assert result.status is FetchStatus.OK
	assert result.value.partner_user_id == "alice"


@pytest.mark.asyncio
async def test_notify_without_namespace_is_quiet(couples, household, monkeypatch):
	from homematch.domain.couples import sockets

	monkeypatch.setattr(sockets, "_namespace", None)
	household.add_interaction("alice", "p1", "like", at(1))

	await couples.notify_interaction("bob", "p1", "like")


@pytest.mark.asyncio
async def test_notify_without_household_is_noop(couples, household, socket_namespace):
	result = await couples.notifier.notify_interaction("dave", "p1", "like")

	assert result.status is FetchStatus.NO_HOUSEHOLD
	assert socket_namespace.emitted == []
	assert household.calls["other_likers"] == 0
