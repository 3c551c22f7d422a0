"""Facade over the household matching components.

Read operations collapse every internal `Fetch` to an empty list or `None`
here and nowhere else; they never raise. Writes (recording an interaction,
resolving a dispute) raise `CouplesError` subclasses so the caller can
report them.
"""

from __future__ import annotations

import logging
from typing import Optional

from homematch.domain.couples.activity import ActivityTimelineBuilder
from homematch.domain.couples.cache import CouplesCache
from homematch.domain.couples.disputed import DisputedProperties
from homematch.domain.couples.exceptions import InvalidInteraction
from homematch.domain.couples.gateway import CouplesGateway, PostgresCouplesGateway
from homematch.domain.couples.models import DEFAULT_ACTIVITY_LIMIT, InteractionType
from homematch.domain.couples.mutual_likes import MutualLikesAggregator
from homematch.domain.couples.notifier import InteractionNotifier
from homematch.domain.couples.resolver import HouseholdResolver
from homematch.domain.couples.results import Fetch, FetchStatus
from homematch.domain.couples.stats import HouseholdStatsAggregator
from homematch.domain.couples.schemas import (
	CouplesStats,
	DisputedProperty,
	DisputeResolution,
	HouseholdActivity,
	InteractionRecord,
	MutualLike,
	PotentialMutualLike,
)
from homematch.obs import metrics as obs_metrics
from homematch.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def _degraded(operation: str, result: Fetch) -> None:
	if result.status is FetchStatus.OK:
		return
	obs_metrics.inc_couples_degraded(operation, result.status.value)
	if result.status is not FetchStatus.NO_HOUSEHOLD:
		logger.warning("%s degraded to empty result: %s", operation, result.status.value)


class CouplesService:
	def __init__(self, gateway: CouplesGateway, cache: CouplesCache, *, config: Settings | None = None) -> None:
		self.gateway = gateway
		self.cache = cache
		self.resolver = HouseholdResolver(gateway)
		self.mutual_likes = MutualLikesAggregator(gateway, cache, self.resolver)
		self.activity = ActivityTimelineBuilder(gateway, cache, self.resolver, self.mutual_likes)
		self.stats = HouseholdStatsAggregator(gateway, cache, self.resolver, self.mutual_likes, config=config)
		self.notifier = InteractionNotifier(gateway, cache, self.resolver)
		self.disputed = DisputedProperties(gateway, self.resolver)

	async def get_mutual_likes(self, user_id: str) -> list[MutualLike]:
		result = await self.mutual_likes.fetch(user_id)
		_degraded("mutual_likes", result)
		return result.collapse([])

	async def get_household_activity(
		self,
		user_id: str,
		limit: int = DEFAULT_ACTIVITY_LIMIT,
		offset: int = 0,
	) -> list[HouseholdActivity]:
		result = await self.activity.fetch(user_id, limit, offset)
		_degraded("activity", result)
		return result.collapse([])

	async def get_household_stats(self, user_id: str) -> Optional[CouplesStats]:
		result = await self.stats.fetch(user_id)
		_degraded("stats", result)
		return result.collapse(None)

	async def check_potential_mutual_like(self, user_id: str, property_id: str) -> PotentialMutualLike:
		result = await self.notifier.check_potential_mutual_like(user_id, property_id)
		_degraded("check_mutual", result)
		return result.collapse(PotentialMutualLike())

	async def notify_interaction(self, user_id: str, property_id: str, interaction_type: str) -> None:
		result = await self.notifier.notify_interaction(user_id, property_id, interaction_type)
		_degraded("notify", result)

	def clear_household_cache(self, household_id: str) -> None:
		self.cache.invalidate_household(household_id)

	async def record_interaction(self, user_id: str, property_id: str, interaction_type: str) -> InteractionRecord:
		try:
			kind = InteractionType(interaction_type)
		except ValueError:
			raise InvalidInteraction() from None
		if not property_id:
			raise InvalidInteraction()
		row = await self.gateway.replace_interaction(user_id, property_id, kind.value)
		if row is None:
			raise InvalidInteraction("interaction_not_saved")
		record = InteractionRecord.model_validate(row)
		obs_metrics.inc_interaction_recorded(kind.value)
		await self.notify_interaction(user_id, property_id, kind.value)
		return record

	async def list_disputed(self, user_id: str) -> list[DisputedProperty]:
		return await self.disputed.fetch(user_id)

	async def resolve_disputed(self, user_id: str, property_id: str, resolution_type: str) -> DisputeResolution:
		return await self.disputed.resolve(user_id, property_id, resolution_type)


_service: CouplesService | None = None


def set_service(service: CouplesService | None) -> None:
	global _service
	_service = service


def get_service() -> CouplesService:
	global _service
	if _service is None:
		_service = CouplesService(PostgresCouplesGateway(), CouplesCache(), config=default_settings)
	return _service
