"""Household activity timeline, annotated with mutual-like status."""

from __future__ import annotations

import asyncio
import logging

from homematch.domain.couples.cache import CouplesCache
from homematch.domain.couples.exceptions import GatewayError
from homematch.domain.couples.gateway import CouplesGateway, Row
from homematch.domain.couples.models import ACTIVITY_RPC, DEFAULT_ACTIVITY_LIMIT, InteractionType
from homematch.domain.couples.mutual_likes import MutualLikesAggregator
from homematch.domain.couples.resolver import HouseholdResolver
from homematch.domain.couples.results import Fetch
from homematch.domain.couples.schemas import HouseholdActivity, parse_activity_rows

logger = logging.getLogger(__name__)


class ActivityTimelineBuilder:
	def __init__(
		self,
		gateway: CouplesGateway,
		cache: CouplesCache,
		resolver: HouseholdResolver,
		mutual_likes: MutualLikesAggregator,
	) -> None:
		self._gateway = gateway
		self._cache = cache
		self._resolver = resolver
		self._mutual_likes = mutual_likes

	async def fetch(
		self,
		user_id: str,
		limit: int = DEFAULT_ACTIVITY_LIMIT,
		offset: int = 0,
	) -> Fetch[list[HouseholdActivity]]:
		household_id = None
		try:
			household = await self._resolver.resolve(user_id)
			if not household.is_ok:
				return household.forward()
			household_id = household.value
			cached = self._cache.get_activity(household_id, limit, offset)
			if cached is not None:
				return Fetch.ok(cached, source="cache")

			raw_rows, mutual_ids = await asyncio.gather(
				self._activity_rows(household_id, limit, offset),
				self._mutual_likes.mutual_property_ids(household_id),
			)
			timeline = _annotate(parse_activity_rows(raw_rows), mutual_ids)
			self._cache.set_activity(household_id, limit, offset, timeline)
			return Fetch.ok(timeline, source="rpc")
		except Exception as exc:
			logger.exception("Unexpected error building activity timeline", extra={"household_id": household_id})
			return Fetch.failed(exc)

	async def _activity_rows(self, household_id: str, limit: int, offset: int) -> list[Row]:
		try:
			return await self._gateway.activity_rpc(household_id, limit, offset)
		except GatewayError as exc:
			logger.warning("%s failed, treating as empty: %s", ACTIVITY_RPC, exc, extra={"household_id": household_id})
			return []


def _annotate(entries: list[HouseholdActivity], mutual_ids: set[str]) -> list[HouseholdActivity]:
	like = InteractionType.LIKE.value
	return [
		entry.model_copy(update={"is_mutual": entry.interaction_type == like and entry.property_id in mutual_ids})
		for entry in entries
	]
