"""Household statistics: mutual likes, raw like count and activity streak."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from homematch.domain.couples.cache import CouplesCache
from homematch.domain.couples.exceptions import GatewayError
from homematch.domain.couples.gateway import CouplesGateway
from homematch.domain.couples.mutual_likes import MutualLikesAggregator
from homematch.domain.couples.resolver import HouseholdResolver
from homematch.domain.couples.results import Fetch
from homematch.domain.couples.schemas import CouplesStats
from homematch.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def _utc_day(value: datetime) -> date:
	if value.tzinfo is None:
		return value.date()
	return value.astimezone(timezone.utc).date()


def activity_streak(timestamps: Iterable[datetime], today: date) -> int:
	"""Count consecutive UTC days with activity, walking back from today.

	The walk stops at the first day without activity, so a household that
	has not been active yet today has a streak of 0.
	"""
	days = {_utc_day(ts) for ts in timestamps if ts is not None}
	streak = 0
	cursor = today
	while cursor in days:
		streak += 1
		cursor -= timedelta(days=1)
	return streak


class HouseholdStatsAggregator:
	def __init__(
		self,
		gateway: CouplesGateway,
		cache: CouplesCache,
		resolver: HouseholdResolver,
		mutual_likes: MutualLikesAggregator,
		*,
		config: Settings | None = None,
	) -> None:
		self._gateway = gateway
		self._cache = cache
		self._resolver = resolver
		self._mutual_likes = mutual_likes
		self._window = (config or default_settings).couples_streak_window

	async def fetch(self, user_id: str, *, today: Optional[date] = None) -> Fetch[CouplesStats]:
		household_id = None
		try:
			household = await self._resolver.resolve(user_id)
			if not household.is_ok:
				return household.forward()
			household_id = household.value
			cached = self._cache.get_stats(household_id)
			if cached is not None:
				return Fetch.ok(cached, source="cache")

			mutual_result = await self._mutual_likes.for_household(household_id)
			mutual = mutual_result.collapse([])
			total_likes = await self._gateway.count_household_likes(household_id)
			recent = await self._gateway.recent_interaction_times(household_id, self._window)

			stats = CouplesStats(
				total_mutual_likes=len(mutual),
				total_household_likes=total_likes,
				activity_streak_days=activity_streak(recent, today or datetime.now(timezone.utc).date()),
				last_mutual_like_at=max((like.last_liked_at for like in mutual), default=None),
			)
			# a degraded mutual-likes read must not stick for the stats TTL
			if mutual_result.is_ok:
				self._cache.set_stats(household_id, stats)
			return Fetch.ok(stats, source="query")
		except GatewayError as exc:
			logger.warning("Household stats unavailable: %s", exc, extra={"household_id": household_id})
			return Fetch.gateway_error(exc)
		except Exception as exc:
			logger.exception("Unexpected error computing household stats", extra={"household_id": household_id})
			return Fetch.failed(exc)
