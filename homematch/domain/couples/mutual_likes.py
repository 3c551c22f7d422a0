"""Mutual-likes aggregation: properties liked by two or more household members.

The fast path is the `get_household_mutual_likes` stored procedure. When it
errors, the same answer is rebuilt client-side from raw like rows, grouping by
property and counting distinct users.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from homematch.domain.couples.cache import CouplesCache
from homematch.domain.couples.exceptions import GatewayError
from homematch.domain.couples.gateway import CouplesGateway
from homematch.domain.couples.models import MUTUAL_LIKES_RPC, MUTUAL_THRESHOLD
from homematch.domain.couples.resolver import HouseholdResolver
from homematch.domain.couples.results import Fetch
from homematch.domain.couples.schemas import LikeRow, MutualLike, parse_like_rows, parse_mutual_like_rows
from homematch.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _PropertyLikes:
	first_liked_at: datetime
	last_liked_at: datetime
	user_ids: list[str] = field(default_factory=list)

	def add(self, row: LikeRow) -> None:
		if row.user_id not in self.user_ids:
			self.user_ids.append(row.user_id)
		if row.created_at < self.first_liked_at:
			self.first_liked_at = row.created_at
		if row.created_at > self.last_liked_at:
			self.last_liked_at = row.created_at


def aggregate_likes(rows: Iterable[LikeRow]) -> list[MutualLike]:
	"""Group like rows by property; keep properties with enough distinct likers."""
	grouped: dict[str, _PropertyLikes] = {}
	for row in rows:
		entry = grouped.get(row.property_id)
		if entry is None:
			entry = grouped[row.property_id] = _PropertyLikes(row.created_at, row.created_at)
		entry.add(row)
	return [
		MutualLike(
			property_id=property_id,
			liked_by_count=len(entry.user_ids),
			first_liked_at=entry.first_liked_at,
			last_liked_at=entry.last_liked_at,
			user_ids=list(entry.user_ids),
		)
		for property_id, entry in grouped.items()
		if len(entry.user_ids) >= MUTUAL_THRESHOLD
	]


class MutualLikesAggregator:
	def __init__(self, gateway: CouplesGateway, cache: CouplesCache, resolver: HouseholdResolver) -> None:
		self._gateway = gateway
		self._cache = cache
		self._resolver = resolver

	async def fetch(self, user_id: str) -> Fetch[list[MutualLike]]:
		try:
			household = await self._resolver.resolve(user_id)
		except Exception as exc:
			logger.exception("Unexpected error resolving household for mutual likes")
			return Fetch.failed(exc)
		if not household.is_ok:
			return household.forward()
		return await self.for_household(household.value)

	async def for_household(self, household_id: str) -> Fetch[list[MutualLike]]:
		try:
			return await self._load(household_id)
		except Exception as exc:
			logger.exception("Unexpected error in mutual likes", extra={"household_id": household_id})
			return Fetch.failed(exc)

	async def _load(self, household_id: str) -> Fetch[list[MutualLike]]:
		cached = self._cache.get_mutual(household_id)
		if cached is not None:
			obs_metrics.inc_mutual_source("cache")
			return Fetch.ok(cached, source="cache")

		try:
			raw = await self._gateway.mutual_likes_rpc(household_id)
		except GatewayError as exc:
			logger.warning(
				"%s failed, aggregating likes client-side: %s",
				MUTUAL_LIKES_RPC,
				exc,
				extra={"household_id": household_id},
			)
			return await self._fallback(household_id)

		result = parse_mutual_like_rows(raw)
		self._cache.set_mutual(household_id, result)
		obs_metrics.inc_mutual_source("rpc")
		return Fetch.ok(result, source="rpc")

	async def _fallback(self, household_id: str) -> Fetch[list[MutualLike]]:
		# Not cached: the next read should try the stored procedure again.
		try:
			rows = await self._gateway.household_likes(household_id)
		except GatewayError as exc:
			logger.warning("Like rows unavailable for fallback: %s", exc, extra={"household_id": household_id})
			return Fetch.gateway_error(exc)
		result = aggregate_likes(parse_like_rows(rows))
		obs_metrics.inc_mutual_source("fallback")
		return Fetch.ok(result, source="fallback")

	async def mutual_property_ids(self, household_id: str) -> set[str]:
		mutual = await self.for_household(household_id)
		return {like.property_id for like in mutual.collapse([])}
