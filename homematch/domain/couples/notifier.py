"""Post-write hook: cache invalidation and partner notification.

Runs after an interaction is recorded. Invalidation is unconditional; for
likes it also checks whether another household member already liked the
property, and if so tells that partner in realtime and appends an audit
event. Nothing here raises to the caller.
"""

from __future__ import annotations

import logging

from homematch.domain.couples import events, sockets
from homematch.domain.couples.cache import CouplesCache
from homematch.domain.couples.exceptions import GatewayError
from homematch.domain.couples.gateway import CouplesGateway
from homematch.domain.couples.models import InteractionType
from homematch.domain.couples.resolver import HouseholdResolver
from homematch.domain.couples.results import Fetch
from homematch.domain.couples.schemas import PotentialMutualLike
from homematch.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class InteractionNotifier:
	def __init__(self, gateway: CouplesGateway, cache: CouplesCache, resolver: HouseholdResolver) -> None:
		self._gateway = gateway
		self._cache = cache
		self._resolver = resolver

	async def check_potential_mutual_like(self, user_id: str, property_id: str) -> Fetch[PotentialMutualLike]:
		try:
			household = await self._resolver.resolve(user_id)
			if not household.is_ok:
				return household.forward()
			return await self._check(household.value, user_id, property_id)
		except Exception as exc:
			logger.exception("Unexpected error checking potential mutual like")
			return Fetch.failed(exc)

	async def _check(self, household_id: str, user_id: str, property_id: str) -> Fetch[PotentialMutualLike]:
		try:
			partners = await self._gateway.other_likers(household_id, property_id, user_id)
		except GatewayError as exc:
			logger.warning("Partner like lookup failed: %s", exc, extra={"household_id": household_id})
			return Fetch.gateway_error(exc)
		if not partners:
			return Fetch.ok(PotentialMutualLike(), source="query")
		return Fetch.ok(PotentialMutualLike(would_be_mutual=True, partner_user_id=partners[0]), source="query")

	async def notify_interaction(self, user_id: str, property_id: str, interaction_type: str) -> Fetch[PotentialMutualLike]:
		"""Invalidate the household's cached views and surface any new mutual like."""
		try:
			household = await self._resolver.resolve(user_id)
			if not household.is_ok:
				return household.forward()
			household_id = household.value
			self._cache.invalidate_household(household_id)

			result: Fetch[PotentialMutualLike] = Fetch.ok(PotentialMutualLike(), source="skipped")
			if interaction_type == InteractionType.LIKE.value:
				result = await self._check(household_id, user_id, property_id)
				if result.is_ok and result.value.would_be_mutual:
					obs_metrics.inc_mutual_detected()
					await self._announce_mutual(household_id, user_id, property_id, result.value.partner_user_id)
			await self._broadcast(household_id, user_id, property_id, interaction_type)
			return result
		except Exception as exc:
			logger.exception("Unexpected error notifying interaction")
			return Fetch.failed(exc)

	async def _announce_mutual(self, household_id: str, user_id: str, property_id: str, partner_user_id: str) -> None:
		logger.info(
			"Mutual like on property %s",
			property_id,
			extra={"household_id": household_id, "partner_user_id": partner_user_id},
		)
		try:
			await sockets.emit_mutual_like(
				partner_user_id,
				{"property_id": property_id, "partner_user_id": user_id},
			)
		except Exception:
			logger.warning("Failed to emit mutual like to partner", exc_info=True)
		try:
			await events.log_couples_event(
				"mutual_like.created",
				{
					"household_id": household_id,
					"property_id": property_id,
					"user_id": user_id,
					"partner_user_id": partner_user_id,
				},
			)
		except Exception:
			logger.warning("Failed to append mutual like event", exc_info=True)

	async def _broadcast(self, household_id: str, user_id: str, property_id: str, interaction_type: str) -> None:
		try:
			await sockets.emit_household_activity(
				household_id,
				{"user_id": user_id, "property_id": property_id, "interaction_type": interaction_type},
			)
		except Exception:
			logger.warning("Failed to emit household activity", exc_info=True)
