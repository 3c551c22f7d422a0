"""Maps a user to the household they currently belong to."""

from __future__ import annotations

import logging

from homematch.domain.couples.exceptions import GatewayError
from homematch.domain.couples.gateway import CouplesGateway
from homematch.domain.couples.results import Fetch

logger = logging.getLogger(__name__)


class HouseholdResolver:
	"""Point-in-time household lookup; never cached so membership changes apply at once."""

	def __init__(self, gateway: CouplesGateway) -> None:
		self._gateway = gateway

	async def resolve(self, user_id: str) -> Fetch[str]:
		try:
			household_id = await self._gateway.household_for_user(user_id)
		except GatewayError as exc:
			logger.warning("Household lookup failed for user %s: %s", user_id, exc)
			return Fetch.gateway_error(exc)
		if not household_id:
			return Fetch.no_household()
		return Fetch.ok(str(household_id), source="query")
