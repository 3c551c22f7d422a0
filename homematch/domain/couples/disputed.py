"""Disputed properties: one member liked, another passed.

Only each member's latest like/dislike/skip on a property counts, and
properties the household already resolved are skipped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from homematch.domain.couples.exceptions import GatewayError, InvalidResolution, NoHousehold
from homematch.domain.couples.gateway import CouplesGateway, Row
from homematch.domain.couples.models import (
	DISPUTE_REACTIONS,
	FALLBACK_MEMBER_NAME,
	NEGATIVE_REACTIONS,
	InteractionType,
	ResolutionType,
)
from homematch.domain.couples.resolver import HouseholdResolver
from homematch.domain.couples.results import FetchStatus
from homematch.domain.couples.schemas import DisputedProperty, DisputeResolution, PartnerReaction, PropertySummary

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_PROPERTY_FIELDS = ("address", "price", "bedrooms", "bathrooms", "square_feet", "images", "listing_status")


def _score_data(value: Any) -> Optional[dict[str, Any]]:
	if isinstance(value, str):
		try:
			value = json.loads(value)
		except ValueError:
			return None
	return value if isinstance(value, dict) else None


def _timestamp(value: Any) -> datetime:
	if not isinstance(value, datetime):
		return _EPOCH
	return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@dataclass(slots=True)
class _Reaction:
	user_id: str
	interaction_type: str
	created_at: datetime
	score_data: Optional[dict[str, Any]] = None


@dataclass(slots=True)
class _PropertyReactions:
	summary: Optional[PropertySummary]
	# user id -> latest reaction, in order of first appearance
	latest: dict[str, _Reaction] = field(default_factory=dict)

	def add(self, reaction: _Reaction) -> None:
		current = self.latest.get(reaction.user_id)
		if current is None or reaction.created_at > current.created_at:
			self.latest[reaction.user_id] = reaction


def _summary(row: Row) -> Optional[PropertySummary]:
	details = {key: row.get(key) for key in _PROPERTY_FIELDS}
	# LEFT JOIN with no matching property
	if all(value is None for value in details.values()):
		return None
	return PropertySummary.model_validate({k: v for k, v in details.items() if v is not None})


def _group(rows: list[Row], resolved: set[str]) -> dict[str, _PropertyReactions]:
	grouped: dict[str, _PropertyReactions] = {}
	for row in rows:
		property_id = str(row.get("property_id") or "")
		if not property_id or property_id in resolved:
			continue
		entry = grouped.get(property_id)
		if entry is None:
			entry = grouped[property_id] = _PropertyReactions(summary=_summary(row))
		interaction_type = row.get("interaction_type")
		if interaction_type not in DISPUTE_REACTIONS or not row.get("user_id"):
			continue
		entry.add(
			_Reaction(
				user_id=str(row["user_id"]),
				interaction_type=interaction_type,
				created_at=_timestamp(row.get("created_at")),
				score_data=_score_data(row.get("score_data")),
			)
		)
	return grouped


def _partner(member: Row, reaction: _Reaction) -> PartnerReaction:
	email = member.get("email") or ""
	notes = (reaction.score_data or {}).get("notes")
	return PartnerReaction(
		user_id=str(member["id"]),
		user_name=member.get("display_name") or email or FALLBACK_MEMBER_NAME,
		user_email=email,
		interaction_type=reaction.interaction_type,
		created_at=reaction.created_at,
		score_data=reaction.score_data,
		notes=notes if isinstance(notes, str) else None,
	)


def find_disputed(rows: list[Row], members: list[Row], resolved: set[str]) -> list[DisputedProperty]:
	"""Build the disputed list from newest-first interaction rows."""
	if len(members) < 2:
		return []
	by_id = {str(member["id"]): member for member in members if member.get("id")}
	disputed: list[DisputedProperty] = []
	for property_id, entry in _group(rows, resolved).items():
		reactions = list(entry.latest.values())
		if len(reactions) < 2:
			continue
		kinds = {reaction.interaction_type for reaction in reactions}
		if InteractionType.LIKE.value not in kinds or not kinds & NEGATIVE_REACTIONS:
			continue
		first, second = reactions[0], reactions[1]
		if first.user_id not in by_id or second.user_id not in by_id:
			continue
		disputed.append(
			DisputedProperty(
				property_id=property_id,
				property=entry.summary or PropertySummary(),
				partner1=_partner(by_id[first.user_id], first),
				partner2=_partner(by_id[second.user_id], second),
				last_updated=max(first.created_at, second.created_at),
			)
		)
	disputed.sort(key=lambda item: item.last_updated, reverse=True)
	return disputed


class DisputedProperties:
	def __init__(self, gateway: CouplesGateway, resolver: HouseholdResolver) -> None:
		self._gateway = gateway
		self._resolver = resolver

	async def _household(self, user_id: str) -> str:
		household = await self._resolver.resolve(user_id)
		if household.status is FetchStatus.GATEWAY_ERROR:
			raise household.error
		if not household.is_ok:
			raise NoHousehold()
		return household.value

	async def fetch(self, user_id: str) -> list[DisputedProperty]:
		household_id = await self._household(user_id)
		members = await self._gateway.household_members(household_id)
		if len(members) < 2:
			return []
		try:
			resolved = await self._gateway.resolved_property_ids(household_id)
		except GatewayError:
			# treat every property as unresolved
			logger.warning("Could not read property resolutions", exc_info=True, extra={"household_id": household_id})
			resolved = set()
		rows = await self._gateway.household_interactions_with_properties(household_id)
		return find_disputed(rows, members, resolved)

	async def resolve(self, user_id: str, property_id: str, resolution_type: str) -> DisputeResolution:
		try:
			resolution = ResolutionType(resolution_type)
		except ValueError:
			raise InvalidResolution() from None
		if not property_id:
			raise InvalidResolution()
		household_id = await self._household(user_id)
		resolved_at = await self._gateway.upsert_resolution(household_id, property_id, resolution.value, user_id)
		logger.info(
			"Resolved disputed property %s as %s",
			property_id,
			resolution.value,
			extra={"household_id": household_id},
		)
		return DisputeResolution(
			property_id=property_id,
			resolution_type=resolution,
			resolved_at=resolved_at or datetime.now(timezone.utc),
		)
