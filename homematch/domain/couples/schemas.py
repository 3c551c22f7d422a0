"""Typed entities for household matching and the validating row parse.

Raw gateway rows are loosely shaped (ids may arrive as UUIDs, counts as
numeric strings, arrays may be absent). Everything is validated here, at the
gateway boundary; rows that fail validation are dropped and counted.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from homematch.domain.couples.models import (
	MUTUAL_THRESHOLD,
	UNKNOWN_ADDRESS,
	UNKNOWN_DISPLAY_NAME,
	InteractionType,
	ResolutionType,
)
from homematch.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _as_id(value: Any) -> Any:
	if value is None or isinstance(value, str):
		return value.strip() if isinstance(value, str) else value
	# asyncpg hands back UUID objects; ids are opaque strings everywhere else
	return str(value)


def _as_utc(value: datetime) -> datetime:
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value.astimezone(timezone.utc)


def _as_number(value: Any) -> Any:
	if value is None or value == "":
		return 0
	if isinstance(value, Decimal):
		return float(value)
	return value


def _as_str_list(value: Any) -> list[str]:
	if not isinstance(value, (list, tuple, set)):
		return []
	return [str(item) for item in value if item is not None]


class MutualLike(BaseModel):
	"""A property liked by at least two distinct household members."""

	property_id: str = Field(min_length=1)
	liked_by_count: int = Field(ge=MUTUAL_THRESHOLD)
	first_liked_at: datetime
	last_liked_at: datetime
	user_ids: list[str] = Field(default_factory=list)

	_ids = field_validator("property_id", mode="before")(_as_id)

	@field_validator("user_ids", mode="before")
	@classmethod
	def _user_ids(cls, value: Any) -> list[str]:
		return list(dict.fromkeys(_as_str_list(value)))

	@field_validator("first_liked_at", "last_liked_at")
	@classmethod
	def _utc(cls, value: datetime) -> datetime:
		return _as_utc(value)

	@model_validator(mode="after")
	def _ordered(self) -> "MutualLike":
		if self.first_liked_at > self.last_liked_at:
			raise ValueError("first_liked_at after last_liked_at")
		if self.user_ids and len(self.user_ids) != self.liked_by_count:
			raise ValueError("liked_by_count does not match user_ids")
		return self


class HouseholdActivity(BaseModel):
	"""One member interaction, denormalised with property details for display."""

	model_config = ConfigDict(use_enum_values=True)

	id: str = Field(min_length=1)
	user_id: str = Field(min_length=1)
	property_id: str = Field(min_length=1)
	interaction_type: InteractionType
	created_at: datetime
	user_display_name: str = UNKNOWN_DISPLAY_NAME
	property_address: str = ""
	property_price: float = 0
	property_bedrooms: int = 0
	property_bathrooms: float = 0
	property_images: list[str] = Field(default_factory=list)
	is_mutual: bool = False

	_ids = field_validator("id", "user_id", "property_id", mode="before")(_as_id)
	_numbers = field_validator("property_price", "property_bedrooms", "property_bathrooms", mode="before")(_as_number)

	@field_validator("user_display_name", mode="before")
	@classmethod
	def _display_name(cls, value: Any) -> str:
		return str(value) if value else UNKNOWN_DISPLAY_NAME

	@field_validator("property_address", mode="before")
	@classmethod
	def _address(cls, value: Any) -> str:
		return str(value) if value else ""

	@field_validator("property_images", mode="before")
	@classmethod
	def _images(cls, value: Any) -> list[str]:
		return _as_str_list(value)

	@field_validator("created_at")
	@classmethod
	def _utc(cls, value: datetime) -> datetime:
		return _as_utc(value)


class LikeRow(BaseModel):
	"""A raw like interaction used by the client-side mutual aggregation."""

	property_id: str = Field(min_length=1)
	user_id: str = Field(min_length=1)
	created_at: datetime

	_ids = field_validator("property_id", "user_id", mode="before")(_as_id)

	@field_validator("created_at")
	@classmethod
	def _utc(cls, value: datetime) -> datetime:
		return _as_utc(value)


class CouplesStats(BaseModel):
	total_mutual_likes: int = 0
	total_household_likes: int = 0
	activity_streak_days: int = 0
	last_mutual_like_at: Optional[datetime] = None


class PotentialMutualLike(BaseModel):
	would_be_mutual: bool = False
	partner_user_id: Optional[str] = None


class InteractionRecord(BaseModel):
	model_config = ConfigDict(use_enum_values=True)

	id: str
	user_id: str
	property_id: str
	interaction_type: InteractionType
	created_at: datetime
	household_id: Optional[str] = None

	_ids = field_validator("id", "user_id", "property_id", "household_id", mode="before")(_as_id)


class PropertySummary(BaseModel):
	address: str = UNKNOWN_ADDRESS
	price: float = 0
	bedrooms: int = 0
	bathrooms: float = 0
	square_feet: Optional[int] = None
	images: list[str] = Field(default_factory=list)
	listing_status: str = "unknown"

	_numbers = field_validator("price", "bedrooms", "bathrooms", mode="before")(_as_number)

	@field_validator("address", mode="before")
	@classmethod
	def _address(cls, value: Any) -> str:
		return value if isinstance(value, str) and value else UNKNOWN_ADDRESS

	@field_validator("listing_status", mode="before")
	@classmethod
	def _status(cls, value: Any) -> str:
		return value if isinstance(value, str) and value else "unknown"

	@field_validator("images", mode="before")
	@classmethod
	def _images(cls, value: Any) -> list[str]:
		return _as_str_list(value)


class PartnerReaction(BaseModel):
	user_id: str
	user_name: str
	user_email: str = ""
	interaction_type: str
	created_at: datetime
	score_data: Optional[dict[str, Any]] = None
	notes: Optional[str] = None


class DisputedProperty(BaseModel):
	property_id: str
	property: PropertySummary
	partner1: PartnerReaction
	partner2: PartnerReaction
	status: str = "pending"
	resolution_type: Optional[str] = None
	last_updated: datetime


class DisputeResolution(BaseModel):
	model_config = ConfigDict(use_enum_values=True)

	property_id: str
	resolution_type: ResolutionType
	resolved_at: datetime


class PropertyRef(BaseModel):
	property_id: str = Field(min_length=1)


class InteractionRequest(BaseModel):
	property_id: str = Field(min_length=1)
	interaction_type: InteractionType


class ResolutionRequest(BaseModel):
	property_id: str = Field(min_length=1)
	resolution_type: ResolutionType


def parse_rows(model: Type[M], rows: Optional[Iterable[Any]], *, kind: str) -> list[M]:
	"""Validate raw rows into `model`, dropping (and counting) the ones that fail."""
	parsed: list[M] = []
	dropped = 0
	for row in rows or ():
		try:
			parsed.append(model.model_validate(dict(row)))
		except (ValidationError, TypeError, ValueError) as exc:
			dropped += 1
			logger.warning("Dropping malformed %s row: %s", kind, exc.__class__.__name__)
	obs_metrics.inc_rows_dropped(kind, dropped)
	return parsed


def parse_mutual_like_rows(rows: Optional[Sequence[Any]]) -> list[MutualLike]:
	return parse_rows(MutualLike, rows, kind="mutual_like")


def parse_activity_rows(rows: Optional[Sequence[Any]]) -> list[HouseholdActivity]:
	return parse_rows(HouseholdActivity, rows, kind="activity")


def parse_like_rows(rows: Optional[Sequence[Any]]) -> list[LikeRow]:
	return parse_rows(LikeRow, rows, kind="like")
