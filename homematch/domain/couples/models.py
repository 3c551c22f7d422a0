"""Domain constants for household interactions."""

from __future__ import annotations

from enum import Enum


class InteractionType(str, Enum):
	"""Interaction kinds a member can record against a property."""

	LIKE = "like"
	DISLIKE = "dislike"
	SKIP = "skip"
	VIEW = "view"


class ResolutionType(str, Enum):
	"""How a household settled a disputed property."""

	SCHEDULED_VIEWING = "scheduled_viewing"
	SAVED_FOR_LATER = "saved_for_later"
	FINAL_PASS = "final_pass"
	DISCUSSION_NEEDED = "discussion_needed"


MUTUAL_LIKES_RPC = "get_household_mutual_likes"
ACTIVITY_RPC = "get_household_activity_enhanced"

MUTUAL_THRESHOLD = 2
DEFAULT_ACTIVITY_LIMIT = 20
MAX_ACTIVITY_LIMIT = 100

# Reactions that participate in dispute detection
DISPUTE_REACTIONS = frozenset({InteractionType.LIKE.value, InteractionType.DISLIKE.value, InteractionType.SKIP.value})
NEGATIVE_REACTIONS = frozenset({InteractionType.DISLIKE.value, InteractionType.SKIP.value})

UNKNOWN_DISPLAY_NAME = "Unknown"
UNKNOWN_ADDRESS = "Unknown Address"
FALLBACK_MEMBER_NAME = "Household member"
