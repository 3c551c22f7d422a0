"""In-process caches for derived household views.

Three bounded LRU caches with per-entry expiry: mutual likes (by household),
activity pages (by household + page window) and stats (by household). One
`CouplesCache` instance is built at startup and injected everywhere, so an
invalidation issued after an interaction write is seen by every reader.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from cachetools import TTLCache

from homematch.domain.couples.schemas import CouplesStats, HouseholdActivity, MutualLike
from homematch.obs import metrics as obs_metrics
from homematch.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_ACTIVITY_PREFIX = "activity_"
_STATS_PREFIX = "stats_"


def activity_key(household_id: str, limit: int, offset: int) -> str:
    return f"{_ACTIVITY_PREFIX}{household_id}_{limit}_{offset}"


def stats_key(household_id: str) -> str:
    return f"{_STATS_PREFIX}{household_id}"


def _activity_household(key: str) -> Optional[str]:
    # activity_{household}_{limit}_{offset}; household ids may contain underscores
    if not key.startswith(_ACTIVITY_PREFIX):
        return None
    parts = key[len(_ACTIVITY_PREFIX):].rsplit("_", 2)
    return parts[0] if len(parts) == 3 else None


class CouplesCache:
    """Read-through storage for mutual likes, activity pages and stats."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        timer: Callable[[], float] = time.monotonic,
        enabled: bool | None = None,
    ) -> None:
        config = config or default_settings
        self.enabled = config.couples_cache_enabled if enabled is None else enabled
        self._mutual: TTLCache[str, list[MutualLike]] = TTLCache(
            maxsize=config.couples_mutual_cache_size,
            ttl=config.couples_mutual_cache_ttl_seconds,
            timer=timer,
        )
        self._activity: TTLCache[str, list[HouseholdActivity]] = TTLCache(
            maxsize=config.couples_activity_cache_size,
            ttl=config.couples_activity_cache_ttl_seconds,
            timer=timer,
        )
        self._stats: TTLCache[str, CouplesStats] = TTLCache(
            maxsize=config.couples_stats_cache_size,
            ttl=config.couples_stats_cache_ttl_seconds,
            timer=timer,
        )

    def _get(self, name: str, cache: TTLCache, key: str):
        if not self.enabled:
            return None
        value = cache.get(key)
        obs_metrics.inc_couples_cache(name, "hit" if value is not None else "miss")
        return value

    def _set(self, name: str, cache: TTLCache, key: str, value) -> None:
        if not self.enabled:
            return
        cache[key] = value
        obs_metrics.inc_couples_cache(name, "store")

    def get_mutual(self, household_id: str) -> Optional[list[MutualLike]]:
        return self._get("mutual_likes", self._mutual, household_id)

    def set_mutual(self, household_id: str, value: list[MutualLike]) -> None:
        self._set("mutual_likes", self._mutual, household_id, list(value))

    def get_activity(self, household_id: str, limit: int, offset: int) -> Optional[list[HouseholdActivity]]:
        return self._get("activity", self._activity, activity_key(household_id, limit, offset))

    def set_activity(self, household_id: str, limit: int, offset: int, value: list[HouseholdActivity]) -> None:
        self._set("activity", self._activity, activity_key(household_id, limit, offset), list(value))

    def get_stats(self, household_id: str) -> Optional[CouplesStats]:
        return self._get("stats", self._stats, stats_key(household_id))

    def set_stats(self, household_id: str, value: CouplesStats) -> None:
        self._set("stats", self._stats, stats_key(household_id), value)

    def invalidate_household(self, household_id: str) -> None:
        """Drop every cached view of one household; a no-op when nothing is cached."""
        self._mutual.pop(household_id, None)
        for key in [k for k in list(self._activity.keys()) if _activity_household(k) == household_id]:
            self._activity.pop(key, None)
        self._stats.pop(stats_key(household_id), None)
        obs_metrics.inc_couples_cache("household", "invalidate")
        logger.debug("Invalidated couples caches for household %s", household_id)

    def clear(self) -> None:
        self._mutual.clear()
        self._activity.clear()
        self._stats.clear()
