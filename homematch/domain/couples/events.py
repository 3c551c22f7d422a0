"""Audit trail for household matching events."""

from __future__ import annotations

from typing import Dict

from homematch.infra.redis import redis_client
from homematch.settings import settings


async def log_couples_event(event: str, fields: Dict[str, str]) -> None:
	payload = {"event": event, **fields}
	await redis_client.xadd(settings.couples_events_stream, payload)
