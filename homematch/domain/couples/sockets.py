"""Socket.IO namespace for household partner updates."""

from __future__ import annotations

from typing import Any, Optional

import socketio

from homematch.infra.auth import AuthenticatedUser
from homematch.obs import metrics as obs_metrics

_namespace: "CouplesNamespace" | None = None


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


class CouplesNamespace(socketio.AsyncNamespace):
	"""Keeps each client in their personal room and, once subscribed, their household room."""

	def __init__(self) -> None:
		super().__init__("/couples")
		self._sessions: dict[str, AuthenticatedUser] = {}

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		obs_metrics.socket_connected(self.namespace)
		scope = environ.get("asgi.scope", environ)
		auth_payload = auth or environ.get("auth") or scope.get("auth") or {}
		user_id = auth_payload.get("userId") or _header(scope, "x-user-id")
		if not user_id:
			obs_metrics.socket_disconnected(self.namespace)
			raise ConnectionRefusedError("missing user id")
		self._sessions[sid] = AuthenticatedUser(id=user_id)
		await self.enter_room(sid, self.user_room(user_id))
		await self.emit("couples:ack", {"ok": True}, room=sid)

	async def on_disconnect(self, sid: str) -> None:
		obs_metrics.socket_disconnected(self.namespace)
		user = self._sessions.pop(sid, None)
		if user:
			await self.leave_room(sid, self.user_room(user.id))

	async def on_subscribe_household(self, sid: str, payload: dict | None = None) -> None:
		obs_metrics.socket_event(self.namespace, "subscribe_household")
		user = self._sessions.get(sid)
		if not user:
			raise ConnectionRefusedError("unauthenticated")
		household_id = (payload or {}).get("householdId")
		if household_id:
			await self.enter_room(sid, self.household_room(household_id))

	@staticmethod
	def user_room(user_id: str) -> str:
		return f"user:{user_id}"

	@staticmethod
	def household_room(household_id: str) -> str:
		return f"household:{household_id}"


def set_namespace(ns: CouplesNamespace | None) -> None:
	global _namespace
	_namespace = ns


async def emit_mutual_like(partner_user_id: str, payload: dict[str, Any]) -> None:
	if _namespace is None:
		return
	obs_metrics.socket_event(_namespace.namespace, "couples:mutual_like")
	await _namespace.emit("couples:mutual_like", payload, room=CouplesNamespace.user_room(partner_user_id))


async def emit_household_activity(household_id: str, payload: dict[str, Any]) -> None:
	if _namespace is None:
		return
	obs_metrics.socket_event(_namespace.namespace, "couples:activity")
	await _namespace.emit("couples:activity", payload, room=CouplesNamespace.household_room(household_id))
