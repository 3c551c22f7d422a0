"""Tagged results used between the couples components.

Components never raise to each other for expected failures; they return a
`Fetch` describing what happened. Only the service facade collapses a
`Fetch` into the public empty/null value.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")
D = TypeVar("D")


class FetchStatus(str, Enum):
	OK = "ok"
	NO_HOUSEHOLD = "no_household"
	GATEWAY_ERROR = "gateway_error"
	FAILED = "failed"


@dataclass(slots=True)
class Fetch(Generic[T]):
	status: FetchStatus
	value: Optional[T] = None
	error: Optional[BaseException] = None
	# cache / rpc / fallback / query / skipped
	source: Optional[str] = None

	@classmethod
	def ok(cls, value: T, *, source: Optional[str] = None) -> "Fetch[T]":
		return cls(FetchStatus.OK, value=value, source=source)

	@classmethod
	def no_household(cls) -> "Fetch[T]":
		return cls(FetchStatus.NO_HOUSEHOLD)

	@classmethod
	def gateway_error(cls, error: BaseException) -> "Fetch[T]":
		return cls(FetchStatus.GATEWAY_ERROR, error=error)

	@classmethod
	def failed(cls, error: BaseException) -> "Fetch[T]":
		return cls(FetchStatus.FAILED, error=error)

	def forward(self) -> "Fetch[Any]":
		"""Re-type a non-ok result for a caller that produces a different value."""
		return Fetch(self.status, error=self.error, source=self.source)

	@property
	def is_ok(self) -> bool:
		return self.status is FetchStatus.OK

	def collapse(self, default: D) -> T | D:
		if self.status is FetchStatus.OK and self.value is not None:
			return self.value
		return default
