"""Domain-level exceptions for household matching."""

from __future__ import annotations


class CouplesError(Exception):
    """Base class for couples feature errors."""

    reason: str = "unknown"

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or self.reason)
        if reason:
            self.reason = reason


class NoHousehold(CouplesError):
    reason = "no_household"


class GatewayError(CouplesError):
    """Raised when the data store or one of its stored procedures fails."""

    reason = "gateway_error"

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        super().__init__()
        self.operation = operation
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.reason}:{self.operation}"


class InvalidInteraction(CouplesError):
    reason = "invalid_interaction"


class InvalidResolution(CouplesError):
    reason = "invalid_resolution"
