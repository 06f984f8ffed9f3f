"""Error taxonomy surfaced to callers of the signal and position services."""

from __future__ import annotations

from typing import Any


class TradingError(Exception):
    """Base error for client-visible failures."""

    code = "TRADING_ERROR"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Render for an API/CLI response."""
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class SymbolNotFound(TradingError):
    code = "SYMBOL_NOT_FOUND"
    http_status = 404

    def __init__(self, symbol_code: str) -> None:
        super().__init__(f"Symbol not found: {symbol_code}", {"symbol_code": symbol_code})


class MarketDataUnavailable(TradingError):
    """No candles for the requested window. Dependency failure, retry later."""

    code = "MARKET_DATA_UNAVAILABLE"
    http_status = 503
    retryable = True


class InvalidSignal(TradingError):
    code = "INVALID_SIGNAL"
    http_status = 400


class InvalidPositionOperation(TradingError):
    """Transition attempted from a state that does not permit it."""

    code = "INVALID_POSITION"
    http_status = 409


class ForbiddenOwnership(TradingError):
    code = "OWNERSHIP_VIOLATION"
    http_status = 403

    @classmethod
    def for_resource(cls, resource_type: str, username: str) -> ForbiddenOwnership:
        return cls(
            f"You can only manage your own {resource_type}. "
            "This resource belongs to another user.",
            {"username": username},
        )


class PositionNotFound(TradingError):
    code = "POSITION_NOT_FOUND"
    http_status = 404

    def __init__(self, position_id: str) -> None:
        super().__init__(f"Position not found: {position_id}", {"position_id": position_id})


class PositionValidationError(TradingError):
    """A position invariant does not hold."""

    code = "VALIDATION_ERROR"
    http_status = 400


class ConcurrentModification(TradingError):
    """Stale version on save; re-fetch and retry."""

    code = "CONCURRENT_MODIFICATION"
    http_status = 409
    retryable = True
